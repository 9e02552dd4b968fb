from pathlib import Path

import pytest

from dealflow.domain.rules import ServerError
from dealflow.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def test_foreign_keys_enforced(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(ServerError):
        store.execute(
            "INSERT INTO deals (deal_id, title, value, stage, contact_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            ("deal-1", "Renewal", 10.0, "lead", "missing-contact", "2026-01-01T00:00:00+00:00",
             "2026-01-01T00:00:00+00:00"),
        )
    assert store.count("deals") == 0


def test_unique_email_enforced_by_store(tmp_path: Path) -> None:
    store = _store(tmp_path)
    insert = (
        "INSERT INTO contacts (contact_id, name, email, status, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?)"
    )
    now = "2026-01-01T00:00:00+00:00"
    store.execute(insert, ("c-1", "Ann", "ann@example.com", "active", now, now))

    with pytest.raises(ServerError):
        store.execute(insert, ("c-2", "Ann B", "ann@example.com", "active", now, now))
