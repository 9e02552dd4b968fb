from pathlib import Path

import pytest

from dealflow.domain.rules import InvalidArgument, NotFound
from dealflow.services import contacts, tasks
from dealflow.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def test_add_task_defaults(tmp_path: Path) -> None:
    store = _store(tmp_path)
    task = tasks.add_task(store, {"title": "Send pricing", "due_date": "2026-02-01"})

    assert task.status == "TODO"
    assert task.priority == "MEDIUM"
    assert task.due_date.isoformat() == "2026-02-01"


def test_add_task_with_unknown_status_creates_nothing(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(InvalidArgument):
        tasks.add_task(store, {"title": "Call", "due_date": "2026-02-01", "status": "CANCELLED"})
    assert store.count("tasks") == 0


def test_add_task_missing_contact(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(NotFound):
        tasks.add_task(store, {"title": "Call", "due_date": "2026-02-01", "contact_id": "nope"})


def test_list_tasks_by_due_date(tmp_path: Path) -> None:
    store = _store(tmp_path)
    later = tasks.add_task(store, {"title": "Later", "due_date": "2026-03-01"})
    sooner = tasks.add_task(store, {"title": "Sooner", "due_date": "2026-01-15"})

    assert [task.task_id for task in tasks.list_tasks(store)] == [sooner.task_id, later.task_id]


def test_update_task(tmp_path: Path) -> None:
    store = _store(tmp_path)
    contact = contacts.add_contact(store, {"name": "Ann", "email": "ann@acme.com"})
    task = tasks.add_task(store, {"title": "Call", "due_date": "2026-02-01"})

    updated = tasks.update_task(
        store,
        task.task_id,
        {"due_date": "2026-02-10", "priority": "HIGH", "contact_id": contact.contact_id},
    )
    assert updated.due_date.isoformat() == "2026-02-10"
    assert updated.priority == "HIGH"
    assert updated.contact_id == contact.contact_id

    detached = tasks.update_task(store, task.task_id, {"contact_id": ""})
    assert detached.contact_id is None


def test_toggle_cycles_status(tmp_path: Path) -> None:
    store = _store(tmp_path)
    task = tasks.add_task(store, {"title": "Call", "due_date": "2026-02-01"})

    seen = [tasks.toggle_task_status(store, task.task_id).status for _ in range(3)]
    assert seen == ["IN_PROGRESS", "DONE", "TODO"]


def test_delete_task(tmp_path: Path) -> None:
    store = _store(tmp_path)
    task = tasks.add_task(store, {"title": "Call", "due_date": "2026-02-01"})

    tasks.delete_task(store, task.task_id)
    assert store.count("tasks") == 0
    with pytest.raises(NotFound):
        tasks.delete_task(store, task.task_id)


def test_filter_tasks(tmp_path: Path) -> None:
    store = _store(tmp_path)
    tasks.add_task(store, {"title": "One", "due_date": "2026-02-01"})
    tasks.add_task(store, {"title": "Two", "due_date": "2026-02-02", "status": "DONE"})
    rows = tasks.list_tasks(store)

    assert [task.title for task in tasks.filter_tasks(rows, "DONE")] == ["Two"]
    assert len(tasks.filter_tasks(rows, "all")) == 2
    with pytest.raises(InvalidArgument):
        tasks.filter_tasks(rows, "done")


def test_migrate_legacy_rows(tmp_path: Path) -> None:
    store = _store(tmp_path)
    now = "2026-01-01T00:00:00+00:00"
    insert = (
        "INSERT INTO tasks (task_id, title, due_date, status, priority, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)"
    )
    store.execute(insert, ("t-1", "Old done", "2026-01-02", "completed", "high", now, now))
    store.execute(insert, ("t-2", "Old open", "2026-01-03", "pending", "", now, now))
    store.execute(insert, ("t-3", "Current", "2026-01-04", "IN_PROGRESS", "LOW", now, now))

    assert tasks.migrate_legacy_tasks(store) == 2

    by_id = {task.task_id: task for task in tasks.list_tasks(store)}
    assert (by_id["t-1"].status, by_id["t-1"].priority) == ("DONE", "HIGH")
    assert (by_id["t-2"].status, by_id["t-2"].priority) == ("TODO", "MEDIUM")
    assert (by_id["t-3"].status, by_id["t-3"].priority) == ("IN_PROGRESS", "LOW")
    assert tasks.migrate_legacy_tasks(store) == 0
