from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

from dealflow.domain.rules import InvalidArgument, NotFound
from dealflow.domain.stages import DependentPolicy


def utc_now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def today_iso() -> str:
    return date.today().isoformat()


def to_utc_iso(value: datetime) -> str:
    # Naive datetimes are taken as UTC so stored values sort lexically.
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).replace(microsecond=0).isoformat()


def changed_fields(before: Mapping[str, Any], changes: Mapping[str, Any]) -> list[str]:
    return [field for field, value in changes.items() if before[field] != value]


def update_fields(
    session,
    *,
    table: str,
    id_field: str,
    record_id: str,
    values: Mapping[str, Any],
    now: str,
) -> None:
    updates = [f"{field} = ?" for field in values]
    params: list[object] = list(values.values())
    updates.append("updated_at = ?")
    params.append(now)
    params.append(record_id)
    query = f"UPDATE {table} SET {', '.join(updates)} WHERE {id_field} = ?"
    session.execute(query, params)


def blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def dependent_policy(value: DependentPolicy | str) -> DependentPolicy:
    try:
        return DependentPolicy(value)
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in DependentPolicy)
        raise InvalidArgument(f"on_dependents must be one of: {allowed}") from exc


def ensure_reference(session, table: str, id_field: str, record_id: str | None, label: str) -> None:
    if record_id and not session.exists(table, id_field, record_id):
        raise NotFound(f"{label} not found")
