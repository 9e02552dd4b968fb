from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from dealflow.domain import rules
from dealflow.domain.models import Activity, NewActivity
from dealflow.domain.rules import NotFound
from dealflow.domain.stages import ActivityType, values
from dealflow.domain.validation import require_valid, validate_activity
from dealflow.services.events import EventLogger, emit
from dealflow.services.utils import (
    changed_fields,
    ensure_reference,
    to_utc_iso,
    update_fields,
    utc_now_iso,
)
from dealflow.store.sqlite import SqliteSession, SqliteStore


def list_activities(store: SqliteStore) -> list[Activity]:
    rows = store.fetch_all("SELECT * FROM activities ORDER BY date DESC, rowid DESC")
    return [Activity.from_row(row) for row in rows]


def get_activity(store: SqliteStore, activity_id: str) -> Activity:
    row = store.fetch_one("SELECT * FROM activities WHERE activity_id = ?", (activity_id,))
    if row is None:
        raise NotFound("Activity not found")
    return Activity.from_row(row)


def add_activity(
    store: SqliteStore, payload: Mapping[str, Any], logger: EventLogger | None = None
) -> Activity:
    require_valid(validate_activity(payload))
    new = NewActivity.from_payload(payload)

    now = utc_now_iso()
    occurred = to_utc_iso(new.date) if new.date else to_utc_iso(datetime.now(UTC))
    activity_id = str(uuid4())
    with store.session() as session:
        _ensure_references(session, new.contact_id, new.deal_id)
        session.execute(
            "INSERT INTO activities (activity_id, type, description, date, contact_id, deal_id, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                activity_id,
                new.type,
                new.description,
                occurred,
                new.contact_id,
                new.deal_id,
                now,
                now,
            ),
        )
        row = session.fetch_one("SELECT * FROM activities WHERE activity_id = ?", (activity_id,))

    emit(logger, "created", "activity", activity_id)
    return Activity.from_row(row)


def update_activity(
    store: SqliteStore,
    activity_id: str,
    changes: Mapping[str, Any],
    logger: EventLogger | None = None,
) -> Activity:
    require_valid(validate_activity(changes, partial=True))
    updates = _normalize(changes)

    with store.session() as session:
        before = session.fetch_one(
            "SELECT * FROM activities WHERE activity_id = ?", (activity_id,)
        )
        if before is None:
            raise NotFound("Activity not found")
        _ensure_references(session, updates.get("contact_id"), updates.get("deal_id"))
        changed = changed_fields(before, updates)
        if updates:
            update_fields(
                session,
                table="activities",
                id_field="activity_id",
                record_id=activity_id,
                values=updates,
                now=utc_now_iso(),
            )
        row = session.fetch_one("SELECT * FROM activities WHERE activity_id = ?", (activity_id,))

    emit(logger, "updated", "activity", activity_id, changed)
    return Activity.from_row(row)


def delete_activity(
    store: SqliteStore, activity_id: str, logger: EventLogger | None = None
) -> None:
    with store.session() as session:
        if not session.exists("activities", "activity_id", activity_id):
            raise NotFound("Activity not found")
        session.execute("DELETE FROM activities WHERE activity_id = ?", (activity_id,))
    emit(logger, "deleted", "activity", activity_id)


def filter_activities(
    activities: Iterable[Activity], activity_type: ActivityType | str | None
) -> list[Activity]:
    if activity_type is None or activity_type == "all":
        return list(activities)
    rules.validate_enum(activity_type, values(ActivityType), "type")
    wanted = ActivityType(activity_type).value
    return [activity for activity in activities if activity.type == wanted]


def _normalize(changes: Mapping[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for field, value in changes.items():
        if field == "date":
            # A cleared date falls back to now, matching creation.
            parsed = rules.parse_datetime(value, "date") or datetime.now(UTC)
            updates[field] = to_utc_iso(parsed)
        elif field == "description":
            updates[field] = value or ""
        elif field in ("contact_id", "deal_id"):
            updates[field] = value or None
        else:
            updates[field] = value
    return updates


def _ensure_references(session: SqliteSession, contact_id: str | None, deal_id: str | None) -> None:
    ensure_reference(session, "contacts", "contact_id", contact_id, "Contact")
    ensure_reference(session, "deals", "deal_id", deal_id, "Deal")
