"""Deal pipeline: deal CRUD, stage moves and per-stage aggregation.

Stages carry no workflow: a deal may move from any stage to any other, and
a move only rewrites the deal's ``stage``. The aggregation helpers are pure
functions over whatever deal collection the caller passes in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from dealflow.domain.models import Activity, Deal, NewDeal
from dealflow.domain.rules import Conflict, InvalidArgument, NotFound
from dealflow.domain.stages import STAGE_LABELS, STAGE_ORDER, DealStage, DependentPolicy, values
from dealflow.domain.validation import require_valid, validate_deal
from dealflow.services.events import EventLogger, emit
from dealflow.services.utils import (
    blank_to_none,
    changed_fields,
    dependent_policy,
    ensure_reference,
    update_fields,
    utc_now_iso,
)
from dealflow.store.sqlite import SqliteStore


@dataclass(frozen=True)
class StageSummary:
    stage: str
    label: str
    count: int
    total_value: float


def list_deals(store: SqliteStore) -> list[Deal]:
    rows = store.fetch_all("SELECT * FROM deals ORDER BY created_at DESC, rowid DESC")
    return [Deal.from_row(row) for row in rows]


def get_deal(store: SqliteStore, deal_id: str) -> Deal:
    row = store.fetch_one("SELECT * FROM deals WHERE deal_id = ?", (deal_id,))
    if row is None:
        raise NotFound("Deal not found")
    return Deal.from_row(row)


def add_deal(
    store: SqliteStore, payload: Mapping[str, Any], logger: EventLogger | None = None
) -> Deal:
    require_valid(validate_deal(payload))
    new = NewDeal.from_payload(payload)

    now = utc_now_iso()
    deal_id = str(uuid4())
    with store.session() as session:
        ensure_reference(session, "contacts", "contact_id", new.contact_id, "Contact")
        session.execute(
            "INSERT INTO deals (deal_id, title, value, stage, contact_id, description, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (deal_id, new.title, new.value, new.stage, new.contact_id, new.description, now, now),
        )
        row = session.fetch_one("SELECT * FROM deals WHERE deal_id = ?", (deal_id,))

    emit(logger, "created", "deal", deal_id)
    return Deal.from_row(row)


def update_deal(
    store: SqliteStore,
    deal_id: str,
    changes: Mapping[str, Any],
    logger: EventLogger | None = None,
) -> Deal:
    require_valid(validate_deal(changes, partial=True))
    updates = {field: blank_to_none(value) for field, value in changes.items()}
    if "value" in updates:
        updates["value"] = float(updates["value"])

    with store.session() as session:
        before = session.fetch_one("SELECT * FROM deals WHERE deal_id = ?", (deal_id,))
        if before is None:
            raise NotFound("Deal not found")
        ensure_reference(session, "contacts", "contact_id", updates.get("contact_id"), "Contact")
        changed = changed_fields(before, updates)
        if updates:
            update_fields(
                session,
                table="deals",
                id_field="deal_id",
                record_id=deal_id,
                values=updates,
                now=utc_now_iso(),
            )
        row = session.fetch_one("SELECT * FROM deals WHERE deal_id = ?", (deal_id,))

    emit(logger, "updated", "deal", deal_id, changed)
    return Deal.from_row(row)


def move_deal(
    store: SqliteStore,
    deal_id: str,
    new_stage: DealStage | str,
    logger: EventLogger | None = None,
) -> Deal:
    with store.session() as session:
        # Existence is checked first: a missing deal is NotFound whatever the stage.
        if not session.exists("deals", "deal_id", deal_id):
            raise NotFound("Deal not found")
        stage = _stage_value(new_stage)
        session.execute(
            "UPDATE deals SET stage = ?, updated_at = ? WHERE deal_id = ?",
            (stage, utc_now_iso(), deal_id),
        )
        row = session.fetch_one("SELECT * FROM deals WHERE deal_id = ?", (deal_id,))

    emit(logger, "moved", "deal", deal_id, ["stage"])
    return Deal.from_row(row)


def delete_deal(
    store: SqliteStore,
    deal_id: str,
    on_dependents: DependentPolicy | str = DependentPolicy.RESTRICT,
    logger: EventLogger | None = None,
) -> None:
    policy = dependent_policy(on_dependents)
    with store.session() as session:
        if not session.exists("deals", "deal_id", deal_id):
            raise NotFound("Deal not found")
        linked = session.count("activities", "deal_id = ?", (deal_id,))
        if linked and policy is DependentPolicy.RESTRICT:
            raise Conflict(f"Deal still has {linked} activities; use detach or cascade")
        if policy is DependentPolicy.DETACH:
            session.execute(
                "UPDATE activities SET deal_id = NULL, updated_at = ? WHERE deal_id = ?",
                (utc_now_iso(), deal_id),
            )
        elif policy is DependentPolicy.CASCADE:
            session.execute("DELETE FROM activities WHERE deal_id = ?", (deal_id,))
        session.execute("DELETE FROM deals WHERE deal_id = ?", (deal_id,))

    emit(logger, "deleted", "deal", deal_id)


def total_value_by_stage(deals: Iterable[Deal], stage: DealStage | str) -> float:
    stage = _stage_value(stage)
    return sum((deal.value for deal in deals if deal.stage == stage), 0.0)


def deals_by_stage(deals: Iterable[Deal]) -> dict[str, list[Deal]]:
    grouped: dict[str, list[Deal]] = {stage.value: [] for stage in STAGE_ORDER}
    for deal in deals:
        # Rows with a stage outside the enum belong to no column.
        if deal.stage in grouped:
            grouped[deal.stage].append(deal)
    return grouped


def stage_summaries(deals: Iterable[Deal]) -> list[StageSummary]:
    grouped = deals_by_stage(deals)
    return [
        StageSummary(
            stage=stage.value,
            label=STAGE_LABELS[stage],
            count=len(grouped[stage.value]),
            total_value=total_value_by_stage(grouped[stage.value], stage),
        )
        for stage in STAGE_ORDER
    ]


def filter_deals(deals: Iterable[Deal], search: str | None) -> list[Deal]:
    needle = (search or "").strip().lower()
    return [deal for deal in deals if needle in deal.title.lower()]


def activities_for_deal(activities: Iterable[Activity], deal_id: str) -> list[Activity]:
    return [activity for activity in activities if activity.deal_id == deal_id]


def _stage_value(stage: DealStage | str) -> str:
    allowed = values(DealStage)
    value = stage.value if isinstance(stage, DealStage) else stage
    if value not in allowed:
        raise InvalidArgument(f"Stage must be one of: {', '.join(allowed)}")
    return value
