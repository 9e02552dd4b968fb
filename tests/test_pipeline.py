from datetime import UTC, datetime
from pathlib import Path

import pytest

from dealflow.domain.models import Activity, Deal
from dealflow.domain.rules import Conflict, InvalidArgument, NotFound
from dealflow.domain.stages import DealStage
from dealflow.services import activities, contacts, pipeline
from dealflow.store.sqlite import SqliteStore

STAGES = ["lead", "proposal", "negotiation", "closed"]
NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def _deal(deal_id: str, stage: str, value: float, title: str = "Deal") -> Deal:
    return Deal(
        deal_id=deal_id,
        title=title,
        value=value,
        stage=stage,
        contact_id=None,
        description=None,
        created_at=NOW,
        updated_at=NOW,
    )


def test_add_deal_defaults(tmp_path: Path) -> None:
    store = _store(tmp_path)
    deal = pipeline.add_deal(store, {"title": "Renewal"})

    assert deal.stage == "lead"
    assert deal.value == 0.0
    assert deal.contact_id is None


def test_add_deal_with_missing_contact(tmp_path: Path) -> None:
    store = _store(tmp_path)

    with pytest.raises(NotFound, match="Contact not found"):
        pipeline.add_deal(store, {"title": "Renewal", "contact_id": "missing"})
    assert store.count("deals") == 0


@pytest.mark.parametrize("stage", STAGES)
def test_move_deal_changes_only_stage(tmp_path: Path, stage: str) -> None:
    store = _store(tmp_path)
    contact = contacts.add_contact(store, {"name": "Ann", "email": "ann@acme.com"})
    before = pipeline.add_deal(
        store,
        {
            "title": "Renewal",
            "value": 1200,
            "stage": "negotiation",
            "contact_id": contact.contact_id,
            "description": "Annual",
        },
    )

    pipeline.move_deal(store, before.deal_id, stage)
    after = pipeline.get_deal(store, before.deal_id)

    assert after.stage == stage
    assert (after.title, after.value, after.contact_id, after.description) == (
        before.title,
        before.value,
        before.contact_id,
        before.description,
    )


def test_move_deal_accepts_enum(tmp_path: Path) -> None:
    store = _store(tmp_path)
    deal = pipeline.add_deal(store, {"title": "Renewal"})

    moved = pipeline.move_deal(store, deal.deal_id, DealStage.CLOSED)
    assert moved.stage == "closed"


def test_move_missing_deal_not_found(tmp_path: Path) -> None:
    store = _store(tmp_path)
    deal = pipeline.add_deal(store, {"title": "Renewal"})
    snapshot = store.fetch_all("SELECT * FROM deals")

    with pytest.raises(NotFound):
        pipeline.move_deal(store, "missing", "proposal")
    # Missing id wins over a bad stage.
    with pytest.raises(NotFound):
        pipeline.move_deal(store, "missing", "won")

    assert [dict(row) for row in store.fetch_all("SELECT * FROM deals")] == [
        dict(row) for row in snapshot
    ]
    assert pipeline.get_deal(store, deal.deal_id).stage == "lead"


def test_move_deal_invalid_stage(tmp_path: Path) -> None:
    store = _store(tmp_path)
    deal = pipeline.add_deal(store, {"title": "Renewal"})

    with pytest.raises(InvalidArgument, match="Stage must be one of"):
        pipeline.move_deal(store, deal.deal_id, "won")
    assert pipeline.get_deal(store, deal.deal_id).stage == "lead"


def test_move_scenario_regroups_deals(tmp_path: Path) -> None:
    store = _store(tmp_path)
    first = pipeline.add_deal(store, {"title": "First", "stage": "lead", "value": 100})
    pipeline.add_deal(store, {"title": "Second", "stage": "closed", "value": 50})

    moved = pipeline.move_deal(store, first.deal_id, "proposal")
    grouped = pipeline.deals_by_stage(pipeline.list_deals(store))

    assert (moved.stage, moved.value) == ("proposal", 100)
    assert grouped["lead"] == []
    assert [deal.deal_id for deal in grouped["proposal"]] == [first.deal_id]


def test_update_deal(tmp_path: Path) -> None:
    store = _store(tmp_path)
    deal = pipeline.add_deal(store, {"title": "Renewal", "value": 10})

    updated = pipeline.update_deal(store, deal.deal_id, {"value": 25, "description": "Upsell"})
    assert updated.value == 25.0
    assert updated.description == "Upsell"

    with pytest.raises(InvalidArgument):
        pipeline.update_deal(store, deal.deal_id, {"value": -5})
    with pytest.raises(NotFound):
        pipeline.update_deal(store, "missing", {"title": "X"})


def test_stage_partition_sums_to_total() -> None:
    deals = [
        _deal("1", "lead", 100),
        _deal("2", "proposal", 250.5),
        _deal("3", "negotiation", 0),
        _deal("4", "closed", 50),
        _deal("5", "lead", 10),
    ]
    per_stage = sum(pipeline.total_value_by_stage(deals, stage) for stage in STAGES)

    assert per_stage == sum(deal.value for deal in deals)
    assert pipeline.total_value_by_stage(deals, "lead") == 110


def test_aggregation_of_empty_input() -> None:
    assert pipeline.total_value_by_stage([], "closed") == 0
    assert pipeline.deals_by_stage([]) == {stage: [] for stage in STAGES}
    assert [summary.count for summary in pipeline.stage_summaries([])] == [0, 0, 0, 0]


def test_deals_by_stage_preserves_order() -> None:
    deals = [_deal("1", "lead", 1), _deal("2", "closed", 2), _deal("3", "lead", 3)]
    grouped = pipeline.deals_by_stage(deals)

    assert list(grouped) == STAGES
    assert [deal.deal_id for deal in grouped["lead"]] == ["1", "3"]


def test_stage_summaries_labels() -> None:
    summaries = pipeline.stage_summaries([_deal("1", "negotiation", 40)])

    assert [summary.label for summary in summaries] == [
        "Leads",
        "Proposals",
        "Negotiation",
        "Closed Deals",
    ]
    assert summaries[2].total_value == 40


def test_filter_deals_by_title() -> None:
    deals = [_deal("1", "lead", 1, "Cloud Migration"), _deal("2", "lead", 1, "Website")]

    assert [deal.deal_id for deal in pipeline.filter_deals(deals, "cloud")] == ["1"]
    assert len(pipeline.filter_deals(deals, None)) == 2


def test_activities_for_deal() -> None:
    items = [
        Activity("a1", "call", "", NOW, None, "d1", NOW, NOW),
        Activity("a2", "email", "", NOW, None, "d2", NOW, NOW),
    ]
    assert [item.activity_id for item in pipeline.activities_for_deal(items, "d1")] == ["a1"]


def test_delete_deal_policies(tmp_path: Path) -> None:
    store = _store(tmp_path)
    deal = pipeline.add_deal(store, {"title": "Renewal"})
    activities.add_activity(store, {"type": "call", "deal_id": deal.deal_id})

    with pytest.raises(Conflict):
        pipeline.delete_deal(store, deal.deal_id)

    pipeline.delete_deal(store, deal.deal_id, on_dependents="detach")
    assert store.count("deals") == 0
    assert store.count("activities", "deal_id IS NULL") == 1

    other = pipeline.add_deal(store, {"title": "Expansion"})
    activities.add_activity(store, {"type": "email", "deal_id": other.deal_id})
    pipeline.delete_deal(store, other.deal_id, on_dependents="cascade")
    assert store.count("activities") == 1


def test_aggregation_ignores_unknown_stage() -> None:
    deals = [_deal("1", "lead", 10), _deal("2", "won", 99)]

    grouped = pipeline.deals_by_stage(deals)
    assert list(grouped) == STAGES
    assert [deal.deal_id for deal in grouped["lead"]] == ["1"]
    assert sum(summary.count for summary in pipeline.stage_summaries(deals)) == 1
