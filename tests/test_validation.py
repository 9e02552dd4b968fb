from datetime import date

import pytest

from dealflow.domain.rules import InvalidArgument
from dealflow.domain.validation import (
    require_valid,
    validate_activity,
    validate_contact,
    validate_deal,
    validate_task,
)


def test_contact_requires_name_and_email() -> None:
    result = validate_contact({"email": "a@example.com"})
    assert not result.ok
    assert result.reason == "Name is required and must be a string"

    result = validate_contact({"name": "Ann"})
    assert result.reason == "Email is required and must be a string"

    assert validate_contact({"name": "Ann", "email": "a@example.com"}).ok


def test_first_failing_rule_wins() -> None:
    result = validate_contact({"name": "", "email": "", "status": "bogus"})
    assert result.reason == "Name is required and must be a string"


def test_unknown_field_rejected_before_other_rules() -> None:
    result = validate_contact({"nickname": "Annie"})
    assert result.reason == "Unknown field: nickname"


def test_contact_status_must_be_known() -> None:
    result = validate_contact({"name": "Ann", "email": "a@example.com", "status": "vip"})
    assert result.reason == "Status must be one of: active, inactive, lead, customer, prospect"


def test_partial_update_checks_only_present_keys() -> None:
    assert validate_contact({"phone": "555"}, partial=True).ok
    assert validate_contact({}, partial=True).ok

    result = validate_contact({"name": "  "}, partial=True)
    assert result.reason == "Name must be a non-empty string"


@pytest.mark.parametrize("value", [-1, "100", True, float("nan"), float("inf")])
def test_deal_value_must_be_non_negative_number(value) -> None:
    result = validate_deal({"title": "Renewal", "value": value})
    assert result.reason == "Value must be a non-negative number"


def test_deal_defaults_are_accepted() -> None:
    assert validate_deal({"title": "Renewal"}).ok
    assert validate_deal({"title": "Renewal", "value": 0, "stage": "closed"}).ok


def test_deal_stage_must_be_known() -> None:
    result = validate_deal({"title": "Renewal", "stage": "won"})
    assert result.reason == "Stage must be one of: lead, proposal, negotiation, closed"


def test_task_status_outside_enum_rejected() -> None:
    result = validate_task({"title": "Call", "due_date": "2026-02-01", "status": "CANCELLED"})
    assert result.reason == "Status must be one of: TODO, IN_PROGRESS, DONE"


def test_task_priority_is_case_sensitive() -> None:
    result = validate_task({"title": "Call", "due_date": "2026-02-01", "priority": "medium"})
    assert result.reason == "Priority must be one of: LOW, MEDIUM, HIGH"


def test_task_due_date_required_and_parsed() -> None:
    result = validate_task({"title": "Call"})
    assert result.reason == "Due date is required and must be a valid date"

    result = validate_task({"title": "Call", "due_date": "next week"})
    assert result.reason == "Due date must be a valid date"

    assert validate_task({"title": "Call", "due_date": date(2026, 2, 1)}).ok


def test_activity_type_required() -> None:
    result = validate_activity({"description": "Intro"})
    assert result.reason == "Type must be one of: email, call, meeting"

    assert validate_activity({"type": "call"}).ok
    assert validate_activity({"description": "Edited"}, partial=True).ok


def test_activity_date_must_parse() -> None:
    result = validate_activity({"type": "call", "date": "yesterday"})
    assert result.reason == "Date must be a valid date"


def test_require_valid_raises_invalid_argument() -> None:
    with pytest.raises(InvalidArgument, match="Unknown field: x"):
        require_valid(validate_deal({"x": 1}))


def test_oversized_deal_value_is_rejected() -> None:
    result = validate_deal({"title": "Renewal", "value": 10**400})
    assert not result.ok
    assert result.reason == "Value must be a non-negative number"
