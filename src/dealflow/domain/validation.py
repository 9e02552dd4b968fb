"""Payload validation for the four CRM entities.

Each ``validate_*`` function checks a loosely-typed mapping (CLI options,
JSON input) and returns a :class:`Validation`. Rules run in a fixed order and
the first failing rule is reported. In partial mode only the keys present in
the payload are checked.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from dealflow.domain import rules
from dealflow.domain.rules import InvalidArgument
from dealflow.domain.stages import (
    ActivityType,
    ContactStatus,
    DealStage,
    TaskPriority,
    TaskStatus,
    values,
)

CONTACT_FIELDS = ("name", "email", "phone", "company", "position", "status")
DEAL_FIELDS = ("title", "value", "stage", "contact_id", "description")
TASK_FIELDS = ("title", "description", "due_date", "status", "priority", "contact_id")
ACTIVITY_FIELDS = ("type", "description", "date", "contact_id", "deal_id")


@dataclass(frozen=True)
class Validation:
    ok: bool
    reason: str | None = None

    @classmethod
    def accept(cls) -> Validation:
        return cls(ok=True)

    @classmethod
    def reject(cls, reason: str) -> Validation:
        return cls(ok=False, reason=reason)


def require_valid(result: Validation) -> None:
    if not result.ok:
        raise InvalidArgument(result.reason or "Invalid payload.")


def validate_contact(data: Mapping[str, Any], *, partial: bool = False) -> Validation:
    try:
        _check_fields(data, CONTACT_FIELDS)
        _required_text(data, "name", "Name", partial)
        _required_text(data, "email", "Email", partial)
        _optional_text(data, "phone", "Phone")
        _optional_text(data, "company", "Company")
        _optional_text(data, "position", "Position")
        _enum(data, "status", "Status", values(ContactStatus), partial)
    except InvalidArgument as exc:
        return Validation.reject(str(exc))
    return Validation.accept()


def validate_deal(data: Mapping[str, Any], *, partial: bool = False) -> Validation:
    try:
        _check_fields(data, DEAL_FIELDS)
        _required_text(data, "title", "Title", partial)
        _non_negative_number(data, "value", "Value", partial)
        _enum(data, "stage", "Stage", values(DealStage), partial)
        _optional_text(data, "contact_id", "Contact ID")
        _optional_text(data, "description", "Description")
    except InvalidArgument as exc:
        return Validation.reject(str(exc))
    return Validation.accept()


def validate_task(data: Mapping[str, Any], *, partial: bool = False) -> Validation:
    try:
        _check_fields(data, TASK_FIELDS)
        _required_text(data, "title", "Title", partial)
        _due_date(data, partial)
        _enum(data, "status", "Status", values(TaskStatus), partial)
        _enum(data, "priority", "Priority", values(TaskPriority), partial)
        _optional_text(data, "description", "Description")
        _optional_text(data, "contact_id", "Contact ID")
    except InvalidArgument as exc:
        return Validation.reject(str(exc))
    return Validation.accept()


def validate_activity(data: Mapping[str, Any], *, partial: bool = False) -> Validation:
    try:
        _check_fields(data, ACTIVITY_FIELDS)
        _activity_type(data, partial)
        _optional_text(data, "description", "Description")
        _activity_date(data)
        _optional_text(data, "contact_id", "Contact ID")
        _optional_text(data, "deal_id", "Deal ID")
    except InvalidArgument as exc:
        return Validation.reject(str(exc))
    return Validation.accept()


def _check_fields(data: Mapping[str, Any], allowed: Iterable[str]) -> None:
    if not isinstance(data, Mapping):
        raise InvalidArgument("Payload must be a mapping.")
    allowed = set(allowed)
    for key in data:
        if key not in allowed:
            raise InvalidArgument(f"Unknown field: {key}")


def _required_text(data: Mapping[str, Any], field: str, label: str, partial: bool) -> None:
    if partial and field not in data:
        return
    value = data.get(field)
    if isinstance(value, str) and value.strip():
        return
    if partial:
        raise InvalidArgument(f"{label} must be a non-empty string")
    raise InvalidArgument(f"{label} is required and must be a string")


def _optional_text(data: Mapping[str, Any], field: str, label: str) -> None:
    value = data.get(field)
    if value is not None and not isinstance(value, str):
        raise InvalidArgument(f"{label} must be a string")


def _enum(
    data: Mapping[str, Any], field: str, label: str, allowed: list[str], partial: bool
) -> None:
    # Absent on create: the input struct applies the default.
    if field not in data:
        return
    value = data[field]
    if value is None and not partial:
        return
    if not isinstance(value, str) or value not in allowed:
        raise InvalidArgument(f"{label} must be one of: {', '.join(allowed)}")


def _non_negative_number(data: Mapping[str, Any], field: str, label: str, partial: bool) -> None:
    if field not in data:
        return
    value = data[field]
    if value is None and not partial:
        return
    message = f"{label} must be a non-negative number"
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgument(message)
    try:
        number = float(value)
    except OverflowError as exc:
        raise InvalidArgument(message) from exc
    if not math.isfinite(number) or number < 0:
        raise InvalidArgument(message)


def _due_date(data: Mapping[str, Any], partial: bool) -> None:
    if partial and "due_date" not in data:
        return
    value = data.get("due_date")
    if value is None:
        if partial:
            raise InvalidArgument("Due date must be a valid date")
        raise InvalidArgument("Due date is required and must be a valid date")
    try:
        rules.parse_date(value, "due_date")
    except InvalidArgument as exc:
        raise InvalidArgument("Due date must be a valid date") from exc


def _activity_date(data: Mapping[str, Any]) -> None:
    value = data.get("date")
    if value is None:
        return
    try:
        rules.parse_datetime(value, "date")
    except InvalidArgument as exc:
        raise InvalidArgument("Date must be a valid date") from exc


def _activity_type(data: Mapping[str, Any], partial: bool) -> None:
    if partial and "type" not in data:
        return
    allowed = values(ActivityType)
    if data.get("type") not in allowed:
        raise InvalidArgument(f"Type must be one of: {', '.join(allowed)}")
