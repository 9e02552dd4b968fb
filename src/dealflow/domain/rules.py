from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime


class CrmError(RuntimeError):
    pass


class InvalidArgument(CrmError, ValueError):
    pass


class NotFound(CrmError, LookupError):
    pass


class Conflict(CrmError):
    pass


class ServerError(CrmError):
    pass


def validate_enum(value: str | None, allowed: Iterable[str], field: str) -> None:
    if value is None:
        return
    allowed = list(allowed)
    if value not in allowed:
        raise InvalidArgument(f"{field} must be one of: {', '.join(allowed)}")


def parse_date(value: str | date | None, field: str) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        pass
    try:
        return datetime.fromisoformat(value).date()
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"{field} must be YYYY-MM-DD.") from exc


def parse_datetime(value: str | datetime | None, field: str) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"{field} must be ISO 8601.") from exc
