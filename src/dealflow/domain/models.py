from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from dealflow.domain import rules
from dealflow.domain.stages import ContactStatus, DealStage, TaskPriority, TaskStatus


@dataclass(frozen=True)
class Contact:
    contact_id: str
    name: str
    email: str
    phone: str | None
    company: str | None
    position: str | None
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Contact:
        return cls(
            contact_id=row["contact_id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            company=row["company"],
            position=row["position"],
            status=row["status"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


@dataclass(frozen=True)
class Deal:
    deal_id: str
    title: str
    value: float
    stage: str
    contact_id: str | None
    description: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Deal:
        return cls(
            deal_id=row["deal_id"],
            title=row["title"],
            value=float(row["value"]),
            stage=row["stage"],
            contact_id=row["contact_id"],
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


@dataclass(frozen=True)
class Task:
    task_id: str
    title: str
    description: str | None
    due_date: date
    status: str
    priority: str
    contact_id: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Task:
        return cls(
            task_id=row["task_id"],
            title=row["title"],
            description=row["description"],
            due_date=date.fromisoformat(row["due_date"]),
            status=row["status"],
            priority=row["priority"],
            contact_id=row["contact_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


@dataclass(frozen=True)
class Activity:
    activity_id: str
    type: str
    description: str
    date: datetime
    contact_id: str | None
    deal_id: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Activity:
        return cls(
            activity_id=row["activity_id"],
            type=row["type"],
            description=row["description"] or "",
            date=datetime.fromisoformat(row["date"]),
            contact_id=row["contact_id"],
            deal_id=row["deal_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


# Input structs. Built only from payloads the validation layer accepted.


@dataclass(frozen=True)
class NewContact:
    name: str
    email: str
    phone: str | None = None
    company: str | None = None
    position: str | None = None
    status: str = ContactStatus.ACTIVE.value

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> NewContact:
        return cls(
            name=data["name"].strip(),
            email=data["email"].strip(),
            phone=data.get("phone") or None,
            company=data.get("company") or None,
            position=data.get("position") or None,
            status=data.get("status") or ContactStatus.ACTIVE.value,
        )


@dataclass(frozen=True)
class NewDeal:
    title: str
    value: float = 0.0
    stage: str = DealStage.LEAD.value
    contact_id: str | None = None
    description: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> NewDeal:
        value = data.get("value")
        return cls(
            title=data["title"].strip(),
            value=float(value) if value is not None else 0.0,
            stage=data.get("stage") or DealStage.LEAD.value,
            contact_id=data.get("contact_id") or None,
            description=data.get("description") or None,
        )


@dataclass(frozen=True)
class NewTask:
    title: str
    due_date: date
    description: str | None = None
    status: str = TaskStatus.TODO.value
    priority: str = TaskPriority.MEDIUM.value
    contact_id: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> NewTask:
        return cls(
            title=data["title"].strip(),
            due_date=rules.parse_date(data["due_date"], "due_date"),
            description=data.get("description") or None,
            status=data.get("status") or TaskStatus.TODO.value,
            priority=data.get("priority") or TaskPriority.MEDIUM.value,
            contact_id=data.get("contact_id") or None,
        )


@dataclass(frozen=True)
class NewActivity:
    type: str
    description: str = ""
    date: datetime | None = None
    contact_id: str | None = None
    deal_id: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> NewActivity:
        return cls(
            type=data["type"],
            description=data.get("description") or "",
            date=rules.parse_datetime(data.get("date"), "date"),
            contact_id=data.get("contact_id") or None,
            deal_id=data.get("deal_id") or None,
        )
