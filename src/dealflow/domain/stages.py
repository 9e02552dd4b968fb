from __future__ import annotations

from enum import Enum


class ContactStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    LEAD = "lead"
    CUSTOMER = "customer"
    PROSPECT = "prospect"


class DealStage(str, Enum):
    LEAD = "lead"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED = "closed"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ActivityType(str, Enum):
    EMAIL = "email"
    CALL = "call"
    MEETING = "meeting"


class DependentPolicy(str, Enum):
    RESTRICT = "restrict"
    DETACH = "detach"
    CASCADE = "cascade"


# Board column order.
STAGE_ORDER: tuple[DealStage, ...] = (
    DealStage.LEAD,
    DealStage.PROPOSAL,
    DealStage.NEGOTIATION,
    DealStage.CLOSED,
)

STAGE_LABELS = {
    DealStage.LEAD: "Leads",
    DealStage.PROPOSAL: "Proposals",
    DealStage.NEGOTIATION: "Negotiation",
    DealStage.CLOSED: "Closed Deals",
}

NEXT_TASK_STATUS = {
    TaskStatus.TODO: TaskStatus.IN_PROGRESS,
    TaskStatus.IN_PROGRESS: TaskStatus.DONE,
    TaskStatus.DONE: TaskStatus.TODO,
}


def values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]
