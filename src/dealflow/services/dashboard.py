"""Read-only dashboard figures.

Every function here works on the collections it is given and never touches
the store. Empty input gives zero or empty results.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from dealflow.domain.models import Activity, Contact, Deal, Task
from dealflow.domain.stages import DealStage, TaskStatus
from dealflow.services.pipeline import StageSummary, stage_summaries

DEFAULT_LIMIT = 5


@dataclass(frozen=True)
class EntityCounts:
    contacts: int
    deals: int
    tasks: int
    activities: int


@dataclass(frozen=True)
class DashboardSummary:
    counts: EntityCounts
    active_deals: int
    total_pipeline_value: float
    pending_tasks: int
    upcoming_tasks: list[Task] = field(default_factory=list)
    recent_activities: list[Activity] = field(default_factory=list)
    stages: list[StageSummary] = field(default_factory=list)


def active_deals_count(deals: Sequence[Deal]) -> int:
    return sum(1 for deal in deals if deal.stage != DealStage.CLOSED.value)


def total_pipeline_value(deals: Sequence[Deal]) -> float:
    return sum((deal.value for deal in deals), 0.0)


def pending_tasks_count(tasks: Sequence[Task]) -> int:
    return sum(1 for task in tasks if task.status == TaskStatus.TODO.value)


def upcoming_tasks(tasks: Sequence[Task], n: int = DEFAULT_LIMIT) -> list[Task]:
    open_tasks = [task for task in tasks if task.status != TaskStatus.DONE.value]
    open_tasks.sort(key=lambda task: task.due_date)
    return open_tasks[: max(n, 0)]


def recent_activities(activities: Sequence[Activity], n: int = DEFAULT_LIMIT) -> list[Activity]:
    # The store already lists activities newest first.
    return list(activities[: max(n, 0)])


def entity_counts(
    contacts: Sequence[Contact],
    deals: Sequence[Deal],
    tasks: Sequence[Task],
    activities: Sequence[Activity],
) -> EntityCounts:
    return EntityCounts(
        contacts=len(contacts),
        deals=len(deals),
        tasks=len(tasks),
        activities=len(activities),
    )


def build_dashboard(
    contacts: Sequence[Contact],
    deals: Sequence[Deal],
    tasks: Sequence[Task],
    activities: Sequence[Activity],
    upcoming_limit: int = DEFAULT_LIMIT,
    recent_limit: int = DEFAULT_LIMIT,
) -> DashboardSummary:
    return DashboardSummary(
        counts=entity_counts(contacts, deals, tasks, activities),
        active_deals=active_deals_count(deals),
        total_pipeline_value=total_pipeline_value(deals),
        pending_tasks=pending_tasks_count(tasks),
        upcoming_tasks=upcoming_tasks(tasks, upcoming_limit),
        recent_activities=recent_activities(activities, recent_limit),
        stages=stage_summaries(deals),
    )
