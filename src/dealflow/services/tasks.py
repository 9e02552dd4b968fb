from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import uuid4

from dealflow.domain import rules
from dealflow.domain.models import NewTask, Task
from dealflow.domain.rules import NotFound
from dealflow.domain.stages import NEXT_TASK_STATUS, TaskPriority, TaskStatus, values
from dealflow.domain.validation import require_valid, validate_task
from dealflow.services.events import EventLogger, emit
from dealflow.services.utils import (
    blank_to_none,
    changed_fields,
    ensure_reference,
    update_fields,
    utc_now_iso,
)
from dealflow.store.sqlite import SqliteStore

# Status spellings written by older clients.
LEGACY_STATUS = {
    "completed": TaskStatus.DONE.value,
    "pending": TaskStatus.TODO.value,
}


def list_tasks(store: SqliteStore) -> list[Task]:
    rows = store.fetch_all("SELECT * FROM tasks ORDER BY due_date ASC, rowid ASC")
    return [Task.from_row(row) for row in rows]


def get_task(store: SqliteStore, task_id: str) -> Task:
    row = store.fetch_one("SELECT * FROM tasks WHERE task_id = ?", (task_id,))
    if row is None:
        raise NotFound("Task not found")
    return Task.from_row(row)


def add_task(
    store: SqliteStore, payload: Mapping[str, Any], logger: EventLogger | None = None
) -> Task:
    require_valid(validate_task(payload))
    new = NewTask.from_payload(payload)

    now = utc_now_iso()
    task_id = str(uuid4())
    with store.session() as session:
        ensure_reference(session, "contacts", "contact_id", new.contact_id, "Contact")
        session.execute(
            "INSERT INTO tasks (task_id, title, description, due_date, status, priority, contact_id, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                task_id,
                new.title,
                new.description,
                new.due_date.isoformat(),
                new.status,
                new.priority,
                new.contact_id,
                now,
                now,
            ),
        )
        row = session.fetch_one("SELECT * FROM tasks WHERE task_id = ?", (task_id,))

    emit(logger, "created", "task", task_id)
    return Task.from_row(row)


def update_task(
    store: SqliteStore,
    task_id: str,
    changes: Mapping[str, Any],
    logger: EventLogger | None = None,
) -> Task:
    require_valid(validate_task(changes, partial=True))
    updates = {field: blank_to_none(value) for field, value in changes.items()}
    if "due_date" in updates:
        updates["due_date"] = rules.parse_date(updates["due_date"], "due_date").isoformat()

    with store.session() as session:
        before = session.fetch_one("SELECT * FROM tasks WHERE task_id = ?", (task_id,))
        if before is None:
            raise NotFound("Task not found")
        ensure_reference(session, "contacts", "contact_id", updates.get("contact_id"), "Contact")
        changed = changed_fields(before, updates)
        if updates:
            update_fields(
                session,
                table="tasks",
                id_field="task_id",
                record_id=task_id,
                values=updates,
                now=utc_now_iso(),
            )
        row = session.fetch_one("SELECT * FROM tasks WHERE task_id = ?", (task_id,))

    emit(logger, "updated", "task", task_id, changed)
    return Task.from_row(row)


def toggle_task_status(
    store: SqliteStore, task_id: str, logger: EventLogger | None = None
) -> Task:
    """Advance a task TODO -> IN_PROGRESS -> DONE -> TODO."""
    task = get_task(store, task_id)
    try:
        next_status = NEXT_TASK_STATUS[TaskStatus(task.status)]
    except ValueError:
        next_status = TaskStatus.TODO
    return update_task(store, task_id, {"status": next_status.value}, logger=logger)


def delete_task(store: SqliteStore, task_id: str, logger: EventLogger | None = None) -> None:
    with store.session() as session:
        if not session.exists("tasks", "task_id", task_id):
            raise NotFound("Task not found")
        session.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))
    emit(logger, "deleted", "task", task_id)


def filter_tasks(tasks: Iterable[Task], status: TaskStatus | str | None) -> list[Task]:
    if status is None or status == "all":
        return list(tasks)
    rules.validate_enum(status, values(TaskStatus), "status")
    wanted = TaskStatus(status).value
    return [task for task in tasks if task.status == wanted]


def migrate_legacy_tasks(store: SqliteStore, logger: EventLogger | None = None) -> int:
    """Rewrite task rows whose status or priority is not a canonical value.

    Returns the number of rows changed.
    """
    now = utc_now_iso()
    migrated = 0
    with store.session() as session:
        rows = session.fetch_all("SELECT task_id, status, priority FROM tasks")
        for row in rows:
            status = _canonical_status(row["status"])
            priority = _canonical_priority(row["priority"])
            if status == row["status"] and priority == row["priority"]:
                continue
            session.execute(
                "UPDATE tasks SET status = ?, priority = ?, updated_at = ? WHERE task_id = ?",
                (status, priority, now, row["task_id"]),
            )
            migrated += 1
            emit(logger, "migrated", "task", row["task_id"], ["status", "priority"])
    return migrated


def _canonical_status(raw: str | None) -> str:
    value = (raw or "").strip()
    if not value:
        return TaskStatus.TODO.value
    if value in LEGACY_STATUS:
        return LEGACY_STATUS[value]
    upper = value.upper().replace(" ", "_").replace("-", "_")
    if upper in values(TaskStatus):
        return upper
    return TaskStatus.TODO.value


def _canonical_priority(raw: str | None) -> str:
    upper = (raw or "").strip().upper()
    if upper in values(TaskPriority):
        return upper
    return TaskPriority.MEDIUM.value
