from __future__ import annotations

import json
import os
import shutil
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any

import typer

from dealflow import __version__
from dealflow.config import (
    WorkspaceConfig,
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from dealflow.domain import rules
from dealflow.domain.models import Activity, Contact, Deal, Task
from dealflow.domain.rules import CrmError
from dealflow.domain.stages import ContactStatus, DealStage, DependentPolicy, values
from dealflow.services import activities, contacts, dashboard, exports, pipeline, seed, tasks
from dealflow.services.events import EventLogger
from dealflow.services.utils import today_iso
from dealflow.store.migrations import SchemaError
from dealflow.store.sqlite import SqliteStore

app = typer.Typer(help="Dealflow CRM CLI")
workspace_app = typer.Typer(help="Workspace management")
schema_app = typer.Typer(help="Schema operations")
contact_app = typer.Typer(help="Contacts")
deal_app = typer.Typer(help="Deals and the sales pipeline")
task_app = typer.Typer(help="Tasks")
activity_app = typer.Typer(help="Calls, emails and meetings")
export_app = typer.Typer(help="Exports")

app.add_typer(workspace_app, name="workspace")
app.add_typer(schema_app, name="schema")
app.add_typer(contact_app, name="contact")
app.add_typer(deal_app, name="deal")
app.add_typer(task_app, name="task")
app.add_typer(activity_app, name="activity")
app.add_typer(export_app, name="export")

_REPO_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = Path(
    os.environ.get("DEALFLOW_SCHEMA", _REPO_ROOT / "resources" / "schema" / "canonical.yaml")
)

POLICY_HELP = "What to do with dependent records: restrict, detach or cascade."


@app.callback(invoke_without_command=True)
def version_callback(version: bool = typer.Option(False, "--version", help="Show version and exit.")):
    if version:
        typer.echo(__version__)
        raise typer.Exit()


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and outputs."""
    ensure_workspaces_dir()
    Path("data").mkdir(exist_ok=True)
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized dealflow directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@schema_app.command("apply")
def schema_apply(
    schema: Path = typer.Option(SCHEMA_PATH, "--schema", help="Schema YAML to apply."),
) -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        store.apply_schema(schema)
    except (CrmError, SchemaError, OSError) as exc:
        _exit_with_error(str(exc))
    typer.echo("Applied schema to local SQLite.")


@contact_app.command("add")
def contact_add(
    name: str = typer.Option(..., "--name"),
    email: str = typer.Option(..., "--email"),
    phone: str | None = typer.Option(None, "--phone"),
    company: str | None = typer.Option(None, "--company"),
    position: str | None = typer.Option(None, "--position"),
    status: str | None = typer.Option(None, "--status", help="active, inactive, lead, customer, prospect"),
) -> None:
    ws, store = _open()
    payload = _payload(
        name=name, email=email, phone=phone, company=company, position=position, status=status
    )
    try:
        contact = contacts.add_contact(store, payload, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created contact: {contact.contact_id}")


@contact_app.command("list")
def contact_list(
    status: str | None = typer.Option(None, "--status"),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    _, store = _open()
    try:
        rules.validate_enum(status, values(ContactStatus), "status")
        rows = contacts.list_contacts(store)
    except CrmError as exc:
        _exit_with_error(str(exc))
    if status:
        rows = [contact for contact in rows if contact.status == status]
    _echo_records(rows, _contact_line, json_output)


@contact_app.command("update")
def contact_update(
    contact_id: str = typer.Argument(...),
    name: str | None = typer.Option(None, "--name"),
    email: str | None = typer.Option(None, "--email"),
    phone: str | None = typer.Option(None, "--phone", help="Pass an empty string to clear."),
    company: str | None = typer.Option(None, "--company", help="Pass an empty string to clear."),
    position: str | None = typer.Option(None, "--position", help="Pass an empty string to clear."),
    status: str | None = typer.Option(None, "--status"),
) -> None:
    ws, store = _open()
    changes = _payload(
        name=name, email=email, phone=phone, company=company, position=position, status=status
    )
    try:
        contact = contacts.update_contact(store, contact_id, changes, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(_contact_line(contact))


@contact_app.command("delete")
def contact_delete(
    contact_id: str = typer.Argument(...),
    on_dependents: str = typer.Option(
        DependentPolicy.RESTRICT.value, "--on-dependents", help=POLICY_HELP
    ),
) -> None:
    ws, store = _open()
    try:
        contacts.delete_contact(store, contact_id, on_dependents, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted contact: {contact_id}")


@deal_app.command("add")
def deal_add(
    title: str = typer.Option(..., "--title"),
    value: float | None = typer.Option(None, "--value"),
    stage: str | None = typer.Option(None, "--stage", help="lead, proposal, negotiation, closed"),
    contact: str | None = typer.Option(None, "--contact", help="Contact ID."),
    description: str | None = typer.Option(None, "--description"),
) -> None:
    ws, store = _open()
    payload = _payload(
        title=title, value=value, stage=stage, contact_id=contact, description=description
    )
    try:
        deal = pipeline.add_deal(store, payload, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created deal: {deal.deal_id}")


@deal_app.command("list")
def deal_list(
    stage: str | None = typer.Option(None, "--stage"),
    search: str | None = typer.Option(None, "--search", help="Match deal titles."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    _, store = _open()
    try:
        rules.validate_enum(stage, values(DealStage), "stage")
        rows = pipeline.filter_deals(pipeline.list_deals(store), search)
    except CrmError as exc:
        _exit_with_error(str(exc))
    if stage:
        rows = pipeline.deals_by_stage(rows)[stage]
    _echo_records(rows, _deal_line, json_output)


@deal_app.command("update")
def deal_update(
    deal_id: str = typer.Argument(...),
    title: str | None = typer.Option(None, "--title"),
    value: float | None = typer.Option(None, "--value"),
    stage: str | None = typer.Option(None, "--stage"),
    contact: str | None = typer.Option(None, "--contact", help="Contact ID; empty string detaches."),
    description: str | None = typer.Option(None, "--description"),
) -> None:
    ws, store = _open()
    changes = _payload(
        title=title, value=value, stage=stage, contact_id=contact, description=description
    )
    try:
        deal = pipeline.update_deal(store, deal_id, changes, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(_deal_line(deal))


@deal_app.command("move")
def deal_move(
    deal_id: str = typer.Argument(...),
    stage: str = typer.Argument(..., help="lead, proposal, negotiation, closed"),
) -> None:
    ws, store = _open()
    try:
        deal = pipeline.move_deal(store, deal_id, stage, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Moved deal {deal.deal_id} to {deal.stage}")


@deal_app.command("delete")
def deal_delete(
    deal_id: str = typer.Argument(...),
    on_dependents: str = typer.Option(
        DependentPolicy.RESTRICT.value, "--on-dependents", help=POLICY_HELP
    ),
) -> None:
    ws, store = _open()
    try:
        pipeline.delete_deal(store, deal_id, on_dependents, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted deal: {deal_id}")


@deal_app.command("board")
def deal_board(
    search: str | None = typer.Option(None, "--search", help="Match deal titles."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Show deals grouped by pipeline stage."""
    _, store = _open()
    try:
        deals = pipeline.filter_deals(pipeline.list_deals(store), search)
    except CrmError as exc:
        _exit_with_error(str(exc))
    grouped = pipeline.deals_by_stage(deals)
    summaries = pipeline.stage_summaries(deals)
    if json_output:
        payload = [
            {**asdict(summary), "deals": [asdict(deal) for deal in grouped[summary.stage]]}
            for summary in summaries
        ]
        typer.echo(_dumps(payload))
        return
    for summary in summaries:
        typer.echo(f"{summary.label} ({summary.count}) {summary.total_value:,.2f}")
        for deal in grouped[summary.stage]:
            typer.echo(f"  {_deal_line(deal)}")


@task_app.command("add")
def task_add(
    title: str = typer.Option(..., "--title"),
    due: str = typer.Option(..., "--due", help="YYYY-MM-DD"),
    description: str | None = typer.Option(None, "--description"),
    status: str | None = typer.Option(None, "--status", help="TODO, IN_PROGRESS, DONE"),
    priority: str | None = typer.Option(None, "--priority", help="LOW, MEDIUM, HIGH"),
    contact: str | None = typer.Option(None, "--contact", help="Contact ID."),
) -> None:
    ws, store = _open()
    payload = _payload(
        title=title,
        due_date=due,
        description=description,
        status=status,
        priority=priority,
        contact_id=contact,
    )
    try:
        task = tasks.add_task(store, payload, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created task: {task.task_id}")


@task_app.command("list")
def task_list(
    status: str | None = typer.Option(None, "--status", help="TODO, IN_PROGRESS, DONE or all"),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    _, store = _open()
    try:
        rows = tasks.filter_tasks(tasks.list_tasks(store), status)
    except CrmError as exc:
        _exit_with_error(str(exc))
    _echo_records(rows, _task_line, json_output)


@task_app.command("update")
def task_update(
    task_id: str = typer.Argument(...),
    title: str | None = typer.Option(None, "--title"),
    due: str | None = typer.Option(None, "--due", help="YYYY-MM-DD"),
    description: str | None = typer.Option(None, "--description"),
    status: str | None = typer.Option(None, "--status"),
    priority: str | None = typer.Option(None, "--priority"),
    contact: str | None = typer.Option(None, "--contact", help="Contact ID; empty string detaches."),
) -> None:
    ws, store = _open()
    changes = _payload(
        title=title,
        due_date=due,
        description=description,
        status=status,
        priority=priority,
        contact_id=contact,
    )
    try:
        task = tasks.update_task(store, task_id, changes, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(_task_line(task))


@task_app.command("toggle")
def task_toggle(task_id: str = typer.Argument(...)) -> None:
    """Advance a task to its next status."""
    ws, store = _open()
    try:
        task = tasks.toggle_task_status(store, task_id, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Task {task.task_id} is now {task.status}")


@task_app.command("delete")
def task_delete(task_id: str = typer.Argument(...)) -> None:
    ws, store = _open()
    try:
        tasks.delete_task(store, task_id, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted task: {task_id}")


@task_app.command("migrate")
def task_migrate() -> None:
    """Rewrite legacy task statuses and priorities to canonical values."""
    ws, store = _open()
    try:
        count = tasks.migrate_legacy_tasks(store, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Migrated {count} tasks")


@activity_app.command("add")
def activity_add(
    activity_type: str = typer.Option(..., "--type", help="email, call, meeting"),
    description: str | None = typer.Option(None, "--description"),
    when: str | None = typer.Option(None, "--date", help="ISO 8601; defaults to now."),
    contact: str | None = typer.Option(None, "--contact", help="Contact ID."),
    deal: str | None = typer.Option(None, "--deal", help="Deal ID."),
) -> None:
    ws, store = _open()
    payload = _payload(
        type=activity_type, description=description, date=when, contact_id=contact, deal_id=deal
    )
    try:
        activity = activities.add_activity(store, payload, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Logged activity: {activity.activity_id}")


@activity_app.command("list")
def activity_list(
    activity_type: str | None = typer.Option(None, "--type", help="email, call, meeting or all"),
    deal: str | None = typer.Option(None, "--deal", help="Only activities for this deal."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    _, store = _open()
    try:
        rows = activities.filter_activities(activities.list_activities(store), activity_type)
    except CrmError as exc:
        _exit_with_error(str(exc))
    if deal:
        rows = pipeline.activities_for_deal(rows, deal)
    _echo_records(rows, _activity_line, json_output)


@activity_app.command("update")
def activity_update(
    activity_id: str = typer.Argument(...),
    activity_type: str | None = typer.Option(None, "--type"),
    description: str | None = typer.Option(None, "--description"),
    when: str | None = typer.Option(None, "--date"),
    contact: str | None = typer.Option(None, "--contact", help="Contact ID; empty string detaches."),
    deal: str | None = typer.Option(None, "--deal", help="Deal ID; empty string detaches."),
) -> None:
    ws, store = _open()
    changes = _payload(
        type=activity_type, description=description, date=when, contact_id=contact, deal_id=deal
    )
    try:
        activity = activities.update_activity(store, activity_id, changes, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(_activity_line(activity))


@activity_app.command("delete")
def activity_delete(activity_id: str = typer.Argument(...)) -> None:
    ws, store = _open()
    try:
        activities.delete_activity(store, activity_id, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted activity: {activity_id}")


@app.command("dashboard")
def show_dashboard(json_output: bool = typer.Option(False, "--json", help="Emit JSON output.")) -> None:
    """Summary counts, upcoming tasks and recent activity."""
    ws, store = _open()
    try:
        summary = dashboard.build_dashboard(
            contacts.list_contacts(store),
            pipeline.list_deals(store),
            tasks.list_tasks(store),
            activities.list_activities(store),
            upcoming_limit=ws.dashboard.upcoming_limit,
            recent_limit=ws.dashboard.recent_limit,
        )
    except CrmError as exc:
        _exit_with_error(str(exc))
    if json_output:
        typer.echo(_dumps(asdict(summary)))
        return
    typer.echo(f"Contacts: {summary.counts.contacts}")
    typer.echo(f"Active deals: {summary.active_deals} ({summary.total_pipeline_value:,.2f})")
    typer.echo(f"Pending tasks: {summary.pending_tasks}")
    typer.echo(f"Activities: {summary.counts.activities}")
    typer.echo("Upcoming tasks:")
    for task in summary.upcoming_tasks or []:
        typer.echo(f"  {_task_line(task)}")
    if not summary.upcoming_tasks:
        typer.echo("  No upcoming tasks.")
    typer.echo("Recent activities:")
    for activity in summary.recent_activities:
        typer.echo(f"  {_activity_line(activity)}")
    if not summary.recent_activities:
        typer.echo("  No recent activities.")


@app.command("seed")
def seed_data(
    yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation."),
) -> None:
    """Replace all records with the sample data set."""
    ws, store = _open()
    if not yes and not typer.confirm("This deletes every record in the workspace. Continue?"):
        raise typer.Exit(code=1)
    try:
        result = seed.seed_sample_data(store, logger=_event_logger(ws))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(
        f"Seeded {result.contacts} contacts, {result.deals} deals, "
        f"{result.tasks} tasks, {result.activities} activities."
    )


@export_app.command("excel")
def export_excel(out: str = typer.Option(..., "--out")) -> None:
    _, store = _open()
    try:
        exports.export_excel(store, Path(out))
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Exported Excel to {out}")


@app.command("snapshot")
def snapshot() -> None:
    ws, store = _open()
    snapshot_dir = Path("data") / "snapshots" / today_iso()
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    if ws.store.sqlite_path.exists():
        shutil.copy2(ws.store.sqlite_path, snapshot_dir / "local.sqlite")
    try:
        exports.export_csv_tables(store, snapshot_dir)
    except CrmError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Snapshot created at {snapshot_dir}")


def _contact_line(contact: Contact) -> str:
    return (
        f"{contact.contact_id} | {contact.name} | {contact.email} | "
        f"{contact.company or ''} | {contact.status}"
    )


def _deal_line(deal: Deal) -> str:
    return f"{deal.deal_id} | {deal.title} | {deal.stage} | {deal.value:,.2f} | {deal.contact_id or ''}"


def _task_line(task: Task) -> str:
    return f"{task.task_id} | {task.due_date.isoformat()} | {task.status} | {task.priority} | {task.title}"


def _activity_line(activity: Activity) -> str:
    return f"{activity.activity_id} | {activity.date.isoformat()} | {activity.type} | {activity.description}"


def _payload(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


def _echo_records(rows: list, line, json_output: bool) -> None:
    if json_output:
        typer.echo(_dumps([asdict(row) for row in rows]))
        return
    if not rows:
        typer.echo("No records.")
        return
    for row in rows:
        typer.echo(line(row))


def _dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _open() -> tuple[WorkspaceConfig, SqliteStore]:
    ws = _load_workspace()
    return ws, SqliteStore(ws.store.sqlite_path)


def _load_workspace() -> WorkspaceConfig:
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _exit_with_error(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _event_logger(ws: WorkspaceConfig) -> EventLogger:
    return EventLogger(path=ws.events.path, workspace=ws.name, enabled=ws.events.enabled)


if __name__ == "__main__":
    app()
