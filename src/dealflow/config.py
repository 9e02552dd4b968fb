from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

WORKSPACES_DIR = Path("workspaces")
CURRENT_WORKSPACE_FILE = WORKSPACES_DIR / ".current"
WORKSPACE_FILENAME = "workspace.yaml"
DEFAULT_EVENTS_FILE = "events.ndjson"
DEFAULT_LIMIT = 5


@dataclass(frozen=True)
class StoreConfig:
    sqlite_path: Path


@dataclass(frozen=True)
class EventsConfig:
    enabled: bool
    path: Path


@dataclass(frozen=True)
class DashboardConfig:
    upcoming_limit: int = DEFAULT_LIMIT
    recent_limit: int = DEFAULT_LIMIT


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str
    store: StoreConfig
    events: EventsConfig
    dashboard: DashboardConfig
    path: Path


class WorkspaceError(RuntimeError):
    pass


def ensure_workspaces_dir() -> None:
    WORKSPACES_DIR.mkdir(parents=True, exist_ok=True)


def set_current_workspace(name: str) -> None:
    ensure_workspaces_dir()
    CURRENT_WORKSPACE_FILE.write_text(f"{name}\n", encoding="utf-8")


def get_current_workspace_name() -> str:
    if not CURRENT_WORKSPACE_FILE.exists():
        raise WorkspaceError("No active workspace. Run `dealflow workspace use <name>`.")
    return CURRENT_WORKSPACE_FILE.read_text(encoding="utf-8").strip()


def workspace_path(name: str) -> Path:
    return WORKSPACES_DIR / name


def workspace_config_path(name: str) -> Path:
    return workspace_path(name) / WORKSPACE_FILENAME


def load_workspace(name: str | None = None) -> WorkspaceConfig:
    if name is None:
        name = get_current_workspace_name()
    config_path = workspace_config_path(name)
    if not config_path.exists():
        raise WorkspaceError(f"Workspace config not found: {config_path}")
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace config must be a mapping: {config_path}")
    return WorkspaceConfig(
        name=name,
        store=_parse_store(data.get("store"), config_path),
        events=_parse_events(data.get("events"), config_path),
        dashboard=_parse_dashboard(data.get("dashboard")),
        path=config_path.parent,
    )


def write_workspace_config(name: str) -> Path:
    ensure_workspaces_dir()
    ws_dir = workspace_path(name)
    ws_dir.mkdir(parents=True, exist_ok=True)
    config = {
        "workspace": name,
        "store": {"sqlite_path": "./local.sqlite"},
        "events": {"enabled": True, "path": f"./{DEFAULT_EVENTS_FILE}"},
        "dashboard": {"upcoming_limit": DEFAULT_LIMIT, "recent_limit": DEFAULT_LIMIT},
    }
    config_path = workspace_config_path(name)
    config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return config_path


def _parse_store(store_data: Any, config_path: Path) -> StoreConfig:
    if not isinstance(store_data, dict):
        raise WorkspaceError("Invalid workspace store configuration.")
    sqlite_path_raw = store_data.get("sqlite_path")
    if not sqlite_path_raw:
        raise WorkspaceError("Workspace store.sqlite_path is required.")
    sqlite_path = _resolve_path(sqlite_path_raw, config_path)
    if sqlite_path is None:
        raise WorkspaceError("Workspace store.sqlite_path must be a string.")
    return StoreConfig(sqlite_path=sqlite_path)


def _parse_events(events_data: Any, config_path: Path) -> EventsConfig:
    if events_data is None:
        events_data = {}
    if not isinstance(events_data, dict):
        raise WorkspaceError("Invalid workspace events configuration.")
    enabled = events_data.get("enabled", True)
    if not isinstance(enabled, bool):
        raise WorkspaceError("Workspace events.enabled must be true or false.")
    path = _resolve_path(events_data.get("path", f"./{DEFAULT_EVENTS_FILE}"), config_path)
    if path is None:
        raise WorkspaceError("Workspace events.path must be a string.")
    return EventsConfig(enabled=enabled, path=path)


def _parse_dashboard(dashboard_data: Any) -> DashboardConfig:
    if dashboard_data is None:
        return DashboardConfig()
    if not isinstance(dashboard_data, dict):
        raise WorkspaceError("Invalid workspace dashboard configuration.")
    limits = {}
    for key in ("upcoming_limit", "recent_limit"):
        value = dashboard_data.get(key, DEFAULT_LIMIT)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise WorkspaceError(f"Workspace dashboard.{key} must be a non-negative integer.")
        limits[key] = value
    return DashboardConfig(**limits)


def _resolve_path(raw: Any, config_path: Path) -> Path | None:
    if not isinstance(raw, str):
        return None
    raw_path = Path(raw)
    if raw_path.is_absolute():
        return raw_path
    # Prefer paths relative to the workspace directory.
    workspace_dir = config_path.parent
    if raw_path.parts and raw_path.parts[0] == WORKSPACES_DIR.name:
        # Paths that already include "workspaces/..." are taken from the repo root.
        return (workspace_dir.parent.parent / raw_path).resolve()
    return (workspace_dir / raw_path).resolve()
