from pathlib import Path

import pytest

from dealflow.config import (
    WORKSPACES_DIR,
    WorkspaceError,
    _resolve_path,
    load_workspace,
    write_workspace_config,
)


def test_resolve_path_relative(tmp_path: Path) -> None:
    ws_dir = tmp_path / WORKSPACES_DIR / "demo"
    ws_dir.mkdir(parents=True)
    config_path = ws_dir / "workspace.yaml"
    config_path.write_text("workspace: demo\nstore:\n  sqlite_path: ./local.sqlite\n")

    resolved = _resolve_path("./local.sqlite", config_path)
    assert resolved == (ws_dir / "local.sqlite").resolve()


def test_resolve_path_repo_relative(tmp_path: Path) -> None:
    ws_dir = tmp_path / WORKSPACES_DIR / "demo"
    ws_dir.mkdir(parents=True)
    config_path = ws_dir / "workspace.yaml"
    config_path.write_text("workspace: demo\nstore:\n  sqlite_path: workspaces/demo/local.sqlite\n")

    resolved = _resolve_path("workspaces/demo/local.sqlite", config_path)
    assert resolved == (tmp_path / "workspaces" / "demo" / "local.sqlite").resolve()


def test_written_config_loads_with_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    write_workspace_config("demo")

    ws = load_workspace("demo")
    assert ws.name == "demo"
    assert ws.store.sqlite_path == (tmp_path / "workspaces" / "demo" / "local.sqlite").resolve()
    assert ws.events.enabled is True
    assert ws.events.path.name == "events.ndjson"
    assert ws.dashboard.upcoming_limit == 5
    assert ws.dashboard.recent_limit == 5


def test_optional_sections_default(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    ws_dir = tmp_path / "workspaces" / "demo"
    ws_dir.mkdir(parents=True)
    (ws_dir / "workspace.yaml").write_text("store:\n  sqlite_path: ./local.sqlite\n")

    ws = load_workspace("demo")
    assert ws.events.enabled is True
    assert ws.dashboard.recent_limit == 5


def test_negative_dashboard_limit_rejected(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    ws_dir = tmp_path / "workspaces" / "demo"
    ws_dir.mkdir(parents=True)
    (ws_dir / "workspace.yaml").write_text(
        "store:\n  sqlite_path: ./local.sqlite\ndashboard:\n  upcoming_limit: -1\n"
    )

    with pytest.raises(WorkspaceError):
        load_workspace("demo")


def test_missing_current_workspace(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(WorkspaceError):
        load_workspace()
