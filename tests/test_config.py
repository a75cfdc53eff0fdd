from pathlib import Path

import pytest

from halo.config import (
    WORKSPACES_DIR,
    WorkspaceError,
    _resolve_sqlite_path,
    get_current_workspace_name,
    load_workspace,
    set_current_workspace,
    write_workspace_config,
)


def test_resolve_sqlite_path_relative(tmp_path: Path) -> None:
    ws_dir = tmp_path / WORKSPACES_DIR / "demo"
    ws_dir.mkdir(parents=True)
    config_path = ws_dir / "workspace.yaml"
    config_path.write_text("workspace: demo\nstore:\n  sqlite_path: ./local.sqlite\n")

    resolved = _resolve_sqlite_path("./local.sqlite", config_path)
    assert resolved == (ws_dir / "local.sqlite").resolve()


def test_resolve_sqlite_path_repo_relative(tmp_path: Path) -> None:
    ws_dir = tmp_path / WORKSPACES_DIR / "demo"
    ws_dir.mkdir(parents=True)
    config_path = ws_dir / "workspace.yaml"
    config_path.write_text("workspace: demo\nstore:\n  sqlite_path: workspaces/demo/local.sqlite\n")

    resolved = _resolve_sqlite_path("workspaces/demo/local.sqlite", config_path)
    assert resolved == (tmp_path / "workspaces" / "demo" / "local.sqlite").resolve()


def test_written_workspace_loads_with_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HALO_ID_TOKEN", "token-123")
    write_workspace_config("demo", "contractor-1")
    set_current_workspace("demo")

    assert get_current_workspace_name() == "demo"
    ws = load_workspace()
    assert ws.store.sqlite_path == (tmp_path / "workspaces" / "demo" / "local.sqlite").resolve()
    assert ws.tunables.page_size == 8
    assert ws.tunables.max_rows == 3
    assert ws.tunables.agenda_days == 14
    assert ws.tunables.drag_settle_ms == 150
    assert ws.tunables.duplicate_window_minutes == 60

    identity = ws.identity()
    assert identity.contractor_id == "contractor-1"
    assert identity.token == "token-123"


def test_missing_contractor_has_no_identity(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    write_workspace_config("demo", None)
    ws = load_workspace("demo")
    with pytest.raises(WorkspaceError):
        ws.identity()


def test_non_positive_tunable_is_rejected(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    ws_dir = tmp_path / WORKSPACES_DIR / "demo"
    ws_dir.mkdir(parents=True)
    (ws_dir / "workspace.yaml").write_text(
        "workspace: demo\nstore:\n  sqlite_path: ./local.sqlite\nsidebar:\n  page_size: 0\n"
    )
    with pytest.raises(WorkspaceError):
        load_workspace("demo")


def test_no_current_workspace(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(WorkspaceError):
        get_current_workspace_name()
