from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from halo.domain.models import Identity

WORKSPACES_DIR = Path("workspaces")
CURRENT_WORKSPACE_FILE = WORKSPACES_DIR / ".current"
WORKSPACE_FILENAME = "workspace.yaml"
TOKEN_ENV = "HALO_ID_TOKEN"

DEFAULT_PAGE_SIZE = 8
DEFAULT_MAX_ROWS = 3
DEFAULT_AGENDA_DAYS = 14
DEFAULT_DRAG_SETTLE_MS = 150
DEFAULT_DUPLICATE_WINDOW_MINUTES = 60


@dataclass(frozen=True)
class StoreConfig:
    sqlite_path: Path


@dataclass(frozen=True)
class Tunables:
    page_size: int = DEFAULT_PAGE_SIZE
    max_rows: int = DEFAULT_MAX_ROWS
    agenda_days: int = DEFAULT_AGENDA_DAYS
    drag_settle_ms: int = DEFAULT_DRAG_SETTLE_MS
    duplicate_window_minutes: int = DEFAULT_DUPLICATE_WINDOW_MINUTES


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str
    store: StoreConfig
    contractor_id: str | None
    tunables: Tunables
    path: Path

    def identity(self) -> Identity:
        if not self.contractor_id:
            raise WorkspaceError("Workspace identity.contractor_id is required.")
        return Identity(contractor_id=self.contractor_id, token=os.getenv(TOKEN_ENV))


class WorkspaceError(RuntimeError):
    pass


def ensure_workspaces_dir() -> None:
    WORKSPACES_DIR.mkdir(parents=True, exist_ok=True)


def set_current_workspace(name: str) -> None:
    ensure_workspaces_dir()
    CURRENT_WORKSPACE_FILE.write_text(f"{name}\n", encoding="utf-8")


def get_current_workspace_name() -> str:
    if not CURRENT_WORKSPACE_FILE.exists():
        raise WorkspaceError("No active workspace. Run `halo workspace use <name>`.")
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
        raise WorkspaceError(f"Invalid workspace config: {config_path}")
    store = _parse_store(data.get("store"), config_path)
    contractor_id = _parse_identity(data.get("identity"))
    tunables = _parse_tunables(data)
    return WorkspaceConfig(
        name=name,
        store=store,
        contractor_id=contractor_id,
        tunables=tunables,
        path=config_path.parent,
    )


def write_workspace_config(name: str, contractor_id: str | None) -> Path:
    ensure_workspaces_dir()
    ws_dir = workspace_path(name)
    ws_dir.mkdir(parents=True, exist_ok=True)
    sqlite_path = Path("./local.sqlite")
    config = {
        "workspace": name,
        "store": {"sqlite_path": str(sqlite_path)},
        "identity": {"contractor_id": contractor_id},
        "sidebar": {"page_size": DEFAULT_PAGE_SIZE},
        "calendar": {"max_rows": DEFAULT_MAX_ROWS, "agenda_days": DEFAULT_AGENDA_DAYS},
        "scheduling": {"drag_settle_ms": DEFAULT_DRAG_SETTLE_MS},
        "leads": {"duplicate_window_minutes": DEFAULT_DUPLICATE_WINDOW_MINUTES},
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
    sqlite_path = _resolve_sqlite_path(sqlite_path_raw, config_path)
    if sqlite_path is None:
        raise WorkspaceError("Workspace store.sqlite_path must be a string.")
    return StoreConfig(sqlite_path=sqlite_path)


def _resolve_sqlite_path(sqlite_path_raw: Any, config_path: Path) -> Path | None:
    if not isinstance(sqlite_path_raw, str):
        return None
    raw_path = Path(sqlite_path_raw)
    if raw_path.is_absolute():
        return raw_path
    workspace_dir = config_path.parent
    if raw_path.parts and raw_path.parts[0] == WORKSPACES_DIR.name:
        # Older configs stored paths relative to the repo root.
        return (workspace_dir.parent.parent / raw_path).resolve()
    return (workspace_dir / raw_path).resolve()


def _parse_identity(identity_data: Any) -> str | None:
    if identity_data is None:
        return None
    if not isinstance(identity_data, dict):
        raise WorkspaceError("Invalid workspace identity configuration.")
    contractor_id = identity_data.get("contractor_id")
    if contractor_id is not None and not isinstance(contractor_id, str):
        raise WorkspaceError("Workspace identity.contractor_id must be a string.")
    return contractor_id or None


def _parse_tunables(data: dict) -> Tunables:
    return Tunables(
        page_size=_positive_int(data, "sidebar", "page_size", DEFAULT_PAGE_SIZE),
        max_rows=_positive_int(data, "calendar", "max_rows", DEFAULT_MAX_ROWS),
        agenda_days=_positive_int(data, "calendar", "agenda_days", DEFAULT_AGENDA_DAYS),
        drag_settle_ms=_positive_int(data, "scheduling", "drag_settle_ms", DEFAULT_DRAG_SETTLE_MS),
        duplicate_window_minutes=_positive_int(
            data, "leads", "duplicate_window_minutes", DEFAULT_DUPLICATE_WINDOW_MINUTES
        ),
    )


def _positive_int(data: dict, section: str, key: str, default: int) -> int:
    section_data = data.get(section)
    if section_data is None:
        return default
    if not isinstance(section_data, dict):
        raise WorkspaceError(f"Workspace {section} must be a mapping.")
    value = section_data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise WorkspaceError(f"Workspace {section}.{key} must be a positive integer.")
    return value
