from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from halo.services.utils import utc_now_iso


@dataclass
class EventLogger:
    path: Path
    workspace: str
    enabled: bool = True

    def log(
        self,
        *,
        event_type: str,
        entity_type: str,
        entity_id: str,
        changed_fields: Iterable[str] | None = None,
    ) -> None:
        if not self.enabled:
            return
        payload = {
            "ts": utc_now_iso(),
            "workspace": self.workspace,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "event_type": event_type,
            "changed_fields": sorted(changed_fields or []),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload) + "\n")


def read_events(path: Path) -> list[dict]:
    if not path.exists():
        return []
    with path.open(encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]
