from __future__ import annotations

from datetime import UTC, date, datetime
from uuid import uuid4


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def today_iso() -> str:
    return date.today().isoformat()


def new_id() -> str:
    return str(uuid4())
