from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date, datetime, time

from halo.domain.stages import CONTACT_ATTEMPTS

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
LOCAL_NOON = time(12, 0, 0)


class ValidationError(ValueError):
    pass


def require(value: str | None, field: str) -> None:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required.")


def validate_enum(value: str | None, allowed: Iterable[str], field: str) -> None:
    if value is None:
        return
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")


def validate_contact_attempt(value: object) -> int:
    # bool is an int subclass; True must not pass as attempt 1.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("contactAttempt must be an integer.")
    if value not in CONTACT_ATTEMPTS:
        raise ValidationError("contactAttempt must be one of: 0, 1, 2, 3")
    return value


def validate_email(value: str) -> str:
    cleaned = value.strip().lower()
    if not EMAIL_RE.match(cleaned):
        raise ValidationError("Invalid email format")
    return cleaned


def validate_phone(value: str) -> str:
    digits = re.sub(r"\D", "", value)
    if len(digits) != 10:
        raise ValidationError("Phone number must be 10 digits")
    return value.strip()


def min_length(value: str, length: int, message: str) -> str:
    cleaned = value.strip()
    if len(cleaned) < length:
        raise ValidationError(message)
    return cleaned


def clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def parse_date(value: str | None, field: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be YYYY-MM-DD.") from exc


def local_noon(value: date | datetime) -> datetime:
    """Pin a calendar day to 12:00 local time."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        value = value.date()
    return datetime.combine(value, LOCAL_NOON)
