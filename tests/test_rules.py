from datetime import date, datetime

import pytest

from halo.domain import rules
from halo.domain.rules import ValidationError


@pytest.mark.parametrize("value", [0, 1, 2, 3])
def test_contact_attempt_accepts_known_levels(value: int) -> None:
    assert rules.validate_contact_attempt(value) == value


@pytest.mark.parametrize("value", [-1, 4, 10, True, "1", None])
def test_contact_attempt_rejects_everything_else(value) -> None:
    with pytest.raises(ValidationError):
        rules.validate_contact_attempt(value)


def test_validate_email_lowercases() -> None:
    assert rules.validate_email("  Dana@Example.COM ") == "dana@example.com"
    with pytest.raises(ValidationError, match="Invalid email format"):
        rules.validate_email("dana@example")


def test_validate_phone_counts_digits() -> None:
    assert rules.validate_phone("(555) 123-4567") == "(555) 123-4567"
    with pytest.raises(ValidationError):
        rules.validate_phone("555-1234")


def test_local_noon_keeps_the_calendar_day() -> None:
    assert rules.local_noon(date(2026, 3, 15)) == datetime(2026, 3, 15, 12, 0)
    assert rules.local_noon(datetime(2026, 3, 15, 23, 45)) == datetime(2026, 3, 15, 12, 0)
    assert rules.local_noon(datetime(2026, 3, 15, 0, 5)) == datetime(2026, 3, 15, 12, 0)


def test_parse_date() -> None:
    assert rules.parse_date("2026-03-15", "date") == date(2026, 3, 15)
    assert rules.parse_date(None, "date") is None
    with pytest.raises(ValidationError):
        rules.parse_date("15/03/2026", "date")
