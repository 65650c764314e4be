"""
core/validators.py -- Field-level validators shared by the auth and roster layers.

Pure functions: no I/O, no clock reads unless the caller omits `now`. Each
failure raises a specific subclass of core.errors.ValidationFailed so the API
can return a precise message.

Layer rule: core/ is the kernel. Imports only from core/.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone

from core.errors import InvalidEmail, PasswordTooShort, PasswordTooWeak

# Conservative local@domain.tld: ASCII local part, dotted domain, 2+ letter TLD.
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

MIN_PASSWORD_LENGTH = 8

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")


def validate_email(value: str | None) -> str:
    """Return the email unchanged if it matches EMAIL_PATTERN, else raise InvalidEmail."""
    if not value or not EMAIL_PATTERN.match(value):
        raise InvalidEmail()
    return value


def validate_password_strength(value: str) -> None:
    """Raise PasswordTooShort or PasswordTooWeak for a plaintext candidate.

    Length is checked first so a short password always reports TooShort,
    even when it also lacks a character class.
    """
    if len(value) < MIN_PASSWORD_LENGTH:
        raise PasswordTooShort()
    if not (_UPPER.search(value) and _LOWER.search(value) and _DIGIT.search(value)):
        raise PasswordTooWeak()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons never mix naive and aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_years(day: date, years: int) -> date:
    """Shift a date by whole years; Feb 29 rolls forward to Mar 1 in non-leap years."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, month=3, day=1)
