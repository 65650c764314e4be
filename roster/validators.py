"""
roster/validators.py -- Entity validators for volunteers and workshops.

Pure functions. `now` is a parameter (defaulting to the current UTC time) so
tests can pin the clock. Each failure raises a specific ValidationFailed
subclass from core.errors.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from core.errors import (
    InvalidEntryDate,
    InvalidExitDate,
    InvalidWorkshopDate,
    InvalidWorkshopName,
    MissingAcademicInfo,
    RequiredField,
    WorkshopDateTooFar,
)
from core.validators import add_years, as_utc, utcnow, validate_email
from roster.models import Volunteer

MIN_WORKSHOP_NAME_LENGTH = 3
WORKSHOP_DATE_FORMAT = "%Y-%m-%d"


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------


def validate_exit_date(entry_date: datetime, exit_date: datetime) -> None:
    if as_utc(exit_date) < as_utc(entry_date):
        raise InvalidExitDate()


def validate_volunteer(volunteer: Volunteer, now: Optional[datetime] = None) -> None:
    """Check every field-level and cross-field rule for a volunteer."""
    now = now or utcnow()

    if not volunteer.name or not volunteer.name.strip():
        raise RequiredField("Name is required.")
    if not volunteer.email:
        raise RequiredField("Email is required.")
    validate_email(volunteer.email)

    if volunteer.is_academic:
        if not volunteer.course:
            raise MissingAcademicInfo("Course is required for academic volunteers.")
        if not volunteer.registration_number:
            raise MissingAcademicInfo("Registration number is required for academic volunteers.")

    if volunteer.entry_date is None:
        raise InvalidEntryDate("Entry date is required.")
    if as_utc(volunteer.entry_date) > as_utc(now):
        raise InvalidEntryDate("Entry date cannot be in the future.")

    if volunteer.exit_date is not None:
        validate_exit_date(volunteer.entry_date, volunteer.exit_date)


# ---------------------------------------------------------------------------
# Workshops
# ---------------------------------------------------------------------------


def validate_workshop_name(name: Optional[str]) -> str:
    if not name:
        raise InvalidWorkshopName("Workshop name is required.")
    if len(name) < MIN_WORKSHOP_NAME_LENGTH:
        raise InvalidWorkshopName()
    return name


def parse_workshop_date(value: Optional[str], today: Optional[date] = None) -> date:
    """Parse YYYY-MM-DD and reject dates more than one year after today."""
    if not value:
        raise InvalidWorkshopDate("Workshop date is required.")
    try:
        parsed = datetime.strptime(value, WORKSHOP_DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidWorkshopDate() from exc
    today = today or utcnow().date()
    if parsed > add_years(today, 1):
        raise WorkshopDateTooFar()
    return parsed


def validate_workshop_create(name: Optional[str], date_str: Optional[str], today: Optional[date] = None) -> date:
    """Validate a new workshop and return its parsed date."""
    validate_workshop_name(name)
    return parse_workshop_date(date_str, today)


def validate_workshop_update(changes: dict, today: Optional[date] = None) -> dict:
    """Validate only the fields present in changes.

    Returns a copy with "date" parsed to a date object when supplied.
    """
    cleaned = dict(changes)
    if "name" in changes:
        validate_workshop_name(changes["name"])
    if "date" in changes:
        cleaned["date"] = parse_workshop_date(changes["date"], today)
    return cleaned
