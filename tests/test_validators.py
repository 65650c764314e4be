"""
tests/test_validators.py -- Unit tests for core/validators.py and roster/validators.py.

Pure functions only: no database, no app. The clock is pinned by passing
`now` / `today` explicitly.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from auth.models import Role, validate_role
from auth.passwords import PlaintextPassword
from core.errors import (
    InvalidEmail,
    InvalidEntryDate,
    InvalidExitDate,
    InvalidRole,
    InvalidWorkshopDate,
    InvalidWorkshopName,
    MissingAcademicInfo,
    PasswordTooShort,
    PasswordTooWeak,
    RequiredField,
    ValidationFailed,
    WorkshopDateTooFar,
)
from core.validators import add_years, validate_email, validate_password_strength
from roster.models import Volunteer
from roster.validators import (
    parse_workshop_date,
    validate_exit_date,
    validate_volunteer,
    validate_workshop_create,
    validate_workshop_update,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def _volunteer(**overrides) -> Volunteer:
    fields = {
        "name": "Ana Souza",
        "email": "ana@example.com",
        "entry_date": NOW - timedelta(days=30),
    }
    fields.update(overrides)
    return Volunteer(**fields)


# ---------------------------------------------------------------------------
# Email, password, role
# ---------------------------------------------------------------------------


class TestEmail:
    @pytest.mark.parametrize("email", ["a@b.co", "first.last+tag@sub.example.org", "X_Y%z@host-1.io"])
    def test_accepts_valid_addresses(self, email: str) -> None:
        assert validate_email(email) == email

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "a@b.c", "@example.com", "a b@example.com"])
    def test_rejects_invalid_addresses(self, email: str) -> None:
        with pytest.raises(InvalidEmail):
            validate_email(email)

    def test_invalid_email_is_a_validation_failure(self) -> None:
        """Callers that only care about the family can catch ValidationFailed."""
        with pytest.raises(ValidationFailed):
            validate_email("nope")


class TestPasswordStrength:
    def test_short_password_reports_too_short(self) -> None:
        with pytest.raises(PasswordTooShort):
            validate_password_strength("Ab1")

    def test_short_and_weak_reports_too_short_first(self) -> None:
        """Length is checked before character classes."""
        with pytest.raises(PasswordTooShort):
            validate_password_strength("abc")

    @pytest.mark.parametrize("candidate", ["abcdefgh", "ABCDEFGH", "abcdEFGH", "abcd1234", "ABCD1234"])
    def test_missing_character_class_reports_too_weak(self, candidate: str) -> None:
        with pytest.raises(PasswordTooWeak):
            validate_password_strength(candidate)

    def test_accepts_mixed_password(self) -> None:
        validate_password_strength("Abc12345")

    def test_plaintext_password_validate_returns_self(self) -> None:
        pw = PlaintextPassword("Abc12345")
        assert pw.validate() is pw

    def test_plaintext_password_repr_hides_value(self) -> None:
        assert "Abc12345" not in repr(PlaintextPassword("Abc12345"))


class TestRole:
    def test_known_roles(self) -> None:
        assert validate_role("admin") is Role.admin
        assert validate_role("member") is Role.member
        assert validate_role(Role.admin) is Role.admin

    @pytest.mark.parametrize("value", ["", "root", "Admin", "user"])
    def test_unknown_roles(self, value: str) -> None:
        with pytest.raises(InvalidRole):
            validate_role(value)


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------


class TestVolunteerValidation:
    def test_valid_non_academic_volunteer(self) -> None:
        validate_volunteer(_volunteer(), now=NOW)

    def test_valid_academic_volunteer(self) -> None:
        validate_volunteer(
            _volunteer(is_academic=True, course="Computer Science", registration_number="2023001"),
            now=NOW,
        )

    def test_missing_name(self) -> None:
        with pytest.raises(RequiredField):
            validate_volunteer(_volunteer(name=""), now=NOW)

    def test_missing_email(self) -> None:
        with pytest.raises(RequiredField):
            validate_volunteer(_volunteer(email=""), now=NOW)

    def test_malformed_email(self) -> None:
        with pytest.raises(InvalidEmail):
            validate_volunteer(_volunteer(email="ana-at-example"), now=NOW)

    def test_academic_without_course(self) -> None:
        with pytest.raises(MissingAcademicInfo):
            validate_volunteer(_volunteer(is_academic=True, registration_number="2023001"), now=NOW)

    def test_academic_without_registration_number(self) -> None:
        with pytest.raises(MissingAcademicInfo):
            validate_volunteer(_volunteer(is_academic=True, course="Physics"), now=NOW)

    def test_missing_entry_date(self) -> None:
        with pytest.raises(InvalidEntryDate):
            validate_volunteer(_volunteer(entry_date=None), now=NOW)

    def test_future_entry_date(self) -> None:
        with pytest.raises(InvalidEntryDate):
            validate_volunteer(_volunteer(entry_date=NOW + timedelta(days=1)), now=NOW)

    def test_entry_date_equal_to_now_is_allowed(self) -> None:
        validate_volunteer(_volunteer(entry_date=NOW), now=NOW)

    def test_naive_entry_date_is_treated_as_utc(self) -> None:
        validate_volunteer(_volunteer(entry_date=datetime(2025, 1, 1)), now=NOW)

    def test_exit_before_entry(self) -> None:
        entry = NOW - timedelta(days=10)
        with pytest.raises(InvalidExitDate):
            validate_volunteer(_volunteer(entry_date=entry, exit_date=entry - timedelta(days=1)), now=NOW)

    def test_exit_date_equal_to_entry_is_allowed(self) -> None:
        validate_exit_date(NOW, NOW)


# ---------------------------------------------------------------------------
# Workshops
# ---------------------------------------------------------------------------


class TestWorkshopValidation:
    def test_valid_create_returns_parsed_date(self) -> None:
        assert validate_workshop_create("Robotics", "2025-07-01", today=TODAY) == date(2025, 7, 1)

    @pytest.mark.parametrize("name", ["", "ab", None])
    def test_short_or_missing_name(self, name) -> None:
        with pytest.raises(InvalidWorkshopName):
            validate_workshop_create(name, "2025-07-01", today=TODAY)

    @pytest.mark.parametrize("value", ["", "01/07/2025", "2025-13-01", "2025-02-30", "tomorrow"])
    def test_bad_date_format(self, value: str) -> None:
        with pytest.raises(InvalidWorkshopDate):
            parse_workshop_date(value, today=TODAY)

    def test_date_far_in_the_future(self) -> None:
        with pytest.raises(WorkshopDateTooFar):
            validate_workshop_create("Robotics", "2099-01-01", today=TODAY)

    def test_date_exactly_one_year_ahead_is_allowed(self) -> None:
        assert parse_workshop_date("2026-06-15", today=TODAY) == date(2026, 6, 15)

    def test_date_one_year_and_a_day_ahead_is_rejected(self) -> None:
        with pytest.raises(WorkshopDateTooFar):
            parse_workshop_date("2026-06-16", today=TODAY)

    def test_past_dates_are_allowed(self) -> None:
        assert parse_workshop_date("2020-01-01", today=TODAY) == date(2020, 1, 1)

    def test_update_validates_only_supplied_fields(self) -> None:
        assert validate_workshop_update({"description": "x"}, today=TODAY) == {"description": "x"}

    def test_update_parses_date(self) -> None:
        cleaned = validate_workshop_update({"date": "2025-08-01"}, today=TODAY)
        assert cleaned == {"date": date(2025, 8, 1)}

    def test_update_rejects_short_name(self) -> None:
        with pytest.raises(InvalidWorkshopName):
            validate_workshop_update({"name": "ab"}, today=TODAY)


class TestAddYears:
    def test_regular_date(self) -> None:
        assert add_years(date(2025, 3, 10), 1) == date(2026, 3, 10)

    def test_leap_day_rolls_to_march_first(self) -> None:
        assert add_years(date(2024, 2, 29), 1) == date(2025, 3, 1)
