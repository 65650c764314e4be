"""
roster/service.py -- Volunteer and workshop lifecycle, and the membership between them.

Three services share one RosterStore:
  MembershipService -- link / unlink a volunteer and a workshop, and reconcile()
  VolunteerService  -- CRUD, inactivation, workshop membership from the volunteer side
  WorkshopService   -- CRUD, date-window listing, membership from the workshop side

Membership lives on both rows (Volunteer.workshops, Workshop.volunteers) and
every link/unlink writes both of them as two independent statements. A failure
between the writes leaves a one-sided relation; reconcile() finds and repairs
those, and also drops references to rows that no longer exist.

Layer rule: roster/ imports only core/. No imports from api/ or auth/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.errors import (
    AlreadyInactive,
    EmailAlreadyExists,
    ValidationFailed,
    VolunteerInactive,
    VolunteerNotFound,
    WorkshopNameTaken,
    WorkshopNotFound,
)
from core.validators import utcnow
from roster.models import ReconcileReport, Volunteer, Workshop
from roster.store import RosterStore
from roster.validators import validate_exit_date, validate_volunteer, validate_workshop_create, validate_workshop_update

logger = logging.getLogger("ellp.roster")

DEFAULT_WORKSHOP_PAGE_SIZE = 10


def _offset(page: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return (max(page, 1) - 1) * limit


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


class MembershipService:
    def __init__(self, store: RosterStore) -> None:
        self.store = store

    def _require_pair(self, volunteer_id: str, workshop_id: str) -> tuple[Volunteer, Workshop]:
        workshop = self.store.get_workshop(workshop_id)
        if workshop is None:
            raise WorkshopNotFound()
        volunteer = self.store.get_volunteer(volunteer_id)
        if volunteer is None:
            raise VolunteerNotFound()
        return volunteer, workshop

    def link(self, volunteer_id: str, workshop_id: str) -> None:
        """Attach a volunteer to a workshop on both sides. Idempotent.

        Raises WorkshopNotFound, VolunteerNotFound, or VolunteerInactive.
        """
        volunteer, _ = self._require_pair(volunteer_id, workshop_id)
        if not volunteer.is_active:
            raise VolunteerInactive()
        self.store.add_volunteer_to_workshop(workshop_id, volunteer_id)
        self.store.add_workshop_to_volunteer(volunteer_id, workshop_id)
        logger.info("Linked volunteer %s to workshop %s", volunteer_id, workshop_id)

    def unlink(self, volunteer_id: str, workshop_id: str) -> None:
        """Detach a volunteer from a workshop on both sides. Absent links are a no-op."""
        self._require_pair(volunteer_id, workshop_id)
        self.store.remove_volunteer_from_workshop(workshop_id, volunteer_id)
        self.store.remove_workshop_from_volunteer(volunteer_id, workshop_id)
        logger.info("Unlinked volunteer %s from workshop %s", volunteer_id, workshop_id)

    def reconcile(self) -> ReconcileReport:
        """Repair membership so both sides agree.

        A reference to a row that no longer exists is removed. A pair recorded
        on only one side between two existing rows is completed on the other.
        """
        report = ReconcileReport()
        volunteers = {v.id: v for v in self.store.list_volunteers()}
        workshops = {w.id: w for w in self.store.list_workshops()}

        for volunteer in volunteers.values():
            for workshop_id in volunteer.workshops:
                workshop = workshops.get(workshop_id)
                if workshop is None:
                    self.store.remove_workshop_from_volunteer(volunteer.id, workshop_id)
                    report.dangling_removed += 1
                elif volunteer.id not in workshop.volunteers:
                    self.store.add_volunteer_to_workshop(workshop_id, volunteer.id)
                    workshop.volunteers.append(volunteer.id)
                    report.links_added += 1

        for workshop in workshops.values():
            for volunteer_id in workshop.volunteers:
                volunteer = volunteers.get(volunteer_id)
                if volunteer is None:
                    self.store.remove_volunteer_from_workshop(workshop.id, volunteer_id)
                    report.dangling_removed += 1
                elif workshop.id not in volunteer.workshops:
                    self.store.add_workshop_to_volunteer(volunteer_id, workshop.id)
                    report.links_added += 1

        if report.links_added or report.dangling_removed:
            logger.warning(
                "Membership reconciled: %d link(s) added, %d dangling reference(s) removed",
                report.links_added,
                report.dangling_removed,
            )
        else:
            logger.info("Membership reconciled: no changes")
        return report


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------


class VolunteerService:
    _UPDATABLE = ("name", "email", "phone", "is_academic", "course", "registration_number", "entry_date")

    def __init__(
        self,
        store: RosterStore,
        membership: MembershipService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.membership = membership
        self.clock = clock

    def create(self, volunteer: Volunteer) -> Volunteer:
        """Validate and persist a new, active volunteer with no workshops."""
        if volunteer.email and self.store.get_volunteer_by_email(volunteer.email) is not None:
            raise EmailAlreadyExists("A volunteer with this email already exists.")
        volunteer.is_active = True
        volunteer.exit_date = None
        volunteer.workshops = []
        validate_volunteer(volunteer, now=self.clock())
        try:
            volunteer_id = self.store.create_volunteer(volunteer)
        except IntegrityError as exc:
            raise EmailAlreadyExists("A volunteer with this email already exists.") from exc
        logger.info("Created volunteer %s", volunteer_id)
        return self.get(volunteer_id)

    def get(self, volunteer_id: str) -> Volunteer:
        volunteer = self.store.get_volunteer(volunteer_id)
        if volunteer is None:
            raise VolunteerNotFound()
        return volunteer

    def list(
        self,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 0,
    ) -> list[Volunteer]:
        """Newest first. Pagination applies only when limit > 0."""
        return self.store.list_volunteers(name=name, is_active=is_active, limit=limit, offset=_offset(page, limit))

    def update(self, volunteer_id: str, **changes) -> Volunteer:
        """Overwrite the supplied fields and re-validate the whole volunteer.

        None values are treated as "not supplied". is_active, exit_date and
        workshops cannot be changed here.
        """
        volunteer = self.get(volunteer_id)
        supplied = {k: v for k, v in changes.items() if k in self._UPDATABLE and v is not None}

        new_email = supplied.get("email")
        if new_email and new_email != volunteer.email:
            existing = self.store.get_volunteer_by_email(new_email)
            if existing is not None and existing.id != volunteer.id:
                raise EmailAlreadyExists("A volunteer with this email already exists.")

        for key, value in supplied.items():
            setattr(volunteer, key, value)
        validate_volunteer(volunteer, now=self.clock())

        if supplied:
            try:
                self.store.update_volunteer(volunteer_id, **supplied)
            except IntegrityError as exc:
                raise EmailAlreadyExists("A volunteer with this email already exists.") from exc
            logger.info("Updated volunteer %s (%s)", volunteer_id, ", ".join(sorted(supplied)))
        return self.get(volunteer_id)

    def delete(self, volunteer_id: str) -> None:
        """Delete the volunteer and pull its id from every workshop."""
        if not self.store.delete_volunteer(volunteer_id):
            raise VolunteerNotFound()
        pulled = self.store.pull_volunteer_from_all_workshops(volunteer_id)
        logger.info("Deleted volunteer %s (removed from %d workshop(s))", volunteer_id, pulled)

    def inactivate(self, volunteer_id: str, exit_date: datetime) -> Volunteer:
        """Active -> Inactive. There is no transition back."""
        volunteer = self.get(volunteer_id)
        if not volunteer.is_active:
            raise AlreadyInactive()
        validate_exit_date(volunteer.entry_date, exit_date)
        self.store.inactivate_volunteer(volunteer_id, exit_date)
        logger.info("Inactivated volunteer %s", volunteer_id)
        return self.get(volunteer_id)

    def add_workshop(self, volunteer_id: str, workshop_id: str) -> Volunteer:
        self.membership.link(volunteer_id, workshop_id)
        return self.get(volunteer_id)

    def remove_workshop(self, volunteer_id: str, workshop_id: str) -> Volunteer:
        self.membership.unlink(volunteer_id, workshop_id)
        return self.get(volunteer_id)


# ---------------------------------------------------------------------------
# Workshops
# ---------------------------------------------------------------------------


def _month_window(month: str) -> tuple[date, date]:
    try:
        start = datetime.strptime(month, "%Y-%m").date()
    except ValueError as exc:
        raise ValidationFailed("Invalid month filter. Use the format YYYY-MM.") from exc
    if start.month == 12:
        return start, date(start.year + 1, 1, 1)
    return start, date(start.year, start.month + 1, 1)


def _year_window(year: str) -> tuple[date, date]:
    try:
        start = datetime.strptime(year, "%Y").date()
    except ValueError as exc:
        raise ValidationFailed("Invalid year filter. Use the format YYYY.") from exc
    return start, date(start.year + 1, 1, 1)


class WorkshopService:
    def __init__(
        self,
        store: RosterStore,
        membership: MembershipService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.membership = membership
        self.clock = clock

    def create(self, name: str, date_str: str, description: str = "") -> Workshop:
        """Validate and persist a new workshop with no volunteers."""
        if name and self.store.get_workshop_by_name(name) is not None:
            raise WorkshopNameTaken()
        workshop_date = validate_workshop_create(name, date_str, today=self.clock().date())
        try:
            workshop_id = self.store.create_workshop(
                Workshop(name=name, date=workshop_date, description=description or "")
            )
        except IntegrityError as exc:
            raise WorkshopNameTaken() from exc
        logger.info("Created workshop %s (%s)", workshop_id, workshop_date.isoformat())
        return self.get(workshop_id)

    def get(self, workshop_id: str) -> Workshop:
        workshop = self.store.get_workshop(workshop_id)
        if workshop is None:
            raise WorkshopNotFound()
        return workshop

    def list(
        self,
        name: Optional[str] = None,
        month: Optional[str] = None,
        year: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_WORKSHOP_PAGE_SIZE,
    ) -> list[Workshop]:
        """Most recent date first. month (YYYY-MM) takes precedence over year (YYYY)."""
        date_from = date_to = None
        if month:
            date_from, date_to = _month_window(month)
        elif year:
            date_from, date_to = _year_window(year)
        if limit <= 0:
            limit = DEFAULT_WORKSHOP_PAGE_SIZE
        return self.store.list_workshops(
            name=name,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=_offset(page, limit),
        )

    def update(self, workshop_id: str, **changes) -> Workshop:
        """Apply a partial update. Only the supplied fields are validated."""
        workshop = self.get(workshop_id)
        supplied = {k: v for k, v in changes.items() if k in ("name", "date", "description") and v is not None}
        cleaned = validate_workshop_update(supplied, today=self.clock().date())

        new_name = cleaned.get("name")
        if new_name and new_name != workshop.name:
            existing = self.store.get_workshop_by_name(new_name)
            if existing is not None and existing.id != workshop.id:
                raise WorkshopNameTaken()

        if cleaned:
            try:
                self.store.update_workshop(workshop_id, **cleaned)
            except IntegrityError as exc:
                raise WorkshopNameTaken() from exc
            logger.info("Updated workshop %s (%s)", workshop_id, ", ".join(sorted(cleaned)))
        return self.get(workshop_id)

    def delete(self, workshop_id: str) -> None:
        """Delete the workshop and pull its id from every volunteer."""
        if not self.store.delete_workshop(workshop_id):
            raise WorkshopNotFound()
        pulled = self.store.pull_workshop_from_all_volunteers(workshop_id)
        logger.info("Deleted workshop %s (removed from %d volunteer(s))", workshop_id, pulled)

    def add_volunteer(self, workshop_id: str, volunteer_id: str) -> Workshop:
        self.membership.link(volunteer_id, workshop_id)
        return self.get(workshop_id)

    def remove_volunteer(self, workshop_id: str, volunteer_id: str) -> Workshop:
        self.membership.unlink(volunteer_id, workshop_id)
        return self.get(workshop_id)

    def list_by_volunteer(self, volunteer_id: str) -> list[Workshop]:
        """Workshops whose volunteer list contains volunteer_id."""
        return self.store.list_workshops_by_volunteer(volunteer_id)
