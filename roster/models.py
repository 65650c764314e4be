"""
roster/models.py -- Domain dataclasses for volunteers and workshops.

These are pure data containers with zero logic. Validation lives in
roster/validators.py; lifecycle rules and membership maintenance live in
roster/service.py.

Membership is stored on both sides: Volunteer.workshops lists workshop ids,
Workshop.volunteers lists volunteer ids. The two lists are kept mutually
consistent by roster.service.MembershipService, not by the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


@dataclass
class Volunteer:
    """A person who volunteers for the project.

    course and registration_number are required together when is_academic is
    True. exit_date is only set by inactivation (or by an explicit update that
    still satisfies exit_date >= entry_date).

    id is None before the record is written to the database.
    """

    name: str
    email: str
    entry_date: Optional[datetime]
    phone: str = ""
    is_academic: bool = False
    course: str = ""
    registration_number: str = ""
    exit_date: Optional[datetime] = None
    is_active: bool = True
    workshops: list[str] = field(default_factory=list)  # workshop ids, set semantics
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Workshop:
    """A dated workshop session volunteers can be attached to.

    id is None before the record is written to the database.
    """

    name: str
    date: date
    description: str = ""
    volunteers: list[str] = field(default_factory=list)  # volunteer ids, set semantics
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ReconcileReport:
    """Outcome of MembershipService.reconcile()."""

    links_added: int = 0
    dangling_removed: int = 0
