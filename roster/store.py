"""
roster/store.py -- SQLAlchemy-backed persistence layer for volunteers and workshops.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in roster/models.py
remain the authoritative domain representation. SQLAlchemy provides a
database-agnostic abstraction: swapping SQLite for PostgreSQL is a connection
string change, not a rewrite.

Pattern: Repository + Data Mapper. RosterStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers (they translate
raw DB rows into domain dataclasses). Services never touch SQL directly.

Documents, not joins: each volunteer row carries its workshop ids and each
workshop row carries its volunteer ids, as JSON arrays in a TEXT column.
add_* / remove_* implement add-to-set and pull on one side only. Each one is a
read-modify-write of a single row done under a write lock (BEGIN IMMEDIATE on
SQLite, SELECT ... FOR UPDATE elsewhere), so concurrent links to the same row
never overwrite each other. Keeping the two sides consistent is
MembershipService's job; the store offers no cross-row transaction.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RosterStore("sqlite:///ellp.db")
    volunteer_id = store.create_volunteer(volunteer)
    workshop_id = store.create_workshop(workshop)
    store.add_workshop_to_volunteer(volunteer_id, workshop_id)
    store.add_volunteer_to_workshop(workshop_id, volunteer_id)
    store.close()
"""

from __future__ import annotations

import json
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Connection, Engine

from core.validators import as_utc
from roster.models import Volunteer, Workshop

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_volunteers = Table(
    "volunteers",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("phone", String(50), nullable=False, server_default=""),
    Column("is_academic", Integer, nullable=False, server_default="0"),
    Column("course", String(255), nullable=False, server_default=""),
    Column("registration_number", String(50), nullable=False, server_default=""),
    Column("entry_date", String(32), nullable=False),  # ISO 8601 UTC
    Column("exit_date", String(32)),  # ISO 8601 UTC, NULL while active
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("workshops", Text, nullable=False, server_default="[]"),  # JSON array of workshop ids
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_workshops = Table(
    "workshops",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("date", String(10), nullable=False),  # YYYY-MM-DD
    Column("description", Text, nullable=False, server_default=""),
    Column("volunteers", Text, nullable=False, server_default="[]"),  # JSON array of volunteer ids
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dt_to_iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value is not None else None


def _like_pattern(term: str) -> str:
    """Escape LIKE wildcards so user input is matched literally as a substring."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _member_pattern(member_id: str) -> str:
    """LIKE pattern matching a JSON array containing member_id as a whole element."""
    return _like_pattern(json.dumps(member_id))


def _add_to_set(conn: Connection, table: Table, column: str, row_id: str, value: str) -> bool:
    """Append value to the JSON array in table.column unless already present.

    Returns True if the row exists (whether or not it changed), False otherwise.
    """
    row = conn.execute(select(table.c[column]).where(table.c.id == row_id).with_for_update()).fetchone()
    if row is None:
        return False
    members: list[str] = json.loads(row[0]) if row[0] else []
    if value not in members:
        members.append(value)
        conn.execute(
            table.update().where(table.c.id == row_id).values({column: json.dumps(members), "updated_at": _now_iso()})
        )
    return True


def _pull(conn: Connection, table: Table, column: str, row_id: str, value: str) -> bool:
    """Remove every occurrence of value from the JSON array in table.column.

    Returns True if the row exists, False otherwise. Absent values are a no-op.
    """
    row = conn.execute(select(table.c[column]).where(table.c.id == row_id).with_for_update()).fetchone()
    if row is None:
        return False
    members: list[str] = json.loads(row[0]) if row[0] else []
    if value in members:
        members = [m for m in members if m != value]
        conn.execute(
            table.update().where(table.c.id == row_id).values({column: json.dumps(members), "updated_at": _now_iso()})
        )
    return True


def _pull_everywhere(conn: Connection, table: Table, column: str, value: str) -> int:
    """Pull value from every row of table whose array mentions it. Returns rows changed."""
    rows = conn.execute(
        select(table.c.id).where(table.c[column].like(_member_pattern(value), escape="\\"))
    ).fetchall()
    for row in rows:
        _pull(conn, table, column, row.id, value)
    return len(rows)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and hand transaction control to SQLAlchemy.

    pysqlite normally issues its own deferred BEGIN just before the first
    write, which leaves the SELECT of a read-modify-write outside any lock.
    With isolation_level=None it issues nothing and _begin_sqlite decides.
    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.isolation_level = None
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _begin_sqlite(conn: Connection) -> None:
    """Start every transaction explicitly; take the write lock up front when asked."""
    if conn.get_execution_options().get("write_lock"):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
    else:
        conn.exec_driver_sql("BEGIN")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RosterStore:
    _VOLUNTEER_FIELDS = {
        "name",
        "email",
        "phone",
        "is_academic",
        "course",
        "registration_number",
        "entry_date",
        "exit_date",
    }
    _WORKSHOP_FIELDS = {"name", "date", "description"}

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False when used from FastAPI's
            # thread pool, where one pooled connection may serve many threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
            event.listen(self.engine, "begin", _begin_sqlite)
        # Shares the pool and listeners; transactions opened here lock before reading.
        self._locking: Engine = self.engine.execution_options(write_lock=True)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Volunteers
    # ------------------------------------------------------------------

    def create_volunteer(self, volunteer: Volunteer) -> str:
        """Insert a new volunteer and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        volunteer_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _volunteers.insert().values(
                    id=volunteer_id,
                    name=volunteer.name,
                    email=volunteer.email,
                    phone=volunteer.phone or "",
                    is_academic=1 if volunteer.is_academic else 0,
                    course=volunteer.course or "",
                    registration_number=volunteer.registration_number or "",
                    entry_date=_dt_to_iso(volunteer.entry_date),
                    exit_date=_dt_to_iso(volunteer.exit_date),
                    is_active=1 if volunteer.is_active else 0,
                    workshops=json.dumps(volunteer.workshops),
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return volunteer_id

    def get_volunteer(self, volunteer_id: str) -> Optional[Volunteer]:
        """Fetch a single volunteer by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_volunteers.select().where(_volunteers.c.id == volunteer_id)).fetchone()
        return _row_to_volunteer(row) if row is not None else None

    def get_volunteer_by_email(self, email: str) -> Optional[Volunteer]:
        """Look up a volunteer by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_volunteers.select().where(_volunteers.c.email == email)).fetchone()
        return _row_to_volunteer(row) if row is not None else None

    def list_volunteers(
        self,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        limit: int = 0,
        offset: int = 0,
    ) -> list[Volunteer]:
        """Return volunteers, newest first.

        name matches as a case-insensitive substring. limit=0 means no limit.
        """
        query = _volunteers.select().order_by(_volunteers.c.created_at.desc())
        if name:
            query = query.where(_volunteers.c.name.ilike(_like_pattern(name), escape="\\"))
        if is_active is not None:
            query = query.where(_volunteers.c.is_active == (1 if is_active else 0))
        if limit > 0:
            query = query.limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_volunteer(r) for r in rows]

    def update_volunteer(self, volunteer_id: str, **fields) -> bool:
        """Update profile fields on an existing volunteer.

        Accepts any subset of _VOLUNTEER_FIELDS. is_active and workshops are
        deliberately excluded: use inactivate_volunteer() and the membership
        methods instead.

        Returns True if a row was matched, False if volunteer_id was not found.
        """
        unknown = set(fields) - self._VOLUNTEER_FIELDS
        if unknown:
            raise ValueError(f"Unknown volunteer fields: {unknown!r}")
        if "is_academic" in fields:
            fields["is_academic"] = 1 if fields["is_academic"] else 0
        for key in ("entry_date", "exit_date"):
            if key in fields:
                fields[key] = _dt_to_iso(fields[key])
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_volunteers.update().where(_volunteers.c.id == volunteer_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def inactivate_volunteer(self, volunteer_id: str, exit_date: datetime) -> bool:
        """Set is_active=0 and stamp exit_date. Returns False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _volunteers.update()
                .where(_volunteers.c.id == volunteer_id)
                .values(is_active=0, exit_date=_dt_to_iso(exit_date), updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_volunteer(self, volunteer_id: str) -> bool:
        """Delete a volunteer row. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_volunteers.delete().where(_volunteers.c.id == volunteer_id))
            conn.commit()
        return result.rowcount > 0

    def add_workshop_to_volunteer(self, volunteer_id: str, workshop_id: str) -> bool:
        """Add-to-set on volunteers.workshops. Returns False if the volunteer is missing."""
        with self._locking.begin() as conn:
            found = _add_to_set(conn, _volunteers, "workshops", volunteer_id, workshop_id)
        return found

    def remove_workshop_from_volunteer(self, volunteer_id: str, workshop_id: str) -> bool:
        """Pull from volunteers.workshops. Returns False if the volunteer is missing."""
        with self._locking.begin() as conn:
            found = _pull(conn, _volunteers, "workshops", volunteer_id, workshop_id)
        return found

    def pull_workshop_from_all_volunteers(self, workshop_id: str) -> int:
        """Remove workshop_id from every volunteer that lists it. Returns rows changed."""
        with self._locking.begin() as conn:
            changed = _pull_everywhere(conn, _volunteers, "workshops", workshop_id)
        return changed

    # ------------------------------------------------------------------
    # Workshops
    # ------------------------------------------------------------------

    def create_workshop(self, workshop: Workshop) -> str:
        """Insert a new workshop and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the name already exists.
        """
        workshop_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _workshops.insert().values(
                    id=workshop_id,
                    name=workshop.name,
                    date=workshop.date.isoformat(),
                    description=workshop.description or "",
                    volunteers=json.dumps(workshop.volunteers),
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return workshop_id

    def get_workshop(self, workshop_id: str) -> Optional[Workshop]:
        """Fetch a single workshop by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_workshops.select().where(_workshops.c.id == workshop_id)).fetchone()
        return _row_to_workshop(row) if row is not None else None

    def get_workshop_by_name(self, name: str) -> Optional[Workshop]:
        """Look up a workshop by exact name. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_workshops.select().where(_workshops.c.name == name)).fetchone()
        return _row_to_workshop(row) if row is not None else None

    def list_workshops(
        self,
        name: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 0,
        offset: int = 0,
    ) -> list[Workshop]:
        """Return workshops, most recent date first.

        name matches as a case-insensitive substring. The date window is
        half-open: date_from <= date < date_to. limit=0 means no limit.
        """
        query = _workshops.select().order_by(_workshops.c.date.desc(), _workshops.c.name)
        if name:
            query = query.where(_workshops.c.name.ilike(_like_pattern(name), escape="\\"))
        if date_from is not None:
            query = query.where(_workshops.c.date >= date_from.isoformat())
        if date_to is not None:
            query = query.where(_workshops.c.date < date_to.isoformat())
        if limit > 0:
            query = query.limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_workshop(r) for r in rows]

    def list_workshops_by_volunteer(self, volunteer_id: str) -> list[Workshop]:
        """Return every workshop whose volunteer list contains volunteer_id."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _workshops.select()
                .where(_workshops.c.volunteers.like(_member_pattern(volunteer_id), escape="\\"))
                .order_by(_workshops.c.date.desc())
            ).fetchall()
        return [_row_to_workshop(r) for r in rows]

    def update_workshop(self, workshop_id: str, **fields) -> bool:
        """Update name, date, or description. Returns False if not found."""
        unknown = set(fields) - self._WORKSHOP_FIELDS
        if unknown:
            raise ValueError(f"Unknown workshop fields: {unknown!r}")
        if "date" in fields:
            fields["date"] = fields["date"].isoformat()
        if "description" in fields and fields["description"] is None:
            fields["description"] = ""
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_workshops.update().where(_workshops.c.id == workshop_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_workshop(self, workshop_id: str) -> bool:
        """Delete a workshop row. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_workshops.delete().where(_workshops.c.id == workshop_id))
            conn.commit()
        return result.rowcount > 0

    def add_volunteer_to_workshop(self, workshop_id: str, volunteer_id: str) -> bool:
        """Add-to-set on workshops.volunteers. Returns False if the workshop is missing."""
        with self._locking.begin() as conn:
            found = _add_to_set(conn, _workshops, "volunteers", workshop_id, volunteer_id)
        return found

    def remove_volunteer_from_workshop(self, workshop_id: str, volunteer_id: str) -> bool:
        """Pull from workshops.volunteers. Returns False if the workshop is missing."""
        with self._locking.begin() as conn:
            found = _pull(conn, _workshops, "volunteers", workshop_id, volunteer_id)
        return found

    def pull_volunteer_from_all_workshops(self, volunteer_id: str) -> int:
        """Remove volunteer_id from every workshop that lists it. Returns rows changed."""
        with self._locking.begin() as conn:
            changed = _pull_everywhere(conn, _workshops, "volunteers", volunteer_id)
        return changed

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return as_utc(datetime.fromisoformat(value)) if value else None


def _row_to_volunteer(row) -> Volunteer:
    workshops: list[str] = json.loads(row.workshops) if row.workshops else []
    return Volunteer(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone or "",
        is_academic=bool(row.is_academic),
        course=row.course or "",
        registration_number=row.registration_number or "",
        entry_date=_parse_dt(row.entry_date),
        exit_date=_parse_dt(row.exit_date),
        is_active=bool(row.is_active),
        workshops=workshops,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_workshop(row) -> Workshop:
    volunteers: list[str] = json.loads(row.volunteers) if row.volunteers else []
    return Workshop(
        id=row.id,
        name=row.name,
        date=date.fromisoformat(row.date),
        description=row.description or "",
        volunteers=volunteers,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
