"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost zero logic). Mirrors the
approach in roster/models.py -- dataclasses own domain shape; stores and
services do the work.

Role is a closed enumeration. Permission checks compare Role members against
a set of Role members, never raw strings.

Layer rule: no imports from api/ or roster/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.errors import InvalidRole


class Role(str, Enum):
    admin = "admin"
    member = "member"


def validate_role(value: str | Role) -> Role:
    """Return the Role for value, raising InvalidRole for anything else."""
    try:
        return Role(value)
    except ValueError as exc:
        raise InvalidRole() from exc


@dataclass
class User:
    """A person who can log in to the platform.

    hashed_password always holds a bcrypt hash -- plaintext never reaches
    this dataclass. It is stripped by UserService before anything leaves
    the auth layer (see UserView).

    id is None before the record is written to the database.
    """

    name: str
    email: str
    hashed_password: str
    role: Role = Role.member
    id: str | None = None
    is_active: bool = True
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, set by store on every write


@dataclass(frozen=True)
class UserView:
    """Outbound projection of a User. Has no password field by construction."""

    id: str
    name: str
    email: str
    role: Role
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserView":
        return cls(
            id=user.id or "",
            name=user.name,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@dataclass(frozen=True)
class SessionClaims:
    """Identity carried inside a signed session token. Never persisted.

    Timestamps are POSIX seconds, exactly as encoded in the JWT.
    """

    user_id: str
    email: str
    role: Role
    issued_at: int
    not_before: int
    expires_at: int
    token_id: str = ""
