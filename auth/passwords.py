"""
auth/passwords.py -- Credential types and bcrypt hashing.

A password value is always one of two explicit types:

  PlaintextPassword -- user input. Subject to strength validation and only
      ever consumed by hash_password() or verify_password().
  HashedPassword    -- an opaque bcrypt hash read from or written to the
      store. Never validated for strength, never hashed again.

The distinction lives in the type, not in the shape of the string, so a call
site can never mistake "$2b$12$..." typed by a user for an existing hash.

Passwords: bcrypt directly (no passlib wrapper). passlib's internal wrap-bug
detection creates a password longer than 72 bytes, which bcrypt 4.x rejects
with an explicit error. The API caps password fields at 72 characters.

Layer rule: no imports from api/ or roster/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import bcrypt

from core.errors import InvalidCredentials, UserInactive
from core.validators import validate_password_strength

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("ellp.auth")


@dataclass(frozen=True)
class PlaintextPassword:
    value: str

    def __repr__(self) -> str:  # keep secrets out of logs and tracebacks
        return "PlaintextPassword('***')"

    def validate(self) -> "PlaintextPassword":
        """Raise PasswordTooShort / PasswordTooWeak; return self when strong enough."""
        validate_password_strength(self.value)
        return self


@dataclass(frozen=True)
class HashedPassword:
    value: str


def hash_password(plain: PlaintextPassword) -> HashedPassword:
    """Return a bcrypt hash of the given plaintext password."""
    digest = bcrypt.hashpw(plain.value.encode("utf-8"), bcrypt.gensalt())
    return HashedPassword(digest.decode("utf-8"))


def verify_password(plain: PlaintextPassword, hashed: HashedPassword) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.value.encode("utf-8"), hashed.value.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input -- treat as a mismatch.
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. verify_password() always runs, even when the
# email does not exist, so response time does not reveal registered emails.
_DUMMY_HASH = hash_password(PlaintextPassword("ellp_timing_dummy"))


def authenticate_user(store: UserStore, email: str, password: PlaintextPassword) -> User:
    """Authenticate an email/password login with timing equalization [C1].

    Raises InvalidCredentials for an unknown email or wrong password and
    UserInactive for a deactivated account whose password is correct.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        logger.info("Login failed: unknown email")
        raise InvalidCredentials()
    if not verify_password(password, HashedPassword(user.hashed_password)):
        logger.info("Login failed: wrong password for user %s", user.id)
        raise InvalidCredentials()
    if not user.is_active:
        logger.info("Login refused: user %s is inactive", user.id)
        raise UserInactive()
    return user
