"""
auth/service.py -- User registration, login, and account management.

UserService composes the steps every write goes through:
  uniqueness check -> field validation -> hashing -> store call -> projection.

Everything it returns is a UserView (no password field) or a LoginResult;
the User dataclass with its hash never leaves this module.

The email pre-check is check-then-act: two concurrent registrations with the
same email can both pass it. The UNIQUE constraint on users.email catches
the loser, and the IntegrityError is mapped to the same EmailAlreadyExists.

Layer rule: no imports from api/ or roster/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from auth.models import Role, SessionClaims, User, UserView, validate_role
from auth.passwords import HashedPassword, PlaintextPassword, authenticate_user, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import EmailAlreadyExists, Forbidden, InvalidCredentials, RequiredField, UserNotFound
from core.validators import validate_email

logger = logging.getLogger("ellp.auth")


@dataclass(frozen=True)
class LoginResult:
    user: UserView
    token: str
    expires_in: int


class UserService:
    def __init__(self, store: UserStore, tokens: TokenService) -> None:
        self.store = store
        self.tokens = tokens

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        email: str,
        password: PlaintextPassword,
        role: Role | str = Role.member,
        caller: SessionClaims | None = None,
    ) -> UserView:
        """Create a new account.

        Anyone may register a member. Creating an admin requires an admin
        caller, except for the very first account, which bootstraps the
        platform.
        """
        if not name or not name.strip():
            raise RequiredField("Name is required.")
        validate_email(email)
        password.validate()
        parsed_role = validate_role(role)

        if parsed_role is Role.admin and self.store.has_users():
            if caller is None or caller.role is not Role.admin:
                raise Forbidden("Only admins can create admin accounts.")

        if self.store.get_by_email(email) is not None:
            raise EmailAlreadyExists("Email already registered.")

        user = User(
            name=name.strip(),
            email=email,
            hashed_password=hash_password(password).value,
            role=parsed_role,
        )
        try:
            user_id = self.store.create_user(user)
        except IntegrityError as exc:
            raise EmailAlreadyExists("Email already registered.") from exc

        logger.info("Registered %s user %s", parsed_role.value, user_id)
        return self.get(user_id)

    def login(self, email: str, password: PlaintextPassword) -> LoginResult:
        """Authenticate and issue a session token."""
        user = authenticate_user(self.store, email, password)
        token = self.tokens.issue(user.id, user.email, user.role)
        logger.info("User %s logged in", user.id)
        return LoginResult(user=UserView.from_user(user), token=token, expires_in=self.tokens.expire_seconds)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, user_id: str) -> UserView:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return UserView.from_user(user)

    def list_users(self, is_active: bool | None = None, page: int = 1, limit: int = 0) -> list[UserView]:
        offset = (page - 1) * limit if limit > 0 else 0
        return [UserView.from_user(u) for u in self.store.list_users(is_active, limit, offset)]

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_user(self, user_id: str, **changes) -> UserView:
        """Apply a partial update to name, email, role, or is_active.

        The stored password hash is never part of this path -- use
        change_password() for that.
        """
        user = self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()

        updates: dict = {}
        if changes.get("name") is not None:
            if not changes["name"].strip():
                raise RequiredField("Name cannot be empty.")
            updates["name"] = changes["name"].strip()
        if changes.get("email") is not None and changes["email"] != user.email:
            validate_email(changes["email"])
            existing = self.store.get_by_email(changes["email"])
            if existing is not None and existing.id != user.id:
                raise EmailAlreadyExists("Email already registered.")
            updates["email"] = changes["email"]
        if changes.get("role") is not None:
            updates["role"] = validate_role(changes["role"])
        if changes.get("is_active") is not None:
            updates["is_active"] = bool(changes["is_active"])

        if updates:
            try:
                self.store.update_user(user_id, **updates)
            except IntegrityError as exc:
                raise EmailAlreadyExists("Email already registered.") from exc
            logger.info("Updated user %s (%s)", user_id, ", ".join(sorted(updates)))
        return self.get(user_id)

    def change_password(self, user_id: str, current: PlaintextPassword, new: PlaintextPassword) -> None:
        """Replace the stored hash after verifying the current password."""
        user = self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        if not verify_password(current, HashedPassword(user.hashed_password)):
            raise InvalidCredentials("Current password is incorrect.")
        new.validate()
        self.store.update_user(user_id, hashed_password=hash_password(new).value)
        logger.info("Password changed for user %s", user_id)
