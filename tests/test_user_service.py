"""Unit tests for auth/service.py and auth/passwords.py -- UserService on an in-memory store.

Covers:
- register(): projection without password, duplicate email, admin bootstrap rule
- login(): success, unknown email, wrong password, inactive account
- update_user(): partial update never touches the stored hash
- change_password(): requires the current password
"""

import pytest

from auth.models import Role, SessionClaims
from auth.passwords import HashedPassword, PlaintextPassword, hash_password, verify_password
from auth.service import UserService
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import (
    EmailAlreadyExists,
    Forbidden,
    InvalidCredentials,
    InvalidEmail,
    PasswordTooShort,
    UserInactive,
    UserNotFound,
)

SECRET = "unit-test-secret-key-with-at-least-32-chars"


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(SECRET, 3600)


@pytest.fixture
def service(store, tokens) -> UserService:
    return UserService(store, tokens)


def _claims(role: Role) -> SessionClaims:
    return SessionClaims(
        user_id="caller",
        email="caller@x.com",
        role=role,
        issued_at=0,
        not_before=0,
        expires_at=1,
    )


class TestPasswords:
    def test_hash_is_not_plaintext_and_verifies(self) -> None:
        hashed = hash_password(PlaintextPassword("Abc12345"))
        assert isinstance(hashed, HashedPassword)
        assert hashed.value != "Abc12345"
        assert verify_password(PlaintextPassword("Abc12345"), hashed)
        assert not verify_password(PlaintextPassword("Abc12346"), hashed)

    def test_malformed_stored_hash_is_a_mismatch(self) -> None:
        assert not verify_password(PlaintextPassword("Abc12345"), HashedPassword("not-a-bcrypt-hash"))


class TestRegister:
    def test_register_returns_projection(self, service: UserService) -> None:
        view = service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        assert view.email == "ana@x.com"
        assert view.role is Role.member
        assert view.is_active is True
        assert not hasattr(view, "hashed_password")

    def test_register_stores_bcrypt_hash(self, service: UserService, store: UserStore) -> None:
        view = service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        stored = store.get_by_id(view.id)
        assert stored.hashed_password.startswith("$2")

    def test_duplicate_email(self, service: UserService) -> None:
        service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        with pytest.raises(EmailAlreadyExists):
            service.register("Ana Two", "ana@x.com", PlaintextPassword("Abc12345"))

    def test_invalid_email(self, service: UserService) -> None:
        with pytest.raises(InvalidEmail):
            service.register("Ana", "ana", PlaintextPassword("Abc12345"))

    def test_weak_password(self, service: UserService) -> None:
        with pytest.raises(PasswordTooShort):
            service.register("Ana", "ana@x.com", PlaintextPassword("Ab1"))

    def test_first_account_may_be_admin(self, service: UserService) -> None:
        view = service.register("Root", "root@x.com", PlaintextPassword("Abc12345"), role="admin")
        assert view.role is Role.admin

    def test_later_admin_needs_admin_caller(self, service: UserService) -> None:
        service.register("Root", "root@x.com", PlaintextPassword("Abc12345"), role="admin")
        with pytest.raises(Forbidden):
            service.register("Eve", "eve@x.com", PlaintextPassword("Abc12345"), role="admin")
        with pytest.raises(Forbidden):
            service.register(
                "Eve", "eve@x.com", PlaintextPassword("Abc12345"), role="admin", caller=_claims(Role.member)
            )
        view = service.register(
            "Bob", "bob@x.com", PlaintextPassword("Abc12345"), role="admin", caller=_claims(Role.admin)
        )
        assert view.role is Role.admin


class TestLogin:
    def test_login_returns_valid_token(self, service: UserService, tokens: TokenService) -> None:
        service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        result = service.login("ana@x.com", PlaintextPassword("Abc12345"))
        assert result.user.email == "ana@x.com"
        assert result.expires_in == 3600
        claims = tokens.validate(result.token)
        assert claims.user_id == result.user.id
        assert claims.role is Role.member

    def test_unknown_email(self, service: UserService) -> None:
        with pytest.raises(InvalidCredentials):
            service.login("ghost@x.com", PlaintextPassword("Abc12345"))

    def test_wrong_password(self, service: UserService) -> None:
        service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        with pytest.raises(InvalidCredentials):
            service.login("ana@x.com", PlaintextPassword("Wrong1234"))

    def test_inactive_account(self, service: UserService) -> None:
        view = service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        service.update_user(view.id, is_active=False)
        with pytest.raises(UserInactive):
            service.login("ana@x.com", PlaintextPassword("Abc12345"))

    def test_inactive_account_with_wrong_password_is_bad_credentials(self, service: UserService) -> None:
        """The inactive flag is only revealed to someone who knows the password."""
        view = service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        service.update_user(view.id, is_active=False)
        with pytest.raises(InvalidCredentials):
            service.login("ana@x.com", PlaintextPassword("Wrong1234"))


class TestUpdates:
    def test_update_does_not_touch_hash(self, service: UserService, store: UserStore) -> None:
        view = service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        before = store.get_by_id(view.id).hashed_password
        updated = service.update_user(view.id, name="Ana Maria", role="admin")
        assert updated.name == "Ana Maria"
        assert updated.role is Role.admin
        assert store.get_by_id(view.id).hashed_password == before

    def test_update_to_taken_email(self, service: UserService) -> None:
        service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        bob = service.register("Bob", "bob@x.com", PlaintextPassword("Abc12345"))
        with pytest.raises(EmailAlreadyExists):
            service.update_user(bob.id, email="ana@x.com")

    def test_update_unknown_user(self, service: UserService) -> None:
        with pytest.raises(UserNotFound):
            service.update_user("missing", name="X")

    def test_change_password(self, service: UserService) -> None:
        view = service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        service.change_password(view.id, PlaintextPassword("Abc12345"), PlaintextPassword("NewPass123"))
        assert service.login("ana@x.com", PlaintextPassword("NewPass123")).user.id == view.id
        with pytest.raises(InvalidCredentials):
            service.login("ana@x.com", PlaintextPassword("Abc12345"))

    def test_change_password_requires_current(self, service: UserService) -> None:
        view = service.register("Ana", "ana@x.com", PlaintextPassword("Abc12345"))
        with pytest.raises(InvalidCredentials):
            service.change_password(view.id, PlaintextPassword("Wrong1234"), PlaintextPassword("NewPass123"))

    def test_list_users_filters_and_paginates(self, service: UserService) -> None:
        for name in ("Ana", "Bob", "Cid"):
            service.register(name, f"{name.lower()}@x.com", PlaintextPassword("Abc12345"))
        bob = service.list_users()[1]
        service.update_user(bob.id, is_active=False)
        assert [u.name for u in service.list_users(is_active=True)] == ["Ana", "Cid"]
        assert [u.name for u in service.list_users(page=2, limit=2)] == ["Cid"]
