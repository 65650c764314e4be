"""
tests/conftest.py -- Shared test fixtures for ELLP integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + roster
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - make_client(): TestClient plus an admin and a member token for one module
  - api_client: the client tuple for modules that do not need a private DB

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

SECRET_KEY must be set before any core/auth import so get_settings() does not
fall back to the built-in development key.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set SECRET_KEY before any core/auth import so the cached Settings
# carry the test key.
TEST_SECRET_KEY = "test-secret-key-for-the-ellp-test-suite-0123456789"
os.environ.setdefault("SECRET_KEY", TEST_SECRET_KEY)

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, wire_services
from auth.models import Role, User
from auth.passwords import PlaintextPassword, hash_password
from auth.store import UserStore
from auth.tokens import TokenService
from roster.store import RosterStore

ADMIN_EMAIL = "admin@ellp.test"
ADMIN_PASSWORD = "AdminPass123"
MEMBER_EMAIL = "member@ellp.test"
MEMBER_PASSWORD = "MemberPass123"

ClientTuple = tuple[TestClient, str, str]

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, RosterStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'auth', 'roster').
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    roster_url = f"sqlite:///file:test_roster_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=auth_url), RosterStore(db_url=roster_url)


def _patch_lifespan(user_store: UserStore, roster_store: RosterStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, user_store, roster_store, tokens)
        yield

    return test_lifespan


def _seed_user(store: UserStore, name: str, email: str, password: str, role: Role) -> str:
    return store.create_user(
        User(
            name=name,
            email=email,
            hashed_password=hash_password(PlaintextPassword(password)).value,
            role=role,
        )
    )


def make_client(db_suffix: str) -> Generator[ClientTuple, None, None]:
    """Yield (client, admin_token, member_token) backed by fresh stores.

    The admin and member accounts are created before the client starts; the
    tokens are issued by the same TokenService the app validates with.
    """
    user_store, roster_store = _make_test_stores(db_suffix)
    tokens = TokenService(TEST_SECRET_KEY, expire_seconds=3600)

    admin_id = _seed_user(user_store, "Test Admin", ADMIN_EMAIL, ADMIN_PASSWORD, Role.admin)
    member_id = _seed_user(user_store, "Test Member", MEMBER_EMAIL, MEMBER_PASSWORD, Role.member)
    admin_token = tokens.issue(admin_id, ADMIN_EMAIL, Role.admin)
    member_token = tokens.issue(member_id, MEMBER_EMAIL, Role.member)

    app.router.lifespan_context = _patch_lifespan(user_store, roster_store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, admin_token, member_token

    roster_store.close()
    user_store.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    """Clear slowapi counters so login/register limits never leak between tests."""
    limiter.reset()


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ClientTuple, None, None]:
    """Module-scoped client on a database named after the requesting module."""
    yield from make_client(request.module.__name__.rsplit(".", 1)[-1])
