"""
tests/test_auth_routes.py -- Integration tests for /api/v1/auth routes.

Coverage:
  - register -> login -> token validates, for ana@x.com / Abc12345 / member
  - login failures share one code; inactive accounts are refused
  - register: duplicates, weak passwords, admin creation rules
  - refresh with and without the "Bearer " prefix
  - password change, admin user management, login rate limit

Fixtures used (from conftest.py):
  - api_client: (client, admin_token, member_token) on a database private to
    this module. The admin is admin@ellp.test, the member member@ellp.test.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

ClientTuple = tuple[TestClient, str, str]


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client: TestClient, email: str, password: str = "Abc12345", role: str = "member", **kwargs):
    body = {"name": email.split("@")[0].title(), "email": email, "password": password, "role": role}
    return client.post("/api/v1/auth/register", json=body, **kwargs)


def _login(client: TestClient, email: str, password: str):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegisterLoginScenario:
    def test_ana_registers_logs_in_and_token_validates(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client

        reg = _register(client, "ana@x.com")
        assert reg.status_code == 201, f"Expected 201, got {reg.status_code}: {reg.text}"
        user = reg.json()
        assert user["email"] == "ana@x.com"
        assert user["role"] == "member"
        assert "password" not in user and "hashed_password" not in user

        login = _login(client, "ana@x.com", "Abc12345")
        assert login.status_code == 200, f"Expected 200, got {login.status_code}: {login.text}"
        data = login.json()
        assert data["user"]["id"] == user["id"]
        assert data["token_type"] == "bearer"
        assert login.headers["Cache-Control"] == "no-store"

        me = client.get("/api/v1/auth/me", headers=_auth(data["token"]))
        assert me.status_code == 200
        assert me.json()["user_id"] == user["id"]
        assert me.json()["role"] == "member"


class TestLoginFailures:
    def test_wrong_password(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        _register(client, "wrongpw@x.com")
        resp = _login(client, "wrongpw@x.com", "Wrong1234")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_unknown_email_matches_wrong_password(self, api_client: ClientTuple) -> None:
        """Both failures return the same code so emails cannot be enumerated."""
        client, _admin, _member = api_client
        resp = _login(client, "nobody@x.com", "Abc12345")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_inactive_user_refused(self, api_client: ClientTuple) -> None:
        client, admin, _member = api_client
        user_id = _register(client, "dormant@x.com").json()["id"]
        patch = client.patch(f"/api/v1/auth/users/{user_id}", json={"is_active": False}, headers=_auth(admin))
        assert patch.status_code == 200
        resp = _login(client, "dormant@x.com", "Abc12345")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "user_inactive"

    def test_login_rate_limited(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        statuses = [_login(client, "nobody@x.com", "Abc12345").status_code for _ in range(11)]
        assert statuses[:10] == [401] * 10
        assert statuses[10] == 429
        last = _login(client, "nobody@x.com", "Abc12345")
        assert last.json()["error"]["code"] == "rate_limited"
        assert "Retry-After" in last.headers


class TestRegisterRules:
    def test_duplicate_email(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        assert _register(client, "dup@x.com").status_code == 201
        resp = _register(client, "dup@x.com")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "email_already_exists"

    def test_weak_password(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        resp = _register(client, "weak@x.com", password="abcdefgh")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "password_too_weak"

    def test_invalid_email(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        resp = _register(client, "not-an-email")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_email"

    def test_invalid_role(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        resp = _register(client, "root@x.com", role="root")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_role"

    def test_overlong_password_rejected_by_schema(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        resp = _register(client, "long@x.com", password="Ab1" + "x" * 80)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_anonymous_cannot_create_admin(self, api_client: ClientTuple) -> None:
        client, _admin, member = api_client
        assert _register(client, "sneaky@x.com", role="admin").status_code == 403
        assert _register(client, "sneaky@x.com", role="admin", headers=_auth(member)).status_code == 403

    def test_admin_can_create_admin(self, api_client: ClientTuple) -> None:
        client, admin, _member = api_client
        resp = _register(client, "second-admin@x.com", role="admin", headers=_auth(admin))
        assert resp.status_code == 201
        assert resp.json()["role"] == "admin"


class TestTokenLifecycleRoutes:
    def test_refresh_with_bearer_prefix(self, api_client: ClientTuple) -> None:
        client, _admin, member = api_client
        resp = client.post("/api/v1/auth/refresh", headers=_auth(member))
        assert resp.status_code == 200
        fresh = resp.json()["token"]
        assert fresh != member
        assert client.get("/api/v1/auth/me", headers=_auth(fresh)).status_code == 200

    def test_refresh_with_bare_token(self, api_client: ClientTuple) -> None:
        client, _admin, member = api_client
        resp = client.post("/api/v1/auth/refresh", headers={"Authorization": member})
        assert resp.status_code == 200

    def test_refresh_without_token(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "missing_token"

    def test_refresh_with_garbage(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        resp = client.post("/api/v1/auth/refresh", headers={"Authorization": "Bearer junk"})
        assert resp.status_code == 401

    def test_logout_is_public(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert "message" in resp.json()


class TestAccountManagement:
    def test_change_own_password(self, api_client: ClientTuple) -> None:
        client, _admin, _member = api_client
        _register(client, "rotate@x.com")
        token = _login(client, "rotate@x.com", "Abc12345").json()["token"]

        bad = client.put(
            "/api/v1/auth/me/password",
            json={"current_password": "Wrong1234", "new_password": "Xyz98765"},
            headers=_auth(token),
        )
        assert bad.status_code == 401

        ok = client.put(
            "/api/v1/auth/me/password",
            json={"current_password": "Abc12345", "new_password": "Xyz98765"},
            headers=_auth(token),
        )
        assert ok.status_code == 200
        assert _login(client, "rotate@x.com", "Xyz98765").status_code == 200

    def test_admin_lists_users(self, api_client: ClientTuple) -> None:
        client, admin, _member = api_client
        resp = client.get("/api/v1/auth/users", headers=_auth(admin))
        assert resp.status_code == 200
        emails = {u["email"] for u in resp.json()}
        assert {"admin@ellp.test", "member@ellp.test"} <= emails

    def test_admin_updates_role(self, api_client: ClientTuple) -> None:
        client, admin, _member = api_client
        user_id = _register(client, "promote@x.com").json()["id"]
        resp = client.patch(f"/api/v1/auth/users/{user_id}", json={"role": "admin"}, headers=_auth(admin))
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"

    def test_admin_cannot_deactivate_self(self, api_client: ClientTuple) -> None:
        client, admin, _member = api_client
        me = client.get("/api/v1/auth/me", headers=_auth(admin)).json()
        resp = client.patch(f"/api/v1/auth/users/{me['user_id']}", json={"is_active": False}, headers=_auth(admin))
        assert resp.status_code == 400

    def test_update_unknown_user(self, api_client: ClientTuple) -> None:
        client, admin, _member = api_client
        resp = client.patch("/api/v1/auth/users/missing", json={"name": "X"}, headers=_auth(admin))
        assert resp.status_code == 404
