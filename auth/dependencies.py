"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Bearer tokens only: Authorization: Bearer <token>. The header must split on
a single space into exactly two parts, the first being "Bearer".

optional_auth() is the soft variant (returns None on any failure).
require_auth() raises 401 with a specific code:
  missing_token     -- no Authorization header
  malformed_header  -- header present but not "Bearer <token>"
  unauthorized      -- token failed validation (any TokenError)
require_roles(*roles) wraps require_auth() and raises 403 if the claim role
is not in the permitted set.

On success the claims are stored on request.state.claims so downstream code
(route handlers, logging) can read them without re-validating.

Layer rule: no imports from api/ or roster/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.models import Role, SessionClaims
from auth.tokens import TokenService
from core.errors import Forbidden, MalformedHeader, MissingToken, TokenError, Unauthorized


def extract_bearer_token(request: Request) -> str:
    """Return the raw token from the Authorization header.

    Raises MissingToken if the header is absent or empty, MalformedHeader if
    it is not exactly "Bearer <token>".
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise MissingToken()
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise MalformedHeader()
    return parts[1]


def _token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def require_auth(request: Request) -> SessionClaims:
    """Require a valid bearer token. Raises 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: SessionClaims = Depends(require_auth)): ...
    """
    token = extract_bearer_token(request)
    try:
        claims = _token_service(request).validate(token)
    except TokenError as exc:
        raise Unauthorized("Invalid or expired token.") from exc
    request.state.claims = claims
    return claims


def optional_auth(request: Request) -> SessionClaims | None:
    """Attempt to authenticate the request. Never raises.

    Returns the claims on success and None on any failure (no header, bad
    header, bad token). The request always proceeds.
    """
    try:
        return require_auth(request)
    except Unauthorized:
        return None


def require_roles(*roles: Role) -> Callable[[Request], SessionClaims]:
    """Build a dependency that requires authentication and one of the given roles.

    Use as a FastAPI dependency:
        @router.delete("/admin-only")
        def route(claims: SessionClaims = Depends(require_roles(Role.admin))): ...
    """
    permitted = frozenset(roles)

    def _require_role(request: Request) -> SessionClaims:
        claims = require_auth(request)
        if claims.role not in permitted:
            raise Forbidden()
        return claims

    return _require_role


require_admin = require_roles(Role.admin)
