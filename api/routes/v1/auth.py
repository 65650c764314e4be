"""
api/routes/v1/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST  /api/v1/auth/register         -- create an account (admin role needs an admin caller)
  POST  /api/v1/auth/login            -- email + password login; returns user + token
  POST  /api/v1/auth/logout           -- acknowledges logout; the client drops the token
  POST  /api/v1/auth/refresh          -- exchange a still-valid token for a fresh one
  GET   /api/v1/auth/me               -- claims of the current token (requires auth)
  PUT   /api/v1/auth/me/password      -- change own password (requires auth)
  GET   /api/v1/auth/users            -- list all users (admin only)
  PATCH /api/v1/auth/users/{id}       -- update name/email/role/is_active (admin only)

Security:
  [H2] POST /login and POST /register are rate-limited per IP.
  [C1] Login goes through UserService.login() -> authenticate_user(), which
       runs bcrypt even for unknown emails. Never inline the lookup.
  [M4] PATCH /users/{id} blocks self-deactivation.
  [M5] Cache-Control: no-store on responses that carry a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PasswordChange,
    RegisterRequest,
    TokenResponse,
    UserPatch,
    UserResponse,
)
from auth.dependencies import optional_auth, require_admin, require_auth
from auth.models import SessionClaims
from auth.passwords import PlaintextPassword
from auth.service import UserService
from core.config import get_settings
from core.errors import MissingToken, TokenError, Unauthorized, ValidationFailed

# Auth policy:
# - POST  /auth/register:       optional auth -- anyone may register a member
# - POST  /auth/login:          public, rate limited
# - POST  /auth/logout:         public -- tokens are stateless
# - POST  /auth/refresh:        token in Authorization header ("Bearer " optional)
# - GET   /auth/me:             requires auth (require_auth)
# - PUT   /auth/me/password:    requires auth (require_auth)
# - GET   /auth/users:          requires admin (require_admin)
# - PATCH /auth/users/{id}:     requires admin (require_admin)
router = APIRouter()

_settings = get_settings()


def _users(request: Request) -> UserService:
    return request.app.state.users


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    caller: SessionClaims | None = Depends(optional_auth),
) -> UserResponse:
    """Create an account.

    The very first account may be an admin (bootstrap). After that, only an
    authenticated admin can create another admin.
    """
    view = _users(request).register(
        name=body.name,
        email=body.email,
        password=PlaintextPassword(body.password),
        role=body.role,
        caller=caller,
    )
    return UserResponse.from_view(view)


@limiter.limit(_settings.login_rate_limit)  # [H2] brute-force mitigation
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password.

    Unknown email and wrong password both return 401 bad_credentials so the
    response does not reveal which emails are registered.
    """
    result = _users(request).login(body.email, PlaintextPassword(body.password))
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse(
        user=UserResponse.from_view(result.user),
        token=result.token,
        expires_in=result.expires_in,
    )


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    """Tokens are stateless; logging out is the client discarding its token."""
    return MessageResponse(message="Logged out successfully.")


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, response: Response) -> TokenResponse:
    """Issue a new token for the identity in a still-valid one.

    Accepts "Authorization: Bearer <token>" or the bare token.
    """
    raw = request.headers.get("Authorization", "").strip()
    if not raw:
        raise MissingToken()
    token = raw[len("Bearer ") :] if raw.startswith("Bearer ") else raw

    tokens = request.app.state.tokens
    try:
        fresh = tokens.refresh(token)
    except TokenError as exc:
        raise Unauthorized("Invalid or expired token.") from exc
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokenResponse(token=fresh, expires_in=tokens.expire_seconds)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(claims: SessionClaims = Depends(require_auth)) -> MeResponse:
    """Return identity information carried by the caller's token."""
    return MeResponse.from_claims(claims)


@router.put("/auth/me/password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: PasswordChange,
    claims: SessionClaims = Depends(require_auth),
) -> MessageResponse:
    """Change the caller's password. The current password must be supplied."""
    _users(request).change_password(
        claims.user_id,
        current=PlaintextPassword(body.current_password),
        new=PlaintextPassword(body.new_password),
    )
    return MessageResponse(message="Password updated.")


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    is_active: bool | None = None,
    page: int = 1,
    limit: int = 0,
    claims: SessionClaims = Depends(require_admin),
) -> list[UserResponse]:
    """List user accounts. Admin only."""
    views = _users(request).list_users(is_active=is_active, page=page, limit=limit)
    return [UserResponse.from_view(v) for v in views]


@router.patch("/auth/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserPatch,
    claims: SessionClaims = Depends(require_admin),
) -> UserResponse:
    """Update a user's name, email, role, or active status. Admin only.

    [M4] An admin cannot deactivate their own account.
    """
    if body.is_active is False and user_id == claims.user_id:
        raise ValidationFailed("You cannot deactivate your own account.")
    view = _users(request).update_user(user_id, **body.model_dump(exclude_none=True))
    return UserResponse.from_view(view)
