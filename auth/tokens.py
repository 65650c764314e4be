"""
auth/tokens.py -- Signed session tokens (issue, validate, refresh).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id, email, role, iat, nbf,
       exp, and a random jti. The jti makes two tokens issued for the same
       user in the same second distinct, so refresh always yields new token
       material.

  Injected secret: TokenService receives the secret and the validity window
       from Settings at startup (api/main.py lifespan). There is no module-
       level secret; tests build their own TokenService with a known key and
       a controllable clock.

  Typed failures: validate() raises MalformedToken, InvalidSignature, or
       TokenExpired (all TokenError, all 401). The auth guard collapses them
       into a single Unauthorized for the client; tests assert on the leaf.

  Expiry: python-jose's exp/nbf checks are disabled and re-done here against
       the injected clock, so "now >= exp" is the exact expiry rule and the
       clock is controllable in tests.

  Stateless: nothing is stored server-side, so a token cannot be revoked
       before it expires. Logout is the client discarding the token.

Layer rule: no imports from api/ or roster/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from jose import JWTError, jwt

from auth.models import Role, SessionClaims
from core.config import Settings
from core.errors import InvalidSignature, MalformedToken, TokenExpired
from core.validators import utcnow

logger = logging.getLogger("ellp.auth")

ALGORITHM = "HS256"

_DECODE_OPTIONS = {
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_aud": False,
}


class TokenService:
    """Issues and verifies HS256 session tokens.

    Usage:
        tokens = TokenService.from_settings(get_settings())
        token = tokens.issue(user.id, user.email, user.role)
        claims = tokens.validate(token)
        fresh = tokens.refresh(token)
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(settings.secret_key, settings.token_expire_seconds)

    def _now(self) -> int:
        return int(self._clock().timestamp())

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def issue(self, user_id: str, email: str, role: Role | str) -> str:
        """Encode a signed JWT valid from now until now + expire_seconds."""
        issued_at = self._now()
        payload = {
            "user_id": user_id,
            "email": email,
            "role": Role(role).value,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": issued_at + self.expire_seconds,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def validate(self, token: str) -> SessionClaims:
        """Verify a token and return its claims.

        Check order: structure, algorithm, signature, claim shape, time window.
        """
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken() from exc

        if header.get("alg") != ALGORITHM:
            raise InvalidSignature("Unexpected signing algorithm.")

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM], options=_DECODE_OPTIONS)
        except JWTError as exc:
            raise InvalidSignature() from exc

        claims = _claims_from_payload(payload)

        now = self._now()
        if now >= claims.expires_at:
            raise TokenExpired()
        if now < claims.not_before:
            raise MalformedToken("Token is not valid yet.")
        return claims

    def refresh(self, token: str) -> str:
        """Validate token (expiry included) and issue a new one for the same identity."""
        claims = self.validate(token)
        logger.debug("Refreshing token for user %s", claims.user_id)
        return self.issue(claims.user_id, claims.email, claims.role)


def _claims_from_payload(payload: dict) -> SessionClaims:
    """Map a verified payload onto SessionClaims, raising MalformedToken on any shape mismatch."""
    user_id = payload.get("user_id")
    email = payload.get("email")
    role = payload.get("role")
    if not isinstance(user_id, str) or not user_id or not isinstance(email, str) or not isinstance(role, str):
        raise MalformedToken("Token is missing identity claims.")
    try:
        parsed_role = Role(role)
    except ValueError as exc:
        raise MalformedToken("Token carries an unknown role.") from exc

    times = [payload.get(k) for k in ("iat", "nbf", "exp")]
    if not all(isinstance(t, int) and not isinstance(t, bool) for t in times):
        raise MalformedToken("Token is missing time claims.")
    issued_at, not_before, expires_at = times

    return SessionClaims(
        user_id=user_id,
        email=email,
        role=parsed_role,
        issued_at=issued_at,
        not_before=not_before,
        expires_at=expires_at,
        token_id=str(payload.get("jti", "")),
    )
