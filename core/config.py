"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the ELLP API happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  Immutable value: Settings is frozen. The signing secret and token window are
      read here once and handed to auth.tokens.TokenService at startup; nothing
      mutates them afterwards.

Security notes:
  [S1] An unset SECRET_KEY falls back to DEFAULT_SECRET_KEY and logs a warning.
       The fallback is public (it is in this file), so any deployment that
       relies on it issues forgeable tokens. Always set SECRET_KEY outside dev.

  [S2] A supplied SECRET_KEY shorter than 32 chars is rejected outright. JWT
       HS256 signing relies on key entropy -- a short key weakens it.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or roster/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("ellp.config")

# Development fallback for SECRET_KEY [S1].
DEFAULT_SECRET_KEY = "ellp-dev-secret-key-change-me-before-deploying"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below swaps in DEFAULT_SECRET_KEY, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///ellp.db"
    port: int = 8080

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Default 24 hours, matching the session window of the mobile/web clients.
    token_expire_seconds: int = 24 * 60 * 60

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="before")
    @classmethod
    def apply_secret_fallback(cls, values: dict) -> dict:
        """Substitute the development secret when SECRET_KEY is unset [S1].

        Runs before field validation because the model is frozen and cannot
        be patched after construction.
        """
        if isinstance(values, dict) and not values.get("secret_key"):
            logger.warning(
                "SECRET_KEY is not set -- falling back to the built-in development key. "
                "Tokens signed with it can be forged by anyone who reads the source."
            )
            values["secret_key"] = DEFAULT_SECRET_KEY
        return values

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Reject keys shorter than 32 characters [S2]."""
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
