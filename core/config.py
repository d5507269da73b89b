"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for authcore happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Cross-field validation of the two signing
      secrets. Dev mode generates them with a warning, production mode refuses
      to start without them.

Security notes:
  Secrets shorter than 32 chars are rejected. The access and refresh secrets
  must differ, otherwise a refresh token would verify as an access token.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or cache/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authcore.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (with DEBUG=true).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured"; see validate_secrets.
    access_token_secret: str = Field(
        default="",
        validation_alias=AliasChoices("ACCESS_TOKEN_SECRET", "JWT_SECRET"),
    )
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = Field(default=5 * 60, gt=0)
    refresh_token_expire_seconds: int = Field(default=24 * 60 * 60, gt=0)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///authcore.db"
    # "memory://" for an in-process cache, "sqlite:///path" for a shared one.
    session_cache_url: str = "memory://"
    session_purge_interval_seconds: int = Field(default=60 * 60, gt=0)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    default_role: str = "freelancer"
    # Off by default: a password reset leaves the current session usable.
    revoke_sessions_on_password_reset: bool = False

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    host: str = "localhost"
    port: int = 3000
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the signing secret policy.

        Dev mode (DEBUG=true): auto-generate missing secrets with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject secrets shorter than 32 characters and reject
            identical access and refresh secrets.
        """
        for name in ("access_token_secret", "refresh_token_secret"):
            if not getattr(self, name):
                if not self.debug:
                    raise ValueError(
                        f"{name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, name, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Tokens will not survive a restart.", name.upper())
            if len(getattr(self, name)) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        return self

    @property
    def session_ttl_ms(self) -> int:
        """Session cache TTL in milliseconds, tied to the refresh token lifetime."""
        return self.refresh_token_expire_seconds * 1000


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
