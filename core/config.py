"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for tokengate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_secret_key -> ACCESS_SECRET_KEY).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates signing secrets with a warning,
      production mode refuses to start without them.

Security notes:
  Secrets shorter than 32 chars are rejected outright. HS256 signing relies
  on key entropy -- a short key weakens every token issued with it.

  The access and refresh secrets must differ. With a shared key a leaked
  access token could be replayed as a refresh token and vice versa.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or client/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tokengate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'tokengate.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ------------------------------------------------------------------
    # Token signing
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    access_secret_key: str = ""
    refresh_secret_key: str = ""
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Credentials and lockout
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10
    min_password_length: int = 8
    max_login_attempts: int = 5
    lockout_seconds: int = 15 * 60

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------

    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_keys(self) -> "Settings":
        """Enforce the signing-secret policy.

        Dev mode (DEBUG=true): auto-generate any missing secret with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if either
            secret is missing.

        Both modes: reject secrets shorter than 32 characters and reject a
            refresh secret equal to the access secret.
        """
        for field_name in ("access_secret_key", "refresh_secret_key"):
            value = getattr(self, field_name)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{field_name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, field_name, secrets.token_hex(32))
                logger.warning(
                    "WARNING: Using auto-generated %s. Tokens will not persist across restarts.",
                    field_name.upper(),
                )
            if len(getattr(self, field_name)) < 32:
                raise ValueError(f"{field_name.upper()} must be at least 32 characters.")
        if self.access_secret_key == self.refresh_secret_key:
            raise ValueError("ACCESS_SECRET_KEY and REFRESH_SECRET_KEY must differ.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
