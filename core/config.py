"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Gatekeeper happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  TokenConfig: the four signing values (two secrets, two lifetimes) are copied
      out of Settings into a frozen dataclass and handed to TokenIssuer. Auth
      code receives its configuration; it never reaches for the environment.

Security notes:
  Secrets shorter than 32 chars are rejected outright. HS256 signing relies on
  key entropy -- a short key weakens every token.

  The access and refresh secrets must differ. A leaked access secret must not
  be usable to mint refresh tokens, and vice versa.

  In production mode (DEBUG not set or false), a missing secret is a hard
  startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or media/.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatekeeper.config")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


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
    database_url: str = f"sqlite:///{_PROJECT_ROOT / 'gatekeeper_users.db'}"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # either generates a dev secret or raises, so callers never see "".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 3600

    # ------------------------------------------------------------------
    # Passwords and cookies
    # ------------------------------------------------------------------

    password_hash_rounds: int = 12
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Profile image storage
    # ------------------------------------------------------------------

    media_backend: str = "local"  # "local" or "http"
    media_dir: str = str(_PROJECT_ROOT / "media_uploads")
    media_base_url: str = "/media"
    media_upload_url: str = ""
    media_upload_preset: str = ""
    media_timeout_seconds: int = 15

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the signing-secret policy.

        Dev mode (DEBUG=true): auto-generate any missing secret with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject secrets shorter than 32 characters and reject an
            access secret equal to the refresh secret.
        """
        for field in ("access_token_secret", "refresh_token_secret"):
            if not getattr(self, field):
                if not self.debug:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, field, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Sessions will not persist across restarts.", field.upper())
            if len(getattr(self, field)) < 32:
                raise ValueError(f"{field.upper()} must be at least 32 characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        if self.access_token_expire_seconds <= 0 or self.refresh_token_expire_seconds <= 0:
            raise ValueError("Token lifetimes must be positive.")
        if self.media_backend not in ("local", "http"):
            raise ValueError("MEDIA_BACKEND must be 'local' or 'http'.")
        return self


@dataclass(frozen=True)
class TokenConfig:
    """Signing configuration injected into auth.tokens.TokenIssuer.

    TTLs are in seconds. Tests build this directly (often with a negative TTL
    to mint already-expired tokens) rather than going through Settings.
    """

    access_secret: str
    access_ttl: int
    refresh_secret: str
    refresh_ttl: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            access_secret=settings.access_token_secret,
            access_ttl=settings.access_token_expire_seconds,
            refresh_secret=settings.refresh_token_secret,
            refresh_ttl=settings.refresh_token_expire_seconds,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
