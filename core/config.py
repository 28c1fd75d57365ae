"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Conduit happen here. No module should
call os.getenv() or os.environ.get() directly.

Design patterns used:
  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  Frozen config structs: Settings is read once at application assembly and
      projected into TokenConfig / KdfConfig. Those are frozen dataclasses
      handed to service constructors -- services never call get_settings()
      themselves, so tests can build them with any values.

  @model_validator(mode="after"): dev mode generates a signing key with a
      warning, production mode refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS512 signing relies
  on key entropy -- a short key weakens every token.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("conduit.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'conduit.db'}"


@dataclass(frozen=True)
class TokenConfig:
    """Signing material for the token service. Built once, never mutated."""

    secret: str
    issuer: str
    ttl_seconds: int


@dataclass(frozen=True)
class KdfConfig:
    """Cost parameters for password key derivation."""

    rounds: int = 64
    key_length: int = 64
    salt_length: int = 16


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_issuer: str = "conduit"
    token_expire_seconds: int = Field(default=30 * 24 * 3600, gt=0)

    # ------------------------------------------------------------------
    # Password key derivation
    # ------------------------------------------------------------------

    kdf_rounds: int = Field(default=64, ge=1)
    kdf_key_length: int = Field(default=64, ge=16, le=512)
    salt_length: int = Field(default=16, ge=16)

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the signing key policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if JWT_SECRET is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    def token_config(self) -> TokenConfig:
        return TokenConfig(
            secret=self.jwt_secret,
            issuer=self.jwt_issuer,
            ttl_seconds=self.token_expire_seconds,
        )

    def kdf_config(self) -> KdfConfig:
        return KdfConfig(
            rounds=self.kdf_rounds,
            key_length=self.kdf_key_length,
            salt_length=self.salt_length,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings, instantiated once at first call.

    Only the application lifespan calls this. In tests: call
    get_settings.cache_clear() between cases if you need to inject
    different environment variables.
    """
    return Settings()
