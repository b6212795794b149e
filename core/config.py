"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AssetDesk happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Two layers:
  Settings (BaseSettings): mutable, env-driven, validated once at startup.
      get_settings() caches a single instance (lru_cache), the FastAPI
      pattern for config.

  AuthConfig (frozen dataclass): the immutable slice of Settings that the
      token and hashing machinery needs. Built once via Settings.auth_config()
      and passed explicitly into TokenService / RefreshTokenLedger, so tests can
      construct alternate configs (other secrets, short lifetimes) without
      touching the environment.

Secret policy (model_validator):
  Production (DEBUG false): a missing JWT_SECRET or JWT_REFRESH_SECRET is a
      hard startup failure. Falling back to a baked-in default would let anyone
      who reads the source mint valid tokens.
  Development (DEBUG true): missing secrets are generated at random and a
      WARNING is logged. Tokens do not survive a restart.
  Both modes: secrets shorter than 32 characters are rejected, and the access
      and refresh secrets must differ so one token kind can never be replayed
      as the other.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("assetdesk.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'assetdesk.db'}"

MIN_SECRET_LENGTH = 32
MIN_BCRYPT_ROUNDS = 10
MAX_BCRYPT_ROUNDS = 16


@dataclass(frozen=True)
class AuthConfig:
    """Immutable signing and hashing parameters for the auth core.

    Constructed once at startup. Rotating either secret invalidates every
    outstanding token of that kind.
    """

    access_secret: str
    refresh_secret: str
    access_ttl_seconds: int = 86400
    refresh_ttl_seconds: int = 604800
    algorithm: str = "HS256"
    bcrypt_rounds: int = 12

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks.
        return (
            f"AuthConfig(algorithm={self.algorithm!r}, access_ttl_seconds={self.access_ttl_seconds}, "
            f"refresh_ttl_seconds={self.refresh_ttl_seconds}, bcrypt_rounds={self.bcrypt_rounds})"
        )


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. Field names map to upper-cased
    env vars (jwt_secret -> JWT_SECRET).
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
    # either generates a dev secret or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_expires_in: int = 86400  # 24 hours
    jwt_refresh_expires_in: int = 604800  # 7 days

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Session housekeeping
    # ------------------------------------------------------------------

    session_purge_interval_seconds: int = 6 * 60 * 60

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("jwt_expires_in", "jwt_refresh_expires_in", "session_purge_interval_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < MIN_BCRYPT_ROUNDS or v > MAX_BCRYPT_ROUNDS:
            raise ValueError(f"BCRYPT_ROUNDS must be between {MIN_BCRYPT_ROUNDS} and {MAX_BCRYPT_ROUNDS}")
        return v

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        if v.strip().upper() not in ("HS256", "HS384", "HS512"):
            raise ValueError("JWT_ALGORITHM must be one of HS256, HS384, HS512")
        return v.strip().upper()

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the signing-secret policy described in the module docstring."""
        for field_name in ("jwt_secret", "jwt_refresh_secret"):
            env_name = field_name.upper()
            if not getattr(self, field_name):
                if not self.debug:
                    raise ValueError(
                        f"{env_name} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, field_name, secrets.token_hex(32))
                logger.warning(
                    "WARNING: Using auto-generated %s. Tokens will not survive a restart.",
                    env_name,
                )
            if len(getattr(self, field_name)) < MIN_SECRET_LENGTH:
                raise ValueError(f"{env_name} must be at least {MIN_SECRET_LENGTH} characters.")
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ.")
        if self.jwt_refresh_expires_in <= self.jwt_expires_in:
            raise ValueError("JWT_REFRESH_EXPIRES_IN must be longer than JWT_EXPIRES_IN.")
        return self

    def auth_config(self) -> AuthConfig:
        """Freeze the auth-relevant settings into an AuthConfig value."""
        return AuthConfig(
            access_secret=self.jwt_secret,
            refresh_secret=self.jwt_refresh_secret,
            access_ttl_seconds=self.jwt_expires_in,
            refresh_ttl_seconds=self.jwt_refresh_expires_in,
            algorithm=self.jwt_algorithm,
            bcrypt_rounds=self.bcrypt_rounds,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
