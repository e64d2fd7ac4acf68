"""
VibePlan — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the VibePlan consensus service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Storage backend selection
    # ------------------------------------------------------------------ #
    # "auto" picks sql -> redis -> memory based on which credentials exist.
    STORAGE_BACKEND: Literal["auto", "sql", "redis", "memory"] = "auto"
    STORAGE_TIMEOUT_SECONDS: float = 5.0

    # ------------------------------------------------------------------ #
    # Relational tier – PostgreSQL via asyncpg
    # ------------------------------------------------------------------ #
    DATABASE_URL: str = ""

    # ------------------------------------------------------------------ #
    # Key-value tier – Redis
    # ------------------------------------------------------------------ #
    REDIS_URL: str = ""
    REDIS_KEY_PREFIX: str = "vibe"
    REDIS_KEY_TTL_SECONDS: int = 7 * 24 * 3600

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #
    SESSION_TTL_HOURS: int = 48
    INVITE_TOKEN_LENGTH: int = 12
    TOKEN_GENERATION_ATTEMPTS: int = 5
    PUBLIC_BASE_URL: str = ""

    # ------------------------------------------------------------------ #
    # Group decision rules
    # ------------------------------------------------------------------ #
    PROVISIONAL_QUORUM: int = 2
    FINAL_CONFIDENCE_THRESHOLD: float = 0.70
    MAX_SUGGESTIONS: int = 5

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def resolved_backend(self) -> str:
        """The backend ``STORAGE_BACKEND`` resolves to.

        ``auto`` follows the durability priority: a configured database
        wins over Redis, and Redis wins over the in-process store.
        """
        if self.STORAGE_BACKEND != "auto":
            return self.STORAGE_BACKEND
        if self.DATABASE_URL:
            return "sql"
        if self.REDIS_URL:
            return "redis"
        return "memory"

    @field_validator("FINAL_CONFIDENCE_THRESHOLD")
    @classmethod
    def _threshold_must_be_between_0_and_1(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"Threshold must be between 0 and 1, got {v}")
        return v

    @field_validator(
        "STORAGE_TIMEOUT_SECONDS",
        "SESSION_TTL_HOURS",
        "INVITE_TOKEN_LENGTH",
        "TOKEN_GENERATION_ATTEMPTS",
        "PROVISIONAL_QUORUM",
        "MAX_SUGGESTIONS",
    )
    @classmethod
    def _must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from vibeplan.config import get_settings
        settings = get_settings()
    """
    return Settings()
