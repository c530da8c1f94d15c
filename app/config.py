"""
TPCS-DIFA — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.services.scoring_variants import TIE_BREAK_DIMENSIONS, VARIANTS


class Settings(BaseSettings):
    """Central configuration for the TPCS-DIFA scoring service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Scoring
    # ------------------------------------------------------------------ #
    SCORING_VARIANT: str = "tpcs_difa"
    TIE_BREAK_ORDER: Optional[list[int]] = None  # e.g. [5, 6]; None keeps the variant's
    CLAMP_MIRROR_CONSISTENCY: bool = False

    # ------------------------------------------------------------------ #
    # Email – Resend HTTP API
    # ------------------------------------------------------------------ #
    RESEND_API_KEY: str = ""
    FROM_EMAIL: str = ""  # e.g. "DIFA <startdifa@gmail.com>"
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

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
    def email_enabled(self) -> bool:
        return bool(self.RESEND_API_KEY and self.FROM_EMAIL)

    @field_validator("SCORING_VARIANT")
    @classmethod
    def _variant_must_be_registered(cls, v: str) -> str:
        if v not in VARIANTS:
            raise ValueError(f"Unknown scoring variant {v!r}; expected one of {sorted(VARIANTS)}")
        return v

    @field_validator("TIE_BREAK_ORDER")
    @classmethod
    def _tie_break_must_use_d5_or_d6(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        if v is None:
            return v
        if not all(d in TIE_BREAK_DIMENSIONS for d in v) or len(set(v)) != len(v):
            raise ValueError(f"TIE_BREAK_ORDER must list distinct dimensions from 5, 6; got {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalise_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL {v!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from app.config import get_settings
        settings = get_settings()
    """
    return Settings()
