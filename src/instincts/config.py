"""Settings for the instinct store command line.

Environment variables use the INSTINCTS_ prefix:
    INSTINCTS_STORE_PATH: JSON document to operate on
        (default: ~/.claude/instincts/mobile-instincts.json)
    INSTINCTS_STRICT_LOAD: raise on a corrupt store file instead of
        starting over from an empty document (default: false)
    INSTINCTS_DECAY_DAYS: idle days before confidence decays (default: 30)
    INSTINCTS_HIGH_CONFIDENCE_THRESHOLD: cut-off for "high" queries (default: 0.7)
    INSTINCTS_LOG_LEVEL: logging level name (default: WARNING)

The core store never reads these itself; callers pass the resolved path in.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_store_path() -> Path:
    return Path.home() / ".claude" / "instincts" / "mobile-instincts.json"


class InstinctSettings(BaseSettings):
    """Instinct store settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="INSTINCTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    store_path: Path = Field(default_factory=_default_store_path)
    strict_load: bool = False
    decay_days: float = Field(default=30, gt=0)
    high_confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


@lru_cache
def get_settings() -> InstinctSettings:
    """Get cached settings instance."""
    return InstinctSettings()
