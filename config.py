"""
Configuration settings for the instrument practice tracker.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    tracker_db_path: Path = Field(
        default=Path.home() / ".instrument-tracker" / "state.db",
        description="SQLite file holding the persisted tracker document",
    )
    tracker_storage_key: str = Field(
        default="instrument-tracker:v2",
        description="Key the document is stored under",
    )
    tracker_backup_dir: Path | None = Field(
        default=None,
        description="Directory for JSON backups (defaults to <db dir>/backups)",
    )
    tracker_catalog_file: Path | None = Field(
        default=None,
        description="Optional JSON catalog replacing the built-in instruments",
    )
    tracker_timezone: str | None = Field(
        default=None,
        description="IANA zone for local calendar days, e.g. America/Bogota (defaults to the system zone)",
    )

    # ========================================
    # Scoring heuristics
    # ========================================
    score_days_factor: float = Field(
        default=5.0,
        description="Points per day since the item was last studied",
    )
    score_month_target_minutes: float = Field(
        default=240.0,
        description="Monthly minutes below which an item gains priority",
    )
    score_month_factor: float = Field(
        default=0.10,
        description="Points per minute of shortfall against the monthly target",
    )
    score_weight_base: float = Field(
        default=0.7,
        description="Multiplier for weight 0",
    )
    score_weight_step: float = Field(
        default=0.16,
        description="Multiplier added per weight point",
    )
    score_repeat_penalty: float = Field(
        default=18.0,
        description="Penalty for the last pick while avoid-repeat is on",
    )
    score_avoid_last_penalty: float = Field(
        default=10.0,
        description="Extra penalty for the last pick when an alternate is requested",
    )
    score_jitter: float = Field(
        default=2.5,
        description="Upper bound of the random tie-breaking term",
    )
    score_never_studied_days: int = Field(
        default=999,
        description="Days used for items that were never studied",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging level for the CLI",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
