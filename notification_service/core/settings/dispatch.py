"""Dispatch queue settings."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DispatchSettings(BaseSettings):
    """Priority dispatch queue and worker pool settings.

    Environment variables use DISPATCH_ prefix.
    Example: DISPATCH_MAX_ATTEMPTS=3, DISPATCH_WORKERS_PER_CHANNEL=4
    """

    # ──────────────────────────────────────────────────────────────
    # Retry policy (shared by every tier)
    # ──────────────────────────────────────────────────────────────

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Attempts per job before it is terminally failed",
    )

    backoff_base: float = Field(
        default=5.0,
        ge=0.0,
        le=3600.0,
        description="Base delay in seconds for exponential backoff (base * 2**(attempt-1))",
    )

    backoff_max: float = Field(
        default=300.0,
        ge=0.0,
        le=86400.0,
        description="Upper bound for a single backoff delay in seconds",
    )

    # ──────────────────────────────────────────────────────────────
    # Tier delays
    # ──────────────────────────────────────────────────────────────

    high_delay: float = Field(default=0.0, ge=0.0, description="Default delay for HIGH jobs")
    normal_delay: float = Field(default=0.0, ge=0.0, description="Default delay for NORMAL jobs")
    low_delay: float = Field(default=0.0, ge=0.0, description="Default delay for LOW jobs")

    batch_delay: float = Field(
        default=300.0,
        ge=0.0,
        description="Delay applied by the delay_batch preset (LOW tier)",
    )

    # ──────────────────────────────────────────────────────────────
    # Retention and workers
    # ──────────────────────────────────────────────────────────────

    completed_retention: int = Field(
        default=50,
        ge=0,
        le=10000,
        description="Completed jobs kept per channel for inspection",
    )

    failed_retention: int = Field(
        default=100,
        ge=0,
        le=10000,
        description="Failed jobs kept per channel for inspection",
    )

    workers_per_channel: int = Field(
        default=4,
        ge=1,
        le=256,
        description="Concurrent workers serving each channel",
    )

    fairness_interval: int = Field(
        default=8,
        ge=1,
        le=1000,
        description="Every Nth pick serves the oldest eligible job regardless of tier",
    )

    @model_validator(mode="after")
    def validate_backoff(self) -> DispatchSettings:
        """Ensure the backoff cap is not below the base delay."""
        if self.backoff_max < self.backoff_base:
            msg = "backoff_max must be greater than or equal to backoff_base"
            raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
