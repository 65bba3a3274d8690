"""Notification lifecycle and fan-out settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ChannelName = Literal["in_app", "push", "email"]


class NotificationSettings(BaseSettings):
    """Notification retention, fan-out defaults and maintenance sweeps.

    Environment variables use NOTIFY_ prefix.
    Example: NOTIFY_READ_RETENTION_DAYS=30
    """

    # ──────────────────────────────────────────────────────────────
    # Retention by status
    # ──────────────────────────────────────────────────────────────

    read_retention_days: int = Field(default=30, ge=1, le=3650)
    archived_retention_days: int = Field(default=90, ge=1, le=3650)
    deleted_retention_days: int = Field(default=7, ge=1, le=3650)

    # ──────────────────────────────────────────────────────────────
    # Preference defaults
    # ──────────────────────────────────────────────────────────────

    quiet_hours_start: str = Field(
        default="22:00",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Default quiet hours start (HH:MM)",
    )
    quiet_hours_end: str = Field(
        default="08:00",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Default quiet hours end (HH:MM)",
    )

    # ──────────────────────────────────────────────────────────────
    # Fan-out
    # ──────────────────────────────────────────────────────────────

    default_channels: list[ChannelName] = Field(
        default_factory=lambda: ["in_app", "push", "email"],
        description="Channels used when dispatch() is called without explicit channels",
    )
    in_app_fallback_queue: bool = Field(
        default=False,
        description="Queue in-app deliveries for offline recipients instead of skipping",
    )
    fallback_delay: float = Field(
        default=60.0,
        ge=0.0,
        description="Delay in seconds before an offline in-app delivery is retried",
    )

    # ──────────────────────────────────────────────────────────────
    # Maintenance
    # ──────────────────────────────────────────────────────────────

    sweep_enabled: bool = Field(default=True, description="Run periodic retention sweeps")
    sweep_interval_minutes: int = Field(default=60, ge=1, le=10080)
    digest_hour: int = Field(default=8, ge=0, le=23, description="UTC hour for daily and weekly digests")
    digest_weekday: Literal["mon", "tue", "wed", "thu", "fri", "sat", "sun"] = Field(
        default="mon", description="Day of week for weekly digests"
    )

    @field_validator("default_channels")
    @classmethod
    def dedupe_channels(cls, v: list[str]) -> list[str]:
        """Drop duplicate channel names, keeping first occurrence order."""
        return list(dict.fromkeys(v))

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
