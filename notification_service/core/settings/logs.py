"""Logging settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Where log records go and how they look.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON_LOGS=false,
    LOG_LIBRARY_LEVELS='{"aiosmtplib": "DEBUG"}'
    """

    service_name: str = Field(
        default="notification-service",
        description="Static `service` field on every JSON record",
    )
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(
        default=True,
        description="One JSON object per line; plain text when false",
    )
    include_context: bool = Field(
        default=True,
        description="Tag records with job/connection fields from the task context",
    )
    capture_warnings: bool = Field(
        default=True,
        description="Route `warnings.warn` output through logging",
    )

    # ──────────────────────────────────────────────────────────────
    # Handlers
    # ──────────────────────────────────────────────────────────────

    console_enabled: bool = Field(default=True, description="Write records to stderr")
    file_enabled: bool = Field(default=False, description="Also write to a rotating file")
    file_path: Path = Field(
        default=Path("logs/notification-service.log.jsonl"),
        description="Rotating log file, used only with file_enabled",
    )
    file_max_bytes: int = Field(
        default=10_485_760,  # 10 MiB
        ge=1024,
        le=1_073_741_824,
        description="Rotate once the file reaches this size",
    )
    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Rotated files kept on disk",
    )

    # ──────────────────────────────────────────────────────────────
    # Third-party loggers
    # ──────────────────────────────────────────────────────────────

    library_levels: dict[str, LogLevel] = Field(
        default_factory=lambda: {
            "aiosmtplib": "WARNING",
            "apscheduler": "WARNING",
            "sqlalchemy.engine": "WARNING",
        },
        description="Per-logger levels for chatty dependencies",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("library_levels", mode="before")
    @classmethod
    def normalize_library_levels(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {name: lvl.upper() if isinstance(lvl, str) else lvl for name, lvl in v.items()}
        return v

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Return kwargs for configure_logging()."""
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_logs,
            "include_context": self.include_context,
            "capture_warnings": self.capture_warnings,
            "console_enabled": self.console_enabled,
            "file_path": self.file_path if self.file_enabled else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "library_levels": dict(self.library_levels),
        }

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
