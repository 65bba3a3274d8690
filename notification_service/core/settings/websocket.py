"""Presence transport (WebSocket) settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WebSocketSettings(BaseSettings):
    """Limits and liveness checks for live notification connections.

    Environment variables use WS_ prefix.
    Example: WS_HEARTBEAT_INTERVAL=30, WS_MAX_CONNECTIONS_PER_USER=5
    """

    enabled: bool = Field(
        default=True,
        description="Mount the /ws notification stream",
    )

    # ──────────────────────────────────────────────────────────────
    # Admission
    # ──────────────────────────────────────────────────────────────

    max_connections: int = Field(
        default=10000,
        ge=1,
        le=100000,
        description="Connections accepted by this process before new ones get 1013",
    )
    max_connections_per_user: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Open tabs/devices allowed per user",
    )

    # ──────────────────────────────────────────────────────────────
    # Liveness
    # ──────────────────────────────────────────────────────────────

    heartbeat_interval: float = Field(
        default=30.0,
        ge=0,
        le=300,
        description="Seconds between server pings; 0 turns the per-connection heartbeat off",
    )
    connection_timeout: float = Field(
        default=60.0,
        ge=0,
        le=600,
        description="Drop a connection after this many seconds without a pong; 0 never drops",
    )

    model_config = SettingsConfigDict(
        env_prefix="WS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
