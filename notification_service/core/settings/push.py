"""Web Push (VAPID) settings.

Environment variables use PUSH_ prefix.
Example: PUSH_VAPID_PRIVATE_KEY=..., PUSH_VAPID_CONTACT=mailto:ops@example.com
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class PushSettings(BaseSettings):
    """Browser push delivery configuration."""

    vapid_public_key: str | None = Field(
        default=None,
        description="VAPID application server public key (URL-safe base64)",
    )
    vapid_private_key: SecretStr | None = Field(
        default=None,
        description="VAPID private key (PEM path or URL-safe base64)",
    )
    vapid_contact: str = Field(
        default="mailto:admin@example.com",
        description="Contact URI sent in the VAPID 'sub' claim",
    )

    ttl: int = Field(
        default=86400,
        ge=0,
        le=2_419_200,
        description="Seconds the push service should retain an undelivered message",
    )
    timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="HTTP timeout for a single push request",
    )

    subscription_retention_days: int = Field(
        default=30,
        ge=1,
        le=3650,
        description="Deactivate subscriptions not used within this many days",
    )
    purge_after_days: int = Field(
        default=90,
        ge=1,
        le=3650,
        description="Hard-delete subscriptions deactivated longer than this many days",
    )

    model_config = SettingsConfigDict(
        env_prefix="PUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def is_configured(self) -> bool:
        """Check if VAPID credentials are present."""
        return bool(self.vapid_public_key and self.vapid_private_key)
