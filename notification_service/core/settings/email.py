"""Email channel (SMTP) settings."""

from __future__ import annotations

from pydantic import EmailStr, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    """SMTP relay used by the email channel.

    When ``enabled`` is false the orchestrator records email as skipped
    instead of queueing jobs that could never be delivered.

    Environment variables use EMAIL_ prefix.
    Example: EMAIL_ENABLED=true, EMAIL_SMTP_HOST=smtp.example.com, EMAIL_SMTP_PORT=465,
    EMAIL_USE_TLS=false, EMAIL_USE_SSL=true
    """

    enabled: bool = Field(default=False, description="Deliver the email channel")

    # ──────────────────────────────────────────────────────────────
    # Relay
    # ──────────────────────────────────────────────────────────────

    smtp_host: str = Field(default="localhost", min_length=1, max_length=255)
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_username: str | None = Field(default=None, max_length=255)
    smtp_password: SecretStr | None = None
    use_tls: bool = Field(default=True, description="STARTTLS after connecting (usually port 587)")
    use_ssl: bool = Field(default=False, description="Implicit TLS from the first byte (usually port 465)")
    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Seconds for connect, login and send together",
    )

    # ──────────────────────────────────────────────────────────────
    # Sender
    # ──────────────────────────────────────────────────────────────

    default_from_email: EmailStr = "noreply@example.com"
    default_from_name: str = Field(default="Notifications", max_length=100)

    @model_validator(mode="after")
    def check_transport(self) -> EmailSettings:
        if self.use_tls and self.use_ssl:
            msg = "use_tls and use_ssl are mutually exclusive"
            raise ValueError(msg)
        if (self.smtp_username is None) != (self.smtp_password is None):
            msg = "smtp_username and smtp_password must be set together"
            raise ValueError(msg)
        return self

    @property
    def requires_auth(self) -> bool:
        return self.smtp_username is not None

    @property
    def from_header(self) -> str:
        return f"{self.default_from_name} <{self.default_from_email}>"

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
