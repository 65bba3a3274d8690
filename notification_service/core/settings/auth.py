"""Authentication settings for WebSocket handshake credentials."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """JWT verification settings.

    Environment variables use AUTH_ prefix.
    Example: AUTH_JWT_SECRET=change-me, AUTH_JWT_ALGORITHM=HS256
    """

    jwt_secret: SecretStr = Field(
        default=SecretStr("change-me-in-production"),
        description="Shared secret used to verify access tokens",
    )
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = Field(
        default="HS256",
        description="Signing algorithm expected on access tokens",
    )
    user_id_claim: str = Field(
        default="sub",
        min_length=1,
        description="Claim holding the user identifier",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
