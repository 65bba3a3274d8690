"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from notification_service.core.settings.loader import get_dispatch_settings

    settings = get_dispatch_settings()  # First call: loads and validates
    settings = get_dispatch_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_dispatch_settings.cache_clear()

    Or construct settings directly and inject them:
    queue = DispatchQueue(settings=DispatchSettings(backoff_base=0.01))
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .auth import AuthSettings
from .database import DatabaseSettings
from .dispatch import DispatchSettings
from .email import EmailSettings
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .push import PushSettings
from .websocket import WebSocketSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Cached application settings.

    Every loader here follows the same contract: the first call reads the
    environment and .env once, validates, and returns a frozen instance that
    later calls share until ``cache_clear()``.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_dispatch_settings() -> DispatchSettings:
    """Cached dispatch queue settings."""
    return DispatchSettings()


@lru_cache(maxsize=1)
def get_websocket_settings() -> WebSocketSettings:
    """Cached WebSocket settings."""
    return WebSocketSettings()


@lru_cache(maxsize=1)
def get_push_settings() -> PushSettings:
    """Cached Web Push settings."""
    return PushSettings()


@lru_cache(maxsize=1)
def get_notification_settings() -> NotificationSettings:
    """Cached notification settings."""
    return NotificationSettings()


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    """Cached email settings."""
    return EmailSettings()


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    return AuthSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Cached logging settings."""
    return LoggingSettings()


def clear_all_caches() -> None:
    """Clear every cached settings instance (used by tests)."""
    for loader in (
        get_app_settings,
        get_db_settings,
        get_dispatch_settings,
        get_websocket_settings,
        get_push_settings,
        get_notification_settings,
        get_email_settings,
        get_auth_settings,
        get_logging_settings,
    ):
        loader.cache_clear()
