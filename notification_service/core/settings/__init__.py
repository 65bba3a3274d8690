"""Modular Pydantic Settings v2 configuration.

Each concern has its own frozen settings model with an environment prefix:
APP_, DB_, DISPATCH_, WS_, PUSH_, NOTIFY_, EMAIL_, AUTH_, LOG_.

Import settings via cached loaders:
    from notification_service.core.settings import get_dispatch_settings
"""

from __future__ import annotations

from .app import AppSettings
from .auth import AuthSettings
from .database import DatabaseSettings
from .dispatch import DispatchSettings
from .email import EmailSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_auth_settings,
    get_db_settings,
    get_dispatch_settings,
    get_email_settings,
    get_logging_settings,
    get_notification_settings,
    get_push_settings,
    get_websocket_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .push import PushSettings
from .websocket import WebSocketSettings

__all__ = [
    "AppSettings",
    "AuthSettings",
    "DatabaseSettings",
    "DispatchSettings",
    "EmailSettings",
    "LoggingSettings",
    "NotificationSettings",
    "PushSettings",
    "WebSocketSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_auth_settings",
    "get_db_settings",
    "get_dispatch_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_push_settings",
    "get_websocket_settings",
]
