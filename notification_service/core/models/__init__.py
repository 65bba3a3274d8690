"""Database models package.

``load_models()`` imports every model module so ``Base.metadata`` is
complete for Alembic autogeneration and SQLite ``create_all``.
"""

from __future__ import annotations

import importlib

from .user import User

_FEATURE_MODEL_MODULES = (
    "notification_service.features.notifications.models",
    "notification_service.features.preferences.models",
    "notification_service.features.push.models",
)


def load_models() -> None:
    """Import all feature model modules (idempotent)."""
    for module_name in _FEATURE_MODEL_MODULES:
        importlib.import_module(module_name)


__all__ = ["User", "load_models"]
