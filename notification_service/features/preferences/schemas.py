"""Preference document schemas, defaults and coercion.

The stored document is a JSON blob. Reads merge it over the immutable
defaults; writes deep-merge the patch over the current document and coerce
every leaf of the wrong type back to its default before validation.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from functools import lru_cache
import re
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from notification_service.core.settings import get_notification_settings

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
_HHMM_RE = re.compile(HHMM_PATTERN)

CATEGORIES = ("likes", "comments", "follows", "uploads", "system", "marketing")
DIGEST_VALUES = ("daily", "weekly", "never")
CHANNEL_KEYS = ("email", "push", "in_app")
GLOBAL_TOGGLES = ("email_notifications", "push_notifications", "in_app_notifications")

# camelCase keys accepted on import for documents exported by older clients
_KEY_ALIASES = MappingProxyType(
    {
        "emailNotifications": "email_notifications",
        "pushNotifications": "push_notifications",
        "inAppNotifications": "in_app_notifications",
        "inApp": "in_app",
        "quietHours": "quiet_hours",
    }
)


class ChannelFlags(BaseModel):
    """Per-category channel switches."""

    model_config = ConfigDict(frozen=True)

    email: StrictBool = True
    push: StrictBool = True
    in_app: StrictBool = True


class QuietHours(BaseModel):
    """Daily window (UTC) during which only urgent categories are delivered."""

    model_config = ConfigDict(frozen=True)

    enabled: StrictBool = False
    start: str = Field(default="22:00", pattern=HHMM_PATTERN)
    end: str = Field(default="08:00", pattern=HHMM_PATTERN)


class Frequency(BaseModel):
    model_config = ConfigDict(frozen=True)

    digest: Literal["daily", "weekly", "never"] = "weekly"
    quiet_hours: QuietHours = QuietHours()


class NotificationPreferences(BaseModel):
    """A user's full preference document."""

    model_config = ConfigDict(frozen=True)

    email_notifications: StrictBool = True
    push_notifications: StrictBool = True
    in_app_notifications: StrictBool = True
    categories: dict[str, ChannelFlags] = Field(default_factory=dict)
    frequency: Frequency = Frequency()

    def category_flags(self, category: str) -> ChannelFlags | None:
        """Flags for a category, None when the category is unconfigured."""
        return self.categories.get(category)


DEFAULT_PREFERENCES = NotificationPreferences(
    categories={
        "likes": ChannelFlags(),
        "comments": ChannelFlags(),
        "follows": ChannelFlags(),
        "uploads": ChannelFlags(),
        "system": ChannelFlags(email=True, push=False, in_app=True),
        "marketing": ChannelFlags(email=False, push=False, in_app=False),
    },
)


class PreferencesExport(BaseModel):
    """Portable backup of one user's preferences."""

    user_id: str
    preferences: NotificationPreferences
    exported_at: datetime


class BulkUpdateResult(BaseModel):
    success: bool = True
    updated_count: int


# ──────────────────────────────────────────────────────────────
# Document helpers (pure)
# ──────────────────────────────────────────────────────────────


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` onto ``base`` without mutating either."""
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            result[key] = deep_merge(current, value)
        elif isinstance(value, Mapping):
            result[key] = deep_merge({}, value)
        else:
            result[key] = value
    return result


def normalize_keys(document: Any) -> Any:
    """Rename camelCase keys to their snake_case equivalents, recursively."""
    if isinstance(document, Mapping):
        return {
            _KEY_ALIASES.get(key, key): normalize_keys(value)
            for key, value in document.items()
        }
    return document


@lru_cache(maxsize=8)
def _with_quiet_window(start: str, end: str) -> NotificationPreferences:
    quiet = DEFAULT_PREFERENCES.frequency.quiet_hours.model_copy(update={"start": start, "end": end})
    frequency = DEFAULT_PREFERENCES.frequency.model_copy(update={"quiet_hours": quiet})
    return DEFAULT_PREFERENCES.model_copy(update={"frequency": frequency})


def default_preferences() -> NotificationPreferences:
    """Built-in defaults with the quiet-hours window from NOTIFY_QUIET_HOURS_START/END."""
    settings = get_notification_settings()
    return _with_quiet_window(settings.quiet_hours_start, settings.quiet_hours_end)


def defaults_document() -> dict[str, Any]:
    """Fresh mutable copy of the effective default document."""
    return default_preferences().model_dump()


def coerce_preferences(raw: Mapping[str, Any] | None) -> NotificationPreferences:
    """Merge ``raw`` over the defaults and repair invalid leaves.

    Non-boolean toggles fall back to their defaults, malformed quiet-hour
    times and digest values fall back to defaults, and every known category
    is present afterwards. Unknown categories are kept, with non-boolean
    flags treated as enabled.
    """
    defaults = defaults_document()
    merged = deep_merge(defaults, normalize_keys(raw or {}))

    for toggle in GLOBAL_TOGGLES:
        if not isinstance(merged.get(toggle), bool):
            merged[toggle] = defaults[toggle]

    categories = merged.get("categories")
    if not isinstance(categories, Mapping):
        categories = {}
    fixed_categories: dict[str, dict[str, bool]] = {}
    for name, flags in categories.items():
        flags = flags if isinstance(flags, Mapping) else {}
        fallback = defaults["categories"].get(name, {})
        fixed_categories[name] = {
            key: flags[key] if isinstance(flags.get(key), bool) else fallback.get(key, True)
            for key in CHANNEL_KEYS
        }
    for name in CATEGORIES:
        fixed_categories.setdefault(name, dict(defaults["categories"][name]))
    merged["categories"] = fixed_categories

    frequency = merged.get("frequency")
    frequency = dict(frequency) if isinstance(frequency, Mapping) else {}
    default_frequency = defaults["frequency"]
    if frequency.get("digest") not in DIGEST_VALUES:
        frequency["digest"] = default_frequency["digest"]

    quiet = frequency.get("quiet_hours")
    quiet = dict(quiet) if isinstance(quiet, Mapping) else {}
    default_quiet = default_frequency["quiet_hours"]
    if not isinstance(quiet.get("enabled"), bool):
        quiet["enabled"] = default_quiet["enabled"]
    for bound in ("start", "end"):
        value = quiet.get(bound)
        if not isinstance(value, str) or not _HHMM_RE.match(value):
            quiet[bound] = default_quiet[bound]
    frequency["quiet_hours"] = {k: quiet[k] for k in ("enabled", "start", "end")}
    merged["frequency"] = {"digest": frequency["digest"], "quiet_hours": frequency["quiet_hours"]}

    return NotificationPreferences.model_validate(
        {key: merged[key] for key in (*GLOBAL_TOGGLES, "categories", "frequency")}
    )
