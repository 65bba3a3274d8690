"""Preference and quiet-hours policy engine.

``evaluate`` is a pure function of (preferences, category, channel, now).
``PolicyEngine`` adds the store lookup and the fail-open rule: if the
preferences cannot be read, delivery is allowed and the failure is logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, time
from enum import StrEnum
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from notification_service.core.exceptions import PolicyEvaluationFailure
from notification_service.features.preferences.repository import (
    PreferenceRepository,
    get_preference_repository,
)
from notification_service.features.preferences.schemas import (
    NotificationPreferences,
    QuietHours,
    coerce_preferences,
)
from notification_service.infra.dispatch.jobs import Channel
from notification_service.infra.metrics.prometheus import notification_policy_failures_total

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

CATEGORY_MAP = MappingProxyType(
    {
        "like": "likes",
        "comment": "comments",
        "follow": "follows",
        "upload": "uploads",
        "content": "uploads",
        "security": "system",
        "admin": "system",
        "maintenance": "system",
        "announcement": "system",
        "newsletter": "marketing",
    }
)

URGENT_CATEGORIES = frozenset({"system", "security"})

_GLOBAL_TOGGLE = MappingProxyType(
    {
        Channel.EMAIL: "email_notifications",
        Channel.PUSH: "push_notifications",
        Channel.IN_APP: "in_app_notifications",
    }
)


class DenialReason(StrEnum):
    CHANNEL_DISABLED = "channel_disabled"
    CATEGORY_DISABLED = "category_disabled"
    QUIET_HOURS = "quiet_hours"


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    allowed: bool
    reason: DenialReason | None = None


ALLOW = PolicyDecision(allowed=True)


def normalize_category(type_or_category: str) -> str:
    """Map a notification type to its preference category.

    Unmapped values pass through unchanged.
    """
    return CATEGORY_MAP.get(type_or_category, type_or_category)


def is_urgent(category: str) -> bool:
    """Urgent categories bypass quiet hours."""
    return category in URGENT_CATEGORIES or normalize_category(category) in URGENT_CATEGORIES


def minute_of_day(value: str | time | datetime) -> int:
    """Minutes since midnight for "HH:MM" strings, times and datetimes."""
    if isinstance(value, str):
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)
    return value.hour * 60 + value.minute


def is_in_quiet_hours(quiet_hours: QuietHours, now: datetime | time) -> bool:
    """Whether ``now`` falls inside an enabled quiet-hours window.

    ``start == end`` is an empty window. ``start < end`` is a same-day window
    ``[start, end)``; ``start > end`` wraps midnight, so the window is
    ``now >= start or now < end``. Aware datetimes are compared in UTC.
    """
    if not quiet_hours.enabled:
        return False

    if isinstance(now, datetime) and now.tzinfo is not None:
        now = now.astimezone(UTC)

    start = minute_of_day(quiet_hours.start)
    end = minute_of_day(quiet_hours.end)
    current = minute_of_day(now)

    if start == end:
        return False
    if start < end:
        return start <= current < end
    return current >= start or current < end


def evaluate(
    preferences: NotificationPreferences,
    category: str,
    channel: Channel | str,
    now: datetime | time,
) -> PolicyDecision:
    """Decide whether ``channel`` may deliver a ``category`` notification now.

    Checks, in order: the channel's global toggle, the category flag for the
    channel (unconfigured categories are allowed), then quiet hours for
    non-urgent categories.
    """
    channel = Channel(channel)
    category = normalize_category(category)

    if not getattr(preferences, _GLOBAL_TOGGLE[channel]):
        return PolicyDecision(False, DenialReason.CHANNEL_DISABLED)

    flags = preferences.category_flags(category)
    if flags is not None and getattr(flags, channel.value) is False:
        return PolicyDecision(False, DenialReason.CATEGORY_DISABLED)

    if not is_urgent(category) and is_in_quiet_hours(preferences.frequency.quiet_hours, now):
        return PolicyDecision(False, DenialReason.QUIET_HOURS)

    return ALLOW


class PolicyEngine:
    """Store-backed policy evaluation with fail-open semantics."""

    def __init__(self, repository: PreferenceRepository | None = None) -> None:
        self._repository = repository or get_preference_repository()

    async def load_preferences(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> NotificationPreferences | None:
        """Load a user's effective preferences.

        Returns:
            The merged document, or None when the store could not be read
            (callers treat None as allow-all).
        """
        try:
            document = await self._repository.get_document(session, user_id)
        except Exception as exc:
            failure = PolicyEvaluationFailure(user_id, exc)
            notification_policy_failures_total.inc()
            logger.warning(
                "Preference lookup failed; allowing delivery",
                extra={"user_id": user_id, "error": str(failure)},
                exc_info=exc,
            )
            return None
        return coerce_preferences(document)

    async def is_allowed(
        self,
        session: AsyncSession,
        user_id: str,
        category: str,
        channel: Channel | str,
        now: datetime | None = None,
    ) -> bool:
        """Store-backed ``evaluate``; True when preferences cannot be read."""
        preferences = await self.load_preferences(session, user_id)
        if preferences is None:
            return True
        return evaluate(preferences, category, channel, now or datetime.now(UTC)).allowed


_policy_engine: PolicyEngine | None = None


def get_policy_engine() -> PolicyEngine:
    """Get the shared policy engine."""
    global _policy_engine
    if _policy_engine is None:
        _policy_engine = PolicyEngine()
    return _policy_engine
