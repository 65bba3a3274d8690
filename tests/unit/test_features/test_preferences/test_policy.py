"""Unit tests for the preference and quiet-hours policy engine."""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from notification_service.features.preferences.policy import (
    DenialReason,
    PolicyEngine,
    evaluate,
    is_in_quiet_hours,
    is_urgent,
    minute_of_day,
    normalize_category,
)
from notification_service.features.preferences.schemas import (
    DEFAULT_PREFERENCES,
    QuietHours,
    coerce_preferences,
)
from notification_service.infra.dispatch import Channel


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 14, hour, minute, tzinfo=UTC)


def prefs_with_quiet_hours(start: str, end: str, **overrides):
    return coerce_preferences(
        {
            "frequency": {"quiet_hours": {"enabled": True, "start": start, "end": end}},
            **overrides,
        }
    )


@pytest.mark.unit
class TestNormalizeCategory:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("like", "likes"),
            ("comment", "comments"),
            ("follow", "follows"),
            ("upload", "uploads"),
            ("content", "uploads"),
            ("security", "system"),
            ("admin", "system"),
            ("maintenance", "system"),
            ("announcement", "system"),
            ("newsletter", "marketing"),
        ],
    )
    def test_known_types_map_to_categories(self, value: str, expected: str):
        assert normalize_category(value) == expected

    def test_unknown_type_passes_through(self):
        assert normalize_category("custom_thing") == "custom_thing"
        assert normalize_category("likes") == "likes"

    def test_urgent_categories(self):
        assert is_urgent("system")
        assert is_urgent("security")
        assert is_urgent("admin")
        assert not is_urgent("marketing")
        assert not is_urgent("comment")


@pytest.mark.unit
class TestQuietHours:
    """Quiet hours are [start, end), wrapping midnight when start > end."""

    def test_minute_of_day(self):
        assert minute_of_day("00:00") == 0
        assert minute_of_day("22:30") == 22 * 60 + 30
        assert minute_of_day(time(7, 15)) == 7 * 60 + 15
        assert minute_of_day(at(13, 5)) == 13 * 60 + 5

    @pytest.mark.parametrize(
        ("hour", "minute", "inside"),
        [
            (23, 30, True),
            (7, 0, True),
            (22, 0, True),
            (0, 0, True),
            (8, 0, False),
            (14, 0, False),
            (21, 59, False),
        ],
    )
    def test_window_wrapping_midnight(self, hour: int, minute: int, inside: bool):
        quiet = QuietHours(enabled=True, start="22:00", end="08:00")
        assert is_in_quiet_hours(quiet, at(hour, minute)) is inside

    @pytest.mark.parametrize(
        ("hour", "inside"),
        [(13, True), (14, True), (15, False), (16, False), (12, False)],
    )
    def test_same_day_window(self, hour: int, inside: bool):
        quiet = QuietHours(enabled=True, start="13:00", end="15:00")
        assert is_in_quiet_hours(quiet, at(hour)) is inside

    def test_equal_bounds_is_empty_window(self):
        quiet = QuietHours(enabled=True, start="09:00", end="09:00")
        assert not is_in_quiet_hours(quiet, at(9))
        assert not is_in_quiet_hours(quiet, at(21))

    def test_disabled_window_never_matches(self):
        quiet = QuietHours(enabled=False, start="00:00", end="23:59")
        assert not is_in_quiet_hours(quiet, at(12))

    def test_aware_datetimes_are_compared_in_utc(self):
        """23:30 at UTC+2 is 21:30 UTC, outside a 22:00-08:00 window."""
        quiet = QuietHours(enabled=True, start="22:00", end="08:00")
        local = datetime(2026, 3, 14, 23, 30, tzinfo=timezone(timedelta(hours=2)))
        assert not is_in_quiet_hours(quiet, local)

    def test_accepts_plain_time(self):
        quiet = QuietHours(enabled=True, start="22:00", end="08:00")
        assert is_in_quiet_hours(quiet, time(23, 0))


@pytest.mark.unit
class TestEvaluate:
    def test_defaults_allow_regular_categories_everywhere(self):
        for channel in Channel:
            assert evaluate(DEFAULT_PREFERENCES, "comment", channel, at(12)).allowed

    def test_default_marketing_is_denied_on_every_channel(self):
        for channel in Channel:
            decision = evaluate(DEFAULT_PREFERENCES, "newsletter", channel, at(12))
            assert not decision.allowed
            assert decision.reason is DenialReason.CATEGORY_DISABLED

    def test_default_system_push_is_denied(self):
        assert not evaluate(DEFAULT_PREFERENCES, "security", Channel.PUSH, at(12)).allowed
        assert evaluate(DEFAULT_PREFERENCES, "security", Channel.EMAIL, at(12)).allowed

    def test_global_toggle_denies_every_category(self):
        prefs = coerce_preferences({"email_notifications": False})
        for category in ("likes", "comments", "system", "custom"):
            decision = evaluate(prefs, category, Channel.EMAIL, at(12))
            assert not decision.allowed
            assert decision.reason is DenialReason.CHANNEL_DISABLED
        assert evaluate(prefs, "comments", Channel.IN_APP, at(12)).allowed

    def test_category_flag_is_per_channel(self):
        prefs = coerce_preferences({"categories": {"likes": {"email": False}}})
        assert not evaluate(prefs, "like", Channel.EMAIL, at(12)).allowed
        assert evaluate(prefs, "like", Channel.PUSH, at(12)).allowed
        assert evaluate(prefs, "like", Channel.IN_APP, at(12)).allowed

    def test_unconfigured_category_is_allowed(self):
        assert evaluate(DEFAULT_PREFERENCES, "mentions", "email", at(12)).allowed

    def test_quiet_hours_deny_non_urgent(self):
        prefs = prefs_with_quiet_hours("22:00", "08:00")
        decision = evaluate(prefs, "comment", Channel.PUSH, at(23, 30))
        assert not decision.allowed
        assert decision.reason is DenialReason.QUIET_HOURS
        assert evaluate(prefs, "comment", Channel.PUSH, at(14)).allowed

    def test_urgent_categories_bypass_quiet_hours(self):
        prefs = prefs_with_quiet_hours("22:00", "08:00")
        assert evaluate(prefs, "security", Channel.EMAIL, at(23, 30)).allowed
        assert evaluate(prefs, "system", Channel.IN_APP, at(3)).allowed

    def test_global_toggle_is_checked_before_quiet_hours(self):
        prefs = prefs_with_quiet_hours("22:00", "08:00", push_notifications=False)
        decision = evaluate(prefs, "comment", Channel.PUSH, at(23))
        assert decision.reason is DenialReason.CHANNEL_DISABLED


@pytest.mark.unit
class TestPolicyEngine:
    @pytest.mark.asyncio
    async def test_missing_document_uses_defaults(self):
        repository = MagicMock()
        repository.get_document = AsyncMock(return_value=None)
        engine = PolicyEngine(repository)

        prefs = await engine.load_preferences(MagicMock(), "user-1")
        assert prefs == DEFAULT_PREFERENCES
        assert not await engine.is_allowed(MagicMock(), "user-1", "newsletter", "email", at(12))

    @pytest.mark.asyncio
    async def test_store_failure_fails_open(self):
        repository = MagicMock()
        repository.get_document = AsyncMock(side_effect=RuntimeError("db down"))
        engine = PolicyEngine(repository)

        assert await engine.load_preferences(MagicMock(), "user-1") is None
        # Even a category that is denied by default is allowed when the store is down
        assert await engine.is_allowed(MagicMock(), "user-1", "newsletter", "email", at(12))

    @pytest.mark.asyncio
    async def test_stored_document_is_respected(self):
        repository = MagicMock()
        repository.get_document = AsyncMock(return_value={"in_app_notifications": False})
        engine = PolicyEngine(repository)

        assert not await engine.is_allowed(MagicMock(), "user-1", "comment", "in_app", at(12))
        assert await engine.is_allowed(MagicMock(), "user-1", "comment", "email", at(12))
