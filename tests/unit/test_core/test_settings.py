"""Tests for the settings models and cached loaders."""

from __future__ import annotations

from pydantic import ValidationError
import pytest

from notification_service.core.settings import (
    DispatchSettings,
    EmailSettings,
    NotificationSettings,
    PushSettings,
    clear_all_caches,
    get_dispatch_settings,
    get_logging_settings,
)


@pytest.mark.unit
class TestDispatchSettings:
    def test_defaults(self):
        settings = DispatchSettings()

        assert settings.max_attempts == 3
        assert settings.workers_per_channel == 4
        assert settings.fairness_interval == 8

    def test_backoff_cap_below_base_is_rejected(self):
        with pytest.raises(ValidationError, match="backoff_max"):
            DispatchSettings(backoff_base=10, backoff_max=5)

    def test_settings_are_frozen(self):
        settings = DispatchSettings()
        with pytest.raises(ValidationError):
            settings.max_attempts = 5

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_MAX_ATTEMPTS", "7")
        get_dispatch_settings.cache_clear()
        try:
            assert get_dispatch_settings().max_attempts == 7
        finally:
            get_dispatch_settings.cache_clear()


@pytest.mark.unit
def test_clear_all_caches_reloads_from_environment(monkeypatch):
    first = get_logging_settings()
    assert get_logging_settings() is first

    monkeypatch.setenv("LOG_LEVEL", "error")
    clear_all_caches()
    try:
        assert get_logging_settings().level == "ERROR"
    finally:
        monkeypatch.delenv("LOG_LEVEL")
        clear_all_caches()


@pytest.mark.unit
class TestNotificationSettings:
    def test_default_channels_are_deduplicated(self):
        settings = NotificationSettings(default_channels=["email", "push", "email"])
        assert settings.default_channels == ["email", "push"]

    def test_unknown_channel_is_rejected(self):
        with pytest.raises(ValidationError):
            NotificationSettings(default_channels=["sms"])

    def test_quiet_hours_format(self):
        with pytest.raises(ValidationError):
            NotificationSettings(quiet_hours_start="25:00")


@pytest.mark.unit
class TestEmailSettings:
    def test_tls_and_ssl_are_exclusive(self):
        with pytest.raises(ValidationError, match="mutually exclusive"):
            EmailSettings(use_tls=True, use_ssl=True)

    def test_credentials_come_in_pairs(self):
        with pytest.raises(ValidationError, match="together"):
            EmailSettings(smtp_username="mailer")

    def test_from_header(self):
        settings = EmailSettings(default_from_name="Alerts", default_from_email="alerts@example.com")
        assert settings.from_header == "Alerts <alerts@example.com>"


@pytest.mark.unit
def test_push_is_configured_only_with_both_keys():
    assert PushSettings(vapid_public_key="pub", vapid_private_key="priv").is_configured
    assert not PushSettings(vapid_public_key="pub", vapid_private_key=None).is_configured
