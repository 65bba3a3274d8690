"""Tests for the Web Push sender."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from pywebpush import WebPushException

from notification_service.core.settings import PushSettings
from notification_service.infra.push import PushOutcome, WebPushSender, classify_status

KEYS = {"p256dh": "client-public-key", "auth": "client-auth-secret"}


@pytest.fixture
def sender() -> WebPushSender:
    return WebPushSender(
        PushSettings(
            vapid_public_key="public-key",
            vapid_private_key="private-key",
            vapid_contact="mailto:ops@example.com",
        )
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (200, PushOutcome.SENT),
        (201, PushOutcome.SENT),
        (400, PushOutcome.EXPIRED),
        (404, PushOutcome.EXPIRED),
        (410, PushOutcome.EXPIRED),
        (413, PushOutcome.TOO_LARGE),
        (429, PushOutcome.TRANSIENT),
        (500, PushOutcome.TRANSIENT),
        (None, PushOutcome.TRANSIENT),
    ],
)
def test_classify_status(status_code, expected):
    assert classify_status(status_code) is expected


@pytest.mark.unit
class TestWebPushSender:
    @pytest.mark.asyncio
    async def test_sends_signed_message(self, sender):
        with patch(
            "notification_service.infra.push.sender.webpush",
            return_value=MagicMock(status_code=201),
        ) as mock_webpush:
            result = await sender.send("https://push.example/a", KEYS, {"title": "Hi"})

        assert result.ok
        assert result.status_code == 201
        kwargs = mock_webpush.call_args.kwargs
        assert kwargs["subscription_info"] == {"endpoint": "https://push.example/a", "keys": KEYS}
        assert kwargs["data"] == '{"title": "Hi"}'
        assert kwargs["vapid_private_key"] == "private-key"
        assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "expected"),
        [(410, PushOutcome.EXPIRED), (413, PushOutcome.TOO_LARGE), (503, PushOutcome.TRANSIENT)],
    )
    async def test_provider_rejection(self, sender, status_code, expected):
        error = WebPushException("Push failed", response=MagicMock(status_code=status_code))

        with patch("notification_service.infra.push.sender.webpush", side_effect=error):
            result = await sender.send("https://push.example/a", KEYS, {"title": "Hi"})

        assert result.outcome is expected
        assert result.status_code == status_code
        assert "Push failed" in result.error

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self, sender):
        with patch(
            "notification_service.infra.push.sender.webpush",
            side_effect=ConnectionError("reset by peer"),
        ):
            result = await sender.send("https://push.example/a", KEYS, {})

        assert result.outcome is PushOutcome.TRANSIENT
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_unconfigured_sender_does_not_call_provider(self):
        sender = WebPushSender(PushSettings(vapid_public_key=None, vapid_private_key=None))

        with patch("notification_service.infra.push.sender.webpush") as mock_webpush:
            result = await sender.send("https://push.example/a", KEYS, {})

        assert result.outcome is PushOutcome.TRANSIENT
        assert "not configured" in result.error
        mock_webpush.assert_not_called()
