"""Tests for the SMTP sender."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest

from notification_service.core.exceptions import (
    TerminalDeliveryFailure,
    TransientDeliveryFailure,
)
from notification_service.core.settings import EmailSettings
from notification_service.infra.email import SMTPEmailSender


@pytest.fixture
def settings() -> EmailSettings:
    return EmailSettings(
        enabled=True,
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_username="mailer",
        smtp_password="secret",
        default_from_email="noreply@example.com",
        default_from_name="Example",
    )


@pytest.fixture
def smtp() -> MagicMock:
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.login = AsyncMock()
    client.send_message = AsyncMock()
    return client


@pytest.mark.unit
class TestBuildMessage:
    def test_text_only(self, settings):
        message = SMTPEmailSender(settings).build_message("one@example.com", "Hi", "Body")

        assert message["From"] == "Example <noreply@example.com>"
        assert message["To"] == "one@example.com"
        assert message["Subject"] == "Hi"
        assert message["Message-ID"].endswith("@smtp.example.com>")
        assert [part.get_content_type() for part in message.get_payload()] == ["text/plain"]

    def test_html_alternative(self, settings):
        message = SMTPEmailSender(settings).build_message("one@example.com", "Hi", "Body", "<p>Body</p>")

        assert [part.get_content_type() for part in message.get_payload()] == [
            "text/plain",
            "text/html",
        ]

    def test_enabled_follows_settings(self):
        assert SMTPEmailSender(EmailSettings(enabled=False)).enabled is False


@pytest.mark.unit
class TestSend:
    @pytest.mark.asyncio
    async def test_logs_in_and_sends(self, settings, smtp):
        with patch(
            "notification_service.infra.email.sender.aiosmtplib.SMTP", return_value=smtp
        ) as mock_smtp:
            message_id = await SMTPEmailSender(settings).send("one@example.com", "Hi", "Body")

        assert mock_smtp.call_args.kwargs["start_tls"] is True
        assert mock_smtp.call_args.kwargs["use_tls"] is False
        smtp.login.assert_awaited_once_with("mailer", "secret")
        sent = smtp.send_message.await_args.args[0]
        assert sent["Message-ID"] == message_id

    @pytest.mark.asyncio
    async def test_no_login_without_credentials(self, smtp):
        settings = EmailSettings(enabled=True, use_tls=False, smtp_port=25)

        with patch("notification_service.infra.email.sender.aiosmtplib.SMTP", return_value=smtp):
            await SMTPEmailSender(settings).send("one@example.com", "Hi", "Body")

        smtp.login.assert_not_awaited()
        smtp.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (aiosmtplib.SMTPAuthenticationError(535, "bad credentials"), TerminalDeliveryFailure),
            (aiosmtplib.SMTPServerDisconnected("gone"), TransientDeliveryFailure),
            (TimeoutError("slow"), TransientDeliveryFailure),
            (OSError("unreachable"), TransientDeliveryFailure),
        ],
    )
    async def test_failures_are_classified(self, settings, smtp, error, expected):
        smtp.send_message.side_effect = error

        with (
            patch("notification_service.infra.email.sender.aiosmtplib.SMTP", return_value=smtp),
            pytest.raises(expected) as exc_info,
        ):
            await SMTPEmailSender(settings).send("one@example.com", "Hi", "Body")

        assert exc_info.value.channel == "email"
