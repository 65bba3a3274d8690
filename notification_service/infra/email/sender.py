"""SMTP email sender using aiosmtplib.

Supports STARTTLS (port 587), implicit TLS (port 465) and plain SMTP, with
optional authentication. Failures are classified for the dispatch queue:
rejected credentials or recipients are terminal, everything else transient.

Usage:
    sender = SMTPEmailSender(get_email_settings())
    message_id = await sender.send("user@example.com", "Subject", "Body")
"""

from __future__ import annotations

from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging
import ssl
from typing import TYPE_CHECKING
import uuid

import aiosmtplib

from notification_service.core.exceptions import (
    TerminalDeliveryFailure,
    TransientDeliveryFailure,
)

if TYPE_CHECKING:
    from notification_service.core.settings.email import EmailSettings

logger = logging.getLogger(__name__)


class SMTPEmailSender:
    """Send single-recipient messages over SMTP."""

    def __init__(self, settings: EmailSettings) -> None:
        self._settings = settings
        logger.info(
            "SMTP sender initialized",
            extra={
                "host": settings.smtp_host,
                "port": settings.smtp_port,
                "use_tls": settings.use_tls,
                "use_ssl": settings.use_ssl,
            },
        )

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def _create_ssl_context(self) -> ssl.SSLContext | None:
        if not (self._settings.use_tls or self._settings.use_ssl):
            return None
        return ssl.create_default_context()

    def build_message(
        self,
        to: str,
        subject: str,
        body_text: str,
        body_html: str | None = None,
    ) -> MIMEMultipart:
        """Build the MIME message (text, plus HTML alternative when given)."""
        message = MIMEMultipart("alternative")
        message["From"] = self._settings.from_header
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = f"<{uuid.uuid4()}@{self._settings.smtp_host}>"
        message["Date"] = datetime.now(UTC).strftime("%a, %d %b %Y %H:%M:%S +0000")
        message.attach(MIMEText(body_text, "plain", "utf-8"))
        if body_html:
            message.attach(MIMEText(body_html, "html", "utf-8"))
        return message

    async def send(
        self,
        to: str,
        subject: str,
        body_text: str,
        body_html: str | None = None,
    ) -> str:
        """Send one message.

        Returns:
            The generated Message-ID.

        Raises:
            TerminalDeliveryFailure: Authentication failed or the recipient was refused.
            TransientDeliveryFailure: Connection problems, timeouts and other SMTP errors.
        """
        settings = self._settings
        message = self.build_message(to, subject, body_text, body_html)
        message_id = message["Message-ID"]

        smtp = aiosmtplib.SMTP(
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            use_tls=settings.use_ssl,
            start_tls=settings.use_tls,
            tls_context=self._create_ssl_context(),
            timeout=settings.timeout,
        )

        try:
            async with smtp:
                if settings.requires_auth:
                    password = settings.smtp_password.get_secret_value() if settings.smtp_password else ""
                    await smtp.login(settings.smtp_username or "", password)
                await smtp.send_message(message)
        except aiosmtplib.SMTPAuthenticationError as e:
            raise TerminalDeliveryFailure(f"SMTP authentication failed: {e}", channel="email") from e
        except aiosmtplib.SMTPRecipientsRefused as e:
            raise TerminalDeliveryFailure(f"Recipient refused: {e}", channel="email") from e
        except aiosmtplib.SMTPConnectError as e:
            raise TransientDeliveryFailure(f"SMTP connection failed: {e}", channel="email") from e
        except aiosmtplib.SMTPException as e:
            raise TransientDeliveryFailure(f"SMTP error: {e}", channel="email") from e
        except (OSError, TimeoutError) as e:
            raise TransientDeliveryFailure(f"SMTP transport error: {e}", channel="email") from e

        logger.debug("Email sent", extra={"message_id": message_id, "to": to})
        return message_id
