"""SMTP email delivery.

Usage:
    from notification_service.infra.email import SMTPEmailSender

    sender = SMTPEmailSender(get_email_settings())
    if sender.enabled:
        message_id = await sender.send("user@example.com", "Hello", "Welcome!")
"""

from __future__ import annotations

from .sender import SMTPEmailSender

__all__ = ["SMTPEmailSender"]
