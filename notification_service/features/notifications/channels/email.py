"""Email channel: send a job to the recipient's address over SMTP."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notification_service.core.exceptions import TerminalDeliveryFailure
from notification_service.infra.dispatch import Channel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notification_service.core.repositories import UserRepository
    from notification_service.infra.dispatch import DeliveryJob
    from notification_service.infra.email.sender import SMTPEmailSender

logger = logging.getLogger(__name__)


class EmailChannel:
    """Queue consumer for the email channel."""

    channel = Channel.EMAIL

    def __init__(
        self,
        sender: SMTPEmailSender,
        users: UserRepository,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._sender = sender
        self._users = users
        self._session_factory = session_factory

    async def deliver(self, job: DeliveryJob) -> None:
        if not self._sender.enabled:
            raise TerminalDeliveryFailure("Email delivery is disabled", channel=self.channel.value)

        recipient_id = job.payload["recipient_id"]
        async with self._session_factory() as session:
            address = await self._users.get_email(session, recipient_id)
        if not address:
            raise TerminalDeliveryFailure(
                f"No email address for user {recipient_id}", channel=self.channel.value
            )

        message_id = await self._sender.send(
            address,
            job.payload.get("title", ""),
            job.payload.get("body", "") or job.payload.get("title", ""),
        )
        logger.info(
            "Email notification sent",
            extra={
                "notification_id": job.payload.get("notification_id"),
                "recipient_id": recipient_id,
                "message_id": message_id,
            },
        )
