"""Push channel: fan a job out to the recipient's Web Push subscriptions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from notification_service.core.exceptions import TransientDeliveryFailure
from notification_service.infra.dispatch import Channel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notification_service.features.push.service import PushSubscriptionService
    from notification_service.infra.dispatch import DeliveryJob

logger = logging.getLogger(__name__)


def push_message(payload: dict[str, Any]) -> dict[str, Any]:
    """Shape a job payload into the message the service worker receives."""
    return {
        "title": payload.get("title", ""),
        "body": payload.get("body", ""),
        "data": {
            **payload.get("data", {}),
            "notification_id": payload.get("notification_id"),
            "type": payload.get("type"),
        },
        "tag": payload.get("notification_id"),
    }


class PushChannel:
    """Queue consumer for the push channel.

    Completes when at least one subscription accepted the message or when
    every failure was permanent (expired endpoints are deactivated by the
    registry). Raises ``TransientDeliveryFailure`` when nothing succeeded
    and a provider failure might clear up on retry.
    """

    channel = Channel.PUSH

    def __init__(
        self,
        service: PushSubscriptionService,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._service = service
        self._session_factory = session_factory

    async def deliver(self, job: DeliveryJob) -> None:
        recipient_id = job.payload["recipient_id"]
        async with self._session_factory() as session:
            summary = await self._service.send(session, recipient_id, push_message(job.payload))
            await session.commit()

        if summary.total == 0:
            logger.debug("No active push subscriptions", extra={"recipient_id": recipient_id})
            return

        if not summary.success and summary.transient_failures:
            raise TransientDeliveryFailure(
                f"Push failed for {summary.transient_failures} of {summary.total} subscriptions",
                channel=self.channel.value,
            )

        logger.info(
            "Push notification sent",
            extra={
                "notification_id": job.payload.get("notification_id"),
                "recipient_id": recipient_id,
                "successful": summary.successful,
                "total": summary.total,
            },
        )
