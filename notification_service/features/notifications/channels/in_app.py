"""In-app channel: push ``notification:new`` to the recipient's live connections."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notification_service.core.exceptions import TransientDeliveryFailure
from notification_service.infra.dispatch import Channel
from notification_service.infra.realtime.events import RealtimeEvent

if TYPE_CHECKING:
    from notification_service.features.notifications.events import LiveNotifier
    from notification_service.infra.dispatch import DeliveryJob

logger = logging.getLogger(__name__)


class InAppChannel:
    """Queue consumer for deferred in-app deliveries.

    Jobs only reach this channel when the recipient was offline at dispatch
    time and the fallback queue is enabled; an offline recipient is retried.
    """

    channel = Channel.IN_APP

    def __init__(self, notifier: LiveNotifier) -> None:
        self._notifier = notifier

    async def deliver(self, job: DeliveryJob) -> None:
        recipient_id = job.payload["recipient_id"]
        if not self._notifier.is_online(recipient_id):
            raise TransientDeliveryFailure("Recipient is offline", channel=self.channel.value)

        sent = await self._notifier.send_to_user(
            recipient_id, RealtimeEvent.NOTIFICATION_NEW.value, job.payload
        )
        if not sent:
            raise TransientDeliveryFailure(
                "No live connection accepted the frame", channel=self.channel.value
            )
        logger.debug(
            "In-app notification delivered",
            extra={"notification_id": job.payload.get("notification_id"), "recipient_id": recipient_id},
        )
