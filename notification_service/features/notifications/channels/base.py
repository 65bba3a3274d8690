"""Shared pieces for channel handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from notification_service.features.notifications.models import Notification
    from notification_service.infra.dispatch import Channel, DeliveryJob


class ChannelHandler(Protocol):
    """A queue consumer for one channel.

    ``deliver`` returns normally on success. It raises
    ``TransientDeliveryFailure`` (or any other exception) to have the queue
    retry with backoff, and ``TerminalDeliveryFailure`` to fail the job
    immediately.
    """

    channel: Channel

    async def deliver(self, job: DeliveryJob) -> None: ...


def build_payload(notification: Notification) -> dict[str, Any]:
    """Denormalized, JSON-safe copy of a notification for jobs and live frames."""
    return {
        "notification_id": str(notification.id),
        "recipient_id": notification.recipient_id,
        "type": notification.type,
        "category": notification.category,
        "title": notification.title,
        "body": notification.body,
        "data": dict(notification.data or {}),
        "status": notification.status,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }
