"""Periodic sweeps: retention, push subscription cleanup and email digests.

Each sweep opens its own session. They are registered with the
scheduler in ``infra/tasks/scheduler.py`` and can also be called directly.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import logging
from typing import TYPE_CHECKING, Any

from notification_service.core.repositories import get_user_repository
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.models import NotificationStatus
from notification_service.features.notifications.service import get_notification_store
from notification_service.features.preferences.service import get_preference_service
from notification_service.features.push.service import get_push_service
from notification_service.infra.database import AsyncSessionLocal
from notification_service.infra.dispatch import Channel, get_dispatch_queue

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notification_service.core.repositories import UserRepository
    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.schemas import NotificationStats
    from notification_service.features.notifications.service import NotificationStore
    from notification_service.features.preferences.service import PreferenceService
    from notification_service.features.push.service import PushSubscriptionService
    from notification_service.infra.dispatch import DispatchQueue
    from notification_service.infra.realtime import PresenceManager

logger = logging.getLogger(__name__)


def retention_windows(settings: NotificationSettings) -> dict[NotificationStatus, timedelta]:
    """Retention per purgeable status."""
    return {
        NotificationStatus.READ: timedelta(days=settings.read_retention_days),
        NotificationStatus.ARCHIVED: timedelta(days=settings.archived_retention_days),
        NotificationStatus.DELETED: timedelta(days=settings.deleted_retention_days),
    }


async def purge_expired_notifications(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    store: NotificationStore | None = None,
    settings: NotificationSettings | None = None,
) -> dict[str, Any]:
    """Hard-delete read, archived and deleted notifications past retention."""
    session_factory = session_factory or AsyncSessionLocal
    store = store or get_notification_store()
    settings = settings or get_notification_settings()

    purged: dict[str, int] = {}
    async with session_factory() as session:
        for status, age in retention_windows(settings).items():
            purged[status.value] = await store.purge_older_than(session, age, [status])
        await session.commit()

    logger.info("Notification retention sweep finished", extra={"purged": purged})
    return {
        "status": "success",
        "purged": purged,
        "checked_at": datetime.now(UTC).isoformat(),
    }


async def cleanup_push_subscriptions(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    service: PushSubscriptionService | None = None,
) -> dict[str, Any]:
    """Deactivate stale subscriptions, then purge long-deactivated ones."""
    session_factory = session_factory or AsyncSessionLocal
    service = service or get_push_service()

    async with session_factory() as session:
        deactivated = await service.cleanup_inactive(session)
        purged = await service.purge_inactive(session)
        await session.commit()

    logger.info(
        "Push subscription sweep finished",
        extra={"deactivated": deactivated, "purged": purged},
    )
    return {"status": "success", "deactivated": deactivated, "purged": purged}


async def reap_stale_connections(manager: PresenceManager) -> dict[str, Any]:
    """Drop connections whose heartbeat has gone quiet."""
    reaped = await manager.reap_stale_connections()
    if reaped:
        logger.info("Reaped stale connections", extra={"count": len(reaped)})
    return {"status": "success", "reaped": len(reaped)}


def digest_payload(user_id: str, frequency: str, stats: NotificationStats) -> dict[str, Any]:
    """Email job payload summarizing a user's unread notifications."""
    lines = [f"You have {stats.unread} unread notification{'s' if stats.unread != 1 else ''}."]
    lines.extend(f"- {category}: {count}" for category, count in sorted(stats.by_category.items()))
    return {
        "recipient_id": user_id,
        "type": "digest",
        "category": "system",
        "title": f"Your {frequency} notification digest",
        "body": "\n".join(lines),
        "data": {
            "frequency": frequency,
            "unread": stats.unread,
            "by_category": dict(stats.by_category),
        },
    }


async def send_digests(
    frequency: str,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    users: UserRepository | None = None,
    preferences: PreferenceService | None = None,
    store: NotificationStore | None = None,
    queue: DispatchQueue | None = None,
) -> dict[str, Any]:
    """Queue an unread summary email for every user on the ``frequency`` digest.

    Users with email turned off or nothing unread are skipped. Jobs go on the
    email lane as batch jobs.
    """
    if frequency not in ("daily", "weekly"):
        msg = f"Unsupported digest frequency: {frequency}"
        raise ValueError(msg)

    session_factory = session_factory or AsyncSessionLocal
    users = users or get_user_repository()
    preferences = preferences or get_preference_service()
    store = store or get_notification_store()
    if queue is None:
        queue = get_dispatch_queue()

    queued = 0
    skipped = 0
    async with session_factory() as session:
        for user_id in await users.list_active_ids(session):
            prefs = await preferences.get(session, user_id)
            if prefs.frequency.digest != frequency or not prefs.email_notifications:
                continue
            stats = await store.get_stats(session, user_id)
            if stats.unread == 0:
                skipped += 1
                continue
            queue.enqueue_batch(Channel.EMAIL, digest_payload(user_id, frequency, stats))
            queued += 1

    logger.info(
        "Digest sweep finished",
        extra={"frequency": frequency, "queued": queued, "skipped": skipped},
    )
    return {"status": "success", "frequency": frequency, "queued": queued, "skipped": skipped}
