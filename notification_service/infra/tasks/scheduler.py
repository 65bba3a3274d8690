"""APScheduler integration for periodic maintenance sweeps.

Jobs run in the application's event loop:
- notification retention purge (by status)
- push subscription cleanup and purge
- daily and weekly email digests
- stale WebSocket connection reaping
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import (
    AsyncIOScheduler,  # type: ignore[import-untyped]
)
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]
from apscheduler.triggers.interval import (
    IntervalTrigger,  # type: ignore[import-untyped]
)

from notification_service.core.settings import get_notification_settings, get_websocket_settings
from notification_service.features.notifications.tasks import (
    cleanup_push_subscriptions,
    purge_expired_notifications,
    reap_stale_connections,
    send_digests,
)

if TYPE_CHECKING:
    from notification_service.infra.realtime import PresenceManager

logger = logging.getLogger(__name__)

# Runs in the same process and loop as FastAPI
scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={
        "coalesce": True,  # Combine multiple pending executions into one
        "max_instances": 1,  # Only one instance of each job at a time
        "misfire_grace_time": 60,
    },
)


def setup_scheduled_jobs(presence: PresenceManager | None = None) -> None:
    """Register the maintenance jobs. Call before :func:`start_scheduler`."""
    settings = get_notification_settings()
    if not settings.sweep_enabled:
        logger.info("Maintenance sweeps disabled")
        return

    scheduler.add_job(
        func=purge_expired_notifications,
        trigger=IntervalTrigger(minutes=settings.sweep_interval_minutes),
        id="purge_notifications",
        name="Purge expired notifications",
        replace_existing=True,
    )

    # Push cleanup daily at 3 AM UTC
    scheduler.add_job(
        func=cleanup_push_subscriptions,
        trigger=CronTrigger(hour=3, minute=0),
        id="cleanup_push_subscriptions",
        name="Cleanup push subscriptions",
        replace_existing=True,
    )

    scheduler.add_job(
        func=send_digests,
        trigger=CronTrigger(hour=settings.digest_hour, minute=0),
        args=["daily"],
        id="send_daily_digests",
        name="Send daily digests",
        replace_existing=True,
    )
    scheduler.add_job(
        func=send_digests,
        trigger=CronTrigger(day_of_week=settings.digest_weekday, hour=settings.digest_hour, minute=0),
        args=["weekly"],
        id="send_weekly_digests",
        name="Send weekly digests",
        replace_existing=True,
    )

    ws_settings = get_websocket_settings()
    if presence is not None and ws_settings.connection_timeout > 0:
        scheduler.add_job(
            func=reap_stale_connections,
            trigger=IntervalTrigger(seconds=ws_settings.connection_timeout),
            args=[presence],
            id="reap_stale_connections",
            name="Reap stale WebSocket connections",
            replace_existing=True,
        )

    logger.info(
        "Scheduled jobs configured",
        extra={"jobs": [job.id for job in scheduler.get_jobs()]},
    )


def start_scheduler() -> None:
    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started")


def stop_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("APScheduler stopped")
