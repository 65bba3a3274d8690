"""Application lifespan management.

Startup Order:
1. Core (logging)
2. Database (connectivity check, schema for SQLite)
3. Presence manager (WebSocket connections)
4. Dispatch queue (channel handlers and worker pools)
5. Scheduler (maintenance sweeps)

Shutdown Order: Reverse of startup (what starts first, shuts down last)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from notification_service.core.repositories import get_user_repository
from notification_service.core.settings import (
    get_app_settings,
    get_auth_settings,
    get_email_settings,
    get_logging_settings,
    get_websocket_settings,
)
from notification_service.features.notifications.channels import (
    EmailChannel,
    InAppChannel,
    PushChannel,
)
from notification_service.features.notifications.orchestrator import get_orchestrator
from notification_service.features.notifications.service import get_notification_store
from notification_service.features.push.service import get_push_service
from notification_service.infra.auth import JWTTokenVerifier
from notification_service.infra.database import AsyncSessionLocal, close_database, init_database
from notification_service.infra.dispatch import DispatchQueue, set_dispatch_queue
from notification_service.infra.email.sender import SMTPEmailSender
from notification_service.infra.logging import setup_logging, shutdown as shutdown_logging
from notification_service.infra.realtime import PresenceManager, set_presence_manager
from notification_service.infra.tasks.scheduler import (
    setup_scheduled_jobs,
    start_scheduler,
    stop_scheduler,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)

# Module-level handles so shutdown mirrors startup
_presence: PresenceManager | None = None
_queue: DispatchQueue | None = None


async def _startup_core() -> None:
    setup_logging(log_settings=get_logging_settings(), force=True)
    app_settings = get_app_settings()
    logger.info(
        "Application starting",
        extra={"service": app_settings.title, "version": app_settings.version},
    )


async def _startup_database() -> None:
    await init_database()


async def _startup_presence() -> None:
    global _presence

    _presence = PresenceManager(JWTTokenVerifier(get_auth_settings()))
    set_presence_manager(_presence)

    get_notification_store().attach_notifier(_presence)
    get_orchestrator().attach_notifier(_presence)
    logger.info(
        "Presence manager initialized",
        extra={"websocket_enabled": get_websocket_settings().enabled},
    )


async def _startup_dispatch() -> None:
    global _queue

    _queue = DispatchQueue()
    set_dispatch_queue(_queue)

    users = get_user_repository()
    in_app = InAppChannel(_presence) if _presence is not None else None
    push = PushChannel(get_push_service(), AsyncSessionLocal)
    email = EmailChannel(SMTPEmailSender(get_email_settings()), users, AsyncSessionLocal)

    if in_app is not None:
        _queue.register_handler(in_app.channel, in_app.deliver)
    _queue.register_handler(push.channel, push.deliver)
    _queue.register_handler(email.channel, email.deliver)

    await _queue.start()


async def _startup_scheduler() -> None:
    setup_scheduled_jobs(_presence)
    start_scheduler()


async def _shutdown_scheduler() -> None:
    stop_scheduler()


async def _shutdown_dispatch() -> None:
    global _queue

    if _queue is not None:
        await _queue.stop()
        set_dispatch_queue(None)
        _queue = None


async def _shutdown_presence() -> None:
    global _presence

    if _presence is not None:
        await _presence.stop()
        get_notification_store().attach_notifier(None)
        get_orchestrator().attach_notifier(None)
        set_presence_manager(None)
        _presence = None


async def _shutdown_database() -> None:
    await close_database()


async def _shutdown_core() -> None:
    shutdown_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    _ = app  # Reserved for future FastAPI state hooks

    # =========================================================================
    # STARTUP PHASE - Initialize services in dependency order
    # =========================================================================

    await _startup_core()
    await _startup_database()
    await _startup_presence()
    await _startup_dispatch()
    await _startup_scheduler()

    app_settings = get_app_settings()
    logger.info(
        "Application is LIVE and ready to serve requests on http://%s:%s",
        app_settings.host,
        app_settings.port,
        extra={"service": app_settings.title, "version": app_settings.version},
    )

    yield

    # =========================================================================
    # SHUTDOWN PHASE - Close services in reverse order
    # =========================================================================

    logger.info("Application shutting down", extra={"service": app_settings.title})

    await _shutdown_scheduler()
    await _shutdown_dispatch()
    await _shutdown_presence()
    await _shutdown_database()

    logger.info("Application shutdown complete")
    await _shutdown_core()


__all__ = ["lifespan"]
