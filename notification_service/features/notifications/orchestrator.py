"""Multi-channel fan-out for a single notification.

``dispatch`` persists the notification, evaluates the recipient's
preferences once, then handles every allowed channel concurrently: live
in-app delivery through the presence manager, everything else through the
dispatch queue. A failing channel is reported in its outcome and never
raised to the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notification_service.core.services.base import BaseService
from notification_service.core.settings import (
    get_email_settings,
    get_notification_settings,
    get_push_settings,
)
from notification_service.features.notifications.channels.base import build_payload
from notification_service.features.notifications.events import LiveNotifier, RealtimeEvent
from notification_service.features.notifications.schemas import (
    ChannelOutcome,
    DispatchResult,
    NotificationCreate,
    NotificationRead,
    OutcomeStatus,
)
from notification_service.features.notifications.service import (
    NotificationStore,
    get_notification_store,
)
from notification_service.features.preferences.policy import (
    ALLOW,
    PolicyEngine,
    evaluate,
    get_policy_engine,
)
from notification_service.infra.dispatch import Channel, DispatchQueue, Priority, get_dispatch_queue
from notification_service.infra.metrics.prometheus import (
    notification_channel_outcomes_total,
    notification_policy_denials_total,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings import (
        EmailSettings,
        NotificationSettings,
        PushSettings,
    )
    from notification_service.features.notifications.models import Notification
    from notification_service.features.preferences.schemas import NotificationPreferences

CATEGORY_PRIORITY = {"system": Priority.HIGH, "marketing": Priority.LOW}


def default_priority(category: str) -> Priority:
    """``system`` is high, ``marketing`` low, everything else normal."""
    return CATEGORY_PRIORITY.get(category, Priority.NORMAL)


class NotificationOrchestrator(BaseService):
    """Persist a notification and route it to each requested channel."""

    def __init__(
        self,
        store: NotificationStore | None = None,
        policy: PolicyEngine | None = None,
        queue: DispatchQueue | None = None,
        notifier: LiveNotifier | None = None,
        *,
        settings: NotificationSettings | None = None,
        email_settings: EmailSettings | None = None,
        push_settings: PushSettings | None = None,
    ) -> None:
        super().__init__()
        self._store = store or get_notification_store()
        self._policy = policy or get_policy_engine()
        self._queue_override = queue
        self._notifier = notifier
        self._settings = settings or get_notification_settings()
        self._email_settings = email_settings or get_email_settings()
        self._push_settings = push_settings or get_push_settings()

    @property
    def queue(self) -> DispatchQueue:
        """The injected queue, else whichever queue the process currently runs."""
        if self._queue_override is not None:
            return self._queue_override
        return get_dispatch_queue()

    def attach_notifier(self, notifier: LiveNotifier | None) -> None:
        self._notifier = notifier

    async def dispatch(
        self,
        session: AsyncSession,
        recipient_id: str,
        type: str,  # noqa: A002
        title: str,
        body: str = "",
        data: dict[str, Any] | None = None,
        *,
        channels: Iterable[Channel | str] | None = None,
        priority: Priority | str | None = None,
    ) -> DispatchResult:
        """Create a notification and deliver or enqueue it per channel.

        Raises:
            RecipientNotFoundException: The recipient does not exist; nothing
                is persisted or delivered.
        """
        notification = await self._store.create(session, recipient_id, type, title, body, data)
        await session.commit()

        preferences = await self._policy.load_preferences(session, recipient_id)
        outcomes = await self._fan_out(
            notification,
            preferences,
            self._requested_channels(channels),
            Priority(priority) if priority is not None else default_priority(notification.category),
        )
        return DispatchResult(
            notification=NotificationRead.model_validate(notification),
            outcomes=outcomes,
        )

    async def dispatch_many(
        self,
        session: AsyncSession,
        items: Iterable[NotificationCreate],
        *,
        channels: Iterable[Channel | str] | None = None,
        priority: Priority | str | None = None,
    ) -> list[DispatchResult]:
        """Dispatch several notifications; all are persisted in one commit first."""
        notifications = await self._store.bulk_create(session, items)
        await session.commit()

        requested = self._requested_channels(channels)
        preferences_by_user: dict[str, NotificationPreferences | None] = {}
        results: list[DispatchResult] = []
        for notification in notifications:
            recipient_id = notification.recipient_id
            if recipient_id not in preferences_by_user:
                preferences_by_user[recipient_id] = await self._policy.load_preferences(
                    session, recipient_id
                )
            outcomes = await self._fan_out(
                notification,
                preferences_by_user[recipient_id],
                requested,
                Priority(priority) if priority is not None else default_priority(notification.category),
            )
            results.append(
                DispatchResult(
                    notification=NotificationRead.model_validate(notification),
                    outcomes=outcomes,
                )
            )
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _requested_channels(self, channels: Iterable[Channel | str] | None) -> list[Channel]:
        requested = self._settings.default_channels if channels is None else channels
        return list(dict.fromkeys(Channel(c) for c in requested))

    async def _fan_out(
        self,
        notification: Notification,
        preferences: NotificationPreferences | None,
        channels: list[Channel],
        priority: Priority,
    ) -> list[ChannelOutcome]:
        now = datetime.now(UTC)
        payload = build_payload(notification)
        outcomes: dict[Channel, ChannelOutcome] = {}
        allowed: list[Channel] = []

        for channel in channels:
            decision = (
                evaluate(preferences, notification.category, channel, now)
                if preferences is not None
                else ALLOW
            )
            if decision.allowed:
                allowed.append(channel)
                continue
            reason = decision.reason.value if decision.reason else "denied"
            notification_policy_denials_total.labels(channel=channel.value, reason=reason).inc()
            outcomes[channel] = ChannelOutcome(
                channel=channel.value, status=OutcomeStatus.SKIPPED, reason=reason
            )

        results = await asyncio.gather(
            *(self._deliver(channel, payload, priority) for channel in allowed),
            return_exceptions=True,
        )
        for channel, result in zip(allowed, results, strict=True):
            if isinstance(result, BaseException):
                self.logger.error(
                    "Channel delivery failed",
                    extra={
                        "channel": channel.value,
                        "notification_id": payload["notification_id"],
                        "error": str(result),
                    },
                    exc_info=result,
                )
                result = ChannelOutcome(
                    channel=channel.value, status=OutcomeStatus.FAILED, error=str(result)
                )
            outcomes[channel] = result

        ordered = [outcomes[channel] for channel in channels]
        for outcome in ordered:
            notification_channel_outcomes_total.labels(
                channel=outcome.channel, status=outcome.status.value
            ).inc()

        self.logger.info(
            "Notification dispatched",
            extra={
                "notification_id": payload["notification_id"],
                "recipient_id": notification.recipient_id,
                "outcomes": {o.channel: o.status.value for o in ordered},
            },
        )
        return ordered

    async def _deliver(
        self,
        channel: Channel,
        payload: dict[str, Any],
        priority: Priority,
    ) -> ChannelOutcome:
        if channel is Channel.IN_APP:
            return await self._deliver_in_app(payload)

        if channel is Channel.EMAIL and not self._email_settings.enabled:
            return ChannelOutcome(
                channel=channel.value, status=OutcomeStatus.SKIPPED, reason="unavailable"
            )
        if channel is Channel.PUSH and not self._push_settings.is_configured:
            return ChannelOutcome(
                channel=channel.value, status=OutcomeStatus.SKIPPED, reason="unavailable"
            )

        handle = self.queue.enqueue(channel, payload, priority)
        return ChannelOutcome(channel=channel.value, status=OutcomeStatus.QUEUED, job_id=handle.id)

    async def _deliver_in_app(self, payload: dict[str, Any]) -> ChannelOutcome:
        recipient_id = payload["recipient_id"]
        notifier = self._notifier

        if notifier is not None and notifier.is_online(recipient_id):
            sent = await notifier.send_to_user(
                recipient_id, RealtimeEvent.NOTIFICATION_NEW.value, payload
            )
            if sent:
                return ChannelOutcome(channel=Channel.IN_APP.value, status=OutcomeStatus.DELIVERED)

        if self._settings.in_app_fallback_queue:
            handle = self.queue.enqueue(
                Channel.IN_APP, payload, Priority.LOW, delay=self._settings.fallback_delay
            )
            return ChannelOutcome(
                channel=Channel.IN_APP.value, status=OutcomeStatus.QUEUED, job_id=handle.id
            )

        return ChannelOutcome(
            channel=Channel.IN_APP.value, status=OutcomeStatus.SKIPPED, reason="offline"
        )


_orchestrator: NotificationOrchestrator | None = None


def get_orchestrator() -> NotificationOrchestrator:
    """Get the shared orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = NotificationOrchestrator()
    return _orchestrator


def set_orchestrator(orchestrator: NotificationOrchestrator | None) -> None:
    global _orchestrator
    _orchestrator = orchestrator
