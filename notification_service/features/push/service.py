"""Push subscription registry and fan-out sender."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from notification_service.core.database import utcnow
from notification_service.core.services.base import BaseService
from notification_service.core.settings import get_push_settings
from notification_service.features.push.models import DeactivationReason, PushSubscription
from notification_service.features.push.repository import (
    PushSubscriptionRepository,
    get_push_subscription_repository,
)
from notification_service.features.push.schemas import (
    DeviceInfo,
    PushSendSummary,
    PushStats,
    SubscriptionKeys,
    SubscriptionResult,
)
from notification_service.infra.metrics.prometheus import (
    push_sends_total,
    push_subscriptions_deactivated_total,
)
from notification_service.infra.push import PushOutcome, WebPushSender

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings.push import PushSettings


class PushSubscriptionService(BaseService):
    """Register, list, deactivate and send to a user's push subscriptions.

    Writes flush but do not commit; the caller owns the transaction.
    """

    def __init__(
        self,
        repository: PushSubscriptionRepository | None = None,
        sender: WebPushSender | None = None,
        settings: PushSettings | None = None,
    ) -> None:
        super().__init__()
        self._settings = settings or get_push_settings()
        self._repository = repository or get_push_subscription_repository()
        self._sender = sender or WebPushSender(self._settings)

    def vapid_public_key(self) -> str | None:
        """Application server key handed to browsers for ``pushManager.subscribe``."""
        return self._settings.vapid_public_key

    async def register(
        self,
        session: AsyncSession,
        user_id: str,
        endpoint: str,
        keys: SubscriptionKeys | dict[str, str],
        device_info: DeviceInfo | None = None,
    ) -> UUID:
        """Create or refresh the subscription for ``(user_id, endpoint)``.

        Re-registering updates keys and device info in place and re-activates
        a deactivated row.
        """
        keys = SubscriptionKeys.model_validate(keys)
        device_info = device_info or DeviceInfo()
        now = utcnow()

        subscription = await self._repository.get_for_endpoint(session, user_id, endpoint)
        if subscription is None:
            subscription = PushSubscription(
                user_id=user_id,
                endpoint=endpoint,
                keys=keys.model_dump(),
                user_agent=device_info.user_agent,
                ip_address=device_info.ip_address,
                is_active=True,
                last_active_at=now,
            )
            subscription = await self._repository.create(session, subscription)
            self.logger.info(
                "Push subscription registered",
                extra={"user_id": user_id, "subscription_id": str(subscription.id)},
            )
            return subscription.id

        subscription.keys = keys.model_dump()
        subscription.user_agent = device_info.user_agent or subscription.user_agent
        subscription.ip_address = device_info.ip_address or subscription.ip_address
        subscription.is_active = True
        subscription.last_active_at = now
        subscription.deactivated_at = None
        subscription.deactivation_reason = None
        await session.flush()

        self.logger.info(
            "Push subscription refreshed",
            extra={"user_id": user_id, "subscription_id": str(subscription.id)},
        )
        return subscription.id

    async def unregister(self, session: AsyncSession, user_id: str, subscription_id: UUID) -> bool:
        """Soft-delete a subscription owned by ``user_id``.

        Returns:
            False when no active subscription with that id belongs to the user.
        """
        changed = await self._repository.deactivate(
            session, subscription_id, DeactivationReason.USER_INITIATED, user_id=user_id
        )
        if changed:
            push_subscriptions_deactivated_total.labels(
                reason=DeactivationReason.USER_INITIATED.value
            ).inc()
        return changed

    async def list_active(self, session: AsyncSession, user_id: str) -> Sequence[PushSubscription]:
        return await self._repository.list_active(session, user_id)

    async def deactivate(
        self,
        session: AsyncSession,
        subscription_id: UUID,
        reason: DeactivationReason | str,
    ) -> bool:
        """Deactivate a subscription; a no-op returning False if already inactive."""
        reason = DeactivationReason(reason)
        changed = await self._repository.deactivate(session, subscription_id, reason)
        if changed:
            push_subscriptions_deactivated_total.labels(reason=reason.value).inc()
            self.logger.info(
                "Push subscription deactivated",
                extra={"subscription_id": str(subscription_id), "reason": reason.value},
            )
        return changed

    async def send(
        self,
        session: AsyncSession,
        user_id: str,
        payload: dict[str, Any],
    ) -> PushSendSummary:
        """Send ``payload`` to every active subscription of ``user_id``.

        Expired endpoints are deactivated and skipped; oversized payloads
        fail for that subscription only; anything else counts as transient.
        """
        subscriptions = list(await self._repository.list_active(session, user_id))
        results: list[SubscriptionResult] = []
        delivered: list[UUID] = []

        for subscription in subscriptions:
            result = await self._sender.send(subscription.endpoint, subscription.keys, payload)
            push_sends_total.labels(result=result.outcome.value).inc()

            if result.outcome is PushOutcome.SENT:
                delivered.append(subscription.id)
            elif result.outcome is PushOutcome.EXPIRED:
                await self.deactivate(session, subscription.id, DeactivationReason.EXPIRED)
            elif result.outcome is PushOutcome.TOO_LARGE:
                self.logger.warning(
                    "Push payload too large",
                    extra={"user_id": user_id, "subscription_id": str(subscription.id)},
                )

            results.append(
                SubscriptionResult(
                    subscription_id=subscription.id,
                    success=result.ok,
                    outcome=result.outcome.value,
                    status_code=result.status_code,
                    error=result.error,
                )
            )

        await self._repository.touch(session, delivered)

        summary = PushSendSummary(
            success=bool(delivered),
            total=len(subscriptions),
            successful=len(delivered),
            results=results,
        )
        self._lazy.debug(
            lambda: f"push.send({user_id=}) -> {summary.successful}/{summary.total} delivered"
        )
        return summary

    async def cleanup_inactive(self, session: AsyncSession, retention: timedelta | None = None) -> int:
        """Deactivate subscriptions not seen within ``retention``."""
        retention = retention or timedelta(days=self._settings.subscription_retention_days)
        count = await self._repository.deactivate_stale(session, utcnow() - retention)
        if count:
            push_subscriptions_deactivated_total.labels(reason=DeactivationReason.CLEANUP.value).inc(count)
            self.logger.info("Deactivated stale push subscriptions", extra={"count": count})
        return count

    async def purge_inactive(self, session: AsyncSession, retention: timedelta | None = None) -> int:
        """Hard-delete subscriptions deactivated longer than ``retention`` ago."""
        retention = retention or timedelta(days=self._settings.purge_after_days)
        count = await self._repository.purge_inactive(session, utcnow() - retention)
        if count:
            self.logger.info("Purged inactive push subscriptions", extra={"count": count})
        return count

    async def stats(self, session: AsyncSession, user_id: str | None = None) -> PushStats:
        counts = await self._repository.counts(session, user_id)
        return PushStats(
            active=counts.get(True, 0),
            inactive=counts.get(False, 0),
            by_reason=await self._repository.reason_counts(session, user_id),
        )


_push_service: PushSubscriptionService | None = None


def get_push_service() -> PushSubscriptionService:
    """Get the shared push subscription service."""
    global _push_service
    if _push_service is None:
        _push_service = PushSubscriptionService()
    return _push_service
