"""Repository for push subscriptions."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update

from notification_service.core.database import utcnow
from notification_service.core.database.repository import BaseRepository
from notification_service.features.push.models import DeactivationReason, PushSubscription

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class PushSubscriptionRepository(BaseRepository[PushSubscription]):
    """Queries and guarded state changes for push subscriptions."""

    def __init__(self) -> None:
        super().__init__(PushSubscription)

    async def get_for_endpoint(
        self,
        session: AsyncSession,
        user_id: str,
        endpoint: str,
    ) -> PushSubscription | None:
        stmt = select(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self, session: AsyncSession, user_id: str) -> Sequence[PushSubscription]:
        stmt = (
            select(PushSubscription)
            .where(PushSubscription.user_id == user_id, PushSubscription.is_active.is_(True))
            .order_by(PushSubscription.created_at)
        )
        result = await session.execute(stmt)
        subscriptions = result.scalars().all()
        self._lazy.debug(lambda: f"db.list_active({user_id=}) -> {len(subscriptions)}")
        return subscriptions

    async def deactivate(
        self,
        session: AsyncSession,
        subscription_id: UUID,
        reason: DeactivationReason,
        *,
        user_id: str | None = None,
    ) -> bool:
        """Deactivate one subscription if it is still active.

        The ``WHERE is_active`` guard makes concurrent duplicates harmless:
        only one caller sees a changed row.
        """
        now = utcnow()
        stmt = (
            update(PushSubscription)
            .where(PushSubscription.id == subscription_id, PushSubscription.is_active.is_(True))
            .values(
                is_active=False,
                deactivated_at=now,
                deactivation_reason=reason.value,
                updated_at=now,
            )
        )
        if user_id is not None:
            stmt = stmt.where(PushSubscription.user_id == user_id)
        result = await session.execute(stmt)
        await session.flush()
        return bool(result.rowcount)

    async def deactivate_stale(self, session: AsyncSession, cutoff: datetime) -> int:
        """Deactivate active subscriptions last seen before ``cutoff``."""
        now = utcnow()
        stmt = (
            update(PushSubscription)
            .where(
                PushSubscription.is_active.is_(True),
                PushSubscription.last_active_at < cutoff,
            )
            .values(
                is_active=False,
                deactivated_at=now,
                deactivation_reason=DeactivationReason.CLEANUP.value,
                updated_at=now,
            )
        )
        result = await session.execute(stmt)
        await session.flush()
        return result.rowcount or 0

    async def purge_inactive(self, session: AsyncSession, cutoff: datetime) -> int:
        """Hard-delete subscriptions deactivated before ``cutoff``."""
        stmt = delete(PushSubscription).where(
            PushSubscription.is_active.is_(False),
            PushSubscription.deactivated_at < cutoff,
        )
        result = await session.execute(stmt)
        await session.flush()
        return result.rowcount or 0

    async def touch(self, session: AsyncSession, subscription_ids: Sequence[UUID]) -> None:
        """Record a successful delivery on each subscription."""
        if not subscription_ids:
            return
        now = utcnow()
        stmt = (
            update(PushSubscription)
            .where(PushSubscription.id.in_(list(subscription_ids)))
            .values(last_active_at=now, updated_at=now)
        )
        await session.execute(stmt)
        await session.flush()

    async def counts(self, session: AsyncSession, user_id: str | None = None) -> dict[bool, int]:
        stmt = select(PushSubscription.is_active, func.count()).group_by(PushSubscription.is_active)
        if user_id is not None:
            stmt = stmt.where(PushSubscription.user_id == user_id)
        result = await session.execute(stmt)
        return {bool(active): count for active, count in result.all()}

    async def reason_counts(self, session: AsyncSession, user_id: str | None = None) -> dict[str, int]:
        stmt = (
            select(PushSubscription.deactivation_reason, func.count())
            .where(PushSubscription.is_active.is_(False))
            .group_by(PushSubscription.deactivation_reason)
        )
        if user_id is not None:
            stmt = stmt.where(PushSubscription.user_id == user_id)
        result = await session.execute(stmt)
        return {reason or "unknown": count for reason, count in result.all()}


_push_subscription_repository: PushSubscriptionRepository | None = None


def get_push_subscription_repository() -> PushSubscriptionRepository:
    """Get the shared push subscription repository instance."""
    global _push_subscription_repository
    if _push_subscription_repository is None:
        _push_subscription_repository = PushSubscriptionRepository()
    return _push_subscription_repository
