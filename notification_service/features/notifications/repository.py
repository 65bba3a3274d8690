"""Repository for notification records."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from notification_service.core.database import utcnow
from notification_service.core.database.repository import BaseRepository, SearchResult
from notification_service.features.notifications.models import Notification, NotificationStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class NotificationRepository(BaseRepository[Notification]):
    """Queries and bulk status updates for notifications.

    Bulk updates are always scoped to the recipient so foreign ids are
    silently ignored.
    """

    def __init__(self) -> None:
        super().__init__(Notification)

    async def list_for_recipient(
        self,
        session: AsyncSession,
        recipient_id: str,
        *,
        status: str | None = None,
        category: str | None = None,
        type: str | None = None,  # noqa: A002
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        include_deleted: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult[Notification]:
        """Newest-first page of a recipient's notifications.

        Deleted records are excluded unless ``status="deleted"`` or
        ``include_deleted`` is set.
        """
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)

        if status is not None:
            stmt = stmt.where(Notification.status == status)
        elif not include_deleted:
            stmt = stmt.where(Notification.status != NotificationStatus.DELETED.value)
        if category is not None:
            stmt = stmt.where(Notification.category == category)
        if type is not None:
            stmt = stmt.where(Notification.type == type)
        if date_from is not None:
            stmt = stmt.where(Notification.created_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(Notification.created_at <= date_to)

        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id)
        return await self.search(session, stmt, limit=limit, offset=offset)

    async def count_unread(self, session: AsyncSession, recipient_id: str) -> int:
        stmt = select(func.count()).where(
            Notification.recipient_id == recipient_id,
            Notification.status == NotificationStatus.UNREAD.value,
        )
        return (await session.execute(stmt)).scalar_one()

    async def set_status(
        self,
        session: AsyncSession,
        recipient_id: str,
        target: NotificationStatus,
        *,
        from_statuses: Iterable[NotificationStatus],
        ids: Sequence[UUID] | None = None,
    ) -> int:
        """Move the recipient's notifications in ``from_statuses`` to ``target``.

        Args:
            ids: Restrict to these ids; None means every matching notification.

        Returns:
            Number of rows changed.
        """
        if ids is not None and not ids:
            return 0

        now = utcnow()
        values: dict[str, Any] = {"status": target.value, "updated_at": now}
        if target is NotificationStatus.READ:
            values["read_at"] = now

        stmt = (
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.status.in_([s.value for s in from_statuses]),
            )
            .values(**values)
        )
        if ids is not None:
            stmt = stmt.where(Notification.id.in_(list(ids)))

        result = await session.execute(stmt)
        await session.flush()
        changed: int = result.rowcount or 0
        self._lazy.debug(
            lambda: f"db.set_status({recipient_id=}, target={target.value}) -> {changed} rows"
        )
        return changed

    async def status_counts(self, session: AsyncSession, recipient_id: str) -> dict[str, int]:
        stmt = (
            select(Notification.status, func.count())
            .where(Notification.recipient_id == recipient_id)
            .group_by(Notification.status)
        )
        result = await session.execute(stmt)
        return {status: count for status, count in result.all()}

    async def counts_by(
        self,
        session: AsyncSession,
        recipient_id: str,
        column: Any,
    ) -> dict[str, int]:
        """Non-deleted notification counts grouped by ``column``."""
        stmt = (
            select(column, func.count())
            .where(
                Notification.recipient_id == recipient_id,
                Notification.status != NotificationStatus.DELETED.value,
            )
            .group_by(column)
        )
        result = await session.execute(stmt)
        return {key: count for key, count in result.all()}

    async def purge(
        self,
        session: AsyncSession,
        status: NotificationStatus,
        cutoff: datetime,
    ) -> int:
        """Hard-delete notifications in ``status`` older than ``cutoff``.

        Deleted records age by ``updated_at`` (the time they were deleted),
        everything else by ``created_at``.
        """
        age_column = (
            Notification.updated_at
            if status is NotificationStatus.DELETED
            else Notification.created_at
        )
        stmt = delete(Notification).where(
            Notification.status == status.value,
            age_column < cutoff,
        )
        result = await session.execute(stmt)
        await session.flush()
        purged: int = result.rowcount or 0
        if purged:
            self._logger.info(
                "Purged notifications",
                extra={"status": status.value, "count": purged, "operation": "db.purge"},
            )
        return purged


_notification_repository: NotificationRepository | None = None


def get_notification_repository() -> NotificationRepository:
    """Get the shared notification repository instance."""
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository
