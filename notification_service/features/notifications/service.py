"""Notification store: persistence and read/archive lifecycle."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from notification_service.core.database import utcnow
from notification_service.core.exceptions import (
    InvalidStatusTransition,
    NotAuthorizedException,
    NotFoundException,
    RecipientNotFoundException,
    ValidationException,
)
from notification_service.core.repositories import UserRepository, get_user_repository
from notification_service.core.services.base import BaseService
from notification_service.features.notifications.events import LiveNotifier, RealtimeEvent
from notification_service.features.notifications.models import (
    Notification,
    NotificationStatus,
    can_transition,
)
from notification_service.features.notifications.repository import (
    NotificationRepository,
    get_notification_repository,
)
from notification_service.features.notifications.schemas import (
    NotificationCreate,
    NotificationFilters,
    NotificationPage,
    NotificationRead,
    NotificationStats,
)
from notification_service.features.preferences.policy import normalize_category
from notification_service.infra.metrics.prometheus import (
    notification_created_total,
    notification_purged_total,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

PURGEABLE_STATUSES = frozenset(
    {NotificationStatus.READ, NotificationStatus.ARCHIVED, NotificationStatus.DELETED}
)
MAX_PAGE_SIZE = 100


class NotificationStore(BaseService):
    """Create, list and move notifications through their lifecycle.

    Every mutating call flushes but does not commit; the caller owns the
    transaction. Single-record operations raise ``NotFoundException`` for
    absent or deleted records and ``NotAuthorizedException`` when the
    acting user is not the recipient. Batch operations silently skip ids
    the acting user does not own.
    """

    def __init__(
        self,
        repository: NotificationRepository | None = None,
        users: UserRepository | None = None,
        notifier: LiveNotifier | None = None,
    ) -> None:
        super().__init__()
        self._repository = repository or get_notification_repository()
        self._users = users or get_user_repository()
        self._notifier = notifier

    def attach_notifier(self, notifier: LiveNotifier | None) -> None:
        """Set the live connection notifier used for read events."""
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        session: AsyncSession,
        recipient_id: str,
        type: str,  # noqa: A002
        title: str,
        body: str = "",
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Persist a new unread notification.

        Raises:
            RecipientNotFoundException: If the recipient does not exist.
        """
        if not await self._users.exists(session, recipient_id):
            raise RecipientNotFoundException(recipient_id)

        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            category=normalize_category(type),
            title=title,
            body=body or "",
            data=dict(data or {}),
            status=NotificationStatus.UNREAD.value,
        )
        notification = await self._repository.create(session, notification)
        notification_created_total.labels(category=notification.category).inc()

        self.logger.info(
            "Notification created",
            extra={
                "notification_id": str(notification.id),
                "recipient_id": recipient_id,
                "type": type,
                "category": notification.category,
            },
        )
        return notification

    async def bulk_create(
        self,
        session: AsyncSession,
        items: Iterable[NotificationCreate],
    ) -> list[Notification]:
        """Persist many notifications in one flush.

        Raises:
            RecipientNotFoundException: For the first recipient that does not
                exist; nothing is written in that case.
        """
        items = list(items)
        if not items:
            return []

        recipients = list(dict.fromkeys(item.recipient_id for item in items))
        existing = await self._users.existing_ids(session, recipients)
        for recipient_id in recipients:
            if recipient_id not in existing:
                raise RecipientNotFoundException(recipient_id)

        notifications = [
            Notification(
                recipient_id=item.recipient_id,
                type=item.type,
                category=normalize_category(item.type),
                title=item.title,
                body=item.body,
                data=dict(item.data),
                status=NotificationStatus.UNREAD.value,
            )
            for item in items
        ]
        created = list(await self._repository.create_many(session, notifications))
        for notification in created:
            notification_created_total.labels(category=notification.category).inc()

        self.logger.info("Notifications bulk created", extra={"count": len(created)})
        return created

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list(
        self,
        session: AsyncSession,
        recipient_id: str,
        filters: NotificationFilters | None = None,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPage:
        """Newest-first page of the recipient's notifications."""
        if page < 1:
            raise ValidationException(detail="page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationException(detail=f"limit must be between 1 and {MAX_PAGE_SIZE}")

        filters = filters or NotificationFilters()
        result = await self._repository.list_for_recipient(
            session,
            recipient_id,
            status=filters.status.value if filters.status else None,
            category=filters.category,
            type=filters.type,
            date_from=filters.date_from,
            date_to=filters.date_to,
            include_deleted=filters.include_deleted,
            limit=limit,
            offset=(page - 1) * limit,
        )
        unread = await self._repository.count_unread(session, recipient_id)

        return NotificationPage(
            items=[NotificationRead.model_validate(n) for n in result.items],
            total=result.total,
            unread_count=unread,
            page=page,
            limit=limit,
            pages=result.pages,
            has_next=result.has_next,
            has_prev=result.has_prev,
        )

    async def get_unread_count(self, session: AsyncSession, recipient_id: str) -> int:
        return await self._repository.count_unread(session, recipient_id)

    async def get_stats(self, session: AsyncSession, recipient_id: str) -> NotificationStats:
        """Counts by status, category and type (deleted records excluded)."""
        by_status = await self._repository.status_counts(session, recipient_id)
        return NotificationStats(
            total=sum(
                count
                for status, count in by_status.items()
                if status != NotificationStatus.DELETED.value
            ),
            unread=by_status.get(NotificationStatus.UNREAD.value, 0),
            read=by_status.get(NotificationStatus.READ.value, 0),
            archived=by_status.get(NotificationStatus.ARCHIVED.value, 0),
            by_category=await self._repository.counts_by(
                session, recipient_id, Notification.category
            ),
            by_type=await self._repository.counts_by(session, recipient_id, Notification.type),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def transition(
        self,
        session: AsyncSession,
        notification_id: UUID,
        acting_user: str,
        target: NotificationStatus,
    ) -> bool:
        """Move one notification to ``target``.

        Returns:
            True when the status changed, False when it already was ``target``.

        Raises:
            NotFoundException: No such notification.
            NotAuthorizedException: ``acting_user`` is not the recipient.
            InvalidStatusTransition: ``target`` is a backward move.
        """
        notification = await self._get_owned(
            session, notification_id, acting_user, include_deleted=True
        )
        return await self._apply(session, notification, NotificationStatus(target))

    async def mark_read(
        self,
        session: AsyncSession,
        notification_id: UUID,
        acting_user: str,
    ) -> bool:
        """Mark one notification read; no-op (False) if already read or archived."""
        notification = await self._get_owned(session, notification_id, acting_user)
        if notification.status != NotificationStatus.UNREAD.value:
            return False

        await self._apply(session, notification, NotificationStatus.READ)
        await self._emit(
            acting_user,
            RealtimeEvent.NOTIFICATION_READ,
            {"notification_id": str(notification.id)},
        )
        return True

    async def archive(
        self,
        session: AsyncSession,
        notification_id: UUID,
        acting_user: str,
    ) -> bool:
        notification = await self._get_owned(session, notification_id, acting_user)
        return await self._apply(session, notification, NotificationStatus.ARCHIVED)

    async def delete(
        self,
        session: AsyncSession,
        notification_id: UUID,
        acting_user: str,
    ) -> bool:
        """Soft-delete; the row is removed later by the retention sweep."""
        notification = await self._get_owned(session, notification_id, acting_user)
        return await self._apply(session, notification, NotificationStatus.DELETED)

    async def mark_all_read(self, session: AsyncSession, acting_user: str) -> int:
        count = await self._repository.set_status(
            session,
            acting_user,
            NotificationStatus.READ,
            from_statuses=(NotificationStatus.UNREAD,),
        )
        self.logger.info("Marked all read", extra={"user_id": acting_user, "count": count})
        if count:
            await self._emit(acting_user, RealtimeEvent.NOTIFICATION_BULK_READ, {"count": count})
        return count

    async def mark_read_batch(
        self,
        session: AsyncSession,
        notification_ids: Iterable[UUID],
        acting_user: str,
    ) -> int:
        """Mark the caller's unread notifications among ``notification_ids`` read.

        Returns:
            How many previously-unread, caller-owned notifications changed.
        """
        count = await self._repository.set_status(
            session,
            acting_user,
            NotificationStatus.READ,
            from_statuses=(NotificationStatus.UNREAD,),
            ids=list(dict.fromkeys(notification_ids)),
        )
        if count:
            await self._emit(acting_user, RealtimeEvent.NOTIFICATION_BULK_READ, {"count": count})
        return count

    async def archive_batch(
        self,
        session: AsyncSession,
        notification_ids: Iterable[UUID],
        acting_user: str,
    ) -> int:
        return await self._repository.set_status(
            session,
            acting_user,
            NotificationStatus.ARCHIVED,
            from_statuses=(NotificationStatus.UNREAD, NotificationStatus.READ),
            ids=list(dict.fromkeys(notification_ids)),
        )

    async def delete_batch(
        self,
        session: AsyncSession,
        notification_ids: Iterable[UUID],
        acting_user: str,
    ) -> int:
        return await self._repository.set_status(
            session,
            acting_user,
            NotificationStatus.DELETED,
            from_statuses=(
                NotificationStatus.UNREAD,
                NotificationStatus.READ,
                NotificationStatus.ARCHIVED,
            ),
            ids=list(dict.fromkeys(notification_ids)),
        )

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def purge_older_than(
        self,
        session: AsyncSession,
        age: timedelta,
        statuses: Iterable[NotificationStatus | str],
    ) -> int:
        """Hard-delete notifications in ``statuses`` older than ``age``.

        Raises:
            ValueError: If a status other than read, archived or deleted is given.
        """
        wanted = [NotificationStatus(s) for s in statuses]
        invalid = [s.value for s in wanted if s not in PURGEABLE_STATUSES]
        if invalid:
            raise ValueError(f"Cannot purge notifications with status {', '.join(invalid)}")

        cutoff = utcnow() - age
        total = 0
        for status in dict.fromkeys(wanted):
            purged = await self._repository.purge(session, status, cutoff)
            notification_purged_total.labels(status=status.value).inc(purged)
            total += purged
        return total

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_owned(
        self,
        session: AsyncSession,
        notification_id: UUID,
        acting_user: str,
        *,
        include_deleted: bool = False,
    ) -> Notification:
        notification = await self._repository.get(session, notification_id)
        if notification is None or (
            not include_deleted and notification.status == NotificationStatus.DELETED.value
        ):
            raise NotFoundException(
                detail=f"Notification {notification_id} not found",
                type="notification-not-found",
                extra={"notification_id": str(notification_id)},
            )
        if notification.recipient_id != acting_user:
            self.logger.warning(
                "Notification access denied",
                extra={"notification_id": str(notification_id), "user_id": acting_user},
            )
            raise NotAuthorizedException(
                detail="Notification belongs to another user",
                extra={"notification_id": str(notification_id)},
            )
        return notification

    async def _apply(
        self,
        session: AsyncSession,
        notification: Notification,
        target: NotificationStatus,
    ) -> bool:
        current = NotificationStatus(notification.status)
        if current is target:
            return False
        if not can_transition(current, target):
            raise InvalidStatusTransition(notification.id, current.value, target.value)

        notification.status = target.value
        if target is NotificationStatus.READ:
            notification.read_at = utcnow()
        await session.flush()

        self._lazy.debug(
            lambda: f"notification {notification.id}: {current.value} -> {target.value}"
        )
        return True

    async def _emit(self, user_id: str, event: RealtimeEvent, data: dict[str, Any]) -> None:
        notifier = self._notifier
        if notifier is None or not notifier.is_online(user_id):
            return
        try:
            await notifier.send_to_user(user_id, event.value, data)
        except Exception:
            # The state change is already flushed; a lost live event is not fatal.
            self.logger.warning(
                "Failed to push realtime event",
                extra={"user_id": user_id, "event": event.value},
                exc_info=True,
            )


_notification_store: NotificationStore | None = None


def get_notification_store() -> NotificationStore:
    """Get the shared notification store."""
    global _notification_store
    if _notification_store is None:
        _notification_store = NotificationStore()
    return _notification_store
