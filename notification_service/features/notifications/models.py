"""SQLAlchemy models for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import UTCDateTime, UUIDTimestampedBase


class NotificationStatus(StrEnum):
    """Notification lifecycle.

    unread -> read -> archived, unread -> archived, any of those -> deleted.
    Purging is a hard delete performed by the retention sweep.
    """

    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"
    DELETED = "deleted"


ALLOWED_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.UNREAD: frozenset(
        {NotificationStatus.READ, NotificationStatus.ARCHIVED, NotificationStatus.DELETED}
    ),
    NotificationStatus.READ: frozenset({NotificationStatus.ARCHIVED, NotificationStatus.DELETED}),
    NotificationStatus.ARCHIVED: frozenset({NotificationStatus.DELETED}),
    NotificationStatus.DELETED: frozenset(),
}


def can_transition(current: NotificationStatus, target: NotificationStatus) -> bool:
    """Whether ``current -> target`` follows the lifecycle."""
    return target in ALLOWED_TRANSITIONS[current]


class Notification(UUIDTimestampedBase):
    """A notification delivered to one recipient.

    Indexes:
        - (recipient_id, status) for inbox listing and unread counts
        - (recipient_id, created_at) for newest-first pagination
        - (status, created_at) for the retention sweep
    """

    __tablename__ = "notifications"

    recipient_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="User receiving the notification",
    )
    type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Free-form notification type tag (like, comment, security, ...)",
    )
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Preference category derived from type",
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    data: Mapped[dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
        comment="Arbitrary client payload",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationStatus.UNREAD.value,
        comment="unread | read | archived | deleted",
    )
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index("ix_notifications_recipient_status", "recipient_id", "status"),
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_status_created", "status", "created_at"),
    )

    @property
    def status_enum(self) -> NotificationStatus:
        return NotificationStatus(self.status)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, recipient_id={self.recipient_id!r}, status={self.status!r})>"
