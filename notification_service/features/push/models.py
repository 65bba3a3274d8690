"""SQLAlchemy model for Web Push subscriptions."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import UTCDateTime, UUIDTimestampedBase, utcnow


class DeactivationReason(StrEnum):
    USER_INITIATED = "user-initiated"
    EXPIRED = "expired"
    CLEANUP = "cleanup"


class PushSubscription(UUIDTimestampedBase):
    """A browser push endpoint registered by a user.

    One row per (user, endpoint). Re-registering the same endpoint updates
    the keys and re-activates the row instead of inserting a duplicate.
    """

    __tablename__ = "push_subscriptions"

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    endpoint: Mapped[str] = mapped_column(Text(), nullable=False, comment="Push service URL")
    keys: Mapped[dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        comment="Client keys (p256dh, auth)",
    )
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=True)
    last_active_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    deactivation_reason: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="user-initiated | expired | cleanup",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscriptions_user_endpoint"),
        Index("ix_push_subscriptions_active_last_active", "is_active", "last_active_at"),
    )

    def __repr__(self) -> str:
        return f"<PushSubscription(id={self.id}, user_id={self.user_id!r}, active={self.is_active})>"
