"""SQLAlchemy model for notification preferences."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import Base, TimestampMixin


class UserNotificationPreference(Base, TimestampMixin):
    """One JSON preference document per user.

    The document is stored as written (after coercion); defaults are merged
    on read so new categories appear for existing users automatically.
    """

    __tablename__ = "notification_preferences"

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        comment="Owner of the preference document",
    )
    document: Mapped[dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
        comment="Preference document (toggles, categories, frequency)",
    )

    def __repr__(self) -> str:
        return f"<UserNotificationPreference(user_id={self.user_id!r})>"
