"""User model: the minimal recipient record."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Notification recipient.

    Identity is issued elsewhere; ``id`` is the external user identifier
    carried in access tokens, so it is a string rather than a surrogate key.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r})>"
