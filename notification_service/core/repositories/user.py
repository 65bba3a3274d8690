"""User repository."""
from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from notification_service.core.database import BaseRepository
from notification_service.core.models.user import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class UserRepository(BaseRepository[User]):
    """Recipient lookups used by the notification store and email channel."""

    async def exists(self, session: AsyncSession, user_id: str) -> bool:
        """Whether a user row exists for ``user_id``."""
        stmt = select(User.id).where(User.id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def existing_ids(self, session: AsyncSession, user_ids: list[str]) -> set[str]:
        """Subset of ``user_ids`` that exist."""
        if not user_ids:
            return set()
        stmt = select(User.id).where(User.id.in_(user_ids))
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def list_active_ids(self, session: AsyncSession) -> list[str]:
        """Ids of every active user."""
        stmt = select(User.id).where(User.is_active.is_(True)).order_by(User.id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_email(self, session: AsyncSession, user_id: str) -> str | None:
        """Email address of an active user, if any."""
        stmt = select(User.email).where(User.id == user_id, User.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


_user_repository: UserRepository | None = None


def get_user_repository() -> UserRepository:
    """Get the shared user repository instance."""
    global _user_repository
    if _user_repository is None:
        _user_repository = UserRepository(User)
    return _user_repository
