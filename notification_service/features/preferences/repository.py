"""Repository for notification preference documents."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from notification_service.core.database.repository import BaseRepository
from notification_service.features.preferences.models import UserNotificationPreference

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class PreferenceRepository(BaseRepository[UserNotificationPreference]):
    """Load and upsert per-user preference documents."""

    def __init__(self) -> None:
        super().__init__(UserNotificationPreference)

    async def get_document(self, session: AsyncSession, user_id: str) -> dict[str, Any] | None:
        """Stored document for ``user_id``, or None when the user has none."""
        stmt = select(UserNotificationPreference.document).where(
            UserNotificationPreference.user_id == user_id
        )
        result = await session.execute(stmt)
        document = result.scalar_one_or_none()
        self._lazy.debug(
            lambda: f"db.get_document({user_id=}) -> {'stored' if document is not None else 'defaults'}"
        )
        return document

    async def upsert_document(
        self,
        session: AsyncSession,
        user_id: str,
        document: dict[str, Any],
    ) -> UserNotificationPreference:
        """Insert or replace the document for ``user_id`` (flushes, no commit)."""
        row = await self.get(session, user_id)
        if row is None:
            row = UserNotificationPreference(user_id=user_id, document=document)
            session.add(row)
        else:
            # Reassign so the JSON column is marked dirty
            row.document = dict(document)
        await session.flush()
        return row

    async def list_user_ids(self, session: AsyncSession) -> Sequence[str]:
        """Users that have a stored document."""
        result = await session.execute(select(UserNotificationPreference.user_id))
        return result.scalars().all()


_preference_repository: PreferenceRepository | None = None


def get_preference_repository() -> PreferenceRepository:
    """Get the shared preference repository instance."""
    global _preference_repository
    if _preference_repository is None:
        _preference_repository = PreferenceRepository()
    return _preference_repository
