"""Preference management service."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from notification_service.core.exceptions import ValidationException
from notification_service.core.services.base import BaseService
from notification_service.features.preferences.policy import (
    PolicyEngine,
    evaluate,
    get_policy_engine,
)
from notification_service.features.preferences.repository import (
    PreferenceRepository,
    get_preference_repository,
)
from notification_service.features.preferences.schemas import (
    BulkUpdateResult,
    NotificationPreferences,
    PreferencesExport,
    coerce_preferences,
    deep_merge,
    default_preferences,
    normalize_keys,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.infra.dispatch.jobs import Channel


class PreferenceService(BaseService):
    """Read, update, reset, export and import user preferences.

    Writes flush but do not commit; the caller owns the transaction.
    """

    def __init__(
        self,
        repository: PreferenceRepository | None = None,
        policy: PolicyEngine | None = None,
    ) -> None:
        super().__init__()
        self._repository = repository or get_preference_repository()
        self._policy = policy or get_policy_engine()

    async def get(self, session: AsyncSession, user_id: str) -> NotificationPreferences:
        """Effective preferences (stored document merged over defaults)."""
        document = await self._repository.get_document(session, user_id)
        return coerce_preferences(document)

    async def update(
        self,
        session: AsyncSession,
        user_id: str,
        patch: Mapping[str, Any],
    ) -> NotificationPreferences:
        """Deep-merge ``patch`` into the current preferences and store the result."""
        if not isinstance(patch, Mapping):
            raise ValidationException(detail="Invalid preferences format")

        current = await self.get(session, user_id)
        merged = deep_merge(current.model_dump(), normalize_keys(patch))
        updated = coerce_preferences(merged)
        await self._repository.upsert_document(session, user_id, updated.model_dump())

        self.logger.info("Updated notification preferences", extra={"user_id": user_id})
        return updated

    async def reset(self, session: AsyncSession, user_id: str) -> NotificationPreferences:
        """Replace the stored document with the defaults."""
        defaults = default_preferences()
        await self._repository.upsert_document(session, user_id, defaults.model_dump())
        self.logger.info("Reset notification preferences", extra={"user_id": user_id})
        return defaults

    async def export(self, session: AsyncSession, user_id: str) -> PreferencesExport:
        """Portable copy of a user's effective preferences."""
        return PreferencesExport(
            user_id=user_id,
            preferences=await self.get(session, user_id),
            exported_at=datetime.now(UTC),
        )

    async def import_(
        self,
        session: AsyncSession,
        user_id: str,
        data: Mapping[str, Any],
    ) -> NotificationPreferences:
        """Import preferences from an export (or a bare document).

        Accepts ``{"preferences": {...}}``, the legacy
        ``{"notifications": {...}}`` wrapper, or the document itself.
        """
        if not isinstance(data, Mapping):
            raise ValidationException(detail="Invalid preferences format")
        document = data.get("preferences", data)
        if isinstance(document, Mapping) and isinstance(document.get("notifications"), Mapping):
            document = document["notifications"]
        if not isinstance(document, Mapping):
            raise ValidationException(detail="Invalid preferences format")

        imported = coerce_preferences(document)
        await self._repository.upsert_document(session, user_id, imported.model_dump())
        self.logger.info("Imported notification preferences", extra={"user_id": user_id})
        return imported

    async def bulk_update(
        self,
        session: AsyncSession,
        user_ids: list[str],
        preferences: Mapping[str, Any],
    ) -> BulkUpdateResult:
        """Store the same validated document for many users (admin operation)."""
        document = coerce_preferences(preferences).model_dump()
        for user_id in dict.fromkeys(user_ids):
            await self._repository.upsert_document(session, user_id, document)

        count = len(set(user_ids))
        self.logger.info("Bulk updated notification preferences", extra={"count": count})
        return BulkUpdateResult(updated_count=count)

    async def users_for_category(
        self,
        session: AsyncSession,
        category: str,
        channel: Channel | str,
        now: datetime | None = None,
    ) -> list[str]:
        """Users with stored preferences that currently allow ``category`` on ``channel``."""
        moment = now or datetime.now(UTC)
        allowed: list[str] = []
        for user_id in await self._repository.list_user_ids(session):
            preferences = await self.get(session, user_id)
            if evaluate(preferences, category, channel, moment).allowed:
                allowed.append(user_id)
        return allowed

    async def is_allowed(
        self,
        session: AsyncSession,
        user_id: str,
        category: str,
        channel: Channel | str,
        now: datetime | None = None,
    ) -> bool:
        """Delegate to the policy engine (fail-open)."""
        return await self._policy.is_allowed(session, user_id, category, channel, now)


_preference_service: PreferenceService | None = None


def get_preference_service() -> PreferenceService:
    """Get the shared preference service."""
    global _preference_service
    if _preference_service is None:
        _preference_service = PreferenceService()
    return _preference_service
