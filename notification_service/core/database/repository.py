"""Generic async repository base.

Sessions are always passed in explicitly; repositories hold no transaction
state. Writes flush so generated columns are available, and the caller
decides when to commit.

Example:
    from notification_service.core.database import BaseRepository
    from notification_service.core.models import User

    class UserRepository(BaseRepository[User]):
        async def get_email(self, session: AsyncSession, user_id: str) -> str | None:
            user = await self.get(session, user_id)
            return user.email if user else None
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import Select, func, select

from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class SearchResult(Generic[T]):
    """One page of rows plus the unpaginated total."""

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def pages(self) -> int:
        """Page count at this page size; 0 when nothing matched."""
        if self.limit <= 0:
            return 1 if self.total else 0
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        return self.offset + len(self.items) < self.total

    @property
    def has_prev(self) -> bool:
        return self.offset > 0


class BaseRepository(Generic[T]):
    """Primary-key lookup, inserts and paginated search for one model."""

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
    ) -> T | None:
        """Get a row by primary key, or None."""
        instance = await session.get(self.model, id)
        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]],
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Run ``statement`` for one page and count every matching row.

        Apply filters and ordering before calling; ordering is dropped for
        the count query.
        """
        count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
        total = (await session.execute(count_stmt)).scalar_one()

        result = await session.execute(statement.limit(limit).offset(offset))
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.search: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)}/{total}"
        )
        return SearchResult(items=items, total=total, limit=limit, offset=offset)

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Add, flush and refresh so server defaults are loaded."""
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        self._lazy.debug(
            lambda: f"db.create: {self.model.__name__}(id={getattr(instance, 'id', None)})"
        )
        return instance

    async def create_many(self, session: AsyncSession, instances: Iterable[T]) -> Sequence[T]:
        """Insert several rows with a single flush."""
        rows = list(instances)
        if not rows:
            return rows
        session.add_all(rows)
        await session.flush()
        for row in rows:
            await session.refresh(row)

        self._lazy.debug(lambda: f"db.create_many: {self.model.__name__} -> {len(rows)} created")
        return rows


__all__ = ["BaseRepository", "SearchResult"]
