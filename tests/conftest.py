"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: file-backed SQLite engine, session factory, sessions
    - Data Factories: users and notifications
    - Doubles: live notifier and token verifier fakes
    - Settings Fixtures: fast dispatch settings for queue tests
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.exceptions import AuthenticationFailure

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from notification_service.core.models import User
    from notification_service.features.notifications.models import Notification

# Keep tests away from real SMTP, push services and on-disk databases
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("LOG_JSON_LOGS", "false")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Async engine on a per-test SQLite file with every table created.

    A file (rather than ``:memory:``) lets several sessions from the same
    factory see each other's commits, which channel handlers rely on.
    """
    from notification_service.core.database.base import Base
    from notification_service.core.models import load_models

    load_models()
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """A session that is rolled back after the test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Data Factories
# ============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Create and commit a recipient.

    Example:
        async def test_something(make_user):
            user = await make_user("user-1", email="one@example.com")
    """
    from notification_service.core.models import User

    async def _make(
        user_id: str = "user-1",
        email: str | None = "user@example.com",
        is_active: bool = True,
    ) -> User:
        user = User(id=user_id, email=email, is_active=is_active)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_notification(db_session: AsyncSession) -> Callable[..., Awaitable[Notification]]:
    """Insert a notification row directly, bypassing the store.

    Useful for back-dating ``created_at``/``updated_at`` or seeding a status.
    """
    from notification_service.features.notifications.models import Notification

    async def _make(
        recipient_id: str = "user-1",
        type: str = "comment",  # noqa: A002
        status: str = "unread",
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
        title: str = "Hello",
    ) -> Notification:
        now = datetime.now(UTC)
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            category=type,
            title=title,
            body="",
            data={},
            status=status,
            created_at=created_at or now,
            updated_at=updated_at or created_at or now,
        )
        db_session.add(notification)
        await db_session.commit()
        return notification

    return _make


# ============================================================================
# Doubles
# ============================================================================


class FakeNotifier:
    """In-memory ``LiveNotifier`` that records every event it is asked to send."""

    def __init__(self, online: set[str] | None = None, *, accept: bool = True) -> None:
        self.online = set(online or ())
        self.accept = accept
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    def is_online(self, user_id: str) -> bool:
        return user_id in self.online

    async def send_to_user(self, user_id: str, event: str, data: dict[str, Any]) -> bool:
        if user_id not in self.online or not self.accept:
            return False
        self.sent.append((user_id, str(event), data))
        return True

    def events_for(self, user_id: str) -> list[str]:
        return [event for uid, event, _ in self.sent if uid == user_id]


class FakeVerifier:
    """``TokenVerifier`` that maps tokens straight to user ids."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self.tokens = tokens or {"token-1": "user-1", "token-2": "user-2"}

    async def verify(self, credential: str) -> str:
        try:
            return self.tokens[credential]
        except KeyError:
            raise AuthenticationFailure("Invalid token") from None


@pytest.fixture
def notifier() -> FakeNotifier:
    """Live notifier with nobody online."""
    return FakeNotifier()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def fast_dispatch_settings():
    """Dispatch settings with millisecond backoff and a single worker."""
    from notification_service.core.settings import DispatchSettings

    return DispatchSettings(
        max_attempts=3,
        backoff_base=0.01,
        backoff_max=0.05,
        batch_delay=0.5,
        workers_per_channel=1,
        fairness_interval=8,
    )


@pytest.fixture
def utc_now() -> datetime:
    """Current UTC time (timezone-aware)."""
    return datetime.now(UTC)
