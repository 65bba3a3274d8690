"""Database core: declarative base, column types and the generic repository."""

from notification_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    TimestampMixin,
    UUIDPKMixin,
    UUIDTimestampedBase,
    utcnow,
)
from notification_service.core.database.repository import BaseRepository, SearchResult
from notification_service.core.database.types import UTCDateTime

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "SearchResult",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDPKMixin",
    "UUIDTimestampedBase",
    "utcnow",
]
