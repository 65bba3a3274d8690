"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from notification_service.features.notifications.models import NotificationStatus


class NotificationRead(BaseModel):
    """Notification as returned to clients and sent over the live channel."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: str
    type: str
    category: str
    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus
    created_at: datetime
    updated_at: datetime
    read_at: datetime | None = None


class NotificationFilters(BaseModel):
    """Filters accepted by ``NotificationStore.list``."""

    status: NotificationStatus | None = None
    category: str | None = None
    type: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    include_deleted: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> NotificationFilters:
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class NotificationPage(BaseModel):
    """One page of a recipient's notifications."""

    items: list[NotificationRead]
    total: int
    unread_count: int
    page: int
    limit: int
    pages: int
    has_next: bool
    has_prev: bool


class NotificationStats(BaseModel):
    total: int = 0
    unread: int = 0
    read: int = 0
    archived: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)


class NotificationCreate(BaseModel):
    """Input for ``bulk_create`` and ``dispatch_many``."""

    recipient_id: str = Field(min_length=1, max_length=64)
    type: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=500)
    body: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class OutcomeStatus(StrEnum):
    DELIVERED = "delivered"
    QUEUED = "queued"
    SKIPPED = "skipped"
    FAILED = "failed"


class ChannelOutcome(BaseModel):
    """What happened on one channel for one dispatched notification."""

    channel: str
    status: OutcomeStatus
    job_id: str | None = None
    reason: str | None = None
    error: str | None = None


class DispatchResult(BaseModel):
    notification: NotificationRead
    outcomes: list[ChannelOutcome]

    def outcome(self, channel: str) -> ChannelOutcome | None:
        """Outcome for ``channel``, None if it was not requested."""
        return next((o for o in self.outcomes if o.channel == channel), None)
