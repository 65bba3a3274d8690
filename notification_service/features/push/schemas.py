"""Pydantic schemas for push subscriptions."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionKeys(BaseModel):
    """Client keys from ``PushSubscription.toJSON()``."""

    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class DeviceInfo(BaseModel):
    user_agent: str | None = Field(default=None, max_length=500)
    ip_address: str | None = Field(default=None, max_length=45)


class PushSubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    endpoint: str
    user_agent: str | None = None
    is_active: bool
    last_active_at: datetime
    created_at: datetime


class SubscriptionResult(BaseModel):
    """Outcome of sending to one subscription."""

    subscription_id: UUID
    success: bool
    outcome: str
    status_code: int | None = None
    error: str | None = None


class PushSendSummary(BaseModel):
    success: bool
    total: int
    successful: int
    results: list[SubscriptionResult] = Field(default_factory=list)

    @property
    def transient_failures(self) -> int:
        return sum(1 for r in self.results if r.outcome == "transient")


class PushStats(BaseModel):
    active: int = 0
    inactive: int = 0
    by_reason: dict[str, int] = Field(default_factory=dict)
