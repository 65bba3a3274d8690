"""Pydantic schemas for realtime WebSocket frames.

Client frames are ``{"event": ..., "data": {...}}``; server frames use the
same keys plus a ``timestamp`` (see ``infra.realtime.events.envelope``).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ClientFrame(BaseModel):
    """Any frame sent by a client."""

    event: str = Field(min_length=1, max_length=100)
    data: dict[str, Any] = Field(default_factory=dict)


class MarkReadData(BaseModel):
    notification_id: UUID


class ErrorData(BaseModel):
    """Payload of ``notification:error``."""

    code: str
    message: str
    notification_id: str | None = None


class PresenceStats(BaseModel):
    total_connections: int
    online_users: int
