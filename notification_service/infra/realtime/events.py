"""Event names and the message envelope for the WebSocket protocol."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class RealtimeEvent(StrEnum):
    """Event names on the WebSocket protocol.

    Server to client frames use the envelope ``{event, data, timestamp}``;
    client frames are ``{event, data}``.
    """

    # server -> client
    CONNECTED = "connected"
    PING = "ping"
    PRESENCE_UPDATE = "presence:update"
    NOTIFICATION_NEW = "notification:new"
    NOTIFICATION_READ = "notification:read"
    NOTIFICATION_BULK_READ = "notification:bulk_read"
    READ_SUCCESS = "notification:read_success"
    ALL_READ_SUCCESS = "notification:all_read_success"
    ERROR = "notification:error"

    # client -> server
    PONG = "pong"
    MARK_READ = "notification:mark_read"
    MARK_ALL_READ = "notification:mark_all_read"


def envelope(event: str, data: dict[str, Any]) -> dict[str, Any]:
    """Wrap ``data`` in the outbound frame format."""
    return {
        "event": str(event),
        "data": data,
        "timestamp": datetime.now(UTC).isoformat(),
    }
