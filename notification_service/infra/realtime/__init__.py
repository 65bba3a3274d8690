"""Realtime infrastructure for WebSocket connections.

- PresenceManager: authenticate, track and heartbeat user connections
- RealtimeEvent / envelope: the frame vocabulary shared with clients

Usage:
    from notification_service.infra.realtime import get_presence_manager

    manager = get_presence_manager()
    await manager.send_to_user(user_id, RealtimeEvent.NOTIFICATION_NEW, {...})
"""

from notification_service.infra.realtime.events import RealtimeEvent, envelope
from notification_service.infra.realtime.manager import (
    ConnectionHandle,
    ConnectionInfo,
    ConnectionState,
    PresenceManager,
    get_presence_manager,
    set_presence_manager,
)

__all__ = [
    "ConnectionHandle",
    "ConnectionInfo",
    "ConnectionState",
    "PresenceManager",
    "RealtimeEvent",
    "envelope",
    "get_presence_manager",
    "set_presence_manager",
]
