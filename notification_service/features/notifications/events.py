"""Live notification events.

The store and orchestrator push events to a recipient's open connections
through a ``LiveNotifier``. ``PresenceManager`` implements it; headless
workers and tests pass ``None`` or a double.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from notification_service.infra.realtime.events import RealtimeEvent

__all__ = ["LiveNotifier", "RealtimeEvent"]


@runtime_checkable
class LiveNotifier(Protocol):
    """Anything that can push an event to a user's live connections."""

    def is_online(self, user_id: str) -> bool: ...

    async def send_to_user(self, user_id: str, event: str, data: dict[str, Any]) -> bool: ...
