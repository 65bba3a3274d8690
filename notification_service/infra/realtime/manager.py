"""Presence-aware WebSocket connection manager.

Tracks which users have live connections and pushes events to them:
- Authenticates the handshake credential before registering a connection
- Maps each user to the set of their open connections
- Runs a per-connection heartbeat that pings and drops silent clients
- Broadcasts ``presence:update`` on a user's first connect and last disconnect

Connections are referenced by ``ConnectionHandle``, an opaque integer that
indexes the manager's connection table. Membership is only mutated while
holding the manager's lock; sends happen outside it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import contextlib
from dataclasses import dataclass, field
from enum import StrEnum
import itertools
import logging
import time
from typing import TYPE_CHECKING, Any, NewType

from notification_service.core.exceptions import AuthenticationFailure
from notification_service.core.settings import get_websocket_settings
from notification_service.infra.metrics.prometheus import (
    websocket_auth_failures_total,
    websocket_connection_duration_seconds,
    websocket_connections_total,
    websocket_heartbeat_timeouts_total,
    websocket_messages_sent_total,
    websocket_online_users,
)
from notification_service.infra.realtime.events import RealtimeEvent, envelope

if TYPE_CHECKING:
    from fastapi import WebSocket

    from notification_service.core.settings.websocket import WebSocketSettings
    from notification_service.infra.auth.tokens import TokenVerifier

logger = logging.getLogger(__name__)

ConnectionHandle = NewType("ConnectionHandle", int)

POLICY_VIOLATION = 1008
GOING_AWAY = 1001
TRY_AGAIN_LATER = 1013


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(slots=True, eq=False)
class ConnectionInfo:
    """A live connection and its heartbeat bookkeeping (clock seconds)."""

    handle: ConnectionHandle
    websocket: WebSocket
    user_id: str
    state: ConnectionState
    connected_at: float
    last_pong: float
    heartbeat: asyncio.Task[None] | None = field(default=None, repr=False)


class PresenceManager:
    """Manages authenticated WebSocket connections per user.

    Example:
        manager = PresenceManager(JWTTokenVerifier(get_auth_settings()))

        # In the WebSocket endpoint
        handle = await manager.connect(websocket, token)
        try:
            async for frame in websocket.iter_json():
                ...
        finally:
            await manager.disconnect(handle)

        # From anywhere in the app
        await manager.send_to_user("user-1", "notification:new", {...})
    """

    def __init__(
        self,
        verifier: TokenVerifier,
        settings: WebSocketSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._verifier = verifier
        self._settings = settings or get_websocket_settings()
        self._clock = clock

        # handle -> ConnectionInfo
        self._connections: dict[ConnectionHandle, ConnectionInfo] = {}
        # user_id -> handles
        self._user_connections: dict[str, set[ConnectionHandle]] = {}
        self._handles = itertools.count(1)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket, credential: str | None) -> ConnectionHandle:
        """Accept, authenticate and register a connection.

        Raises:
            AuthenticationFailure: The credential was rejected; the socket
                has been closed with code 1008.
            ConnectionRefusedError: A connection limit was reached; the
                socket has been closed with code 1013.
        """
        await websocket.accept()

        try:
            user_id = await self._verifier.verify(credential or "")
        except AuthenticationFailure as e:
            websocket_auth_failures_total.inc()
            logger.info("WebSocket authentication failed", extra={"error": str(e)})
            with contextlib.suppress(Exception):
                await websocket.close(code=POLICY_VIOLATION, reason="Authentication failed")
            raise

        async with self._lock:
            refusal = self._refusal_reason(user_id)
            if refusal is None:
                now = self._clock()
                handle = ConnectionHandle(next(self._handles))
                info = ConnectionInfo(
                    handle=handle,
                    websocket=websocket,
                    user_id=user_id,
                    state=ConnectionState.AUTHENTICATED,
                    connected_at=now,
                    last_pong=now,
                )
                self._connections[handle] = info
                handles = self._user_connections.setdefault(user_id, set())
                handles.add(handle)
                first_connection = len(handles) == 1
                self._update_gauges()

        if refusal is not None:
            logger.warning("Connection refused", extra={"user_id": user_id, "reason": refusal})
            with contextlib.suppress(Exception):
                await websocket.close(code=TRY_AGAIN_LATER, reason=refusal)
            raise ConnectionRefusedError(refusal)

        info.state = ConnectionState.CONNECTED
        await self._send(info, RealtimeEvent.CONNECTED, {"user_id": user_id, "connection_id": handle})

        if self._settings.heartbeat_interval > 0:
            info.heartbeat = asyncio.create_task(
                self._heartbeat(handle), name=f"ws-heartbeat-{handle}"
            )

        logger.info(
            "WebSocket connected",
            extra={
                "connection_id": handle,
                "user_id": user_id,
                "total_connections": len(self._connections),
            },
        )

        if first_connection:
            await self.broadcast(RealtimeEvent.PRESENCE_UPDATE, {"user_id": user_id, "online": True})
        return handle

    async def disconnect(self, handle: ConnectionHandle, reason: str = "client") -> bool:
        """Unregister a connection and close its socket.

        Returns:
            False if the handle was already gone.
        """
        async with self._lock:
            info = self._connections.pop(handle, None)
            if info is None:
                return False
            handles = self._user_connections.get(info.user_id, set())
            handles.discard(handle)
            last_connection = not handles
            if last_connection:
                self._user_connections.pop(info.user_id, None)
            info.state = ConnectionState.DISCONNECTED
            self._update_gauges()

        task = info.heartbeat
        if task is not None and task is not asyncio.current_task():
            task.cancel()

        with contextlib.suppress(Exception):
            await info.websocket.close()

        duration = self._clock() - info.connected_at
        websocket_connection_duration_seconds.observe(max(duration, 0.0))
        logger.info(
            "WebSocket disconnected",
            extra={
                "connection_id": handle,
                "user_id": info.user_id,
                "reason": reason,
                "duration_seconds": duration,
                "total_connections": len(self._connections),
            },
        )

        if last_connection:
            await self.broadcast(
                RealtimeEvent.PRESENCE_UPDATE, {"user_id": info.user_id, "online": False}
            )
        return True

    async def stop(self) -> None:
        """Close every connection (server shutdown)."""
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
            self._user_connections.clear()
            self._update_gauges()

        for info in connections:
            info.state = ConnectionState.DISCONNECTED
            if info.heartbeat is not None:
                info.heartbeat.cancel()
            with contextlib.suppress(Exception):
                await info.websocket.close(code=GOING_AWAY, reason="Server shutdown")

        logger.info("Presence manager stopped", extra={"connections_closed": len(connections)})

    def record_pong(self, handle: ConnectionHandle) -> bool:
        """Refresh a connection's liveness; False if the handle is unknown."""
        info = self._connections.get(handle)
        if info is None:
            return False
        info.last_pong = self._clock()
        return True

    async def reap_stale_connections(self) -> list[ConnectionHandle]:
        """Disconnect every connection whose last pong is older than the timeout."""
        timeout = self._settings.connection_timeout
        if timeout <= 0:
            return []

        now = self._clock()
        stale = [
            handle
            for handle, info in list(self._connections.items())
            if now - info.last_pong > timeout
        ]
        for handle in stale:
            websocket_heartbeat_timeouts_total.inc()
            await self.disconnect(handle, reason="heartbeat_timeout")
        return stale

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send_to_user(self, user_id: str, event: str, data: dict[str, Any]) -> bool:
        """Send an event to every connection of ``user_id``.

        Returns:
            True if at least one connection accepted the frame.
        """
        infos = [
            self._connections[h]
            for h in list(self._user_connections.get(user_id, ()))
            if h in self._connections
        ]
        if not infos:
            return False
        results = await asyncio.gather(*(self._send(info, event, data) for info in infos))
        return any(results)

    async def send_to_connection(
        self,
        handle: ConnectionHandle,
        event: str,
        data: dict[str, Any],
    ) -> bool:
        """Send an event to one connection; False if it is gone or the send failed."""
        info = self._connections.get(handle)
        if info is None:
            return False
        return await self._send(info, event, data)

    async def broadcast(self, event: str, data: dict[str, Any]) -> int:
        """Send an event to every connection; returns how many accepted it."""
        infos = list(self._connections.values())
        if not infos:
            return 0
        results = await asyncio.gather(*(self._send(info, event, data) for info in infos))
        return sum(results)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_online(self, user_id: str) -> bool:
        return bool(self._user_connections.get(user_id))

    def online_users(self) -> list[str]:
        return list(self._user_connections)

    def user_connection_count(self, user_id: str) -> int:
        return len(self._user_connections.get(user_id, ()))

    def get_connection(self, handle: ConnectionHandle) -> ConnectionInfo | None:
        return self._connections.get(handle)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _refusal_reason(self, user_id: str) -> str | None:
        if len(self._connections) >= self._settings.max_connections:
            return "Maximum connections reached"
        if len(self._user_connections.get(user_id, ())) >= self._settings.max_connections_per_user:
            return "Maximum connections per user reached"
        return None

    async def _send(self, info: ConnectionInfo, event: str, data: dict[str, Any]) -> bool:
        try:
            await info.websocket.send_json(envelope(event, data))
        except Exception as e:
            logger.warning(
                "Failed to send message to connection",
                extra={"connection_id": info.handle, "user_id": info.user_id, "error": str(e)},
            )
            # Connection is likely dead, remove it
            await self.disconnect(info.handle, reason="send_failed")
            return False
        websocket_messages_sent_total.labels(message_type=str(event)).inc()
        return True

    async def _heartbeat(self, handle: ConnectionHandle) -> None:
        interval = self._settings.heartbeat_interval
        timeout = self._settings.connection_timeout
        while True:
            await asyncio.sleep(interval)
            info = self._connections.get(handle)
            if info is None:
                return
            if timeout > 0 and self._clock() - info.last_pong > timeout:
                websocket_heartbeat_timeouts_total.inc()
                logger.warning(
                    "Connection timed out",
                    extra={"connection_id": handle, "user_id": info.user_id},
                )
                await self.disconnect(handle, reason="heartbeat_timeout")
                return
            if not await self._send(info, RealtimeEvent.PING, {}):
                return

    def _update_gauges(self) -> None:
        websocket_connections_total.set(len(self._connections))
        websocket_online_users.set(len(self._user_connections))


# Global manager instance
_manager: PresenceManager | None = None


def get_presence_manager() -> PresenceManager:
    """Get the global presence manager.

    Raises:
        RuntimeError: If the manager has not been set up.
    """
    if _manager is None:
        raise RuntimeError("Presence manager not initialized. Call set_presence_manager() first.")
    return _manager


def set_presence_manager(manager: PresenceManager | None) -> None:
    global _manager
    _manager = manager
