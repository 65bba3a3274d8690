"""WebSocket router for live notifications.

Endpoints:
- WS /ws: authenticated notification stream
- GET /ws/stats: connection statistics
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from notification_service.core.exceptions import AppException, AuthenticationFailure
from notification_service.core.settings import get_websocket_settings
from notification_service.features.notifications.service import get_notification_store
from notification_service.features.realtime.schemas import (
    ClientFrame,
    ErrorData,
    MarkReadData,
    PresenceStats,
)
from notification_service.infra.database import AsyncSessionLocal
from notification_service.infra.metrics.prometheus import websocket_messages_received_total
from notification_service.infra.realtime import RealtimeEvent, get_presence_manager

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notification_service.features.notifications.service import NotificationStore
    from notification_service.infra.realtime import ConnectionHandle, PresenceManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ws", tags=["realtime"])


def _get_manager_safe() -> PresenceManager | None:
    """Get the presence manager, handling the not-initialized case."""
    try:
        return get_presence_manager()
    except RuntimeError:
        return None


def _credential(websocket: WebSocket, token: str | None) -> str | None:
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value
    return None


@router.websocket("")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Annotated[str | None, Query(description="Access token")] = None,
) -> None:
    """Notification stream for the authenticated user.

    Client -> Server:
        - {"event": "notification:mark_read", "data": {"notification_id": "..."}}
        - {"event": "notification:mark_all_read"}
        - {"event": "pong"}

    Server -> Client ({"event", "data", "timestamp"}):
        - connected, ping, presence:update
        - notification:new, notification:read, notification:bulk_read
        - notification:read_success, notification:all_read_success
        - notification:error
    """
    if not get_websocket_settings().enabled:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="WebSocket disabled")
        return

    manager = _get_manager_safe()
    if manager is None:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="Server not ready")
        return

    try:
        handle = await manager.connect(websocket, _credential(websocket, token))
    except (AuthenticationFailure, ConnectionRefusedError):
        # The manager has already closed the socket with the right code
        return

    info = manager.get_connection(handle)
    user_id = info.user_id if info else ""

    try:
        async for raw in websocket.iter_text():
            await handle_frame(manager, handle, user_id, raw)
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected normally")
    except Exception as e:
        logger.exception("WebSocket error", extra={"error": str(e)})
    finally:
        await manager.disconnect(handle)


async def handle_frame(
    manager: PresenceManager,
    handle: ConnectionHandle,
    user_id: str,
    raw: str,
    *,
    store: NotificationStore | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> None:
    """Process one client frame and send the reply, if any."""
    try:
        frame = ClientFrame.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError):
        await _reply_error(manager, handle, "invalid_frame", "Invalid message")
        return

    websocket_messages_received_total.labels(message_type=frame.event).inc()

    if frame.event == RealtimeEvent.PONG:
        manager.record_pong(handle)
        return

    store = store or get_notification_store()
    session_factory = session_factory or AsyncSessionLocal

    if frame.event == RealtimeEvent.MARK_READ:
        try:
            data = MarkReadData.model_validate(frame.data)
        except ValidationError:
            await _reply_error(manager, handle, "invalid_frame", "notification_id is required")
            return
        try:
            async with session_factory() as session:
                changed = await store.mark_read(session, data.notification_id, user_id)
                await session.commit()
        except AppException as e:
            await _reply_error(
                manager, handle, e.type, e.detail, notification_id=str(data.notification_id)
            )
            return
        await manager.send_to_connection(
            handle,
            RealtimeEvent.READ_SUCCESS,
            {"notification_id": str(data.notification_id), "changed": changed},
        )
        return

    if frame.event == RealtimeEvent.MARK_ALL_READ:
        async with session_factory() as session:
            count = await store.mark_all_read(session, user_id)
            await session.commit()
        await manager.send_to_connection(handle, RealtimeEvent.ALL_READ_SUCCESS, {"count": count})
        return

    await _reply_error(manager, handle, "unknown_event", f"Unknown event: {frame.event}")


async def _reply_error(
    manager: PresenceManager,
    handle: ConnectionHandle,
    code: str,
    message: str,
    **extra: Any,
) -> None:
    error = ErrorData(code=code, message=message, **extra)
    await manager.send_to_connection(handle, RealtimeEvent.ERROR, error.model_dump(exclude_none=True))


@router.get(
    "/stats",
    response_model=PresenceStats,
    summary="Get WebSocket connection statistics",
)
async def get_stats() -> PresenceStats | JSONResponse:
    """Current connection and online-user counts."""
    manager = _get_manager_safe()
    if manager is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Presence manager not initialized"},
        )
    return PresenceStats(
        total_connections=manager.connection_count,
        online_users=len(manager.online_users()),
    )
