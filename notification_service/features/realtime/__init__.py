"""Realtime feature: the authenticated WebSocket notification stream.

Usage:
    from notification_service.features.realtime import router
    app.include_router(router)

    # Connect via WebSocket
    ws://localhost:8000/ws?token=<access token>
"""

from notification_service.features.realtime.router import router

__all__ = ["router"]
