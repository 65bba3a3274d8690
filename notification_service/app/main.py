"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from notification_service.app.exception_handlers import configure_exception_handlers
from notification_service.app.lifespan import lifespan
from notification_service.app.router import setup_routers
from notification_service.core.settings import get_app_settings, get_websocket_settings


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        debug=app_settings.debug,
        lifespan=lifespan,
    )

    # Configure exception handlers (must be before routers)
    configure_exception_handlers(app)

    setup_routers(app, get_websocket_settings())

    return app


# Application instance for uvicorn
app = create_app()
