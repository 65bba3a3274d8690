"""Tests for the application factory, routers and exception handlers."""

from __future__ import annotations

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
import pytest

from notification_service.app.exception_handlers import configure_exception_handlers
from notification_service.app.main import create_app
from notification_service.app.router import setup_routers
from notification_service.core.exceptions import NotAuthorizedException
from notification_service.core.settings import WebSocketSettings


def _paths(app: FastAPI) -> set[str]:
    """Every route path, descending into mounts and included routers."""
    paths: set[str] = set()

    def walk(routes, prefix: str = "") -> None:
        for route in routes:
            path = getattr(route, "path", None)
            if path is not None:
                paths.add(prefix + path)
            children = getattr(route, "routes", None)
            if children:
                walk(children, prefix + (path or ""))

    walk(app.routes)
    return paths


@pytest.mark.unit
class TestCreateApp:
    def test_routes_are_mounted(self):
        paths = _paths(create_app())

        assert {"/metrics", "/ws", "/ws/stats"} <= paths

    def test_realtime_routes_follow_settings(self):
        app = FastAPI()
        setup_routers(app, WebSocketSettings(enabled=False))

        paths = _paths(app)
        assert "/metrics" in paths
        assert "/ws" not in paths

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self):
        app = create_app()

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "dispatch_queue_depth" in response.text
        assert "websocket_online_users" in response.text


@pytest.mark.unit
class TestExceptionHandlers:
    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        configure_exception_handlers(app)

        @app.get("/forbidden")
        async def forbidden():
            raise NotAuthorizedException(
                "Notification belongs to another user", extra={"notification_id": "n-1"}
            )

        @app.get("/items/{item_id}")
        async def item(item_id: int):
            return {"item_id": item_id}

        @app.get("/boom")
        async def boom():
            raise RuntimeError("secret internals")

        return app

    @pytest.mark.asyncio
    async def test_app_exception_is_problem_document(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/forbidden")

        assert response.status_code == 403
        body = response.json()
        assert body["type"] == "not-authorized"
        assert body["notification_id"] == "n-1"
        assert body["instance"] == "http://test/forbidden"

    @pytest.mark.asyncio
    async def test_validation_error_lists_fields(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/items/abc")

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "validation-error"
        assert body["errors"][0]["field"] == "path.item_id"

    @pytest.mark.asyncio
    async def test_unexpected_error_hides_details(self, app):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/boom")

        assert response.status_code == 500
        assert "secret internals" not in response.text
        assert response.json()["type"] == "internal-error"
