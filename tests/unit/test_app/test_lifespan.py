"""Tests for the startup wiring between the orchestrator and the dispatch queue."""

from __future__ import annotations

import pytest

from notification_service.app import lifespan as app_lifespan
from notification_service.features.notifications.orchestrator import (
    get_orchestrator,
    set_orchestrator,
)
from notification_service.infra.dispatch import Channel, get_dispatch_queue, set_dispatch_queue


@pytest.fixture
async def started():
    set_orchestrator(None)
    set_dispatch_queue(None)
    await app_lifespan._startup_presence()
    await app_lifespan._startup_dispatch()
    try:
        yield
    finally:
        await app_lifespan._shutdown_dispatch()
        await app_lifespan._shutdown_presence()
        set_orchestrator(None)


@pytest.mark.unit
class TestStartupWiring:
    @pytest.mark.asyncio
    async def test_orchestrator_uses_the_started_queue(self, started):
        orchestrator = get_orchestrator()
        live = get_dispatch_queue()

        assert orchestrator.queue is live
        assert live.is_running
        assert set(live._handlers) == {Channel.IN_APP, Channel.PUSH, Channel.EMAIL}

    @pytest.mark.asyncio
    async def test_orchestrator_built_before_queue_follows_replacement(self):
        set_orchestrator(None)
        set_dispatch_queue(None)
        orchestrator = get_orchestrator()
        early = orchestrator.queue

        await app_lifespan._startup_presence()
        await app_lifespan._startup_dispatch()
        try:
            assert orchestrator.queue is not early
            assert orchestrator.queue is get_dispatch_queue()
            assert orchestrator.queue.is_running
        finally:
            await app_lifespan._shutdown_dispatch()
            await app_lifespan._shutdown_presence()
            set_orchestrator(None)
