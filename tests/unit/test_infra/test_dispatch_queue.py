"""Tests for the in-process dispatch queue."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from notification_service.core.exceptions import TerminalDeliveryFailure
from notification_service.infra.dispatch import Channel, DispatchQueue, JobStatus, Priority


@pytest.fixture
async def queue(fast_dispatch_settings):
    queue = DispatchQueue(fast_dispatch_settings)
    yield queue
    await queue.stop()


def recorder(order: list[str]) -> AsyncMock:
    """Handler that records each job's ``name`` payload key."""

    async def _deliver(job):
        order.append(job.payload["name"])

    return AsyncMock(side_effect=_deliver)


@pytest.mark.unit
class TestDelivery:
    @pytest.mark.asyncio
    async def test_job_completes(self, queue):
        handler = AsyncMock()
        queue.register_handler(Channel.EMAIL, handler)
        await queue.start()

        handle = queue.enqueue(Channel.EMAIL, {"notification_id": "n-1"})
        job = await handle.wait(timeout=2)

        assert job.status is JobStatus.COMPLETED
        assert job.attempts == 1
        handler.assert_awaited_once_with(job)
        assert queue.stats()["email"]["completed"] == 1
        assert queue.completed_jobs(Channel.EMAIL) == [job]
        assert queue.get_job(job.id) is None

    @pytest.mark.asyncio
    async def test_failure_is_retried_until_success(self, queue):
        handler = AsyncMock(side_effect=[RuntimeError("smtp down"), None])
        queue.register_handler(Channel.EMAIL, handler)
        await queue.start()

        job = await queue.enqueue(Channel.EMAIL, {}).wait(timeout=2)

        assert job.status is JobStatus.COMPLETED
        assert job.attempts == 2
        assert job.last_error == "RuntimeError: smtp down"

    @pytest.mark.asyncio
    async def test_job_fails_after_max_attempts(self, queue):
        handler = AsyncMock(side_effect=RuntimeError("smtp down"))
        queue.register_handler(Channel.EMAIL, handler)
        await queue.start()

        job = await queue.enqueue(Channel.EMAIL, {}).wait(timeout=2)

        assert job.status is JobStatus.FAILED
        assert job.attempts == 3
        assert handler.await_count == 3
        assert "smtp down" in job.last_error
        assert queue.failed_jobs("email") == [job]
        assert queue.stats()["email"] == {"queued": 0, "active": 0, "completed": 0, "failed": 1}

    @pytest.mark.asyncio
    async def test_terminal_failure_is_not_retried(self, queue):
        handler = AsyncMock(side_effect=TerminalDeliveryFailure("no address", channel="email"))
        queue.register_handler(Channel.EMAIL, handler)
        await queue.start()

        job = await queue.enqueue(Channel.EMAIL, {}).wait(timeout=2)

        assert job.status is JobStatus.FAILED
        assert job.attempts == 1
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_channels_are_isolated(self, queue):
        email = AsyncMock(side_effect=RuntimeError("boom"))
        push = AsyncMock()
        queue.register_handler(Channel.EMAIL, email)
        queue.register_handler(Channel.PUSH, push)
        await queue.start()

        push_job = await queue.enqueue(Channel.PUSH, {}).wait(timeout=2)
        email_job = await queue.enqueue(Channel.EMAIL, {}).wait(timeout=2)

        assert push_job.status is JobStatus.COMPLETED
        assert email_job.status is JobStatus.FAILED


@pytest.mark.unit
class TestOrdering:
    @pytest.mark.asyncio
    async def test_higher_priority_runs_first(self, queue):
        order: list[str] = []
        queue.register_handler(Channel.PUSH, recorder(order))

        handles = [
            queue.enqueue(Channel.PUSH, {"name": "low"}, Priority.LOW),
            queue.enqueue(Channel.PUSH, {"name": "normal-1"}, Priority.NORMAL),
            queue.enqueue(Channel.PUSH, {"name": "high"}, Priority.HIGH),
            queue.enqueue(Channel.PUSH, {"name": "normal-2"}, "normal"),
        ]
        await queue.start()
        await asyncio.gather(*(h.wait(timeout=2) for h in handles))

        assert order == ["high", "normal-1", "normal-2", "low"]

    @pytest.mark.asyncio
    async def test_low_priority_is_not_starved(self, queue):
        """Every eighth pick serves the oldest job across all tiers."""
        order: list[str] = []
        queue.register_handler(Channel.PUSH, recorder(order))

        handles = [queue.enqueue(Channel.PUSH, {"name": "low"}, Priority.LOW)]
        handles += [
            queue.enqueue(Channel.PUSH, {"name": f"high-{i}"}, Priority.HIGH) for i in range(10)
        ]
        await queue.start()
        await asyncio.gather(*(h.wait(timeout=2) for h in handles))

        assert order.index("low") == 7
        assert [name for name in order if name != "low"] == [f"high-{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_delayed_job_waits(self, queue):
        order: list[str] = []
        queue.register_handler(Channel.IN_APP, recorder(order))
        await queue.start()

        later = queue.enqueue(Channel.IN_APP, {"name": "later"}, delay=0.1)
        now = queue.enqueue(Channel.IN_APP, {"name": "now"})
        await asyncio.gather(later.wait(timeout=2), now.wait(timeout=2))

        assert order == ["now", "later"]


@pytest.mark.unit
class TestProducerApi:
    def test_enqueue_batch_uses_low_priority_and_batch_delay(self, fast_dispatch_settings):
        queue = DispatchQueue(fast_dispatch_settings, clock=lambda: 100.0)

        handle = queue.enqueue_batch(Channel.EMAIL, {"notification_id": "n-1"})

        assert handle.job.priority is Priority.LOW
        assert handle.job.not_before == pytest.approx(100.5)
        assert handle.status is JobStatus.QUEUED

    def test_negative_delay_is_rejected(self, fast_dispatch_settings):
        queue = DispatchQueue(fast_dispatch_settings)
        with pytest.raises(ValueError, match="non-negative"):
            queue.enqueue(Channel.EMAIL, {}, delay=-1)

    def test_payload_is_copied(self, fast_dispatch_settings):
        queue = DispatchQueue(fast_dispatch_settings)
        payload = {"title": "Hello"}
        handle = queue.enqueue(Channel.EMAIL, payload)
        payload["title"] = "Changed"

        assert handle.job.payload == {"title": "Hello"}

    @pytest.mark.asyncio
    async def test_cancel_before_pickup(self, queue):
        handler = AsyncMock()
        queue.register_handler(Channel.EMAIL, handler)
        cancelled = queue.enqueue(Channel.EMAIL, {"notification_id": "n-1"})

        assert queue.cancel(cancelled.id) is True
        assert queue.cancel(cancelled.id) is False
        assert cancelled.status is JobStatus.CANCELLED
        assert queue.get_job(cancelled.id) is None
        assert queue.stats()["email"]["queued"] == 0

        await queue.start()
        kept = await queue.enqueue(Channel.EMAIL, {"notification_id": "n-2"}).wait(timeout=2)

        handler.assert_awaited_once_with(kept)

    def test_cancel_unknown_job(self, fast_dispatch_settings):
        queue = DispatchQueue(fast_dispatch_settings)
        assert queue.cancel("missing") is False

    def test_backoff_is_exponential_and_capped(self, fast_dispatch_settings):
        queue = DispatchQueue(fast_dispatch_settings)
        assert queue.backoff_delay(1) == pytest.approx(0.01)
        assert queue.backoff_delay(2) == pytest.approx(0.02)
        assert queue.backoff_delay(10) == pytest.approx(0.05)


@pytest.mark.unit
class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_requeues_active_job(self, queue):
        started = asyncio.Event()

        async def _hang(job):
            started.set()
            await asyncio.Event().wait()

        queue.register_handler(Channel.EMAIL, _hang)
        await queue.start()
        handle = queue.enqueue(Channel.EMAIL, {})
        await asyncio.wait_for(started.wait(), timeout=2)

        await queue.stop()

        assert queue.is_running is False
        assert handle.status is JobStatus.QUEUED
        assert handle.attempts == 0
        assert queue.pending_count() == 1

    @pytest.mark.asyncio
    async def test_wait_times_out(self, queue):
        handle = queue.enqueue(Channel.EMAIL, {})

        with pytest.raises(TimeoutError):
            await handle.wait(timeout=0.05)

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, queue):
        queue.register_handler(Channel.EMAIL, AsyncMock())

        await queue.start()
        await queue.start()

        assert queue.is_running is True
        assert len(queue._workers) == 1
