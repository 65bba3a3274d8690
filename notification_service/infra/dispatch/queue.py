"""In-process priority dispatch queue with per-channel worker pools.

Jobs are held in memory. Each channel owns a lane with one ready heap per
priority tier plus a delayed heap; a pool of worker tasks per channel pulls
the highest-priority eligible job, runs the channel handler and applies the
retry policy.

Example:
    queue = DispatchQueue()
    queue.register_handler(Channel.EMAIL, email_channel.deliver)
    await queue.start()

    handle = queue.enqueue(Channel.EMAIL, payload, Priority.NORMAL)
    job = await handle.wait(timeout=30)
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import heapq
import itertools
import logging
import time
from typing import Any
import uuid

from notification_service.core.exceptions import TerminalDeliveryFailure
from notification_service.core.settings import DispatchSettings, get_dispatch_settings
from notification_service.infra.dispatch.jobs import (
    Channel,
    DeliveryJob,
    JobHandle,
    JobStatus,
    Priority,
)
from notification_service.infra.logging import clear_log_context, get_lazy_logger, set_log_context
from notification_service.infra.metrics.prometheus import (
    dispatch_job_duration_seconds,
    dispatch_jobs_cancelled_total,
    dispatch_jobs_completed_total,
    dispatch_jobs_enqueued_total,
    dispatch_jobs_failed_total,
    dispatch_jobs_retried_total,
    dispatch_queue_depth,
)
from notification_service.utils.retry import RetryStrategy

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

ChannelHandler = Callable[[DeliveryJob], Awaitable[Any]]
Clock = Callable[[], float]


@dataclass(slots=True)
class _Lane:
    """Per-channel job storage and selection state.

    Cancelled jobs stay in the heaps and are skipped when popped.
    """

    channel: Channel
    fairness_interval: int
    ready: dict[Priority, list[tuple[int, DeliveryJob]]] = field(
        default_factory=lambda: {p: [] for p in Priority}
    )
    delayed: list[tuple[float, int, DeliveryJob]] = field(default_factory=list)
    wakeup: asyncio.Event = field(default_factory=asyncio.Event)
    picks: int = 0
    queued: int = 0
    active: int = 0
    completed_total: int = 0
    failed_total: int = 0
    completed: deque[DeliveryJob] = field(default_factory=deque)
    failed: deque[DeliveryJob] = field(default_factory=deque)

    def push(self, job: DeliveryJob, now: float) -> None:
        job.status = JobStatus.QUEUED
        self.queued += 1
        if job.not_before > now:
            heapq.heappush(self.delayed, (job.not_before, job.seq, job))
        else:
            heapq.heappush(self.ready[job.priority], (job.seq, job))
        self.wakeup.set()

    def _promote(self, now: float) -> None:
        while self.delayed and self.delayed[0][0] <= now:
            _, seq, job = heapq.heappop(self.delayed)
            if job.status is JobStatus.QUEUED:
                heapq.heappush(self.ready[job.priority], (seq, job))

    def _drop_cancelled_heads(self) -> None:
        for heap in self.ready.values():
            while heap and heap[0][1].status is not JobStatus.QUEUED:
                heapq.heappop(heap)

    def pop_ready(self, now: float) -> DeliveryJob | None:
        """Take the next eligible job, or None when nothing is due.

        Highest tier first with ties by enqueue sequence; every
        ``fairness_interval``-th pick takes the oldest eligible job across
        all tiers so LOW work is never starved.
        """
        self._promote(now)
        self._drop_cancelled_heads()

        heads = [heap for heap in (self.ready[p] for p in Priority) if heap]
        if not heads:
            return None

        self.picks += 1
        if self.picks % self.fairness_interval == 0:
            chosen = min(heads, key=lambda heap: heap[0][0])
        else:
            chosen = heads[0]

        _, job = heapq.heappop(chosen)
        self.queued -= 1
        return job

    def next_due_in(self, now: float) -> float | None:
        """Seconds until the earliest delayed job is due, None if none."""
        while self.delayed and self.delayed[0][2].status is not JobStatus.QUEUED:
            heapq.heappop(self.delayed)
        if not self.delayed:
            return None
        return max(0.0, self.delayed[0][0] - now)


class DispatchQueue:
    """Priority dispatch queue with retry, backoff and per-channel workers.

    Args:
        settings: Queue settings; loaded from the environment when omitted.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        settings: DispatchSettings | None = None,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self.settings = settings or get_dispatch_settings()
        self._clock = clock
        self._seq = itertools.count(1)
        self._lanes = {
            channel: self._new_lane(channel) for channel in Channel
        }
        self._handlers: dict[Channel, ChannelHandler] = {}
        self._jobs: dict[str, DeliveryJob] = {}
        self._workers: list[asyncio.Task[None]] = []
        self._running = False
        self._backoff = RetryStrategy(
            max_attempts=self.settings.max_attempts,
            initial_delay=self.settings.backoff_base,
            max_delay=self.settings.backoff_max,
            exponential_base=2.0,
            jitter=False,
        )
        self._tier_delays = {
            Priority.HIGH: self.settings.high_delay,
            Priority.NORMAL: self.settings.normal_delay,
            Priority.LOW: self.settings.low_delay,
        }

    def _new_lane(self, channel: Channel) -> _Lane:
        lane = _Lane(channel=channel, fairness_interval=self.settings.fairness_interval)
        lane.completed = deque(maxlen=self.settings.completed_retention)
        lane.failed = deque(maxlen=self.settings.failed_retention)
        return lane

    @property
    def is_running(self) -> bool:
        return self._running

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    def register_handler(self, channel: Channel, handler: ChannelHandler) -> None:
        """Register the delivery function for a channel.

        Must be called before :meth:`start` for the channel to get workers.
        """
        self._handlers[Channel(channel)] = handler

    async def start(self) -> None:
        """Spawn ``workers_per_channel`` workers for each registered channel."""
        if self._running:
            return
        self._running = True
        for channel in self._handlers:
            for index in range(self.settings.workers_per_channel):
                task = asyncio.create_task(
                    self._worker(channel),
                    name=f"dispatch-{channel.value}-{index}",
                )
                self._workers.append(task)

        logger.info(
            "Dispatch queue started",
            extra={
                "channels": [c.value for c in self._handlers],
                "workers_per_channel": self.settings.workers_per_channel,
            },
        )

    async def stop(self) -> None:
        """Cancel all workers.

        Jobs that were mid-flight are put back on their lane.
        """
        if not self._running:
            return
        self._running = False
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

        logger.info("Dispatch queue stopped", extra={"pending": self.pending_count()})

    # ──────────────────────────────────────────────────────────────
    # Producer API
    # ──────────────────────────────────────────────────────────────

    def enqueue(
        self,
        channel: Channel | str,
        payload: dict[str, Any],
        priority: Priority | str = Priority.NORMAL,
        delay: float | None = None,
    ) -> JobHandle:
        """Add a job to a channel lane.

        Args:
            channel: Target channel.
            payload: Denormalized notification payload.
            priority: Priority tier.
            delay: Seconds before the job becomes eligible; the tier's
                default delay when None.

        Returns:
            Handle for inspecting or awaiting the job.
        """
        channel = Channel(channel)
        priority = Priority(priority)
        if delay is not None and delay < 0:
            msg = "delay must be non-negative"
            raise ValueError(msg)

        effective_delay = self._tier_delays[priority] if delay is None else delay
        now = self._clock()
        job = DeliveryJob(
            id=uuid.uuid4().hex,
            channel=channel,
            priority=priority,
            payload=dict(payload),
            not_before=now + effective_delay,
            max_attempts=self.settings.max_attempts,
            seq=next(self._seq),
        )
        self._jobs[job.id] = job
        lane = self._lanes[channel]
        lane.push(job, now)

        dispatch_jobs_enqueued_total.labels(channel=channel.value, priority=priority.value).inc()
        dispatch_queue_depth.labels(channel=channel.value).set(lane.queued)
        lazy_logger.debug(
            lambda: f"Enqueued job {job.id} on {channel.value} ({priority.value}, delay={effective_delay}s)"
        )
        return JobHandle(job)

    def enqueue_batch(self, channel: Channel | str, payload: dict[str, Any]) -> JobHandle:
        """Enqueue a LOW job with the batch delay preset."""
        return self.enqueue(channel, payload, Priority.LOW, delay=self.settings.batch_delay)

    def cancel(self, job_id: str) -> bool:
        """Cancel a job that no worker has picked yet.

        Returns:
            True if the job was queued and is now cancelled, False otherwise.
        """
        job = self._jobs.get(job_id)
        if job is None or job.status is not JobStatus.QUEUED:
            return False

        lane = self._lanes[job.channel]
        lane.queued -= 1
        job.finish(JobStatus.CANCELLED)
        self._forget(job)

        dispatch_jobs_cancelled_total.labels(channel=job.channel.value).inc()
        dispatch_queue_depth.labels(channel=job.channel.value).set(lane.queued)
        logger.info("Job cancelled", extra={"job_id": job_id, "channel": job.channel.value})
        return True

    def get_job(self, job_id: str) -> DeliveryJob | None:
        """Look up a live (queued or active) job."""
        return self._jobs.get(job_id)

    # ──────────────────────────────────────────────────────────────
    # Inspection
    # ──────────────────────────────────────────────────────────────

    def stats(self) -> dict[str, dict[str, int]]:
        """Per-channel counters: queued, active, completed, failed."""
        return {
            channel.value: {
                "queued": lane.queued,
                "active": lane.active,
                "completed": lane.completed_total,
                "failed": lane.failed_total,
            }
            for channel, lane in self._lanes.items()
        }

    def pending_count(self) -> int:
        return sum(lane.queued + lane.active for lane in self._lanes.values())

    def completed_jobs(self, channel: Channel | str) -> list[DeliveryJob]:
        """Most recent completed jobs (bounded by completed_retention)."""
        return list(self._lanes[Channel(channel)].completed)

    def failed_jobs(self, channel: Channel | str) -> list[DeliveryJob]:
        """Most recent failed jobs (bounded by failed_retention)."""
        return list(self._lanes[Channel(channel)].failed)

    def backoff_delay(self, attempts: int) -> float:
        """Delay before the next attempt after ``attempts`` failures."""
        return self._backoff.calculate_delay(attempts - 1)

    # ──────────────────────────────────────────────────────────────
    # Workers
    # ──────────────────────────────────────────────────────────────

    async def _worker(self, channel: Channel) -> None:
        lane = self._lanes[channel]
        while True:
            job = await self._next_job(lane)
            await self._run(lane, job)

    async def _next_job(self, lane: _Lane) -> DeliveryJob:
        while True:
            now = self._clock()
            job = lane.pop_ready(now)
            if job is not None:
                return job
            # No await between pop and clear, so a concurrent push re-sets the event
            lane.wakeup.clear()
            timeout = lane.next_due_in(now)
            try:
                async with asyncio.timeout(timeout):
                    await lane.wakeup.wait()
            except TimeoutError:
                pass

    async def _run(self, lane: _Lane, job: DeliveryJob) -> None:
        handler = self._handlers[lane.channel]
        job.status = JobStatus.ACTIVE
        job.attempts += 1
        lane.active += 1
        dispatch_queue_depth.labels(channel=lane.channel.value).set(lane.queued)
        set_log_context(job_id=job.id, channel=lane.channel.value, attempt=job.attempts)
        started = time.perf_counter()

        try:
            await handler(job)
        except asyncio.CancelledError:
            # Shutdown mid-job: the attempt does not count and the job is redelivered
            job.attempts -= 1
            lane.push(job, self._clock())
            logger.warning("Worker cancelled mid-job; job requeued", extra={"job_id": job.id})
            raise
        except TerminalDeliveryFailure as exc:
            self._fail(lane, job, str(exc), reason="terminal")
        except Exception as exc:
            self._retry_or_fail(lane, job, exc)
        else:
            self._complete(lane, job)
        finally:
            lane.active -= 1
            dispatch_job_duration_seconds.labels(channel=lane.channel.value).observe(
                time.perf_counter() - started
            )
            clear_log_context()

    def _complete(self, lane: _Lane, job: DeliveryJob) -> None:
        job.finish(JobStatus.COMPLETED)
        lane.completed_total += 1
        lane.completed.append(job)
        self._forget(job)
        dispatch_jobs_completed_total.labels(channel=lane.channel.value).inc()
        lazy_logger.debug(lambda: f"Job {job.id} completed after {job.attempts} attempt(s)")

    def _retry_or_fail(self, lane: _Lane, job: DeliveryJob, exc: Exception) -> None:
        error = f"{type(exc).__name__}: {exc}"
        if self._backoff.attempts_exhausted(job.attempts):
            self._fail(lane, job, error, reason="exhausted")
            return

        delay = self.backoff_delay(job.attempts)
        job.last_error = error
        job.seq = next(self._seq)
        job.not_before = self._clock() + delay
        lane.push(job, self._clock())

        dispatch_jobs_retried_total.labels(channel=lane.channel.value).inc()
        logger.warning(
            "Delivery attempt failed; retrying",
            extra={
                "job_id": job.id,
                "channel": lane.channel.value,
                "attempt": job.attempts,
                "max_attempts": job.max_attempts,
                "retry_in": delay,
                "error": error,
            },
        )

    def _fail(self, lane: _Lane, job: DeliveryJob, error: str, *, reason: str) -> None:
        job.finish(JobStatus.FAILED, error)
        lane.failed_total += 1
        lane.failed.append(job)
        self._forget(job)
        dispatch_jobs_failed_total.labels(channel=lane.channel.value, reason=reason).inc()
        logger.error(
            "Delivery job failed",
            extra={
                "job_id": job.id,
                "channel": lane.channel.value,
                "attempts": job.attempts,
                "reason": reason,
                "error": error,
                "notification_id": job.payload.get("notification_id"),
            },
        )

    def _forget(self, job: DeliveryJob) -> None:
        self._jobs.pop(job.id, None)


_dispatch_queue: DispatchQueue | None = None


def get_dispatch_queue() -> DispatchQueue:
    """Get the process-wide dispatch queue."""
    global _dispatch_queue
    if _dispatch_queue is None:
        _dispatch_queue = DispatchQueue()
    return _dispatch_queue


def set_dispatch_queue(queue: DispatchQueue | None) -> None:
    """Replace the process-wide queue (application startup and tests)."""
    global _dispatch_queue
    _dispatch_queue = queue
