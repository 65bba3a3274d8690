"""Delivery job types for the dispatch queue."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class Channel(StrEnum):
    """Delivery channels. Each has its own worker pool."""

    IN_APP = "in_app"
    PUSH = "push"
    EMAIL = "email"


class Priority(StrEnum):
    """Priority tiers, highest first."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key: lower rank is served first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.NORMAL: 1, Priority.LOW: 2}


class JobStatus(StrEnum):
    """Job lifecycle states.

    queued -> active -> completed
    active -> queued (retry with backoff, or worker cancelled mid-job)
    active -> failed (attempt ceiling or terminal failure)
    queued -> cancelled (before a worker picks it)
    """

    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


@dataclass(slots=True, eq=False)
class DeliveryJob:
    """A unit of channel delivery work.

    ``payload`` is a denormalized copy of the notification (id, recipient,
    title, body, data, category) so the job does not depend on later
    mutations of the stored record. ``not_before`` is expressed on the
    queue's clock (monotonic seconds).
    """

    id: str
    channel: Channel
    priority: Priority
    payload: dict[str, Any]
    not_before: float
    max_attempts: int
    seq: int = 0
    attempts: int = 0
    last_error: str | None = None
    status: JobStatus = JobStatus.QUEUED
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def finish(self, status: JobStatus, error: str | None = None) -> None:
        """Move the job to a terminal state and release waiters."""
        self.status = status
        if error is not None:
            self.last_error = error
        self.finished_at = datetime.now(UTC)
        self._done.set()

    def to_dict(self) -> dict[str, Any]:
        """Serializable snapshot for logs and inspection endpoints."""
        return {
            "id": self.id,
            "channel": self.channel.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "last_error": self.last_error,
            "enqueued_at": self.enqueued_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "notification_id": self.payload.get("notification_id"),
        }


class JobHandle:
    """Caller-side view of an enqueued job."""

    __slots__ = ("_job",)

    def __init__(self, job: DeliveryJob) -> None:
        self._job = job

    @property
    def id(self) -> str:
        return self._job.id

    @property
    def channel(self) -> Channel:
        return self._job.channel

    @property
    def status(self) -> JobStatus:
        return self._job.status

    @property
    def attempts(self) -> int:
        return self._job.attempts

    @property
    def last_error(self) -> str | None:
        return self._job.last_error

    @property
    def job(self) -> DeliveryJob:
        return self._job

    async def wait(self, timeout: float | None = None) -> DeliveryJob:
        """Wait until the job reaches a terminal state.

        Raises:
            TimeoutError: If ``timeout`` elapses first.
        """
        async with asyncio.timeout(timeout):
            await self._job._done.wait()
        return self._job

    def __repr__(self) -> str:
        return f"JobHandle(id={self.id!r}, channel={self.channel.value!r}, status={self.status.value!r})"
