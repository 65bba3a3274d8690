"""Per-task logging context.

Context lives in a ContextVar, so each asyncio task (a dispatch worker, a
WebSocket receive loop, a heartbeat) carries its own fields.
"""

from __future__ import annotations

from contextvars import ContextVar
import logging
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**fields: Any) -> None:
    """Attach fields to every record logged from the current task.

    Example:
        ```python
        set_log_context(job_id=job.id, channel="email")
        logger.info("Delivering job")
        ```
    """
    _log_context.set({**_log_context.get(), **fields})


def get_log_context() -> dict[str, Any]:
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Copy the current task's context onto each record.

    Values passed through ``extra=`` at the call site take precedence.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
