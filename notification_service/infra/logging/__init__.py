"""Structured logging.

Records are JSON Lines written off the event loop through a queue listener.
Fields set with :func:`set_log_context` are attached to every record from the
same asyncio task:

    import logging

    from notification_service.infra.logging import get_lazy_logger, set_log_context

    logger = logging.getLogger(__name__)
    lazy_logger = get_lazy_logger(__name__)

    set_log_context(job_id="abc-123", channel="email")
    logger.info("Delivering")  # carries job_id and channel
    lazy_logger.debug(lambda: f"Queue snapshot: {queue.stats()}")
"""

from notification_service.infra.logging.config import configure_logging, setup_logging, shutdown
from notification_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from notification_service.infra.logging.formatters import JSONFormatter
from notification_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
