"""Debug logging that only builds its message when the level is enabled."""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter accepting callables for the message and its args.

    The level helpers of ``LoggerAdapter`` all route through :meth:`log`, so
    overriding it covers ``debug`` through ``exception``.

    Example:
        ```python
        logger = get_lazy_logger(__name__)
        logger.debug(lambda: f"Queue snapshot: {queue.stats()}")
        ```
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        if callable(msg):
            msg = msg()
        args = tuple(arg() if callable(arg) else arg for arg in args)
        super().log(level, msg, *args, **kwargs)

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Return a lazy adapter for ``logging.getLogger(name)``."""
    return LazyLoggerAdapter(logging.getLogger(name), context)
