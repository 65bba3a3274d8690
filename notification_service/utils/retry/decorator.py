from __future__ import annotations

import asyncio
from functools import wraps
import logging
import time
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from .exceptions import RetryError
from .strategies import RetryStrategy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    stop_after_delay: float | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry an async callable with exponential backoff.

    Used for startup checks such as database connectivity. Delivery retries
    are owned by the dispatch queue, which shares :class:`RetryStrategy`.

    Raises:
        RetryError: When every attempt failed, or ``stop_after_delay`` elapsed.
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        exceptions=exceptions,
        retry_if=retry_if,
    )

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        name = func.__qualname__

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            started = time.monotonic()
            total_delay = 0.0
            attempt = 0

            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not strategy.should_retry(e):
                        logger.warning(
                            "Non-retryable exception in %s: %s",
                            name,
                            e,
                            extra={"function": name, "exception": str(e)},
                        )
                        raise

                    out_of_time = (
                        stop_after_delay is not None
                        and time.monotonic() - started >= stop_after_delay
                    )
                    if strategy.attempts_exhausted(attempt) or out_of_time:
                        logger.error(
                            "All retry attempts exhausted for %s",
                            name,
                            extra={
                                "function": name,
                                "attempts": attempt,
                                "last_exception": str(e),
                                "total_delay": total_delay,
                            },
                        )
                        raise RetryError(name, attempt, e, total_delay) from e

                    delay = strategy.calculate_delay(attempt - 1)
                    total_delay += delay
                    logger.warning(
                        "Retrying %s after %.2fs (attempt %d/%d)",
                        name,
                        delay,
                        attempt,
                        max_attempts,
                        extra={"function": name, "delay": delay, "exception": str(e)},
                    )
                    await asyncio.sleep(delay)

        return async_wrapper

    return decorator
