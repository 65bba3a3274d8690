from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import random


@dataclass(frozen=True, slots=True)
class RetryStrategy:
    """Backoff policy shared by the retry decorator and the dispatch queue.

    ``calculate_delay(n)`` is ``initial_delay * exponential_base**n`` capped at
    ``max_delay``, for the zero-based retry index ``n``. Jitter scales the
    capped value by a factor drawn from ``jitter_range``.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: tuple[float, float] = (0.5, 1.5)
    exceptions: tuple[type[Exception], ...] = (Exception,)
    retry_if: Callable[[Exception], bool] | None = None

    def should_retry(self, exception: Exception) -> bool:
        if self.retry_if is not None:
            return self.retry_if(exception)
        return isinstance(exception, self.exceptions)

    def calculate_delay(self, attempt: int) -> float:
        delay = min(self.initial_delay * self.exponential_base**attempt, self.max_delay)
        if self.jitter:
            delay *= random.uniform(*self.jitter_range)
        return delay

    def attempts_exhausted(self, attempts: int) -> bool:
        """Whether ``attempts`` completed attempts reach the ceiling."""
        return attempts >= self.max_attempts
