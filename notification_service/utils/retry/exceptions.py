"""Errors raised by the retry decorator."""

from __future__ import annotations


class RetryError(Exception):
    """Raised when a retried call keeps failing.

    Attributes:
        function: Qualified name of the wrapped callable.
        attempts: Number of calls made.
        total_delay: Seconds spent sleeping between calls.
        last_exception: The final failure (also chained as ``__cause__``).
    """

    def __init__(
        self,
        function: str,
        attempts: int,
        last_exception: Exception,
        total_delay: float = 0.0,
    ) -> None:
        self.function = function
        self.attempts = attempts
        self.last_exception = last_exception
        self.total_delay = total_delay
        super().__init__(f"{function} failed after {attempts} attempt(s): {last_exception}")
