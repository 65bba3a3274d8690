"""Tests for the retry decorator and backoff policy."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from notification_service.utils.retry import RetryError, RetryStrategy, retry


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("notification_service.utils.retry.decorator.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


@pytest.mark.unit
class TestRetryStrategy:
    def test_delay_is_exponential_and_capped(self):
        strategy = RetryStrategy(initial_delay=1.0, max_delay=5.0, jitter=False)

        assert [strategy.calculate_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_in_range(self):
        strategy = RetryStrategy(initial_delay=2.0, jitter=True, jitter_range=(0.5, 1.5))

        assert all(1.0 <= strategy.calculate_delay(0) <= 3.0 for _ in range(50))

    def test_attempts_exhausted(self):
        strategy = RetryStrategy(max_attempts=3)

        assert not strategy.attempts_exhausted(2)
        assert strategy.attempts_exhausted(3)

    def test_retry_if_overrides_exception_types(self):
        strategy = RetryStrategy(retry_if=lambda e: "transient" in str(e))

        assert strategy.should_retry(RuntimeError("transient glitch"))
        assert not strategy.should_retry(RuntimeError("fatal"))


def flaky(*outcomes):
    """Async callable that raises or returns each outcome in turn."""
    calls = []

    async def operation():
        outcome = outcomes[len(calls)]
        calls.append(outcome)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    operation.calls = calls
    return operation


@pytest.mark.unit
class TestRetryDecorator:
    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self, no_sleep):
        operation = flaky(ConnectionError("down"), ConnectionError("down"), "ok")
        wrapped = retry(max_attempts=3, initial_delay=0.5, jitter=False)(operation)

        assert await wrapped() == "ok"
        assert len(operation.calls) == 3
        assert [call.args[0] for call in no_sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_raises_retry_error_when_exhausted(self):
        operation = flaky(ConnectionError("down"), ConnectionError("still down"))
        wrapped = retry(max_attempts=2, initial_delay=0.5, jitter=False)(operation)

        with pytest.raises(RetryError) as exc_info:
            await wrapped()

        assert exc_info.value.attempts == 2
        assert exc_info.value.total_delay == 0.5
        assert "still down" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_non_retryable_exception_propagates(self):
        operation = flaky(ValueError("bad config"))
        wrapped = retry(max_attempts=5, exceptions=(ConnectionError,))(operation)

        with pytest.raises(ValueError, match="bad config"):
            await wrapped()
        assert len(operation.calls) == 1
