"""Backoff policy and an async retry decorator."""

from __future__ import annotations

from notification_service.utils.retry.decorator import retry
from notification_service.utils.retry.exceptions import RetryError
from notification_service.utils.retry.strategies import RetryStrategy

__all__ = ["RetryError", "RetryStrategy", "retry"]
