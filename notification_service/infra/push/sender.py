"""Web Push sending via pywebpush.

``webpush`` is a blocking call (it uses ``requests``), so it runs in a worker
thread. Provider responses are classified so the registry can decide whether
to deactivate a subscription, keep it, or let the queue retry.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
import json
import logging
from typing import TYPE_CHECKING, Any

from pywebpush import WebPushException, webpush

if TYPE_CHECKING:
    from notification_service.core.settings.push import PushSettings

logger = logging.getLogger(__name__)

# 400 is returned by some providers for malformed or revoked endpoints
EXPIRED_STATUS_CODES = frozenset({400, 404, 410})
PAYLOAD_TOO_LARGE = 413


class PushOutcome(StrEnum):
    SENT = "sent"
    EXPIRED = "expired"
    TOO_LARGE = "too_large"
    TRANSIENT = "transient"


@dataclass(frozen=True, slots=True)
class PushSendResult:
    outcome: PushOutcome
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is PushOutcome.SENT


def classify_status(status_code: int | None) -> PushOutcome:
    """Map a provider HTTP status to an outcome."""
    if status_code is None:
        return PushOutcome.TRANSIENT
    if 200 <= status_code < 300:
        return PushOutcome.SENT
    if status_code in EXPIRED_STATUS_CODES:
        return PushOutcome.EXPIRED
    if status_code == PAYLOAD_TOO_LARGE:
        return PushOutcome.TOO_LARGE
    return PushOutcome.TRANSIENT


class WebPushSender:
    """Send signed Web Push messages with the configured VAPID identity."""

    def __init__(self, settings: PushSettings) -> None:
        self._settings = settings

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def _send_blocking(self, subscription_info: dict[str, Any], data: str) -> int | None:
        settings = self._settings
        private_key = settings.vapid_private_key.get_secret_value() if settings.vapid_private_key else None
        response = webpush(
            subscription_info=subscription_info,
            data=data,
            vapid_private_key=private_key,
            vapid_claims={"sub": settings.vapid_contact},
            ttl=settings.ttl,
            timeout=settings.timeout,
        )
        return getattr(response, "status_code", None)

    async def send(
        self,
        endpoint: str,
        keys: dict[str, str],
        payload: dict[str, Any],
    ) -> PushSendResult:
        """Send ``payload`` to one subscription; never raises for provider errors."""
        if not self.is_configured:
            return PushSendResult(PushOutcome.TRANSIENT, error="VAPID keys are not configured")

        subscription_info = {"endpoint": endpoint, "keys": dict(keys)}
        data = json.dumps(payload, default=str)

        try:
            status_code = await asyncio.to_thread(self._send_blocking, subscription_info, data)
        except WebPushException as e:
            response = getattr(e, "response", None)
            status_code = getattr(response, "status_code", None)
            outcome = classify_status(status_code)
            if outcome is PushOutcome.SENT:
                outcome = PushOutcome.TRANSIENT
            logger.debug(
                "Web push rejected",
                extra={"endpoint": endpoint[:64], "status_code": status_code, "outcome": outcome.value},
            )
            return PushSendResult(outcome, status_code=status_code, error=str(e))
        except Exception as e:
            logger.warning(
                "Web push transport error",
                extra={"endpoint": endpoint[:64], "error": str(e)},
            )
            return PushSendResult(PushOutcome.TRANSIENT, error=str(e))

        return PushSendResult(classify_status(status_code or 201), status_code=status_code)
