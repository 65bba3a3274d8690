"""Web Push delivery."""

from notification_service.infra.push.sender import (
    PushOutcome,
    PushSendResult,
    WebPushSender,
    classify_status,
)

__all__ = ["PushOutcome", "PushSendResult", "WebPushSender", "classify_status"]
