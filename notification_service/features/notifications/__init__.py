"""Notification store, multi-channel fan-out and retention sweeps.

- Store: persisted notifications with a forward-only status lifecycle
- Orchestrator: applies preferences, delivers in-app live and queues push/email
- Channels: dispatch queue handlers for in-app, push and email
- Tasks: retention purge and push subscription cleanup

Example:
    ```python
    from notification_service.features.notifications.orchestrator import get_orchestrator

    result = await get_orchestrator().dispatch(
        session,
        recipient_id="user-123",
        type="comment",
        title="New comment on your post",
        channels=["in_app", "push"],
    )
    for outcome in result.outcomes:
        print(outcome.channel, outcome.status)
    ```
"""

from notification_service.features.notifications.models import (
    Notification,
    NotificationStatus,
    can_transition,
)
from notification_service.features.notifications.repository import (
    NotificationRepository,
    get_notification_repository,
)
from notification_service.features.notifications.schemas import (
    ChannelOutcome,
    DispatchResult,
    NotificationCreate,
    NotificationFilters,
    NotificationPage,
    NotificationRead,
    NotificationStats,
    OutcomeStatus,
)
from notification_service.features.notifications.service import (
    NotificationStore,
    get_notification_store,
)

__all__ = [
    "ChannelOutcome",
    "DispatchResult",
    "Notification",
    "NotificationCreate",
    "NotificationFilters",
    "NotificationPage",
    "NotificationRead",
    "NotificationRepository",
    "NotificationStats",
    "NotificationStatus",
    "NotificationStore",
    "OutcomeStatus",
    "can_transition",
    "get_notification_repository",
    "get_notification_store",
]
