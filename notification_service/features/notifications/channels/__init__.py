"""Channel handlers consumed by the dispatch queue."""

from notification_service.features.notifications.channels.base import ChannelHandler, build_payload
from notification_service.features.notifications.channels.email import EmailChannel
from notification_service.features.notifications.channels.in_app import InAppChannel
from notification_service.features.notifications.channels.push import PushChannel, push_message

__all__ = [
    "ChannelHandler",
    "EmailChannel",
    "InAppChannel",
    "PushChannel",
    "build_payload",
    "push_message",
]
