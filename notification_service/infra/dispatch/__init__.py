"""Priority dispatch queue."""

from notification_service.infra.dispatch.jobs import (
    Channel,
    DeliveryJob,
    JobHandle,
    JobStatus,
    Priority,
)
from notification_service.infra.dispatch.queue import (
    ChannelHandler,
    DispatchQueue,
    get_dispatch_queue,
    set_dispatch_queue,
)

__all__ = [
    "Channel",
    "ChannelHandler",
    "DeliveryJob",
    "DispatchQueue",
    "JobHandle",
    "JobStatus",
    "Priority",
    "get_dispatch_queue",
    "set_dispatch_queue",
]
