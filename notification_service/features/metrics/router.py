"""Prometheus metrics endpoint.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Exposes notification, dispatch queue, WebSocket presence and Web Push
metrics from the service registry.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from notification_service.infra.dispatch import get_dispatch_queue
from notification_service.infra.metrics.prometheus import REGISTRY, dispatch_queue_depth

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics.

    Queue depth gauges are refreshed from the live queue before rendering.
    """
    for channel, counts in get_dispatch_queue().stats().items():
        dispatch_queue_depth.labels(channel=channel).set(counts["queued"])

    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
