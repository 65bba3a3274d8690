"""Prometheus metrics."""

from notification_service.infra.metrics.prometheus import REGISTRY

__all__ = ["REGISTRY"]
