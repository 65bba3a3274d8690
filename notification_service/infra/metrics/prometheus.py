"""Prometheus metrics for the notification engine.

All collectors register on a dedicated registry so the application exposes
exactly these series (plus process metrics added by the exporter).
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

REGISTRY = CollectorRegistry()

# Delivery latency from 5ms (in-app frame) to 30s (slow SMTP relay)
DELIVERY_LATENCY_BUCKETS = (0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

# =============================================================================
# Notification lifecycle
# =============================================================================

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notifications persisted",
    ["category"],
    registry=REGISTRY,
)

notification_channel_outcomes_total = Counter(
    "notification_channel_outcomes_total",
    "Per-channel fan-out outcomes (delivered, queued, skipped, failed)",
    ["channel", "status"],
    registry=REGISTRY,
)

notification_policy_denials_total = Counter(
    "notification_policy_denials_total",
    "Channel deliveries denied by user preferences",
    ["channel", "reason"],
    registry=REGISTRY,
)

notification_policy_failures_total = Counter(
    "notification_policy_failures_total",
    "Preference lookups that failed and fell back to allow",
    registry=REGISTRY,
)

notification_purged_total = Counter(
    "notification_purged_total",
    "Notifications hard-deleted by the retention sweep",
    ["status"],
    registry=REGISTRY,
)

# =============================================================================
# Dispatch queue
# =============================================================================

dispatch_jobs_enqueued_total = Counter(
    "dispatch_jobs_enqueued_total",
    "Jobs accepted by the dispatch queue",
    ["channel", "priority"],
    registry=REGISTRY,
)

dispatch_jobs_completed_total = Counter(
    "dispatch_jobs_completed_total",
    "Jobs whose handler succeeded",
    ["channel"],
    registry=REGISTRY,
)

dispatch_jobs_failed_total = Counter(
    "dispatch_jobs_failed_total",
    "Jobs terminally failed (attempt ceiling or terminal failure)",
    ["channel", "reason"],
    registry=REGISTRY,
)

dispatch_jobs_retried_total = Counter(
    "dispatch_jobs_retried_total",
    "Jobs rescheduled with backoff after a failed attempt",
    ["channel"],
    registry=REGISTRY,
)

dispatch_jobs_cancelled_total = Counter(
    "dispatch_jobs_cancelled_total",
    "Jobs cancelled before a worker picked them",
    ["channel"],
    registry=REGISTRY,
)

dispatch_queue_depth = Gauge(
    "dispatch_queue_depth",
    "Jobs waiting (ready or delayed) per channel",
    ["channel"],
    registry=REGISTRY,
)

dispatch_job_duration_seconds = Histogram(
    "dispatch_job_duration_seconds",
    "Handler execution time per attempt",
    ["channel"],
    buckets=DELIVERY_LATENCY_BUCKETS,
    registry=REGISTRY,
)

# =============================================================================
# WebSocket presence
# =============================================================================

websocket_connections_total = Gauge(
    "websocket_connections_total",
    "Current number of active WebSocket connections",
    registry=REGISTRY,
)

websocket_online_users = Gauge(
    "websocket_online_users",
    "Users with at least one live connection",
    registry=REGISTRY,
)

websocket_messages_received_total = Counter(
    "websocket_messages_received_total",
    "Total number of WebSocket messages received from clients",
    ["message_type"],
    registry=REGISTRY,
)

websocket_messages_sent_total = Counter(
    "websocket_messages_sent_total",
    "Total number of WebSocket messages sent to clients",
    ["message_type"],
    registry=REGISTRY,
)

websocket_auth_failures_total = Counter(
    "websocket_auth_failures_total",
    "Handshakes rejected by the token verifier",
    registry=REGISTRY,
)

websocket_heartbeat_timeouts_total = Counter(
    "websocket_heartbeat_timeouts_total",
    "Connections closed for missing pong",
    registry=REGISTRY,
)

websocket_connection_duration_seconds = Histogram(
    "websocket_connection_duration_seconds",
    "Duration of WebSocket connections in seconds",
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600),
    registry=REGISTRY,
)

# =============================================================================
# Web Push
# =============================================================================

push_sends_total = Counter(
    "push_sends_total",
    "Web Push requests by result (sent, expired, too_large, transient)",
    ["result"],
    registry=REGISTRY,
)

push_subscriptions_deactivated_total = Counter(
    "push_subscriptions_deactivated_total",
    "Push subscriptions deactivated",
    ["reason"],
    registry=REGISTRY,
)
