"""JSON Lines formatter."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import logging
from typing import Any

# Standard LogRecord attributes; anything else on a record came from extra= or the context filter
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "asctime"}
)


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object on one line.

    Example output:
        ```json
        {"timestamp": "2026-01-01T00:00:00.123Z", "level": "ERROR", "logger": "notification_service.infra.dispatch.queue", "message": "Job failed permanently", "service": "notification-service", "job_id": "9f0c...", "channel": "push"}
        ```
    """

    def __init__(self, static: dict[str, Any] | None = None) -> None:
        super().__init__()
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **self.static,
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in data:
                data[key] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            data["stack_trace"] = self.formatStack(record.stack_info)

        # json.dumps escapes the newlines in tracebacks, keeping one record per line
        return json.dumps(data, ensure_ascii=False, default=str)
