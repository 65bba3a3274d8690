"""Process-wide logging setup.

Every record is handed to a QueueHandler on the root logger and written by a
QueueListener thread, so event-loop code (queue workers, WebSocket loops)
never blocks on stderr or file I/O.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from notification_service.infra.logging.context import ContextInjectingFilter
from notification_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from notification_service.core.settings.logs import LoggingSettings

_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_configured = False

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(log_settings: LoggingSettings | None = None, *, force: bool = False) -> None:
    """Configure logging once per process.

    Args:
        log_settings: Settings to apply; loaded from the environment when omitted.
        force: Reconfigure even if logging was already set up.
    """
    global _configured

    if _configured and not force:
        return

    if log_settings is None:
        from notification_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**log_settings.to_logging_kwargs())
    _configured = True


def configure_logging(
    *,
    log_level: str = "INFO",
    json_logs: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    library_levels: dict[str, str] | None = None,
    service_name: str = "notification-service",
) -> None:
    """Install the queue handler and its output handlers.

    Calling it again replaces the previous listener and handler.
    """
    global _listener, _queue_handler

    logging.captureWarnings(capture_warnings)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
            "loggers": {
                name: {"level": level.upper()} for name, level in (library_levels or {}).items()
            },
        }
    )

    root = logging.getLogger()
    if _listener is not None:
        _listener.stop()
        _listener = None
    if _queue_handler is not None:
        root.removeHandler(_queue_handler)

    formatter: logging.Formatter
    if json_logs:
        formatter = JSONFormatter(static={"service": service_name})
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handlers: list[logging.Handler] = []
    if console_enabled:
        handlers.append(logging.StreamHandler())
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=file_max_bytes,
                backupCount=file_backup_count,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)

    log_queue: Queue[logging.LogRecord] = Queue()
    if handlers:
        _listener = QueueListener(log_queue, *handlers)
        _listener.start()
        atexit.register(shutdown)

    # Root logger filters never see propagated records, so filter on the handler
    _queue_handler = QueueHandler(log_queue)
    if include_context:
        _queue_handler.addFilter(ContextInjectingFilter())
    root.addHandler(_queue_handler)


def shutdown() -> None:
    """Flush queued records and detach the queue handler."""
    global _listener, _queue_handler, _configured

    if _listener is not None:
        # stop() drains the queue before joining the thread
        _listener.stop()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None

    _configured = False
