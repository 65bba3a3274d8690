"""Tests for the JSON formatter, task context and lazy adapter."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from notification_service.core.settings.logs import LoggingSettings
from notification_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    get_lazy_logger,
    get_log_context,
    set_log_context,
)


def _record(msg: str = "Job failed permanently", **extra) -> logging.LogRecord:
    record = logging.LogRecord("dispatch", logging.ERROR, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestJSONFormatter:
    def test_single_line_with_static_and_extra_fields(self):
        formatter = JSONFormatter(static={"service": "notification-service"})

        line = formatter.format(_record(job_id="j-1", channel="push"))

        data = json.loads(line)
        assert data["level"] == "ERROR"
        assert data["message"] == "Job failed permanently"
        assert data["service"] == "notification-service"
        assert data["job_id"] == "j-1"
        assert data["channel"] == "push"
        assert data["timestamp"].endswith("Z")
        assert "pathname" not in data

    def test_exception_stays_on_one_line(self):
        try:
            raise RuntimeError("smtp down")
        except RuntimeError:
            record = logging.LogRecord(
                "dispatch", logging.ERROR, __file__, 1, "boom", None, exc_info=sys.exc_info()
            )

        line = JSONFormatter().format(record)

        assert "\n" not in line
        assert "RuntimeError: smtp down" in json.loads(line)["exception"]


@pytest.mark.unit
class TestLogContext:
    def test_filter_copies_context_without_overriding_extra(self):
        set_log_context(job_id="from-context", attempt=2)
        record = _record(job_id="from-extra")

        assert ContextInjectingFilter().filter(record) is True
        assert record.job_id == "from-extra"
        assert record.attempt == 2

    def test_set_merges_and_clear_resets(self):
        set_log_context(job_id="j-1")
        set_log_context(channel="email")
        assert get_log_context() == {"job_id": "j-1", "channel": "email"}

        clear_log_context()
        assert get_log_context() == {}


@pytest.mark.unit
class TestLazyLogger:
    def test_callable_not_evaluated_when_disabled(self):
        logger = logging.getLogger("tests.lazy.disabled")
        logger.setLevel(logging.INFO)
        calls = []

        get_lazy_logger(logger.name).debug(lambda: calls.append(1) or "snapshot")

        assert calls == []

    def test_callable_evaluated_when_enabled(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="tests.lazy.enabled"):
            get_lazy_logger("tests.lazy.enabled", component="queue").debug(
                lambda: "depth=3", extra={"channel": "email"}
            )

        record = caplog.records[-1]
        assert record.getMessage() == "depth=3"
        assert record.component == "queue"
        assert record.channel == "email"


@pytest.mark.unit
class TestLoggingSettings:
    def test_levels_are_normalized(self):
        settings = LoggingSettings(level="debug", library_levels={"aiosmtplib": "info"})

        assert settings.level == "DEBUG"
        assert settings.library_levels == {"aiosmtplib": "INFO"}

    def test_file_path_only_when_enabled(self):
        assert LoggingSettings().to_logging_kwargs()["file_path"] is None
        assert LoggingSettings(file_enabled=True).to_logging_kwargs()["file_path"] is not None
