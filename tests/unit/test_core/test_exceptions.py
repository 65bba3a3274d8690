"""Tests for the exception hierarchy and problem documents."""

from __future__ import annotations

import pytest

from notification_service.core.exceptions import (
    AppException,
    ConflictException,
    DeliveryFailure,
    InvalidStatusTransition,
    NotAuthorizedException,
    NotFoundException,
    RecipientNotFoundException,
    TerminalDeliveryFailure,
    TransientDeliveryFailure,
)


@pytest.mark.unit
class TestProblemDocuments:
    def test_base_exception(self):
        exc = AppException(status_code=503, detail="Try later", type="unavailable")

        assert exc.to_problem() == {
            "type": "unavailable",
            "title": "Service Unavailable",
            "status": 503,
            "detail": "Try later",
        }

    def test_recipient_not_found(self):
        exc = RecipientNotFoundException("user-9")

        assert isinstance(exc, NotFoundException)
        problem = exc.to_problem()
        assert problem["status"] == 404
        assert problem["type"] == "recipient-not-found"
        assert problem["recipient_id"] == "user-9"

    def test_not_authorized(self):
        exc = NotAuthorizedException("Notification belongs to another user")
        assert (exc.status_code, exc.type) == (403, "not-authorized")

    def test_invalid_status_transition(self):
        exc = InvalidStatusTransition("n-1", "archived", "unread")

        assert isinstance(exc, ConflictException)
        assert exc.status_code == 409
        assert exc.to_problem()["current_status"] == "archived"
        assert exc.to_problem()["target_status"] == "unread"

    def test_unknown_status_title(self):
        assert AppException(status_code=418, detail="teapot").title == "Error"


@pytest.mark.unit
@pytest.mark.parametrize("cls", [TransientDeliveryFailure, TerminalDeliveryFailure])
def test_delivery_failures_carry_channel(cls):
    exc = cls("boom", channel="push")

    assert isinstance(exc, DeliveryFailure)
    assert not isinstance(exc, AppException)
    assert (exc.detail, exc.channel, str(exc)) == ("boom", "push", "boom")
