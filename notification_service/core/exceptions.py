"""Exception hierarchy for the notification service.

Two families live here:

- ``AppException`` and its subclasses are raised by the store and services
  and propagate to callers; the API layer renders them as RFC 7807 problem
  documents.
- ``DeliveryFailure`` and its subclasses are raised by channel handlers and
  are contained by the dispatch queue, which retries or fails the job.
"""

from __future__ import annotations

from typing import Any, ClassVar

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


class AppException(Exception):
    """Base application exception carrying RFC 7807 problem fields.

    Subclasses set ``default_status``, ``default_type`` and optionally
    ``default_title``; each can be overridden per instance.

    Example:
        raise NotFoundException(
            "Notification abc123 not found",
            type="notification-not-found",
            extra={"notification_id": "abc123"},
        )
    """

    default_status: ClassVar[int] = 500
    default_type: ClassVar[str] = "about:blank"
    default_title: ClassVar[str | None] = None

    def __init__(
        self,
        detail: str,
        *,
        status_code: int | None = None,
        type: str | None = None,  # noqa: A002
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code or self.default_status
        self.detail = detail
        self.type = type or self.default_type
        self.title = title or self.default_title or _TITLES.get(self.status_code, "Error")
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    def to_problem(self) -> dict[str, Any]:
        """Render the exception as an RFC 7807 problem document."""
        problem: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.instance:
            problem["instance"] = self.instance
        problem.update(self.extra)
        return problem


class NotFoundException(AppException):
    default_status = 404
    default_type = "not-found"


class NotAuthorizedException(AppException):
    """The acting user does not own the resource."""

    default_status = 403
    default_type = "not-authorized"


class ValidationException(AppException):
    default_status = 422
    default_type = "validation-error"
    default_title = "Validation Error"


class ConflictException(AppException):
    default_status = 409
    default_type = "conflict"


class RecipientNotFoundException(NotFoundException):
    """A notification targets a user that does not exist."""

    def __init__(self, recipient_id: str) -> None:
        super().__init__(
            f"Recipient {recipient_id} not found",
            type="recipient-not-found",
            extra={"recipient_id": recipient_id},
        )


class InvalidStatusTransition(ConflictException):
    """A notification would move backwards in its lifecycle."""

    def __init__(self, notification_id: Any, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move notification from {current} to {target}",
            type="invalid-status-transition",
            extra={
                "notification_id": str(notification_id),
                "current_status": current,
                "target_status": target,
            },
        )


# ──────────────────────────────────────────────────────────────
# Delivery errors (contained by the dispatch queue)
# ──────────────────────────────────────────────────────────────


class DeliveryFailure(Exception):
    """A channel handler could not deliver a job."""

    def __init__(self, detail: str, *, channel: str | None = None) -> None:
        self.detail = detail
        self.channel = channel
        super().__init__(detail)


class TransientDeliveryFailure(DeliveryFailure):
    """Retryable; the queue reschedules the job with backoff."""


class TerminalDeliveryFailure(DeliveryFailure):
    """Not retryable; the job fails immediately."""


class PolicyEvaluationFailure(Exception):
    """Preferences could not be loaded. Only ever logged; policy falls back to allow."""

    def __init__(self, user_id: str, cause: BaseException) -> None:
        self.user_id = user_id
        self.cause = cause
        super().__init__(f"Failed to evaluate preferences for {user_id}: {cause}")


class AuthenticationFailure(Exception):
    """A token verifier rejected a handshake credential."""
