"""
Workflow error taxonomy.

Every error raised by the booking, exchange and cancellation workflows is a
WorkflowError subclass. Each carries the HTTP status the API layer responds
with, a stable error_code and a human-readable message.

    ValidationError      400  malformed or missing request fields
    PolicyViolation      400  business-rule failure (advance notice, cross-day, past booking)
    AuthenticationError  401  no resolvable actor
    AuthorizationError   403  actor is not a participant/owner for the action
    NotFoundError        404  referenced booking/exchange does not exist
    ConflictError        409  stale transition or duplicate pending exchange
    SwapExecutionError   500  the swap transaction could not be committed
"""

from enum import Enum
from typing import Any


class PolicyViolationCode(str, Enum):
    """Reasons a PolicyViolation can carry."""

    BOOKING_NOT_SCHEDULED = "BOOKING_NOT_SCHEDULED"
    PROVIDER_MISMATCH = "PROVIDER_MISMATCH"
    INSUFFICIENT_ADVANCE_NOTICE = "INSUFFICIENT_ADVANCE_NOTICE"
    CROSS_DAY_NOT_ALLOWED = "CROSS_DAY_NOT_ALLOWED"
    BOOKING_NOT_CANCEL_PENDING = "BOOKING_NOT_CANCEL_PENDING"
    PAST_BOOKING = "PAST_BOOKING"
    NOTES_ON_FUTURE_BOOKING = "NOTES_ON_FUTURE_BOOKING"


class WorkflowError(Exception):
    """Base class for errors surfaced to the caller."""

    status_code: int = 500
    default_code: str = "WORKFLOW_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(WorkflowError):
    """Malformed or missing request fields."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class PolicyViolation(WorkflowError):
    """A provider policy or booking-lifecycle rule rejected the request."""

    status_code = 400
    default_code = "POLICY_VIOLATION"

    def __init__(
        self,
        code: PolicyViolationCode,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code=code.value, details=details)
        self.code = code


class AuthenticationError(WorkflowError):
    status_code = 401
    default_code = "UNAUTHENTICATED"


class AuthorizationError(WorkflowError):
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(WorkflowError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(WorkflowError):
    """The row no longer matches the state the action expects."""

    status_code = 409
    default_code = "CONFLICT"


class SwapExecutionError(WorkflowError):
    """Fatal: the swap transaction failed and nothing was committed."""

    status_code = 500
    default_code = "SWAP_EXECUTION_FAILED"
