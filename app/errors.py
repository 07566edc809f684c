# Error taxonomy shared by the booking core and the HTTP layer.
# Route handlers and services raise these; main.py renders them into the response envelope.
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import status

from .availability import REJECTION_MESSAGES, RejectionReason


class RentoError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: str = "Server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message, "error": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(RentoError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class BookingRejected(ValidationError):
    """The availability engine refused the requested date range."""

    def __init__(self, reason: RejectionReason, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message or REJECTION_MESSAGES[reason], code=reason.value)


class InvalidState(RentoError):
    """The booking's current status does not allow the requested transition."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_STATE"
    default_message = "Invalid booking state"


class AlreadyCancelled(InvalidState):
    code = "ALREADY_CANCELLED"
    default_message = "Booking is already cancelled"


class AlreadyStarted(InvalidState):
    code = "ALREADY_STARTED"
    default_message = "Cannot cancel a booking that has already started"


class Unauthenticated(RentoError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"
    default_message = "Access token required"


class Forbidden(RentoError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Not authorized"


class NotFound(RentoError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Not found"


class Conflict(RentoError):
    """The store already holds what the request would create."""
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "Conflict"


class Busy(RentoError):
    """Another process holds the per-listing booking lock; the client should retry."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "BUSY"
    default_message = "Apartment is being booked by another request, please retry"

    def __init__(self, retry_after: int = 1) -> None:
        super().__init__(details={"retry_after": retry_after})


class InternalError(RentoError):
    """Storage failure; the attempted mutation was rolled back."""
