"""
Error taxonomy for the booking core.

Services raise these; the HTTP layer maps them onto the error envelope
(error, message, request_id, details) using `code` and `status_code`.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class DeskError(Exception):
    code = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}


class ValidationError(DeskError):
    """Malformed input, rejected before any store mutation."""

    code = "validation_error"
    status_code = 422


class DuplicateBookingError(ValidationError):
    code = "duplicate_request"
    status_code = 409


class CapacityExceededError(DeskError):
    code = "capacity_exceeded"
    status_code = 409

    def __init__(self, day: str, requested: int, booked: int, capacity: int) -> None:
        super().__init__(
            f"capacity exceeded on {day}: {booked} booked + {requested} requested > {capacity}",
            {"day": day, "requested": requested, "booked": booked, "capacity": capacity},
        )
        self.day = day


class InvalidTransitionError(DeskError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            f"cannot move booking from {current} to {target}",
            {"from": current, "to": target},
        )
        self.current = current
        self.target = target


class ForbiddenError(DeskError):
    code = "forbidden"
    status_code = 403


class NotFoundError(DeskError):
    code = "not_found"
    status_code = 404


class TransientConflictError(DeskError):
    """Concurrent write race that survived the bounded retries. Safe to retry."""

    code = "transient_conflict"
    status_code = 503
    retryable = True


class BookingLockedError(DeskError):
    """Edit attempted on a booking whose status no longer allows it."""

    code = "booking_locked"
    status_code = 409

    def __init__(self, status: str, action: str) -> None:
        super().__init__(f"cannot {action} a {status} booking", {"status": status, "action": action})
        self.status = status
