"""
Structured booking errors.

Guests act on these directly, so every error carries a stable machine code,
the HTTP status routers should answer with, and a message safe to show.
"""

from typing import Any


class BookingError(Exception):
    """Base class for scheduling and lifecycle failures."""

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class SlotNoLongerAvailableError(BookingError):
    """Requested interval is not offerable anymore (lost a race or stale client cache)."""

    code = "slot_no_longer_available"
    status_code = 409

    def __init__(self, message: str = "Selected time is no longer available"):
        super().__init__(message)


class NoEligibleStaffError(BookingError):
    """No roster member can take the booking."""

    code = "no_eligible_staff"
    status_code = 409

    def __init__(self, message: str = "No staff member is available for this service"):
        super().__init__(message)


class BufferViolationError(BookingError):
    """Change requested inside the service's notice window."""

    code = "buffer_violation"
    status_code = 422

    def __init__(self, action: str, required_hours: int, remaining_hours: float):
        self.action = action
        self.required_hours = required_hours
        self.remaining_hours = max(remaining_hours, 0.0)
        super().__init__(
            f"Bookings must be {action} at least {required_hours} hours in advance "
            f"({self.remaining_hours:.1f} hours remain)"
        )

    def to_detail(self) -> dict[str, Any]:
        detail = super().to_detail()
        detail["required_hours"] = self.required_hours
        detail["remaining_hours"] = round(self.remaining_hours, 2)
        return detail


class InvalidIntervalError(BookingError):
    """Malformed range or duration mismatch."""

    code = "invalid_interval"
    status_code = 400


class InvalidTransitionError(BookingError):
    """Lifecycle move not allowed from the booking's current status."""

    code = "invalid_transition"
    status_code = 409


class PersistenceConflictError(BookingError):
    """Transactional write found an overlapping booking for the assignee."""

    code = "persistence_conflict"
    status_code = 409

    def __init__(self, message: str = "Overlapping booking already exists for this staff member"):
        super().__init__(message)
