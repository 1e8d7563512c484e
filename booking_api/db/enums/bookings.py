"""Booking lifecycle enums."""

from enum import Enum


class BookingStatus(str, Enum):
    """
    Booking lifecycle status.

    Flow: scheduled → completed
              ↘ cancelled
    Reschedule keeps the booking scheduled and bumps reschedule_count.
    """

    SCHEDULED = "scheduled"  # Confirmed, on the calendar
    CANCELLED = "cancelled"  # Cancelled by guest or staff
    COMPLETED = "completed"  # Recorded after the fact by an admin


class BookingEvent(str, Enum):
    """Lifecycle events that fan out to notifications."""

    CREATED = "created"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"


DEFAULT_BOOKING_STATUS = BookingStatus.SCHEDULED
