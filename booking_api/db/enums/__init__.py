"""Enum definitions for application constants."""

from booking_api.db.enums.auth import TeamRole
from booking_api.db.enums.bookings import (
    BookingEvent,
    BookingStatus,
    DEFAULT_BOOKING_STATUS,
)
from booking_api.db.enums.jobs import DEFAULT_JOB_STATUS, JobStatus, JobType

__all__ = [
    "TeamRole",
    "BookingEvent",
    "BookingStatus",
    "DEFAULT_BOOKING_STATUS",
    "DEFAULT_JOB_STATUS",
    "JobStatus",
    "JobType",
]
