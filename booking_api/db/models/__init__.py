"""SQLAlchemy ORM models."""

from booking_api.db.models.teams import Team, TeamMember, User
from booking_api.db.models.availability import AvailabilityWindow, HolidayException
from booking_api.db.models.services import Service, ServiceMember
from booking_api.db.models.bookings import Booking
from booking_api.db.models.jobs import Job

__all__ = [
    "Team",
    "TeamMember",
    "User",
    "AvailabilityWindow",
    "HolidayException",
    "Service",
    "ServiceMember",
    "Booking",
    "Job",
]
