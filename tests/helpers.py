"""Shared test helpers (time arithmetic and availability setup)."""

from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from booking_api.core.security import generate_manage_token
from booking_api.db.enums import BookingStatus
from booking_api.db.models import AvailabilityWindow, Booking, Service, Team, User


def first_monday_on_or_after(day: date) -> date:
    return day + timedelta(days=(7 - day.weekday()) % 7)


# Far enough ahead that "now" never catches up with the fixtures
MONDAY = first_monday_on_or_after(date(2031, 3, 1))


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware UTC datetime on `day`."""
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def add_weekday_windows(
    db: Session,
    team: Team,
    user: User,
    start: time,
    end: time,
    tz: str = "UTC",
    days: range = range(5),
) -> None:
    """Weekly windows for a member (Monday-Friday by default)."""
    for day_of_week in days:
        db.add(AvailabilityWindow(
            team_id=team.id,
            user_id=user.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            timezone=tz,
        ))
    db.commit()


def add_booking(
    db: Session,
    service: Service,
    user: User,
    start: datetime,
    minutes: int | None = None,
    status: BookingStatus = BookingStatus.SCHEDULED,
) -> Booking:
    """Insert a ledger row directly, bypassing the lifecycle checks."""
    booking = Booking(
        team_id=service.team_id,
        service_id=service.id,
        assigned_user_id=user.id,
        start=start,
        end=start + timedelta(minutes=minutes or service.duration_minutes),
        status=status.value,
        guest_email="guest@example.com",
        manage_token=generate_manage_token(),
    )
    db.add(booking)
    db.commit()
    return booking
