"""Availability service - weekly windows and holiday exceptions per (user, team).

Storage and retrieval only. Overlapping windows are accepted as-is; slot
generation treats a member's windows as a union.
"""

from collections import defaultdict
from datetime import date, time
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from booking_api.db.models import AvailabilityWindow, HolidayException
from booking_api.services.booking_errors import InvalidIntervalError


def _parse_time(value: time | str) -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(value)
    except ValueError:
        raise InvalidIntervalError(f"Invalid time '{value}', expected HH:MM")


def _validate_window(day_of_week: int, start_time: time, end_time: time, timezone_name: str) -> None:
    if not 0 <= day_of_week <= 6:
        raise InvalidIntervalError("day_of_week must be between 0 (Monday) and 6 (Sunday)")
    if start_time >= end_time:
        raise InvalidIntervalError("Window start time must be before end time")
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidIntervalError(f"Unknown timezone '{timezone_name}'")


# =============================================================================
# Weekly Windows
# =============================================================================

def add_window(
    db: Session,
    user_id: UUID,
    team_id: UUID,
    day_of_week: int,
    start_time: time | str,
    end_time: time | str,
    timezone_name: str = "UTC",
) -> AvailabilityWindow:
    """Add one weekly window. Overlap with existing windows is allowed."""
    start = _parse_time(start_time)
    end = _parse_time(end_time)
    _validate_window(day_of_week, start, end, timezone_name)

    window = AvailabilityWindow(
        team_id=team_id,
        user_id=user_id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        timezone=timezone_name,
    )
    db.add(window)
    db.commit()
    db.refresh(window)
    return window


def replace_weekly_availability(
    db: Session,
    user_id: UUID,
    team_id: UUID,
    windows: list[dict],
    timezone_name: str = "UTC",
) -> list[AvailabilityWindow]:
    """
    Replace all windows for a user in a team.

    windows format: [{"day_of_week": 0, "start_time": "09:00", "end_time": "17:00"}, ...]
    Everything is validated before anything is deleted.
    """
    parsed = []
    for data in windows:
        start = _parse_time(data["start_time"])
        end = _parse_time(data["end_time"])
        _validate_window(data["day_of_week"], start, end, timezone_name)
        parsed.append((data["day_of_week"], start, end))

    db.query(AvailabilityWindow).filter(
        AvailabilityWindow.user_id == user_id,
        AvailabilityWindow.team_id == team_id,
    ).delete()

    created = []
    for day_of_week, start, end in parsed:
        window = AvailabilityWindow(
            team_id=team_id,
            user_id=user_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            timezone=timezone_name,
        )
        db.add(window)
        created.append(window)

    db.commit()
    for window in created:
        db.refresh(window)
    return created


def get_window(db: Session, window_id: UUID, team_id: UUID) -> AvailabilityWindow | None:
    return db.query(AvailabilityWindow).filter(
        AvailabilityWindow.id == window_id,
        AvailabilityWindow.team_id == team_id,
    ).first()


def set_window_active(db: Session, window: AvailabilityWindow, is_active: bool) -> AvailabilityWindow:
    window.is_active = is_active
    db.commit()
    db.refresh(window)
    return window


def delete_window(db: Session, window: AvailabilityWindow) -> None:
    db.delete(window)
    db.commit()


def get_weekly_availability(
    db: Session,
    user_id: UUID,
    team_id: UUID,
    active_only: bool = True,
) -> list[AvailabilityWindow]:
    """Get a member's weekly windows, ordered by weekday then start."""
    query = db.query(AvailabilityWindow).filter(
        AvailabilityWindow.user_id == user_id,
        AvailabilityWindow.team_id == team_id,
    )
    if active_only:
        query = query.filter(AvailabilityWindow.is_active.is_(True))
    return query.order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time).all()


def get_availability_for_users(
    db: Session,
    user_ids: list[UUID],
    team_id: UUID,
) -> dict[UUID, list[AvailabilityWindow]]:
    """Batch variant of get_weekly_availability (active windows only)."""
    result: dict[UUID, list[AvailabilityWindow]] = defaultdict(list)
    if not user_ids:
        return result
    rows = db.query(AvailabilityWindow).filter(
        AvailabilityWindow.user_id.in_(user_ids),
        AvailabilityWindow.team_id == team_id,
        AvailabilityWindow.is_active.is_(True),
    ).order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time).all()
    for row in rows:
        result[row.user_id].append(row)
    return result


# =============================================================================
# Holiday Exceptions
# =============================================================================

def add_holiday(
    db: Session,
    user_id: UUID,
    team_id: UUID,
    holiday_date: date,
    title: str,
    is_recurring: bool = False,
) -> HolidayException:
    """Mark a date (or, if recurring, that month/day every year) as unavailable."""
    holiday = HolidayException(
        team_id=team_id,
        user_id=user_id,
        date=holiday_date,
        title=title,
        is_recurring=is_recurring,
    )
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    return holiday


def get_holiday(db: Session, holiday_id: UUID, team_id: UUID) -> HolidayException | None:
    return db.query(HolidayException).filter(
        HolidayException.id == holiday_id,
        HolidayException.team_id == team_id,
    ).first()


def delete_holiday(db: Session, holiday: HolidayException) -> None:
    db.delete(holiday)
    db.commit()


def get_holidays(db: Session, user_id: UUID, team_id: UUID) -> list[HolidayException]:
    """Get all holiday exceptions for a member."""
    return db.query(HolidayException).filter(
        HolidayException.user_id == user_id,
        HolidayException.team_id == team_id,
    ).order_by(HolidayException.date).all()


def get_holidays_for_users(
    db: Session,
    user_ids: list[UUID],
    team_id: UUID,
) -> dict[UUID, list[HolidayException]]:
    """Batch variant of get_holidays."""
    result: dict[UUID, list[HolidayException]] = defaultdict(list)
    if not user_ids:
        return result
    rows = db.query(HolidayException).filter(
        HolidayException.user_id.in_(user_ids),
        HolidayException.team_id == team_id,
    ).all()
    for row in rows:
        result[row.user_id].append(row)
    return result
