"""Slot service - offerable time slots for a service over a date range.

For each roster member and each local day in range:
1. Skip the day on a holiday (exact date, or same month/day when recurring)
2. Union the member's active weekly windows for that weekday
3. Cap by the service working hours, if any (a ceiling, never an extension)
4. Walk the result in steps of the service duration
5. Drop steps that overlap the member's non-cancelled bookings

A slot is offered when at least one member clears all steps; it lists every
such member so assignment can pick among them.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from booking_api.core.config import SchedulingConfig, get_scheduling_config
from booking_api.db.enums import BookingStatus
from booking_api.db.models import Booking, Service, Team
from booking_api.services import availability_service, service_policy_service
from booking_api.services.booking_errors import InvalidIntervalError

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class Interval(NamedTuple):
    """Half-open [start, end) in UTC."""
    start: datetime
    end: datetime


class Slot(NamedTuple):
    """Offerable slot and the members free for it (roster order)."""
    start: datetime
    end: datetime
    member_ids: tuple[UUID, ...]


@dataclass
class MemberSchedule:
    """Everything the generator needs to know about one roster member."""
    user_id: UUID
    order: int
    windows: list = field(default_factory=list)  # AvailabilityWindow-like
    holidays: list = field(default_factory=list)  # HolidayException-like
    busy: list[Interval] = field(default_factory=list)


# =============================================================================
# Interval helpers
# =============================================================================

def get_timezone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """Get a ZoneInfo timezone with safe fallback."""
    try:
        return ZoneInfo(name or default)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to %s", name, default)
        return ZoneInfo(default)


def merge_intervals(intervals: list[Interval]) -> list[Interval]:
    """Union of intervals; touching intervals are joined."""
    if not intervals:
        return []
    ordered = sorted(intervals)
    merged = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = Interval(last.start, current.end)
        else:
            merged.append(current)
    return merged


def intersect_intervals(left: list[Interval], right: list[Interval]) -> list[Interval]:
    """Intersection of two merged, sorted interval lists."""
    result = []
    i = j = 0
    while i < len(left) and j < len(right):
        start = max(left[i].start, right[j].start)
        end = min(left[i].end, right[j].end)
        if start < end:
            result.append(Interval(start, end))
        if left[i].end < right[j].end:
            i += 1
        else:
            j += 1
    return result


def overlaps(start: datetime, end: datetime, busy: list[Interval]) -> bool:
    """True if [start, end) shares any time with a busy interval."""
    return any(not (end <= b.start or start >= b.end) for b in busy)


def _local_dates(range_start: datetime, range_end: datetime, tz: ZoneInfo) -> list[date]:
    first = range_start.astimezone(tz).date()
    last = range_end.astimezone(tz).date()
    return [first + timedelta(days=n) for n in range((last - first).days + 1)]


def _to_utc(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)


def _require_aware(*values: datetime) -> None:
    for value in values:
        if value.tzinfo is None or value.utcoffset() is None:
            raise InvalidIntervalError("Datetimes must include a timezone offset")


# =============================================================================
# Pure generation
# =============================================================================

def working_hours_caps(
    working_hours: dict[int, tuple[time, time] | None],
    team_tz: ZoneInfo,
    range_start: datetime,
    range_end: datetime,
) -> list[Interval]:
    """
    Service ceiling over the range, per team-local day.

    A weekday with no entry is uncapped (whole day); None is closed.
    """
    caps = []
    for day in _local_dates(range_start, range_end, team_tz):
        weekday = day.weekday()
        if weekday not in working_hours:
            start = _to_utc(day, time.min, team_tz)
            end = _to_utc(day + timedelta(days=1), time.min, team_tz)
        elif working_hours[weekday] is None:
            continue
        else:
            open_at, close_at = working_hours[weekday]
            start = _to_utc(day, open_at, team_tz)
            end = _to_utc(day, close_at, team_tz)
        if start < end:
            caps.append(Interval(start, end))
    return merge_intervals(caps)


def member_free_intervals(
    schedule: MemberSchedule,
    range_start: datetime,
    range_end: datetime,
    default_timezone: str = "UTC",
) -> list[list[Interval]]:
    """
    Available intervals for one member, grouped per local day.

    Each group is the merged union of that day's windows; holidays yield no group.
    """
    by_tz: dict[str, list] = defaultdict(list)
    for window in schedule.windows:
        by_tz[window.timezone or default_timezone].append(window)

    days: dict[date, list[Interval]] = defaultdict(list)
    for tz_name, windows in by_tz.items():
        tz = get_timezone(tz_name, default_timezone)
        for day in _local_dates(range_start, range_end, tz):
            if any(holiday.matches(day) for holiday in schedule.holidays):
                continue
            for window in windows:
                if window.day_of_week != day.weekday():
                    continue
                start = _to_utc(day, window.start_time, tz)
                end = _to_utc(day, window.end_time, tz)
                if start < end:
                    days[day].append(Interval(start, end))

    return [merge_intervals(days[day]) for day in sorted(days)]


def compute_slots(
    schedules: list[MemberSchedule],
    duration_minutes: int,
    range_start: datetime,
    range_end: datetime,
    working_hours: dict[int, tuple[time, time] | None] | None = None,
    team_timezone: str = "UTC",
    config: SchedulingConfig | None = None,
) -> list[Slot]:
    """
    Generate slots from already-loaded data. No I/O.

    Slots are half-open, fully inside [range_start, range_end), deduplicated
    by exact (start, end) and sorted by start.
    """
    config = config or get_scheduling_config()
    _require_aware(range_start, range_end)
    if range_end <= range_start:
        raise InvalidIntervalError("Range end must be after range start")
    if duration_minutes <= 0:
        raise InvalidIntervalError("Duration must be positive")

    step = timedelta(minutes=duration_minutes)
    caps = None
    if working_hours is not None:
        team_tz = get_timezone(team_timezone, config.default_timezone)
        caps = working_hours_caps(working_hours, team_tz, range_start, range_end)

    offered: dict[tuple[datetime, datetime], list[tuple[int, UUID]]] = defaultdict(list)
    for schedule in schedules:
        for day_intervals in member_free_intervals(
            schedule, range_start, range_end, config.default_timezone
        ):
            if caps is not None:
                day_intervals = intersect_intervals(day_intervals, caps)
            for interval in day_intervals:
                current = interval.start
                while current + step <= interval.end:
                    slot_end = current + step
                    if (
                        current >= range_start
                        and slot_end <= range_end
                        and not overlaps(current, slot_end, schedule.busy)
                    ):
                        members = offered[(current, slot_end)]
                        if all(user_id != schedule.user_id for _, user_id in members):
                            members.append((schedule.order, schedule.user_id))
                    current = slot_end

    slots = []
    for (start, end), members in sorted(offered.items()):
        members.sort(key=lambda m: (m[0], str(m[1])))
        slots.append(Slot(start=start, end=end, member_ids=tuple(user_id for _, user_id in members)))
    return slots


# =============================================================================
# Ledger reads
# =============================================================================

def get_busy_intervals(
    db: Session,
    user_ids: list[UUID],
    range_start: datetime,
    range_end: datetime,
    exclude_booking_id: UUID | None = None,
) -> dict[UUID, list[Interval]]:
    """Non-cancelled bookings per member overlapping the range, across all services."""
    result: dict[UUID, list[Interval]] = defaultdict(list)
    if not user_ids:
        return result
    query = db.query(Booking.assigned_user_id, Booking.start, Booking.end).filter(
        Booking.assigned_user_id.in_(user_ids),
        Booking.status != BookingStatus.CANCELLED.value,
        Booking.start < range_end,
        Booking.end > range_start,
    )
    if exclude_booking_id:
        query = query.filter(Booking.id != exclude_booking_id)
    for user_id, start, end in query.all():
        result[user_id].append(Interval(start, end))
    return result


def member_is_free(
    db: Session,
    user_id: UUID,
    start: datetime,
    end: datetime,
    exclude_booking_id: UUID | None = None,
) -> bool:
    """Overlap check for one member against the ledger."""
    busy = get_busy_intervals(db, [user_id], start, end, exclude_booking_id)
    return not overlaps(start, end, busy.get(user_id, []))


# =============================================================================
# Public entry point
# =============================================================================

def generate_slots(
    db: Session,
    service: Service,
    range_start: datetime,
    range_end: datetime,
    *,
    member_ids: list[UUID] | None = None,
    exclude_booking_id: UUID | None = None,
    duration_minutes: int | None = None,
    config: SchedulingConfig | None = None,
) -> list[Slot]:
    """
    Offerable slots for a service over [range_start, range_end).

    Past starts are not filtered here; callers drop them at request time.
    member_ids restricts the roster (used by reschedule checks and tests).
    exclude_booking_id leaves one booking out of the busy set, so a booking
    being moved does not block the times around itself.
    duration_minutes overrides the service duration (a moved booking keeps
    its booked length).
    Any range length is expanded; HTTP routes bound what they pass in.
    Reads take no locks; create re-validates before writing.
    """
    config = config or get_scheduling_config()
    _require_aware(range_start, range_end)
    if range_end <= range_start:
        raise InvalidIntervalError("Range end must be after range start")

    if not service.is_active:
        return []

    roster = service_policy_service.get_roster(db, service.id)
    if member_ids is not None:
        allowed = set(member_ids)
        roster = [m for m in roster if m.user_id in allowed]
    if not roster:
        return []

    user_ids = [m.user_id for m in roster]
    windows = availability_service.get_availability_for_users(db, user_ids, service.team_id)
    holidays = availability_service.get_holidays_for_users(db, user_ids, service.team_id)
    busy = get_busy_intervals(db, user_ids, range_start, range_end, exclude_booking_id)

    schedules = [
        MemberSchedule(
            user_id=m.user_id,
            order=m.order,
            windows=windows.get(m.user_id, []),
            holidays=holidays.get(m.user_id, []),
            busy=busy.get(m.user_id, []),
        )
        for m in roster
    ]

    team_tz = db.query(Team.timezone).filter(Team.id == service.team_id).scalar()
    working_hours = (
        service_policy_service.parse_working_hours(service.working_hours)
        if service.working_hours is not None
        else None
    )

    return compute_slots(
        schedules,
        duration_minutes or service.duration_minutes,
        range_start,
        range_end,
        working_hours=working_hours,
        team_timezone=team_tz or config.default_timezone,
        config=config,
    )
