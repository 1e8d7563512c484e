"""Booking service - lifecycle of a booking and the ledger write path.

States: scheduled → cancelled | completed (both terminal). Reschedule keeps
the booking scheduled, moves start/end and bumps reschedule_count.

Every write that places a booking on a member's calendar goes through
_commit_checked(): take the write lock (assignee row on PostgreSQL, the database
write lock on SQLite), re-read overlapping bookings, then insert/update in the
same transaction. Of two concurrent writers for the same member and time,
exactly one commits.
"""

import logging
from datetime import datetime, time, timedelta
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from booking_api.core.config import SchedulingConfig, get_scheduling_config
from booking_api.core.security import generate_manage_token
from booking_api.core.structured_logging import build_log_context
from booking_api.db.enums import BookingEvent, BookingStatus
from booking_api.db.models import Booking, Service, Team, TeamMember, User
from booking_api.db.types import utcnow
from booking_api.services import assignment_service, notification_service, slot_service
from booking_api.services.booking_errors import (
    BufferViolationError,
    InvalidIntervalError,
    InvalidTransitionError,
    PersistenceConflictError,
    SlotNoLongerAvailableError,
)
from booking_api.utils.pagination import DEFAULT_PER_PAGE

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def _require_aware(start: datetime, end: datetime) -> None:
    if start.tzinfo is None or end.tzinfo is None:
        raise InvalidIntervalError("Start and end must include a timezone offset")


def _require_duration(service: Service, start: datetime, end: datetime) -> None:
    _require_aware(start, end)
    if end - start != timedelta(minutes=service.duration_minutes):
        raise InvalidIntervalError(
            f"Booking must last exactly {service.duration_minutes} minutes"
        )


def _require_same_length(booking: Booking, start: datetime, end: datetime) -> None:
    """A moved booking keeps its booked length, whatever the service duration is now."""
    _require_aware(start, end)
    length = booking.end - booking.start
    if end - start != length:
        minutes = int(length.total_seconds() // 60)
        raise InvalidIntervalError(f"Rescheduled booking must last exactly {minutes} minutes")


def _require_future(start: datetime, now: datetime, config: SchedulingConfig) -> None:
    if start <= now + timedelta(minutes=config.min_lead_minutes):
        raise InvalidIntervalError("Selected time is in the past")


def _require_scheduled(booking: Booking, action: str) -> None:
    if booking.status != BookingStatus.SCHEDULED.value:
        raise InvalidTransitionError(
            f"Cannot {action} a booking that is already {booking.status}"
        )


def _check_buffer(booking: Booking, required_hours: int, action: str, now: datetime) -> None:
    """Notice is measured against the booking's current start."""
    remaining_hours = (booking.start - now).total_seconds() / 3600
    if now > booking.start - timedelta(hours=required_hours):
        raise BufferViolationError(action, required_hours, remaining_hours)


def _begin_write(db: Session) -> None:
    """
    SQLite ignores FOR UPDATE and pysqlite only opens a transaction at the
    first write, so the overlap read would run unlocked. Take the database
    write lock up front instead; a second writer waits here until we commit.
    """
    connection = db.connection()
    if connection.dialect.name != "sqlite":
        return
    if not connection.connection.driver_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def _lock_assignee(db: Session, user_id: UUID) -> None:
    """Row lock serialising ledger writes per member (SELECT ... FOR UPDATE)."""
    db.query(User.id).filter(User.id == user_id).with_for_update().one()


def _commit_checked(db: Session, booking: Booking, exclude_booking_id: UUID | None = None) -> None:
    """
    Check-and-write in one transaction.

    Raises:
        PersistenceConflictError: an overlapping booking for the assignee exists
    """
    _begin_write(db)
    _lock_assignee(db, booking.assigned_user_id)
    if not slot_service.member_is_free(
        db,
        booking.assigned_user_id,
        booking.start,
        booking.end,
        exclude_booking_id=exclude_booking_id,
    ):
        db.rollback()
        raise PersistenceConflictError()
    db.add(booking)
    db.commit()
    db.refresh(booking)


def _log_context(booking: Booking) -> dict:
    return build_log_context(
        team_id=booking.team_id,
        service_id=booking.service_id,
        booking_id=booking.id,
        user_id=booking.assigned_user_id,
    )


# =============================================================================
# Create
# =============================================================================

def create_booking(
    db: Session,
    service: Service,
    start: datetime,
    end: datetime,
    guest_email: str,
    guest_name: str | None = None,
    booked_by_user_id: UUID | None = None,
    now: datetime | None = None,
    config: SchedulingConfig | None = None,
) -> Booking:
    """
    Book [start, end) for a guest.

    The interval must still be offered by a fresh slot query; the assignee is
    chosen among the members free for that exact slot.

    Raises:
        InvalidIntervalError: wrong duration or start not in the future
        SlotNoLongerAvailableError: interval no longer offered, or lost the write race
        NoEligibleStaffError: nobody on the roster can take it
    """
    config = config or get_scheduling_config()
    now = now or utcnow()
    _require_duration(service, start, end)
    _require_future(start, now, config)

    slots = slot_service.generate_slots(db, service, start, end, config=config)
    slot = next((s for s in slots if s.start == start and s.end == end), None)
    if slot is None:
        raise SlotNoLongerAvailableError()

    assignee_id = assignment_service.pick_assignee(db, service, list(slot.member_ids))

    booking = Booking(
        team_id=service.team_id,
        service_id=service.id,
        assigned_user_id=assignee_id,
        booked_by_user_id=booked_by_user_id,
        start=start,
        end=end,
        status=BookingStatus.SCHEDULED.value,
        guest_email=guest_email,
        guest_name=guest_name,
        reschedule_count=0,
        manage_token=generate_manage_token(),
    )
    try:
        _commit_checked(db, booking)
    except PersistenceConflictError:
        logger.info(
            "Booking write lost race",
            extra=build_log_context(service_id=service.id, user_id=assignee_id),
        )
        raise SlotNoLongerAvailableError()

    logger.info("Booking created", extra=_log_context(booking))
    notification_service.notify_booking_event(db, booking, BookingEvent.CREATED)
    return booking


# =============================================================================
# Cancel / Reschedule / Complete
# =============================================================================

def cancel_booking(db: Session, booking: Booking, now: datetime | None = None) -> Booking:
    """
    Cancel a scheduled booking if enough notice is given.

    Raises:
        InvalidTransitionError: booking is not scheduled
        BufferViolationError: inside the cancellation window
    """
    now = now or utcnow()
    _require_scheduled(booking, "cancel")
    _check_buffer(booking, booking.service.cancellation_buffer_hours, "cancelled", now)

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = now
    db.commit()
    db.refresh(booking)

    logger.info("Booking cancelled", extra=_log_context(booking))
    notification_service.notify_booking_event(db, booking, BookingEvent.CANCELLED)
    return booking


def reschedule_booking(
    db: Session,
    booking: Booking,
    new_start: datetime,
    new_end: datetime,
    now: datetime | None = None,
    config: SchedulingConfig | None = None,
) -> Booking:
    """
    Move a scheduled booking, keeping its assignee and duration.

    Notice is checked against the current start, not the new one. Only the
    assigned member's calendar is re-checked for the new interval.

    Raises:
        InvalidTransitionError: booking is not scheduled
        InvalidIntervalError: length differs from the booked length or new start is past
        BufferViolationError: inside the reschedule window of the current start
        SlotNoLongerAvailableError: assignee is busy at the new time
    """
    config = config or get_scheduling_config()
    now = now or utcnow()
    service = booking.service
    _require_scheduled(booking, "reschedule")
    _require_same_length(booking, new_start, new_end)
    _require_future(new_start, now, config)
    _check_buffer(booking, service.reschedule_buffer_hours, "rescheduled", now)

    booking.start = new_start
    booking.end = new_end
    booking.reschedule_count += 1
    try:
        _commit_checked(db, booking, exclude_booking_id=booking.id)
    except PersistenceConflictError:
        raise SlotNoLongerAvailableError()

    logger.info("Booking rescheduled", extra=_log_context(booking))
    notification_service.notify_booking_event(db, booking, BookingEvent.RESCHEDULED)
    return booking


def complete_booking(db: Session, booking: Booking, now: datetime | None = None) -> Booking:
    """
    Record a scheduled booking as completed. No timing check.

    Raises:
        InvalidTransitionError: booking is not scheduled
    """
    _require_scheduled(booking, "complete")
    booking.status = BookingStatus.COMPLETED.value
    booking.completed_at = now or utcnow()
    db.commit()
    db.refresh(booking)

    logger.info("Booking completed", extra=_log_context(booking))
    notification_service.notify_booking_event(db, booking, BookingEvent.COMPLETED)
    return booking


# =============================================================================
# Lookups
# =============================================================================

def get_booking(db: Session, booking_id: UUID, team_id: UUID) -> Booking | None:
    return db.query(Booking).filter(
        Booking.id == booking_id,
        Booking.team_id == team_id,
    ).first()


def get_booking_by_token(db: Session, token: str) -> Booking | None:
    """Guest self-service lookup by manage token."""
    if not token:
        return None
    return db.query(Booking).filter(Booking.manage_token == token).first()


def list_bookings(
    db: Session,
    team_id: UUID,
    status: BookingStatus | None = None,
    assigned_user_id: UUID | None = None,
    service_id: UUID | None = None,
    start_from: datetime | None = None,
    start_to: datetime | None = None,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
) -> tuple[list[Booking], int]:
    """List bookings for a team with filters. Returns (items, total)."""
    query = db.query(Booking).filter(Booking.team_id == team_id)
    if status:
        query = query.filter(Booking.status == status.value)
    if assigned_user_id:
        query = query.filter(Booking.assigned_user_id == assigned_user_id)
    if service_id:
        query = query.filter(Booking.service_id == service_id)
    if start_from:
        query = query.filter(Booking.start >= start_from)
    if start_to:
        query = query.filter(Booking.start < start_to)

    total = query.count()
    items = (
        query.order_by(Booking.start)
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


# =============================================================================
# Stats
# =============================================================================

def get_team_stats(db: Session, team_id: UUID, now: datetime | None = None) -> dict:
    """
    Dashboard counts for a team.

    "Today" and "this week" (Monday to Sunday) are local to the team's
    timezone. Cancelled bookings are not counted.
    """
    now = now or utcnow()
    team_tz = db.query(Team.timezone).filter(Team.id == team_id).scalar()
    tz = slot_service.get_timezone(team_tz, get_scheduling_config().default_timezone)
    today = now.astimezone(tz).date()
    day_start = datetime.combine(today, time.min, tzinfo=tz)
    week_start = datetime.combine(today - timedelta(days=today.weekday()), time.min, tzinfo=tz)

    live = db.query(Booking).filter(
        Booking.team_id == team_id,
        Booking.status != BookingStatus.CANCELLED.value,
    )
    today_bookings = live.filter(
        Booking.start >= day_start,
        Booking.start < day_start + timedelta(days=1),
    ).count()
    week = live.filter(
        Booking.start >= week_start,
        Booking.start < week_start + timedelta(days=7),
    ).all()
    weekly_minutes = sum((b.end - b.start).total_seconds() / 60 for b in week)

    active_services = db.query(func.count(Service.id)).filter(
        Service.team_id == team_id,
        Service.is_active.is_(True),
    ).scalar()
    team_members = db.query(func.count(TeamMember.id)).filter(
        TeamMember.team_id == team_id,
    ).scalar()

    return {
        "today_bookings": today_bookings,
        "active_services": active_services,
        "team_members": team_members,
        "weekly_hours": round(weekly_minutes / 60, 1),
    }
