"""Public booking router - API endpoints for guest self-scheduling.

Unauthenticated endpoints for guests to:
- View a service's booking page
- View available time slots
- Book a slot
- View, reschedule, cancel or export a booking via its manage token
"""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from booking_api.core.config import settings
from booking_api.core.deps import get_db
from booking_api.core.rate_limit import PUBLIC_BOOKING_LIMIT, limiter
from booking_api.db.models import Booking, Service, Team, User
from booking_api.db.types import utcnow
from booking_api.schemas.booking import (
    BookingCreate,
    BookingReschedule,
    PublicBookingRead,
    PublicSlotRead,
    PublicSlotsResponse,
)
from booking_api.schemas.service import PublicServiceRead
from booking_api.services import (
    booking_service,
    ics_service,
    notification_service,
    service_policy_service,
    slot_service,
)
from booking_api.services.booking_errors import BookingError

router = APIRouter()


# =============================================================================
# Helper Functions
# =============================================================================

def _http_error(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _as_utc(value: datetime) -> datetime:
    """Query strings often arrive without an offset; read those as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _resolve_range(start: datetime | None, end: datetime | None, now: datetime) -> tuple[datetime, datetime]:
    range_start = _as_utc(start) if start else now
    range_end = _as_utc(end) if end else range_start + timedelta(days=7)
    # Limit range to MAX_SLOT_RANGE_DAYS
    max_end = range_start + timedelta(days=settings.MAX_SLOT_RANGE_DAYS)
    if range_end > max_end:
        range_end = max_end
    if range_end <= range_start:
        raise HTTPException(status_code=400, detail="end must be after start")
    return range_start, range_end


def _future_slots(slots: list, now: datetime) -> list[PublicSlotRead]:
    return [PublicSlotRead(start=s.start, end=s.end) for s in slots if s.start > now]


def _get_service_or_404(db: Session, team_slug: str, service_slug: str) -> Service:
    service = service_policy_service.get_service_by_slugs(db, team_slug, service_slug)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


def _get_booking_or_404(db: Session, token: str) -> Booking:
    booking = booking_service.get_booking_by_token(db, token)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _booking_to_public_read(db: Session, booking: Booking, include_token: bool = False) -> PublicBookingRead:
    """Convert Booking to guest-safe read format."""
    service = booking.service
    staff = db.get(User, booking.assigned_user_id)
    return PublicBookingRead(
        id=booking.id,
        service_name=service.name,
        staff_name=staff.display_name if staff else None,
        start=booking.start,
        end=booking.end,
        status=booking.status,
        guest_email=booking.guest_email,
        guest_name=booking.guest_name,
        reschedule_count=booking.reschedule_count,
        cancellation_buffer_hours=service.cancellation_buffer_hours,
        reschedule_buffer_hours=service.reschedule_buffer_hours,
        manage_token=booking.manage_token if include_token else None,
    )


# =============================================================================
# Self-Service (manage token)
# =============================================================================

@router.get("/manage/{token}", response_model=PublicBookingRead)
def get_booking_by_token(token: str, db: Session = Depends(get_db)):
    """Get booking details for the guest's manage page."""
    booking = _get_booking_or_404(db, token)
    return _booking_to_public_read(db, booking)


@router.get("/manage/{token}/slots", response_model=PublicSlotsResponse)
def get_reschedule_slots(
    token: str,
    start: datetime | None = Query(None, description="Range start (ISO 8601)"),
    end: datetime | None = Query(None, description="Range end (ISO 8601)"),
    db: Session = Depends(get_db),
):
    """Slots the booking could move to (same staff member only)."""
    booking = _get_booking_or_404(db, token)
    now = utcnow()
    range_start, range_end = _resolve_range(start, end, now)
    duration_minutes = int((booking.end - booking.start).total_seconds() // 60)
    try:
        slots = slot_service.generate_slots(
            db, booking.service, range_start, range_end,
            member_ids=[booking.assigned_user_id],
            exclude_booking_id=booking.id,
            duration_minutes=duration_minutes,
        )
    except BookingError as e:
        raise _http_error(e)
    return PublicSlotsResponse(
        duration_minutes=duration_minutes,
        range_start=range_start,
        range_end=range_end,
        slots=_future_slots(slots, now),
    )


@router.post("/manage/{token}/cancel", response_model=PublicBookingRead)
@limiter.limit(PUBLIC_BOOKING_LIMIT)
def cancel_by_token(token: str, request: Request, db: Session = Depends(get_db)):
    """Cancel via manage token. Subject to the service's cancellation notice."""
    booking = _get_booking_or_404(db, token)
    try:
        booking = booking_service.cancel_booking(db, booking)
    except BookingError as e:
        raise _http_error(e)
    return _booking_to_public_read(db, booking)


@router.post("/manage/{token}/reschedule", response_model=PublicBookingRead)
@limiter.limit(PUBLIC_BOOKING_LIMIT)
def reschedule_by_token(
    token: str,
    data: BookingReschedule,
    request: Request,
    db: Session = Depends(get_db),
):
    """Move via manage token. Notice is measured from the current start."""
    booking = _get_booking_or_404(db, token)
    try:
        booking = booking_service.reschedule_booking(
            db, booking, _as_utc(data.start), _as_utc(data.end)
        )
    except BookingError as e:
        raise _http_error(e)
    return _booking_to_public_read(db, booking)


@router.get("/manage/{token}/calendar.ics")
def download_calendar(token: str, db: Session = Depends(get_db)):
    """iCalendar file for the booking."""
    booking = _get_booking_or_404(db, token)
    service = booking.service
    team = db.get(Team, booking.team_id)
    assignee = db.get(User, booking.assigned_user_id)
    content = ics_service.build_booking_ics(
        booking,
        service,
        assignee,
        team,
        manage_url=notification_service.build_manage_url(booking),
    )
    filename = ics_service.build_filename(booking, service)
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =============================================================================
# Booking Page
# =============================================================================

@router.get("/{team_slug}/{service_slug}", response_model=PublicServiceRead)
def get_booking_page(team_slug: str, service_slug: str, db: Session = Depends(get_db)):
    """Public info for a service's booking page."""
    service = _get_service_or_404(db, team_slug, service_slug)
    team = db.get(Team, service.team_id)
    return PublicServiceRead(
        team_name=team.name,
        team_slug=team.slug,
        team_timezone=team.timezone,
        name=service.name,
        slug=service.slug,
        description=service.description,
        duration_minutes=service.duration_minutes,
        cancellation_buffer_hours=service.cancellation_buffer_hours,
        reschedule_buffer_hours=service.reschedule_buffer_hours,
    )


@router.get("/{team_slug}/{service_slug}/slots", response_model=PublicSlotsResponse)
def get_available_slots(
    team_slug: str,
    service_slug: str,
    start: datetime | None = Query(None, description="Range start (ISO 8601), default now"),
    end: datetime | None = Query(None, description="Range end (ISO 8601), default start + 7 days"),
    db: Session = Depends(get_db),
):
    """
    Get available time slots for booking.

    Slots that already started are dropped here, at request time.
    """
    service = _get_service_or_404(db, team_slug, service_slug)
    now = utcnow()
    range_start, range_end = _resolve_range(start, end, now)
    try:
        slots = slot_service.generate_slots(db, service, range_start, range_end)
    except BookingError as e:
        raise _http_error(e)
    return PublicSlotsResponse(
        duration_minutes=service.duration_minutes,
        range_start=range_start,
        range_end=range_end,
        slots=_future_slots(slots, now),
    )


@router.post("/{team_slug}/{service_slug}/bookings", response_model=PublicBookingRead, status_code=201)
@limiter.limit(PUBLIC_BOOKING_LIMIT)
def create_booking(
    team_slug: str,
    service_slug: str,
    data: BookingCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Book a slot.

    The manage token is returned once, here; it is the guest's only credential.
    Rate limited to prevent spam.
    """
    service = _get_service_or_404(db, team_slug, service_slug)
    try:
        booking = booking_service.create_booking(
            db,
            service,
            _as_utc(data.start),
            _as_utc(data.end),
            guest_email=data.guest_email,
            guest_name=data.guest_name,
        )
    except BookingError as e:
        raise _http_error(e)
    return _booking_to_public_read(db, booking, include_token=True)
