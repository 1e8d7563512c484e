"""Bookings router - staff endpoints over the booking ledger.

Staff can list and inspect bookings, book on a guest's behalf, cancel and
reschedule under the same notice rules guests get. Completing a booking is
admin only.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from booking_api.core.deps import (
    get_current_session,
    get_db,
    require_admin,
    require_csrf_header,
)
from booking_api.db.enums import BookingStatus
from booking_api.schemas.auth import UserSession
from booking_api.schemas.booking import (
    BookingListResponse,
    BookingRead,
    BookingReschedule,
    StaffBookingCreate,
    TeamStats,
)
from booking_api.services import booking_service, service_policy_service
from booking_api.services.booking_errors import BookingError
from booking_api.utils.pagination import PaginationParams, get_pagination

router = APIRouter()


def _http_error(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _get_booking_or_404(db: Session, booking_id: UUID, team_id: UUID):
    booking = booking_service.get_booking(db, booking_id, team_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.get("", response_model=BookingListResponse)
def list_bookings(
    status: BookingStatus | None = Query(None),
    assigned_user_id: UUID | None = Query(None),
    service_id: UUID | None = Query(None),
    start_from: datetime | None = Query(None),
    start_to: datetime | None = Query(None),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, total = booking_service.list_bookings(
        db,
        session.team_id,
        status=status,
        assigned_user_id=assigned_user_id,
        service_id=service_id,
        start_from=start_from,
        start_to=start_to,
        page=pagination.page,
        per_page=pagination.per_page,
    )
    return BookingListResponse(
        items=[BookingRead.model_validate(b) for b in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pagination.page_count(total),
    )


@router.post(
    "",
    response_model=BookingRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_booking(
    data: StaffBookingCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Book on a guest's behalf. Assignment is still round-robin."""
    service = service_policy_service.get_service(db, data.service_id, session.team_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    try:
        return booking_service.create_booking(
            db,
            service,
            data.start,
            data.end,
            guest_email=data.guest_email,
            guest_name=data.guest_name,
            booked_by_user_id=session.user_id,
        )
    except BookingError as e:
        raise _http_error(e)


@router.get("/stats", response_model=TeamStats)
def get_team_stats(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Dashboard counts: bookings today, active services, members, booked hours this week."""
    return TeamStats(**booking_service.get_team_stats(db, session.team_id))


@router.get("/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return _get_booking_or_404(db, booking_id, session.team_id)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_booking(
    booking_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    booking = _get_booking_or_404(db, booking_id, session.team_id)
    try:
        return booking_service.cancel_booking(db, booking)
    except BookingError as e:
        raise _http_error(e)


@router.post(
    "/{booking_id}/reschedule",
    response_model=BookingRead,
    dependencies=[Depends(require_csrf_header)],
)
def reschedule_booking(
    booking_id: UUID,
    data: BookingReschedule,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    booking = _get_booking_or_404(db, booking_id, session.team_id)
    try:
        return booking_service.reschedule_booking(db, booking, data.start, data.end)
    except BookingError as e:
        raise _http_error(e)


@router.post(
    "/{booking_id}/complete",
    response_model=BookingRead,
    dependencies=[Depends(require_csrf_header)],
)
def complete_booking(
    booking_id: UUID,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Record a booking as completed. Admin only."""
    booking = _get_booking_or_404(db, booking_id, session.team_id)
    try:
        return booking_service.complete_booking(db, booking)
    except BookingError as e:
        raise _http_error(e)
