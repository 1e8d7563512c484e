"""Services router - staff endpoints for bookable services and rosters."""

from datetime import datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from booking_api.core.config import settings
from booking_api.core.deps import (
    get_current_session,
    get_db,
    require_admin,
    require_csrf_header,
)
from booking_api.db.types import utcnow
from booking_api.schemas.auth import UserSession
from booking_api.schemas.booking import SlotRead, SlotsResponse
from booking_api.schemas.service import (
    RosterMemberRead,
    RosterSet,
    ServiceCreate,
    ServiceRead,
    ServiceUpdate,
)
from booking_api.services import service_policy_service, slot_service
from booking_api.services.booking_errors import BookingError

router = APIRouter()


def _http_error(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _dump_working_hours(working_hours) -> dict | None:
    if working_hours is None:
        return None
    return {day: (hours.model_dump() if hours else None) for day, hours in working_hours.items()}


def _get_service_or_404(db: Session, service_id: UUID, team_id: UUID):
    service = service_policy_service.get_service(db, service_id, team_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


# =============================================================================
# Services
# =============================================================================

@router.get("", response_model=list[ServiceRead])
def list_services(
    active_only: bool = Query(False),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return service_policy_service.list_services(db, session.team_id, active_only=active_only)


@router.post(
    "",
    response_model=ServiceRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_service(
    data: ServiceCreate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a service. Admin only."""
    try:
        return service_policy_service.create_service(
            db,
            team_id=session.team_id,
            name=data.name,
            slug=data.slug,
            description=data.description,
            duration_minutes=data.duration_minutes,
            working_hours=_dump_working_hours(data.working_hours),
            cancellation_buffer_hours=data.cancellation_buffer_hours,
            reschedule_buffer_hours=data.reschedule_buffer_hours,
        )
    except BookingError as e:
        raise _http_error(e)


@router.get("/{service_id}", response_model=ServiceRead)
def get_service(
    service_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return _get_service_or_404(db, service_id, session.team_id)


@router.patch(
    "/{service_id}",
    response_model=ServiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_service(
    service_id: UUID,
    data: ServiceUpdate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update policy fields. The slug is fixed once published."""
    service = _get_service_or_404(db, service_id, session.team_id)
    try:
        return service_policy_service.update_service(
            db,
            service,
            name=data.name,
            description=data.description,
            duration_minutes=data.duration_minutes,
            working_hours=_dump_working_hours(data.working_hours),
            clear_working_hours=data.clear_working_hours,
            cancellation_buffer_hours=data.cancellation_buffer_hours,
            reschedule_buffer_hours=data.reschedule_buffer_hours,
            is_active=data.is_active,
        )
    except BookingError as e:
        raise _http_error(e)


@router.delete(
    "/{service_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_service(
    service_id: UUID,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete a service with no bookings. Admin only."""
    service = _get_service_or_404(db, service_id, session.team_id)
    try:
        service_policy_service.delete_service(db, service)
    except BookingError as e:
        raise _http_error(e)


# =============================================================================
# Roster
# =============================================================================

@router.put(
    "/{service_id}/roster",
    response_model=list[RosterMemberRead],
    dependencies=[Depends(require_csrf_header)],
)
def set_roster(
    service_id: UUID,
    data: RosterSet,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Replace the ordered round-robin roster. Admin only."""
    service = _get_service_or_404(db, service_id, session.team_id)
    try:
        return service_policy_service.set_roster(
            db, service, [(m.user_id, m.order) for m in data.members]
        )
    except BookingError as e:
        raise _http_error(e)


# =============================================================================
# Slots (staff view, includes eligible members)
# =============================================================================

@router.get("/{service_id}/slots", response_model=SlotsResponse)
def get_service_slots(
    service_id: UUID,
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Slots with the members free for each; past slots are not filtered."""
    service = _get_service_or_404(db, service_id, session.team_id)
    range_start = start or utcnow()
    range_end = end or range_start + timedelta(days=7)
    if range_start.tzinfo is None or range_end.tzinfo is None:
        raise HTTPException(status_code=400, detail="start and end must include a timezone offset")
    if range_end - range_start > timedelta(days=settings.MAX_SLOT_RANGE_DAYS):
        raise HTTPException(
            status_code=400,
            detail=f"Range cannot exceed {settings.MAX_SLOT_RANGE_DAYS} days",
        )
    try:
        slots = slot_service.generate_slots(db, service, range_start, range_end)
    except BookingError as e:
        raise _http_error(e)
    return SlotsResponse(
        service_slug=service.slug,
        duration_minutes=service.duration_minutes,
        range_start=range_start,
        range_end=range_end,
        slots=[SlotRead(start=s.start, end=s.end, member_ids=list(s.member_ids)) for s in slots],
    )
