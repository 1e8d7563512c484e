"""Availability router - weekly windows and holiday exceptions.

Members manage their own availability; admins may target any team member.
Holidays are admin-managed.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from booking_api.core.deps import (
    get_current_session,
    get_db,
    require_admin,
    require_csrf_header,
)
from booking_api.db.models import TeamMember
from booking_api.schemas.auth import UserSession
from booking_api.schemas.availability import (
    HolidayCreate,
    HolidayRead,
    WeeklyAvailabilitySet,
    WindowCreate,
    WindowRead,
    WindowUpdate,
)
from booking_api.services import availability_service
from booking_api.services.booking_errors import BookingError

router = APIRouter()


def _http_error(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _target_user(db: Session, session: UserSession, user_id: UUID | None) -> UUID:
    """Resolve whose availability is being touched."""
    if user_id is None or user_id == session.user_id:
        return session.user_id
    if not session.is_admin:
        raise HTTPException(status_code=403, detail="Only admins can manage other members")
    is_member = db.query(TeamMember.id).filter(
        TeamMember.team_id == session.team_id,
        TeamMember.user_id == user_id,
    ).first()
    if not is_member:
        raise HTTPException(status_code=404, detail="Team member not found")
    return user_id


# =============================================================================
# Weekly Windows
# =============================================================================

@router.get("/windows", response_model=list[WindowRead])
def list_windows(
    user_id: UUID | None = Query(None),
    include_inactive: bool = Query(False),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = _target_user(db, session, user_id)
    return availability_service.get_weekly_availability(
        db, target, session.team_id, active_only=not include_inactive
    )


@router.post(
    "/windows",
    response_model=WindowRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_window(
    data: WindowCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = _target_user(db, session, data.user_id)
    try:
        return availability_service.add_window(
            db,
            target,
            session.team_id,
            data.day_of_week,
            data.start_time,
            data.end_time,
            timezone_name=data.timezone,
        )
    except BookingError as e:
        raise _http_error(e)


@router.put(
    "/windows",
    response_model=list[WindowRead],
    dependencies=[Depends(require_csrf_header)],
)
def replace_windows(
    data: WeeklyAvailabilitySet,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Replace a member's whole week in one go."""
    target = _target_user(db, session, data.user_id)
    try:
        return availability_service.replace_weekly_availability(
            db,
            target,
            session.team_id,
            [w.model_dump() for w in data.windows],
            timezone_name=data.timezone,
        )
    except BookingError as e:
        raise _http_error(e)


@router.patch(
    "/windows/{window_id}",
    response_model=WindowRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_window(
    window_id: UUID,
    data: WindowUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    window = availability_service.get_window(db, window_id, session.team_id)
    if not window:
        raise HTTPException(status_code=404, detail="Window not found")
    _target_user(db, session, window.user_id)
    return availability_service.set_window_active(db, window, data.is_active)


@router.delete(
    "/windows/{window_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_window(
    window_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    window = availability_service.get_window(db, window_id, session.team_id)
    if not window:
        raise HTTPException(status_code=404, detail="Window not found")
    _target_user(db, session, window.user_id)
    availability_service.delete_window(db, window)


# =============================================================================
# Holidays
# =============================================================================

@router.get("/holidays", response_model=list[HolidayRead])
def list_holidays(
    user_id: UUID | None = Query(None),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = _target_user(db, session, user_id)
    return availability_service.get_holidays(db, target, session.team_id)


@router.post(
    "/holidays",
    response_model=HolidayRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def add_holiday(
    data: HolidayCreate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    target = _target_user(db, session, data.user_id)
    return availability_service.add_holiday(
        db, target, session.team_id, data.date, data.title, is_recurring=data.is_recurring
    )


@router.delete(
    "/holidays/{holiday_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_holiday(
    holiday_id: UUID,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    holiday = availability_service.get_holiday(db, holiday_id, session.team_id)
    if not holiday:
        raise HTTPException(status_code=404, detail="Holiday not found")
    availability_service.delete_holiday(db, holiday)
