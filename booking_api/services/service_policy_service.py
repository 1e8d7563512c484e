"""Service policy service - bookable services and their ordered rosters."""

import re
from datetime import time
from uuid import UUID

from sqlalchemy.orm import Session

from booking_api.db.models import Booking, Service, ServiceMember, Team, TeamMember
from booking_api.services.booking_errors import BookingError, InvalidIntervalError

# Index matches date.weekday(): Monday=0
WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class RosterError(BookingError):
    """Roster references a user outside the service's team."""

    code = "invalid_roster"
    status_code = 400


class ServiceInUseError(BookingError):
    """Service still has bookings in the ledger; deactivate it instead."""

    code = "service_has_bookings"
    status_code = 409


# =============================================================================
# Slugs and Working Hours
# =============================================================================

def generate_slug(name: str) -> str:
    """Generate URL-safe slug from name."""
    slug = name.lower().strip()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'[\s_]+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')[:100] or "service"


def normalize_working_hours(working_hours: dict | None) -> dict | None:
    """
    Validate a working-hours mapping and return it in canonical form.

    Keys are weekday abbreviations (mon..sun). Values are
    {"start": "HH:MM", "end": "HH:MM"} or None for a closed day.
    Missing keys leave that weekday uncapped.
    """
    if working_hours is None:
        return None

    normalized: dict[str, dict | None] = {}
    for key, value in working_hours.items():
        day = key.lower()
        if day not in WEEKDAY_KEYS:
            raise InvalidIntervalError(f"Unknown weekday '{key}' in working hours")
        if value is None:
            normalized[day] = None
            continue
        try:
            start = time.fromisoformat(value["start"])
            end = time.fromisoformat(value["end"])
        except (KeyError, TypeError, ValueError):
            raise InvalidIntervalError(f"Working hours for '{day}' need HH:MM start and end")
        if start >= end:
            raise InvalidIntervalError(f"Working hours for '{day}' must start before they end")
        normalized[day] = {"start": start.strftime("%H:%M"), "end": end.strftime("%H:%M")}
    return normalized


def parse_working_hours(working_hours: dict | None) -> dict[int, tuple[time, time] | None]:
    """
    Convert stored working hours to {weekday: (start, end) | None}.

    Weekdays absent from the result are uncapped.
    """
    result: dict[int, tuple[time, time] | None] = {}
    for day, value in (working_hours or {}).items():
        weekday = WEEKDAY_KEYS.index(day)
        if value is None:
            result[weekday] = None
        else:
            result[weekday] = (time.fromisoformat(value["start"]), time.fromisoformat(value["end"]))
    return result


def _validate_buffers(*values: int | None) -> None:
    for value in values:
        if value is not None and value < 0:
            raise InvalidIntervalError("Buffer hours cannot be negative")


# =============================================================================
# Services
# =============================================================================

def create_service(
    db: Session,
    team_id: UUID,
    name: str,
    slug: str | None = None,
    description: str | None = None,
    duration_minutes: int = 15,
    working_hours: dict | None = None,
    cancellation_buffer_hours: int = 24,
    reschedule_buffer_hours: int = 2,
) -> Service:
    """Create a new service. The slug is fixed from here on."""
    if duration_minutes <= 0:
        raise InvalidIntervalError("Duration must be positive")
    _validate_buffers(cancellation_buffer_hours, reschedule_buffer_hours)

    base_slug = generate_slug(slug or name)
    candidate = base_slug
    counter = 1
    while db.query(Service).filter(
        Service.team_id == team_id,
        Service.slug == candidate,
    ).first():
        candidate = f"{base_slug}-{counter}"
        counter += 1

    service = Service(
        team_id=team_id,
        name=name,
        slug=candidate,
        description=description,
        duration_minutes=duration_minutes,
        working_hours=normalize_working_hours(working_hours),
        cancellation_buffer_hours=cancellation_buffer_hours,
        reschedule_buffer_hours=reschedule_buffer_hours,
        is_active=True,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def update_service(
    db: Session,
    service: Service,
    name: str | None = None,
    description: str | None = None,
    duration_minutes: int | None = None,
    working_hours: dict | None = None,
    clear_working_hours: bool = False,
    cancellation_buffer_hours: int | None = None,
    reschedule_buffer_hours: int | None = None,
    is_active: bool | None = None,
) -> Service:
    """Update editable policy fields. The slug is never changed."""
    _validate_buffers(cancellation_buffer_hours, reschedule_buffer_hours)
    if name is not None:
        service.name = name
    if description is not None:
        service.description = description
    if duration_minutes is not None:
        if duration_minutes <= 0:
            raise InvalidIntervalError("Duration must be positive")
        service.duration_minutes = duration_minutes
    if clear_working_hours:
        service.working_hours = None
    elif working_hours is not None:
        service.working_hours = normalize_working_hours(working_hours)
    if cancellation_buffer_hours is not None:
        service.cancellation_buffer_hours = cancellation_buffer_hours
    if reschedule_buffer_hours is not None:
        service.reschedule_buffer_hours = reschedule_buffer_hours
    if is_active is not None:
        service.is_active = is_active

    db.commit()
    db.refresh(service)
    return service


def delete_service(db: Session, service: Service) -> None:
    """
    Delete a service and its roster.

    Raises:
        ServiceInUseError: bookings still reference the service
    """
    has_bookings = db.query(Booking.id).filter(Booking.service_id == service.id).first()
    if has_bookings:
        raise ServiceInUseError(
            "Service has bookings and cannot be deleted; deactivate it instead"
        )
    db.delete(service)
    db.commit()


def get_service(db: Session, service_id: UUID, team_id: UUID) -> Service | None:
    """Get service by ID within a team."""
    return db.query(Service).filter(
        Service.id == service_id,
        Service.team_id == team_id,
    ).first()


def get_service_by_slugs(db: Session, team_slug: str, service_slug: str) -> Service | None:
    """Resolve a public booking URL to an active service."""
    return db.query(Service).join(Team, Team.id == Service.team_id).filter(
        Team.slug == team_slug,
        Service.slug == service_slug,
        Service.is_active.is_(True),
    ).first()


def list_services(db: Session, team_id: UUID, active_only: bool = False) -> list[Service]:
    query = db.query(Service).filter(Service.team_id == team_id)
    if active_only:
        query = query.filter(Service.is_active.is_(True))
    return query.order_by(Service.name).all()


# =============================================================================
# Roster
# =============================================================================

def get_roster(db: Session, service_id: UUID) -> list[ServiceMember]:
    """Roster in round-robin tie-break order."""
    return db.query(ServiceMember).filter(
        ServiceMember.service_id == service_id,
    ).order_by(ServiceMember.order, ServiceMember.user_id).all()


def set_roster(
    db: Session,
    service: Service,
    members: list[tuple[UUID, int]],
) -> list[ServiceMember]:
    """
    Replace the roster with [(user_id, order), ...].

    Every user must be a member of the service's team.
    """
    user_ids = [user_id for user_id, _ in members]
    if len(set(user_ids)) != len(user_ids):
        raise RosterError("A user can appear only once in a roster")

    if user_ids:
        team_user_ids = {
            row.user_id
            for row in db.query(TeamMember.user_id).filter(
                TeamMember.team_id == service.team_id,
                TeamMember.user_id.in_(user_ids),
            )
        }
        missing = [str(u) for u in user_ids if u not in team_user_ids]
        if missing:
            raise RosterError(f"Users are not members of this team: {', '.join(missing)}")

    db.query(ServiceMember).filter(ServiceMember.service_id == service.id).delete()
    for user_id, order in members:
        db.add(ServiceMember(service_id=service.id, user_id=user_id, order=order))
    db.commit()
    db.expire(service, ["members"])
    return get_roster(db, service.id)
