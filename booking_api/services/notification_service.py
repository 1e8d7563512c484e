"""Booking notifications - enqueue after the ledger commit, never block it.

The worker delivers queued events to the email/calendar bridge. Enqueue
failures are logged and dropped: a booking that committed stays committed.
"""

import logging

from sqlalchemy.orm import Session

from booking_api.core.config import settings
from booking_api.core.structured_logging import build_log_context
from booking_api.db.enums import BookingEvent, JobType
from booking_api.db.models import Booking, Service, User
from booking_api.services import job_service

logger = logging.getLogger(__name__)


def build_manage_url(booking: Booking) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/book/manage/{booking.manage_token}"


def build_booking_payload(db: Session, booking: Booking, event: BookingEvent) -> dict:
    """Serializable snapshot of the booking for downstream delivery."""
    service = db.get(Service, booking.service_id)
    assignee = db.get(User, booking.assigned_user_id)
    return {
        "event": event.value,
        "booking_id": str(booking.id),
        "team_id": str(booking.team_id),
        "service_id": str(booking.service_id),
        "service_name": service.name if service else None,
        "assigned_user_id": str(booking.assigned_user_id),
        "assigned_user_email": assignee.email if assignee else None,
        "assigned_user_name": assignee.display_name if assignee else None,
        "guest_email": booking.guest_email,
        "guest_name": booking.guest_name,
        "start": booking.start.isoformat(),
        "end": booking.end.isoformat(),
        "status": booking.status,
        "reschedule_count": booking.reschedule_count,
        "manage_url": build_manage_url(booking),
    }


def notify_booking_event(db: Session, booking: Booking, event: BookingEvent) -> None:
    """
    Queue a notification job for a committed booking change (best-effort).

    Does NOT raise: failures are rolled back and logged.
    """
    context = build_log_context(team_id=booking.team_id, booking_id=booking.id)
    try:
        payload = build_booking_payload(db, booking, event)
        job_service.schedule_job(
            db,
            team_id=booking.team_id,
            job_type=JobType.BOOKING_NOTIFICATION,
            payload=payload,
            idempotency_key=f"booking:{booking.id}:{event.value}:{booking.reschedule_count}",
        )
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Failed to queue %s notification: %s", event.value, type(exc).__name__, extra=context
        )
