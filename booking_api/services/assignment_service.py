"""Assignment service - round-robin staff selection per service.

Fairness is least-recently-assigned: for each candidate, find the creation
time of their latest non-cancelled booking for this service; the oldest wins
and never-assigned members beat everyone. Ties go to roster order.

Recency is derived from the ledger on every call, so there is no cursor to
persist or corrupt.
"""

from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from booking_api.db.enums import BookingStatus
from booking_api.db.models import Booking, Service, ServiceMember
from booking_api.services import service_policy_service
from booking_api.services.booking_errors import NoEligibleStaffError


def select_assignee(
    roster: Iterable[ServiceMember],
    candidate_ids: Iterable[UUID] | None,
    last_assigned: dict[UUID, datetime],
) -> UUID:
    """
    Pick one member. Pure function of roster, candidates and history.

    candidate_ids=None means the whole roster is eligible. Candidates that
    are not on the roster are ignored.

    Raises:
        NoEligibleStaffError: no roster member is a candidate
    """
    allowed = None if candidate_ids is None else set(candidate_ids)
    candidates = [m for m in roster if allowed is None or m.user_id in allowed]
    if not candidates:
        raise NoEligibleStaffError()

    def sort_key(member: ServiceMember):
        last = last_assigned.get(member.user_id)
        # Never-assigned sorts before any timestamp
        return (last is not None, last or datetime.min, member.order, str(member.user_id))

    return min(candidates, key=sort_key).user_id


def get_last_assigned(
    db: Session,
    service_id: UUID,
    user_ids: list[UUID],
) -> dict[UUID, datetime]:
    """Latest booking creation time per member for this service (non-cancelled)."""
    if not user_ids:
        return {}
    rows = (
        db.query(Booking.assigned_user_id, func.max(Booking.created_at))
        .filter(
            Booking.service_id == service_id,
            Booking.assigned_user_id.in_(user_ids),
            Booking.status != BookingStatus.CANCELLED.value,
        )
        .group_by(Booking.assigned_user_id)
        .all()
    )
    return {user_id: last for user_id, last in rows if last is not None}


def pick_assignee(
    db: Session,
    service: Service,
    candidate_ids: list[UUID] | None = None,
) -> UUID:
    """
    Choose the staff member for a new booking of `service`.

    candidate_ids is normally the member list of the matching slot; pass
    None to consider the whole roster.
    """
    roster = service_policy_service.get_roster(db, service.id)
    last_assigned = get_last_assigned(db, service.id, [m.user_id for m in roster])
    return select_assignee(roster, candidate_ids, last_assigned)
