"""SQLAlchemy ORM model for the booking ledger."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_api.db.base import Base
from booking_api.db.enums import DEFAULT_BOOKING_STATUS
from booking_api.db.types import utcnow


class Booking(Base):
    """
    A guest appointment with one assigned staff member.

    The assigned user is a plain back-reference: deleting a user is blocked
    while bookings point at them, so history is never cascaded away.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        Index("idx_bookings_assignee_time", "assigned_user_id", "start", "end"),
        Index("idx_bookings_service_created", "service_id", "created_at"),
        Index("idx_bookings_team_start", "team_id", "start"),
        CheckConstraint('start < "end"', name="ck_booking_start_before_end"),
        CheckConstraint("reschedule_count >= 0", name="ck_booking_reschedule_count"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="RESTRICT"), nullable=False
    )
    assigned_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    # Staff member who booked on the guest's behalf (null for self-service)
    booked_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    start: Mapped[datetime] = mapped_column(nullable=False)
    end: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_BOOKING_STATUS.value, nullable=False
    )

    guest_email: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    reschedule_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    manage_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    service: Mapped["Service"] = relationship()
