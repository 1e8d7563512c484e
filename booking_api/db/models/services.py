"""SQLAlchemy ORM models for bookable services and their rosters."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_api.db.base import Base
from booking_api.db.types import utcnow


class Service(Base):
    """
    A bookable service and its scheduling policy.

    working_hours caps staff availability per weekday, e.g.
    {"mon": {"start": "09:00", "end": "17:00"}, "sun": null}.
    A missing weekday key means no cap; null means closed that day.
    """

    __tablename__ = "services"
    __table_args__ = (
        UniqueConstraint("team_id", "slug", name="uq_service_team_slug"),
        Index("idx_services_team", "team_id"),
        CheckConstraint("duration_minutes > 0", name="ck_service_duration_positive"),
        CheckConstraint(
            "cancellation_buffer_hours >= 0 AND reschedule_buffer_hours >= 0",
            name="ck_service_buffers_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    duration_minutes: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    working_hours: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    cancellation_buffer_hours: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    reschedule_buffer_hours: Mapped[int] = mapped_column(Integer, default=2, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    team: Mapped["Team"] = relationship()
    members: Mapped[list["ServiceMember"]] = relationship(
        back_populates="service",
        cascade="all, delete-orphan",
        order_by="ServiceMember.order",
    )


class ServiceMember(Base):
    """Roster entry: a staff member eligible for a service, with round-robin order."""

    __tablename__ = "service_members"
    __table_args__ = (
        UniqueConstraint("service_id", "user_id", name="uq_service_member"),
        Index("idx_service_members_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    service: Mapped["Service"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship()
