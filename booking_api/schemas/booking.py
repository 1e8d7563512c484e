"""Booking schemas - slots, bookings and lifecycle requests."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


# =============================================================================
# Slots
# =============================================================================

class SlotRead(BaseModel):
    start: datetime
    end: datetime
    member_ids: list[UUID]


class SlotsResponse(BaseModel):
    service_slug: str
    duration_minutes: int
    range_start: datetime
    range_end: datetime
    slots: list[SlotRead]


class PublicSlotRead(BaseModel):
    """Guests do not see who is free."""
    start: datetime
    end: datetime


class PublicSlotsResponse(BaseModel):
    duration_minutes: int
    range_start: datetime
    range_end: datetime
    slots: list[PublicSlotRead]


# =============================================================================
# Requests
# =============================================================================

class BookingCreate(BaseModel):
    """Public or staff booking request. end must equal start + duration."""
    start: datetime
    end: datetime
    guest_email: EmailStr
    guest_name: str | None = Field(None, max_length=255)


class StaffBookingCreate(BookingCreate):
    service_id: UUID


class BookingReschedule(BaseModel):
    start: datetime
    end: datetime


# =============================================================================
# Responses
# =============================================================================

class BookingRead(BaseModel):
    """Schema for reading a booking (staff view)."""
    id: UUID
    team_id: UUID
    service_id: UUID
    assigned_user_id: UUID
    booked_by_user_id: UUID | None
    start: datetime
    end: datetime
    status: str
    guest_email: str
    guest_name: str | None
    reschedule_count: int
    cancelled_at: datetime | None
    completed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    items: list[BookingRead]
    total: int
    page: int
    per_page: int
    pages: int


class PublicBookingRead(BaseModel):
    """Guest view, addressed by manage token."""
    id: UUID
    service_name: str
    staff_name: str | None
    start: datetime
    end: datetime
    status: str
    guest_email: str
    guest_name: str | None
    reschedule_count: int
    cancellation_buffer_hours: int
    reschedule_buffer_hours: int
    manage_token: str | None = None  # Only returned once, on create


class TeamStats(BaseModel):
    """Dashboard counts; today and this week are in the team's timezone."""
    today_bookings: int
    active_services: int
    team_members: int
    weekly_hours: float
