"""Service schemas - bookable services, policy and roster."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class WorkingHoursDay(BaseModel):
    start: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM format")
    end: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM format")


# Keys: mon..sun. Value null closes the day; a missing key leaves it uncapped.
WorkingHours = dict[str, WorkingHoursDay | None]


class ServiceCreate(BaseModel):
    """Schema for creating a service."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: str | None = Field(None, max_length=100)
    description: str | None = None
    duration_minutes: int = Field(15, ge=5, le=480)
    working_hours: WorkingHours | None = None
    cancellation_buffer_hours: int = Field(24, ge=0, le=720)
    reschedule_buffer_hours: int = Field(2, ge=0, le=720)


class ServiceUpdate(BaseModel):
    """Schema for updating a service. The slug cannot change."""
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    duration_minutes: int | None = Field(None, ge=5, le=480)
    working_hours: WorkingHours | None = None
    clear_working_hours: bool = False
    cancellation_buffer_hours: int | None = Field(None, ge=0, le=720)
    reschedule_buffer_hours: int | None = Field(None, ge=0, le=720)
    is_active: bool | None = None


class RosterMemberInput(BaseModel):
    user_id: UUID
    order: int = Field(0, ge=0)


class RosterSet(BaseModel):
    members: list[RosterMemberInput]


class RosterMemberRead(BaseModel):
    user_id: UUID
    order: int

    model_config = {"from_attributes": True}


class ServiceRead(BaseModel):
    """Schema for reading a service (staff view)."""
    id: UUID
    team_id: UUID
    name: str
    slug: str
    description: str | None
    duration_minutes: int
    working_hours: dict | None
    cancellation_buffer_hours: int
    reschedule_buffer_hours: int
    is_active: bool
    members: list[RosterMemberRead] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PublicServiceRead(BaseModel):
    """What guests see on the booking page."""
    team_name: str
    team_slug: str
    team_timezone: str
    name: str
    slug: str
    description: str | None
    duration_minutes: int
    cancellation_buffer_hours: int
    reschedule_buffer_hours: int
