"""Availability schemas - weekly windows and holiday exceptions."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field


# =============================================================================
# Weekly Windows
# =============================================================================

class WindowInput(BaseModel):
    """A single weekly window."""
    day_of_week: int = Field(..., ge=0, le=6, description="Monday=0, Sunday=6")
    start_time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM format")
    end_time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM format")


class WindowCreate(WindowInput):
    """Add one window. user_id defaults to the caller; admins may target others."""
    user_id: UUID | None = None
    timezone: str = Field("UTC", max_length=50)


class WeeklyAvailabilitySet(BaseModel):
    """Replace a member's whole week."""
    user_id: UUID | None = None
    windows: list[WindowInput]
    timezone: str = Field("UTC", max_length=50)


class WindowUpdate(BaseModel):
    is_active: bool


class WindowRead(BaseModel):
    """Schema for reading a weekly window."""
    id: UUID
    user_id: UUID
    team_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    timezone: str
    is_active: bool

    model_config = {"from_attributes": True}


# =============================================================================
# Holiday Exceptions
# =============================================================================

class HolidayCreate(BaseModel):
    """Schema for creating a holiday. Dates are immutable; delete to change."""
    user_id: UUID | None = None
    date: date
    title: str = Field(..., min_length=1, max_length=255)
    is_recurring: bool = False


class HolidayRead(BaseModel):
    id: UUID
    user_id: UUID
    team_id: UUID
    date: date
    title: str
    is_recurring: bool
    created_at: datetime

    model_config = {"from_attributes": True}
