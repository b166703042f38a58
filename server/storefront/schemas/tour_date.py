"""Tour date Pydantic schemas."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import stringify_id


class CreateTourDateRequest(BaseModel):
    """Request schema for scheduling a tour date."""

    tour_id: str = Field(..., description="Owning tour ID")
    available_date: date = Field(..., description="Calendar date (YYYY-MM-DD)")
    max_bookings: int = Field(10, ge=1, le=1000, description="People allowed on this date")


class UpdateTourDateCapacityRequest(BaseModel):
    """Request schema for changing a date's ceiling."""

    id: str = Field(..., description="Tour date ID")
    max_bookings: int = Field(..., ge=1, le=1000, description="New ceiling")


class SetTourDateAvailabilityRequest(BaseModel):
    """Request schema for the admin availability toggle."""

    id: str = Field(..., description="Tour date ID")
    is_available: bool = Field(..., description="Whether the date can be booked")


class ListTourDatesRequest(BaseModel):
    """Request schema for listing dates of a tour."""

    tour_id: str = Field(..., description="Tour ID")


class TourDate(BaseModel):
    """Tour date response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique tour date ID")
    tour_id: str = Field(..., description="Owning tour ID")
    available_date: date = Field(..., description="Calendar date")
    max_bookings: int = Field(..., ge=1, description="Per-date ceiling")
    current_bookings: int = Field(..., ge=0, description="People booked")
    remaining: int = Field(..., ge=0, description="Spots left")
    is_available: bool = Field(..., description="Admin availability toggle")

    @field_validator("id", "tour_id", mode="before")
    @classmethod
    def stringify_ids(cls, value):
        return stringify_id(value)


class ListTourDatesResponse(BaseModel):
    """Response schema for tour date listing."""

    items: list[TourDate] = Field(..., description="Tour dates ordered by date")
