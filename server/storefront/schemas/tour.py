"""Tour-related Pydantic schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import stringify_id


class CreateTourRequest(BaseModel):
    """Request schema for creating a tour."""

    name: str = Field(..., min_length=1, max_length=255, description="Tour name")
    description: str | None = Field(None, max_length=4000, description="Tour description")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Price per person (ZAR)")
    duration: str | None = Field(None, max_length=100, description="Human-readable duration")
    location: str | None = Field(None, max_length=255, description="Meeting point or region")
    image_url: str | None = Field(None, description="Public image URL")
    max_participants: int | None = Field(
        None, ge=1, description="Tour-wide participant ceiling across all dates"
    )


class UpdateTourRequest(BaseModel):
    """Request schema for updating a tour; omitted fields are left unchanged."""

    id: str = Field(..., description="Tour to update")
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=4000)
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    duration: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=255)
    image_url: str | None = None
    max_participants: int | None = Field(None, ge=1)
    is_active: bool | None = None


class ListToursRequest(BaseModel):
    """Request schema for listing tours."""

    include_inactive: bool = Field(False, description="Admin only: include deactivated tours")
    search: str | None = Field(None, max_length=255, description="Case-insensitive name filter")


class Tour(BaseModel):
    """Tour response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique tour ID")
    name: str = Field(..., description="Tour name")
    description: str | None = Field(None, description="Tour description")
    price: Decimal = Field(..., description="Price per person (ZAR)")
    duration: str | None = None
    location: str | None = None
    image_url: str | None = None
    max_participants: int | None = None
    is_active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def stringify_ids(cls, value):
        return stringify_id(value)


class ListToursResponse(BaseModel):
    """Response schema for tour listing."""

    items: list[Tour] = Field(..., description="Tours")
