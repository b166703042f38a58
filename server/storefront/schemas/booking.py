"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import stringify_id
from .tour_date import TourDate


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OutcomeKind(str, Enum):
    """Terminal state of a booking request."""
    COMMITTED = "committed"
    REJECTED = "rejected"
    FAILED = "failed"


class BookingReason(str, Enum):
    """Why a booking request was rejected or failed."""
    INVALID_REQUEST = "INVALID_REQUEST"
    DATE_FULL = "DATE_FULL"
    TOUR_FULL = "TOUR_FULL"
    CONTENTION = "CONTENTION"
    LEDGER_INCONSISTENCY = "LEDGER_INCONSISTENCY"
    TIMEOUT = "TIMEOUT"
    FAILED = "FAILED"


class TourBooking(BaseModel):
    """Tour booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique booking ID")
    booking_number: str = Field(..., description="Human-readable booking number")
    user_id: str = Field(..., description="Owner")
    tour_name: str = Field(..., description="Tour name at booking time")
    tour_date: str = Field(..., description="Tour date at booking time (YYYY-MM-DD)")
    number_of_people: int = Field(..., ge=1, description="Party size")
    amount: Decimal = Field(..., description="Price x people at commit time (ZAR)")
    status: BookingStatus = Field(..., description="Approval status")
    needs_reconciliation: bool = Field(False, description="Seats not reflected in the date counter")
    reconciliation_reason: str | None = None
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_ids(cls, value):
        return stringify_id(value)


class BookingRequest(BaseModel):
    """Allocator input: one party asking for seats on one tour date."""

    user_id: str
    tour_id: str
    tour_date_id: str
    number_of_people: int


class BookingOutcome(BaseModel):
    """Tagged allocator result."""

    kind: OutcomeKind
    reason: BookingReason | None = None
    booking: TourBooking | None = None
    remaining_on_date: int | None = None
    remaining_on_tour: int | None = None
    detail: str | None = None

    @classmethod
    def committed(cls, booking: TourBooking, remaining_on_date: int, remaining_on_tour: int | None) -> "BookingOutcome":
        return cls(
            kind=OutcomeKind.COMMITTED,
            booking=booking,
            remaining_on_date=remaining_on_date,
            remaining_on_tour=remaining_on_tour,
        )

    @classmethod
    def rejected(cls, reason: BookingReason, detail: str, **extra) -> "BookingOutcome":
        return cls(kind=OutcomeKind.REJECTED, reason=reason, detail=detail, **extra)

    @classmethod
    def failed(cls, reason: BookingReason, detail: str, **extra) -> "BookingOutcome":
        return cls(kind=OutcomeKind.FAILED, reason=reason, detail=detail, **extra)


class BookingForm(BaseModel):
    """Raw booking form state as submitted by a tour card or dashboard."""

    tour_id: str = Field(..., description="Tour as known to the UI")
    tour_date: str | None = Field(None, description="Selected date (YYYY-MM-DD); empty when nothing was picked")
    number_of_people: int = Field(1, description="Requested party size")


class SubmitBookingRequest(BookingForm):
    """HTTP body for a booking request: the form plus the dates the UI was showing."""

    displayed_dates: list[TourDate] | None = Field(
        None, description="Available dates as displayed; fetched fresh when omitted"
    )


class BookingResult(BaseModel):
    """Facade result: allocator outcome plus presentation text and refreshed dates."""

    outcome: BookingOutcome
    title: str
    message: str
    available_dates: list[TourDate] = Field(default_factory=list)


class UpdateBookingStatusRequest(BaseModel):
    """Admin request to approve or reject a booking."""

    booking_id: str = Field(..., description="Booking to update")
    status: BookingStatus = Field(..., description="Target status")


class ListBookingsRequest(BaseModel):
    """Admin booking listing filters."""

    status: BookingStatus | None = Field(None, description="Only bookings in this status")
    search: str | None = Field(None, max_length=255, description="Booking number or tour name")
    needs_reconciliation: bool | None = Field(None, description="Filter on the reconciliation flag")
    limit: int = Field(100, ge=1, le=500)


class ReconcileBookingRequest(BaseModel):
    """Admin request to resolve a flagged booking."""

    booking_id: str = Field(..., description="Flagged booking")


class ListBookingsResponse(BaseModel):
    """Response schema for booking listings."""

    items: list[TourBooking] = Field(..., description="Bookings, newest first")
