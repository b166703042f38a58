"""Booking router for customer booking operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import CurrentUser, RequiredAuth
from ..schemas.booking import (
    BookingForm,
    BookingReason,
    BookingResult,
    ListBookingsResponse,
    OutcomeKind,
    SubmitBookingRequest,
    TourBooking,
)
from ..services.booking_admin_service import BookingAdminService
from ..services.booking_facade import BookingRequestFacade
from ..services.capacity_ledger import SqlCapacityLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

DB_DEPENDENCY = Depends(get_db)

OUTCOME_STATUS_CODES = {
    BookingReason.INVALID_REQUEST: 400,
    BookingReason.DATE_FULL: 409,
    BookingReason.TOUR_FULL: 409,
    BookingReason.CONTENTION: 409,
    BookingReason.LEDGER_INCONSISTENCY: 202,
    BookingReason.TIMEOUT: 504,
    BookingReason.FAILED: 503,
}


def status_code_for(result: BookingResult) -> int:
    """HTTP status carrying a booking result."""
    if result.outcome.kind == OutcomeKind.COMMITTED:
        return 200
    return OUTCOME_STATUS_CODES.get(result.outcome.reason, 503)


@router.post("/request", response_model=BookingResult)
async def request_booking(
    request: SubmitBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: CurrentUser = RequiredAuth
) -> JSONResponse:
    """
    Book a tour date for the signed-in user.

    The body is always a BookingResult; the HTTP status reflects the outcome
    (200 committed, 202 recorded pending reconciliation, 400 invalid,
    409 no capacity or contention, 503/504 failure).
    """
    facade = BookingRequestFacade(SqlCapacityLedger(db))
    form = BookingForm(
        tour_id=request.tour_id,
        tour_date=request.tour_date,
        number_of_people=request.number_of_people
    )

    result = await facade.request_booking(user.user_id, form, request.displayed_dates)

    logger.info(
        "Booking request handled",
        extra={
            "user_id": user.user_id,
            "tour_id": request.tour_id,
            "tour_date": request.tour_date,
            "number_of_people": request.number_of_people,
            "kind": result.outcome.kind.value,
            "reason": result.outcome.reason.value if result.outcome.reason else None
        }
    )

    return JSONResponse(
        status_code=status_code_for(result),
        content=result.model_dump(mode="json")
    )


@router.post("/mine", response_model=ListBookingsResponse)
async def list_my_bookings(
    db: AsyncSession = DB_DEPENDENCY,
    user: CurrentUser = RequiredAuth
) -> JSONResponse:
    """The signed-in user's bookings, newest first."""
    bookings = await BookingAdminService(db).list_user_bookings(user.user_id)
    response_data = ListBookingsResponse(items=[TourBooking.model_validate(b) for b in bookings])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
