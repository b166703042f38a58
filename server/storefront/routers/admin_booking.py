"""Admin router for booking approval and reconciliation."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminAuth, CurrentUser
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.booking import (
    ListBookingsRequest,
    ListBookingsResponse,
    ReconcileBookingRequest,
    TourBooking,
    UpdateBookingStatusRequest,
)
from ..services.booking_admin_service import BookingAdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin/booking", tags=["admin-booking"])

DB_DEPENDENCY = Depends(get_db)


def _list_response(bookings) -> JSONResponse:
    response_data = ListBookingsResponse(items=[TourBooking.model_validate(b) for b in bookings])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/list", response_model=ListBookingsResponse)
async def list_bookings(
    request: ListBookingsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """All bookings with optional status, flag and text filters."""
    bookings = await BookingAdminService(db).list_bookings(request)
    return _list_response(bookings)


@router.post("/update-status", response_model=TourBooking)
async def update_booking_status(
    request: UpdateBookingStatusRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """
    Approve or reject a pending booking.

    Rejecting releases the booking's seats on its tour date.
    """
    try:
        booking = await BookingAdminService(db).update_status(request, actor=admin.user_id)
        return JSONResponse(
            status_code=200,
            content=TourBooking.model_validate(booking).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking status update",
            extra={
                "booking_id": request.booking_id,
                "status": request.status.value,
                "actor": admin.user_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError()


@router.post("/reconciliation-queue", response_model=ListBookingsResponse)
async def reconciliation_queue(
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Bookings whose seats are not reflected in their date counter, oldest first."""
    bookings = await BookingAdminService(db).list_reconciliation_queue()
    return _list_response(bookings)


@router.post("/reconcile", response_model=TourBooking)
async def reconcile_booking(
    request: ReconcileBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Apply a flagged booking's seats if they still fit, otherwise reject it."""
    try:
        booking = await BookingAdminService(db).reconcile_booking(request.booking_id, actor=admin.user_id)
        return JSONResponse(
            status_code=200,
            content=TourBooking.model_validate(booking).model_dump(mode="json")
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking reconciliation",
            extra={"booking_id": request.booking_id, "actor": admin.user_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
