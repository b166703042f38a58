"""Tour date router for schedule and availability operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminAuth, CurrentUser
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.common import ResourceIdRequest
from ..schemas.tour_date import (
    CreateTourDateRequest,
    ListTourDatesRequest,
    ListTourDatesResponse,
    SetTourDateAvailabilityRequest,
    TourDate,
    UpdateTourDateCapacityRequest,
)
from ..services.tour_date_service import TourDateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tour-date", tags=["tour-date"])

DB_DEPENDENCY = Depends(get_db)


def _tour_date_response(tour_date_model) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=TourDate.model_validate(tour_date_model).model_dump(mode="json")
    )


def _list_response(tour_dates) -> JSONResponse:
    response_data = ListTourDatesResponse(items=[TourDate.model_validate(d) for d in tour_dates])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/create", response_model=TourDate)
async def create_tour_date(
    request: CreateTourDateRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Schedule a tour date (admin)."""
    try:
        tour_date = await TourDateService(db).create_tour_date(request)
        return _tour_date_response(tour_date)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour date creation",
            extra={
                "tour_id": request.tour_id,
                "available_date": request.available_date.isoformat(),
                "actor": admin.user_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError()


@router.post("/update-capacity", response_model=TourDate)
async def update_tour_date_capacity(
    request: UpdateTourDateCapacityRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Change a date's ceiling (admin); never below the people already booked."""
    tour_date = await TourDateService(db).update_capacity(request)
    logger.info(
        "Tour date capacity changed via API",
        extra={"tour_date_id": request.id, "actor": admin.user_id}
    )
    return _tour_date_response(tour_date)


@router.post("/set-availability", response_model=TourDate)
async def set_tour_date_availability(
    request: SetTourDateAvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Open or close a date for booking (admin)."""
    tour_date = await TourDateService(db).set_availability(request)
    return _tour_date_response(tour_date)


@router.post("/delete", status_code=204)
async def delete_tour_date(
    request: ResourceIdRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> None:
    """Delete a date nobody is booked on (admin)."""
    await TourDateService(db).delete_tour_date(request.id)
    logger.info(
        "Tour date deleted via API",
        extra={"tour_date_id": request.id, "actor": admin.user_id}
    )


@router.post("/list-available", response_model=ListTourDatesResponse)
async def list_available_tour_dates(
    request: ListTourDatesRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Bookable dates of a tour: available and not in the past, earliest first."""
    tour_dates = await TourDateService(db).list_for_tour(request.tour_id, available_only=True)
    return _list_response(tour_dates)


@router.post("/list", response_model=ListTourDatesResponse)
async def list_tour_dates(
    request: ListTourDatesRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Every date of a tour including closed and past ones (admin)."""
    tour_dates = await TourDateService(db).list_for_tour(request.tour_id, available_only=False)
    return _list_response(tour_dates)
