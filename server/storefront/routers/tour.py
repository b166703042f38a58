"""Tour router for tour catalogue operations."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminAuth, CurrentUser, OptionalAuth
from ..core.exceptions import InternalServerError, NotFoundError, ProblemDetailsException
from ..schemas.common import ResourceIdRequest
from ..schemas.tour import CreateTourRequest, ListToursRequest, ListToursResponse, Tour, UpdateTourRequest
from ..services.tour_service import TourService, parse_resource_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tour", tags=["tour"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _tour_response(tour_model) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=Tour.model_validate(tour_model).model_dump(mode="json")
    )


@router.post("/create", response_model=Tour)
async def create_tour(
    request: CreateTourRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Create a new tour (admin)."""
    try:
        tour = await TourService(db).create_tour(request)
        return _tour_response(tour)

    except ProblemDetailsException:
        # Re-raise Problem Details exceptions as-is
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour creation",
            extra={"name": request.name, "actor": admin.user_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/update", response_model=Tour)
async def update_tour(
    request: UpdateTourRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Update tour details (admin); omitted fields are unchanged."""
    try:
        tour = await TourService(db).update_tour(request)
        return _tour_response(tour)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour update",
            extra={"tour_id": request.id, "actor": admin.user_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/deactivate", response_model=Tour)
async def deactivate_tour(
    request: ResourceIdRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Hide a tour from customers (admin). Tours are never hard-deleted."""
    try:
        tour = await TourService(db).deactivate_tour(request.id)
        return _tour_response(tour)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour deactivation",
            extra={"tour_id": request.id, "actor": admin.user_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/list", response_model=ListToursResponse)
async def list_tours(
    request: ListToursRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: Optional[CurrentUser] = OptionalAuth
) -> JSONResponse:
    """
    List tours.

    Inactive tours are only included for admins that ask for them.
    """
    if request.include_inactive and not (user and user.is_admin):
        request = request.model_copy(update={"include_inactive": False})

    tours = await TourService(db).list_tours(request)
    response_data = ListToursResponse(items=[Tour.model_validate(t) for t in tours])

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/get", response_model=Tour)
async def get_tour(
    request: ResourceIdRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: Optional[CurrentUser] = OptionalAuth
) -> JSONResponse:
    """Get a tour by ID; inactive tours are visible to admins only."""
    tour = await TourService(db).get_tour_by_id_or_raise(parse_resource_id(request.id, "tour"))
    if not tour.is_active and not (user and user.is_admin):
        raise NotFoundError(resource_type="tour", resource_id=request.id)
    return _tour_response(tour)
