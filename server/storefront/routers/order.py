"""Order routers for checkout and fulfilment."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminAuth, CurrentUser, RequiredAuth
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..schemas.order import (
    ListOrdersRequest,
    ListOrdersResponse,
    Order,
    PlaceOrderRequest,
    UpdateOrderStatusRequest,
)
from ..services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/order", tags=["order"])
admin_router = APIRouter(prefix="/v1/admin/order", tags=["admin-order"])

DB_DEPENDENCY = Depends(get_db)


def _order_response(order_model) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=Order.model_validate(order_model).model_dump(mode="json")
    )


def _list_response(orders) -> JSONResponse:
    response_data = ListOrdersResponse(items=[Order.model_validate(o) for o in orders])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/place", response_model=Order)
async def place_order(
    request: PlaceOrderRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: CurrentUser = RequiredAuth
) -> JSONResponse:
    """Place a cash-on-delivery order priced from the current catalogue."""
    try:
        order = await OrderService(db).place_order(user.user_id, request)
        return _order_response(order)

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in order placement",
            extra={"user_id": user.user_id, "lines": len(request.items), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/mine", response_model=ListOrdersResponse)
async def list_my_orders(
    db: AsyncSession = DB_DEPENDENCY,
    user: CurrentUser = RequiredAuth
) -> JSONResponse:
    """The signed-in user's orders, newest first."""
    orders = await OrderService(db).list_user_orders(user.user_id)
    return _list_response(orders)


@admin_router.post("/list", response_model=ListOrdersResponse)
async def list_orders(
    request: ListOrdersRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """All orders, optionally filtered by status."""
    orders = await OrderService(db).list_orders(request)
    return _list_response(orders)


@admin_router.post("/update-status", response_model=Order)
async def update_order_status(
    request: UpdateOrderStatusRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Advance an order to the next step of its fulfilment path."""
    order = await OrderService(db).update_status(request, actor=admin.user_id)
    return _order_response(order)
