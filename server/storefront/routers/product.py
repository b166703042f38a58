"""Product router for the shop catalogue."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import AdminAuth, CurrentUser, OptionalAuth
from ..schemas.product import (
    CreateProductRequest,
    ListProductsRequest,
    ListProductsResponse,
    Product,
    UpdateProductRequest,
)
from ..services.product_service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/product", tags=["product"])

DB_DEPENDENCY = Depends(get_db)


@router.post("/list", response_model=ListProductsResponse)
async def list_products(
    request: ListProductsRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: Optional[CurrentUser] = OptionalAuth
) -> JSONResponse:
    """Browse products by category and name; hidden products are admin-only."""
    if request.include_inactive and not (user and user.is_admin):
        request = request.model_copy(update={"include_inactive": False})

    products = await ProductService(db).list_products(request)
    response_data = ListProductsResponse(items=[Product.model_validate(p) for p in products])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/create", response_model=Product)
async def create_product(
    request: CreateProductRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Add a product (admin)."""
    product = await ProductService(db).create_product(request)
    return JSONResponse(
        status_code=200,
        content=Product.model_validate(product).model_dump(mode="json")
    )


@router.post("/update", response_model=Product)
async def update_product(
    request: UpdateProductRequest,
    db: AsyncSession = DB_DEPENDENCY,
    admin: CurrentUser = AdminAuth
) -> JSONResponse:
    """Update a product (admin); set is_active to false to hide it."""
    product = await ProductService(db).update_product(request)
    return JSONResponse(
        status_code=200,
        content=Product.model_validate(product).model_dump(mode="json")
    )
