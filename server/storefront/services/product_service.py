"""Product service for the shop catalogue."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.product import Product
from ..schemas.product import CreateProductRequest, ListProductsRequest, UpdateProductRequest
from .change_feed import ChangeFeed, change_feed
from .tour_service import parse_resource_id

logger = logging.getLogger(__name__)


class ProductService:
    """Service for product-related operations."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed or change_feed

    async def create_product(self, request: CreateProductRequest) -> Product:
        """Add a product to the catalogue."""
        product = Product(**request.model_dump(), is_active=True)

        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)

        logger.info(
            "Product created",
            extra={
                "product_id": str(product.id),
                "name": product.name,
                "category": product.category
            }
        )
        self.feed.publish("products", "INSERT", str(product.id))

        return product

    async def update_product(self, request: UpdateProductRequest) -> Product:
        """Update the fields present in the request; ``is_active=False`` hides the product."""
        product = await self.get_product_or_raise(parse_resource_id(request.id, "product"))

        changes = request.model_dump(exclude_unset=True, exclude={"id"})
        for field_name, value in changes.items():
            setattr(product, field_name, value)

        await self.db.commit()
        await self.db.refresh(product)

        logger.info(
            "Product updated",
            extra={"product_id": request.id, "fields": sorted(changes)}
        )
        self.feed.publish("products", "UPDATE", request.id)

        return product

    async def list_products(self, request: ListProductsRequest) -> list[Product]:
        """Browse products by category and name."""
        stmt = select(Product).order_by(Product.name.asc())
        if not request.include_inactive:
            stmt = stmt.where(Product.is_active.is_(True))
        if request.category:
            stmt = stmt.where(Product.category == request.category)
        if request.search:
            stmt = stmt.where(Product.name.ilike(f"%{request.search}%"))

        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def get_products(self, product_ids: list[UUID]) -> dict[UUID, Product]:
        """Fetch several products keyed by ID."""
        if not product_ids:
            return {}
        stmt = select(Product).where(Product.id.in_(product_ids))
        result = await self.db.execute(stmt)
        return {product.id: product for product in result.scalars()}

    async def get_product_or_raise(self, product_id: UUID) -> Product:
        stmt = select(Product).where(Product.id == product_id)
        result = await self.db.execute(stmt)
        product = result.scalar_one_or_none()
        if not product:
            raise NotFoundError(resource_type="product", resource_id=str(product_id))
        return product
