"""Product Pydantic schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import stringify_id


class CreateProductRequest(BaseModel):
    """Request schema for adding a product to the shop."""

    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: str | None = Field(None, max_length=4000)
    category: str | None = Field(None, max_length=100, description="Catalogue category")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit price (ZAR)")
    stock_quantity: int = Field(0, ge=0, description="Units on hand")
    image_url: str | None = None


class UpdateProductRequest(BaseModel):
    """Request schema for updating a product; omitted fields are left unchanged."""

    id: str = Field(..., description="Product to update")
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=4000)
    category: str | None = Field(None, max_length=100)
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    stock_quantity: int | None = Field(None, ge=0)
    image_url: str | None = None
    is_active: bool | None = None


class ListProductsRequest(BaseModel):
    """Request schema for browsing the shop."""

    category: str | None = Field(None, max_length=100, description="Only this category")
    search: str | None = Field(None, max_length=255, description="Case-insensitive name filter")
    include_inactive: bool = Field(False, description="Admin only: include hidden products")


class Product(BaseModel):
    """Product response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    category: str | None = None
    price: Decimal
    stock_quantity: int
    image_url: str | None = None
    is_active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def stringify_ids(cls, value):
        return stringify_id(value)


class ListProductsResponse(BaseModel):
    """Response schema for product listing."""

    items: list[Product] = Field(..., description="Products ordered by name")
