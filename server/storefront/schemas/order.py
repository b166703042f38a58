"""Shop order Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common import stringify_id


class DeliveryMethod(str, Enum):
    """How the customer receives the order."""
    PICKUP = "pickup"
    DELIVERY = "delivery"


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COLLECTED = "collected"


class OrderLine(BaseModel):
    """One requested product and quantity."""

    product_id: str = Field(..., description="Product ID")
    quantity: int = Field(..., ge=1, le=100, description="Units requested")


class PlaceOrderRequest(BaseModel):
    """Request schema for a cash-on-delivery checkout."""

    items: list[OrderLine] = Field(..., min_length=1, description="Cart contents")
    delivery_method: DeliveryMethod = Field(..., description="Pickup or delivery")
    delivery_address: str | None = Field(None, max_length=1000)
    phone: str | None = Field(None, max_length=32)
    payment_proof_url: str | None = None

    @model_validator(mode="after")
    def require_address_for_delivery(self) -> "PlaceOrderRequest":
        if self.delivery_method == DeliveryMethod.DELIVERY and not (self.delivery_address or "").strip():
            raise ValueError("delivery_address is required for delivery orders")
        return self


class OrderItem(BaseModel):
    """Line item snapshot stored with the order."""

    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


class Order(BaseModel):
    """Order response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    user_id: str
    items: list[OrderItem]
    total_amount: Decimal
    status: OrderStatus
    delivery_method: DeliveryMethod
    delivery_address: str | None = None
    phone: str | None = None
    payment_proof_url: str | None = None
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_ids(cls, value):
        return stringify_id(value)


class UpdateOrderStatusRequest(BaseModel):
    """Admin request to advance an order."""

    order_id: str = Field(..., description="Order to update")
    status: OrderStatus = Field(..., description="Target status")


class ListOrdersRequest(BaseModel):
    """Admin order listing filters."""

    status: OrderStatus | None = None
    limit: int = Field(100, ge=1, le=500)


class ListOrdersResponse(BaseModel):
    """Response schema for order listings."""

    items: list[Order] = Field(..., description="Orders, newest first")
