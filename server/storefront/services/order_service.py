"""Order service for cash-on-delivery checkout and fulfilment."""

import logging
import secrets
import time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ConflictError, InvalidStatusTransitionError, NotFoundError, ValidationError
from ..core.observability import metrics_collector
from ..models.order import DeliveryMethod, Order, OrderStatus
from ..schemas.order import ListOrdersRequest, PlaceOrderRequest, UpdateOrderStatusRequest
from .product_service import ProductService
from .tour_service import parse_resource_id

logger = logging.getLogger(__name__)

# Fulfilment paths differ by delivery method; the last status of each path is terminal
ORDER_TRANSITIONS: dict[DeliveryMethod, dict[OrderStatus, OrderStatus]] = {
    DeliveryMethod.PICKUP: {
        OrderStatus.PENDING: OrderStatus.PROCESSING,
        OrderStatus.PROCESSING: OrderStatus.DELIVERED,
        OrderStatus.DELIVERED: OrderStatus.COLLECTED,
    },
    DeliveryMethod.DELIVERY: {
        OrderStatus.PENDING: OrderStatus.PROCESSING,
        OrderStatus.PROCESSING: OrderStatus.SHIPPED,
        OrderStatus.SHIPPED: OrderStatus.DELIVERED,
    },
}

NUMBER_ATTEMPTS = 3


def generate_order_number() -> str:
    """Generate a human-readable order number, e.g. ORD-1718000000000-0042."""
    return f"ORD-{int(time.time() * 1000)}-{secrets.randbelow(10000):04d}"


class OrderService:
    """Service for order placement and status changes."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.product_service = ProductService(db)

    async def place_order(self, user_id: str, request: PlaceOrderRequest) -> Order:
        """
        Record a cash-on-delivery order priced from the current catalogue.

        Stock is not reserved or decremented; lines asking for more than the
        listed stock are logged for the fulfilment team.

        Raises:
            ValidationError: If a product is unknown or no longer sold
        """
        product_ids = [parse_resource_id(line.product_id, "product") for line in request.items]
        products = await self.product_service.get_products(product_ids)

        violations = []
        items = []
        subtotal = Decimal("0.00")
        for index, (product_id, line) in enumerate(zip(product_ids, request.items)):
            product = products.get(product_id)
            if product is None or not product.is_active:
                violations.append({
                    "path": f"items.{index}.product_id",
                    "message": "product is not available"
                })
                continue

            if line.quantity > product.stock_quantity:
                logger.warning(
                    "Order line exceeds listed stock",
                    extra={
                        "product_id": line.product_id,
                        "requested": line.quantity,
                        "stock_quantity": product.stock_quantity
                    }
                )

            line_total = Decimal(product.price) * line.quantity
            subtotal += line_total
            items.append({
                "product_id": str(product.id),
                "name": product.name,
                "unit_price": str(product.price),
                "quantity": line.quantity,
                "line_total": str(line_total),
            })

        if violations:
            raise ValidationError(detail="Some products cannot be ordered", violations=violations)

        delivery_fee = settings.delivery_fee if request.delivery_method == DeliveryMethod.DELIVERY else Decimal("0.00")
        total = subtotal + delivery_fee

        for attempt in range(1, NUMBER_ATTEMPTS + 1):
            order = Order(
                order_number=generate_order_number(),
                user_id=user_id,
                items=items,
                total_amount=total,
                status=OrderStatus.PENDING,
                delivery_method=request.delivery_method,
                delivery_address=request.delivery_address,
                phone=request.phone,
                payment_proof_url=request.payment_proof_url,
            )
            try:
                self.db.add(order)
                await self.db.commit()
                break
            except IntegrityError as e:
                await self.db.rollback()
                logger.warning(
                    "Order number collision",
                    extra={"order_number": order.order_number, "attempt": attempt, "error": str(e.orig)}
                )
        else:
            raise ConflictError(detail="Could not allocate an order number, please retry", code="CONTENTION")

        await self.db.refresh(order)

        metrics_collector.record_order_placed(request.delivery_method.value)
        logger.info(
            "Order placed",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "user_id": user_id,
                "lines": len(items),
                "total_amount": str(total),
                "delivery_method": request.delivery_method.value
            }
        )

        return order

    async def list_user_orders(self, user_id: str) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_orders(self, request: ListOrdersRequest) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc()).limit(request.limit)
        if request.status is not None:
            stmt = stmt.where(Order.status == request.status.value)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def update_status(self, request: UpdateOrderStatusRequest, actor: str) -> Order:
        """
        Advance an order one step along its fulfilment path.

        Raises:
            NotFoundError: If order not found
            InvalidStatusTransitionError: If the step is not the next one for this order
        """
        order = await self.get_order_or_raise(parse_resource_id(request.order_id, "order"))
        current = OrderStatus(order.status)
        target = OrderStatus(request.status)

        if current == target:
            return order

        next_status = ORDER_TRANSITIONS[DeliveryMethod(order.delivery_method)].get(current)
        if target != next_status:
            raise InvalidStatusTransitionError(
                resource_type="order",
                resource_id=request.order_id,
                current_status=current.value,
                requested_status=target.value,
                allowed=[next_status.value] if next_status else [],
            )

        order.status = target
        await self.db.commit()
        await self.db.refresh(order)

        logger.info(
            "Order status changed",
            extra={
                "order_id": request.order_id,
                "order_number": order.order_number,
                "from_status": current.value,
                "to_status": target.value,
                "actor": actor
            }
        )

        return order

    async def get_order_or_raise(self, order_id: UUID) -> Order:
        stmt = select(Order).where(Order.id == order_id)
        result = await self.db.execute(stmt)
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError(resource_type="order", resource_id=str(order_id))
        return order
