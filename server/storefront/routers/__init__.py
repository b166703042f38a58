"""FastAPI routers package."""

from .admin_booking import router as admin_booking_router
from .booking import router as booking_router
from .health import probe_router
from .health import router as health_router
from .metrics import router as metrics_router
from .order import admin_router as admin_order_router
from .order import router as order_router
from .product import router as product_router
from .realtime import router as realtime_router
from .tour import router as tour_router
from .tour_date import router as tour_date_router

__all__ = [
    "admin_booking_router",
    "admin_order_router",
    "booking_router",
    "health_router",
    "metrics_router",
    "order_router",
    "probe_router",
    "product_router",
    "realtime_router",
    "tour_date_router",
    "tour_router",
]
