"""Service layer package."""

from .booking_admin_service import BookingAdminService
from .booking_allocator import BookingAllocator, evaluate_capacity
from .booking_facade import BookingRequestFacade
from .capacity_ledger import CapacityLedger, SqlCapacityLedger
from .change_feed import ChangeFeed, change_feed
from .order_service import OrderService
from .product_service import ProductService
from .tour_date_service import TourDateService
from .tour_service import TourService

__all__ = [
    "BookingAdminService",
    "BookingAllocator",
    "BookingRequestFacade",
    "CapacityLedger",
    "ChangeFeed",
    "OrderService",
    "ProductService",
    "SqlCapacityLedger",
    "TourDateService",
    "TourService",
    "change_feed",
    "evaluate_capacity",
]
