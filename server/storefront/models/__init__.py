"""Models module exporting all database models."""

from .booking import BookingStatus, ReconciliationReason, TourBooking
from .order import DeliveryMethod, Order, OrderStatus
from .product import Product
from .tour import Tour
from .tour_date import TourDate

__all__ = [
    # Tour catalogue
    "Tour",
    "TourDate",

    # Booking entities
    "TourBooking",
    "BookingStatus",
    "ReconciliationReason",

    # Shop entities
    "Product",
    "Order",
    "OrderStatus",
    "DeliveryMethod",
]
