"""API v1 routers package."""

from seat_booking.api.v1.admin import router as admin_router
from seat_booking.api.v1.bookings import router as bookings_router
from seat_booking.api.v1.holds import router as holds_router
from seat_booking.api.v1.seats import router as seats_router
from seat_booking.api.v1.websocket import router as websocket_router

__all__ = [
    "seats_router",
    "bookings_router",
    "holds_router",
    "admin_router",
    "websocket_router",
]
