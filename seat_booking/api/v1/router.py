"""API v1 main router."""

from fastapi import APIRouter

from seat_booking.api.v1.admin import router as admin_router
from seat_booking.api.v1.bookings import router as bookings_router
from seat_booking.api.v1.holds import router as holds_router
from seat_booking.api.v1.seats import router as seats_router
from seat_booking.api.v1.websocket import router as websocket_router

router = APIRouter(prefix="/v1")

router.include_router(seats_router, prefix="/seats", tags=["Seats"])
router.include_router(bookings_router, prefix="/bookings", tags=["Bookings"])
router.include_router(holds_router, prefix="/holds", tags=["Holds"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
router.include_router(websocket_router, prefix="/ws", tags=["WebSocket"])
