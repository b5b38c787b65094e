"""Services package."""

from seat_booking.services.availability import (
    AvailabilityService,
    SeatAvailability,
    SeatStatus,
    resolve,
    resolve_detailed,
)
from seat_booking.services.booking_protocol import (
    ApprovalFields,
    BookingProtocol,
    SeatRequestResult,
)
from seat_booking.services.booking_service import BookingService
from seat_booking.services.hold_service import HoldService
from seat_booking.services.seat_service import SeatService
from seat_booking.services.sweeper import ExpirySweeper, SweepResult

__all__ = [
    "AvailabilityService",
    "SeatAvailability",
    "SeatStatus",
    "resolve",
    "resolve_detailed",
    "ApprovalFields",
    "BookingProtocol",
    "SeatRequestResult",
    "BookingService",
    "HoldService",
    "SeatService",
    "ExpirySweeper",
    "SweepResult",
]
