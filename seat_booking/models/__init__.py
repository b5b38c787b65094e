"""SQLAlchemy models."""

from seat_booking.models.base import Base
from seat_booking.models.booking import ACTIVE_STATUSES, BookingStatus, SeatBooking
from seat_booking.models.hold import SeatHold
from seat_booking.models.seat import Seat

__all__ = [
    "Base",
    "Seat",
    "SeatHold",
    "SeatBooking",
    "BookingStatus",
    "ACTIVE_STATUSES",
]
