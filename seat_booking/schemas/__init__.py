"""Pydantic schemas for API request/response."""

from seat_booking.schemas.booking import (
    BookingApproveRequest,
    BookingCreate,
    BookingRejectRequest,
    BookingResponse,
    BookingStatus,
    SeatRequestResponse,
)
from seat_booking.schemas.common import ErrorResponse, SuccessResponse, SweepResponse
from seat_booking.schemas.feed import WSMessage, WSMessageType
from seat_booking.schemas.hold import HoldResponse
from seat_booking.schemas.seat import (
    SeatAvailabilityResponse,
    SeatBulkCreate,
    SeatCreate,
    SeatMapResponse,
    SeatResponse,
    SeatStatus,
)

__all__ = [
    "BookingApproveRequest",
    "BookingCreate",
    "BookingRejectRequest",
    "BookingResponse",
    "BookingStatus",
    "SeatRequestResponse",
    "ErrorResponse",
    "SuccessResponse",
    "SweepResponse",
    "WSMessage",
    "WSMessageType",
    "HoldResponse",
    "SeatAvailabilityResponse",
    "SeatBulkCreate",
    "SeatCreate",
    "SeatMapResponse",
    "SeatResponse",
    "SeatStatus",
]
