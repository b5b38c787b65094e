"""Seat schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field

from seat_booking.schemas.common import BaseSchema


class SeatStatus(str, Enum):
    """Seat display status."""

    VACANT = "vacant"
    HELD = "held"
    BOOKED = "booked"
    SELECTED = "selected"


class SeatCreate(BaseSchema):
    """Schema for provisioning a seat."""

    seat_number: str = Field(..., min_length=1, max_length=20)
    section: str | None = Field(None, max_length=50)
    row_number: str | None = Field(None, max_length=10)
    monthly_rate: Decimal = Field(..., gt=0)


class SeatBulkCreate(BaseSchema):
    """Schema for bulk seat provisioning."""

    seats: list[SeatCreate] = Field(..., min_length=1)


class SeatResponse(BaseSchema):
    """Schema for seat response."""

    seat_id: str
    seat_number: str
    section: str | None
    row_number: str | None
    monthly_rate: Decimal
    created_at: datetime | None = None


class SeatAvailabilityResponse(BaseSchema):
    """One seat on the seat map."""

    seat_id: str
    seat_number: str
    section: str | None
    row_number: str | None
    monthly_rate: Decimal
    status: SeatStatus
    hold_expires_at: datetime | None = None
    subscription_end_date: datetime | None = None


class SeatMapResponse(BaseSchema):
    """Seat map with per-status totals."""

    seats: list[SeatAvailabilityResponse]
    counts: dict[SeatStatus, int]
    generated_at: datetime
