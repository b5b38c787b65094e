"""Booking schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field, field_validator

from seat_booking.schemas.common import BaseSchema
from seat_booking.schemas.hold import HoldResponse


class BookingStatus(str, Enum):
    """Booking status enum."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class BookingCreate(BaseSchema):
    """Schema for requesting a seat."""

    seat_id: str = Field(..., min_length=1, max_length=26)
    duration_months: int
    notes: str | None = Field(None, max_length=500)


class BookingResponse(BaseSchema):
    """Schema for booking response."""

    booking_id: str
    seat_id: str
    user_id: str
    status: BookingStatus
    duration_months: int
    total_amount: Decimal
    requested_at: datetime
    subscription_end_date: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None
    cancelled_at: datetime | None = None
    expired_at: datetime | None = None
    payment_reference: str | None = None
    notes: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def status_from_value(cls, v):
        return getattr(v, "value", v)


class SeatRequestResponse(BaseSchema):
    """Pending booking plus the hold backing it."""

    booking: BookingResponse
    hold: HoldResponse


class BookingApproveRequest(BaseSchema):
    """Schema for admin approval."""

    subscription_end_date: datetime | None = None
    payment_reference: str | None = Field(None, max_length=100)
    total_amount: Decimal | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)

    @field_validator("subscription_end_date")
    @classmethod
    def end_date_as_local_time(cls, v: datetime | None) -> datetime | None:
        # Timestamps are stored as naive local time
        if v is not None and v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v


class BookingRejectRequest(BaseSchema):
    """Schema for admin rejection."""

    reason: str | None = Field(None, max_length=500)
