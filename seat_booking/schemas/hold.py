"""Hold schemas."""

from datetime import datetime

from seat_booking.schemas.common import BaseSchema


class HoldResponse(BaseSchema):
    """Schema for hold response."""

    hold_id: str
    seat_id: str
    user_id: str
    booking_id: str | None
    held_at: datetime
    expires_at: datetime
