"""Common schema utilities."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class ErrorResponse(BaseModel):
    """Error response schema."""

    error: str
    detail: str | None = None
    timestamp: datetime


class SuccessResponse(BaseModel):
    """Simple success response."""

    success: bool = True
    message: str


class SweepResponse(BaseSchema):
    """Result of an expiry sweep."""

    released_holds: int
    cancelled_bookings: int
    expired_subscriptions: int
    swept_at: datetime
