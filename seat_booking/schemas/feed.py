"""WebSocket message schemas for the seat change feed."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from seat_booking.schemas.common import BaseSchema


class WSMessageType(str, Enum):
    """WebSocket message types."""

    SEAT_CHANGE = "seat_change"
    PONG = "pong"
    KEEPALIVE = "keepalive"
    ERROR = "error"


class WSMessage(BaseSchema):
    """WebSocket message."""

    type: WSMessageType
    data: dict = {}
    timestamp: datetime = Field(default_factory=datetime.now)
