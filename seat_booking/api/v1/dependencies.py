"""API dependencies."""

from typing import Annotated

import redis.asyncio as redis
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from seat_booking.change_feed import ChangeFeed
from seat_booking.database import get_db
from seat_booking.redis_client import get_redis
from seat_booking.services.availability import AvailabilityService
from seat_booking.services.booking_protocol import BookingProtocol
from seat_booking.services.booking_service import BookingService
from seat_booking.services.hold_service import HoldService
from seat_booking.services.seat_service import SeatService

# Type aliases
DBSession = Annotated[AsyncSession, Depends(get_db)]
RedisClient = Annotated[redis.Redis, Depends(get_redis)]

ADMIN_ROLE = "admin"


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """
    Get the authenticated party ID from header.
    Identity is established upstream; the header is trusted as-is.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    return x_user_id.strip()


CurrentUser = Annotated[str, Depends(get_current_user_id)]


async def get_admin_user_id(
    current_user: CurrentUser,
    x_user_role: Annotated[str | None, Header()] = None,
) -> str:
    """Require the admin role and return the admin's ID."""
    if (x_user_role or "").strip().lower() != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user


AdminUser = Annotated[str, Depends(get_admin_user_id)]


def get_seat_service(db: DBSession) -> SeatService:
    """Get seat service."""
    return SeatService(db)


def get_booking_service(db: DBSession) -> BookingService:
    """Get booking service."""
    return BookingService(db)


def get_hold_service(db: DBSession) -> HoldService:
    """Get hold service."""
    return HoldService(db)


def get_availability_service(db: DBSession) -> AvailabilityService:
    """Get availability service."""
    return AvailabilityService(db)


def get_change_feed(redis_client: RedisClient) -> ChangeFeed:
    """Get seat change feed."""
    return ChangeFeed(redis_client)


def get_booking_protocol(
    db: DBSession,
    redis_client: RedisClient,
    change_feed: Annotated[ChangeFeed, Depends(get_change_feed)],
) -> BookingProtocol:
    """Get booking protocol."""
    return BookingProtocol(db, redis_client, change_feed)


# Annotated dependencies
SeatServiceDep = Annotated[SeatService, Depends(get_seat_service)]
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
HoldServiceDep = Annotated[HoldService, Depends(get_hold_service)]
AvailabilityServiceDep = Annotated[AvailabilityService, Depends(get_availability_service)]
BookingProtocolDep = Annotated[BookingProtocol, Depends(get_booking_protocol)]
