"""Holds API endpoints."""

from datetime import datetime

from fastapi import APIRouter

from seat_booking.api.v1.dependencies import (
    BookingProtocolDep,
    CurrentUser,
    HoldServiceDep,
)
from seat_booking.api.v1.errors import to_http_exception
from seat_booking.exceptions import SeatBookingError
from seat_booking.schemas.common import SuccessResponse
from seat_booking.schemas.hold import HoldResponse

router = APIRouter()


@router.get(
    "/me",
    response_model=list[HoldResponse],
    summary="Get my live holds",
)
async def get_my_holds(
    current_user: CurrentUser,
    hold_service: HoldServiceDep,
) -> list[HoldResponse]:
    """Get the current party's holds that have not expired yet."""
    now = datetime.now()
    holds = await hold_service.get_user_holds(current_user)
    return [HoldResponse.model_validate(h) for h in holds if h.expires_at > now]


@router.delete(
    "/{hold_id}",
    response_model=SuccessResponse,
    summary="Release a hold",
)
async def release_hold(
    hold_id: str,
    current_user: CurrentUser,
    protocol: BookingProtocolDep,
) -> SuccessResponse:
    """Release the current party's hold; its pending booking is cancelled."""
    try:
        cancelled = await protocol.release_hold(current_user, hold_id)
    except SeatBookingError as e:
        raise to_http_exception(e)

    message = "Hold released"
    if cancelled:
        message += f", booking {cancelled.booking_id} cancelled"
    return SuccessResponse(message=message)
