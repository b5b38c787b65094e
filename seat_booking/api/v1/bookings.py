"""Bookings API endpoints."""

from fastapi import APIRouter, HTTPException, status

from seat_booking.api.v1.dependencies import (
    BookingProtocolDep,
    BookingServiceDep,
    CurrentUser,
)
from seat_booking.api.v1.errors import to_http_exception
from seat_booking.exceptions import SeatBookingError
from seat_booking.schemas.booking import (
    BookingCreate,
    BookingResponse,
    SeatRequestResponse,
)
from seat_booking.schemas.hold import HoldResponse

router = APIRouter()


@router.post(
    "",
    response_model=SeatRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a seat",
)
async def request_seat(
    booking_data: BookingCreate,
    current_user: CurrentUser,
    protocol: BookingProtocolDep,
) -> SeatRequestResponse:
    """
    Hold a seat and record a pending booking for admin approval.

    The hold lasts HOLD_TTL_SECONDS; if no admin approves the booking in
    that window the seat returns to vacant. A party may have one pending or
    approved booking at a time.
    """
    try:
        result = await protocol.request_seat(
            party_id=current_user,
            seat_id=booking_data.seat_id,
            duration_months=booking_data.duration_months,
            notes=booking_data.notes,
        )
    except SeatBookingError as e:
        raise to_http_exception(e)

    return SeatRequestResponse(
        booking=BookingResponse.model_validate(result.booking),
        hold=HoldResponse.model_validate(result.hold),
    )


@router.get(
    "/me",
    response_model=list[BookingResponse],
    summary="Get my bookings",
)
async def get_my_bookings(
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> list[BookingResponse]:
    """Get all bookings of the current party, newest first."""
    bookings = await booking_service.list_bookings(user_id=current_user)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking details",
)
async def get_booking(
    booking_id: str,
    current_user: CurrentUser,
    booking_service: BookingServiceDep,
) -> BookingResponse:
    """Get one of the current party's bookings."""
    booking = await booking_service.get_booking(booking_id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )

    if booking.user_id != current_user:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot access another user's booking",
        )

    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a pending booking",
)
async def cancel_booking(
    booking_id: str,
    current_user: CurrentUser,
    protocol: BookingProtocolDep,
) -> BookingResponse:
    """Cancel the current party's pending booking and release its hold."""
    try:
        booking = await protocol.cancel_request(current_user, booking_id)
    except SeatBookingError as e:
        raise to_http_exception(e)
    return BookingResponse.model_validate(booking)
