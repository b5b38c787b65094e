"""Admin API endpoints: booking decisions and maintenance."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Query

from seat_booking.api.v1.dependencies import (
    AdminUser,
    BookingProtocolDep,
    BookingServiceDep,
)
from seat_booking.api.v1.errors import to_http_exception
from seat_booking.exceptions import SeatBookingError
from seat_booking.models.booking import BookingStatus as ModelBookingStatus
from seat_booking.schemas.booking import (
    BookingApproveRequest,
    BookingRejectRequest,
    BookingResponse,
    BookingStatus,
)
from seat_booking.schemas.common import SweepResponse
from seat_booking.services.booking_protocol import ApprovalFields

router = APIRouter()


@router.get(
    "/bookings",
    response_model=list[BookingResponse],
    summary="List bookings",
)
async def list_bookings(
    admin_user: AdminUser,
    booking_service: BookingServiceDep,
    status_filter: Annotated[BookingStatus | None, Query(alias="status")] = None,
) -> list[BookingResponse]:
    """List all bookings, optionally filtered by status (e.g. pending)."""
    db_status = None
    if status_filter:
        db_status = ModelBookingStatus(status_filter.value)

    bookings = await booking_service.list_bookings(status=db_status)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.post(
    "/bookings/{booking_id}/approve",
    response_model=BookingResponse,
    summary="Approve a booking",
)
async def approve_booking(
    booking_id: str,
    admin_user: AdminUser,
    protocol: BookingProtocolDep,
    approval: BookingApproveRequest | None = None,
) -> BookingResponse:
    """
    Approve a pending booking.

    The subscription end date defaults to now plus the requested duration.
    """
    fields = ApprovalFields()
    if approval:
        fields = ApprovalFields(
            subscription_end_date=approval.subscription_end_date,
            payment_reference=approval.payment_reference,
            total_amount=approval.total_amount,
            notes=approval.notes,
        )

    try:
        booking = await protocol.approve_request(booking_id, admin_user, fields)
    except SeatBookingError as e:
        raise to_http_exception(e)
    return BookingResponse.model_validate(booking)


@router.post(
    "/bookings/{booking_id}/reject",
    response_model=BookingResponse,
    summary="Reject a booking",
)
async def reject_booking(
    booking_id: str,
    admin_user: AdminUser,
    protocol: BookingProtocolDep,
    rejection: BookingRejectRequest | None = None,
) -> BookingResponse:
    """Reject a pending booking; the seat becomes selectable again."""
    try:
        booking = await protocol.reject_request(
            booking_id,
            admin_user,
            reason=rejection.reason if rejection else None,
        )
    except SeatBookingError as e:
        raise to_http_exception(e)
    return BookingResponse.model_validate(booking)


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Sweep expired holds",
)
async def sweep_expired(
    admin_user: AdminUser,
    protocol: BookingProtocolDep,
) -> SweepResponse:
    """Run the expiry sweeper now instead of waiting for the next interval."""
    now = datetime.now()
    try:
        result = await protocol.sweep_expired(now)
    except SeatBookingError as e:
        raise to_http_exception(e)

    return SweepResponse(
        released_holds=result.released_holds,
        cancelled_bookings=result.cancelled_bookings,
        expired_subscriptions=result.expired_subscriptions,
        swept_at=now,
    )
