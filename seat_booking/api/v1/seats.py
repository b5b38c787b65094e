"""Seats API endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, status

from seat_booking.api.v1.dependencies import (
    AdminUser,
    AvailabilityServiceDep,
    SeatServiceDep,
)
from seat_booking.api.v1.errors import to_http_exception
from seat_booking.exceptions import SeatBookingError
from seat_booking.schemas.seat import (
    SeatAvailabilityResponse,
    SeatBulkCreate,
    SeatMapResponse,
    SeatResponse,
    SeatStatus,
)

router = APIRouter()


@router.get(
    "",
    response_model=list[SeatResponse],
    summary="List seats",
)
async def list_seats(
    seat_service: SeatServiceDep,
    section: str | None = None,
) -> list[SeatResponse]:
    """List the seat catalog in display order."""
    seats = await seat_service.list_seats(section=section)
    return [SeatResponse.model_validate(s) for s in seats]


@router.post(
    "",
    response_model=list[SeatResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Provision seats",
)
async def create_seats(
    seats_data: SeatBulkCreate,
    admin_user: AdminUser,
    seat_service: SeatServiceDep,
) -> list[SeatResponse]:
    """Provision seats (admin only)."""
    try:
        seats = await seat_service.create_seats_bulk(seats_data.seats)
    except SeatBookingError as e:
        raise to_http_exception(e)
    return [SeatResponse.model_validate(s) for s in seats]


@router.get(
    "/availability",
    response_model=SeatMapResponse,
    summary="Get seat map",
)
async def get_seat_map(
    availability_service: AvailabilityServiceDep,
    x_user_id: Annotated[str | None, Header()] = None,
) -> SeatMapResponse:
    """
    Get every seat with its current status.

    Seats held by the caller (X-User-ID, optional) are shown as `selected`.
    Expired holds are swept before the map is built.
    """
    now = datetime.now()
    try:
        entries = await availability_service.get_seat_map(
            now=now,
            viewer_id=x_user_id.strip() if x_user_id else None,
        )
    except SeatBookingError as e:
        raise to_http_exception(e)

    counts = {s: 0 for s in SeatStatus}
    seats = []
    for entry in entries:
        seat_status = SeatStatus(entry.availability.status.value)
        counts[seat_status] += 1
        seats.append(
            SeatAvailabilityResponse(
                seat_id=entry.seat_id,
                seat_number=entry.seat_number,
                section=entry.section,
                row_number=entry.row_number,
                monthly_rate=entry.monthly_rate,
                status=seat_status,
                hold_expires_at=entry.availability.hold_expires_at,
                subscription_end_date=entry.availability.subscription_end_date,
            )
        )

    return SeatMapResponse(seats=seats, counts=counts, generated_at=now)


@router.get(
    "/{seat_id}",
    response_model=SeatResponse,
    summary="Get seat details",
)
async def get_seat(
    seat_id: str,
    seat_service: SeatServiceDep,
) -> SeatResponse:
    """Get seat details by ID."""
    seat = await seat_service.get_seat(seat_id)
    if not seat:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Seat not found",
        )
    return SeatResponse.model_validate(seat)
