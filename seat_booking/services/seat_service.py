"""Seat catalog service."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_booking.exceptions import BookingValidationError
from seat_booking.models.seat import Seat
from seat_booking.schemas.seat import SeatCreate

logger = logging.getLogger(__name__)


class SeatService:
    """Service for the seat catalog. Seats are provisioned, never deleted."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_seats_bulk(self, seats_data: list[SeatCreate]) -> list[Seat]:
        """
        Provision seats in one transaction.

        Raises:
            BookingValidationError: If a seat number is repeated or already exists
        """
        numbers = [s.seat_number for s in seats_data]
        if len(set(numbers)) != len(numbers):
            raise BookingValidationError("Seat numbers must be unique.")

        seats = []
        for seat_data in seats_data:
            seat = Seat(
                seat_number=seat_data.seat_number,
                section=seat_data.section,
                row_number=seat_data.row_number,
                monthly_rate=seat_data.monthly_rate,
            )
            seats.append(seat)
            self.db.add(seat)

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise BookingValidationError("Seat number already exists.") from e

        # Refresh all seats
        for seat in seats:
            await self.db.refresh(seat)

        logger.info(f"Provisioned {len(seats)} seats: {', '.join(numbers)}")
        return seats

    async def get_seat(self, seat_id: str) -> Seat | None:
        """Get seat by ID."""
        result = await self.db.execute(
            select(Seat).where(Seat.seat_id == seat_id)
        )
        return result.scalar_one_or_none()

    async def list_seats(self, section: str | None = None) -> list[Seat]:
        """List seats in display order, optionally for one section."""
        query = select(Seat)

        if section:
            query = query.where(Seat.section == section)

        query = query.order_by(Seat.section, Seat.row_number, Seat.seat_number)

        result = await self.db.execute(query)
        return list(result.scalars().all())
