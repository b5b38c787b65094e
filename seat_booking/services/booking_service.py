"""Booking store access."""

import calendar
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_booking.exceptions import PartyHasActiveBooking
from seat_booking.models.booking import ACTIVE_STATUSES, BookingStatus, SeatBooking
from seat_booking.models.hold import SeatHold
from seat_booking.models.seat import Seat

logger = logging.getLogger(__name__)


def add_months(start: datetime, months: int) -> datetime:
    """Shift a timestamp by whole calendar months, clamping the day."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


class BookingService:
    """
    Service for booking rows.

    Like HoldService, writes flush inside the caller's transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_booking(
        self,
        user_id: str,
        seat: Seat,
        duration_months: int,
        now: datetime,
        notes: str | None = None,
    ) -> SeatBooking:
        """
        Insert a pending booking.

        Raises:
            PartyHasActiveBooking: If the party already has a pending or
                approved booking (enforced by the active_party_id constraint)
        """
        booking = SeatBooking(
            seat_id=seat.seat_id,
            user_id=user_id,
            active_party_id=user_id,
            status=BookingStatus.PENDING,
            duration_months=duration_months,
            total_amount=Decimal(seat.monthly_rate) * duration_months,
            requested_at=now,
            notes=notes,
        )
        self.db.add(booking)
        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Booking insert rejected for {user_id}: active booking exists")
            raise PartyHasActiveBooking() from e
        return booking

    async def get_booking(self, booking_id: str) -> SeatBooking | None:
        """Get booking by ID."""
        result = await self.db.execute(
            select(SeatBooking)
            .where(SeatBooking.booking_id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active_booking_for_user(self, user_id: str) -> SeatBooking | None:
        """Get the party's pending or approved booking, if any."""
        result = await self.db.execute(
            select(SeatBooking)
            .where(
                and_(
                    SeatBooking.user_id == user_id,
                    SeatBooking.status.in_(ACTIVE_STATUSES),
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_approved_booking_for_seat(
        self,
        seat_id: str,
        now: datetime,
    ) -> SeatBooking | None:
        """Get an approved booking that still occupies the seat at ``now``."""
        result = await self.db.execute(
            select(SeatBooking)
            .where(
                and_(
                    SeatBooking.seat_id == seat_id,
                    SeatBooking.status == BookingStatus.APPROVED,
                    or_(
                        SeatBooking.subscription_end_date.is_(None),
                        SeatBooking.subscription_end_date > now,
                    ),
                )
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_pending_bookings(self, seat_id: str | None = None) -> list[SeatBooking]:
        query = select(SeatBooking).where(SeatBooking.status == BookingStatus.PENDING)
        if seat_id:
            query = query.where(SeatBooking.seat_id == seat_id)
        result = await self.db.execute(
            query.order_by(SeatBooking.requested_at).execution_options(
                populate_existing=True
            )
        )
        return list(result.scalars().all())

    async def list_lapsed_subscriptions(self, now: datetime) -> list[SeatBooking]:
        """Approved bookings whose subscription_end_date has passed."""
        result = await self.db.execute(
            select(SeatBooking).where(
                and_(
                    SeatBooking.status == BookingStatus.APPROVED,
                    SeatBooking.subscription_end_date.is_not(None),
                    SeatBooking.subscription_end_date <= now,
                )
            )
        )
        return list(result.scalars().all())

    async def list_bookings(
        self,
        status: BookingStatus | None = None,
        user_id: str | None = None,
    ) -> list[SeatBooking]:
        """List bookings, newest request first."""
        query = select(SeatBooking)

        if status:
            query = query.where(SeatBooking.status == status)
        if user_id:
            query = query.where(SeatBooking.user_id == user_id)

        query = query.order_by(SeatBooking.requested_at.desc())

        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def update_booking_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        expected_status: BookingStatus = BookingStatus.PENDING,
        unless_hold_live_at: datetime | None = None,
        **fields: Any,
    ) -> bool:
        """
        Move a booking to ``new_status`` only if it is still ``expected_status``.

        Terminal statuses clear ``active_party_id`` so the party may book again.

        Args:
            booking_id: Booking ID
            new_status: Target status
            expected_status: Status the row must currently have
            unless_hold_live_at: Skip the update if the booking still has a
                hold with expires_at after this time
            **fields: Extra columns to set (approved_at, approved_by, ...)

        Returns:
            True if this call performed the transition
        """
        values: dict[str, Any] = {"status": new_status, **fields}
        if new_status not in ACTIVE_STATUSES:
            values["active_party_id"] = None

        conditions = [
            SeatBooking.booking_id == booking_id,
            SeatBooking.status == expected_status,
        ]
        if unless_hold_live_at is not None:
            conditions.append(
                ~exists().where(
                    and_(
                        SeatHold.booking_id == booking_id,
                        SeatHold.expires_at > unless_hold_live_at,
                    )
                )
            )

        result = await self.db.execute(
            update(SeatBooking).where(and_(*conditions)).values(**values)
        )
        changed = result.rowcount > 0
        if changed:
            logger.info(
                f"Booking {booking_id}: {expected_status.value} -> {new_status.value}"
            )
        return changed
