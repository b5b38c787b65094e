"""Hold store access."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_booking.config import get_settings
from seat_booking.exceptions import AlreadyHeldByOther
from seat_booking.models.hold import SeatHold

settings = get_settings()
logger = logging.getLogger(__name__)


class HoldService:
    """
    Service for seat hold rows.

    Write methods flush inside the caller's transaction and never commit;
    the booking protocol owns commit/rollback so a hold and its booking
    persist together or not at all.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_hold(
        self,
        user_id: str,
        seat_id: str,
        booking_id: str | None,
        now: datetime,
        ttl_seconds: int | None = None,
    ) -> SeatHold:
        """
        Insert a hold on a seat.

        A lapsed hold still occupying the seat row is deleted first, in the
        same transaction. The seat_id unique constraint then decides any race.

        Raises:
            AlreadyHeldByOther: If another live hold exists for the seat
        """
        await self.delete_stale_holds(now, seat_id=seat_id)

        ttl = ttl_seconds if ttl_seconds is not None else settings.HOLD_TTL_SECONDS
        hold = SeatHold(
            seat_id=seat_id,
            user_id=user_id,
            booking_id=booking_id,
            held_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
        self.db.add(hold)
        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Hold insert lost race on seat {seat_id} for {user_id}")
            raise AlreadyHeldByOther() from e
        return hold

    async def get_hold(self, hold_id: str) -> SeatHold | None:
        """Get hold by ID."""
        result = await self.db.execute(
            select(SeatHold)
            .where(SeatHold.hold_id == hold_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_live_hold_for_seat(self, seat_id: str, now: datetime) -> SeatHold | None:
        result = await self.db.execute(
            select(SeatHold)
            .where(and_(SeatHold.seat_id == seat_id, SeatHold.expires_at > now))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_holds_for_booking(self, booking_id: str) -> list[SeatHold]:
        result = await self.db.execute(
            select(SeatHold).where(SeatHold.booking_id == booking_id)
        )
        return list(result.scalars().all())

    async def get_user_holds(self, user_id: str) -> list[SeatHold]:
        """Get holds owned by a party, newest first."""
        result = await self.db.execute(
            select(SeatHold)
            .where(SeatHold.user_id == user_id)
            .order_by(SeatHold.held_at.desc())
        )
        return list(result.scalars().all())

    async def list_live_holds(self, now: datetime) -> list[SeatHold]:
        result = await self.db.execute(
            select(SeatHold)
            .where(SeatHold.expires_at > now)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def release_hold(self, hold_id: str) -> bool:
        """
        Delete a hold.

        Returns:
            True if a row was deleted
        """
        result = await self.db.execute(
            delete(SeatHold).where(SeatHold.hold_id == hold_id)
        )
        return result.rowcount > 0

    async def delete_holds_for_booking(self, booking_id: str) -> int:
        """Delete every hold backing a booking. Returns the number deleted."""
        result = await self.db.execute(
            delete(SeatHold).where(SeatHold.booking_id == booking_id)
        )
        return result.rowcount

    async def delete_stale_holds(self, now: datetime, seat_id: str | None = None) -> int:
        """Delete holds with ``expires_at <= now``, optionally for one seat."""
        query = delete(SeatHold).where(SeatHold.expires_at <= now)
        if seat_id:
            query = query.where(SeatHold.seat_id == seat_id)
        result = await self.db.execute(query)
        return result.rowcount
