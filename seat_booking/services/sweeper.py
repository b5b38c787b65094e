"""Expiry sweeper: reclaims seats whose holds lapsed without approval."""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_booking.exceptions import InvariantViolation, TransientStoreError
from seat_booking.models.booking import BookingStatus, SeatBooking
from seat_booking.services.booking_service import BookingService
from seat_booking.services.hold_service import HoldService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Counts from one sweep pass."""

    released_holds: int = 0
    cancelled_bookings: int = 0
    expired_subscriptions: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.released_holds or self.cancelled_bookings or self.expired_subscriptions)


class ExpirySweeper:
    """
    Sweeps lapsed holds and the pending bookings they backed.

    A pending booking whose hold is gone or expired becomes EXPIRED (party
    cancellations use CANCELLED), its hold rows are dropped, and any other
    lapsed hold is deleted. Approved bookings past their subscription end
    date are marked EXPIRED too so their party may book again; the resolver
    already shows those seats vacant without this write.

    All transitions are conditional updates, so a sweep racing an admin
    approval or another sweeper changes each booking at most once.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.bookings = BookingService(db)
        self.holds = HoldService(db)

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """
        Run one sweep pass and commit it.

        Raises:
            InvariantViolation: If two live holds exist for one seat
        """
        now = now or datetime.now()

        # Pending bookings first: a booking and its hold commit together, so
        # any booking seen here has its hold visible to the next read.
        pending = await self.bookings.list_pending_bookings()
        live_holds = await self.holds.list_live_holds(now)
        try:
            self._check_single_live_hold(live_holds)
        except InvariantViolation:
            await self.db.rollback()
            raise
        live_booking_ids = {h.booking_id for h in live_holds if h.booking_id}

        released = 0
        cancelled = 0
        for booking in pending:
            if booking.booking_id in live_booking_ids:
                continue
            released_for_booking, changed = await self._expire_pending(booking, now)
            released += released_for_booking
            cancelled += int(changed)

        released += await self.holds.delete_stale_holds(now)

        expired = 0
        for booking in await self.bookings.list_lapsed_subscriptions(now):
            if await self.bookings.update_booking_status(
                booking.booking_id,
                BookingStatus.EXPIRED,
                expected_status=BookingStatus.APPROVED,
                expired_at=now,
            ):
                expired += 1

        await self.db.commit()

        result = SweepResult(
            released_holds=released,
            cancelled_bookings=cancelled,
            expired_subscriptions=expired,
        )
        if result.changed:
            logger.info(
                f"Sweep at {now.isoformat()}: released {released} holds, "
                f"expired {cancelled} pending bookings, {expired} subscriptions"
            )
        return result

    async def sweep_quietly(self, now: datetime | None = None) -> SweepResult | None:
        """
        Sweep before a read or decision without letting store failures block it.

        A stale hold shown a little too long is preferable to an unavailable
        seat map, so store errors are logged and rolled back. InvariantViolation
        still propagates.
        """
        try:
            return await self.sweep(now)
        except (SQLAlchemyError, TransientStoreError) as e:
            logger.warning(f"Sweep skipped after store error: {e}")
            await self.db.rollback()
            return None

    async def reclaim_seat(self, seat_id: str, now: datetime) -> int:
        """
        Expire lapsed pending bookings on one seat inside the caller's
        transaction. Used by the request path so it never depends on an
        earlier sweep having succeeded.

        Returns:
            Number of bookings expired
        """
        pending = await self.bookings.list_pending_bookings(seat_id=seat_id)
        live = await self.holds.get_live_hold_for_seat(seat_id, now)
        expired = 0
        for booking in pending:
            if live is not None and live.booking_id == booking.booking_id:
                continue
            _, changed = await self._expire_pending(booking, now)
            expired += int(changed)
        await self.holds.delete_stale_holds(now, seat_id=seat_id)
        return expired

    async def _expire_pending(self, booking: SeatBooking, now: datetime) -> tuple[int, bool]:
        changed = await self.bookings.update_booking_status(
            booking.booking_id,
            BookingStatus.EXPIRED,
            expected_status=BookingStatus.PENDING,
            unless_hold_live_at=now,
            expired_at=now,
        )
        released = 0
        if changed:
            released = await self.holds.delete_holds_for_booking(booking.booking_id)
        return released, changed

    def _check_single_live_hold(self, live_holds: list) -> None:
        per_seat = Counter(h.seat_id for h in live_holds)
        duplicated = sorted(seat_id for seat_id, count in per_seat.items() if count > 1)
        if duplicated:
            logger.critical(
                f"Multiple live holds for seats {duplicated}: "
                "seat_holds unique constraint is missing or broken"
            )
            raise InvariantViolation(f"Multiple live holds for seats: {', '.join(duplicated)}")
