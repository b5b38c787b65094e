"""
Booking protocol: the state machine moving a seat from vacant to held to
booked, and back.

    NoBooking -> Pending -> Approved | Rejected | Cancelled | Expired

Every operation runs as one database transaction under a Redis lock on the
seat (and the party, for requests). The lock only narrows contention; the
seat_holds.seat_id and seat_bookings.active_party_id unique constraints and
the conditional status updates are what make the outcome correct when two
sessions race.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TypeVar

import redis.asyncio as redis
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_booking.change_feed import ChangeFeed, SeatChangeEvent, SeatChangeKind
from seat_booking.config import get_settings
from seat_booking.distributed_lock import (
    DistributedLockError,
    multi_lock,
    party_lock_key,
    seat_lock_key,
)
from seat_booking.exceptions import (
    AlreadyBooked,
    AlreadyHeldByOther,
    BookingNotFound,
    BookingValidationError,
    HoldNotFound,
    InvalidBookingState,
    PartyHasActiveBooking,
    PermissionDeniedError,
    SeatNotFound,
    TransientStoreError,
)
from seat_booking.models.booking import BookingStatus, SeatBooking
from seat_booking.models.hold import SeatHold
from seat_booking.services.booking_service import BookingService, add_months
from seat_booking.services.hold_service import HoldService
from seat_booking.services.seat_service import SeatService
from seat_booking.services.sweeper import ExpirySweeper, SweepResult

settings = get_settings()
logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ApprovalFields:
    """Optional data an admin supplies when approving a booking."""

    subscription_end_date: datetime | None = None
    payment_reference: str | None = None
    total_amount: Decimal | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SeatRequestResult:
    """Pending booking together with the hold backing it."""

    booking: SeatBooking
    hold: SeatHold


class BookingProtocol:
    """Entry point for every hold/booking mutation."""

    def __init__(
        self,
        db: AsyncSession,
        redis_client: redis.Redis,
        change_feed: ChangeFeed | None = None,
    ):
        self.db = db
        self.redis = redis_client
        self.seats = SeatService(db)
        self.holds = HoldService(db)
        self.bookings = BookingService(db)
        self.sweeper = ExpirySweeper(db)
        self.change_feed = change_feed or ChangeFeed(redis_client)

    async def request_seat(
        self,
        party_id: str,
        seat_id: str,
        duration_months: int,
        now: datetime | None = None,
        notes: str | None = None,
    ) -> SeatRequestResult:
        """
        Place a time-boxed hold on a seat and record a pending booking.

        Both rows are written in one transaction; a caller that loses a race
        leaves nothing behind.

        Args:
            party_id: Requesting party
            seat_id: Seat to hold
            duration_months: Requested subscription length
            now: Request time, defaults to the current time
            notes: Free-text note from the party

        Returns:
            SeatRequestResult with the pending booking and its hold

        Raises:
            BookingValidationError: Malformed party, seat or duration
            SeatNotFound: Unknown seat
            PartyHasActiveBooking: Party already has a pending/approved booking
            AlreadyBooked: Seat is covered by an approved booking
            AlreadyHeldByOther: Another party holds the seat
            TransientStoreError: Store or lock unavailable after retries
        """
        self._validate_request(party_id, seat_id, duration_months)
        now = now or datetime.now()

        async def operation() -> SeatRequestResult:
            await self.sweeper.sweep_quietly(now)

            seat = await self.seats.get_seat(seat_id)
            if not seat:
                raise SeatNotFound()

            if await self.bookings.get_active_booking_for_user(party_id):
                raise PartyHasActiveBooking()

            if await self.bookings.get_approved_booking_for_seat(seat_id, now):
                raise AlreadyBooked()

            await self.sweeper.reclaim_seat(seat_id, now)

            live = await self.holds.get_live_hold_for_seat(seat_id, now)
            if live is not None:
                if live.user_id != party_id:
                    raise AlreadyHeldByOther()
                # Own hold left without a pending booking; replace it.
                await self.holds.release_hold(live.hold_id)

            booking = await self.bookings.create_booking(
                party_id, seat, duration_months, now, notes=notes
            )
            hold = await self.holds.create_hold(
                party_id, seat_id, booking.booking_id, now
            )
            await self.db.commit()
            return SeatRequestResult(booking=booking, hold=hold)

        result = await self._run(
            [seat_lock_key(seat_id), party_lock_key(party_id)], operation
        )
        logger.info(
            f"Party {party_id} holds seat {seat_id} until {result.hold.expires_at.isoformat()} "
            f"(booking {result.booking.booking_id})"
        )
        await self.change_feed.publish(
            SeatChangeEvent(
                kind=SeatChangeKind.HELD,
                seat_id=seat_id,
                booking_id=result.booking.booking_id,
                user_id=party_id,
                status=BookingStatus.PENDING.value,
            )
        )
        return result

    async def cancel_request(
        self,
        party_id: str,
        booking_id: str,
        now: datetime | None = None,
    ) -> SeatBooking:
        """
        Cancel the party's own pending booking and drop its hold.

        Raises:
            BookingNotFound, PermissionDeniedError, InvalidBookingState
        """
        now = now or datetime.now()
        booking = await self._require_booking(booking_id)
        if booking.user_id != party_id:
            raise PermissionDeniedError()

        async def operation() -> SeatBooking:
            changed = await self.bookings.update_booking_status(
                booking_id,
                BookingStatus.CANCELLED,
                cancelled_at=now,
            )
            if not changed:
                await self.db.rollback()
                raise await self._invalid_state(booking_id, "cancelled")
            await self.holds.delete_holds_for_booking(booking_id)
            await self.db.commit()
            return await self._require_booking(booking_id)

        cancelled = await self._run([seat_lock_key(booking.seat_id)], operation)
        await self._announce(SeatChangeKind.CANCELLED, cancelled)
        return cancelled

    async def release_hold(
        self,
        party_id: str,
        hold_id: str,
        now: datetime | None = None,
    ) -> SeatBooking | None:
        """
        Release the party's own hold; the pending booking it backs is
        cancelled in the same transaction.

        Returns:
            The cancelled booking, or None for a hold with no pending booking

        Raises:
            HoldNotFound, PermissionDeniedError
        """
        now = now or datetime.now()
        hold = await self.holds.get_hold(hold_id)
        if not hold:
            raise HoldNotFound()
        if hold.user_id != party_id:
            raise PermissionDeniedError("You cannot release another party's hold.")
        seat_id, booking_id = hold.seat_id, hold.booking_id

        async def operation() -> SeatBooking | None:
            if not await self.holds.release_hold(hold_id):
                await self.db.rollback()
                raise HoldNotFound()
            cancelled = None
            if booking_id and await self.bookings.update_booking_status(
                booking_id,
                BookingStatus.CANCELLED,
                cancelled_at=now,
            ):
                cancelled = await self._require_booking(booking_id)
            await self.db.commit()
            return cancelled

        cancelled = await self._run([seat_lock_key(seat_id)], operation)
        logger.info(f"Party {party_id} released hold {hold_id} on seat {seat_id}")
        await self.change_feed.publish(
            SeatChangeEvent(
                kind=SeatChangeKind.RELEASED,
                seat_id=seat_id,
                booking_id=booking_id,
                user_id=party_id,
                status=cancelled.status.value if cancelled else None,
            )
        )
        return cancelled

    async def approve_request(
        self,
        booking_id: str,
        admin_id: str,
        fields: ApprovalFields | None = None,
        now: datetime | None = None,
    ) -> SeatBooking:
        """
        Approve a pending booking.

        The subscription end date defaults to approval time plus the
        requested duration. The hold is dropped; an approved booking
        occupies the seat on its own.

        Raises:
            BookingValidationError, BookingNotFound, AlreadyBooked,
            InvalidBookingState
        """
        if not admin_id:
            raise BookingValidationError("Admin identifier is required.")
        fields = fields or ApprovalFields()
        if fields.total_amount is not None and fields.total_amount < 0:
            raise BookingValidationError("Total amount cannot be negative.")
        now = now or datetime.now()
        if fields.subscription_end_date is not None and fields.subscription_end_date <= now:
            raise BookingValidationError("Subscription end date must be in the future.")
        booking = await self._require_booking(booking_id)

        async def operation() -> SeatBooking:
            await self.sweeper.sweep_quietly(now)

            current = await self._require_booking(booking_id)
            occupant = await self.bookings.get_approved_booking_for_seat(current.seat_id, now)
            if occupant is not None and occupant.booking_id != booking_id:
                raise AlreadyBooked()

            end_date = fields.subscription_end_date or add_months(
                now, current.duration_months
            )
            values = {
                "approved_at": now,
                "approved_by": admin_id,
                "subscription_end_date": end_date,
            }
            if fields.payment_reference is not None:
                values["payment_reference"] = fields.payment_reference
            if fields.total_amount is not None:
                values["total_amount"] = fields.total_amount
            if fields.notes is not None:
                values["notes"] = fields.notes

            changed = await self.bookings.update_booking_status(
                booking_id, BookingStatus.APPROVED, **values
            )
            if not changed:
                await self.db.rollback()
                raise await self._invalid_state(booking_id, "approved")
            await self.holds.delete_holds_for_booking(booking_id)
            await self.db.commit()
            return await self._require_booking(booking_id)

        approved = await self._run([seat_lock_key(booking.seat_id)], operation)
        logger.info(
            f"Admin {admin_id} approved booking {booking_id} on seat {approved.seat_id} "
            f"until {approved.subscription_end_date.isoformat()}"
        )
        await self._announce(SeatChangeKind.APPROVED, approved)
        return approved

    async def reject_request(
        self,
        booking_id: str,
        admin_id: str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> SeatBooking:
        """
        Reject a pending booking; the seat becomes selectable immediately.

        Raises:
            BookingValidationError, BookingNotFound, InvalidBookingState
        """
        if not admin_id:
            raise BookingValidationError("Admin identifier is required.")
        now = now or datetime.now()
        booking = await self._require_booking(booking_id)

        async def operation() -> SeatBooking:
            values = {"rejected_at": now, "rejected_by": admin_id}
            if reason:
                values["notes"] = reason
            changed = await self.bookings.update_booking_status(
                booking_id, BookingStatus.REJECTED, **values
            )
            if not changed:
                await self.db.rollback()
                raise await self._invalid_state(booking_id, "rejected")
            await self.holds.delete_holds_for_booking(booking_id)
            await self.db.commit()
            return await self._require_booking(booking_id)

        rejected = await self._run([seat_lock_key(booking.seat_id)], operation)
        logger.info(f"Admin {admin_id} rejected booking {booking_id}")
        await self._announce(SeatChangeKind.REJECTED, rejected)
        return rejected

    async def sweep_expired(self, now: datetime | None = None) -> SweepResult:
        """Run the expiry sweeper and announce any reclaimed seats."""
        result = await self._with_store_retry(lambda: self.sweeper.sweep(now))
        if result.changed:
            await self.change_feed.publish(SeatChangeEvent(kind=SeatChangeKind.SWEPT))
        return result

    def _validate_request(self, party_id: str, seat_id: str, duration_months: int) -> None:
        if not party_id or not party_id.strip():
            raise BookingValidationError("Party identifier is required.")
        if not seat_id or not seat_id.strip():
            raise BookingValidationError("Seat identifier is required.")
        if isinstance(duration_months, bool) or not isinstance(duration_months, int):
            raise BookingValidationError("Duration must be a whole number of months.")
        if not settings.MIN_DURATION_MONTHS <= duration_months <= settings.MAX_DURATION_MONTHS:
            raise BookingValidationError(
                f"Duration must be between {settings.MIN_DURATION_MONTHS} and "
                f"{settings.MAX_DURATION_MONTHS} months."
            )

    async def _require_booking(self, booking_id: str) -> SeatBooking:
        booking = await self.bookings.get_booking(booking_id)
        if not booking:
            raise BookingNotFound()
        return booking

    async def _invalid_state(self, booking_id: str, target: str) -> InvalidBookingState:
        booking = await self._require_booking(booking_id)
        return InvalidBookingState(
            f"Booking is {booking.status.value} and cannot be {target}."
        )

    async def _announce(self, kind: SeatChangeKind, booking: SeatBooking) -> None:
        await self.change_feed.publish(
            SeatChangeEvent(
                kind=kind,
                seat_id=booking.seat_id,
                booking_id=booking.booking_id,
                user_id=booking.user_id,
                status=booking.status.value,
            )
        )

    async def _run(self, lock_keys: list[str], operation: Callable[[], Awaitable[T]]) -> T:
        async def locked() -> T:
            try:
                async with multi_lock(self.redis, lock_keys, blocking=True):
                    return await operation()
            except DistributedLockError as e:
                raise TransientStoreError() from e
            except Exception:
                await self.db.rollback()
                raise

        return await self._with_store_retry(locked)

    async def _with_store_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Retry an operation on transient store/lock failures.

        Connection-level SQLAlchemy errors and lock timeouts are retried up
        to STORE_RETRY_ATTEMPTS times, then surfaced as TransientStoreError.
        Domain errors propagate immediately.
        """
        attempts = max(1, settings.STORE_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                return await operation()
            except (OperationalError, InterfaceError, TransientStoreError) as e:
                await self.db.rollback()
                if attempt >= attempts:
                    logger.error(f"Store unavailable after {attempts} attempts: {e}")
                    if isinstance(e, TransientStoreError):
                        raise
                    raise TransientStoreError() from e
                logger.warning(f"Transient store error (attempt {attempt}/{attempts}): {e}")
                await asyncio.sleep(settings.STORE_RETRY_DELAY_MS * attempt / 1000)
        raise TransientStoreError()
