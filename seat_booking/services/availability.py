"""
Seat availability resolution.

``resolve_detailed`` is the only place seat status precedence is decided:

1. an approved booking that still covers ``now`` -> BOOKED
2. else a pending booking plus a hold on the seat with ``expires_at > now`` -> HELD
3. else VACANT

The resolver functions are pure: they read plain attribute-bearing rows
(ORM objects or anything shaped like them) and an explicit ``now``, and
never touch the store. ``AvailabilityService`` is the store-facing wrapper
that sweeps, takes a snapshot in one transaction and calls the resolver.
"""

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seat_booking.config import get_settings
from seat_booking.exceptions import TransientStoreError
from seat_booking.models.booking import ACTIVE_STATUSES, BookingStatus, SeatBooking
from seat_booking.models.hold import SeatHold
from seat_booking.models.seat import Seat
from seat_booking.services.sweeper import ExpirySweeper

settings = get_settings()
logger = logging.getLogger(__name__)


class SeatStatus(str, enum.Enum):
    """Display status of a seat."""

    VACANT = "vacant"
    HELD = "held"
    BOOKED = "booked"
    # Overlay for the viewer's own live hold, never computed server-side state
    SELECTED = "selected"


@dataclass(frozen=True)
class SeatAvailability:
    """Resolved status of one seat plus who/what caused it."""

    seat_id: str
    status: SeatStatus
    booking_id: str | None = None
    holder_id: str | None = None
    hold_expires_at: datetime | None = None
    booked_by: str | None = None
    subscription_end_date: datetime | None = None


def resolve_detailed(
    seats: Iterable,
    holds: Iterable,
    bookings: Iterable,
    now: datetime,
) -> dict[str, SeatAvailability]:
    """Resolve every catalog seat to a SeatAvailability record.

    Holds and bookings referencing seats outside ``seats`` are ignored.
    Bookings in terminal statuses are ignored whatever the caller passes.
    """
    live_holds: dict[str, object] = {}
    for hold in holds:
        if hold.expires_at <= now:
            continue
        current = live_holds.get(hold.seat_id)
        # Several live holds for one seat cannot come out of the store; if a
        # caller passes them anyway the latest expiry wins so output stays stable.
        if current is None or hold.expires_at > current.expires_at:
            live_holds[hold.seat_id] = hold

    approved: dict[str, object] = {}
    pending: dict[str, list] = {}
    for booking in bookings:
        if booking.status == BookingStatus.APPROVED:
            if booking.subscription_end_date is None or booking.subscription_end_date > now:
                approved.setdefault(booking.seat_id, booking)
        elif booking.status == BookingStatus.PENDING:
            pending.setdefault(booking.seat_id, []).append(booking)

    result: dict[str, SeatAvailability] = {}
    for seat in seats:
        seat_id = seat.seat_id

        booking = approved.get(seat_id)
        if booking is not None:
            result[seat_id] = SeatAvailability(
                seat_id=seat_id,
                status=SeatStatus.BOOKED,
                booking_id=booking.booking_id,
                booked_by=booking.user_id,
                subscription_end_date=booking.subscription_end_date,
            )
            continue

        hold = live_holds.get(seat_id)
        if hold is not None and seat_id in pending:
            backing = next(
                (b for b in pending[seat_id] if b.booking_id == hold.booking_id),
                pending[seat_id][0],
            )
            result[seat_id] = SeatAvailability(
                seat_id=seat_id,
                status=SeatStatus.HELD,
                booking_id=backing.booking_id,
                holder_id=hold.user_id,
                hold_expires_at=hold.expires_at,
            )
            continue

        result[seat_id] = SeatAvailability(seat_id=seat_id, status=SeatStatus.VACANT)

    return result


def resolve(
    seats: Iterable,
    holds: Iterable,
    bookings: Iterable,
    now: datetime,
) -> dict[str, SeatStatus]:
    """Map seat_id -> SeatStatus at ``now``."""
    return {
        seat_id: availability.status
        for seat_id, availability in resolve_detailed(seats, holds, bookings, now).items()
    }


def with_viewer_overlay(
    availability: Mapping[str, SeatAvailability],
    viewer_id: str | None,
) -> dict[str, SeatAvailability]:
    """Mark seats held by ``viewer_id`` as SELECTED for that viewer only."""
    if not viewer_id:
        return dict(availability)
    return {
        seat_id: (
            replace(entry, status=SeatStatus.SELECTED)
            if entry.status == SeatStatus.HELD and entry.holder_id == viewer_id
            else entry
        )
        for seat_id, entry in availability.items()
    }


@dataclass(frozen=True)
class SeatMapEntry:
    """Catalog data joined with resolved availability."""

    seat_id: str
    seat_number: str
    section: str | None
    row_number: str | None
    monthly_rate: Decimal
    availability: SeatAvailability


class AvailabilityService:
    """Store-facing availability reads."""

    def __init__(self, db: AsyncSession, sweeper: ExpirySweeper | None = None):
        self.db = db
        self.sweeper = sweeper or ExpirySweeper(db)

    async def snapshot(self) -> tuple[list[Seat], list[SeatHold], list[SeatBooking]]:
        """
        Read seats, holds and active bookings in one transaction so a single
        resolution pass never mixes pre- and post-write rows.
        """
        if self.db.in_transaction():
            await self.db.commit()

        seats = (
            await self.db.execute(
                select(Seat).order_by(Seat.section, Seat.row_number, Seat.seat_number)
            )
        ).scalars().all()
        holds = (
            await self.db.execute(
                select(SeatHold).execution_options(populate_existing=True)
            )
        ).scalars().all()
        bookings = (
            await self.db.execute(
                select(SeatBooking)
                .where(SeatBooking.status.in_(ACTIVE_STATUSES))
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        await self.db.commit()

        return list(seats), list(holds), list(bookings)

    async def _resolve(
        self,
        now: datetime,
        viewer_id: str | None,
        sweep: bool | None,
    ) -> tuple[list[Seat], dict[str, SeatAvailability]]:
        if sweep is None:
            sweep = settings.SWEEP_ON_READ
        if sweep:
            await self.sweeper.sweep_quietly(now)

        try:
            seats, holds, bookings = await self.snapshot()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise TransientStoreError() from e

        legacy = [
            b.booking_id
            for b in bookings
            if b.status == BookingStatus.APPROVED and b.subscription_end_date is None
        ]
        if legacy:
            logger.warning(
                f"Approved bookings without subscription_end_date treated as booked: {legacy}"
            )

        availability = resolve_detailed(seats, holds, bookings, now)
        return seats, with_viewer_overlay(availability, viewer_id)

    async def get_availability(
        self,
        now: datetime | None = None,
        viewer_id: str | None = None,
        sweep: bool | None = None,
    ) -> dict[str, SeatAvailability]:
        """
        Resolve availability for every seat.

        Args:
            now: Evaluation time, defaults to the current time
            viewer_id: Party whose own hold is rendered as SELECTED
            sweep: Sweep expired holds first; defaults to SWEEP_ON_READ
        """
        _, availability = await self._resolve(now or datetime.now(), viewer_id, sweep)
        return availability

    async def get_seat_map(
        self,
        now: datetime | None = None,
        viewer_id: str | None = None,
        sweep: bool | None = None,
    ) -> list[SeatMapEntry]:
        """Availability joined with catalog fields, in display order."""
        seats, availability = await self._resolve(now or datetime.now(), viewer_id, sweep)
        return [
            SeatMapEntry(
                seat_id=seat.seat_id,
                seat_number=seat.seat_number,
                section=seat.section,
                row_number=seat.row_number,
                monthly_rate=seat.monthly_rate,
                availability=availability[seat.seat_id],
            )
            for seat in seats
        ]
