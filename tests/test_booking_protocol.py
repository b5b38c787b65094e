"""Booking protocol tests: request, cancel, release, approve, reject."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from conftest import T0, days, minutes
from seat_booking.change_feed import SeatChangeKind
from seat_booking.config import get_settings
from seat_booking.distributed_lock import seat_lock_key
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
from seat_booking.models.booking import BookingStatus
from seat_booking.services.availability import AvailabilityService, SeatStatus
from seat_booking.services.booking_protocol import ApprovalFields, BookingProtocol
from seat_booking.services.booking_service import add_months


@pytest.fixture
def protocol(db, fake_redis):
    return BookingProtocol(db, fake_redis)


async def status_of(db, seat_id, now):
    availability = await AvailabilityService(db).get_availability(now=now, sweep=False)
    return availability[seat_id].status


class TestRequestSeat:
    @pytest.mark.parametrize(
        "party_id, seat_id, duration",
        [
            ("", "seat", 3),
            ("   ", "seat", 3),
            ("p1", "", 3),
            ("p1", "seat", 0),
            ("p1", "seat", 13),
            ("p1", "seat", True),
            ("p1", "seat", 2.5),
        ],
    )
    async def test_malformed_request_is_rejected(self, protocol, party_id, seat_id, duration):
        with pytest.raises(BookingValidationError):
            await protocol.request_seat(party_id, seat_id, duration, now=T0)

    async def test_unknown_seat(self, protocol, seats):
        with pytest.raises(SeatNotFound):
            await protocol.request_seat("p1", "01J000000000000000000000XX", 3, now=T0)

    async def test_request_creates_pending_booking_and_hold(self, protocol, db, seats, fake_redis):
        seat_id = seats["A5"].seat_id

        result = await protocol.request_seat("p1", seat_id, 3, now=T0, notes="near window")

        assert result.booking.status == BookingStatus.PENDING
        assert result.booking.seat_id == seat_id
        assert result.booking.total_amount == Decimal("300.00")
        assert result.booking.notes == "near window"
        assert result.hold.booking_id == result.booking.booking_id
        assert result.hold.expires_at == T0 + timedelta(minutes=30)
        assert await status_of(db, seat_id, minutes(1)) == SeatStatus.HELD

        events = fake_redis.events()
        assert [e.kind for e in events] == [SeatChangeKind.HELD]
        assert events[0].seat_id == seat_id
        assert events[0].user_id == "p1"
        # Locks are released afterwards
        assert fake_redis.store == {}

    async def test_party_may_hold_only_one_seat(self, protocol, seats):
        await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)

        with pytest.raises(PartyHasActiveBooking) as exc_info:
            await protocol.request_seat("p1", seats["A6"].seat_id, 1, now=minutes(1))

        assert exc_info.value.message == "You already have a pending or active booking."

    async def test_seat_held_by_other_party(self, protocol, db, seats):
        seat_id = seats["A5"].seat_id
        await protocol.request_seat("p1", seat_id, 3, now=T0)

        with pytest.raises(AlreadyHeldByOther) as exc_info:
            await protocol.request_seat("p2", seat_id, 1, now=minutes(2))

        assert exc_info.value.message == "Seat is no longer available, please choose another seat."
        assert await protocol.bookings.list_bookings(user_id="p2") == []
        assert await protocol.holds.get_user_holds("p2") == []

    async def test_booked_seat_cannot_be_requested(self, protocol, seats):
        seat_id = seats["A5"].seat_id
        result = await protocol.request_seat("p1", seat_id, 3, now=T0)
        await protocol.approve_request(result.booking.booking_id, "admin", now=minutes(5))

        with pytest.raises(AlreadyBooked):
            await protocol.request_seat("p2", seat_id, 1, now=minutes(10))

    async def test_lapsed_hold_is_reclaimed_on_request(self, protocol, seats):
        seat_id = seats["A5"].seat_id
        first = await protocol.request_seat("p1", seat_id, 3, now=T0)

        second = await protocol.request_seat("p2", seat_id, 1, now=minutes(31))

        assert second.hold.user_id == "p2"
        expired = await protocol.bookings.get_booking(first.booking.booking_id)
        assert expired.status == BookingStatus.EXPIRED

    async def test_store_failure_is_retried_then_surfaced(self, protocol, seats):
        settings = get_settings()
        protocol.seats.get_seat = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("server has gone away"))
        )

        with pytest.raises(TransientStoreError):
            await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)

        assert protocol.seats.get_seat.await_count == settings.STORE_RETRY_ATTEMPTS

    async def test_busy_lock_surfaces_as_transient(self, protocol, seats, fake_redis, monkeypatch):
        monkeypatch.setattr(get_settings(), "LOCK_MAX_RETRIES", 2)
        seat_id = seats["A5"].seat_id
        fake_redis.store[f"lock:{seat_lock_key(seat_id)}"] = "someone-else"

        with pytest.raises(TransientStoreError):
            await protocol.request_seat("p1", seat_id, 3, now=T0)

        assert await protocol.bookings.list_bookings(user_id="p1") == []


class TestCancelAndRelease:
    async def test_cancel_own_request(self, protocol, db, seats, fake_redis):
        seat_id = seats["A5"].seat_id
        result = await protocol.request_seat("p1", seat_id, 3, now=T0)

        cancelled = await protocol.cancel_request("p1", result.booking.booking_id, now=minutes(3))

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancelled_at == minutes(3)
        assert await protocol.holds.get_holds_for_booking(result.booking.booking_id) == []
        assert await status_of(db, seat_id, minutes(4)) == SeatStatus.VACANT
        assert fake_redis.events()[-1].kind == SeatChangeKind.CANCELLED

    async def test_cancel_other_party_request(self, protocol, seats):
        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)

        with pytest.raises(PermissionDeniedError):
            await protocol.cancel_request("p2", result.booking.booking_id, now=minutes(1))

    async def test_cancel_twice(self, protocol, seats):
        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)
        await protocol.cancel_request("p1", result.booking.booking_id, now=minutes(1))

        with pytest.raises(InvalidBookingState) as exc_info:
            await protocol.cancel_request("p1", result.booking.booking_id, now=minutes(2))

        assert exc_info.value.message == "Booking is cancelled and cannot be cancelled."

    async def test_cancel_unknown_booking(self, protocol):
        with pytest.raises(BookingNotFound):
            await protocol.cancel_request("p1", "missing", now=T0)

    async def test_release_own_hold_cancels_booking(self, protocol, db, seats, fake_redis):
        seat_id = seats["A5"].seat_id
        result = await protocol.request_seat("p1", seat_id, 3, now=T0)

        cancelled = await protocol.release_hold("p1", result.hold.hold_id, now=minutes(2))

        assert cancelled.booking_id == result.booking.booking_id
        assert cancelled.status == BookingStatus.CANCELLED
        assert await protocol.holds.get_hold(result.hold.hold_id) is None
        assert await status_of(db, seat_id, minutes(3)) == SeatStatus.VACANT
        assert fake_redis.events()[-1].kind == SeatChangeKind.RELEASED

        # Party is free to pick another seat
        again = await protocol.request_seat("p1", seats["A6"].seat_id, 1, now=minutes(4))
        assert again.booking.status == BookingStatus.PENDING

    async def test_release_other_party_hold(self, protocol, seats):
        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)

        with pytest.raises(PermissionDeniedError):
            await protocol.release_hold("p2", result.hold.hold_id, now=minutes(1))

        assert await protocol.holds.get_hold(result.hold.hold_id) is not None

    async def test_release_unknown_hold(self, protocol):
        with pytest.raises(HoldNotFound):
            await protocol.release_hold("p1", "missing", now=T0)


class TestAdminDecisions:
    async def test_approve_defaults_end_date_to_duration(self, protocol, db, seats, fake_redis):
        seat_id = seats["A5"].seat_id
        result = await protocol.request_seat("p1", seat_id, 3, now=T0)

        approved = await protocol.approve_request(
            result.booking.booking_id, "admin-1", now=minutes(5)
        )

        assert approved.status == BookingStatus.APPROVED
        assert approved.approved_by == "admin-1"
        assert approved.approved_at == minutes(5)
        assert approved.subscription_end_date == add_months(minutes(5), 3)
        assert await protocol.holds.get_holds_for_booking(approved.booking_id) == []
        assert await status_of(db, seat_id, minutes(6)) == SeatStatus.BOOKED
        assert fake_redis.events()[-1].kind == SeatChangeKind.APPROVED

    async def test_approve_with_admin_fields(self, protocol, seats):
        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)

        approved = await protocol.approve_request(
            result.booking.booking_id,
            "admin-1",
            ApprovalFields(
                subscription_end_date=days(90),
                payment_reference="PAY-42",
                total_amount=Decimal("250.00"),
                notes="paid in cash",
            ),
            now=minutes(5),
        )

        assert approved.subscription_end_date == days(90)
        assert approved.payment_reference == "PAY-42"
        assert approved.total_amount == Decimal("250.00")
        assert approved.notes == "paid in cash"

    @pytest.mark.parametrize(
        "admin_id, fields",
        [
            ("", ApprovalFields()),
            ("admin", ApprovalFields(total_amount=Decimal("-1"))),
            ("admin", ApprovalFields(subscription_end_date=T0)),
        ],
    )
    async def test_approve_rejects_bad_input(self, protocol, seats, admin_id, fields):
        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)

        with pytest.raises(BookingValidationError):
            await protocol.approve_request(
                result.booking.booking_id, admin_id, fields, now=minutes(5)
            )

    async def test_approve_twice(self, protocol, seats):
        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)
        await protocol.approve_request(result.booking.booking_id, "admin", now=minutes(5))

        with pytest.raises(InvalidBookingState):
            await protocol.approve_request(result.booking.booking_id, "admin", now=minutes(6))

    async def test_approve_after_hold_lapsed(self, protocol, db, seats):
        """Approval sweeps first, so a lapsed request cannot be approved."""
        seat_id = seats["A5"].seat_id
        result = await protocol.request_seat("p1", seat_id, 3, now=T0)

        with pytest.raises(InvalidBookingState) as exc_info:
            await protocol.approve_request(result.booking.booking_id, "admin", now=minutes(45))

        assert exc_info.value.message == "Booking is expired and cannot be approved."
        assert await status_of(db, seat_id, minutes(46)) == SeatStatus.VACANT

    async def test_approve_unknown_booking(self, protocol):
        with pytest.raises(BookingNotFound):
            await protocol.approve_request("missing", "admin", now=T0)

    async def test_reject_frees_seat_and_party(self, protocol, db, seats, fake_redis):
        seat_id = seats["A5"].seat_id
        result = await protocol.request_seat("p1", seat_id, 3, now=T0)

        rejected = await protocol.reject_request(
            result.booking.booking_id, "admin-1", reason="seat reserved for staff", now=minutes(5)
        )

        assert rejected.status == BookingStatus.REJECTED
        assert rejected.rejected_by == "admin-1"
        assert rejected.rejected_at == minutes(5)
        assert rejected.notes == "seat reserved for staff"
        assert await status_of(db, seat_id, minutes(6)) == SeatStatus.VACANT
        assert fake_redis.events()[-1].kind == SeatChangeKind.REJECTED

        again = await protocol.request_seat("p1", seat_id, 1, now=minutes(7))
        assert again.booking.status == BookingStatus.PENDING

    async def test_reject_after_approval(self, protocol, seats):
        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)
        await protocol.approve_request(result.booking.booking_id, "admin", now=minutes(5))

        with pytest.raises(InvalidBookingState):
            await protocol.reject_request(result.booking.booking_id, "admin", now=minutes(6))

    async def test_feed_failure_does_not_fail_the_write(self, protocol, seats, fake_redis):
        fake_redis.fail_publish = True

        result = await protocol.request_seat("p1", seats["A5"].seat_id, 3, now=T0)

        assert result.booking.status == BookingStatus.PENDING
        assert fake_redis.published == []
