"""End-to-end seat lifecycle scenarios on seat A5."""

import asyncio

import pytest

from conftest import T0, days, minutes
from seat_booking.exceptions import AlreadyHeldByOther, PartyHasActiveBooking
from seat_booking.models.booking import BookingStatus
from seat_booking.services.availability import AvailabilityService, SeatStatus
from seat_booking.services.booking_protocol import ApprovalFields, BookingProtocol
from seat_booking.services.booking_service import BookingService


async def seat_status(db, seat_id, now):
    availability = await AvailabilityService(db).get_availability(now=now, sweep=False)
    return availability[seat_id].status


class TestSeatLifecycle:
    @pytest.fixture
    def protocol(self, db, fake_redis):
        return BookingProtocol(db, fake_redis)

    async def test_request_holds_seat(self, protocol, db, seats):
        a5 = seats["A5"].seat_id

        result = await protocol.request_seat("P1", a5, 3, now=T0)

        assert result.booking.status == BookingStatus.PENDING
        assert result.booking.seat_id == a5
        assert result.hold.seat_id == a5
        assert result.hold.expires_at == minutes(30)
        assert await seat_status(db, a5, minutes(1)) == SeatStatus.HELD

    async def test_second_party_conflicts_without_side_effects(self, protocol, db, seats):
        a5 = seats["A5"].seat_id
        first = await protocol.request_seat("P1", a5, 3, now=T0)
        bookings_before = await protocol.bookings.list_bookings()
        holds_before = await protocol.holds.list_live_holds(minutes(2))

        with pytest.raises(AlreadyHeldByOther):
            await protocol.request_seat("P2", a5, 1, now=minutes(2))

        bookings_after = await protocol.bookings.list_bookings()
        holds_after = await protocol.holds.list_live_holds(minutes(2))
        assert [b.booking_id for b in bookings_after] == [b.booking_id for b in bookings_before]
        assert [h.hold_id for h in holds_after] == [h.hold_id for h in holds_before]
        assert holds_after[0].user_id == "P1"
        assert (await protocol.bookings.get_booking(first.booking.booking_id)).status == (
            BookingStatus.PENDING
        )

    async def test_approval_books_seat_until_subscription_end(self, protocol, db, seats):
        a5 = seats["A5"].seat_id
        request = await protocol.request_seat("P1", a5, 3, now=T0)

        approved = await protocol.approve_request(
            request.booking.booking_id,
            "admin",
            ApprovalFields(subscription_end_date=days(90)),
            now=minutes(5),
        )

        assert approved.status == BookingStatus.APPROVED
        assert await seat_status(db, a5, minutes(6)) == SeatStatus.BOOKED
        assert await seat_status(db, a5, days(91)) == SeatStatus.VACANT

    async def test_unconfirmed_hold_is_swept(self, protocol, db, seats):
        a5 = seats["A5"].seat_id
        request = await protocol.request_seat("P1", a5, 3, now=T0)

        await protocol.sweep_expired(minutes(31))

        swept = await protocol.bookings.get_booking(request.booking.booking_id)
        assert swept.status != BookingStatus.PENDING
        assert await protocol.holds.get_hold(request.hold.hold_id) is None
        assert await seat_status(db, a5, minutes(31)) == SeatStatus.VACANT

        second = await protocol.request_seat("P2", a5, 1, now=minutes(32))
        assert second.hold.user_id == "P2"


class TestConcurrentRequests:
    async def test_two_parties_race_for_one_seat(self, session_maker, seats, fake_redis):
        a5 = seats["A5"].seat_id

        async def attempt(party_id):
            async with session_maker() as session:
                try:
                    await BookingProtocol(session, fake_redis).request_seat(
                        party_id, a5, 1, now=minutes(1)
                    )
                    return party_id
                except AlreadyHeldByOther:
                    return None

        outcomes = await asyncio.gather(attempt("P1"), attempt("P2"))

        winners = [o for o in outcomes if o]
        assert len(winners) == 1
        async with session_maker() as session:
            availability = await AvailabilityService(session).get_availability(
                now=minutes(2), sweep=False, viewer_id=winners[0]
            )
            pending = await BookingService(session).list_pending_bookings()
        assert availability[a5].status == SeatStatus.SELECTED
        assert [b.user_id for b in pending] == winners

    async def test_one_party_races_for_two_seats(self, session_maker, seats, fake_redis):
        async def attempt(seat_number):
            async with session_maker() as session:
                try:
                    await BookingProtocol(session, fake_redis).request_seat(
                        "P1", seats[seat_number].seat_id, 1, now=minutes(1)
                    )
                    return seat_number
                except PartyHasActiveBooking:
                    return None

        outcomes = await asyncio.gather(attempt("A5"), attempt("A6"))

        assert len([o for o in outcomes if o]) == 1
        async with session_maker() as session:
            active = await BookingService(session).list_bookings(user_id="P1")
        assert len(active) == 1
