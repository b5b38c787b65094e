"""Background sweep task tests."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import pytest

from seat_booking import tasks
from seat_booking.change_feed import SeatChangeKind
from seat_booking.models.booking import BookingStatus
from seat_booking.services.booking_protocol import BookingProtocol


@pytest.fixture
def patched_backends(monkeypatch, session_maker, fake_redis):
    @asynccontextmanager
    async def db_context():
        async with session_maker() as session:
            yield session

    async def redis_client():
        return fake_redis

    monkeypatch.setattr(tasks, "get_db_context", db_context)
    monkeypatch.setattr(tasks, "get_redis", redis_client)


class TestSweepTask:
    async def test_sweep_once_reclaims_lapsed_hold(
        self, patched_backends, session_maker, seats, fake_redis
    ):
        long_ago = datetime.now() - timedelta(hours=1)
        async with session_maker() as session:
            request = await BookingProtocol(session, fake_redis).request_seat(
                "p1", seats["A5"].seat_id, 3, now=long_ago
            )

        await tasks.sweep_expired_holds_once()

        async with session_maker() as session:
            booking = await BookingProtocol(session, fake_redis).bookings.get_booking(
                request.booking.booking_id
            )
        assert booking.status == BookingStatus.EXPIRED
        assert fake_redis.events()[-1].kind == SeatChangeKind.SWEPT

    async def test_loop_survives_errors(self, monkeypatch, caplog):
        calls = 0

        async def failing_sweep():
            nonlocal calls
            calls += 1
            raise RuntimeError("database offline")

        monkeypatch.setattr(tasks, "sweep_expired_holds_once", failing_sweep)

        task = asyncio.create_task(tasks.sweep_expired_holds(interval_seconds=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert calls >= 2
        assert "Error in expiry sweep task" in caplog.text

    async def test_manager_start_and_stop(self, monkeypatch):
        started = asyncio.Event()

        async def idle_sweep(interval_seconds=None):
            started.set()
            await asyncio.Event().wait()

        monkeypatch.setattr(tasks, "sweep_expired_holds", idle_sweep)
        manager = tasks.BackgroundTaskManager()

        await manager.start()
        await asyncio.wait_for(started.wait(), timeout=1)
        assert len(manager.tasks) == 1

        await manager.stop()
        assert manager.tasks == []
