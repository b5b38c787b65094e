import asyncio
import os
from datetime import datetime, timedelta
from decimal import Decimal

# Settings and the module-level engine are built at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DB_CREATE_TABLES"] = "false"
os.environ["STORE_RETRY_DELAY_MS"] = "1"
os.environ["LOCK_RETRY_DELAY_MS"] = "10"

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from seat_booking.change_feed import SeatChangeEvent  # noqa: E402
from seat_booking.models import Base  # noqa: E402
from seat_booking.schemas.seat import SeatCreate  # noqa: E402
from seat_booking.services.seat_service import SeatService  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, 0)


def minutes(n: float) -> datetime:
    return T0 + timedelta(minutes=n)


def days(n: float) -> datetime:
    return T0 + timedelta(days=n)


class FakeScript:
    """Compare-and-delete, the only script the lock registers."""

    def __init__(self, redis_client: "FakeRedis"):
        self.redis = redis_client

    async def __call__(self, keys=None, args=None):
        key, token = keys[0], args[0]
        if self.redis.store.get(key) == token:
            del self.redis.store[key]
            return 1
        return 0


class FakePubSub:
    def __init__(self, redis_client: "FakeRedis"):
        self.redis = redis_client
        self.channels: set[str] = set()
        self.messages: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels):
        self.channels.update(channels)
        if self not in self.redis.subscribers:
            self.redis.subscribers.append(self)

    async def unsubscribe(self, *channels):
        self.channels.difference_update(channels)

    async def listen(self):
        while True:
            yield await self.messages.get()

    async def aclose(self):
        self.closed = True
        if self in self.redis.subscribers:
            self.redis.subscribers.remove(self)


class FakeRedis:
    """In-memory stand-in for the few Redis commands the service uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.published: list[tuple[str, str]] = []
        self.subscribers: list[FakePubSub] = []
        self.fail_publish = False

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def register_script(self, script):
        return FakeScript(self)

    async def publish(self, channel, message):
        if self.fail_publish:
            raise ConnectionError("redis unavailable")
        self.published.append((channel, message))
        receivers = [s for s in self.subscribers if channel in s.channels]
        for subscriber in receivers:
            subscriber.messages.put_nowait(
                {"type": "message", "channel": channel, "data": message}
            )
        return len(receivers)

    def pubsub(self):
        return FakePubSub(self)

    async def ping(self):
        return True

    def events(self) -> list[SeatChangeEvent]:
        return [SeatChangeEvent.model_validate_json(m) for _, m in self.published]


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'seats.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
async def seats(session_maker):
    """Seats A5, A6 and B1 keyed by seat number."""
    async with session_maker() as session:
        created = await SeatService(session).create_seats_bulk(
            [
                SeatCreate(seat_number="A5", section="A", row_number="1", monthly_rate=Decimal("100.00")),
                SeatCreate(seat_number="A6", section="A", row_number="1", monthly_rate=Decimal("100.00")),
                SeatCreate(seat_number="B1", section="B", row_number="1", monthly_rate=Decimal("80.00")),
            ]
        )
    return {seat.seat_number: seat for seat in created}
