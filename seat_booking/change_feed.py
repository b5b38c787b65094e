"""
Realtime seat change feed over Redis Pub/Sub.

Every committed hold or booking mutation is announced on one channel so
connected seat-map viewers refetch availability. Delivery is best effort:
availability reads (which sweep first) stay the source of truth.
"""

import asyncio
import enum
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

import redis.asyncio as redis
from pydantic import BaseModel, Field

from seat_booking.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class SeatChangeKind(str, enum.Enum):
    """What happened to a seat."""

    HELD = "held"
    RELEASED = "released"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    SWEPT = "swept"


class SeatChangeEvent(BaseModel):
    """Change notification published after a commit."""

    kind: SeatChangeKind
    seat_id: str | None = None
    booking_id: str | None = None
    user_id: str | None = None
    status: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ChangeFeed:
    """Publisher/subscriber for the seat change channel."""

    def __init__(self, redis_client: redis.Redis, channel: str | None = None):
        self.redis = redis_client
        self.channel = channel or settings.CHANGE_FEED_CHANNEL

    async def publish(self, event: SeatChangeEvent) -> bool:
        """
        Publish a change event.

        Returns:
            True if the message was handed to Redis. Failures are logged and
            never propagate to the write that triggered them.
        """
        try:
            await self.redis.publish(self.channel, event.model_dump_json())
        except Exception as e:
            logger.warning(f"Change feed publish failed for {event.kind.value}: {e}")
            return False

        logger.debug(
            f"Published {event.kind.value} seat={event.seat_id} booking={event.booking_id}"
        )
        return True

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[SeatChangeEvent]]:
        """
        Subscribe to the change channel.

        Yields:
            Queue receiving decoded SeatChangeEvent objects until the context exits.
        """
        queue: asyncio.Queue[SeatChangeEvent] = asyncio.Queue()
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info(f"Subscribed to {self.channel}")

        async def reader() -> None:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await queue.put(SeatChangeEvent.model_validate(json.loads(message["data"])))
                except ValueError as e:
                    logger.warning(f"Dropping malformed change event: {e}")

        task = asyncio.create_task(reader())
        try:
            yield queue
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
            logger.info(f"Unsubscribed from {self.channel}")
