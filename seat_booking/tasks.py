"""Background tasks for the seat booking service."""

import asyncio
import logging

from seat_booking.config import get_settings
from seat_booking.database import get_db_context
from seat_booking.redis_client import get_redis
from seat_booking.services.booking_protocol import BookingProtocol

settings = get_settings()
logger = logging.getLogger(__name__)


async def sweep_expired_holds_once() -> None:
    """
    Run one expiry sweep:
    1. Mark pending bookings whose hold lapsed as EXPIRED
    2. Delete lapsed holds so their seats resolve vacant
    3. Mark approved bookings past their subscription end as EXPIRED
    """
    async with get_db_context() as db:
        redis_client = await get_redis()
        protocol = BookingProtocol(db, redis_client)
        result = await protocol.sweep_expired()

        if result.changed:
            logger.info(
                f"Swept {result.released_holds} holds, "
                f"{result.cancelled_bookings} pending bookings, "
                f"{result.expired_subscriptions} subscriptions"
            )


async def sweep_expired_holds(interval_seconds: float | None = None) -> None:
    """Background task that sweeps expired holds periodically."""
    interval = interval_seconds or settings.SWEEP_INTERVAL_SECONDS
    logger.info(f"Starting expiry sweep task (every {interval}s)")

    while True:
        try:
            await sweep_expired_holds_once()
        except Exception as e:
            logger.error(f"Error in expiry sweep task: {e}")

        await asyncio.sleep(interval)


class BackgroundTaskManager:
    """Manager for background tasks."""

    def __init__(self):
        self.tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start all background tasks."""
        self.tasks.append(
            asyncio.create_task(sweep_expired_holds())
        )
        logger.info("Background tasks started")

    async def stop(self) -> None:
        """Stop all background tasks."""
        for task in self.tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.tasks.clear()
        logger.info("Background tasks stopped")


# Global instance
background_tasks = BackgroundTaskManager()
