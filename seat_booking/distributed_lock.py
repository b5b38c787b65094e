"""Redis-based distributed locks for seat and party critical sections."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as redis

from seat_booking.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class DistributedLockError(Exception):
    """Exception raised when lock acquisition fails."""

    pass


def seat_lock_key(seat_id: str) -> str:
    return f"seat:{seat_id}"


def party_lock_key(party_id: str) -> str:
    return f"party:{party_id}"


class DistributedLock:
    """
    Redis lock taken with SET NX EX and released with a compare-and-delete
    Lua script, so a lock whose TTL lapsed is never released by its old owner.

    The lock only narrows contention. Seat and party exclusivity is decided
    by the database unique constraints.
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key: str,
        timeout_seconds: int | None = None,
        retry_delay_ms: int | None = None,
        max_retries: int | None = None,
    ):
        self.redis = redis_client
        self.key = f"lock:{key}"
        self.timeout_seconds = timeout_seconds or settings.LOCK_TIMEOUT_SECONDS
        self.retry_delay_ms = retry_delay_ms or settings.LOCK_RETRY_DELAY_MS
        self.max_retries = (
            max_retries if max_retries is not None else settings.LOCK_MAX_RETRIES
        )
        self.token: str | None = None
        self._release_script = self.redis.register_script(self.RELEASE_SCRIPT)

    async def acquire(self, blocking: bool = True) -> bool:
        """
        Acquire the lock.

        Args:
            blocking: If True, retry until acquired or max retries reached.
                     If False, try once and return immediately.

        Returns:
            True if lock was acquired, False otherwise.
        """
        self.token = str(uuid.uuid4())
        retries = 0

        while True:
            acquired = await self.redis.set(
                self.key,
                self.token,
                nx=True,
                ex=self.timeout_seconds,
            )

            if acquired:
                return True

            if not blocking or retries >= self.max_retries:
                logger.warning(f"Gave up on lock {self.key} after {retries} retries")
                self.token = None
                return False

            retries += 1
            await asyncio.sleep(self.retry_delay_ms / 1000)

    async def release(self) -> bool:
        """Release the lock. False if we no longer own it."""
        if self.token is None:
            return False

        result = await self._release_script(keys=[self.key], args=[self.token])
        self.token = None
        return bool(result)


class MultiLock:
    """Acquire several locks in sorted key order to avoid deadlocks."""

    def __init__(
        self,
        redis_client: redis.Redis,
        keys: list[str],
        timeout_seconds: int | None = None,
    ):
        self.redis = redis_client
        self.timeout_seconds = timeout_seconds or settings.LOCK_TIMEOUT_SECONDS
        self.sorted_keys = sorted(set(keys))
        self.locks: list[DistributedLock] = []

    async def acquire(self, blocking: bool = True) -> bool:
        """Acquire all locks; on any failure release the ones already held."""
        for key in self.sorted_keys:
            lock = DistributedLock(self.redis, key, self.timeout_seconds)
            if await lock.acquire(blocking=blocking):
                self.locks.append(lock)
            else:
                await self.release()
                return False
        return True

    async def release(self) -> None:
        """Release all locks in reverse order."""
        for lock in reversed(self.locks):
            await lock.release()
        self.locks.clear()


@asynccontextmanager
async def multi_lock(
    redis_client: redis.Redis,
    keys: list[str],
    timeout_seconds: int | None = None,
    blocking: bool = True,
) -> AsyncGenerator[MultiLock, None]:
    """
    Context manager for acquiring multiple locks.

    Usage:
        async with multi_lock(redis, [seat_lock_key(s), party_lock_key(p)]):
            ...

    Raises:
        DistributedLockError: If locks cannot be acquired
    """
    mlock = MultiLock(redis_client, keys, timeout_seconds)
    acquired = await mlock.acquire(blocking=blocking)

    if not acquired:
        raise DistributedLockError(f"Failed to acquire locks for keys: {keys}")

    try:
        yield mlock
    finally:
        await mlock.release()
