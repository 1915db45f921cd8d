"""
Redis-based distributed lock.

Every operation that claims a vehicle (approval, reassignment, start,
driver assignment, merge finalisation) holds ``lock:vehicle:<id>`` while it
re-reads the fleet and re-checks its guard, so two admins cannot book the
same vehicle for the same date.  Operations that also commit a driver take
``lock:driver:<id>`` right after the vehicle lock, always in that order.
Serial numbers are issued under ``lock:trip-serial``.

Implementation uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from fleetops.errors import ResourceBusy

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Could not acquire lock: {key}")


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)

    async def __aenter__(self):
        if not await self.acquire():
            logger.warning("Lock %s is held by another operation", self.key)
            raise LockNotAcquired(self.key)
        return self

    async def __aexit__(self, *args):
        await self.release()


def vehicle_lock(
    client: aioredis.Redis, vehicle_id: int, ttl_seconds: int = 30
) -> DistributedLock:
    return DistributedLock(client, f"vehicle:{vehicle_id}", ttl_seconds)


def driver_lock(
    client: aioredis.Redis, driver_id: int, ttl_seconds: int = 30
) -> DistributedLock:
    return DistributedLock(client, f"driver:{driver_id}", ttl_seconds)


def serial_lock(client: aioredis.Redis, ttl_seconds: int = 30) -> DistributedLock:
    return DistributedLock(client, "trip-serial", ttl_seconds)


@asynccontextmanager
async def exclusive(lock: DistributedLock, resource: str):
    """Hold *lock* for the block; contention surfaces as ``ResourceBusy``."""
    try:
        async with lock:
            yield lock
    except LockNotAcquired as exc:
        if exc.key != lock.key:
            raise
        raise ResourceBusy(resource) from exc
