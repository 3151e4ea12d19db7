"""
Redis-based distributed lock.

Guards the per-route critical sections of bid negotiation (placement,
acceptance, rejection) across API processes.  Row locks in PostgreSQL remain
the source of truth; the Redis lock keeps concurrent decisions on one route
from queueing on those row locks for the length of a request.

Implementation uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import asyncio
import time
import uuid

import redis.asyncio as aioredis


_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class LockNotAcquired(RuntimeError):
    """Raised by the context manager when the lock stays held by others."""


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 10,
        wait_seconds: float = 0.0,
        retry_interval: float = 0.05,
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.wait = wait_seconds
        self.retry_interval = retry_interval
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire, retrying until ``wait_seconds`` elapse."""
        deadline = time.monotonic() + self.wait
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(self.retry_interval)

    async def release(self) -> None:
        """Delete the key only while it still carries our token."""
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)

    async def __aenter__(self):
        acquired = await self.acquire()
        if not acquired:
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.release()


def route_lock(
    client: aioredis.Redis, route_id, ttl_seconds: int, wait_seconds: float
) -> DistributedLock:
    return DistributedLock(
        client, f"route:{route_id}", ttl_seconds=ttl_seconds, wait_seconds=wait_seconds
    )
