"""Redis async client factory."""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis


def create_redis(url: str) -> Optional[aioredis.Redis]:
    """Return a pooled client for *url*, or ``None`` when Redis is disabled."""
    if not url:
        return None
    pool = aioredis.ConnectionPool.from_url(url, decode_responses=True)
    return aioredis.Redis(connection_pool=pool)
