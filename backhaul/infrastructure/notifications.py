"""
Bid decision events.

Accept / reject decisions are published to a Redis pub/sub channel for the
notification service to fan out to customers.  Publishing is fire-and-forget:
it runs after the response, and a Redis failure is logged, never raised,
because the decision itself is already committed.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def bid_event(kind: str, bid: Any) -> dict[str, Any]:
    return {
        "event": kind,
        "bid_id": str(bid.id),
        "route_id": str(bid.route_id) if bid.route_id else None,
        "customer_id": str(bid.customer_id),
        "offered_price": str(bid.offered_price),
    }


class RedisBidNotifier:
    def __init__(self, client: Optional[aioredis.Redis], channel: str):
        self.redis = client
        self.channel = channel

    async def _publish(self, events: list[dict[str, Any]]) -> None:
        if self.redis is None or not events:
            return
        try:
            for event in events:
                await self.redis.publish(self.channel, json.dumps(event))
        except RedisError:
            logger.warning(
                "Could not publish %d bid event(s) to %s",
                len(events),
                self.channel,
                exc_info=True,
            )

    async def bid_accepted(self, bid: Any) -> None:
        await self._publish([bid_event("BID_ACCEPTED", bid)])

    async def bids_rejected(self, bids: Sequence[Any]) -> None:
        await self._publish([bid_event("BID_REJECTED", b) for b in bids])
