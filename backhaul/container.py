"""
Process-wide collaborators.

One shared ``httpx.AsyncClient`` and one Redis pool per process; services
themselves are cheap and built per request around the request's session
(see ``backhaul.api.dependencies``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backhaul.config import Settings
from backhaul.domain.ports import BidHistoryReader, BidNotifier, ProfileReader
from backhaul.domain.pricing import PriceBandCalculator
from backhaul.infrastructure.clients import HttpProfileReader, HttpReverseGeocoder
from backhaul.infrastructure.database import async_session_factory
from backhaul.infrastructure.notifications import RedisBidNotifier
from backhaul.infrastructure.redis_client import create_redis
from backhaul.infrastructure.repositories import SqlBidHistoryReader
from backhaul.services.geometry import GeometryEngine

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    geometry: GeometryEngine
    history: BidHistoryReader
    notifier: BidNotifier
    profiles: Optional[ProfileReader] = None
    redis: Optional[aioredis.Redis] = None
    http: Optional[httpx.AsyncClient] = None

    def price_calculator(self) -> PriceBandCalculator:
        s = self.settings
        return PriceBandCalculator(
            base_fare=s.base_fare,
            rate_per_km=s.rate_per_km,
            band_pct=s.price_band_pct,
            min_samples=s.min_history_samples,
            window=s.history_window,
        )

    async def aclose(self) -> None:
        if self.http is not None:
            await self.http.aclose()
        if self.redis is not None:
            await self.redis.aclose()


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
) -> Container:
    http = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.geocoder_timeout_seconds),
        headers={"User-Agent": "backhaul-api/1.0"},
    )
    redis = create_redis(settings.redis_url)
    if redis is None:
        logger.warning("REDIS_URL is empty; route locks and bid events are disabled")

    return Container(
        settings=settings,
        geometry=GeometryEngine(
            HttpReverseGeocoder(http, settings.geocoder_url),
            timeout_seconds=settings.geocoder_timeout_seconds,
        ),
        history=SqlBidHistoryReader(
            session_factory,
            distance_tolerance=settings.history_distance_tolerance,
            limit=settings.history_window,
        ),
        notifier=RedisBidNotifier(redis, settings.bid_events_channel),
        profiles=HttpProfileReader(http, settings.profile_service_url),
        redis=redis,
        http=http,
    )
