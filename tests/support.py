"""
In-process fakes for the external collaborators and small builders shared
by the test modules.  Holds no database state; engines and sessions live in
``conftest``.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backhaul.config import Settings
from backhaul.domain.entities import DriverProfile, VehicleInfo
from backhaul.domain.errors import DependencyUnavailable
from backhaul.domain.pricing import PriceBandCalculator
from backhaul.services.geometry import GeometryEngine
from backhaul.services.pricing import PriceSuggestionService
from backhaul.services.routes import RouteService


# ── Fakes ─────────────────────────────────────────────────────────────


class FakeGeocoder:
    def __init__(self, names: Optional[dict] = None, default: str = "Kadawatha"):
        self.names = names or {}
        self.default = default
        self.calls: list[tuple[float, float]] = []

    async def place_name(self, lat, lng):
        self.calls.append((lat, lng))
        return self.names.get((round(lat, 2), round(lng, 2)), self.default)


class FailingGeocoder:
    async def place_name(self, lat, lng):
        raise DependencyUnavailable("reverse geocoder", "connection refused")


class SlowGeocoder:
    async def place_name(self, lat, lng):
        await asyncio.sleep(5)
        return "too late"


class FakeProfiles:
    def __init__(self, profile=None, vehicle=None, fail: bool = False):
        self.profile = profile
        self.vehicle = vehicle
        self.fail = fail

    async def get_profile(self, user_id):
        if self.fail:
            raise DependencyUnavailable("profile service", "503")
        return self.profile

    async def get_vehicle(self, driver_id):
        if self.fail:
            raise DependencyUnavailable("profile service", "503")
        return self.vehicle


class FakeHistory:
    def __init__(self, prices=None, fail: bool = False, delay: float = 0.0):
        self.prices = list(prices or [])
        self.fail = fail
        self.delay = delay
        self.calls: list[tuple[str, str, float]] = []

    async def historical_prices(self, origin_region, destination_region, distance_km):
        self.calls.append((origin_region, destination_region, distance_km))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DependencyUnavailable("bid history", "database down")
        return self.prices


class FakeNotifier:
    def __init__(self):
        self.accepted = []
        self.rejected = []

    async def bid_accepted(self, bid):
        self.accepted.append(bid.id)

    async def bids_rejected(self, bids):
        self.rejected.extend(b.id for b in bids)


SAMPLE_PROFILE = DriverProfile(
    name="Nimal Perera", rating=4.7, review_count=38, photo_url=None
)
SAMPLE_VEHICLE = VehicleInfo(
    make="Isuzu", model="Elf", plate="WP LK-4521", max_weight_kg=3500, max_volume_m3=18
)


# ── Builders ──────────────────────────────────────────────────────────


def route_fields(**overrides) -> dict:
    """Kandy -> Colombo, departing tomorrow."""
    fields = {
        "driver_id": uuid.uuid4(),
        "origin_lat": 7.2906,
        "origin_lng": 80.6337,
        "destination_lat": 6.9271,
        "destination_lng": 79.8612,
        "origin_address": "Kandy",
        "destination_address": "Colombo",
        "departure_time": datetime.now(timezone.utc) + timedelta(days=1),
    }
    fields.update(overrides)
    return fields


def make_settings(**overrides) -> Settings:
    values = {"redis_url": "", "rate_limit_enabled": False}
    values.update(overrides)
    return Settings(**values)


def make_route_service(
    session: AsyncSession,
    history=None,
    profiles=None,
    geocoder=None,
    settings: Optional[Settings] = None,
) -> RouteService:
    settings = settings or make_settings()
    pricing = PriceSuggestionService(
        session,
        history or FakeHistory(),
        PriceBandCalculator(
            base_fare=settings.base_fare,
            rate_per_km=settings.rate_per_km,
            band_pct=settings.price_band_pct,
            min_samples=settings.min_history_samples,
            window=settings.history_window,
        ),
        timeout_seconds=settings.history_timeout_seconds,
    )
    return RouteService(
        session,
        GeometryEngine(geocoder, timeout_seconds=0.2),
        pricing,
        settings,
        profiles=profiles,
    )


