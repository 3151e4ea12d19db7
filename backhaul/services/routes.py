"""
Route Lifecycle Manager
=======================

Creation, detail assembly, partial update and deletion of driver routes.

* Geometry-derived columns (``distance_km``, region cells) are recomputed
  whenever an endpoint or the polyline changes, so price history lookups
  and the details view never read stale geometry.
* The details view pulls driver and vehicle metadata from the profile
  service under a timeout; missing or unavailable metadata is ``None``,
  never an error.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backhaul.config import Settings
from backhaul.domain.entities import (
    BidStatistics,
    DriverProfile,
    RouteSegment,
    VehicleInfo,
    transition,
)
from backhaul.domain.enums import RouteStatus
from backhaul.domain.errors import (
    AccessDenied,
    ConflictError,
    DependencyUnavailable,
    RouteNotFound,
    ValidationError,
)
from backhaul.domain.geometry import decode_polyline, encode_line, split_into_segments
from backhaul.domain.ports import ProfileReader
from backhaul.domain.pricing import to_money
from backhaul.domain.regions import region_cell
from backhaul.infrastructure.models import BidModel, RouteModel, utcnow
from backhaul.infrastructure.repositories import BidRepository, RouteRepository
from backhaul.services.geometry import GeometryEngine
from backhaul.services.pricing import PriceSuggestionService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "driver_id",
    "origin_lat",
    "origin_lng",
    "destination_lat",
    "destination_lng",
    "departure_time",
)
COORDINATE_FIELDS = ("origin_lat", "origin_lng", "destination_lat", "destination_lng")
PRICE_FIELDS = ("suggested_price_min", "suggested_price_max")
GEOMETRY_FIELDS = frozenset(COORDINATE_FIELDS + ("polyline",))
PATCHABLE_FIELDS = frozenset(
    COORDINATE_FIELDS
    + PRICE_FIELDS
    + (
        "origin_address",
        "destination_address",
        "polyline",
        "departure_time",
        "detour_tolerance_km",
    )
)

_COORD_PLACES = Decimal("0.000001")


@dataclass
class RouteDetails:
    route: RouteModel
    statistics: BidStatistics
    total_distance_km: float
    estimated_duration_minutes: int
    segments: list[RouteSegment] = field(default_factory=list)
    recent_bids: list[BidModel] = field(default_factory=list)
    driver: Optional[DriverProfile] = None
    vehicle: Optional[VehicleInfo] = None


def route_polyline(route: RouteModel) -> str:
    """Stored polyline, or the straight origin -> destination line."""
    if route.polyline:
        return route.polyline
    return encode_line(
        [
            (float(route.origin_lat), float(route.origin_lng)),
            (float(route.destination_lat), float(route.destination_lng)),
        ]
    )


class RouteService:
    def __init__(
        self,
        session: AsyncSession,
        geometry: GeometryEngine,
        pricing: PriceSuggestionService,
        settings: Settings,
        profiles: Optional[ProfileReader] = None,
    ):
        self.session = session
        self.routes = RouteRepository(session)
        self.bids = BidRepository(session)
        self.geometry = geometry
        self.pricing = pricing
        self.profiles = profiles
        self.settings = settings

    # ── Commands ──────────────────────────────────────────────────────

    async def create(self, **fields: Any) -> RouteModel:
        for name in REQUIRED_FIELDS:
            if fields.get(name) is None:
                raise ValidationError(name)

        now = utcnow()
        route = RouteModel(
            id=uuid.uuid4(),
            status=RouteStatus.OPEN,
            created_at=now,
            updated_at=now,
        )
        route.driver_id = fields["driver_id"]
        self._assign(route, {k: v for k, v in fields.items() if k in PATCHABLE_FIELDS})
        self._derive_geometry(route)
        self._check_price_range(route)

        if route.suggested_price_min is None and route.suggested_price_max is None:
            prediction = await self.pricing.suggest_for(route)
            route.suggested_price_min = prediction.min_price
            route.suggested_price_max = prediction.max_price

        await self.routes.create(route)
        logger.info(
            "Route %s created by driver %s (%.1f km)",
            route.id,
            route.driver_id,
            route.distance_km,
        )
        return route

    async def update(
        self, route_id: uuid.UUID, driver_id: uuid.UUID, patch: dict[str, Any]
    ) -> RouteModel:
        route = await self.routes.get_for_update(route_id)
        if route is None:
            raise RouteNotFound(route_id)
        if route.driver_id != driver_id:
            raise AccessDenied(
                "Only the route's driver may update it",
                route_id=route_id,
                driver_id=driver_id,
            )

        patch = dict(patch)
        new_status = patch.pop("status", None)
        for name, value in patch.items():
            if name not in PATCHABLE_FIELDS:
                raise ValidationError(name, f"{name} cannot be updated")
            if value is None and name in REQUIRED_FIELDS:
                raise ValidationError(name, f"{name} cannot be cleared")

        self._assign(route, patch)
        if new_status is not None:
            self._apply_status(route, self._parse_status(new_status))
        if GEOMETRY_FIELDS & patch.keys():
            self._derive_geometry(route)
        self._check_price_range(route)

        route.updated_at = utcnow()
        await self.session.flush()
        return route

    async def delete(self, route_id: uuid.UUID) -> None:
        route = await self.routes.get_for_update(route_id)
        if route is None:
            raise RouteNotFound(route_id)

        active = await self.bids.count_live(route.id)
        if active:
            raise ConflictError(
                "Route has pending or accepted bids",
                route_id=route_id,
                active_bids=active,
            )

        await self.bids.detach_from_route(route.id)
        await self.routes.delete(route)
        logger.info("Route %s deleted", route_id)

    # ── Queries ───────────────────────────────────────────────────────

    async def get(self, route_id: uuid.UUID) -> RouteModel:
        route = await self.routes.get_by_id(route_id)
        if route is None:
            raise RouteNotFound(route_id)
        return route

    async def segments(
        self, route_id: uuid.UUID, target_km: Optional[float] = None
    ) -> list[RouteSegment]:
        route = await self.get(route_id)
        return await self.geometry.segment(
            route_polyline(route), target_km or self.settings.segment_distance_km
        )

    async def get_details(self, route_id: uuid.UUID) -> RouteDetails:
        route = await self.get(route_id)

        count, highest, average = await self.bids.live_statistics(route.id)
        statistics = BidStatistics(
            total_bids=count,
            highest_bid=to_money(highest) if highest is not None else None,
            average_bid=to_money(average) if average is not None else None,
        )
        recent = await self.bids.recent_for_route(
            route.id, self.settings.recent_bids_limit
        )

        # External calls only; the DB session is not touched concurrently.
        segments, driver, vehicle = await asyncio.gather(
            self.geometry.segment(
                route_polyline(route), self.settings.segment_distance_km
            ),
            self._metadata("driver profile", self._profile_call("get_profile", route)),
            self._metadata("vehicle", self._profile_call("get_vehicle", route)),
        )

        distance = float(route.distance_km or 0)
        return RouteDetails(
            route=route,
            statistics=statistics,
            total_distance_km=distance,
            estimated_duration_minutes=round(
                distance / self.settings.average_speed_kmh * 60
            ),
            segments=segments,
            recent_bids=recent,
            driver=driver,
            vehicle=vehicle,
        )

    # ── Internals ─────────────────────────────────────────────────────

    def _profile_call(self, method: str, route: RouteModel) -> Optional[Awaitable]:
        if self.profiles is None:
            return None
        return getattr(self.profiles, method)(route.driver_id)

    async def _metadata(self, what: str, call: Optional[Awaitable]) -> Any:
        if call is None:
            return None
        try:
            return await asyncio.wait_for(
                call, timeout=self.settings.profile_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Fetching %s timed out", what)
        except DependencyUnavailable as exc:
            logger.warning("Fetching %s failed: %s", what, exc.message)
        return None

    @staticmethod
    def _assign(route: RouteModel, values: dict[str, Any]) -> None:
        for name, value in values.items():
            if value is not None and name in COORDINATE_FIELDS:
                value = Decimal(str(value)).quantize(_COORD_PLACES)
            elif value is not None and name in PRICE_FIELDS:
                value = to_money(value)
            elif value is not None and name == "detour_tolerance_km":
                value = Decimal(str(value))
            setattr(route, name, value)

    def _derive_geometry(self, route: RouteModel) -> None:
        if route.polyline:
            points = decode_polyline(route.polyline)
        else:
            points = [
                (float(route.origin_lat), float(route.origin_lng)),
                (float(route.destination_lat), float(route.destination_lng)),
            ]
        segments = split_into_segments(points, self.settings.segment_distance_km)
        total = sum(s.distance_km for s in segments)

        route.distance_km = Decimal(str(round(total, 3)))
        route.origin_cell = region_cell(
            route.origin_lat, route.origin_lng, self.settings.h3_resolution
        )
        route.destination_cell = region_cell(
            route.destination_lat, route.destination_lng, self.settings.h3_resolution
        )

    @staticmethod
    def _parse_status(value: Any) -> RouteStatus:
        try:
            return RouteStatus(value)
        except ValueError as exc:
            allowed = ", ".join(s.value for s in RouteStatus)
            raise ValidationError("status", f"status must be one of {allowed}") from exc

    @staticmethod
    def _apply_status(route: RouteModel, new_status: RouteStatus) -> None:
        if new_status == RouteStatus(route.status):
            return
        if new_status == RouteStatus.BOOKED:
            raise ValidationError("status", "A route is booked by accepting a bid")
        transition(route, new_status)

    @staticmethod
    def _check_price_range(route: RouteModel) -> None:
        low, high = route.suggested_price_min, route.suggested_price_max
        if low is not None and high is not None and low > high:
            raise ValidationError(
                "suggested_price_min",
                "suggested_price_min must not exceed suggested_price_max",
            )
