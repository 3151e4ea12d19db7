"""
Geometry Engine
===============

``segment`` = decode -> split (pure, ``backhaul.domain.geometry``) -> label.

Labelling asks the reverse geocoder for the town at each segment's start
point.  Lookups run concurrently (bounded by a semaphore) and each one is
capped by a timeout; a failed or slow lookup leaves ``place_name`` empty and
never fails the segmentation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from backhaul.domain.entities import Coordinate, RouteSegment
from backhaul.domain.geometry import decode_polyline, split_into_segments
from backhaul.domain.ports import ReverseGeocoder

logger = logging.getLogger(__name__)


class GeometryEngine:
    def __init__(
        self,
        geocoder: Optional[ReverseGeocoder] = None,
        timeout_seconds: float = 2.0,
        max_concurrent_lookups: int = 4,
    ):
        self.geocoder = geocoder
        self.timeout = timeout_seconds
        self.max_concurrent = max_concurrent_lookups

    async def segment(self, encoded: str, target_km: float) -> list[RouteSegment]:
        segments = split_into_segments(decode_polyline(encoded), target_km)
        if self.geocoder is None:
            return segments

        gate = asyncio.Semaphore(self.max_concurrent)
        names = await asyncio.gather(
            *(self._place_name(s.start, gate) for s in segments)
        )
        return [replace(s, place_name=name) for s, name in zip(segments, names)]

    async def _place_name(
        self, point: Coordinate, gate: asyncio.Semaphore
    ) -> Optional[str]:
        async with gate:
            try:
                return await asyncio.wait_for(
                    self.geocoder.place_name(point.latitude, point.longitude),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Reverse geocoding timed out for %.5f,%.5f",
                    point.latitude,
                    point.longitude,
                )
            except Exception:
                logger.warning(
                    "Reverse geocoding failed for %.5f,%.5f",
                    point.latitude,
                    point.longitude,
                    exc_info=True,
                )
        return None
