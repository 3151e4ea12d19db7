"""
HTTP adapters for the external collaborators.

* ``HttpReverseGeocoder`` -- Nominatim-compatible ``/reverse`` endpoint,
  used to label route segments with a town name.
* ``HttpProfileReader``  -- the profile service owning driver profiles and
  vehicles.

Both share one ``httpx.AsyncClient`` per process (created by the
container) and translate transport failures into ``DependencyUnavailable``;
"not found" is a normal ``None`` result, not an error.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

import httpx

from backhaul.domain.entities import DriverProfile, VehicleInfo
from backhaul.domain.errors import DependencyUnavailable

logger = logging.getLogger(__name__)


class HttpReverseGeocoder:
    # Nominatim zoom 10 resolves to city / town level.
    ZOOM = 10
    PLACE_KEYS = ("city", "town", "village", "suburb", "county", "state")

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def place_name(self, lat: float, lng: float) -> Optional[str]:
        params = {
            "format": "jsonv2",
            "lat": f"{lat:.6f}",
            "lon": f"{lng:.6f}",
            "zoom": self.ZOOM,
        }
        try:
            response = await self.client.get(f"{self.base_url}/reverse", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyUnavailable("reverse geocoder", str(exc)) from exc

        if "error" in data:
            logger.debug("No place for %.5f,%.5f: %s", lat, lng, data["error"])
            return None

        address = data.get("address") or {}
        for key in self.PLACE_KEYS:
            if address.get(key):
                return address[key]
        return data.get("name") or None


class HttpProfileReader:
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def _get_json(self, path: str) -> Optional[dict[str, Any]]:
        try:
            response = await self.client.get(f"{self.base_url}{path}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyUnavailable("profile service", str(exc)) from exc

    async def get_profile(self, user_id: uuid.UUID) -> Optional[DriverProfile]:
        data = await self._get_json(f"/api/profiles/{user_id}")
        if data is None:
            return None
        name = " ".join(
            part for part in (data.get("firstName"), data.get("lastName")) if part
        )
        return DriverProfile(
            name=name or data.get("email", ""),
            rating=data.get("rating"),
            review_count=data.get("reviewCount") or 0,
            photo_url=data.get("profilePhotoUrl"),
        )

    async def get_vehicle(self, driver_id: uuid.UUID) -> Optional[VehicleInfo]:
        data = await self._get_json(f"/api/drivers/{driver_id}/vehicle")
        if data is None:
            return None
        return VehicleInfo(
            make=data.get("make"),
            model=data.get("model"),
            plate=data.get("plateNumber"),
            max_weight_kg=data.get("maxWeight"),
            max_volume_m3=data.get("maxVolume"),
        )
