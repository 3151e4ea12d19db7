"""
Contracts of the external collaborators the core depends on.

Implementations live in ``backhaul.infrastructure``; tests substitute
in-memory fakes.  Best-effort collaborators signal failure by raising
``DependencyUnavailable``; callers decide the fallback.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional, Protocol, Sequence

from .entities import DriverProfile, VehicleInfo


class ReverseGeocoder(Protocol):
    async def place_name(self, lat: float, lng: float) -> Optional[str]: ...


class ProfileReader(Protocol):
    async def get_profile(self, user_id: uuid.UUID) -> Optional[DriverProfile]: ...

    async def get_vehicle(self, driver_id: uuid.UUID) -> Optional[VehicleInfo]: ...


class BidHistoryReader(Protocol):
    async def historical_prices(
        self, origin_region: str, destination_region: str, distance_km: float
    ) -> Sequence[Decimal]:
        """Accepted prices on comparable routes, newest first."""
        ...


class DeliveryRequestStore(Protocol):
    async def create(self, spec: dict[str, Any]) -> uuid.UUID: ...


class BidNotifier(Protocol):
    async def bid_accepted(self, bid: Any) -> None: ...

    async def bids_rejected(self, bids: Sequence[Any]) -> None: ...
