"""
Domain value objects and the status state machine.

Patterns used
-------------
- **State Pattern**: ``transition`` enforces the lifecycle tables in
  ``enums`` for both routes and bids, whatever object carries the status
  (ORM row or plain entity).
- Segments, predictions and collaborator payloads are immutable value
  objects; none of them has an identity of its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from .enums import BID_TRANSITIONS, ROUTE_TRANSITIONS, BidStatus, PriceConfidence, RouteStatus
from .errors import InvalidTransition


# ── State machine ─────────────────────────────────────────────────────


def transition(target: Any, new_status: RouteStatus | BidStatus) -> None:
    """Move *target* to *new_status* if the transition is legal, else raise."""
    if isinstance(new_status, RouteStatus):
        table, entity, current = ROUTE_TRANSITIONS, "route", RouteStatus(target.status)
    else:
        table, entity, current = BID_TRANSITIONS, "bid", BidStatus(target.status)

    if new_status not in table.get(current, set()):
        raise InvalidTransition(entity, current, new_status)
    target.status = new_status


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RouteSegment:
    index: int
    start: Coordinate
    end: Coordinate
    distance_km: float
    cumulative_km: float
    place_name: Optional[str] = None


@dataclass(frozen=True)
class PricePrediction:
    route_id: Any
    min_price: Decimal
    max_price: Decimal
    confidence: PriceConfidence
    sample_size: int
    distance_km: float
    computed_at: datetime


@dataclass(frozen=True)
class DriverProfile:
    name: str
    rating: Optional[float] = None
    review_count: int = 0
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class VehicleInfo:
    make: Optional[str] = None
    model: Optional[str] = None
    plate: Optional[str] = None
    max_weight_kg: Optional[float] = None
    max_volume_m3: Optional[float] = None


@dataclass(frozen=True)
class BidStatistics:
    total_bids: int = 0
    highest_bid: Optional[Decimal] = None
    average_bid: Optional[Decimal] = None
