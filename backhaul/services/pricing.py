"""
Price Suggestion Engine
=======================

Looks up accepted-bid prices on comparable routes and feeds them, with the
route distance, to ``PriceBandCalculator``.  The history lookup is bounded
by a timeout; a timeout or an unavailable history store degrades to the
base-rate band instead of failing the request.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from backhaul.domain.entities import PricePrediction
from backhaul.domain.errors import DependencyUnavailable, RouteNotFound
from backhaul.domain.ports import BidHistoryReader
from backhaul.domain.pricing import PriceBandCalculator
from backhaul.infrastructure.models import RouteModel
from backhaul.infrastructure.repositories import RouteRepository

logger = logging.getLogger(__name__)


class PriceSuggestionService:
    def __init__(
        self,
        session: AsyncSession,
        history: BidHistoryReader,
        calculator: PriceBandCalculator,
        timeout_seconds: float = 1.5,
    ):
        self.routes = RouteRepository(session)
        self.history = history
        self.calculator = calculator
        self.timeout = timeout_seconds

    async def suggest(self, route_id: uuid.UUID) -> PricePrediction:
        route = await self.routes.get_by_id(route_id)
        if route is None:
            raise RouteNotFound(route_id)
        return await self.suggest_for(route)

    async def suggest_for(self, route: RouteModel) -> PricePrediction:
        distance = float(route.distance_km or 0)
        history = await self._history(route, distance)
        band = self.calculator.compute(distance, history)
        return PricePrediction(
            route_id=route.id,
            min_price=band.min_price,
            max_price=band.max_price,
            confidence=band.confidence,
            sample_size=band.sample_size,
            distance_km=distance,
            computed_at=datetime.now(timezone.utc),
        )

    async def _history(self, route: RouteModel, distance: float) -> Sequence[Decimal]:
        if not (route.origin_cell and route.destination_cell):
            return []
        try:
            return await asyncio.wait_for(
                self.history.historical_prices(
                    route.origin_cell, route.destination_cell, distance
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Price history lookup timed out after %.1fs; using base rate",
                self.timeout,
            )
        except DependencyUnavailable as exc:
            logger.warning("%s; using base rate", exc.message)
        return []
