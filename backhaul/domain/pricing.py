"""
Price Band Engine  (Strategy Pattern)
=====================================

Two ways to turn a route into a suggested ``[min, max]`` band:

* **BaseRateBand** -- ``estimate = Base_Fare + Distance x Rate_Per_KM``,
  band = ``estimate x (1 ∓ Band_Pct)``.
* **HistoricalBand** -- inter-quartile range (25th..75th percentile) of the
  newest accepted-bid prices on comparable routes.

``PriceBandCalculator`` picks the historical band only when there are at
least ``min_samples`` prices and they do not collapse into a single value;
otherwise it falls back to the base rate and labels the result so callers
can tell an estimate from a learned suggestion.

Complexity: O(w log w) with w = history window.
"""

from __future__ import annotations

import statistics
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from .enums import PriceConfidence

_CENTS = Decimal("0.01")


def to_money(value: float | Decimal) -> Decimal:
    return Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBand:
    min_price: Decimal
    max_price: Decimal
    confidence: PriceConfidence
    sample_size: int


# ── Strategy hierarchy ────────────────────────────────────────────────


class PriceBandStrategy(ABC):
    @abstractmethod
    def band(self) -> tuple[Decimal, Decimal]: ...


class BaseRateBand(PriceBandStrategy):
    def __init__(
        self,
        distance_km: float,
        base_fare: float,
        rate_per_km: float,
        band_pct: float = 0.20,
    ):
        self.estimate = base_fare + distance_km * rate_per_km
        self.band_pct = band_pct

    def band(self) -> tuple[Decimal, Decimal]:
        return (
            to_money(self.estimate * (1 - self.band_pct)),
            to_money(self.estimate * (1 + self.band_pct)),
        )


class HistoricalBand(PriceBandStrategy):
    """Inter-quartile range of observed prices (needs >= 2 prices)."""

    def __init__(self, prices: Sequence[float | Decimal]):
        self.prices = [float(p) for p in prices]

    def band(self) -> tuple[Decimal, Decimal]:
        q1, _, q3 = statistics.quantiles(self.prices, n=4, method="inclusive")
        return to_money(q1), to_money(q3)


# ── Engine facade ─────────────────────────────────────────────────────


class PriceBandCalculator:
    """High-level API used by the price suggestion service."""

    def __init__(
        self,
        base_fare: float = 500.0,
        rate_per_km: float = 60.0,
        band_pct: float = 0.20,
        min_samples: int = 3,
        window: int = 20,
    ):
        self.base_fare = base_fare
        self.rate_per_km = rate_per_km
        self.band_pct = band_pct
        self.min_samples = max(min_samples, 2)
        self.window = window

    def compute(
        self, distance_km: float, history: Sequence[float | Decimal]
    ) -> PriceBand:
        """*history* is ordered newest first."""
        recent = list(history[: self.window])

        if len(recent) >= self.min_samples:
            low, high = HistoricalBand(recent).band()
            if low < high:
                return PriceBand(low, high, PriceConfidence.HISTORICAL, len(recent))

        low, high = BaseRateBand(
            distance_km, self.base_fare, self.rate_per_km, self.band_pct
        ).band()
        confidence = (
            PriceConfidence.ESTIMATED if recent else PriceConfidence.NO_HISTORY
        )
        return PriceBand(low, high, confidence, len(recent))
