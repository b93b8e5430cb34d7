"""
Fare Estimation  (Strategy Pattern)
===================================

Formula
-------
Fare = Base_Fare + Distance x Rate_Per_KM(urgency)

The emergency per-km rate is one explicit setting
(``emergency_rate_per_km``) used by every code path that prices a trip.
By default it equals the normal rate.

Complexity: O(1) per fare calculation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .enums import Urgency


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float: ...


class StandardPricing(PricingStrategy):
    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float:
        return base_fare + distance_km * rate_per_km


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the route estimator."""

    def __init__(
        self,
        base_fare: float = 5.00,
        rate_per_km: float = 1.50,
        emergency_rate_per_km: Optional[float] = None,
        strategy: Optional[PricingStrategy] = None,
    ):
        self.base_fare = base_fare
        self.rate_per_km = rate_per_km
        self.emergency_rate_per_km = (
            rate_per_km if emergency_rate_per_km is None else emergency_rate_per_km
        )
        self.strategy = strategy or StandardPricing()

    @classmethod
    def from_settings(cls, settings) -> PricingEngine:
        return cls(
            base_fare=settings.base_fare,
            rate_per_km=settings.rate_per_km,
            emergency_rate_per_km=settings.emergency_rate_per_km,
        )

    def rate_for(self, urgency: Urgency) -> float:
        if urgency == Urgency.EMERGENCY:
            return self.emergency_rate_per_km
        return self.rate_per_km

    def estimate_fare(self, distance_km: float, urgency: Urgency = Urgency.NORMAL) -> float:
        raw = self.strategy.calculate(
            max(0.0, distance_km), self.base_fare, self.rate_for(urgency)
        )
        return round(raw, 2)
