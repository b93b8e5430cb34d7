"""
Hazard-Aware Route Estimator
============================

1. Keep active hazard zones with ``severity >= min_severity`` (default 5).
2. Ask the configured ``RoutePlanner`` for a waypoint path.
3. ``distance_km``  = sum of great-circle hops along the path.
4. ``duration_min`` = ceil(distance / average_speed x 60).
5. ``estimated_fare`` from the ``PricingEngine`` (urgency-aware rate).
6. ``hazard_zones_noted`` = filtered zones containing the pickup or the
   destination.  This is an approximation: it reports endpoint exposure,
   not necessarily the zones the path bent around.
7. ``safety_score`` = clamp(10 - 2 x noted, 1, 10).

Failure policy
--------------
``estimate`` never raises.  A missing snapshot or any fault while
planning degrades to a direct two-point route with ``safety_score = 8``
and no noted hazards.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from .distance import haversine_km, path_length_km
from .entities import HazardZone, NotedHazard, RouteEstimate, TripRequest
from .hazards import HazardIndex
from .pricing import PricingEngine
from .routing import DirectDetourPlanner, RoutePlanner

logger = logging.getLogger(__name__)

FALLBACK_SAFETY_SCORE = 8


def clamp_safety(value: int) -> int:
    return max(1, min(10, value))


class RouteEstimator:
    def __init__(
        self,
        planner: Optional[RoutePlanner] = None,
        pricing: Optional[PricingEngine] = None,
        average_speed_kmh: float = 40.0,
        min_severity: int = 5,
    ):
        self.planner = planner or DirectDetourPlanner()
        self.pricing = pricing or PricingEngine()
        self.average_speed_kmh = average_speed_kmh
        self.min_severity = min_severity

    def estimate(
        self,
        request: TripRequest,
        hazards: Optional[Sequence[HazardZone]],
    ) -> RouteEstimate:
        try:
            if hazards is None:
                raise ValueError("no hazard snapshot available")
            return self._estimate(request, hazards)
        except Exception:
            logger.exception("Route estimation failed; using direct fallback")
            return self.fallback(request)

    def _estimate(self, request, hazards) -> RouteEstimate:
        index = HazardIndex(hazards).with_min_severity(self.min_severity)

        waypoints = self.planner.plan(request.pickup, request.destination, index)
        if len(waypoints) < 2:
            raise ValueError(f"planner returned {len(waypoints)} waypoint(s)")

        distance = path_length_km(waypoints)
        if not math.isfinite(distance):
            raise ValueError(f"non-finite route distance: {distance}")

        noted: list[NotedHazard] = []
        seen: set = set()
        for endpoint in (request.pickup, request.destination):
            for zone in index.zones_containing(endpoint):
                if zone.id not in seen:
                    seen.add(zone.id)
                    noted.append(NotedHazard(zone.id, zone.category, zone.severity))

        return RouteEstimate(
            waypoints=tuple(waypoints),
            distance_km=round(distance, 2),
            duration_min=self._duration_min(distance),
            estimated_fare=self.pricing.estimate_fare(distance, request.urgency),
            hazard_zones_noted=tuple(noted),
            safety_score=clamp_safety(10 - 2 * len(noted)),
        )

    def fallback(self, request: TripRequest) -> RouteEstimate:
        """Direct two-point route; must not raise."""
        pickup, destination = request.pickup, request.destination
        try:
            distance = haversine_km(
                pickup.latitude, pickup.longitude,
                destination.latitude, destination.longitude,
            )
        except (AttributeError, TypeError, ValueError):
            distance = 0.0
        if not math.isfinite(distance):
            distance = 0.0

        return RouteEstimate(
            waypoints=(pickup, destination),
            distance_km=round(distance, 2),
            duration_min=self._duration_min(distance),
            estimated_fare=self.pricing.estimate_fare(distance, request.urgency),
            hazard_zones_noted=(),
            safety_score=FALLBACK_SAFETY_SCORE,
            fallback=True,
        )

    def _duration_min(self, distance_km: float) -> int:
        if self.average_speed_kmh <= 0:
            return 0
        return math.ceil(distance_km / self.average_speed_kmh * 60)
