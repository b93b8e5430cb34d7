"""
Hazard-Aware Driver Matching
============================

1. **Eligibility**  -- drop candidates that are offline, unavailable or
   have no known location.
2. **Evaluation**   -- per candidate: distance to pickup, number of
   active zones (any severity) containing the driver, and a safety value
   ``max(1, 10 - 2 x zones)`` inside hazards, 9 otherwise.
3. **Policy**
   * emergency -- filter to ``not in_hazard or safety >= 6`` *first*,
     then order by (safety desc, distance asc).  A responder must not be
     pulled out of the hazard the rider is fleeing.
   * normal    -- order by (distance asc, safety desc).
   The composite driver score breaks any remaining ties.
4. **Cutoff**       -- first candidate within 20 km (emergency) or
   10 km (normal); otherwise no match (``None``).

Selection is a pure read.  Reserving the chosen driver is the
coordinator's job.

Complexity: O(D x Z + D log D) for D candidates and Z zones.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .distance import distance_km
from .entities import DriverSnapshot, HazardZone, TripRequest
from .enums import Urgency
from .hazards import HazardIndex

SAFE_LOCATION_SAFETY = 9


@dataclass(frozen=True)
class Candidate:
    driver: DriverSnapshot
    distance_km: float
    hazard_count: int
    safety: int
    score: float

    @property
    def in_hazard(self) -> bool:
        return self.hazard_count > 0


@dataclass(frozen=True)
class MatchResult:
    """The chosen driver for one request.

    ``driver_version`` is the version of the snapshot the match was scored
    against.  It is reported, not enforced: the commit reserves through a
    compare-and-set on availability, so a location update between match
    and commit does not void the match.
    """
    driver_id: int
    driver_version: int
    urgency: Urgency
    distance_km: float
    safety: int
    in_hazard: bool
    hazard_count: int
    score: float


def location_safety(hazard_count: int) -> int:
    if hazard_count == 0:
        return SAFE_LOCATION_SAFETY
    return max(1, 10 - 2 * hazard_count)


def driver_score(
    driver: DriverSnapshot,
    distance: float,
    in_hazard: bool,
    urgency: Urgency,
) -> float:
    """Composite 0+ score: proximity, rating, experience, equipment, hazard."""
    score = 100.0
    score -= min(distance * 2, 30)
    score += (driver.rating - 3) * 5
    score += min(driver.total_trips / 10, 10)
    if urgency == Urgency.EMERGENCY:
        score += len(driver.emergency_equipment) * 2
    if in_hazard:
        score -= 25
    return max(0.0, score)


class DriverMatcher:
    def __init__(
        self,
        normal_max_distance_km: float = 10.0,
        emergency_max_distance_km: float = 20.0,
        emergency_min_safety: int = 6,
    ):
        self.normal_max_distance_km = normal_max_distance_km
        self.emergency_max_distance_km = emergency_max_distance_km
        self.emergency_min_safety = emergency_min_safety

    @classmethod
    def from_settings(cls, settings) -> DriverMatcher:
        return cls(
            normal_max_distance_km=settings.normal_max_distance_km,
            emergency_max_distance_km=settings.emergency_max_distance_km,
            emergency_min_safety=settings.emergency_min_safety,
        )

    def max_distance_km(self, urgency: Urgency) -> float:
        if urgency == Urgency.EMERGENCY:
            return self.emergency_max_distance_km
        return self.normal_max_distance_km

    def evaluate(
        self,
        request: TripRequest,
        drivers: Iterable[DriverSnapshot],
        index: HazardIndex,
    ) -> list[Candidate]:
        candidates = []
        for driver in drivers:
            if not driver.is_eligible:
                continue
            distance = distance_km(request.pickup, driver.location)
            hazard_count = len(index.zones_containing(driver.location))
            candidates.append(
                Candidate(
                    driver=driver,
                    distance_km=distance,
                    hazard_count=hazard_count,
                    safety=location_safety(hazard_count),
                    score=driver_score(
                        driver, distance, hazard_count > 0, request.urgency
                    ),
                )
            )
        return candidates

    def rank(
        self,
        request: TripRequest,
        drivers: Iterable[DriverSnapshot],
        hazards: Sequence[HazardZone],
    ) -> list[Candidate]:
        """All admissible candidates in policy order (cutoff not applied)."""
        candidates = self.evaluate(request, drivers, HazardIndex(hazards))

        if request.urgency == Urgency.EMERGENCY:
            candidates = [
                c for c in candidates
                if not c.in_hazard or c.safety >= self.emergency_min_safety
            ]
            return sorted(
                candidates, key=lambda c: (-c.safety, c.distance_km, -c.score)
            )
        return sorted(candidates, key=lambda c: (c.distance_km, -c.safety, -c.score))

    def select(
        self,
        request: TripRequest,
        drivers: Iterable[DriverSnapshot],
        hazards: Sequence[HazardZone],
    ) -> Optional[MatchResult]:
        """Best driver within the urgency's cutoff, or ``None``."""
        cutoff = self.max_distance_km(request.urgency)
        for c in self.rank(request, drivers, hazards):
            if c.distance_km <= cutoff:
                return MatchResult(
                    driver_id=c.driver.id,
                    driver_version=c.driver.version,
                    urgency=request.urgency,
                    distance_km=round(c.distance_km, 3),
                    safety=c.safety,
                    in_hazard=c.in_hazard,
                    hazard_count=c.hazard_count,
                    score=round(c.score, 2),
                )
        return None
