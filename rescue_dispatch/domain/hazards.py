"""
Read-only queries over one hazard-zone snapshot.

A ``HazardIndex`` is built once per estimation / matching call from the
snapshot the caller read, so every question asked during that call sees
the same zones even if the refresher swaps the snapshot meanwhile.

Complexity: O(Z) per point query, Z = zones in the snapshot.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .distance import distance_km
from .entities import Coordinate, HazardZone


def contains(point: Coordinate, zone: HazardZone) -> bool:
    """True when *point* lies inside the zone's circle (boundary included)."""
    return distance_km(point, zone.center) <= zone.radius_km


def filter_by_severity(
    zones: Iterable[HazardZone], min_severity: int
) -> list[HazardZone]:
    return [z for z in zones if z.severity >= min_severity]


class HazardIndex:
    def __init__(self, zones: Sequence[HazardZone] = ()):
        self._zones: tuple[HazardZone, ...] = tuple(zones)
        self._active: tuple[HazardZone, ...] = tuple(
            z for z in self._zones if z.active
        )

    def __len__(self) -> int:
        return len(self._active)

    def active(self) -> list[HazardZone]:
        return list(self._active)

    def with_min_severity(self, min_severity: int) -> HazardIndex:
        """A narrower index holding only active zones at or above *min_severity*."""
        return HazardIndex(filter_by_severity(self._active, min_severity))

    def zones_containing(self, point: Coordinate) -> list[HazardZone]:
        return [z for z in self._active if contains(point, z)]

    def zones_near(self, point: Coordinate, radius_km: float) -> list[HazardZone]:
        """Active zones whose *centre* is within *radius_km* of *point*.

        The zone's own radius is ignored; this answers "what's nearby".
        """
        return [
            z for z in self._active if distance_km(point, z.center) <= radius_km
        ]
