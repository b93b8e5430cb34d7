"""
Distance calculation using the Haversine formula.

Assumption
----------
We use great-circle (Haversine) distance instead of a real routing engine
(OSRM / Google Maps).  Every estimate in this package is an abstract,
hazard-biased approximation, not turn-by-turn directions.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math

import h3

from .entities import Coordinate, validate_coordinate

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    # Rounding can push ``a`` a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Validated great-circle distance between two coordinates.

    Raises ``InputError`` for out-of-range or non-finite input.
    """
    validate_coordinate(a.latitude, a.longitude)
    validate_coordinate(b.latitude, b.longitude)
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def path_length_km(points) -> float:
    """Sum of consecutive great-circle hops along *points*."""
    return sum(distance_km(p, q) for p, q in zip(points, points[1:]))


def interpolate(a: Coordinate, b: Coordinate, ratio: float) -> Coordinate:
    """Linear interpolation in lat/lng space (adequate for short hops)."""
    return Coordinate(
        a.latitude + (b.latitude - a.latitude) * ratio,
        a.longitude + (b.longitude - a.longitude) * ratio,
    )


def driver_cell(lat: float, lng: float, resolution: int = 6) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def cells_within(lat: float, lng: float, radius_km: float, resolution: int = 6) -> list[str]:
    """H3 cells covering a disk of *radius_km* around a point.

    Used as a coarse spatial prefilter; callers still apply the exact
    haversine cutoff.
    """
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    k = max(1, math.ceil(radius_km / (edge_km * math.sqrt(3))) + 1)
    return list(h3.grid_disk(driver_cell(lat, lng, resolution), k))
