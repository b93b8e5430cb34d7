"""
Route Planning  (Strategy Pattern)
==================================

A ``RoutePlanner`` turns two endpoints and a (pre-filtered) hazard index
into an ordered waypoint path.  The estimator, matcher and coordinator
never depend on which planner is configured.

* ``DirectDetourPlanner`` -- the straight line split into ~2 km segments;
  any interior waypoint that lands inside a hazard is nudged by a small
  random offset.  This is a placeholder heuristic: the nudged point can
  still be inside the zone.
* ``GridAvoidancePlanner`` -- A* over a lat/lng grid whose step cost is
  inflated inside hazardous cells, so the path bends around zones when
  doing so is cheaper than crossing them.

Complexity
----------
* Direct: O(S x Z), S = segments, Z = zones.
* Grid:   O(N log N) heap operations for N = rows x cols cells, with a
  one-off O(Z) hazard lookup per visited cell.  N is bounded by
  ``max_cells_per_side ** 2``.
"""

from __future__ import annotations

import heapq
import math
import random
from abc import ABC, abstractmethod
from typing import Optional

from .distance import distance_km, haversine_km, interpolate
from .entities import Coordinate
from .hazards import HazardIndex

KM_PER_DEGREE_LAT = 111.32


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class RoutePlanner(ABC):
    @abstractmethod
    def plan(
        self, start: Coordinate, end: Coordinate, hazards: HazardIndex
    ) -> list[Coordinate]:
        """Return waypoints from *start* to *end* (both included)."""


class DirectDetourPlanner(RoutePlanner):
    def __init__(
        self,
        segment_km: float = 2.0,
        jitter_deg: float = 0.005,
        rng: Optional[random.Random] = None,
    ):
        self.segment_km = segment_km
        self.jitter_deg = jitter_deg
        self.rng = rng or random.Random()

    def plan(self, start, end, hazards):
        direct = distance_km(start, end)
        segments = math.ceil(direct / self.segment_km)

        waypoints = [start]
        for i in range(1, segments):
            point = interpolate(start, end, i / segments)
            if hazards.zones_containing(point):
                point = self._detour(point)
            waypoints.append(point)
        waypoints.append(end)
        return waypoints

    def _detour(self, point: Coordinate) -> Coordinate:
        return Coordinate(
            _clamp(point.latitude + self.rng.uniform(-1, 1) * self.jitter_deg, -90.0, 90.0),
            _clamp(point.longitude + self.rng.uniform(-1, 1) * self.jitter_deg, -180.0, 180.0),
        )


class GridAvoidancePlanner(RoutePlanner):
    """Shortest path over a cost field that penalises hazardous cells.

    The grid spans the endpoints' bounding box padded by ``margin_km`` plus
    the largest radius of any zone near the trip, so there is always room
    to go around.  Paths crossing the antimeridian are not supported.
    """

    _NEIGHBOURS = (
        (-1, -1), (-1, 0), (-1, 1),
        (0, -1), (0, 1),
        (1, -1), (1, 0), (1, 1),
    )

    def __init__(
        self,
        cell_km: float = 0.5,
        hazard_penalty: float = 10.0,
        margin_km: float = 2.0,
        max_cells_per_side: int = 200,
    ):
        self.cell_km = cell_km
        self.hazard_penalty = hazard_penalty
        self.margin_km = margin_km
        self.max_cells_per_side = max_cells_per_side

    def plan(self, start, end, hazards):
        if start == end:
            return [start, end]

        grid = _Grid.covering(
            start, end, self._padding_km(start, end, hazards),
            self.cell_km, self.max_cells_per_side,
        )
        source, goal = grid.cell_of(start), grid.cell_of(end)
        if source == goal:
            return [start, end]

        cells = self._astar(grid, source, goal, hazards)
        interior = [grid.center(cell) for cell in _drop_collinear(cells)[1:-1]]
        return [start, *interior, end]

    def _padding_km(self, start, end, hazards: HazardIndex) -> float:
        mid = interpolate(start, end, 0.5)
        reach = distance_km(start, end) / 2 + self.margin_km
        radii = [
            z.radius_km
            for z in hazards.active()
            if distance_km(mid, z.center) <= reach + z.radius_km
        ]
        return self.margin_km + max(radii, default=0.0)

    def _astar(self, grid: _Grid, source, goal, hazards: HazardIndex):
        exposure: dict[tuple[int, int], int] = {}

        def penalty(cell) -> float:
            if cell not in exposure:
                exposure[cell] = len(hazards.zones_containing(grid.center(cell)))
            return 1.0 + self.hazard_penalty * exposure[cell]

        goal_point = grid.center(goal)

        def heuristic(cell) -> float:
            c = grid.center(cell)
            return haversine_km(c.latitude, c.longitude, goal_point.latitude, goal_point.longitude)

        best = {source: 0.0}
        came_from: dict[tuple[int, int], tuple[int, int]] = {}
        counter = 0
        frontier = [(heuristic(source), counter, source)]
        closed: set[tuple[int, int]] = set()

        while frontier:
            _, _, cell = heapq.heappop(frontier)
            if cell == goal:
                break
            if cell in closed:
                continue
            closed.add(cell)

            here = grid.center(cell)
            for dr, dc in self._NEIGHBOURS:
                nxt = (cell[0] + dr, cell[1] + dc)
                if not grid.in_bounds(nxt) or nxt in closed:
                    continue
                there = grid.center(nxt)
                step = haversine_km(
                    here.latitude, here.longitude, there.latitude, there.longitude
                ) * penalty(nxt)
                cost = best[cell] + step
                if cost < best.get(nxt, math.inf):
                    best[nxt] = cost
                    came_from[nxt] = cell
                    counter += 1
                    heapq.heappush(frontier, (cost + heuristic(nxt), counter, nxt))

        if goal not in came_from:
            return [source, goal]

        path = [goal]
        while path[-1] != source:
            path.append(came_from[path[-1]])
        path.reverse()
        return path


class _Grid:
    def __init__(self, lat0, lng0, lat_step, lng_step, rows, cols):
        self.lat0, self.lng0 = lat0, lng0
        self.lat_step, self.lng_step = lat_step, lng_step
        self.rows, self.cols = rows, cols

    @classmethod
    def covering(cls, a: Coordinate, b: Coordinate, pad_km: float, cell_km: float, max_side: int):
        mid_lat = (a.latitude + b.latitude) / 2
        km_per_deg_lng = max(KM_PER_DEGREE_LAT * math.cos(math.radians(mid_lat)), 0.01)
        pad_lat = pad_km / KM_PER_DEGREE_LAT
        pad_lng = pad_km / km_per_deg_lng

        lat0 = _clamp(min(a.latitude, b.latitude) - pad_lat, -90.0, 90.0)
        lat1 = _clamp(max(a.latitude, b.latitude) + pad_lat, -90.0, 90.0)
        lng0 = _clamp(min(a.longitude, b.longitude) - pad_lng, -180.0, 180.0)
        lng1 = _clamp(max(a.longitude, b.longitude) + pad_lng, -180.0, 180.0)

        height_km = (lat1 - lat0) * KM_PER_DEGREE_LAT
        width_km = (lng1 - lng0) * km_per_deg_lng
        cell_km = max(cell_km, max(height_km, width_km) / max_side)
        rows = max(1, math.ceil(height_km / cell_km))
        cols = max(1, math.ceil(width_km / cell_km))
        return cls(lat0, lng0, (lat1 - lat0) / rows, (lng1 - lng0) / cols, rows, cols)

    def in_bounds(self, cell) -> bool:
        return 0 <= cell[0] < self.rows and 0 <= cell[1] < self.cols

    def cell_of(self, point: Coordinate) -> tuple[int, int]:
        row = int((point.latitude - self.lat0) / self.lat_step) if self.lat_step else 0
        col = int((point.longitude - self.lng0) / self.lng_step) if self.lng_step else 0
        return (min(max(row, 0), self.rows - 1), min(max(col, 0), self.cols - 1))

    def center(self, cell) -> Coordinate:
        return Coordinate(
            self.lat0 + (cell[0] + 0.5) * self.lat_step,
            self.lng0 + (cell[1] + 0.5) * self.lng_step,
        )


def _drop_collinear(cells: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Keep only the cells where the path changes direction."""
    if len(cells) <= 2:
        return list(cells)
    kept = [cells[0]]
    for prev, cur, nxt in zip(cells, cells[1:], cells[2:]):
        if (cur[0] - prev[0], cur[1] - prev[1]) != (nxt[0] - cur[0], nxt[1] - cur[1]):
            kept.append(cur)
    kept.append(cells[-1])
    return kept


def planner_from_settings(settings, rng: Optional[random.Random] = None) -> RoutePlanner:
    if settings.route_planner == "grid":
        return GridAvoidancePlanner()
    if settings.route_planner == "direct":
        return DirectDetourPlanner(segment_km=settings.segment_km, rng=rng)
    raise ValueError(f"Unknown route planner: {settings.route_planner!r}")
