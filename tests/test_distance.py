"""Unit tests for great-circle distance and H3 helpers."""

import math

import pytest

from rescue_dispatch.domain.distance import (
    cells_within,
    distance_km,
    driver_cell,
    haversine_km,
    path_length_km,
)
from rescue_dispatch.domain.entities import Coordinate, validate_coordinate
from rescue_dispatch.domain.errors import InputError


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(12.97, 77.59, 12.97, 77.59) == 0.0

    def test_symmetric(self):
        d1 = haversine_km(19.0, 72.0, 20.0, 73.0)
        d2 = haversine_km(20.0, 73.0, 19.0, 72.0)
        assert abs(d1 - d2) < 1e-9

    def test_one_degree_of_latitude(self):
        d = haversine_km(0.0, 0.0, 1.0, 0.0)
        assert d == pytest.approx(111.19, rel=0.01)

    def test_antipodal_points_are_finite(self):
        d = haversine_km(0.0, 0.0, 0.0, 180.0)
        assert math.isfinite(d)
        assert d == pytest.approx(math.pi * 6371.0, rel=1e-6)

    def test_known_distance(self):
        # Mumbai airport -> Andheri, roughly 3.6 km
        d = haversine_km(19.0896, 72.8656, 19.1176, 72.8490)
        assert 3.0 < d < 5.0


class TestValidatedDistance:
    def test_distance_between_coordinates(self):
        a = Coordinate(12.97, 77.59)
        b = Coordinate(12.98, 77.59)
        assert distance_km(a, b) == pytest.approx(1.11, abs=0.01)

    @pytest.mark.parametrize(
        "lat, lng",
        [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (float("nan"), 0.0), (0.0, float("inf"))],
    )
    def test_out_of_range_rejected(self, lat, lng):
        with pytest.raises(InputError):
            validate_coordinate(lat, lng)

    def test_coordinate_constructor_validates(self):
        with pytest.raises(InputError):
            Coordinate(100.0, 0.0)

    def test_non_numeric_rejected(self):
        with pytest.raises(InputError):
            Coordinate("12.9", 77.5)

    def test_path_length_sums_hops(self):
        a, b, c = Coordinate(0, 0), Coordinate(1, 0), Coordinate(2, 0)
        assert path_length_km([a, b, c]) == pytest.approx(distance_km(a, c), rel=1e-9)

    def test_path_of_one_point_is_zero(self):
        assert path_length_km([Coordinate(0, 0)]) == 0


class TestH3Cell:
    def test_nearby_points_same_cell(self):
        """Two points 100m apart share an H3 res-6 cell."""
        assert driver_cell(12.9700, 77.5900, 6) == driver_cell(12.9701, 77.5901, 6)

    def test_distant_points_different_cell(self):
        assert driver_cell(19.0896, 72.8656, 6) != driver_cell(28.6139, 77.2090, 6)

    def test_disk_covers_points_within_radius(self):
        cells = set(cells_within(12.97, 77.59, 20.0, 6))
        # ~15 km north-east of the centre
        assert driver_cell(13.07, 77.69, 6) in cells
        assert driver_cell(12.97, 77.59, 6) in cells

    def test_disk_excludes_far_points(self):
        cells = set(cells_within(12.97, 77.59, 5.0, 6))
        assert driver_cell(19.0896, 72.8656, 6) not in cells
