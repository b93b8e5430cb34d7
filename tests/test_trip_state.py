"""Unit tests for trip entity state transitions (State Pattern)."""

import pytest

from rescue_dispatch.domain.entities import (
    Coordinate,
    InvalidStateTransition,
    NotedHazard,
    RouteEstimate,
    Trip,
)
from rescue_dispatch.domain.enums import HazardCategory, TripStatus


class TestTripStateMachine:
    def test_initial_status_is_pending(self):
        trip = Trip()
        assert trip.status == TripStatus.PENDING
        assert not trip.is_terminal

    # ── Valid transitions ─────────────────────────────────────────

    def test_pending_to_accepted(self):
        trip = Trip(status=TripStatus.PENDING)
        trip.transition_to(TripStatus.ACCEPTED)
        assert trip.status == TripStatus.ACCEPTED

    def test_pending_to_cancelled(self):
        trip = Trip(status=TripStatus.PENDING)
        trip.transition_to(TripStatus.CANCELLED)
        assert trip.status == TripStatus.CANCELLED
        assert trip.is_terminal

    def test_accepted_back_to_pending(self):
        """A released reservation returns the trip to the search pool."""
        trip = Trip(status=TripStatus.ACCEPTED)
        trip.transition_to(TripStatus.PENDING)
        assert trip.status == TripStatus.PENDING

    def test_full_lifecycle(self):
        trip = Trip()
        for status in (
            TripStatus.ACCEPTED,
            TripStatus.EN_ROUTE,
            TripStatus.ARRIVED,
            TripStatus.IN_PROGRESS,
            TripStatus.COMPLETED,
        ):
            trip.transition_to(status)
        assert trip.status == TripStatus.COMPLETED
        assert trip.is_terminal

    @pytest.mark.parametrize(
        "status",
        [TripStatus.ACCEPTED, TripStatus.EN_ROUTE, TripStatus.ARRIVED, TripStatus.IN_PROGRESS],
    )
    def test_cancel_from_any_non_terminal(self, status):
        trip = Trip(status=status)
        trip.transition_to(TripStatus.CANCELLED)
        assert trip.status == TripStatus.CANCELLED

    # ── Invalid transitions ───────────────────────────────────────

    def test_pending_to_completed_fails(self):
        trip = Trip(status=TripStatus.PENDING)
        with pytest.raises(InvalidStateTransition):
            trip.transition_to(TripStatus.COMPLETED)

    def test_completed_to_anything_fails(self):
        trip = Trip(status=TripStatus.COMPLETED)
        with pytest.raises(InvalidStateTransition):
            trip.transition_to(TripStatus.PENDING)

    def test_cancelled_to_anything_fails(self):
        trip = Trip(status=TripStatus.CANCELLED)
        with pytest.raises(InvalidStateTransition):
            trip.transition_to(TripStatus.CANCELLED)

    def test_en_route_cannot_return_to_pending(self):
        trip = Trip(status=TripStatus.EN_ROUTE)
        with pytest.raises(InvalidStateTransition):
            trip.transition_to(TripStatus.PENDING)


class TestApplyEstimate:
    def test_copies_route_fields(self):
        estimate = RouteEstimate(
            waypoints=(Coordinate(0, 0), Coordinate(0, 1)),
            distance_km=111.19,
            duration_min=167,
            estimated_fare=171.79,
            hazard_zones_noted=(NotedHazard(3, HazardCategory.FIRE, 9),),
            safety_score=8,
        )
        trip = Trip()
        trip.apply_estimate(estimate)
        assert trip.distance_km == 111.19
        assert trip.duration_min == 167
        assert trip.estimated_fare == 171.79
        assert trip.waypoints == [Coordinate(0, 0), Coordinate(0, 1)]
        assert trip.hazard_zones_noted[0].id == 3
        assert trip.safety_score == 8
