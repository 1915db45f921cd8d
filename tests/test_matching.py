"""Unit tests for distance, cost estimates and merge candidate discovery."""

from datetime import date
from types import SimpleNamespace

from fleetops.domain.distance import haversine_km
from fleetops.domain.enums import TripStatus
from fleetops.domain.matching import is_mergeable, merge_candidates, pickup_cell
from fleetops.domain.pricing import PricingEngine

DAY = date(2026, 3, 10)

COLOMBO_FORT = (6.9344, 79.8428)
KANDY = (7.2906, 80.6337)
PERADENIYA = (7.2690, 80.5950)
GALLE = (6.0535, 80.2210)


def trip(trip_id, requester_id, at=None, to=None, **fields):
    at = at or (None, None)
    to = to or (None, None)
    base = dict(
        id=trip_id,
        requester_id=requester_id,
        status=TripStatus.PENDING,
        date=DAY,
        pickup="Colombo Fort",
        destination="Kandy",
        pickup_lat=at[0],
        pickup_lng=at[1],
        destination_lat=to[0],
        destination_lng=to[1],
        distance_km=None,
        master_trip_id=None,
        linked_proposal_trip_id=None,
    )
    base.update(fields)
    return SimpleNamespace(**base)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(*COLOMBO_FORT, *COLOMBO_FORT) == 0.0

    def test_known_distance(self):
        # Colombo Fort to Kandy is roughly 94 km as the crow flies
        assert 85.0 < haversine_km(*COLOMBO_FORT, *KANDY) < 105.0

    def test_symmetric(self):
        d1 = haversine_km(*COLOMBO_FORT, *GALLE)
        d2 = haversine_km(*GALLE, *COLOMBO_FORT)
        assert abs(d1 - d2) < 1e-6


class TestPricingEngine:
    engine = PricingEngine(base_fare=500, rate_per_km=100)

    def test_booked_distance_wins(self):
        t = trip(1, 1, COLOMBO_FORT, KANDY, distance_km=115)
        assert self.engine.estimate_distance(t) == 115.0
        assert self.engine.cost_for(115) == 12_000

    def test_coordinates_fall_back_to_great_circle(self):
        t = trip(1, 1, COLOMBO_FORT, KANDY)
        distance = self.engine.estimate_distance(t)
        assert distance == round(haversine_km(*COLOMBO_FORT, *KANDY), 2)

    def test_unknown_distance_has_no_cost(self):
        t = trip(1, 1)
        assert self.engine.estimate_distance(t) is None
        assert self.engine.cost_for(None) is None


class TestPickupCell:
    def test_nearby_points_same_cell(self):
        a = trip(1, 1, (6.9344, 79.8428))
        b = trip(2, 2, (6.9345, 79.8429))
        assert pickup_cell(a) == pickup_cell(b)

    def test_distant_points_different_cell(self):
        assert pickup_cell(trip(1, 1, COLOMBO_FORT)) != pickup_cell(trip(2, 2, GALLE))

    def test_no_coordinates(self):
        assert pickup_cell(trip(1, 1)) is None


class TestMergeCandidates:
    def test_same_cell_ranked_by_destination_gap(self):
        master = trip(1, 1, COLOMBO_FORT, KANDY)
        near = trip(2, 2, (6.9345, 79.8429), KANDY)
        farther = trip(3, 3, (6.9346, 79.8430), PERADENIYA)
        elsewhere = trip(4, 4, GALLE, KANDY)
        found = merge_candidates(master, [master, farther, elsewhere, near])
        assert [t.id for t in found] == [2, 3]

    def test_excludes_own_trips_other_days_and_busy_trips(self):
        master = trip(1, 1, COLOMBO_FORT, KANDY)
        others = [
            trip(2, 1, COLOMBO_FORT, KANDY),
            trip(3, 2, COLOMBO_FORT, KANDY, date=date(2026, 3, 11)),
            trip(4, 3, COLOMBO_FORT, KANDY, status=TripStatus.IN_PROGRESS),
            trip(5, 4, COLOMBO_FORT, KANDY, master_trip_id=9),
            trip(6, 5, COLOMBO_FORT, KANDY, status=TripStatus.APPROVED),
        ]
        assert [t.id for t in merge_candidates(master, others)] == [6]

    def test_text_match_without_coordinates(self):
        master = trip(1, 1)
        same = trip(2, 2)
        other_route = trip(3, 3, destination="Galle")
        assert [t.id for t in merge_candidates(master, [same, other_route])] == [2]

    def test_mergeable_statuses(self):
        assert is_mergeable(trip(1, 1, status=TripStatus.APPROVED))
        assert not is_mergeable(trip(1, 1, status=TripStatus.REASSIGNED))
        assert not is_mergeable(trip(1, 1, linked_proposal_trip_id=2))
