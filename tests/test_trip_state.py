"""Unit tests for the trip lifecycle state machine."""

from datetime import date, timedelta

import pytest

from fleetops.domain.entities import Trip, User, Vehicle
from fleetops.domain.enums import (
    TERMINAL_STATUSES,
    LicenseClass,
    TripEvent,
    TripStatus,
    UserRole,
    VehicleStatus,
)
from fleetops.domain.lifecycle import (
    TransitionContext,
    allowed_events,
    can_transition,
    route_stops,
    transition,
)
from fleetops.errors import GuardViolation, InvalidStateTransition

TODAY = date(2026, 3, 10)

PAIR = {
    "vehicle_id": 10,
    "vehicle_number": "CAB-9",
    "driver_id": 20,
    "driver_name": "Bob",
}


def _trip(**fields) -> Trip:
    defaults = dict(
        id=1,
        serial_number="TRP-010",
        requester_id=1,
        pickup="Colombo",
        destination="Kandy",
        stops=["Kadawatha", "Kegalle"],
        date=TODAY,
    )
    defaults.update(fields)
    return Trip(**defaults)


def _vehicle(**fields) -> Vehicle:
    return Vehicle(**{"id": 10, "number": "CAB-9", **fields})


def _driver(**fields) -> User:
    defaults = {"id": 20, "name": "Bob", "role": UserRole.DRIVER, "license_type": LicenseClass.B}
    defaults.update(fields)
    return User(**defaults)


def _ctx(**fields) -> TransitionContext:
    fields.setdefault("vehicle", _vehicle())
    fields.setdefault("driver", _driver())
    return TransitionContext(today=TODAY, **fields)


class TestApproval:
    def test_pending_to_approved_copies_pair(self):
        trip = _trip()
        assert transition(trip, TripEvent.APPROVE, PAIR, _ctx()) == TripStatus.APPROVED
        assert trip.status == TripStatus.APPROVED
        assert (trip.vehicle_number, trip.driver_name) == ("CAB-9", "Bob")

    def test_approve_without_pair_fails(self):
        trip = _trip()
        with pytest.raises(GuardViolation):
            transition(trip, TripEvent.APPROVE, {}, TransitionContext(today=TODAY))
        assert trip.status == TripStatus.PENDING

    def test_vehicle_in_maintenance_blocks_approval(self):
        trip = _trip()
        ctx = _ctx(vehicle=_vehicle(status=VehicleStatus.IN_MAINTENANCE))
        with pytest.raises(GuardViolation, match="maintenance"):
            transition(trip, TripEvent.APPROVE, PAIR, ctx)
        assert trip.vehicle_id is None

    def test_vehicle_booked_same_day_blocks_approval(self):
        other = _trip(id=2, status=TripStatus.APPROVED, vehicle_id=10, driver_id=21)
        with pytest.raises(GuardViolation, match="already booked"):
            transition(_trip(), TripEvent.APPROVE, PAIR, _ctx(fleet_trips=[other]))

    def test_trip_held_for_merge_keeps_its_vehicle(self):
        held = _trip(id=2, status=TripStatus.AWAITING_MERGE_APPROVAL, vehicle_id=10, driver_id=21)
        with pytest.raises(GuardViolation, match="already booked"):
            transition(_trip(), TripEvent.APPROVE, PAIR, _ctx(fleet_trips=[held]))

    def test_merge_candidate_without_pair_blocks_nothing(self):
        candidate = _trip(id=2, status=TripStatus.AWAITING_MERGE_APPROVAL, master_trip_id=3)
        trip = _trip()
        transition(trip, TripEvent.APPROVE, PAIR, _ctx(fleet_trips=[candidate]))
        assert trip.status == TripStatus.APPROVED

    def test_vehicle_booked_other_day_is_fine(self):
        other = _trip(
            id=2,
            status=TripStatus.APPROVED,
            vehicle_id=10,
            driver_id=21,
            date=TODAY + timedelta(days=1),
        )
        trip = _trip()
        transition(trip, TripEvent.APPROVE, PAIR, _ctx(fleet_trips=[other]))
        assert trip.status == TripStatus.APPROVED

    def test_plate_reference_counts_as_booking(self):
        other = _trip(id=2, status=TripStatus.REASSIGNED, vehicle_number=" cab-9")
        with pytest.raises(GuardViolation):
            transition(_trip(), TripEvent.APPROVE, PAIR, _ctx(fleet_trips=[other]))

    def test_driver_on_other_trip_blocks_approval(self):
        with pytest.raises(GuardViolation, match="another trip"):
            transition(
                _trip(), TripEvent.APPROVE, PAIR, _ctx(driver=_driver(current_trip_id=99))
            )

    def test_unqualified_licence_blocks_approval(self):
        ctx = _ctx(vehicle=_vehicle(required_license=LicenseClass.D))
        with pytest.raises(GuardViolation, match="not licensed"):
            transition(_trip(), TripEvent.APPROVE, PAIR, ctx)

    def test_reject_needs_reason(self):
        trip = _trip()
        with pytest.raises(GuardViolation):
            transition(trip, TripEvent.REJECT, {"rejection_reason": "  "})
        transition(trip, TripEvent.REJECT, {"rejection_reason": "No vehicles"})
        assert trip.status == TripStatus.REJECTED
        assert trip.rejection_reason == "No vehicles"

    def test_approved_trip_can_be_reassigned(self):
        trip = _trip(status=TripStatus.APPROVED, **PAIR)
        new_pair = {**PAIR, "vehicle_id": 11, "vehicle_number": "KX-4455"}
        transition(trip, TripEvent.REASSIGN, new_pair, _ctx(vehicle=_vehicle(id=11, number="KX-4455")))
        assert trip.status == TripStatus.REASSIGNED
        assert trip.vehicle_id == 11


class TestExecution:
    def test_start_records_odometer(self):
        trip = _trip(status=TripStatus.APPROVED, **PAIR)
        transition(trip, TripEvent.START, {"odometer_start": 1000}, _ctx())
        assert trip.status == TripStatus.IN_PROGRESS
        assert trip.odometer_start == 1000.0
        assert trip.started_at is not None

    def test_cannot_start_before_trip_date(self):
        trip = _trip(status=TripStatus.APPROVED, date=TODAY + timedelta(days=2), **PAIR)
        with pytest.raises(GuardViolation, match="cannot start yet"):
            transition(trip, TripEvent.START, {"odometer_start": 1000}, _ctx())
        assert trip.status == TripStatus.APPROVED

    def test_only_assigned_driver_can_start(self):
        trip = _trip(status=TripStatus.APPROVED, **PAIR)
        with pytest.raises(GuardViolation):
            transition(trip, TripEvent.START, {"odometer_start": 1, "driver_id": 99}, _ctx())

    def test_complete_computes_km_run(self):
        trip = _trip(status=TripStatus.IN_PROGRESS, odometer_start=1000, **PAIR)
        transition(trip, TripEvent.COMPLETE, {"odometer_end": 1150})
        assert trip.status == TripStatus.COMPLETED
        assert trip.km_run == 150.0

    def test_end_reading_below_start_is_rejected(self):
        trip = _trip(status=TripStatus.IN_PROGRESS, odometer_start=1000, **PAIR)
        with pytest.raises(GuardViolation, match="less than the start"):
            transition(trip, TripEvent.COMPLETE, {"odometer_end": 999})
        assert trip.status == TripStatus.IN_PROGRESS
        assert trip.odometer_end is None

    @pytest.mark.parametrize("value", [None, "", "abc", -5])
    def test_odometer_must_be_a_positive_number(self, value):
        trip = _trip(status=TripStatus.IN_PROGRESS, odometer_start=0, **PAIR)
        with pytest.raises(GuardViolation):
            transition(trip, TripEvent.COMPLETE, {"odometer_end": value})

    def test_breakdown_flags_trip_for_reassignment(self):
        trip = _trip(status=TripStatus.IN_PROGRESS, odometer_start=400, **PAIR)
        transition(
            trip,
            TripEvent.REPORT_BREAKDOWN,
            {
                "breakdown_odometer": 500,
                "breakdown_reason": "tire",
                "last_visited_stop": "Kadawatha",
                "breakdown_location": "Nittambuwa junction",
            },
        )
        assert trip.status == TripStatus.BROKEN_DOWN
        assert trip.needs_reassignment is True
        assert trip.breakdown_odometer == 500.0
        assert trip.breakdown_location == "Nittambuwa junction"

    @pytest.mark.parametrize(
        "override",
        [
            {"breakdown_reason": "aliens"},
            {"last_visited_stop": "Galle"},
            {"breakdown_location": ""},
            {"breakdown_odometer": 100},
        ],
    )
    def test_breakdown_report_is_validated(self, override):
        trip = _trip(status=TripStatus.IN_PROGRESS, odometer_start=400, **PAIR)
        report = {
            "breakdown_odometer": 500,
            "breakdown_reason": "mechanical",
            "last_visited_stop": "Colombo",
            "breakdown_location": "Kiribathgoda",
            **override,
        }
        with pytest.raises(GuardViolation):
            transition(trip, TripEvent.REPORT_BREAKDOWN, report)
        assert trip.status == TripStatus.IN_PROGRESS
        assert trip.needs_reassignment is False

    def test_in_progress_trip_cannot_be_cancelled(self):
        trip = _trip(status=TripStatus.IN_PROGRESS)
        with pytest.raises(InvalidStateTransition):
            transition(trip, TripEvent.CANCEL, {"cancel_reason": "late"})
        assert trip.status == TripStatus.IN_PROGRESS

    @pytest.mark.parametrize(
        "event, payload",
        [
            (TripEvent.START, {"odometer_start": 600}),
            (TripEvent.CANCEL, {"cancel_reason": "Passenger left"}),
        ],
    )
    def test_handed_off_trip_stays_closed(self, event, payload):
        trip = _trip(
            status=TripStatus.REASSIGNED,
            reassigned_trip_id=2,
            odometer_start=400,
            breakdown_odometer=500,
            **PAIR,
        )
        with pytest.raises(GuardViolation, match="handed to another trip"):
            transition(trip, event, payload, _ctx())
        assert trip.status == TripStatus.REASSIGNED
        assert trip.odometer_start == 400
        assert trip.cancel_reason is None

    def test_reassigned_trip_with_new_pair_can_still_start(self):
        trip = _trip(status=TripStatus.REASSIGNED, **PAIR)
        transition(trip, TripEvent.START, {"odometer_start": 100}, _ctx())
        assert trip.status == TripStatus.IN_PROGRESS

    def test_cancel_needs_reason(self):
        trip = _trip(status=TripStatus.APPROVED, **PAIR)
        with pytest.raises(GuardViolation):
            transition(trip, TripEvent.CANCEL, {"cancel_reason": "  "})
        assert trip.status == TripStatus.APPROVED
        transition(trip, TripEvent.CANCEL, {"cancel_reason": " Meeting moved "})
        assert trip.status == TripStatus.CANCELLED
        assert trip.cancel_reason == "Meeting moved"

    @pytest.mark.parametrize(
        "status", [TripStatus.AWAITING_MERGE_APPROVAL, TripStatus.APPROVED_MERGE_REQUEST]
    )
    def test_trip_in_merge_can_be_cancelled(self, status):
        assert can_transition(status, TripEvent.CANCEL)


class TestTransitionTable:
    def test_pending_cannot_complete(self):
        trip = _trip()
        with pytest.raises(InvalidStateTransition):
            transition(trip, TripEvent.COMPLETE, {"odometer_end": 10})
        assert trip.status == TripStatus.PENDING

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_way_out(self, status):
        assert allowed_events(status) == []

    def test_can_transition_reads_the_table(self):
        assert can_transition("pending", "approve")
        assert not can_transition(TripStatus.PENDING, TripEvent.COMPLETE)

    def test_broken_down_hand_off_needs_replacement(self):
        trip = _trip(status=TripStatus.BROKEN_DOWN, needs_reassignment=True)
        with pytest.raises(GuardViolation):
            transition(trip, TripEvent.REASSIGN, {})
        transition(trip, TripEvent.REASSIGN, {"reassigned_trip_id": 7})
        assert trip.status == TripStatus.REASSIGNED
        assert trip.reassigned_trip_id == 7
        assert trip.needs_reassignment is False

    def test_route_runs_pickup_stops_destination(self):
        assert route_stops(_trip()) == ["Colombo", "Kadawatha", "Kegalle", "Kandy"]
