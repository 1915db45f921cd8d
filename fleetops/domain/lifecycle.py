"""
Trip lifecycle state machine.

The legal transitions are held as data in ``TRANSITIONS``: each entry maps a
set of source statuses and an event to a target status, with an optional
guard (raises ``GuardViolation``) and an optional effect (writes the event
payload onto the trip).  Every mutation path, whether admin, driver or the
merge protocol, goes through ``transition()``, so an illegal move is
rejected the same way no matter which screen asked for it.

    pending ──approve──▶ approved ──start──▶ in-progress ──complete──▶ completed
       │                   │  ▲                   │
     reject             reassign│              report_breakdown
       ▼                   ▼  │                   ▼
    rejected           reassigned ◀──reassign── broken-down

Guards run before any field is touched, so a failed guard leaves the trip
exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Sequence

from fleetops.errors import GuardViolation, InvalidStateTransition

from .availability import (
    as_day,
    driver_conflicts,
    is_license_qualified,
    resolve_vehicle_status,
    vehicle_conflicts,
)
from .entities import MergeProposal
from .enums import (
    BreakdownReason,
    EffectiveVehicleStatus,
    MERGE_STATUSES,
    TripEvent,
    TripStatus,
)

logger = logging.getLogger(__name__)

Payload = dict[str, Any]


@dataclass
class TransitionContext:
    """Outside state a guard may consult; all of it is optional."""

    today: date = field(default_factory=date.today)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    vehicle: Any = None
    driver: Any = None
    fleet_trips: Sequence[Any] = ()


Guard = Callable[[Any, Payload, TransitionContext], None]
Effect = Callable[[Any, Payload, TransitionContext], None]


@dataclass(frozen=True)
class Transition:
    sources: frozenset[TripStatus]
    event: TripEvent
    target: Optional[TripStatus] = None
    guard: Optional[Guard] = None
    effect: Optional[Effect] = None
    # Used when the target depends on the payload (merge reverts).
    target_from: Optional[Callable[[Any, Payload], TripStatus]] = None


# ── Helpers ───────────────────────────────────────────────────────────


def route_stops(trip: Any) -> list[str]:
    """Pickup, intermediate stops and destination in travel order."""
    stops = [trip.pickup]
    stops.extend(trip.stops or [])
    stops.append(trip.destination)
    return [s for s in stops if s]


def _number(payload: Payload, key: str, label: str) -> float:
    value = payload.get(key)
    if value is None or value == "":
        raise GuardViolation(f"{label} is required", {"field": key})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise GuardViolation(f"{label} must be a number", {"field": key})
    if number < 0:
        raise GuardViolation(f"{label} cannot be negative", {"field": key})
    return number


def _text(payload: Payload, key: str, label: str) -> str:
    value = (payload.get(key) or "").strip()
    if not value:
        raise GuardViolation(f"{label} is required", {"field": key})
    return value


def _proposal(payload: Payload) -> MergeProposal:
    proposal = payload.get("proposal")
    if not isinstance(proposal, MergeProposal):
        raise GuardViolation("Merge proposal is missing")
    return proposal


def _copy(*keys: str) -> Effect:
    def effect(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
        for key in keys:
            if key in payload:
                setattr(trip, key, payload[key])

    return effect


# ── Guards ────────────────────────────────────────────────────────────


def _check_assets(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    vehicle_id = payload.get("vehicle_id", trip.vehicle_id)
    driver_id = payload.get("driver_id", trip.driver_id)
    if vehicle_id is None or driver_id is None:
        raise GuardViolation("A vehicle and a driver must be assigned first")

    on_date = as_day(trip.date) or ctx.today
    vehicle, driver = ctx.vehicle, ctx.driver

    if vehicle is not None:
        effective = resolve_vehicle_status(
            vehicle, [t for t in ctx.fleet_trips if t.id != trip.id], ctx.today
        )
        if effective == EffectiveVehicleStatus.IN_MAINTENANCE:
            raise GuardViolation(
                f"Vehicle {vehicle.number} is in maintenance",
                {"vehicle_id": vehicle.id},
            )
        clashes = vehicle_conflicts(
            vehicle, ctx.fleet_trips, on_date, ctx.today, exclude_trip_id=trip.id
        )
        if clashes:
            raise GuardViolation(
                f"Vehicle {vehicle.number} is already booked on {on_date}",
                {"vehicle_id": vehicle.id, "trip_ids": [t.id for t in clashes]},
            )

    if driver is not None:
        if driver.current_trip_id is not None and driver.current_trip_id != trip.id:
            raise GuardViolation(
                f"Driver {driver.name} is on another trip",
                {"driver_id": driver.id, "trip_id": driver.current_trip_id},
            )
        clashes = driver_conflicts(
            driver.id, ctx.fleet_trips, on_date, ctx.today, exclude_trip_id=trip.id
        )
        if clashes:
            raise GuardViolation(
                f"Driver {driver.name} already has a trip on {on_date}",
                {"driver_id": driver.id, "trip_ids": [t.id for t in clashes]},
            )

    if vehicle is not None and driver is not None:
        if not is_license_qualified(driver.license_type, vehicle.required_license):
            raise GuardViolation(
                f"Driver {driver.name} is not licensed for vehicle {vehicle.number}"
            )


def _guard_reject(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    _text(payload, "rejection_reason", "Rejection reason")


def _guard_handoff(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    if payload.get("reassigned_trip_id") is None:
        raise GuardViolation("The replacement trip is missing")


def _refuse_handed_off(trip: Any) -> None:
    if trip.reassigned_trip_id:
        raise GuardViolation(
            f"Trip {trip.serial_number or trip.id} was handed to another trip",
            {"reassigned_trip_id": trip.reassigned_trip_id},
        )


def _guard_cancel(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    _refuse_handed_off(trip)
    _text(payload, "cancel_reason", "Cancellation reason")


def _guard_start(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    _refuse_handed_off(trip)
    _number(payload, "odometer_start", "Start odometer reading")
    trip_day = as_day(trip.date)
    if trip_day is not None and trip_day > ctx.today:
        raise GuardViolation(
            f"Trip is scheduled for {trip_day} and cannot start yet",
            {"date": str(trip_day)},
        )
    driver_id = payload.get("driver_id")
    if driver_id is not None and driver_id != trip.driver_id:
        raise GuardViolation("Only the assigned driver can start this trip")


def _guard_complete(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    end = _number(payload, "odometer_end", "End odometer reading")
    if trip.odometer_start is None:
        raise GuardViolation("Trip has no start odometer reading")
    if end < float(trip.odometer_start):
        raise GuardViolation(
            "End odometer reading cannot be less than the start reading",
            {"odometer_start": trip.odometer_start, "odometer_end": end},
        )


def _guard_breakdown(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    odometer = _number(payload, "breakdown_odometer", "Breakdown odometer reading")
    if trip.odometer_start is not None and odometer < float(trip.odometer_start):
        raise GuardViolation(
            "Breakdown odometer reading cannot be less than the start reading"
        )
    reason = _text(payload, "breakdown_reason", "Breakdown reason")
    if reason not in {r.value for r in BreakdownReason}:
        raise GuardViolation(
            f"Unknown breakdown reason '{reason}'", {"field": "breakdown_reason"}
        )
    stop = _text(payload, "last_visited_stop", "Last visited stop")
    if stop not in route_stops(trip):
        raise GuardViolation(
            f"'{stop}' is not a stop on this trip", {"field": "last_visited_stop"}
        )
    _text(payload, "breakdown_location", "Breakdown location")


def _guard_consents(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    if not _proposal(payload).both_accepted:
        raise GuardViolation("Both requesters must accept the merge first")


def _guard_decline(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    _text(payload, "merge_rejection_reason", "Rejection reason")


def _guard_dispatch(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    _guard_consents(trip, payload, ctx)
    _check_assets(trip, payload, ctx)


def _restore_status(trip: Any, payload: Payload) -> TripStatus:
    status = TripStatus(payload.get("restore_status", TripStatus.PENDING))
    if status not in (TripStatus.PENDING, TripStatus.APPROVED):
        raise GuardViolation(f"Cannot restore a merged-away trip to {status.value}")
    return status


# ── Effects ───────────────────────────────────────────────────────────

_assign_pair = _copy(
    "vehicle_id", "vehicle_number", "driver_id", "driver_name", "distance_km", "cost"
)


def _effect_start(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    trip.odometer_start = float(payload["odometer_start"])
    trip.started_at = ctx.now


def _effect_complete(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    trip.odometer_end = float(payload["odometer_end"])
    trip.km_run = trip.odometer_end - float(trip.odometer_start)
    trip.completed_at = ctx.now


def _effect_breakdown(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    trip.breakdown_odometer = float(payload["breakdown_odometer"])
    trip.breakdown_reason = payload["breakdown_reason"].strip()
    trip.last_visited_stop = payload["last_visited_stop"].strip()
    trip.breakdown_location = payload["breakdown_location"].strip()
    trip.breakdown_lat = payload.get("breakdown_lat")
    trip.breakdown_lng = payload.get("breakdown_lng")
    trip.breakdown_at = ctx.now
    trip.needs_reassignment = True


def _effect_cancel(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    trip.cancel_reason = payload["cancel_reason"].strip()


def _effect_handoff(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    trip.reassigned_trip_id = payload["reassigned_trip_id"]
    trip.needs_reassignment = False


def _effect_decline(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    reason = payload["merge_rejection_reason"].strip()
    trip.merge_rejection_reason = reason
    trip.rejection_reason = reason


def _effect_absorbed(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    trip.merged_into_trip_id = payload["merged_into_trip_id"]
    trip.vehicle_id = None
    trip.vehicle_number = None
    trip.driver_id = None
    trip.driver_name = None


def _effect_dispatch(trip: Any, payload: Payload, ctx: TransitionContext) -> None:
    _assign_pair(trip, payload, ctx)
    if "passengers" in payload:
        trip.passengers = payload["passengers"]


# ── Transition table ──────────────────────────────────────────────────

S = TripStatus
E = TripEvent

TRANSITIONS: tuple[Transition, ...] = (
    Transition(frozenset({S.PENDING}), E.APPROVE, S.APPROVED, _check_assets, _assign_pair),
    Transition(frozenset({S.PENDING}), E.REJECT, S.REJECTED, _guard_reject, _copy("rejection_reason")),
    Transition(
        frozenset({S.PENDING, S.APPROVED, S.REASSIGNED}) | MERGE_STATUSES,
        E.CANCEL,
        S.CANCELLED,
        _guard_cancel,
        _effect_cancel,
    ),
    Transition(frozenset({S.APPROVED}), E.REASSIGN, S.REASSIGNED, _check_assets, _assign_pair),
    Transition(frozenset({S.BROKEN_DOWN}), E.REASSIGN, S.REASSIGNED, _guard_handoff, _effect_handoff),
    Transition(frozenset({S.APPROVED, S.REASSIGNED}), E.START, S.IN_PROGRESS, _guard_start, _effect_start),
    Transition(frozenset({S.IN_PROGRESS}), E.COMPLETE, S.COMPLETED, _guard_complete, _effect_complete),
    Transition(frozenset({S.IN_PROGRESS}), E.REPORT_BREAKDOWN, S.BROKEN_DOWN, _guard_breakdown, _effect_breakdown),
    Transition(
        frozenset({S.PENDING, S.APPROVED}),
        E.PROPOSE_MERGE,
        S.AWAITING_MERGE_APPROVAL,
        None,
        _copy("merge_proposal", "linked_proposal_trip_id", "master_trip_id"),
    ),
    Transition(frozenset({S.AWAITING_MERGE_APPROVAL}), E.CONSENTS_RECEIVED, S.APPROVED_MERGE_REQUEST, _guard_consents),
    Transition(
        MERGE_STATUSES,
        E.REVERT_MERGE,
        None,
        None,
        _copy("merge_proposal", "linked_proposal_trip_id", "master_trip_id"),
        target_from=_restore_status,
    ),
    Transition(MERGE_STATUSES, E.DECLINE_MERGE, S.REJECTED, _guard_decline, _effect_decline),
    Transition(frozenset({S.APPROVED_MERGE_REQUEST}), E.FINALIZE_MERGE, S.MERGED, _guard_consents, _effect_absorbed),
    Transition(frozenset({S.APPROVED_MERGE_REQUEST}), E.DISPATCH_MERGE, S.APPROVED, _guard_dispatch, _effect_dispatch),
)

_TABLE: dict[tuple[TripStatus, TripEvent], Transition] = {
    (source, rule.event): rule for rule in TRANSITIONS for source in rule.sources
}


# ── Public API ────────────────────────────────────────────────────────


def can_transition(status: Any, event: Any) -> bool:
    return (TripStatus(status), TripEvent(event)) in _TABLE


def allowed_events(status: Any) -> list[TripEvent]:
    status = TripStatus(status)
    return [event for (source, event) in _TABLE if source == status]


def transition(
    trip: Any,
    event: Any,
    payload: Optional[Payload] = None,
    ctx: Optional[TransitionContext] = None,
) -> TripStatus:
    """
    Apply *event* to *trip* and return its new status.

    Raises ``InvalidStateTransition`` when the table has no entry for the
    trip's current status and the event, and ``GuardViolation`` when the
    entry's guard rejects the payload.  In both cases the trip is untouched.
    """
    current = TripStatus(trip.status)
    event = TripEvent(event)
    payload = payload or {}
    ctx = ctx or TransitionContext()

    rule = _TABLE.get((current, event))
    if rule is None:
        raise InvalidStateTransition(current, event)

    if rule.guard is not None:
        rule.guard(trip, payload, ctx)
    target = rule.target if rule.target is not None else rule.target_from(trip, payload)
    if rule.effect is not None:
        rule.effect(trip, payload, ctx)

    trip.status = target
    logger.info(
        "Trip %s: %s --%s--> %s",
        trip.serial_number or trip.id,
        current.value,
        event.value,
        target.value,
    )
    return target
