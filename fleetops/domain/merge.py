"""
Merge-consent protocol.

An admin proposes folding a *candidate* trip into a *master* trip.  The
proposal lives on the master as a sub-object; the two trips link to each
other (``linked_proposal_trip_id`` on the master, ``master_trip_id`` on the
candidate).  Each requester records consent independently:

* ``consent_a``: requester of the master trip
* ``consent_b``: requester of the candidate trip

Once both have accepted, both trips move to ``approved_merge_request`` and
wait for the admin to finalise.  A rejection by either party, at any point
before finalisation, puts the master back where it was and rejects the
candidate.  An accepted consent is never taken back.

Cancelling either trip drops the proposal and puts the other trip back
where it was.

Finalisation retires the candidate as ``merged`` and hands the single
dispatch (proposal vehicle and driver, combined passengers) to the master,
which returns to ``approved`` so it can be executed.

All functions validate every precondition before touching either trip.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Optional

from fleetops.errors import ConsentError, GuardViolation, InvalidStateTransition

from .availability import as_day
from .entities import MergeProposal, load_proposal
from .enums import ConsentState, MERGE_STATUSES, TripEvent, TripStatus
from .lifecycle import TransitionContext, can_transition, transition


def _ensure(trip: Any, event: TripEvent) -> None:
    if not can_transition(trip.status, event):
        raise InvalidStateTransition(trip.status, event)


def _open_proposal(master: Any, candidate: Any) -> MergeProposal:
    proposal = load_proposal(master)
    if (
        proposal is None
        or TripStatus(master.status) not in MERGE_STATUSES
        or master.linked_proposal_trip_id != candidate.id
        or candidate.master_trip_id != master.id
    ):
        raise GuardViolation(
            "There is no open merge proposal between these trips",
            {"master_id": master.id, "candidate_id": candidate.id},
        )
    return proposal


def consent_field(master: Any, candidate: Any, user_id: int) -> str:
    """Return which consent slot *user_id* owns on this proposal."""
    if user_id == master.requester_id:
        return "consent_a"
    if user_id == candidate.requester_id:
        return "consent_b"
    raise ConsentError("Only the two requesters can answer a merge proposal")


def counterpart_of(master: Any, candidate: Any, user_id: int) -> Any:
    """The trip of the *other* requester."""
    return candidate if consent_field(master, candidate, user_id) == "consent_a" else master


def propose(
    master: Any,
    candidate: Any,
    *,
    vehicle_id: int,
    vehicle_number: Optional[str],
    driver_id: int,
    driver_name: Optional[str],
    message: str = "",
    proposed_by: Optional[str] = None,
    ctx: Optional[TransitionContext] = None,
) -> MergeProposal:
    """Attach a proposal to *master* and put both trips on hold."""
    ctx = ctx or TransitionContext()
    if master.id == candidate.id:
        raise GuardViolation("A trip cannot be merged with itself")
    if master.requester_id == candidate.requester_id:
        raise GuardViolation("Both trips belong to the same requester")
    if as_day(master.date) != as_day(candidate.date):
        raise GuardViolation("Only trips on the same date can be merged")
    for trip in (master, candidate):
        if trip.master_trip_id or trip.linked_proposal_trip_id:
            raise GuardViolation(
                f"Trip {trip.serial_number or trip.id} is already part of a merge"
            )
        _ensure(trip, TripEvent.PROPOSE_MERGE)
    if vehicle_id is None or driver_id is None:
        raise GuardViolation("A merge proposal needs a vehicle and a driver")

    proposal = MergeProposal(
        candidate_trip_id=candidate.id,
        vehicle_id=vehicle_id,
        vehicle_number=vehicle_number,
        driver_id=driver_id,
        driver_name=driver_name,
        message=message or "",
        master_previous_status=TripStatus(master.status),
        candidate_previous_status=TripStatus(candidate.status),
        proposed_by=proposed_by,
        proposed_at=ctx.now.isoformat(),
    )
    transition(
        master,
        TripEvent.PROPOSE_MERGE,
        {"merge_proposal": proposal.to_dict(), "linked_proposal_trip_id": candidate.id},
        ctx,
    )
    transition(candidate, TripEvent.PROPOSE_MERGE, {"master_trip_id": master.id}, ctx)
    return proposal


def accept(
    master: Any,
    candidate: Any,
    user_id: int,
    ctx: Optional[TransitionContext] = None,
) -> MergeProposal:
    """Record *user_id*'s acceptance; advance both trips once both agreed."""
    proposal = _open_proposal(master, candidate)
    slot = consent_field(master, candidate, user_id)
    current = getattr(proposal, slot)
    if current == ConsentState.ACCEPTED:
        return proposal
    if current == ConsentState.REJECTED:
        raise ConsentError("This merge proposal was already rejected")

    proposal = dataclasses.replace(proposal, **{slot: ConsentState.ACCEPTED})
    master.merge_proposal = proposal.to_dict()
    if (
        proposal.both_accepted
        and TripStatus(master.status) == TripStatus.AWAITING_MERGE_APPROVAL
    ):
        _ensure(candidate, TripEvent.CONSENTS_RECEIVED)
        payload = {"proposal": proposal}
        transition(master, TripEvent.CONSENTS_RECEIVED, payload, ctx)
        transition(candidate, TripEvent.CONSENTS_RECEIVED, payload, ctx)
    return proposal


def reject(
    master: Any,
    candidate: Any,
    user_id: int,
    reason: str,
    ctx: Optional[TransitionContext] = None,
) -> MergeProposal:
    """Either requester may refuse; both trips leave the merge path."""
    reason = (reason or "").strip()
    if not reason:
        raise GuardViolation("A reason is required to reject a merge")
    proposal = _open_proposal(master, candidate)
    slot = consent_field(master, candidate, user_id)
    _ensure(candidate, TripEvent.DECLINE_MERGE)

    proposal = dataclasses.replace(
        proposal,
        **{slot: ConsentState.REJECTED},
        rejected_by=user_id,
        rejection_reason=reason,
    )
    transition(
        master,
        TripEvent.REVERT_MERGE,
        {
            "restore_status": proposal.master_previous_status,
            "merge_proposal": proposal.to_dict(),
            "linked_proposal_trip_id": None,
        },
        ctx,
    )
    transition(
        candidate,
        TripEvent.DECLINE_MERGE,
        {"merge_rejection_reason": reason},
        ctx,
    )
    return proposal


def withdraw(
    master: Any,
    candidate: Any,
    cancelled: Any,
    reason: str,
    ctx: Optional[TransitionContext] = None,
) -> Any:
    """
    Cancel *cancelled*, one trip of an open proposal, and put the other
    trip back in the status it had before the proposal.  Returns that trip.
    """
    proposal = _open_proposal(master, candidate)
    if cancelled.id == master.id:
        other, restore, unlink = candidate, proposal.candidate_previous_status, "master_trip_id"
    elif cancelled.id == candidate.id:
        other, restore, unlink = master, proposal.master_previous_status, "linked_proposal_trip_id"
    else:
        raise GuardViolation("The trip is not part of this merge proposal")
    _ensure(other, TripEvent.REVERT_MERGE)

    proposal = dataclasses.replace(proposal, rejection_reason=(reason or "").strip() or None)
    transition(cancelled, TripEvent.CANCEL, {"cancel_reason": reason}, ctx)
    revert = {"restore_status": restore, unlink: None}
    if other is master:
        revert["merge_proposal"] = proposal.to_dict()
    transition(other, TripEvent.REVERT_MERGE, revert, ctx)
    return other


def finalize(
    master: Any,
    candidate: Any,
    ctx: Optional[TransitionContext] = None,
) -> MergeProposal:
    """Admin confirmation: candidate becomes ``merged``, master dispatches."""
    ctx = ctx or TransitionContext()
    proposal = _open_proposal(master, candidate)
    if not proposal.both_accepted:
        raise GuardViolation("Both requesters must accept before finalising")
    _ensure(master, TripEvent.DISPATCH_MERGE)
    _ensure(candidate, TripEvent.FINALIZE_MERGE)

    # The candidate stops claiming anything once merged.
    master_ctx = dataclasses.replace(
        ctx, fleet_trips=[t for t in ctx.fleet_trips if t.id != candidate.id]
    )
    transition(
        master,
        TripEvent.DISPATCH_MERGE,
        {
            "proposal": proposal,
            "vehicle_id": proposal.vehicle_id,
            "vehicle_number": proposal.vehicle_number,
            "driver_id": proposal.driver_id,
            "driver_name": proposal.driver_name,
            "passengers": (master.passengers or 0) + (candidate.passengers or 0),
        },
        master_ctx,
    )
    transition(
        candidate,
        TripEvent.FINALIZE_MERGE,
        {"proposal": proposal, "merged_into_trip_id": master.id},
        ctx,
    )
    return proposal
