"""Unit tests for the merge-consent protocol."""

from datetime import date, timedelta

import pytest

from fleetops.domain import merge
from fleetops.domain.entities import Trip, User, Vehicle, load_proposal
from fleetops.domain.enums import (
    ConsentState,
    LicenseClass,
    TripStatus,
    UserRole,
)
from fleetops.domain.lifecycle import TransitionContext
from fleetops.errors import ConsentError, GuardViolation, InvalidStateTransition

TODAY = date(2026, 3, 10)
ALICE, BOB, CAROL = 1, 2, 3


def _pair(master_status=TripStatus.APPROVED, candidate_status=TripStatus.PENDING):
    master = Trip(
        id=20,
        serial_number="TRP-020",
        requester_id=ALICE,
        requester_email="alice@example.com",
        pickup="Colombo",
        destination="Kandy",
        date=TODAY,
        passengers=2,
        status=master_status,
    )
    candidate = Trip(
        id=21,
        serial_number="TRP-021",
        requester_id=BOB,
        requester_email="bob@example.com",
        pickup="Colombo",
        destination="Kandy",
        date=TODAY,
        passengers=3,
        status=candidate_status,
    )
    return master, candidate


def _propose(master, candidate):
    return merge.propose(
        master,
        candidate,
        vehicle_id=10,
        vehicle_number="KX-4455",
        driver_id=30,
        driver_name="Nimal",
        message="Same route, same morning",
        ctx=TransitionContext(today=TODAY),
    )


def _ctx():
    return TransitionContext(
        today=TODAY,
        vehicle=Vehicle(id=10, number="KX-4455", seats=14, required_license=LicenseClass.D),
        driver=User(id=30, name="Nimal", role=UserRole.DRIVER, license_type=LicenseClass.D),
    )


class TestProposal:
    def test_propose_puts_both_trips_on_hold(self):
        master, candidate = _pair()
        proposal = _propose(master, candidate)

        assert master.status == TripStatus.AWAITING_MERGE_APPROVAL
        assert candidate.status == TripStatus.AWAITING_MERGE_APPROVAL
        assert master.linked_proposal_trip_id == 21
        assert candidate.master_trip_id == 20
        assert proposal.master_previous_status == TripStatus.APPROVED
        assert load_proposal(master) == proposal

    def test_same_requester_cannot_merge(self):
        master, candidate = _pair()
        candidate.requester_id = ALICE
        with pytest.raises(GuardViolation):
            _propose(master, candidate)
        assert master.status == TripStatus.APPROVED

    def test_different_dates_cannot_merge(self):
        master, candidate = _pair()
        candidate.date = TODAY + timedelta(days=1)
        with pytest.raises(GuardViolation):
            _propose(master, candidate)

    def test_in_progress_trip_cannot_be_proposed(self):
        master, candidate = _pair(candidate_status=TripStatus.IN_PROGRESS)
        with pytest.raises(InvalidStateTransition):
            _propose(master, candidate)
        assert master.status == TripStatus.APPROVED
        assert master.merge_proposal is None


class TestConsent:
    def test_one_acceptance_is_not_enough(self):
        master, candidate = _pair()
        _propose(master, candidate)
        proposal = merge.accept(master, candidate, ALICE)
        assert proposal.consent_a == ConsentState.ACCEPTED
        assert proposal.consent_b == ConsentState.PENDING
        assert master.status == TripStatus.AWAITING_MERGE_APPROVAL

    def test_both_acceptances_advance_both_trips(self):
        master, candidate = _pair()
        _propose(master, candidate)
        merge.accept(master, candidate, BOB)
        merge.accept(master, candidate, ALICE)
        assert master.status == TripStatus.APPROVED_MERGE_REQUEST
        assert candidate.status == TripStatus.APPROVED_MERGE_REQUEST

    def test_accepting_twice_is_harmless(self):
        master, candidate = _pair()
        _propose(master, candidate)
        merge.accept(master, candidate, ALICE)
        proposal = merge.accept(master, candidate, ALICE)
        assert proposal.consent_a == ConsentState.ACCEPTED
        assert master.status == TripStatus.AWAITING_MERGE_APPROVAL

    def test_outsider_cannot_answer(self):
        master, candidate = _pair()
        _propose(master, candidate)
        with pytest.raises(ConsentError):
            merge.accept(master, candidate, CAROL)

    def test_rejection_reverts_master_and_rejects_candidate(self):
        master, candidate = _pair()
        _propose(master, candidate)
        merge.accept(master, candidate, ALICE)

        proposal = merge.reject(master, candidate, BOB, "schedule conflict")

        assert master.status == TripStatus.APPROVED
        assert master.linked_proposal_trip_id is None
        assert candidate.status == TripStatus.REJECTED
        assert candidate.merge_rejection_reason == "schedule conflict"
        assert proposal.consent_b == ConsentState.REJECTED
        assert proposal.rejected_by == BOB
        assert merge.counterpart_of(master, candidate, BOB) is master

    def test_rejection_after_both_accepted_still_reverts(self):
        master, candidate = _pair(master_status=TripStatus.PENDING)
        _propose(master, candidate)
        merge.accept(master, candidate, ALICE)
        merge.accept(master, candidate, BOB)

        merge.reject(master, candidate, ALICE, "changed plans")

        assert master.status == TripStatus.PENDING
        assert candidate.status == TripStatus.REJECTED

    def test_rejection_needs_reason(self):
        master, candidate = _pair()
        _propose(master, candidate)
        with pytest.raises(GuardViolation):
            merge.reject(master, candidate, BOB, "   ")
        assert candidate.status == TripStatus.AWAITING_MERGE_APPROVAL

    def test_rejected_consent_cannot_be_flipped(self):
        master, candidate = _pair()
        _propose(master, candidate)
        merge.reject(master, candidate, BOB, "no")
        with pytest.raises(GuardViolation):
            merge.accept(master, candidate, BOB)


class TestWithdrawal:
    def test_cancelling_candidate_restores_master(self):
        master, candidate = _pair()
        _propose(master, candidate)
        merge.accept(master, candidate, ALICE)

        other = merge.withdraw(master, candidate, candidate, "Flight cancelled")

        assert other is master
        assert candidate.status == TripStatus.CANCELLED
        assert candidate.cancel_reason == "Flight cancelled"
        assert master.status == TripStatus.APPROVED
        assert master.linked_proposal_trip_id is None
        assert load_proposal(master).rejection_reason == "Flight cancelled"

    def test_cancelling_master_restores_candidate(self):
        master, candidate = _pair(master_status=TripStatus.PENDING)
        _propose(master, candidate)
        merge.accept(master, candidate, ALICE)
        merge.accept(master, candidate, BOB)

        other = merge.withdraw(master, candidate, master, "Meeting moved")

        assert other is candidate
        assert master.status == TripStatus.CANCELLED
        assert candidate.status == TripStatus.PENDING
        assert candidate.master_trip_id is None

    def test_withdrawal_needs_reason(self):
        master, candidate = _pair()
        _propose(master, candidate)
        with pytest.raises(GuardViolation):
            merge.withdraw(master, candidate, candidate, "")
        assert candidate.status == TripStatus.AWAITING_MERGE_APPROVAL
        assert master.status == TripStatus.AWAITING_MERGE_APPROVAL
        assert master.linked_proposal_trip_id == 21

    def test_outside_trip_cannot_withdraw(self):
        master, candidate = _pair()
        _propose(master, candidate)
        outsider = Trip(id=99, requester_id=CAROL, status=TripStatus.PENDING)
        with pytest.raises(GuardViolation):
            merge.withdraw(master, candidate, outsider, "no")
        assert master.status == TripStatus.AWAITING_MERGE_APPROVAL


class TestFinalize:
    def test_finalize_needs_both_consents(self):
        master, candidate = _pair()
        _propose(master, candidate)
        merge.accept(master, candidate, ALICE)
        with pytest.raises(GuardViolation):
            merge.finalize(master, candidate, _ctx())
        assert candidate.status == TripStatus.AWAITING_MERGE_APPROVAL

    def test_finalize_folds_candidate_into_master(self):
        master, candidate = _pair()
        _propose(master, candidate)
        merge.accept(master, candidate, ALICE)
        merge.accept(master, candidate, BOB)

        merge.finalize(master, candidate, _ctx())

        assert candidate.status == TripStatus.MERGED
        assert candidate.merged_into_trip_id == 20
        assert candidate.vehicle_id is None
        assert master.status == TripStatus.APPROVED
        assert master.vehicle_number == "KX-4455"
        assert master.driver_name == "Nimal"
        assert master.passengers == 5
