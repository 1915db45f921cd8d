"""
Canonical domain records.

The dataclasses here share their attribute names with the ORM models in
``fleetops.infrastructure.models``, so the pure functions of the domain
package (state machine, availability resolver, merge protocol) accept either
a dataclass instance or a loaded ORM row.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from .enums import (
    ConsentState,
    DriverStatus,
    LicenseClass,
    TripStatus,
    UserRole,
    VehicleStatus,
)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass
class MergeProposal:
    """Sub-object stored on the master trip while a merge is negotiated."""

    candidate_trip_id: int
    vehicle_id: Optional[int] = None
    vehicle_number: Optional[str] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    message: str = ""
    consent_a: ConsentState = ConsentState.PENDING
    consent_b: ConsentState = ConsentState.PENDING
    master_previous_status: TripStatus = TripStatus.PENDING
    candidate_previous_status: TripStatus = TripStatus.PENDING
    proposed_by: Optional[str] = None
    proposed_at: Optional[str] = None
    rejected_by: Optional[int] = None
    rejection_reason: Optional[str] = None

    @property
    def both_accepted(self) -> bool:
        return (
            self.consent_a == ConsentState.ACCEPTED
            and self.consent_b == ConsentState.ACCEPTED
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in (
            "consent_a",
            "consent_b",
            "master_previous_status",
            "candidate_previous_status",
        ):
            data[key] = data[key].value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MergeProposal":
        return cls(
            candidate_trip_id=data["candidate_trip_id"],
            vehicle_id=data.get("vehicle_id"),
            vehicle_number=data.get("vehicle_number"),
            driver_id=data.get("driver_id"),
            driver_name=data.get("driver_name"),
            message=data.get("message") or "",
            consent_a=ConsentState(data.get("consent_a", "pending")),
            consent_b=ConsentState(data.get("consent_b", "pending")),
            master_previous_status=TripStatus(
                data.get("master_previous_status", "pending")
            ),
            candidate_previous_status=TripStatus(
                data.get("candidate_previous_status", "pending")
            ),
            proposed_by=data.get("proposed_by"),
            proposed_at=data.get("proposed_at"),
            rejected_by=data.get("rejected_by"),
            rejection_reason=data.get("rejection_reason"),
        )


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Trip:
    id: Optional[int] = None
    serial_number: Optional[str] = None
    requester_id: Optional[int] = None
    requester_name: Optional[str] = None
    requester_email: Optional[str] = None
    pickup: str = ""
    destination: str = ""
    stops: list[str] = field(default_factory=list)
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    destination_lat: Optional[float] = None
    destination_lng: Optional[float] = None
    date: Optional[date] = None
    time: Optional[str] = None
    passengers: int = 1
    vehicle_id: Optional[int] = None
    vehicle_number: Optional[str] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    distance_km: Optional[float] = None
    cost: Optional[float] = None
    odometer_start: Optional[float] = None
    odometer_end: Optional[float] = None
    km_run: Optional[float] = None
    status: TripStatus = TripStatus.PENDING
    rejection_reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    breakdown_reason: Optional[str] = None
    breakdown_odometer: Optional[float] = None
    breakdown_location: Optional[str] = None
    breakdown_lat: Optional[float] = None
    breakdown_lng: Optional[float] = None
    last_visited_stop: Optional[str] = None
    breakdown_at: Optional[datetime] = None
    needs_reassignment: bool = False
    parent_trip_id: Optional[int] = None
    reassigned_trip_id: Optional[int] = None
    merge_proposal: Optional[dict[str, Any]] = None
    linked_proposal_trip_id: Optional[int] = None
    master_trip_id: Optional[int] = None
    merged_into_trip_id: Optional[int] = None
    merge_rejection_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class Vehicle:
    id: Optional[int] = None
    number: str = ""
    model: Optional[str] = None
    vehicle_type: Optional[str] = None
    seats: int = 4
    required_license: LicenseClass = LicenseClass.B
    status: VehicleStatus = VehicleStatus.AVAILABLE
    initial_odometer: float = 0.0
    last_service_mileage: float = 0.0
    service_interval: float = 5000.0
    license_expiry: Optional[date] = None
    insurance_expiry: Optional[date] = None


@dataclass
class User:
    id: Optional[int] = None
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    role: UserRole = UserRole.USER
    license_type: Optional[LicenseClass] = None
    license_expiry: Optional[date] = None
    vehicle_id: Optional[int] = None
    vehicle_number: Optional[str] = None
    status: DriverStatus = DriverStatus.AVAILABLE
    current_trip_id: Optional[int] = None


def load_proposal(trip: Any) -> Optional[MergeProposal]:
    """Return the merge proposal attached to *trip*, if any."""
    data = getattr(trip, "merge_proposal", None)
    return MergeProposal.from_dict(data) if data else None
