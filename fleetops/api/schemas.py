"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from fleetops.domain.enums import (
    AssignmentAction,
    ClaimStatus,
    ConsentState,
    DriverStatus,
    EffectiveVehicleStatus,
    ExpiryRisk,
    LicenseClass,
    TripStatus,
    UserRole,
    VehicleStatus,
)


# ── Requests ──────────────────────────────────────────────────────────


class ActorRequest(BaseModel):
    actor: Optional[str] = Field(
        None, max_length=255, description="Email of the admin performing the action."
    )


class UserCreateRequest(ActorRequest):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    role: UserRole = UserRole.USER
    license_type: Optional[LicenseClass] = None
    license_expiry: Optional[datetime.date] = None


class VehicleCreateRequest(ActorRequest):
    number: str = Field(..., min_length=1, max_length=32)
    model: Optional[str] = Field(None, max_length=120)
    vehicle_type: Optional[str] = Field(None, max_length=32)
    seats: int = Field(4, ge=1, le=60)
    required_license: LicenseClass = LicenseClass.B
    initial_odometer: float = Field(0.0, ge=0)
    last_service_mileage: float = Field(0.0, ge=0)
    service_interval: Optional[float] = Field(None, gt=0)
    license_expiry: Optional[datetime.date] = None
    insurance_expiry: Optional[datetime.date] = None


class TripCreateRequest(BaseModel):
    requester_id: int
    pickup: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    stops: list[str] = Field(default_factory=list)
    pickup_lat: Optional[float] = Field(None, ge=-90, le=90)
    pickup_lng: Optional[float] = Field(None, ge=-180, le=180)
    destination_lat: Optional[float] = Field(None, ge=-90, le=90)
    destination_lng: Optional[float] = Field(None, ge=-180, le=180)
    date: datetime.date
    time: Optional[str] = Field(None, max_length=16)
    passengers: int = Field(1, ge=1, le=60)
    distance_km: Optional[float] = Field(None, ge=0)


class AssignPairRequest(ActorRequest):
    vehicle_id: int
    driver_id: int


class RejectRequest(ActorRequest):
    reason: str = ""


class CancelRequest(ActorRequest):
    reason: str = ""


class StartTripRequest(BaseModel):
    driver_id: Optional[int] = None
    odometer_start: float


class CompleteTripRequest(BaseModel):
    driver_id: Optional[int] = None
    odometer_end: float


class BreakdownRequest(BaseModel):
    driver_id: Optional[int] = None
    breakdown_odometer: float
    breakdown_reason: str
    last_visited_stop: str
    breakdown_location: str
    breakdown_lat: Optional[float] = Field(None, ge=-90, le=90)
    breakdown_lng: Optional[float] = Field(None, ge=-180, le=180)


class MergeProposeRequest(ActorRequest):
    master_trip_id: int
    candidate_trip_id: int
    vehicle_id: int
    driver_id: int
    message: str = Field("", max_length=1000)


class ConsentRequest(BaseModel):
    user_id: int


class MergeRejectRequest(ConsentRequest):
    reason: str = ""


class AssignVehicleRequest(ActorRequest):
    vehicle_id: int
    confirm_reassign: bool = False


class ServiceRecordRequest(ActorRequest):
    mileage: Optional[float] = Field(None, ge=0)


class ClaimCreateRequest(ActorRequest):
    trip_id: int
    amount: float = Field(..., gt=0)
    description: str = ""


class ClaimSettleRequest(ActorRequest):
    amount_settled: float = Field(..., ge=0)
    notes: str = ""


# ── Responses ─────────────────────────────────────────────────────────


class TripResponse(BaseModel):
    id: int
    serial_number: Optional[str] = None
    requester_id: Optional[int] = None
    requester_name: Optional[str] = None
    pickup: str
    destination: str
    stops: list[str] = []
    date: Optional[datetime.date] = None
    time: Optional[str] = None
    passengers: int
    vehicle_id: Optional[int] = None
    vehicle_number: Optional[str] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    distance_km: Optional[float] = None
    cost: Optional[float] = None
    odometer_start: Optional[float] = None
    odometer_end: Optional[float] = None
    km_run: Optional[float] = None
    status: TripStatus
    rejection_reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    breakdown_reason: Optional[str] = None
    breakdown_odometer: Optional[float] = None
    breakdown_location: Optional[str] = None
    last_visited_stop: Optional[str] = None
    needs_reassignment: bool = False
    parent_trip_id: Optional[int] = None
    reassigned_trip_id: Optional[int] = None
    merge_proposal: Optional[dict[str, Any]] = None
    linked_proposal_trip_id: Optional[int] = None
    master_trip_id: Optional[int] = None
    merged_into_trip_id: Optional[int] = None
    merge_rejection_reason: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    model_config = {"from_attributes": True}


class MergeProposalResponse(BaseModel):
    candidate_trip_id: int
    vehicle_id: Optional[int] = None
    vehicle_number: Optional[str] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    message: str = ""
    consent_a: ConsentState
    consent_b: ConsentState
    rejected_by: Optional[int] = None
    rejection_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    license_type: Optional[LicenseClass] = None
    license_expiry: Optional[datetime.date] = None
    vehicle_id: Optional[int] = None
    vehicle_number: Optional[str] = None
    status: Optional[DriverStatus] = None
    current_trip_id: Optional[int] = None

    model_config = {"from_attributes": True}


class DriverResponse(UserResponse):
    effective_status: DriverStatus


class VehicleResponse(BaseModel):
    id: int
    number: str
    model: Optional[str] = None
    vehicle_type: Optional[str] = None
    seats: int
    required_license: LicenseClass
    status: VehicleStatus
    effective_status: EffectiveVehicleStatus
    total_mileage: float
    km_since_service: float
    service_due: bool
    license_expiry: Optional[datetime.date] = None
    license_status: Optional[ExpiryRisk] = None
    days_to_license_expiry: Optional[int] = None
    insurance_expiry: Optional[datetime.date] = None
    insurance_status: Optional[ExpiryRisk] = None
    days_to_insurance_expiry: Optional[int] = None
    active_trip_ids: list[int] = []


class AssignmentLogResponse(BaseModel):
    id: int
    vehicle_id: Optional[int] = None
    vehicle_number: Optional[str] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    action: AssignmentAction
    performed_by: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    model_config = {"from_attributes": True}


class AuditLogResponse(BaseModel):
    id: int
    actor: str
    section: str
    action: str
    details: Optional[str] = None
    target_id: Optional[str] = None
    meta_data: Optional[dict[str, Any]] = None
    timestamp: Optional[datetime.datetime] = None

    model_config = {"from_attributes": True}


class FineClaimResponse(BaseModel):
    id: int
    trip_id: int
    driver_id: Optional[int] = None
    amount: float
    description: Optional[str] = None
    status: ClaimStatus
    amount_settled: Optional[float] = None
    settlement_date: Optional[datetime.date] = None
    settled_by: Optional[str] = None
    settlement_notes: Optional[str] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
