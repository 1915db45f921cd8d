"""
Normalisation of legacy documents.

Records exported from the old document store spell the same field in
several ways (``vehicle`` / ``vehicleNumber`` / ``vehicleId``,
``customer`` / ``customerName``, ``kmRun`` ...), store numbers as display
strings (``"LKR 1,250"``, ``"12.5 km"``) and dates as ISO strings.  The
functions below map one raw document onto the canonical field set used by
the rest of the package.  Nothing else in the code base looks at legacy
names.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from fleetops.errors import GuardViolation

from .enums import (
    ConsentState,
    DriverStatus,
    LicenseClass,
    TripStatus,
    UserRole,
    VehicleStatus,
)

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")

# canonical name -> accepted spellings, first non-empty wins
TRIP_ALIASES: dict[str, tuple[str, ...]] = {
    "serial_number": ("serial_number", "serialNumber", "serial"),
    "requester_id": ("requester_id", "requesterId", "userId", "uid"),
    "requester_name": ("requester_name", "customerName", "customer", "requesterName"),
    "requester_email": ("requester_email", "email", "customerEmail"),
    "pickup": ("pickup", "pickupLocation"),
    "destination": ("destination", "dropoff", "destinationLocation"),
    "stops": ("stops", "destinations", "waypoints"),
    "pickup_lat": ("pickup_lat", "pickupLat"),
    "pickup_lng": ("pickup_lng", "pickupLng"),
    "destination_lat": ("destination_lat", "destinationLat", "destLat"),
    "destination_lng": ("destination_lng", "destinationLng", "destLng"),
    "date": ("date", "tripDate"),
    "time": ("time", "tripTime"),
    "passengers": ("passengers", "passengerCount"),
    "vehicle_id": ("vehicle_id", "vehicleId"),
    "vehicle_number": ("vehicle_number", "vehicleNumber", "vehicle"),
    "driver_id": ("driver_id", "driverId"),
    "driver_name": ("driver_name", "driverName", "driver"),
    "distance_km": ("distance_km", "distance"),
    "cost": ("cost", "amount"),
    "odometer_start": ("odometer_start", "odometerStart", "startOdometer", "startMeter"),
    "odometer_end": ("odometer_end", "odometerEnd", "endOdometer", "endMeter"),
    "km_run": ("km_run", "kmRun", "runKm"),
    "status": ("status",),
    "rejection_reason": ("rejection_reason", "rejectionReason", "rejectReason"),
    "cancel_reason": ("cancel_reason", "cancelReason", "cancellationReason"),
    "breakdown_reason": ("breakdown_reason", "breakdownReason"),
    "breakdown_odometer": ("breakdown_odometer", "breakdownOdometer", "breakdownMeter"),
    "breakdown_location": ("breakdown_location", "breakdownLocation", "breakdownAddress"),
    "breakdown_lat": ("breakdown_lat", "breakdownLat"),
    "breakdown_lng": ("breakdown_lng", "breakdownLng"),
    "last_visited_stop": ("last_visited_stop", "lastVisitedStop"),
    "needs_reassignment": ("needs_reassignment", "needsReassignment", "reassignmentRequired"),
    "parent_trip_id": ("parent_trip_id", "parentTripId", "originalTripId"),
    "reassigned_trip_id": ("reassigned_trip_id", "reassignedTripId"),
    "merge_proposal": ("merge_proposal", "mergeProposal"),
    "linked_proposal_trip_id": ("linked_proposal_trip_id", "linkedProposalTripId"),
    "master_trip_id": ("master_trip_id", "masterTripId"),
    "merged_into_trip_id": ("merged_into_trip_id", "mergedIntoTripId", "mergedInto"),
    "merge_rejection_reason": ("merge_rejection_reason", "mergeRejectionReason"),
}

PROPOSAL_ALIASES: dict[str, tuple[str, ...]] = {
    "candidate_trip_id": ("candidate_trip_id", "candidateTripId"),
    "consent_a": ("consent_a", "consentA"),
    "consent_b": ("consent_b", "consentB"),
    "vehicle_id": ("vehicle_id", "vehicleId"),
    "vehicle_number": ("vehicle_number", "vehicleNumber", "vehicle"),
    "driver_id": ("driver_id", "driverId"),
    "driver_name": ("driver_name", "driverName"),
    "message": ("message",),
    "master_previous_status": ("master_previous_status", "masterPreviousStatus"),
    "candidate_previous_status": ("candidate_previous_status", "candidatePreviousStatus"),
    "rejected_by": ("rejected_by", "rejectedBy"),
    "rejection_reason": ("rejection_reason", "rejectionReason"),
}

VEHICLE_ALIASES: dict[str, tuple[str, ...]] = {
    "number": ("number", "vehicleNumber", "plate", "plateNumber"),
    "model": ("model",),
    "vehicle_type": ("vehicle_type", "vehicleType", "type"),
    "seats": ("seats", "seatCount"),
    "required_license": ("required_license", "requiredLicense", "licenseClass"),
    "status": ("status",),
    "initial_odometer": ("initial_odometer", "initialOdometer", "initialMileage"),
    "last_service_mileage": ("last_service_mileage", "lastServiceMileage", "lastServiceKm"),
    "service_interval": ("service_interval", "serviceInterval", "serviceIntervalKm"),
    "license_expiry": ("license_expiry", "licenseExpiry", "revenueLicenseExpiry"),
    "insurance_expiry": ("insurance_expiry", "insuranceExpiry"),
}

USER_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "fullName"),
    "email": ("email",),
    "phone": ("phone",),
    "role": ("role",),
    "license_type": ("license_type", "licenseType"),
    "license_expiry": ("license_expiry", "licenseExpiry"),
    "vehicle_id": ("vehicle_id", "vehicleId"),
    "vehicle_number": ("vehicle_number", "vehicleNumber", "vehicle"),
    "status": ("status",),
    "current_trip_id": ("current_trip_id", "currentTripId"),
}

_VEHICLE_STATUS_ALIASES = {
    "maintenance": VehicleStatus.IN_MAINTENANCE,
    "in_maintenance": VehicleStatus.IN_MAINTENANCE,
    "in-use": VehicleStatus.ASSIGNED,
}

_NUMERIC_TRIP_FIELDS = {
    "pickup_lat",
    "pickup_lng",
    "destination_lat",
    "destination_lng",
    "distance_km",
    "cost",
    "odometer_start",
    "odometer_end",
    "km_run",
    "breakdown_odometer",
    "breakdown_lat",
    "breakdown_lng",
}
_ID_FIELDS = {
    "requester_id",
    "vehicle_id",
    "driver_id",
    "parent_trip_id",
    "reassigned_trip_id",
    "linked_proposal_trip_id",
    "master_trip_id",
    "merged_into_trip_id",
    "candidate_trip_id",
    "current_trip_id",
    "rejected_by",
}


# ── Scalar parsers ────────────────────────────────────────────────────


def _empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() in ("", "N/A"))


def to_number(value: Any) -> Optional[float]:
    """``"LKR 1,250.50"`` -> 1250.5, ``"12.5 km"`` -> 12.5, ``"N/A"`` -> None."""
    if _empty(value):
        return None
    if isinstance(value, bool):
        raise GuardViolation(f"Expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER.search(str(value).replace(",", ""))
    return float(match.group()) if match else None


def to_date(value: Any) -> Optional[date]:
    if _empty(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise GuardViolation(f"Unreadable date {value!r}")


def to_id(value: Any) -> Any:
    if _empty(value):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return value


def to_trip_status(value: Any) -> TripStatus:
    if _empty(value):
        return TripStatus.PENDING
    raw = str(getattr(value, "value", value)).strip().lower()
    for candidate in (raw, raw.replace("_", "-"), raw.replace("-", "_")):
        try:
            return TripStatus(candidate)
        except ValueError:
            continue
    raise GuardViolation(f"Unknown trip status {value!r}", {"status": value})


def to_vehicle_status(value: Any) -> VehicleStatus:
    if _empty(value):
        return VehicleStatus.AVAILABLE
    raw = str(getattr(value, "value", value)).strip().lower()
    if raw in _VEHICLE_STATUS_ALIASES:
        return _VEHICLE_STATUS_ALIASES[raw]
    try:
        return VehicleStatus(raw)
    except ValueError:
        raise GuardViolation(f"Unknown vehicle status {value!r}", {"status": value})


def _stop_name(stop: Any) -> Optional[str]:
    if isinstance(stop, Mapping):
        stop = stop.get("address") or stop.get("name") or stop.get("location")
    return str(stop).strip() if not _empty(stop) else None


# ── Document mappers ──────────────────────────────────────────────────


def _pick(doc: Mapping[str, Any], aliases: dict[str, tuple[str, ...]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for canonical, names in aliases.items():
        for name in names:
            if name in doc and not _empty(doc[name]):
                out[canonical] = doc[name]
                break
    return out


def _split_vehicle_ref(out: dict[str, Any]) -> None:
    # ``vehicle`` sometimes holds the document ID rather than the plate.
    ref = out.get("vehicle_number")
    if isinstance(ref, int) and "vehicle_id" not in out:
        out["vehicle_id"] = out.pop("vehicle_number")


def normalize_proposal_document(doc: Mapping[str, Any]) -> dict[str, Any]:
    out = _pick(doc, PROPOSAL_ALIASES)
    for key in _ID_FIELDS & out.keys():
        out[key] = to_id(out[key])
    for key in ("consent_a", "consent_b"):
        out[key] = ConsentState(str(out.get(key, "pending")).lower()).value
    for key in ("master_previous_status", "candidate_previous_status"):
        out[key] = to_trip_status(out.get(key)).value
    out.setdefault("message", "")
    return out


def normalize_trip_document(doc: Mapping[str, Any]) -> dict[str, Any]:
    """Map a raw trip document onto canonical trip fields."""
    out = _pick(doc, TRIP_ALIASES)
    for key in _ID_FIELDS & out.keys():
        out[key] = to_id(out[key])
    _split_vehicle_ref(out)
    for key in _NUMERIC_TRIP_FIELDS & out.keys():
        out[key] = to_number(out[key])
    if "passengers" in out:
        out["passengers"] = int(to_number(out["passengers"]) or 1)
    if "date" in out:
        out["date"] = to_date(out["date"])
    out["stops"] = [
        name for name in (_stop_name(s) for s in out.get("stops") or []) if name
    ]
    out["status"] = to_trip_status(out.get("status"))
    out["needs_reassignment"] = bool(out.get("needs_reassignment", False))
    if "merge_proposal" in out:
        out["merge_proposal"] = normalize_proposal_document(out["merge_proposal"])
    return out


def normalize_vehicle_document(doc: Mapping[str, Any]) -> dict[str, Any]:
    out = _pick(doc, VEHICLE_ALIASES)
    out["status"] = to_vehicle_status(out.get("status"))
    for key in ("initial_odometer", "last_service_mileage", "service_interval"):
        if key in out:
            out[key] = to_number(out[key])
    if "seats" in out:
        out["seats"] = int(to_number(out["seats"]) or 0)
    if "required_license" in out:
        out["required_license"] = LicenseClass(str(out["required_license"]).upper())
    for key in ("license_expiry", "insurance_expiry"):
        if key in out:
            out[key] = to_date(out[key])
    return out


def normalize_user_document(doc: Mapping[str, Any]) -> dict[str, Any]:
    out = _pick(doc, USER_ALIASES)
    out["role"] = UserRole(str(out.get("role", "user")).lower())
    for key in _ID_FIELDS & out.keys():
        out[key] = to_id(out[key])
    _split_vehicle_ref(out)
    if "license_type" in out:
        out["license_type"] = LicenseClass(str(out["license_type"]).upper())
    if "license_expiry" in out:
        out["license_expiry"] = to_date(out["license_expiry"])
    if out["role"] == UserRole.DRIVER:
        out["status"] = DriverStatus(str(out.get("status", "available")).lower())
    else:
        out.pop("status", None)
    return out


def normalize_many(
    docs: Iterable[Mapping[str, Any]], kind: str
) -> list[dict[str, Any]]:
    mapper = {
        "trip": normalize_trip_document,
        "vehicle": normalize_vehicle_document,
        "user": normalize_user_document,
        "driver": normalize_driver_document,
    }[kind]
    return [mapper(doc) for doc in docs]


def normalize_driver_document(doc: Mapping[str, Any]) -> dict[str, Any]:
    """Driver documents are user documents whose role defaults to driver."""
    data = dict(doc)
    if _empty(data.get("role")):
        data["role"] = UserRole.DRIVER.value
    return normalize_user_document(data)
