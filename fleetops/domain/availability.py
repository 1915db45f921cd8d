"""
Vehicle availability resolver.

A vehicle's stored flag goes stale: an admin may attach it to a trip without
flipping the flag, and trips can be booked for future dates.  The effective
status shown to admins is therefore always *derived* from the stored flag
plus the live set of trips, never persisted.

Everything in this module is a pure function of its inputs, so resolving the
same snapshot twice always yields the same answer.  Objects are read by
attribute, which lets callers pass either domain dataclasses or ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional

from .enums import (
    DriverStatus,
    EffectiveVehicleStatus,
    ExpiryRisk,
    INACTIVE_STATUSES,
    LicenseClass,
    MILEAGE_STATUSES,
    OCCUPYING_STATUSES,
    TripStatus,
    VehicleStatus,
)

DEFAULT_WARNING_DAYS = 90

# Occupying statuses that claim the vehicle only on the trip's own date.
_SCHEDULED_STATUSES = OCCUPYING_STATUSES - {TripStatus.IN_PROGRESS}


def as_day(value: Any) -> Optional[date]:
    """Truncate a date, datetime or ISO string to a calendar day."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _plate(value: Optional[str]) -> str:
    return (value or "").replace(" ", "").upper()


def references_vehicle(trip: Any, vehicle: Any) -> bool:
    """Match on document ID or plate number; either one is enough."""
    if trip.vehicle_id is not None and trip.vehicle_id == vehicle.id:
        return True
    plate = _plate(trip.vehicle_number)
    return bool(plate) and plate == _plate(vehicle.number)


def claims_vehicle(trip: Any) -> bool:
    """A broken-down leg that was handed to a derived trip claims nothing."""
    return TripStatus(trip.status) in OCCUPYING_STATUSES and not trip.reassigned_trip_id


def holds_pair(trip: Any) -> bool:
    """
    Occupying trips, plus a trip on hold for a merge that still carries the
    pair it was approved with.  Booking guards count both.
    """
    if claims_vehicle(trip):
        return True
    return (
        TripStatus(trip.status) == TripStatus.AWAITING_MERGE_APPROVAL
        and not trip.reassigned_trip_id
        and (
            trip.vehicle_id is not None
            or bool(trip.vehicle_number)
            or trip.driver_id is not None
        )
    )


def is_active_today(trip: Any, today: date) -> bool:
    status = TripStatus(trip.status)
    if status == TripStatus.IN_PROGRESS:
        return True
    return status in _SCHEDULED_STATUSES and as_day(trip.date) == today


def resolve_vehicle_status(
    vehicle: Any, trips: Iterable[Any], today: Optional[date] = None
) -> EffectiveVehicleStatus:
    """Derive the display status of *vehicle* from its flag and all trips."""
    if VehicleStatus(vehicle.status) == VehicleStatus.IN_MAINTENANCE:
        return EffectiveVehicleStatus.IN_MAINTENANCE

    today = today or date.today()
    for trip in trips:
        if TripStatus(trip.status) in INACTIVE_STATUSES:
            continue
        if not references_vehicle(trip, vehicle) or not claims_vehicle(trip):
            continue
        if is_active_today(trip, today):
            return EffectiveVehicleStatus.IN_USE
    return EffectiveVehicleStatus.AVAILABLE


def _claims_on(trip: Any, on_date: date, today: date) -> bool:
    if TripStatus(trip.status) == TripStatus.IN_PROGRESS and on_date == today:
        return True
    return as_day(trip.date) == on_date


def vehicle_conflicts(
    vehicle: Any,
    trips: Iterable[Any],
    on_date: date,
    today: date,
    exclude_trip_id: Optional[int] = None,
) -> list[Any]:
    """Trips other than *exclude_trip_id* holding *vehicle* on *on_date*."""
    return [
        t
        for t in trips
        if t.id != exclude_trip_id
        and references_vehicle(t, vehicle)
        and holds_pair(t)
        and _claims_on(t, on_date, today)
    ]


def driver_conflicts(
    driver_id: int,
    trips: Iterable[Any],
    on_date: date,
    today: date,
    exclude_trip_id: Optional[int] = None,
) -> list[Any]:
    return [
        t
        for t in trips
        if t.id != exclude_trip_id
        and t.driver_id == driver_id
        and holds_pair(t)
        and _claims_on(t, on_date, today)
    ]


def is_license_qualified(driver_class: Any, vehicle_class: Any) -> bool:
    """``D`` drives anything, ``B`` also covers ``A``, otherwise exact match."""
    if not driver_class or not vehicle_class:
        return True
    driver_class = LicenseClass(driver_class)
    vehicle_class = LicenseClass(vehicle_class)
    if driver_class == vehicle_class or driver_class == LicenseClass.D:
        return True
    return driver_class == LicenseClass.B and vehicle_class == LicenseClass.A


# ── Mileage & compliance ──────────────────────────────────────────────


def trip_run_distance(trip: Any) -> Optional[float]:
    """
    Distance a trip put on its vehicle.

    First non-null wins: explicit ``km_run``, then the odometer difference,
    then the distance covered up to a breakdown.
    """
    if trip.km_run is not None:
        return float(trip.km_run)
    if trip.odometer_start is None:
        return None
    if trip.odometer_end is not None:
        return float(trip.odometer_end) - float(trip.odometer_start)
    if trip.breakdown_odometer is not None:
        return float(trip.breakdown_odometer) - float(trip.odometer_start)
    return None


def total_mileage(vehicle: Any, trips: Iterable[Any]) -> float:
    total = float(vehicle.initial_odometer or 0)
    for trip in trips:
        if TripStatus(trip.status) not in MILEAGE_STATUSES:
            continue
        if not references_vehicle(trip, vehicle):
            continue
        run = trip_run_distance(trip)
        if run is not None:
            total += run
    return total


def is_service_due(vehicle: Any, mileage: float) -> bool:
    interval = float(vehicle.service_interval or 0)
    if interval <= 0:
        return False
    return mileage - float(vehicle.last_service_mileage or 0) >= interval


def expiry_risk(
    expiry: Any, today: date, warning_days: int = DEFAULT_WARNING_DAYS
) -> tuple[Optional[ExpiryRisk], Optional[int]]:
    """Classify a licence/insurance expiry date as expired, warning or ok."""
    expiry_day = as_day(expiry)
    if expiry_day is None:
        return None, None
    days = (expiry_day - today).days
    if days < 0:
        return ExpiryRisk.EXPIRED, days
    if days <= warning_days:
        return ExpiryRisk.WARNING, days
    return ExpiryRisk.OK, days


@dataclass(frozen=True)
class VehicleSnapshot:
    vehicle_id: Optional[int]
    number: str
    stored_status: VehicleStatus
    effective_status: EffectiveVehicleStatus
    total_mileage: float
    km_since_service: float
    service_due: bool
    license_status: Optional[ExpiryRisk] = None
    days_to_license_expiry: Optional[int] = None
    insurance_status: Optional[ExpiryRisk] = None
    days_to_insurance_expiry: Optional[int] = None
    active_trip_ids: tuple[int, ...] = field(default_factory=tuple)


def vehicle_snapshot(
    vehicle: Any,
    trips: Iterable[Any],
    today: Optional[date] = None,
    warning_days: int = DEFAULT_WARNING_DAYS,
) -> VehicleSnapshot:
    """Run the whole derivation pass for one vehicle."""
    today = today or date.today()
    trips = list(trips)
    mileage = total_mileage(vehicle, trips)
    license_status, license_days = expiry_risk(
        vehicle.license_expiry, today, warning_days
    )
    insurance_status, insurance_days = expiry_risk(
        vehicle.insurance_expiry, today, warning_days
    )
    active = tuple(
        t.id
        for t in trips
        if references_vehicle(t, vehicle)
        and claims_vehicle(t)
        and is_active_today(t, today)
    )
    return VehicleSnapshot(
        vehicle_id=vehicle.id,
        number=vehicle.number,
        stored_status=VehicleStatus(vehicle.status),
        effective_status=resolve_vehicle_status(vehicle, trips, today),
        total_mileage=mileage,
        km_since_service=mileage - float(vehicle.last_service_mileage or 0),
        service_due=is_service_due(vehicle, mileage),
        license_status=license_status,
        days_to_license_expiry=license_days,
        insurance_status=insurance_status,
        days_to_insurance_expiry=insurance_days,
        active_trip_ids=active,
    )


def resolve_driver_status(driver: Any, trips: Iterable[Any]) -> DriverStatus:
    """``in-use`` while driving, ``assigned`` when holding a vehicle."""
    if driver.current_trip_id is not None:
        for trip in trips:
            if trip.id == driver.current_trip_id:
                if TripStatus(trip.status) == TripStatus.IN_PROGRESS:
                    return DriverStatus.IN_USE
                break
    if driver.vehicle_id is not None or driver.vehicle_number:
        return DriverStatus.ASSIGNED
    return DriverStatus.AVAILABLE
