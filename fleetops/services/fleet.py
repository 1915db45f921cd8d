"""
Fleet service: vehicle and user registration, derived vehicle views,
maintenance and service records.

Vehicle views are recomputed from raw rows on every read; nothing derived
is written back.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fleetops.config import settings
from fleetops.domain.availability import (
    VehicleSnapshot,
    claims_vehicle,
    references_vehicle,
    resolve_driver_status,
    total_mileage,
    vehicle_snapshot,
)
from fleetops.domain.enums import (
    DriverStatus,
    TripStatus,
    UserRole,
    VehicleStatus,
)
from fleetops.errors import GuardViolation
from fleetops.infrastructure.models import UserModel, VehicleModel

from .audit import AuditSection
from .base import BaseService

logger = logging.getLogger(__name__)


class FleetService(BaseService):
    # ── Registration ──────────────────────────────────────────────────

    async def register_vehicle(self, data: dict[str, Any], actor: Optional[str] = None) -> VehicleModel:
        number = data["number"].strip().upper()
        if await self.vehicles.get_by_number(number) is not None:
            raise GuardViolation(f"Vehicle {number} already exists", {"number": number})
        vehicle = VehicleModel(**{**data, "number": number})
        if vehicle.service_interval is None:
            vehicle.service_interval = float(settings.default_service_interval_km)
        if vehicle.status is None:
            vehicle.status = VehicleStatus.AVAILABLE
        await self.vehicles.create(vehicle)
        await self.audit.log(
            actor,
            AuditSection.VEHICLE_MANAGEMENT,
            "Vehicle Registered",
            f"Vehicle {vehicle.number} ({vehicle.model or 'unknown model'})",
            vehicle.id,
        )
        return vehicle

    async def register_user(self, data: dict[str, Any], actor: Optional[str] = None) -> UserModel:
        if await self.users.get_by_email(data["email"]) is not None:
            raise GuardViolation(
                f"A user with email {data['email']} already exists", {"email": data["email"]}
            )
        user = UserModel(**data)
        role = UserRole(user.role or UserRole.USER)
        if role == UserRole.DRIVER:
            if user.license_type is None:
                raise GuardViolation("Drivers need a licence class")
            user.status = DriverStatus.AVAILABLE
        else:
            user.license_type = None
            user.status = None
        await self.users.create(user)
        await self.audit.log(
            actor,
            AuditSection.DRIVER_MANAGEMENT if role == UserRole.DRIVER else AuditSection.TRIP_BOOKING,
            "User Registered",
            f"{user.name} <{user.email}> as {role.value}",
            user.id,
        )
        return user

    # ── Derived views ─────────────────────────────────────────────────

    async def snapshot(self, vehicle_id: int) -> tuple[VehicleModel, VehicleSnapshot]:
        vehicle = await self.get_vehicle(vehicle_id)
        trips = await self.trips.for_vehicle(vehicle)
        return vehicle, vehicle_snapshot(
            vehicle, trips, self.today(), settings.expiry_warning_days
        )

    async def snapshots(self) -> list[tuple[VehicleModel, VehicleSnapshot]]:
        vehicles = await self.vehicles.list_all()
        trips = await self.trips.get_active()
        today = self.today()
        return [
            (v, vehicle_snapshot(v, trips, today, settings.expiry_warning_days))
            for v in vehicles
        ]

    async def drivers(self) -> list[tuple[UserModel, DriverStatus]]:
        drivers = await self.users.list_drivers()
        trips = await self.trips.list(status=TripStatus.IN_PROGRESS)
        return [(d, resolve_driver_status(d, trips)) for d in drivers]

    # ── Maintenance ───────────────────────────────────────────────────

    async def send_to_maintenance(self, vehicle_id: int, actor: Optional[str] = None) -> VehicleModel:
        vehicle = await self.get_vehicle(vehicle_id)
        running = [
            t
            for t in await self.trips.for_vehicle(vehicle)
            if TripStatus(t.status) == TripStatus.IN_PROGRESS and claims_vehicle(t)
        ]
        if running:
            raise GuardViolation(
                f"Vehicle {vehicle.number} is on trip {running[0].serial_number}",
                {"trip_id": running[0].id},
            )
        vehicle.status = VehicleStatus.IN_MAINTENANCE
        await self.audit.log(
            actor,
            AuditSection.VEHICLE_MANAGEMENT,
            "Sent To Maintenance",
            f"Vehicle {vehicle.number} sent to maintenance",
            vehicle.id,
        )
        return vehicle

    async def repair_complete(self, vehicle_id: int, actor: Optional[str] = None) -> VehicleModel:
        vehicle = await self.get_vehicle(vehicle_id)
        if VehicleStatus(vehicle.status) != VehicleStatus.IN_MAINTENANCE:
            raise GuardViolation(f"Vehicle {vehicle.number} is not in maintenance")
        holders = await self.users.holders_of(vehicle)
        vehicle.status = VehicleStatus.ASSIGNED if holders else VehicleStatus.AVAILABLE
        await self.audit.log(
            actor,
            AuditSection.VEHICLE_MANAGEMENT,
            "Repair Completed",
            f"Vehicle {vehicle.number} back in service as {vehicle.status.value}",
            vehicle.id,
        )
        return vehicle

    async def record_service(
        self, vehicle_id: int, mileage: Optional[float] = None, actor: Optional[str] = None
    ) -> VehicleModel:
        vehicle = await self.get_vehicle(vehicle_id)
        trips = [t for t in await self.trips.for_vehicle(vehicle) if references_vehicle(t, vehicle)]
        current = total_mileage(vehicle, trips)
        mileage = current if mileage is None else float(mileage)
        if mileage < float(vehicle.last_service_mileage or 0):
            raise GuardViolation(
                "Service mileage cannot be lower than the previous service",
                {"last_service_mileage": vehicle.last_service_mileage},
            )
        if mileage > current:
            raise GuardViolation(
                "Service mileage cannot exceed the vehicle's total mileage",
                {"total_mileage": current},
            )
        vehicle.last_service_mileage = mileage
        await self.audit.log(
            actor,
            AuditSection.VEHICLE_MANAGEMENT,
            "Service Recorded",
            f"Vehicle {vehicle.number} serviced at {mileage:g} km",
            vehicle.id,
        )
        return vehicle
