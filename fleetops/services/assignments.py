"""
Assignment consistency manager
==============================

Keeps the driver <-> vehicle attachment consistent:

* a vehicle is held by at most one driver, a driver holds at most one vehicle;
* taking a vehicle away from its holder needs explicit confirmation;
* every change appends to the assignment log, which is never rewritten.

The swap touches up to four rows (displaced driver, old vehicle, new
driver, new vehicle) and is run as a saga so a failure part-way through
undoes the steps already applied.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fleetops.domain.availability import (
    claims_vehicle,
    is_active_today,
    is_license_qualified,
)
from fleetops.domain.enums import AssignmentAction, DriverStatus, VehicleStatus
from fleetops.errors import (
    GuardViolation,
    ReassignConfirmationRequired,
    ResourceNotFound,
)
from fleetops.infrastructure.models import AssignmentLogModel, UserModel

from .audit import AuditSection
from .base import BaseService
from .saga import Saga

logger = logging.getLogger(__name__)


class AssignmentService(BaseService):
    async def _append(
        self, driver: Any, vehicle: Any, action: AssignmentAction, actor: Optional[str]
    ) -> AssignmentLogModel:
        return await self.assignment_logs.append(
            AssignmentLogModel(
                vehicle_id=vehicle.id,
                vehicle_number=vehicle.number,
                driver_id=driver.id,
                driver_name=driver.name,
                action=action,
                performed_by=actor,
            )
        )

    async def _drop(self, entry: Optional[AssignmentLogModel]) -> None:
        if entry is not None:
            await self.session.delete(entry)
            await self.session.flush()

    async def assign_vehicle(
        self,
        driver_id: int,
        vehicle_id: int,
        confirm_reassign: bool = False,
        actor: Optional[str] = None,
    ) -> UserModel:
        driver = await self.get_driver(driver_id)
        vehicle = await self.get_vehicle(vehicle_id)

        if VehicleStatus(vehicle.status) == VehicleStatus.IN_MAINTENANCE:
            raise GuardViolation(
                f"Vehicle {vehicle.number} is in maintenance", {"vehicle_id": vehicle.id}
            )
        if not is_license_qualified(driver.license_type, vehicle.required_license):
            raise GuardViolation(
                f"Driver {driver.name} is not licensed for vehicle {vehicle.number}",
                {
                    "license_type": getattr(driver.license_type, "value", driver.license_type),
                    "required_license": getattr(
                        vehicle.required_license, "value", vehicle.required_license
                    ),
                },
            )

        async with self.lock_pair(vehicle, driver):
            today = self.today()
            busy = [
                t
                for t in await self.trips.for_vehicle(vehicle)
                if claims_vehicle(t)
                and is_active_today(t, today)
                and t.driver_id != driver.id
            ]
            if busy:
                raise GuardViolation(
                    f"Vehicle {vehicle.number} is in use on trip {busy[0].serial_number}",
                    {"trip_ids": [t.id for t in busy]},
                )

            displaced = [h for h in await self.users.holders_of(vehicle) if h.id != driver.id]
            if driver.vehicle_id == vehicle.id and not displaced:
                return driver
            if displaced and not confirm_reassign:
                raise ReassignConfirmationRequired(vehicle.number, displaced[0].name)

            previous = None
            if driver.vehicle_id is not None and driver.vehicle_id != vehicle.id:
                previous = await self.vehicles.get_by_id(driver.vehicle_id)

            await self._run_swap(driver, vehicle, displaced, previous, actor)
            await self.session.commit()

        logger.info(
            "Vehicle %s assigned to %s (displaced: %s)",
            vehicle.number,
            driver.name,
            ", ".join(h.name for h in displaced) or "none",
        )
        await self.audit.log(
            actor,
            AuditSection.DRIVER_MANAGEMENT,
            "Vehicle Assigned",
            f"Vehicle {vehicle.number} assigned to {driver.name}",
            driver.id,
            {"displaced_driver_ids": [h.id for h in displaced]} if displaced else None,
        )
        for holder in displaced:
            await self.notifier.vehicle_unassigned(holder, vehicle.number)
        await self.notifier.vehicle_assigned(driver, vehicle)
        return driver

    async def _run_swap(
        self,
        driver: UserModel,
        vehicle: Any,
        displaced: list[UserModel],
        previous: Any,
        actor: Optional[str],
    ) -> None:
        saga = Saga("vehicle-assignment")
        logged: dict[str, Optional[AssignmentLogModel]] = {}

        for holder in displaced:
            saved = (holder.vehicle_id, holder.vehicle_number, holder.status)

            async def release(holder=holder):
                holder.vehicle_id = None
                holder.vehicle_number = None
                holder.status = DriverStatus.AVAILABLE

            async def restore(holder=holder, saved=saved):
                holder.vehicle_id, holder.vehicle_number, holder.status = saved

            async def log_displaced(holder=holder):
                logged[f"displaced:{holder.id}"] = await self._append(
                    holder, vehicle, AssignmentAction.REASSIGNED_TO_OTHER, actor
                )

            async def unlog_displaced(holder=holder):
                await self._drop(logged.get(f"displaced:{holder.id}"))

            saga.step(f"release driver {holder.id}", release, restore)
            saga.step(f"log displacement of driver {holder.id}", log_displaced, unlog_displaced)

        if previous is not None:
            previous_status = previous.status

            async def free_previous():
                if VehicleStatus(previous.status) != VehicleStatus.IN_MAINTENANCE:
                    previous.status = VehicleStatus.AVAILABLE
                logged["previous"] = await self._append(
                    driver, previous, AssignmentAction.UNASSIGNED, actor
                )

            async def restore_previous():
                previous.status = previous_status
                await self._drop(logged.get("previous"))

            saga.step("release previous vehicle", free_previous, restore_previous)

        saved_driver = (driver.vehicle_id, driver.vehicle_number, driver.status)
        saved_vehicle = vehicle.status

        async def attach():
            driver.vehicle_id = vehicle.id
            driver.vehicle_number = vehicle.number
            if DriverStatus(driver.status or DriverStatus.AVAILABLE) != DriverStatus.IN_USE:
                driver.status = DriverStatus.ASSIGNED
            vehicle.status = VehicleStatus.ASSIGNED

        async def detach():
            driver.vehicle_id, driver.vehicle_number, driver.status = saved_driver
            vehicle.status = saved_vehicle

        async def log_assignment():
            logged["assigned"] = await self._append(
                driver, vehicle, AssignmentAction.ASSIGNED, actor
            )

        saga.step("assign vehicle", attach, detach)
        saga.step("log assignment", log_assignment)
        saga.step("persist", self.session.flush)
        await saga.run()

    async def unassign_vehicle(self, driver_id: int, actor: Optional[str] = None) -> UserModel:
        driver = await self.get_driver(driver_id)
        if driver.vehicle_id is None and not driver.vehicle_number:
            raise GuardViolation(f"Driver {driver.name} has no vehicle assigned")
        if DriverStatus(driver.status or DriverStatus.AVAILABLE) == DriverStatus.IN_USE:
            raise GuardViolation(
                f"Driver {driver.name} is on a trip", {"trip_id": driver.current_trip_id}
            )

        vehicle = None
        if driver.vehicle_id is not None:
            vehicle = await self.vehicles.get_by_id(driver.vehicle_id)
        if vehicle is None and driver.vehicle_number:
            vehicle = await self.vehicles.get_by_number(driver.vehicle_number)
        number = vehicle.number if vehicle is not None else driver.vehicle_number

        driver.vehicle_id = None
        driver.vehicle_number = None
        driver.status = DriverStatus.AVAILABLE
        if vehicle is not None:
            if VehicleStatus(vehicle.status) != VehicleStatus.IN_MAINTENANCE:
                vehicle.status = VehicleStatus.AVAILABLE
            await self._append(driver, vehicle, AssignmentAction.UNASSIGNED, actor)

        await self.audit.log(
            actor,
            AuditSection.DRIVER_MANAGEMENT,
            "Vehicle Unassigned",
            f"Vehicle {number} unassigned from {driver.name}",
            driver.id,
        )
        await self.notifier.vehicle_unassigned(driver, number)
        return driver

    async def history(
        self, *, vehicle_id: Optional[int] = None, driver_id: Optional[int] = None
    ) -> list[AssignmentLogModel]:
        if vehicle_id is not None:
            await self.get_vehicle(vehicle_id)
        if driver_id is not None:
            await self.get_user(driver_id)
        return await self.assignment_logs.history(vehicle_id=vehicle_id, driver_id=driver_id)

    async def delete_log_entry(self, entry_id: int, actor: Optional[str] = None) -> None:
        """Manual admin correction; the deletion itself is audited."""
        entry = await self.assignment_logs.get_by_id(entry_id)
        if entry is None:
            raise ResourceNotFound("Assignment log entry", entry_id)
        summary = f"{entry.action.value}: {entry.vehicle_number} / {entry.driver_name}"
        await self.assignment_logs.delete(entry_id)
        await self.audit.log(
            actor,
            AuditSection.VEHICLE_MANAGEMENT,
            "Assignment Log Deleted",
            summary,
            entry_id,
        )
