"""Shared plumbing for the service layer: repositories, lookups, locking."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Callable, Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from fleetops.config import settings
from fleetops.domain.enums import UserRole
from fleetops.domain.lifecycle import TransitionContext
from fleetops.errors import GuardViolation, ResourceNotFound
from fleetops.infrastructure.locks import (
    driver_lock,
    exclusive,
    serial_lock,
    vehicle_lock,
)
from fleetops.infrastructure.models import TripModel, UserModel, VehicleModel
from fleetops.infrastructure.repositories import (
    AssignmentLogRepository,
    TripRepository,
    UserRepository,
    VehicleRepository,
)

from .audit import AuditLogger
from .notifications import Notifier


class BaseService:
    def __init__(
        self,
        session: AsyncSession,
        redis: Optional[aioredis.Redis] = None,
        notifier: Optional[Notifier] = None,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.redis = redis
        self.notifier = notifier or Notifier()
        self.today = today
        self.trips = TripRepository(session)
        self.vehicles = VehicleRepository(session)
        self.users = UserRepository(session)
        self.assignment_logs = AssignmentLogRepository(session)
        self.audit = AuditLogger(session)

    # ── Lookups ───────────────────────────────────────────────────────

    async def get_trip(self, trip_id: int, for_update: bool = False) -> TripModel:
        if for_update:
            trip = await self.trips.get_for_update(trip_id)
        else:
            trip = await self.trips.get_by_id(trip_id)
        if trip is None:
            raise ResourceNotFound("Trip", trip_id)
        return trip

    async def get_vehicle(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self.vehicles.get_by_id(vehicle_id)
        if vehicle is None:
            raise ResourceNotFound("Vehicle", vehicle_id)
        return vehicle

    async def get_user(self, user_id: int) -> UserModel:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise ResourceNotFound("User", user_id)
        return user

    async def get_driver(self, driver_id: int) -> UserModel:
        driver = await self.get_user(driver_id)
        if driver.role != UserRole.DRIVER:
            raise GuardViolation(
                f"User {driver.name} is not a driver", {"user_id": driver_id}
            )
        return driver

    async def vehicle_of(self, trip: Any) -> Optional[VehicleModel]:
        if trip.vehicle_id is not None:
            vehicle = await self.vehicles.get_by_id(trip.vehicle_id)
            if vehicle is not None:
                return vehicle
        if trip.vehicle_number:
            return await self.vehicles.get_by_number(trip.vehicle_number)
        return None

    async def driver_of(self, trip: Any) -> Optional[UserModel]:
        if trip.driver_id is None:
            return None
        return await self.users.get_by_id(trip.driver_id)

    async def merge_pair(self, trip: TripModel) -> tuple[TripModel, TripModel]:
        """(master, candidate) of the proposal *trip* takes part in."""
        if trip.master_trip_id:
            return await self.get_trip(trip.master_trip_id), trip
        if trip.linked_proposal_trip_id:
            return trip, await self.get_trip(trip.linked_proposal_trip_id)
        raise GuardViolation(
            f"Trip {trip.serial_number} has no open merge proposal", {"trip_id": trip.id}
        )

    async def context(
        self, vehicle: Any = None, driver: Any = None
    ) -> TransitionContext:
        """Guard context built from rows read now, inside the caller's lock."""
        return TransitionContext(
            today=self.today(),
            vehicle=vehicle,
            driver=driver,
            fleet_trips=await self.trips.get_claiming(),
        )

    # ── Locks ─────────────────────────────────────────────────────────

    def lock_vehicle(self, vehicle: VehicleModel):
        return exclusive(
            vehicle_lock(self.redis, vehicle.id, settings.lock_ttl_seconds),
            f"Vehicle {vehicle.number}",
        )

    def lock_driver(self, driver: UserModel):
        return exclusive(
            driver_lock(self.redis, driver.id, settings.lock_ttl_seconds),
            f"Driver {driver.name}",
        )

    @asynccontextmanager
    async def lock_pair(self, vehicle: VehicleModel, driver: UserModel):
        """Vehicle lock, then driver lock."""
        async with self.lock_vehicle(vehicle):
            async with self.lock_driver(driver):
                yield

    def lock_serials(self):
        return exclusive(
            serial_lock(self.redis, settings.lock_ttl_seconds), "Trip serial"
        )
