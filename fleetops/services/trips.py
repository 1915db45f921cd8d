"""
Trip service
============

Booking, approval, execution, breakdown and reassignment.  Every status
change goes through ``lifecycle.transition``; this module adds what a pure
state machine cannot do on its own:

* reads the fleet and checks guards while holding the vehicle lock,
* mirrors the trip's new state onto the vehicle and driver rows in the same
  database transaction (completion frees both, breakdown grounds the
  vehicle and frees the driver),
* writes the audit entry and sends the emails.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from fleetops.config import settings
from fleetops.domain import merge
from fleetops.domain.enums import (
    DriverStatus,
    MERGE_STATUSES,
    TripEvent,
    TripStatus,
    VehicleStatus,
)
from fleetops.domain.lifecycle import route_stops, transition
from fleetops.domain.pricing import PricingEngine
from fleetops.domain.serials import next_serial
from fleetops.errors import GuardViolation
from fleetops.infrastructure.models import TripModel

from .audit import AuditSection
from .base import BaseService
from .saga import Saga

logger = logging.getLogger(__name__)

_BOOKING_FIELDS = (
    "pickup",
    "destination",
    "stops",
    "pickup_lat",
    "pickup_lng",
    "destination_lat",
    "destination_lng",
    "date",
    "time",
    "passengers",
    "distance_km",
)


def remaining_stops(trip: Any) -> list[str]:
    """Intermediate stops not yet visited when the trip broke down."""
    route = route_stops(trip)
    if trip.last_visited_stop not in route:
        return list(trip.stops or [])
    visited = route.index(trip.last_visited_stop)
    # stops[i] sits at route[i + 1]
    return [s for i, s in enumerate(trip.stops or []) if i + 1 > visited]


class TripService(BaseService):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pricing = PricingEngine(settings.base_fare, settings.rate_per_km)

    def _pair_payload(self, trip: Any, vehicle: Any, driver: Any) -> dict[str, Any]:
        distance = self.pricing.estimate_distance(trip)
        return {
            "vehicle_id": vehicle.id,
            "vehicle_number": vehicle.number,
            "driver_id": driver.id,
            "driver_name": driver.name,
            "distance_km": distance,
            "cost": trip.cost if trip.cost is not None else self.pricing.cost_for(distance),
        }

    async def _new_serial(self) -> str:
        recent = await self.trips.recent_serials()
        return next_serial(recent, settings.serial_prefix, settings.serial_width)

    # ── Booking ───────────────────────────────────────────────────────

    async def book(self, requester_id: int, data: dict[str, Any]) -> TripModel:
        requester = await self.get_user(requester_id)
        trip_date: Optional[date] = data.get("date")
        if trip_date is not None and trip_date < self.today():
            raise GuardViolation(
                "Trips cannot be booked for a past date", {"date": str(trip_date)}
            )

        fields = {k: data[k] for k in _BOOKING_FIELDS if data.get(k) is not None}
        trip = TripModel(
            requester_id=requester.id,
            requester_name=requester.name,
            requester_email=requester.email,
            status=TripStatus.PENDING,
            needs_reassignment=False,
            **fields,
        )
        trip.distance_km = self.pricing.estimate_distance(trip)
        trip.cost = self.pricing.cost_for(trip.distance_km)

        async with self.lock_serials():
            trip.serial_number = await self._new_serial()
            await self.trips.create(trip)
            await self.session.commit()

        logger.info("Booked trip %s for user %s", trip.serial_number, requester.id)
        await self.audit.log(
            requester.email,
            AuditSection.TRIP_BOOKING,
            "Trip Requested",
            f"{trip.serial_number}: {trip.pickup} to {trip.destination} on {trip.date}",
            trip.id,
        )
        await self.notifier.trip_booked(trip)
        return trip

    async def list_trips(self, **filters: Any) -> list[TripModel]:
        return await self.trips.list(**filters)

    async def needing_reassignment(self) -> list[TripModel]:
        return await self.trips.needing_reassignment()

    # ── Admin decisions ───────────────────────────────────────────────

    async def approve(
        self, trip_id: int, vehicle_id: int, driver_id: int, actor: Optional[str] = None
    ) -> TripModel:
        trip = await self.get_trip(trip_id, for_update=True)
        vehicle = await self.get_vehicle(vehicle_id)
        driver = await self.get_driver(driver_id)

        async with self.lock_pair(vehicle, driver):
            ctx = await self.context(vehicle, driver)
            transition(trip, TripEvent.APPROVE, self._pair_payload(trip, vehicle, driver), ctx)
            await self.session.commit()

        await self.audit.log(
            actor,
            AuditSection.TRIP_APPROVAL,
            "Trip Approved",
            f"{trip.serial_number} approved with vehicle {vehicle.number} and driver {driver.name}",
            trip.id,
        )
        await self.notifier.trip_approved(trip, driver)
        return trip

    async def reject(self, trip_id: int, reason: str, actor: Optional[str] = None) -> TripModel:
        trip = await self.get_trip(trip_id, for_update=True)
        transition(trip, TripEvent.REJECT, {"rejection_reason": reason})
        await self.audit.log(
            actor,
            AuditSection.TRIP_APPROVAL,
            "Trip Rejected",
            f"{trip.serial_number} rejected: {reason}",
            trip.id,
        )
        await self.notifier.trip_rejected(trip)
        return trip

    async def cancel(self, trip_id: int, reason: str, actor: Optional[str] = None) -> TripModel:
        trip = await self.get_trip(trip_id, for_update=True)
        partner = None
        if TripStatus(trip.status) in MERGE_STATUSES:
            master, candidate = await self.merge_pair(trip)
            partner = merge.withdraw(master, candidate, trip, reason)
        else:
            transition(trip, TripEvent.CANCEL, {"cancel_reason": reason})
        await self._release_driver(trip)
        await self.audit.log(
            actor,
            AuditSection.TRIP_BOOKING,
            "Trip Cancelled",
            f"{trip.serial_number} cancelled: {trip.cancel_reason}",
            trip.id,
            {"merge_partner_trip_id": partner.id} if partner is not None else None,
        )
        if partner is not None:
            await self.notifier.merge_rejected(partner, trip.cancel_reason)
        return trip

    async def reassign(
        self, trip_id: int, vehicle_id: int, driver_id: int, actor: Optional[str] = None
    ) -> TripModel:
        """
        Give the trip a new vehicle/driver pair.

        An approved trip is updated in place.  A broken-down trip is handed
        to a derived trip that continues from the breakdown location; the
        derived trip is returned.
        """
        trip = await self.get_trip(trip_id, for_update=True)
        vehicle = await self.get_vehicle(vehicle_id)
        driver = await self.get_driver(driver_id)

        async with self.lock_pair(vehicle, driver):
            ctx = await self.context(vehicle, driver)
            if TripStatus(trip.status) == TripStatus.BROKEN_DOWN:
                result = await self._continue_after_breakdown(trip, vehicle, driver, ctx)
            else:
                transition(
                    trip, TripEvent.REASSIGN, self._pair_payload(trip, vehicle, driver), ctx
                )
                result = trip
            await self.session.commit()

        await self.audit.log(
            actor,
            AuditSection.TRIP_APPROVAL,
            "Trip Reassigned",
            f"{result.serial_number} reassigned to vehicle {vehicle.number} and driver {driver.name}",
            result.id,
            {"original_trip_id": trip.id} if result is not trip else None,
        )
        await self.notifier.trip_approved(result, driver)
        return result

    async def _continue_after_breakdown(
        self, original: TripModel, vehicle: Any, driver: Any, ctx
    ) -> TripModel:
        if original.reassigned_trip_id:
            raise GuardViolation(
                f"Trip {original.serial_number} was already reassigned",
                {"reassigned_trip_id": original.reassigned_trip_id},
            )
        derived = TripModel(
            requester_id=original.requester_id,
            requester_name=original.requester_name,
            requester_email=original.requester_email,
            pickup=original.breakdown_location,
            pickup_lat=original.breakdown_lat,
            pickup_lng=original.breakdown_lng,
            destination=original.destination,
            destination_lat=original.destination_lat,
            destination_lng=original.destination_lng,
            stops=remaining_stops(original),
            date=self.today(),
            time=original.time,
            passengers=original.passengers,
            parent_trip_id=original.id,
            status=TripStatus.PENDING,
            needs_reassignment=False,
        )
        before = {
            "status": original.status,
            "reassigned_trip_id": original.reassigned_trip_id,
            "needs_reassignment": original.needs_reassignment,
        }

        async def create_derived():
            async with self.lock_serials():
                derived.serial_number = await self._new_serial()
                await self.trips.create(derived)

        async def drop_derived():
            await self.session.delete(derived)
            await self.session.flush()

        async def dispatch_derived():
            payload = self._pair_payload(derived, vehicle, driver)
            transition(derived, TripEvent.APPROVE, payload, ctx)
            transition(derived, TripEvent.REASSIGN, payload, ctx)

        async def hand_off():
            transition(original, TripEvent.REASSIGN, {"reassigned_trip_id": derived.id}, ctx)
            await self.session.flush()

        async def undo_hand_off():
            for key, value in before.items():
                setattr(original, key, value)

        await (
            Saga("breakdown-reassignment")
            .step("create derived trip", create_derived, drop_derived)
            .step("dispatch derived trip", dispatch_derived)
            .step("hand off original trip", hand_off, undo_hand_off)
            .run()
        )
        logger.info(
            "Trip %s continues as %s", original.serial_number, derived.serial_number
        )
        return derived

    # ── Driver actions ────────────────────────────────────────────────

    def _check_driver(self, trip: Any, driver_id: Optional[int]) -> None:
        if driver_id is not None and driver_id != trip.driver_id:
            raise GuardViolation(
                "Only the assigned driver can update this trip",
                {"driver_id": driver_id},
            )

    async def start(
        self, trip_id: int, odometer_start: float, driver_id: Optional[int] = None
    ) -> TripModel:
        trip = await self.get_trip(trip_id, for_update=True)
        self._check_driver(trip, driver_id)
        vehicle = await self.vehicle_of(trip)
        driver = await self.driver_of(trip)
        if vehicle is None or driver is None:
            raise GuardViolation("Trip has no vehicle or driver assigned")

        async with self.lock_pair(vehicle, driver):
            if VehicleStatus(vehicle.status) == VehicleStatus.IN_MAINTENANCE:
                raise GuardViolation(f"Vehicle {vehicle.number} is in maintenance")
            if driver.current_trip_id is not None and driver.current_trip_id != trip.id:
                raise GuardViolation(
                    f"Driver {driver.name} is already on another trip",
                    {"trip_id": driver.current_trip_id},
                )
            transition(
                trip,
                TripEvent.START,
                {"odometer_start": odometer_start, "driver_id": driver_id},
                await self.context(vehicle, driver),
            )
            driver.current_trip_id = trip.id
            driver.status = DriverStatus.IN_USE
            vehicle.status = VehicleStatus.ASSIGNED
            await self.session.commit()

        await self.audit.log(
            driver.email,
            AuditSection.TRIP_EXECUTION,
            "Trip Started",
            f"{trip.serial_number} started at odometer {trip.odometer_start}",
            trip.id,
        )
        return trip

    async def complete(
        self, trip_id: int, odometer_end: float, driver_id: Optional[int] = None
    ) -> TripModel:
        trip = await self.get_trip(trip_id, for_update=True)
        self._check_driver(trip, driver_id)
        transition(trip, TripEvent.COMPLETE, {"odometer_end": odometer_end})

        vehicle = await self.vehicle_of(trip)
        if vehicle is not None and VehicleStatus(vehicle.status) != VehicleStatus.IN_MAINTENANCE:
            vehicle.status = VehicleStatus.AVAILABLE
        driver = await self._release_driver(trip, finished=True)

        await self.audit.log(
            driver.email if driver else None,
            AuditSection.TRIP_EXECUTION,
            "Trip Completed",
            f"{trip.serial_number} completed, {trip.km_run:g} km",
            trip.id,
        )
        return trip

    async def report_breakdown(
        self, trip_id: int, report: dict[str, Any], driver_id: Optional[int] = None
    ) -> TripModel:
        trip = await self.get_trip(trip_id, for_update=True)
        self._check_driver(trip, driver_id)
        transition(trip, TripEvent.REPORT_BREAKDOWN, report)

        vehicle = await self.vehicle_of(trip)
        if vehicle is not None:
            vehicle.status = VehicleStatus.IN_MAINTENANCE
        driver = await self._release_driver(trip, finished=True)

        logger.warning(
            "Trip %s broke down at %s (%s), needs reassignment",
            trip.serial_number,
            trip.breakdown_location,
            trip.breakdown_reason,
        )
        await self.audit.log(
            driver.email if driver else None,
            AuditSection.TRIP_EXECUTION,
            "Breakdown Reported",
            (
                f"{trip.serial_number}: {trip.breakdown_reason} at "
                f"{trip.breakdown_location}, odometer {trip.breakdown_odometer:g}"
            ),
            trip.id,
            {"last_visited_stop": trip.last_visited_stop},
        )
        return trip

    async def _release_driver(self, trip: Any, finished: bool = False):
        """Clear the driver's current trip; *finished* also frees an idle driver."""
        driver = await self.driver_of(trip)
        if driver is None:
            return None
        if driver.current_trip_id == trip.id or (
            finished and driver.current_trip_id is None
        ):
            driver.current_trip_id = None
            driver.status = DriverStatus.AVAILABLE
        return driver
