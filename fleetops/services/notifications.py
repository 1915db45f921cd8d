"""
Outbound notifications.

Fire-and-forget: every method awaits the email client but never raises on
delivery problems, which the client logs and swallows.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fleetops.infrastructure.email_client import EmailClient

logger = logging.getLogger(__name__)


def _label(trip: Any) -> str:
    return trip.serial_number or f"#{trip.id}"


def _route(trip: Any) -> str:
    return f"{trip.pickup} to {trip.destination}"


class Notifier:
    def __init__(self, client: Optional[EmailClient] = None):
        self.client = client or EmailClient()

    async def _send(self, to_email: Optional[str], subject: str, body: str, **params: Any) -> bool:
        if not to_email:
            logger.info("No email address for '%s', not sent", subject)
            return False
        return await self.client.send(to_email, subject, body, **params)

    async def trip_booked(self, trip: Any) -> bool:
        return await self._send(
            trip.requester_email,
            f"Trip {_label(trip)} received",
            f"Your trip from {_route(trip)} on {trip.date} is waiting for approval.",
            trip_serial=_label(trip),
        )

    async def trip_approved(self, trip: Any, driver: Any = None) -> None:
        await self._send(
            trip.requester_email,
            f"Trip {_label(trip)} approved",
            (
                f"Your trip from {_route(trip)} on {trip.date} is approved. "
                f"Vehicle {trip.vehicle_number}, driver {trip.driver_name}."
            ),
            trip_serial=_label(trip),
        )
        if driver is not None:
            await self._send(
                driver.email,
                f"New trip {_label(trip)}",
                (
                    f"You are assigned to trip {_label(trip)} from {_route(trip)} "
                    f"on {trip.date} at {trip.time or 'the booked time'} "
                    f"with vehicle {trip.vehicle_number}."
                ),
                trip_serial=_label(trip),
            )

    async def trip_rejected(self, trip: Any) -> bool:
        return await self._send(
            trip.requester_email,
            f"Trip {_label(trip)} rejected",
            f"Your trip from {_route(trip)} was rejected: {trip.rejection_reason}",
            trip_serial=_label(trip),
        )

    async def vehicle_assigned(self, driver: Any, vehicle: Any) -> bool:
        return await self._send(
            driver.email,
            f"Vehicle {vehicle.number} assigned",
            f"Hello {driver.name}, vehicle {vehicle.number} is now assigned to you.",
            vehicle_number=vehicle.number,
        )

    async def vehicle_unassigned(self, driver: Any, vehicle_number: Optional[str]) -> bool:
        return await self._send(
            driver.email,
            f"Vehicle {vehicle_number} unassigned",
            f"Hello {driver.name}, vehicle {vehicle_number} is no longer assigned to you.",
            vehicle_number=vehicle_number,
        )

    async def merge_proposed(self, master: Any, candidate: Any, message: str = "") -> None:
        for own, other in ((master, candidate), (candidate, master)):
            await self._send(
                own.requester_email,
                f"Shared ride proposed for trip {_label(own)}",
                (
                    f"We propose combining your trip {_label(own)} with trip "
                    f"{_label(other)} ({_route(other)}). Please accept or reject. "
                    f"{message}"
                ).strip(),
                trip_serial=_label(own),
            )

    async def merge_rejected(self, counterpart: Any, reason: str) -> bool:
        return await self._send(
            counterpart.requester_email,
            f"Shared ride for trip {_label(counterpart)} declined",
            f"The other passenger declined the shared ride: {reason}",
            trip_serial=_label(counterpart),
        )
