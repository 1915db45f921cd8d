"""
Merge service: candidate discovery and the consent exchange over stored trips.

Either trip of a proposal can be used to address it; the master/candidate
pair is resolved from the bidirectional links.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fleetops.config import settings
from fleetops.domain import merge
from fleetops.domain.entities import MergeProposal, load_proposal
from fleetops.domain.matching import merge_candidates
from fleetops.errors import GuardViolation
from fleetops.infrastructure.models import TripModel

from .audit import AuditSection
from .base import BaseService
from .saga import Saga

logger = logging.getLogger(__name__)

_RESTORABLE = (
    "status",
    "vehicle_id",
    "vehicle_number",
    "driver_id",
    "driver_name",
    "passengers",
    "merged_into_trip_id",
)


def _snapshot(trip: Any) -> dict[str, Any]:
    return {key: getattr(trip, key) for key in _RESTORABLE}


def _restore(trip: Any, snapshot: dict[str, Any]) -> None:
    for key, value in snapshot.items():
        setattr(trip, key, value)


class MergeService(BaseService):
    async def pair(self, trip_id: int) -> tuple[TripModel, TripModel]:
        return await self.merge_pair(await self.get_trip(trip_id))

    async def candidates(self, master_id: int) -> list[TripModel]:
        master = await self.get_trip(master_id)
        same_day = await self.trips.on_date(master.date) if master.date else []
        return merge_candidates(master, same_day, settings.h3_resolution)

    async def propose(
        self,
        master_id: int,
        candidate_id: int,
        vehicle_id: int,
        driver_id: int,
        message: str = "",
        actor: Optional[str] = None,
    ) -> MergeProposal:
        master = await self.get_trip(master_id)
        candidate = await self.get_trip(candidate_id)
        vehicle = await self.get_vehicle(vehicle_id)
        driver = await self.get_driver(driver_id)

        proposal = merge.propose(
            master,
            candidate,
            vehicle_id=vehicle.id,
            vehicle_number=vehicle.number,
            driver_id=driver.id,
            driver_name=driver.name,
            message=message,
            proposed_by=actor,
            ctx=await self.context(vehicle, driver),
        )
        await self.audit.log(
            actor,
            AuditSection.MERGE_REQUESTS,
            "Merge Proposed",
            f"{candidate.serial_number} proposed to merge into {master.serial_number}",
            master.id,
            {"candidate_trip_id": candidate.id},
        )
        await self.notifier.merge_proposed(master, candidate, message)
        return proposal

    async def accept(self, trip_id: int, user_id: int) -> MergeProposal:
        master, candidate = await self.pair(trip_id)
        user = await self.get_user(user_id)
        proposal = merge.accept(master, candidate, user.id)
        await self.audit.log(
            user.email,
            AuditSection.MERGE_REQUESTS,
            "Merge Accepted",
            f"{user.name} accepted merging {candidate.serial_number} into {master.serial_number}",
            master.id,
        )
        return proposal

    async def reject(self, trip_id: int, user_id: int, reason: str) -> MergeProposal:
        master, candidate = await self.pair(trip_id)
        user = await self.get_user(user_id)
        counterpart = merge.counterpart_of(master, candidate, user.id)
        proposal = merge.reject(master, candidate, user.id, reason)
        await self.audit.log(
            user.email,
            AuditSection.MERGE_REQUESTS,
            "Merge Rejected",
            f"{user.name} rejected merging {candidate.serial_number} into {master.serial_number}: {reason}",
            master.id,
        )
        await self.notifier.merge_rejected(counterpart, proposal.rejection_reason)
        return proposal

    async def finalize(self, trip_id: int, actor: Optional[str] = None) -> TripModel:
        """Admin confirmation; returns the master, which now carries the dispatch."""
        master, candidate = await self.pair(trip_id)
        proposal = load_proposal(master)
        if proposal is None or proposal.vehicle_id is None or proposal.driver_id is None:
            raise GuardViolation("The merge proposal has no vehicle or driver")
        vehicle = await self.get_vehicle(proposal.vehicle_id)
        driver = await self.get_driver(proposal.driver_id)

        async with self.lock_pair(vehicle, driver):
            ctx = await self.context(vehicle, driver)
            saved = {master.id: _snapshot(master), candidate.id: _snapshot(candidate)}

            async def apply():
                merge.finalize(master, candidate, ctx)

            async def undo():
                _restore(master, saved[master.id])
                _restore(candidate, saved[candidate.id])

            await (
                Saga("merge-finalisation")
                .step("merge trips", apply, undo)
                .step("persist", self.session.flush)
                .run()
            )
            await self.session.commit()

        logger.info("Trip %s merged into %s", candidate.serial_number, master.serial_number)
        await self.audit.log(
            actor,
            AuditSection.MERGE_REQUESTS,
            "Merge Finalized",
            (
                f"{candidate.serial_number} merged into {master.serial_number}; "
                f"{master.passengers} passengers with vehicle {vehicle.number}"
            ),
            master.id,
        )
        await self.notifier.trip_approved(master, driver)
        return master
