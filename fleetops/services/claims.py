"""Fine claims raised against completed trips and their settlement."""

from __future__ import annotations

from typing import Optional

from fleetops.domain.enums import ClaimStatus, TripStatus
from fleetops.errors import GuardViolation, ResourceNotFound
from fleetops.infrastructure.models import FineClaimModel
from fleetops.infrastructure.repositories import FineClaimRepository

from .audit import AuditSection
from .base import BaseService


class ClaimService(BaseService):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.claims = FineClaimRepository(self.session)

    async def get_claim(self, claim_id: int) -> FineClaimModel:
        claim = await self.claims.get_by_id(claim_id)
        if claim is None:
            raise ResourceNotFound("Fine claim", claim_id)
        return claim

    async def file(
        self,
        trip_id: int,
        amount: float,
        description: str = "",
        actor: Optional[str] = None,
    ) -> FineClaimModel:
        trip = await self.get_trip(trip_id)
        if TripStatus(trip.status) != TripStatus.COMPLETED:
            raise GuardViolation(
                "Fines can only be claimed for completed trips",
                {"trip_id": trip.id, "status": TripStatus(trip.status).value},
            )
        claim = await self.claims.create(
            FineClaimModel(
                trip_id=trip.id,
                driver_id=trip.driver_id,
                amount=amount,
                description=description,
                status=ClaimStatus.PENDING,
            )
        )
        await self.audit.log(
            actor,
            AuditSection.FINE_CLAIMS,
            "Fine Claimed",
            f"LKR {amount:,.2f} against {trip.serial_number} ({trip.driver_name})",
            claim.id,
        )
        return claim

    async def settle(
        self,
        claim_id: int,
        amount_settled: float,
        notes: str = "",
        actor: Optional[str] = None,
    ) -> FineClaimModel:
        claim = await self.get_claim(claim_id)
        if ClaimStatus(claim.status) == ClaimStatus.SETTLED:
            raise GuardViolation("This fine claim is already settled", {"claim_id": claim.id})
        if amount_settled > claim.amount:
            raise GuardViolation(
                "Settled amount cannot exceed the claimed amount",
                {"amount": claim.amount},
            )
        claim.status = ClaimStatus.SETTLED
        claim.amount_settled = amount_settled
        claim.settlement_date = self.today()
        claim.settled_by = actor
        claim.settlement_notes = notes
        await self.audit.log(
            actor,
            AuditSection.FINE_CLAIMS,
            "Fine Settled",
            f"Claim {claim.id} settled for LKR {amount_settled:,.2f}",
            claim.id,
        )
        return claim

    async def list_claims(
        self, status: Optional[ClaimStatus] = None, driver_id: Optional[int] = None
    ) -> list[FineClaimModel]:
        return await self.claims.list(status=status, driver_id=driver_id)
