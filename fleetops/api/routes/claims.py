"""
Fine claim endpoints
====================

POST /api/v1/claims                     -- claim a fine against a completed trip
GET  /api/v1/claims                     -- list claims
POST /api/v1/claims/{claim_id}/settle   -- settle a claim
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from fleetops.api.dependencies import provide
from fleetops.api.middleware import limiter
from fleetops.api.schemas import ClaimCreateRequest, ClaimSettleRequest, FineClaimResponse
from fleetops.domain.enums import ClaimStatus
from fleetops.services.claims import ClaimService

router = APIRouter(prefix="/claims", tags=["claims"])


@router.post("", status_code=201, response_model=FineClaimResponse, summary="Claim a fine")
@limiter.limit("100/minute")
async def file_claim(
    request: Request,
    body: ClaimCreateRequest,
    service: ClaimService = Depends(provide(ClaimService)),
):
    return await service.file(body.trip_id, body.amount, body.description, body.actor)


@router.get("", response_model=list[FineClaimResponse], summary="List fine claims")
@limiter.limit("100/minute")
async def list_claims(
    request: Request,
    status: Optional[ClaimStatus] = None,
    driver_id: Optional[int] = None,
    service: ClaimService = Depends(provide(ClaimService)),
):
    return await service.list_claims(status=status, driver_id=driver_id)


@router.post("/{claim_id}/settle", response_model=FineClaimResponse, summary="Settle a fine claim")
@limiter.limit("100/minute")
async def settle_claim(
    request: Request,
    claim_id: int,
    body: ClaimSettleRequest,
    service: ClaimService = Depends(provide(ClaimService)),
):
    return await service.settle(claim_id, body.amount_settled, body.notes, body.actor)
