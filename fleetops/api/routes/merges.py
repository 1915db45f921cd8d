"""
Merge endpoints
===============

POST /api/v1/merges                    -- admin proposes a merge
POST /api/v1/merges/{trip_id}/accept   -- requester consents
POST /api/v1/merges/{trip_id}/reject   -- requester refuses (reason required)
POST /api/v1/merges/{trip_id}/finalize -- admin confirms after both consents

``trip_id`` may be either trip of the proposal.
"""

from fastapi import APIRouter, Depends, Request

from fleetops.api.dependencies import provide
from fleetops.api.middleware import limiter
from fleetops.api.schemas import (
    ActorRequest,
    ConsentRequest,
    MergeProposalResponse,
    MergeProposeRequest,
    MergeRejectRequest,
    TripResponse,
)
from fleetops.services.merges import MergeService

router = APIRouter(prefix="/merges", tags=["merges"])


@router.post("", status_code=201, response_model=MergeProposalResponse, summary="Propose a merge")
@limiter.limit("100/minute")
async def propose_merge(
    request: Request,
    body: MergeProposeRequest,
    service: MergeService = Depends(provide(MergeService)),
):
    return await service.propose(
        body.master_trip_id,
        body.candidate_trip_id,
        body.vehicle_id,
        body.driver_id,
        body.message,
        body.actor,
    )


@router.post("/{trip_id}/accept", response_model=MergeProposalResponse, summary="Accept a merge")
@limiter.limit("100/minute")
async def accept_merge(
    request: Request,
    trip_id: int,
    body: ConsentRequest,
    service: MergeService = Depends(provide(MergeService)),
):
    return await service.accept(trip_id, body.user_id)


@router.post("/{trip_id}/reject", response_model=MergeProposalResponse, summary="Reject a merge")
@limiter.limit("100/minute")
async def reject_merge(
    request: Request,
    trip_id: int,
    body: MergeRejectRequest,
    service: MergeService = Depends(provide(MergeService)),
):
    return await service.reject(trip_id, body.user_id, body.reason)


@router.post("/{trip_id}/finalize", response_model=TripResponse, summary="Finalise a merge")
@limiter.limit("100/minute")
async def finalize_merge(
    request: Request,
    trip_id: int,
    body: ActorRequest,
    service: MergeService = Depends(provide(MergeService)),
):
    return await service.finalize(trip_id, body.actor)
