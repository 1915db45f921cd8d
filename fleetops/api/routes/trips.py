"""
Trip endpoints
==============

POST /api/v1/trips                        -- book a trip (pending, TRP-NNN)
GET  /api/v1/trips                        -- list trips (filters)
GET  /api/v1/trips/{trip_id}              -- one trip
POST /api/v1/trips/{trip_id}/approve      -- admin: attach vehicle + driver
POST /api/v1/trips/{trip_id}/reject       -- admin: reject with reason
POST /api/v1/trips/{trip_id}/cancel       -- requester/admin: cancel
POST /api/v1/trips/{trip_id}/reassign     -- admin: new pair (or continue a broken-down trip)
POST /api/v1/trips/{trip_id}/start        -- driver: odometer start
POST /api/v1/trips/{trip_id}/complete     -- driver: odometer end
POST /api/v1/trips/{trip_id}/breakdown    -- driver: breakdown report
GET  /api/v1/trips/{trip_id}/merge-candidates
"""

import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request

from fleetops.api.dependencies import provide
from fleetops.api.middleware import limiter
from fleetops.api.schemas import (
    AssignPairRequest,
    BreakdownRequest,
    CancelRequest,
    CompleteTripRequest,
    RejectRequest,
    StartTripRequest,
    TripCreateRequest,
    TripResponse,
)
from fleetops.domain.enums import TripStatus
from fleetops.services.merges import MergeService
from fleetops.services.trips import TripService

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post("", status_code=201, response_model=TripResponse, summary="Book a trip")
@limiter.limit("100/minute")
async def book_trip(
    request: Request,
    body: TripCreateRequest,
    service: TripService = Depends(provide(TripService)),
):
    data = body.model_dump(exclude={"requester_id"})
    return await service.book(body.requester_id, data)


@router.get("", response_model=list[TripResponse], summary="List trips")
@limiter.limit("100/minute")
async def list_trips(
    request: Request,
    status: Optional[TripStatus] = None,
    requester_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    on_date: Optional[datetime.date] = None,
    service: TripService = Depends(provide(TripService)),
):
    return await service.list_trips(
        status=status, requester_id=requester_id, driver_id=driver_id, on_date=on_date
    )


@router.get("/{trip_id}", response_model=TripResponse, summary="Get a trip")
@limiter.limit("100/minute")
async def get_trip(
    request: Request,
    trip_id: int,
    service: TripService = Depends(provide(TripService)),
):
    return await service.get_trip(trip_id)


@router.post("/{trip_id}/approve", response_model=TripResponse, summary="Approve a pending trip")
@limiter.limit("100/minute")
async def approve_trip(
    request: Request,
    trip_id: int,
    body: AssignPairRequest,
    service: TripService = Depends(provide(TripService)),
):
    return await service.approve(trip_id, body.vehicle_id, body.driver_id, body.actor)


@router.post("/{trip_id}/reject", response_model=TripResponse, summary="Reject a pending trip")
@limiter.limit("100/minute")
async def reject_trip(
    request: Request,
    trip_id: int,
    body: RejectRequest,
    service: TripService = Depends(provide(TripService)),
):
    return await service.reject(trip_id, body.reason, body.actor)


@router.post("/{trip_id}/cancel", response_model=TripResponse, summary="Cancel a trip")
@limiter.limit("100/minute")
async def cancel_trip(
    request: Request,
    trip_id: int,
    body: CancelRequest,
    service: TripService = Depends(provide(TripService)),
):
    return await service.cancel(trip_id, body.reason, body.actor)


@router.post(
    "/{trip_id}/reassign",
    response_model=TripResponse,
    summary="Reassign vehicle and driver",
    description=(
        "An approved trip gets the new pair in place.  A broken-down trip is "
        "continued by a new trip starting at the breakdown location; that "
        "new trip is returned."
    ),
)
@limiter.limit("100/minute")
async def reassign_trip(
    request: Request,
    trip_id: int,
    body: AssignPairRequest,
    service: TripService = Depends(provide(TripService)),
):
    return await service.reassign(trip_id, body.vehicle_id, body.driver_id, body.actor)


@router.post("/{trip_id}/start", response_model=TripResponse, summary="Start a trip")
@limiter.limit("100/minute")
async def start_trip(
    request: Request,
    trip_id: int,
    body: StartTripRequest,
    service: TripService = Depends(provide(TripService)),
):
    return await service.start(trip_id, body.odometer_start, body.driver_id)


@router.post("/{trip_id}/complete", response_model=TripResponse, summary="End a trip")
@limiter.limit("100/minute")
async def complete_trip(
    request: Request,
    trip_id: int,
    body: CompleteTripRequest,
    service: TripService = Depends(provide(TripService)),
):
    return await service.complete(trip_id, body.odometer_end, body.driver_id)


@router.post("/{trip_id}/breakdown", response_model=TripResponse, summary="Report a breakdown")
@limiter.limit("100/minute")
async def report_breakdown(
    request: Request,
    trip_id: int,
    body: BreakdownRequest,
    service: TripService = Depends(provide(TripService)),
):
    report = body.model_dump(exclude={"driver_id"})
    return await service.report_breakdown(trip_id, report, body.driver_id)


@router.get(
    "/{trip_id}/merge-candidates",
    response_model=list[TripResponse],
    summary="Trips that could share this trip's dispatch",
)
@limiter.limit("100/minute")
async def merge_candidates(
    request: Request,
    trip_id: int,
    service: MergeService = Depends(provide(MergeService)),
):
    return await service.candidates(trip_id)
