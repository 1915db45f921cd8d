"""
Driver and user endpoints
=========================

POST /api/v1/users                                  -- register a requester or admin
POST /api/v1/drivers                                -- register a driver
GET  /api/v1/drivers                                -- drivers with resolved status
POST /api/v1/drivers/{driver_id}/assign-vehicle     -- attach a vehicle
POST /api/v1/drivers/{driver_id}/unassign-vehicle   -- detach the vehicle
GET  /api/v1/drivers/{driver_id}/assignment-history
"""

from fastapi import APIRouter, Depends, Request

from fleetops.api.dependencies import provide
from fleetops.api.middleware import limiter
from fleetops.api.schemas import (
    ActorRequest,
    AssignmentLogResponse,
    AssignVehicleRequest,
    DriverResponse,
    UserCreateRequest,
    UserResponse,
)
from fleetops.domain.enums import UserRole
from fleetops.services.assignments import AssignmentService
from fleetops.services.fleet import FleetService

router = APIRouter(tags=["drivers"])


@router.post("/users", status_code=201, response_model=UserResponse, summary="Register a user")
@limiter.limit("100/minute")
async def register_user(
    request: Request,
    body: UserCreateRequest,
    service: FleetService = Depends(provide(FleetService)),
):
    return await service.register_user(body.model_dump(exclude={"actor"}), body.actor)


@router.post("/drivers", status_code=201, response_model=UserResponse, summary="Register a driver")
@limiter.limit("100/minute")
async def register_driver(
    request: Request,
    body: UserCreateRequest,
    service: FleetService = Depends(provide(FleetService)),
):
    data = body.model_dump(exclude={"actor"})
    data["role"] = UserRole.DRIVER
    return await service.register_user(data, body.actor)


@router.get("/drivers", response_model=list[DriverResponse], summary="List drivers")
@limiter.limit("100/minute")
async def list_drivers(
    request: Request,
    service: FleetService = Depends(provide(FleetService)),
):
    return [
        DriverResponse(
            **UserResponse.model_validate(driver).model_dump(),
            effective_status=status,
        )
        for driver, status in await service.drivers()
    ]


@router.post(
    "/drivers/{driver_id}/assign-vehicle",
    response_model=UserResponse,
    summary="Assign a vehicle to a driver",
    responses={409: {"description": "Vehicle held by another driver; resend with confirm_reassign."}},
)
@limiter.limit("100/minute")
async def assign_vehicle(
    request: Request,
    driver_id: int,
    body: AssignVehicleRequest,
    service: AssignmentService = Depends(provide(AssignmentService)),
):
    return await service.assign_vehicle(
        driver_id, body.vehicle_id, body.confirm_reassign, body.actor
    )


@router.post(
    "/drivers/{driver_id}/unassign-vehicle",
    response_model=UserResponse,
    summary="Unassign a driver's vehicle",
)
@limiter.limit("100/minute")
async def unassign_vehicle(
    request: Request,
    driver_id: int,
    body: ActorRequest,
    service: AssignmentService = Depends(provide(AssignmentService)),
):
    return await service.unassign_vehicle(driver_id, body.actor)


@router.get(
    "/drivers/{driver_id}/assignment-history",
    response_model=list[AssignmentLogResponse],
    summary="Assignment log of a driver",
)
@limiter.limit("100/minute")
async def driver_assignment_history(
    request: Request,
    driver_id: int,
    service: AssignmentService = Depends(provide(AssignmentService)),
):
    return await service.history(driver_id=driver_id)
