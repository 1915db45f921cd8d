"""
Vehicle endpoints
=================

POST /api/v1/vehicles                              -- register a vehicle
GET  /api/v1/vehicles                              -- all vehicles with derived status
GET  /api/v1/vehicles/{vehicle_id}                 -- one vehicle with derived status
POST /api/v1/vehicles/{vehicle_id}/maintenance     -- ground the vehicle
POST /api/v1/vehicles/{vehicle_id}/repair-complete -- back in service
POST /api/v1/vehicles/{vehicle_id}/service         -- record a service
GET  /api/v1/vehicles/{vehicle_id}/assignment-history
"""

from fastapi import APIRouter, Depends, Request

from fleetops.api.dependencies import provide
from fleetops.api.middleware import limiter
from fleetops.api.schemas import (
    ActorRequest,
    AssignmentLogResponse,
    ServiceRecordRequest,
    VehicleCreateRequest,
    VehicleResponse,
)
from fleetops.domain.availability import VehicleSnapshot
from fleetops.services.assignments import AssignmentService
from fleetops.services.fleet import FleetService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


def vehicle_view(vehicle, snap: VehicleSnapshot) -> VehicleResponse:
    return VehicleResponse(
        id=vehicle.id,
        number=vehicle.number,
        model=vehicle.model,
        vehicle_type=vehicle.vehicle_type,
        seats=vehicle.seats,
        required_license=vehicle.required_license,
        status=snap.stored_status,
        effective_status=snap.effective_status,
        total_mileage=snap.total_mileage,
        km_since_service=snap.km_since_service,
        service_due=snap.service_due,
        license_expiry=vehicle.license_expiry,
        license_status=snap.license_status,
        days_to_license_expiry=snap.days_to_license_expiry,
        insurance_expiry=vehicle.insurance_expiry,
        insurance_status=snap.insurance_status,
        days_to_insurance_expiry=snap.days_to_insurance_expiry,
        active_trip_ids=list(snap.active_trip_ids),
    )


async def _view(service: FleetService, vehicle_id: int) -> VehicleResponse:
    vehicle, snap = await service.snapshot(vehicle_id)
    return vehicle_view(vehicle, snap)


@router.post("", status_code=201, response_model=VehicleResponse, summary="Register a vehicle")
@limiter.limit("100/minute")
async def register_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    service: FleetService = Depends(provide(FleetService)),
):
    vehicle = await service.register_vehicle(body.model_dump(exclude={"actor"}), body.actor)
    return await _view(service, vehicle.id)


@router.get("", response_model=list[VehicleResponse], summary="List vehicles")
@limiter.limit("100/minute")
async def list_vehicles(
    request: Request,
    service: FleetService = Depends(provide(FleetService)),
):
    return [vehicle_view(v, snap) for v, snap in await service.snapshots()]


@router.get("/{vehicle_id}", response_model=VehicleResponse, summary="Get a vehicle")
@limiter.limit("100/minute")
async def get_vehicle(
    request: Request,
    vehicle_id: int,
    service: FleetService = Depends(provide(FleetService)),
):
    return await _view(service, vehicle_id)


@router.post("/{vehicle_id}/maintenance", response_model=VehicleResponse, summary="Send to maintenance")
@limiter.limit("100/minute")
async def send_to_maintenance(
    request: Request,
    vehicle_id: int,
    body: ActorRequest,
    service: FleetService = Depends(provide(FleetService)),
):
    await service.send_to_maintenance(vehicle_id, body.actor)
    return await _view(service, vehicle_id)


@router.post("/{vehicle_id}/repair-complete", response_model=VehicleResponse, summary="Complete a repair")
@limiter.limit("100/minute")
async def repair_complete(
    request: Request,
    vehicle_id: int,
    body: ActorRequest,
    service: FleetService = Depends(provide(FleetService)),
):
    await service.repair_complete(vehicle_id, body.actor)
    return await _view(service, vehicle_id)


@router.post("/{vehicle_id}/service", response_model=VehicleResponse, summary="Record a service")
@limiter.limit("100/minute")
async def record_service(
    request: Request,
    vehicle_id: int,
    body: ServiceRecordRequest,
    service: FleetService = Depends(provide(FleetService)),
):
    await service.record_service(vehicle_id, body.mileage, body.actor)
    return await _view(service, vehicle_id)


@router.get(
    "/{vehicle_id}/assignment-history",
    response_model=list[AssignmentLogResponse],
    summary="Assignment log of a vehicle",
)
@limiter.limit("100/minute")
async def vehicle_assignment_history(
    request: Request,
    vehicle_id: int,
    service: AssignmentService = Depends(provide(AssignmentService)),
):
    return await service.history(vehicle_id=vehicle_id)
