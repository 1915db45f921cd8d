"""
Admin / observability endpoints
===============================

GET    /api/v1/admin/health                      -- simple health check
GET    /api/v1/admin/audit-log                   -- newest audit entries first
GET    /api/v1/admin/breakdowns                  -- broken-down trips awaiting a new pair
DELETE /api/v1/admin/assignment-logs/{entry_id}  -- remove one assignment log entry
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from fleetops.api.dependencies import get_db, provide
from fleetops.api.middleware import limiter
from fleetops.api.schemas import ActorRequest, AuditLogResponse, HealthResponse, TripResponse
from fleetops.infrastructure.repositories import AuditLogRepository
from fleetops.services.assignments import AssignmentService
from fleetops.services.trips import TripService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit-log", response_model=list[AuditLogResponse], summary="Audit trail")
@limiter.limit("100/minute")
async def audit_log(
    request: Request,
    section: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    return await AuditLogRepository(db).list(section=section, limit=limit)


@router.get(
    "/breakdowns",
    response_model=list[TripResponse],
    summary="Broken-down trips that still need a vehicle and driver",
)
@limiter.limit("100/minute")
async def breakdowns(
    request: Request,
    service: TripService = Depends(provide(TripService)),
):
    return await service.needing_reassignment()


@router.delete(
    "/assignment-logs/{entry_id}",
    status_code=204,
    summary="Delete an assignment log entry",
)
@limiter.limit("100/minute")
async def delete_assignment_log(
    request: Request,
    entry_id: int,
    body: Optional[ActorRequest] = None,
    service: AssignmentService = Depends(provide(AssignmentService)),
):
    await service.delete_log_entry(entry_id, body.actor if body else None)
    return Response(status_code=204)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
