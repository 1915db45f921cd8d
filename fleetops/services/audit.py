"""
Audit logging for admin and driver actions.

One append-only entry per significant transition.  The core never reads the
log back; it is exposed read-only through the admin API.
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fleetops.infrastructure.models import AuditLogModel
from fleetops.infrastructure.repositories import AuditLogRepository


class AuditSection:
    """Section tags shown in the audit log viewer."""

    TRIP_BOOKING = "Trip Booking"
    TRIP_APPROVAL = "Trip Approval"
    TRIP_EXECUTION = "Trip Execution"
    DRIVER_MANAGEMENT = "Driver Management"
    VEHICLE_MANAGEMENT = "Vehicle Management"
    MERGE_REQUESTS = "Merge Requests"
    FINE_CLAIMS = "Fine Claims"


class AuditLogger:
    def __init__(self, session: AsyncSession):
        self.repo = AuditLogRepository(session)

    async def log(
        self,
        actor: Optional[str],
        section: str,
        action: str,
        details: str = "",
        target_id: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLogModel:
        return await self.repo.append(
            AuditLogModel(
                actor=actor or "system",
                section=section,
                action=action,
                details=details,
                target_id=str(target_id) if target_id is not None else None,
                meta_data=metadata,
            )
        )
