"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Nothing here commits; the request's
``get_db`` dependency owns the transaction.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AssignmentLogModel,
    AuditLogModel,
    FineClaimModel,
    TripModel,
    UserModel,
    VehicleModel,
)
from fleetops.domain.enums import (
    ClaimStatus,
    OCCUPYING_STATUSES,
    TripStatus,
    UserRole,
)


def _plate_expr(column):
    return func.upper(func.replace(column, " ", ""))


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id)

    async def get_for_update(self, trip_id: int) -> Optional[TripModel]:
        """SELECT ... FOR UPDATE so concurrent writers queue on the row."""
        result = await self.session.execute(
            select(TripModel).where(TripModel.id == trip_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def list(
        self,
        *,
        status: TripStatus | None = None,
        requester_id: int | None = None,
        driver_id: int | None = None,
        on_date: date | None = None,
        limit: int = 200,
    ) -> list[TripModel]:
        query = select(TripModel).order_by(TripModel.id.desc()).limit(limit)
        if status is not None:
            query = query.where(TripModel.status == status)
        if requester_id is not None:
            query = query.where(TripModel.requester_id == requester_id)
        if driver_id is not None:
            query = query.where(TripModel.driver_id == driver_id)
        if on_date is not None:
            query = query.where(TripModel.date == on_date)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_claiming(self) -> list[TripModel]:
        """Every trip that may hold a vehicle or driver on some date."""
        result = await self.session.execute(
            select(TripModel).where(
                TripModel.status.in_(
                    [*OCCUPYING_STATUSES, TripStatus.AWAITING_MERGE_APPROVAL]
                )
            )
        )
        return list(result.scalars().all())

    async def get_active(self) -> list[TripModel]:
        """Trips the availability resolver and mileage roll-up look at."""
        result = await self.session.execute(
            select(TripModel).where(
                TripModel.status.not_in([TripStatus.CANCELLED, TripStatus.REJECTED])
            )
        )
        return list(result.scalars().all())

    async def for_vehicle(self, vehicle: VehicleModel) -> list[TripModel]:
        """Trips referencing *vehicle* by ID or by plate."""
        result = await self.session.execute(
            select(TripModel).where(
                or_(
                    TripModel.vehicle_id == vehicle.id,
                    _plate_expr(TripModel.vehicle_number)
                    == vehicle.number.replace(" ", "").upper(),
                )
            )
        )
        return list(result.scalars().all())

    async def on_date(self, on_date: date) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel).where(TripModel.date == on_date)
        )
        return list(result.scalars().all())

    async def needing_reassignment(self) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.needs_reassignment.is_(True))
            .order_by(TripModel.breakdown_at)
        )
        return list(result.scalars().all())

    async def recent_serials(self, limit: int = 50) -> list[str]:
        result = await self.session.execute(
            select(TripModel.serial_number)
            .where(TripModel.serial_number.is_not(None))
            .order_by(TripModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, vehicle: VehicleModel) -> VehicleModel:
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_id(self, vehicle_id: int) -> Optional[VehicleModel]:
        return await self.session.get(VehicleModel, vehicle_id)

    async def get_by_number(self, number: str) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(
                _plate_expr(VehicleModel.number) == number.replace(" ", "").upper()
            )
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).order_by(VehicleModel.number)
        )
        return list(result.scalars().all())


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def list_drivers(self) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.role == UserRole.DRIVER)
            .order_by(UserModel.name)
        )
        return list(result.scalars().all())

    async def holders_of(self, vehicle: VehicleModel) -> list[UserModel]:
        """Drivers currently holding *vehicle* (by ID or plate)."""
        result = await self.session.execute(
            select(UserModel).where(
                UserModel.role == UserRole.DRIVER,
                or_(
                    UserModel.vehicle_id == vehicle.id,
                    _plate_expr(UserModel.vehicle_number)
                    == vehicle.number.replace(" ", "").upper(),
                ),
            )
        )
        return list(result.scalars().all())


class AssignmentLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: AssignmentLogModel) -> AssignmentLogModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_id(self, entry_id: int) -> Optional[AssignmentLogModel]:
        return await self.session.get(AssignmentLogModel, entry_id)

    async def history(
        self, *, vehicle_id: int | None = None, driver_id: int | None = None
    ) -> list[AssignmentLogModel]:
        query = select(AssignmentLogModel).order_by(AssignmentLogModel.id.desc())
        if vehicle_id is not None:
            query = query.where(AssignmentLogModel.vehicle_id == vehicle_id)
        if driver_id is not None:
            query = query.where(AssignmentLogModel.driver_id == driver_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete(self, entry_id: int) -> int:
        result = await self.session.execute(
            delete(AssignmentLogModel).where(AssignmentLogModel.id == entry_id)
        )
        return result.rowcount or 0


class AuditLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: AuditLogModel) -> AuditLogModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list(
        self, *, section: str | None = None, limit: int = 100
    ) -> list[AuditLogModel]:
        query = select(AuditLogModel).order_by(AuditLogModel.id.desc()).limit(limit)
        if section:
            query = query.where(AuditLogModel.section == section)
        result = await self.session.execute(query)
        return list(result.scalars().all())


class FineClaimRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, claim: FineClaimModel) -> FineClaimModel:
        self.session.add(claim)
        await self.session.flush()
        return claim

    async def get_by_id(self, claim_id: int) -> Optional[FineClaimModel]:
        return await self.session.get(FineClaimModel, claim_id)

    async def list(
        self,
        *,
        status: ClaimStatus | None = None,
        driver_id: int | None = None,
    ) -> list[FineClaimModel]:
        query = select(FineClaimModel).order_by(FineClaimModel.id.desc())
        if status is not None:
            query = query.where(FineClaimModel.status == status)
        if driver_id is not None:
            query = query.where(FineClaimModel.driver_id == driver_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())
