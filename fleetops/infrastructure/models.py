"""
SQLAlchemy ORM models.

Tables
------
* ``users``            -- requesters, drivers and admins (``role``)
* ``vehicles``         -- fleet vehicles; ``number`` is the plate
* ``trips``            -- trip requests through their whole lifecycle
* ``assignment_logs``  -- append-only vehicle/driver assignment history
* ``audit_logs``       -- admin actions
* ``fine_claims``      -- fines raised against completed trips

Column names match the attribute names of ``fleetops.domain.entities`` so the
pure domain functions work on loaded rows directly.

Indexes
-------
* **Unique** on ``trips.serial_number``, ``vehicles.number``, ``users.email``.
* **B-Tree** on ``trips.status``, ``trips.date``, ``trips.vehicle_id`` and
  ``trips.driver_id`` for the conflict checks run on every approval.
"""

import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from fleetops.domain.enums import (
    AssignmentAction,
    ClaimStatus,
    DriverStatus,
    LicenseClass,
    TripStatus,
    UserRole,
    VehicleStatus,
)


def _enum(cls: type[enum.Enum]) -> Enum:
    # Persist the enum *values* ("in-progress"), not the member names.
    return Enum(
        cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )


class UserModel(Base):
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(_enum(UserRole), default=UserRole.USER, nullable=False)

    # driver-only
    license_type = Column(_enum(LicenseClass), nullable=True)
    license_expiry = Column(Date, nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    vehicle_number = Column(String(32), nullable=True)
    status = Column(_enum(DriverStatus), default=DriverStatus.AVAILABLE)
    current_trip_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_vehicle", "vehicle_id"),
    )


class VehicleModel(Base):
    __tablename__ = "vehicles"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    number = Column(String(32), unique=True, nullable=False)
    model = Column(String(120), nullable=True)
    vehicle_type = Column(String(32), nullable=True)
    seats = Column(Integer, default=4, nullable=False)
    required_license = Column(
        _enum(LicenseClass), default=LicenseClass.B, nullable=False
    )
    status = Column(
        _enum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False
    )
    initial_odometer = Column(Float, default=0.0, nullable=False)
    last_service_mileage = Column(Float, default=0.0, nullable=False)
    service_interval = Column(Float, default=5000.0, nullable=False)
    license_expiry = Column(Date, nullable=True)
    insurance_expiry = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TripModel(Base):
    __tablename__ = "trips"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    serial_number = Column(String(32), unique=True, nullable=True)

    requester_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    requester_name = Column(String(120), nullable=True)
    requester_email = Column(String(255), nullable=True)

    pickup = Column(String(255), nullable=False, default="")
    destination = Column(String(255), nullable=False, default="")
    stops = Column(JSON, nullable=False, default=list)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    destination_lat = Column(Float, nullable=True)
    destination_lng = Column(Float, nullable=True)
    date = Column(Date, nullable=True)
    time = Column(String(16), nullable=True)
    passengers = Column(Integer, default=1, nullable=False)

    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    vehicle_number = Column(String(32), nullable=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    driver_name = Column(String(120), nullable=True)
    distance_km = Column(Float, nullable=True)
    cost = Column(Float, nullable=True)

    odometer_start = Column(Float, nullable=True)
    odometer_end = Column(Float, nullable=True)
    km_run = Column(Float, nullable=True)

    status = Column(_enum(TripStatus), default=TripStatus.PENDING, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    cancel_reason = Column(Text, nullable=True)

    breakdown_reason = Column(String(32), nullable=True)
    breakdown_odometer = Column(Float, nullable=True)
    breakdown_location = Column(String(255), nullable=True)
    breakdown_lat = Column(Float, nullable=True)
    breakdown_lng = Column(Float, nullable=True)
    last_visited_stop = Column(String(255), nullable=True)
    breakdown_at = Column(DateTime(timezone=True), nullable=True)
    needs_reassignment = Column(Boolean, default=False, nullable=False)
    parent_trip_id = Column(Integer, ForeignKey("trips.id"), nullable=True)
    reassigned_trip_id = Column(Integer, nullable=True)

    merge_proposal = Column(JSON, nullable=True)
    linked_proposal_trip_id = Column(Integer, nullable=True)
    master_trip_id = Column(Integer, nullable=True)
    merged_into_trip_id = Column(Integer, nullable=True)
    merge_rejection_reason = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_trips_status", "status"),
        Index("idx_trips_date", "date"),
        Index("idx_trips_vehicle", "vehicle_id"),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_requester", "requester_id"),
    )


class AssignmentLogModel(Base):
    __tablename__ = "assignment_logs"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, nullable=True)
    vehicle_number = Column(String(32), nullable=True)
    driver_id = Column(Integer, nullable=True)
    driver_name = Column(String(120), nullable=True)
    action = Column(_enum(AssignmentAction), nullable=False)
    performed_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_assignment_logs_vehicle", "vehicle_id"),
        Index("idx_assignment_logs_driver", "driver_id"),
    )


class AuditLogModel(Base):
    __tablename__ = "audit_logs"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor = Column(String(255), nullable=False)
    section = Column(String(64), nullable=False)
    action = Column(String(128), nullable=False)
    details = Column(Text, nullable=True)
    target_id = Column(String(64), nullable=True)
    meta_data = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_audit_logs_section", "section"),)


class FineClaimModel(Base):
    __tablename__ = "fine_claims"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(_enum(ClaimStatus), default=ClaimStatus.PENDING, nullable=False)
    amount_settled = Column(Float, nullable=True)
    settlement_date = Column(Date, nullable=True)
    settled_by = Column(String(255), nullable=True)
    settlement_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_fine_claims_trip", "trip_id"),)
