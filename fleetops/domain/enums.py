"""Domain enumerations shared by the state machine, resolver and store."""

import enum


class TripStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REASSIGNED = "reassigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    BROKEN_DOWN = "broken-down"
    AWAITING_MERGE_APPROVAL = "awaiting_merge_approval"
    APPROVED_MERGE_REQUEST = "approved_merge_request"
    MERGED = "merged"
    # Kept for stored data only; no transition produces it.
    MERGE_REJECTED = "merge_rejected"


TERMINAL_STATUSES: frozenset[TripStatus] = frozenset(
    {
        TripStatus.COMPLETED,
        TripStatus.CANCELLED,
        TripStatus.REJECTED,
        TripStatus.MERGED,
    }
)

# Statuses the availability resolver ignores entirely.
INACTIVE_STATUSES: frozenset[TripStatus] = frozenset(
    {
        TripStatus.COMPLETED,
        TripStatus.CANCELLED,
        TripStatus.REJECTED,
        TripStatus.BROKEN_DOWN,
    }
)

# A trip in one of these statuses holds its vehicle and driver for its date.
OCCUPYING_STATUSES: frozenset[TripStatus] = frozenset(
    {
        TripStatus.APPROVED,
        TripStatus.REASSIGNED,
        TripStatus.IN_PROGRESS,
        TripStatus.APPROVED_MERGE_REQUEST,
    }
)

# Trips whose distance counts towards a vehicle's lifetime mileage.
MILEAGE_STATUSES: frozenset[TripStatus] = frozenset(
    {
        TripStatus.COMPLETED,
        TripStatus.BROKEN_DOWN,
        TripStatus.REASSIGNED,
    }
)

MERGE_STATUSES: frozenset[TripStatus] = frozenset(
    {TripStatus.AWAITING_MERGE_APPROVAL, TripStatus.APPROVED_MERGE_REQUEST}
)


class TripEvent(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    REASSIGN = "reassign"
    START = "start"
    COMPLETE = "complete"
    REPORT_BREAKDOWN = "report_breakdown"
    PROPOSE_MERGE = "propose_merge"
    CONSENTS_RECEIVED = "consents_received"
    REVERT_MERGE = "revert_merge"
    DECLINE_MERGE = "decline_merge"
    FINALIZE_MERGE = "finalize_merge"
    DISPATCH_MERGE = "dispatch_merge"


class VehicleStatus(str, enum.Enum):
    """Stored vehicle flag."""

    AVAILABLE = "available"
    ASSIGNED = "assigned"
    IN_MAINTENANCE = "in-maintenance"


class EffectiveVehicleStatus(str, enum.Enum):
    """Derived display status, see ``availability.resolve_vehicle_status``."""

    AVAILABLE = "available"
    IN_USE = "in-use"
    IN_MAINTENANCE = "in-maintenance"


class DriverStatus(str, enum.Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    IN_USE = "in-use"


class UserRole(str, enum.Enum):
    USER = "user"
    DRIVER = "driver"
    ADMIN = "admin"


class LicenseClass(str, enum.Enum):
    A = "A"
    B = "B"
    D = "D"


class BreakdownReason(str, enum.Enum):
    MECHANICAL = "mechanical"
    TIRE = "tire"
    OVERHEATING = "overheating"
    ACCIDENT = "accident"
    OTHER = "other"


class ConsentState(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ExpiryRisk(str, enum.Enum):
    OK = "ok"
    WARNING = "warning"
    EXPIRED = "expired"


class ClaimStatus(str, enum.Enum):
    PENDING = "pending"
    SETTLED = "settled"


class AssignmentAction(str, enum.Enum):
    ASSIGNED = "Vehicle Assigned"
    UNASSIGNED = "Vehicle Unassigned"
    REASSIGNED_TO_OTHER = "Vehicle Re-assigned to other"
