"""Initial schema: users, vehicles, trips, assignment and audit logs, fine claims.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("number", sa.String(32), unique=True, nullable=False),
        sa.Column("model", sa.String(120), nullable=True),
        sa.Column("vehicle_type", sa.String(32), nullable=True),
        sa.Column("seats", sa.Integer, default=4, nullable=False),
        sa.Column("required_license", sa.String(32), default="B", nullable=False),
        sa.Column("status", sa.String(32), default="available", nullable=False),
        sa.Column("initial_odometer", sa.Float, default=0.0, nullable=False),
        sa.Column("last_service_mileage", sa.Float, default=0.0, nullable=False),
        sa.Column("service_interval", sa.Float, default=5000.0, nullable=False),
        sa.Column("license_expiry", sa.Date, nullable=True),
        sa.Column("insurance_expiry", sa.Date, nullable=True),
        _created_at(),
    )

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("role", sa.String(32), default="user", nullable=False),
        sa.Column("license_type", sa.String(32), nullable=True),
        sa.Column("license_expiry", sa.Date, nullable=True),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("vehicle_number", sa.String(32), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("current_trip_id", sa.Integer, nullable=True),
        _created_at(),
    )
    op.create_index("idx_users_role", "users", ["role"])
    op.create_index("idx_users_vehicle", "users", ["vehicle_id"])

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("serial_number", sa.String(32), unique=True, nullable=True),
        sa.Column(
            "requester_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("requester_name", sa.String(120), nullable=True),
        sa.Column("requester_email", sa.String(255), nullable=True),
        sa.Column("pickup", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("stops", sa.JSON, nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=True),
        sa.Column("pickup_lng", sa.Float, nullable=True),
        sa.Column("destination_lat", sa.Float, nullable=True),
        sa.Column("destination_lng", sa.Float, nullable=True),
        sa.Column("date", sa.Date, nullable=True),
        sa.Column("time", sa.String(16), nullable=True),
        sa.Column("passengers", sa.Integer, default=1, nullable=False),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("vehicle_number", sa.String(32), nullable=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("cost", sa.Float, nullable=True),
        sa.Column("odometer_start", sa.Float, nullable=True),
        sa.Column("odometer_end", sa.Float, nullable=True),
        sa.Column("km_run", sa.Float, nullable=True),
        sa.Column("status", sa.String(32), default="pending", nullable=False),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("cancel_reason", sa.Text, nullable=True),
        sa.Column("breakdown_reason", sa.String(32), nullable=True),
        sa.Column("breakdown_odometer", sa.Float, nullable=True),
        sa.Column("breakdown_location", sa.String(255), nullable=True),
        sa.Column("breakdown_lat", sa.Float, nullable=True),
        sa.Column("breakdown_lng", sa.Float, nullable=True),
        sa.Column("last_visited_stop", sa.String(255), nullable=True),
        sa.Column("breakdown_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("needs_reassignment", sa.Boolean, default=False, nullable=False),
        sa.Column(
            "parent_trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=True
        ),
        sa.Column("reassigned_trip_id", sa.Integer, nullable=True),
        sa.Column("merge_proposal", sa.JSON, nullable=True),
        sa.Column("linked_proposal_trip_id", sa.Integer, nullable=True),
        sa.Column("master_trip_id", sa.Integer, nullable=True),
        sa.Column("merged_into_trip_id", sa.Integer, nullable=True),
        sa.Column("merge_rejection_reason", sa.Text, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_date", "trips", ["date"])
    op.create_index("idx_trips_vehicle", "trips", ["vehicle_id"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])
    op.create_index("idx_trips_requester", "trips", ["requester_id"])

    # ── assignment_logs ───────────────────────────────────────────────
    op.create_table(
        "assignment_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vehicle_id", sa.Integer, nullable=True),
        sa.Column("vehicle_number", sa.String(32), nullable=True),
        sa.Column("driver_id", sa.Integer, nullable=True),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("performed_by", sa.String(255), nullable=True),
        _created_at(),
    )
    op.create_index("idx_assignment_logs_vehicle", "assignment_logs", ["vehicle_id"])
    op.create_index("idx_assignment_logs_driver", "assignment_logs", ["driver_id"])

    # ── audit_logs ────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor", sa.String(255), nullable=False),
        sa.Column("section", sa.String(64), nullable=False),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("meta_data", sa.JSON, nullable=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_audit_logs_section", "audit_logs", ["section"])

    # ── fine_claims ───────────────────────────────────────────────────
    op.create_table(
        "fine_claims",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(32), default="pending", nullable=False),
        sa.Column("amount_settled", sa.Float, nullable=True),
        sa.Column("settlement_date", sa.Date, nullable=True),
        sa.Column("settled_by", sa.String(255), nullable=True),
        sa.Column("settlement_notes", sa.Text, nullable=True),
        _created_at(),
    )
    op.create_index("idx_fine_claims_trip", "fine_claims", ["trip_id"])


def downgrade() -> None:
    op.drop_table("fine_claims")
    op.drop_table("audit_logs")
    op.drop_table("assignment_logs")
    op.drop_table("trips")
    op.drop_table("users")
    op.drop_table("vehicles")
