"""initial schema: users, vehicles, drivers, bookings, approvals, audit logs

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

ROLE_NAMES = ("EMPLOYEE", "APPROVER_L1", "APPROVER_L2", "ADMIN")
VEHICLE_STATUSES = ("AVAILABLE", "IN_USE", "MAINTENANCE", "OUT_OF_SERVICE")
DRIVER_STATUSES = ("AVAILABLE", "BUSY", "OFF_DUTY")
BOOKING_STATUSES = ("PENDING", "IN_PROGRESS", "APPROVED", "REJECTED", "CANCELLED", "COMPLETED")
APPROVAL_STATUSES = ("PENDING", "APPROVED", "REJECTED", "CANCELLED")


def _timestamps(with_updated: bool = True) -> list:
    cols = [sa.Column("createdAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False)]
    if with_updated:
        cols.append(sa.Column("updatedAt", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum(*ROLE_NAMES, name="rolename"), nullable=False),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("isActive", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plateNumber", sa.String(length=20), nullable=False),
        sa.Column("status", sa.Enum(*VEHICLE_STATUSES, name="vehiclestatus"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_vehicles_id", "vehicles", ["id"])
    op.create_index("ix_vehicles_plateNumber", "vehicles", ["plateNumber"], unique=True)

    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("licenseNumber", sa.String(length=100), nullable=False),
        sa.Column("status", sa.Enum(*DRIVER_STATUSES, name="driverstatus"), nullable=False),
    )
    op.create_index("ix_drivers_id", "drivers", ["id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("userId", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("createdById", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("vehicleId", sa.Integer(), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("driverId", sa.Integer(), sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("startDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("endDate", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.Enum(*BOOKING_STATUSES, name="bookingstatus"), nullable=False),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rejectionReason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('"startDate" < "endDate"', name="ck_bookings_window"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_userId", "bookings", ["userId"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_vehicle_status", "bookings", ["vehicleId", "status"])

    op.create_table(
        "approvals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("bookingId", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("approverId", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("status", sa.Enum(*APPROVAL_STATUSES, name="approvalstatus"), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("approvedAt", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("bookingId", "level", name="uq_approvals_booking_level"),
        sa.CheckConstraint("level IN (1, 2)", name="ck_approvals_level"),
    )
    op.create_index("ix_approvals_id", "approvals", ["id"])
    op.create_index("ix_approvals_bookingId", "approvals", ["bookingId"])
    op.create_index("ix_approvals_status", "approvals", ["status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("userId", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entityType", sa.String(length=100), nullable=False),
        sa.Column("entityId", sa.Integer(), nullable=True),
        sa.Column("oldValues", sa.JSON(), nullable=True),
        sa.Column("newValues", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ipAddress", sa.String(length=64), nullable=True),
        sa.Column("userAgent", sa.String(length=500), nullable=True),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_createdAt", "audit_logs", ["createdAt"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("approvals")
    op.drop_table("bookings")
    op.drop_table("drivers")
    op.drop_table("vehicles")
    op.drop_table("users")
    for name in ("approvalstatus", "bookingstatus", "driverstatus", "vehiclestatus", "rolename"):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
