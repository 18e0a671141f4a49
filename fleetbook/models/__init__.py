"""
Import all models here so that:
1. Alembic can auto-detect them when generating migrations
2. Relationships between models resolve correctly

Order matters: import parent tables before child tables.
"""

from fleetbook.models.role import RoleName
from fleetbook.models.user import User
from fleetbook.models.vehicle import Vehicle, VehicleStatus
from fleetbook.models.driver import Driver, DriverStatus
from fleetbook.models.booking import Booking, BookingStatus
from fleetbook.models.approval import Approval, ApprovalStatus
from fleetbook.models.audit_log import AuditLog

__all__ = [
    "RoleName",
    "User",
    "Vehicle",
    "VehicleStatus",
    "Driver",
    "DriverStatus",
    "Booking",
    "BookingStatus",
    "Approval",
    "ApprovalStatus",
    "AuditLog",
]
