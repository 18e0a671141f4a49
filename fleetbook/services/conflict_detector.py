from datetime import datetime
from sqlalchemy.orm import Session

from fleetbook.models.booking import Booking, ACTIVE_STATUSES


def find_conflict(
    db: Session,
    vehicle_id: int,
    start: datetime,
    end: datetime,
    exclude_id: int | None = None,
) -> Booking | None:
    """
    Return an active booking on the vehicle whose window overlaps [start, end), or None.

    Only APPROVED / IN_PROGRESS bookings block. Windows are half-open, so a
    booking ending exactly when another starts is not a conflict.
    """
    q = db.query(Booking).filter(
        Booking.vehicleId == vehicle_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.startDate < end,
        Booking.endDate   > start,
    )
    if exclude_id is not None:
        q = q.filter(Booking.id != exclude_id)
    return q.order_by(Booking.startDate).first()


def describe_conflict(b: Booking) -> dict:
    """Payload attached to BookingConflictException."""
    return {
        "id":        b.id,
        "startDate": b.startDate.isoformat(),
        "endDate":   b.endDate.isoformat(),
        "status":    b.status.value,
    }
