import logging
from sqlalchemy.orm import Session

from fleetbook.models.vehicle import Vehicle, VehicleStatus
from fleetbook.schemas.audit_log import RequestContext
from fleetbook.utils.audit import audit_trail

logger = logging.getLogger(__name__)


class VehicleStatusService:
    """
    Keeps a vehicle's availability flag in step with booking activity.

    Only AVAILABLE <-> IN_USE is ever flipped; MAINTENANCE and OUT_OF_SERVICE
    are left alone. Each flip runs in its own SAVEPOINT and failures are
    logged, never raised, so the caller's booking transition still commits.
    """

    def mark_in_use(
        self, db: Session, vehicle_id: int, actor_id: int | None,
        context: RequestContext | None = None,
    ) -> bool:
        return self._flip(db, vehicle_id, VehicleStatus.AVAILABLE, VehicleStatus.IN_USE,
                          actor_id, context)

    def release(
        self, db: Session, vehicle_id: int, actor_id: int | None,
        context: RequestContext | None = None,
    ) -> bool:
        return self._flip(db, vehicle_id, VehicleStatus.IN_USE, VehicleStatus.AVAILABLE,
                          actor_id, context)

    def _flip(
        self, db: Session, vehicle_id: int,
        expected: VehicleStatus, target: VehicleStatus,
        actor_id: int | None, context: RequestContext | None,
    ) -> bool:
        db.flush()
        try:
            with db.begin_nested():
                v = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
                if not v:
                    logger.warning(f"Vehicle #{vehicle_id} not found, status left unchanged")
                    return False
                if v.status != expected:
                    logger.info(
                        f"Vehicle #{vehicle_id} is {v.status.value}, not {expected.value}; "
                        f"skipping switch to {target.value}"
                    )
                    return False
                v.status = target
        except Exception:
            logger.warning(
                f"Could not set vehicle #{vehicle_id} to {target.value}; continuing",
                exc_info=True,
            )
            return False

        audit_trail.record(
            db, actor_id, "UPDATE", "Vehicle", vehicle_id,
            {"status": expected}, {"status": target},
            f"Vehicle status changed {expected.value} -> {target.value}",
            context,
        )
        return True


vehicle_status_service = VehicleStatusService()
