import logging

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from fleetbook.models.audit_log import AuditLog
from fleetbook.schemas.audit_log import RequestContext

logger = logging.getLogger(__name__)


class AuditTrail:
    """
    Append-only audit sink shared by every mutating operation.

    Writes are best-effort: each entry is inserted inside a SAVEPOINT of the
    caller's session, so it commits together with the caller's transaction,
    but a failing insert is rolled back to the savepoint, logged and counted
    in ``failures`` instead of propagating. ``record`` never raises.
    """

    def __init__(self):
        self.failures = 0

    def record(
        self,
        db: Session,
        user_id: int | None,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        old_values: dict | None = None,
        new_values: dict | None = None,
        description: str | None = None,
        context: RequestContext | None = None,
    ) -> AuditLog | None:
        """
        Write an audit log entry.

        Args:
            db:          Active DB session (caller commits)
            user_id:     ID of user performing the action (None = system action)
            action:      Verb: CREATE, UPDATE, CANCEL, APPROVE, REJECT
            entity_type: Model name: "Booking", "Approval", "Vehicle"
            entity_id:   Primary key of the affected record
            old_values:  Changed fields before the write
            new_values:  Changed fields after the write
            description: Human-readable description (shown in audit log UI)
            context:     Caller IP / user agent of the current request

        Usage:
            audit_trail.record(db, current_user.id, "CANCEL", "Booking", b.id,
                               {"status": "PENDING"}, {"status": "CANCELLED"},
                               f"Booking #{b.id} cancelled", context)
            db.commit()
        """
        # Flush the caller's pending changes outside the guarded block so
        # their errors still reach the caller.
        db.flush()
        try:
            entry = AuditLog(
                userId=user_id,
                action=action,
                entityType=entity_type,
                entityId=entity_id,
                oldValues=jsonable_encoder(old_values) if old_values is not None else None,
                newValues=jsonable_encoder(new_values) if new_values is not None else None,
                description=description,
                ipAddress=context.ipAddress if context else None,
                userAgent=context.userAgent if context else None,
            )
            with db.begin_nested():
                db.add(entry)
            return entry
        except Exception:
            self.failures += 1
            logger.exception(
                f"Audit write failed: {action} {entity_type}#{entity_id} "
                f"(failures so far: {self.failures})"
            )
            return None


audit_trail = AuditTrail()
