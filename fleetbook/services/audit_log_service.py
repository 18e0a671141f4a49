from datetime import datetime
from sqlalchemy import func
from sqlalchemy.orm import Session

from fleetbook.models.audit_log import AuditLog
from fleetbook.utils.datetime_utils import as_utc
from fleetbook.utils.exceptions import NotFoundException


def _serialize(l: AuditLog) -> dict:
    return {
        "id":          l.id,
        "user":        {
            "id":    l.user.id,
            "name":  l.user.name,
            "email": l.user.email,
            "role":  l.user.role.value,
        } if l.user else None,
        "action":      l.action,
        "entityType":  l.entityType,
        "entityId":    l.entityId,
        "oldValues":   l.oldValues,
        "newValues":   l.newValues,
        "description": l.description,
        "ipAddress":   l.ipAddress,
        "userAgent":   l.userAgent,
        "createdAt":   l.createdAt.isoformat(),
    }


def _date_range(q, start_date: datetime | None, end_date: datetime | None):
    if start_date: q = q.filter(AuditLog.createdAt >= as_utc(start_date))
    if end_date:   q = q.filter(AuditLog.createdAt <= as_utc(end_date))
    return q


class AuditLogService:
    """Read side of the audit trail (admin reporting)."""

    def list_logs(
        self, db: Session, page: int, limit: int,
        entity_type: str | None = None, entity_id: int | None = None,
        user_id: int | None = None, action: str | None = None,
        start_date: datetime | None = None, end_date: datetime | None = None,
    ) -> tuple[list[dict], int]:
        q = db.query(AuditLog)
        if entity_type: q = q.filter(AuditLog.entityType == entity_type)
        if entity_id:   q = q.filter(AuditLog.entityId == entity_id)
        if user_id:     q = q.filter(AuditLog.userId == user_id)
        if action:      q = q.filter(AuditLog.action == action.upper())
        q = _date_range(q, start_date, end_date)

        total = q.count()
        items = q.order_by(AuditLog.createdAt.desc(), AuditLog.id.desc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [_serialize(l) for l in items], total

    def get_log(self, db: Session, log_id: int) -> dict:
        l = db.query(AuditLog).filter(AuditLog.id == log_id).first()
        if not l:
            raise NotFoundException("Audit log")
        return _serialize(l)

    def summary(
        self, db: Session,
        start_date: datetime | None = None, end_date: datetime | None = None,
    ) -> dict:
        total = _date_range(db.query(AuditLog), start_date, end_date).count()
        by_action = _date_range(
            db.query(AuditLog.action, func.count(AuditLog.id)), start_date, end_date,
        ).group_by(AuditLog.action).all()
        by_entity = _date_range(
            db.query(AuditLog.entityType, func.count(AuditLog.id)), start_date, end_date,
        ).group_by(AuditLog.entityType).all()
        return {
            "total":        total,
            "byAction":     {action: count for action, count in by_action},
            "byEntityType": {entity: count for entity, count in by_entity},
        }


audit_log_service = AuditLogService()
