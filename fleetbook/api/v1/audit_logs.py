from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from fleetbook.config import settings
from fleetbook.database import get_db
from fleetbook.dependencies import get_admin_user
from fleetbook.models.user import User
from fleetbook.schemas.common import success_response, paginated_response
from fleetbook.services.audit_log_service import audit_log_service

router = APIRouter(prefix="/audit-logs")


@router.get("", summary="List audit log entries (Admin)")
def list_audit_logs(
    page:       int                = Query(1, ge=1),
    limit:      int                = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    entityType: Optional[str]      = Query(None, description="Booking | Approval | Vehicle"),
    entityId:   Optional[int]      = Query(None),
    userId:     Optional[int]      = Query(None),
    action:     Optional[str]      = Query(None),
    startDate:  Optional[datetime] = Query(None),
    endDate:    Optional[datetime] = Query(None),
    db:         Session            = Depends(get_db),
    _:          User               = Depends(get_admin_user),
):
    data, total = audit_log_service.list_logs(
        db, page, limit, entityType, entityId, userId, action, startDate, endDate,
    )
    return paginated_response("Audit logs retrieved successfully", data, total, page, limit)


@router.get("/stats/summary", summary="Audit entry counts by action and entity (Admin)")
def audit_summary(
    startDate: Optional[datetime] = Query(None),
    endDate:   Optional[datetime] = Query(None),
    db:        Session            = Depends(get_db),
    _:         User               = Depends(get_admin_user),
):
    return success_response("Audit summary retrieved", audit_log_service.summary(db, startDate, endDate))


@router.get("/{log_id}", summary="Get audit log entry (Admin)")
def get_audit_log(
    log_id: int,
    db:     Session = Depends(get_db),
    _:      User    = Depends(get_admin_user),
):
    return success_response("Audit log retrieved", audit_log_service.get_log(db, log_id))
