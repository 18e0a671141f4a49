from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from fleetbook.config import settings
from fleetbook.database import get_db
from fleetbook.dependencies import get_current_user, get_request_context
from fleetbook.models.approval import ApprovalStatus
from fleetbook.models.user import User
from fleetbook.schemas.approval import DecisionRequest
from fleetbook.schemas.audit_log import RequestContext
from fleetbook.schemas.common import success_response, paginated_response
from fleetbook.services.approval_service import approval_service

router = APIRouter(prefix="/approvals")


@router.get("", summary="List approvals (approvers: own level unless showAll; admin: all)")
def list_approvals(
    page:         int                      = Query(1, ge=1),
    limit:        int                      = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status:       Optional[ApprovalStatus] = Query(None),
    level:        Optional[int]            = Query(None, ge=1, le=2),
    bookingId:    Optional[int]            = Query(None),
    showAll:      bool                     = Query(False),
    db:           Session                  = Depends(get_db),
    current_user: User                     = Depends(get_current_user),
):
    data, total = approval_service.list_approvals(
        db, current_user, page, limit, status, level, bookingId, showAll,
    )
    return paginated_response("Approvals retrieved successfully", data, total, page, limit)


@router.get("/{approval_id}", summary="Get approval detail")
def get_approval(
    approval_id:  int,
    db:           Session = Depends(get_db),
    current_user: User    = Depends(get_current_user),
):
    return success_response("Approval retrieved", approval_service.get_approval(db, approval_id, current_user))


@router.post("/{approval_id}/decision", summary="Approve or reject at your level")
def record_decision(
    approval_id:  int,
    body:         DecisionRequest,
    db:           Session        = Depends(get_db),
    current_user: User           = Depends(get_current_user),
    context:      RequestContext = Depends(get_request_context),
):
    data = approval_service.record_decision(db, approval_id, body, current_user, context)
    return success_response(f"Approval {data['status'].lower()} successfully", data)
