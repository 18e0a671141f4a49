from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from fleetbook.config import settings
from fleetbook.database import get_db
from fleetbook.dependencies import get_current_user, get_request_context
from fleetbook.models.booking import BookingStatus
from fleetbook.models.user import User
from fleetbook.schemas.audit_log import RequestContext
from fleetbook.schemas.booking import BookingCreateRequest, BookingUpdateRequest, CancelRequest
from fleetbook.schemas.common import success_response, paginated_response
from fleetbook.services.booking_service import booking_service

router = APIRouter(prefix="/bookings")


@router.get("", summary="List bookings (employees see their own)")
def list_bookings(
    page:         int                     = Query(1, ge=1),
    limit:        int                     = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status:       Optional[BookingStatus] = Query(None),
    vehicleId:    Optional[int]           = Query(None),
    requesterId:  Optional[int]           = Query(None, description="Ignored for employees"),
    approverId:   Optional[int]           = Query(None),
    startDate:    Optional[datetime]      = Query(None, description="Bookings starting on/after"),
    endDate:      Optional[datetime]      = Query(None, description="Bookings ending on/before"),
    db:           Session                 = Depends(get_db),
    current_user: User                    = Depends(get_current_user),
):
    data, total = booking_service.list_bookings(
        db, current_user, page, limit,
        status, vehicleId, requesterId, approverId, startDate, endDate,
    )
    return paginated_response("Bookings retrieved successfully", data, total, page, limit)


@router.get("/{booking_id}", summary="Get booking detail with approvals")
def get_booking(
    booking_id:   int,
    db:           Session = Depends(get_db),
    current_user: User    = Depends(get_current_user),
):
    return success_response("Booking retrieved", booking_service.get_booking(db, booking_id, current_user))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create booking (Employee or Admin)")
def create_booking(
    body:         BookingCreateRequest,
    db:           Session        = Depends(get_db),
    current_user: User           = Depends(get_current_user),
    context:      RequestContext = Depends(get_request_context),
):
    data = booking_service.create_booking(db, body, current_user, context)
    return success_response("Booking created successfully", data)


@router.patch("/{booking_id}", summary="Edit booking (Admin, or owner while PENDING)")
def update_booking(
    booking_id:   int,
    body:         BookingUpdateRequest,
    db:           Session        = Depends(get_db),
    current_user: User           = Depends(get_current_user),
    context:      RequestContext = Depends(get_request_context),
):
    return success_response("Booking updated successfully",
                            booking_service.update_booking(db, booking_id, body, current_user, context))


@router.patch("/{booking_id}/cancel", summary="Cancel booking (Admin only, PENDING or APPROVED)")
def cancel_booking(
    booking_id:   int,
    body:         CancelRequest,
    db:           Session        = Depends(get_db),
    current_user: User           = Depends(get_current_user),
    context:      RequestContext = Depends(get_request_context),
):
    return success_response("Booking cancelled",
                            booking_service.cancel_booking(db, booking_id, body.reason, current_user, context))
