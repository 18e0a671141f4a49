import logging
from datetime import datetime
from sqlalchemy.orm import Session

from fleetbook.config import settings
from fleetbook.models.approval import Approval, ApprovalStatus, APPROVAL_LEVELS
from fleetbook.models.booking import Booking, BookingStatus
from fleetbook.models.driver import Driver
from fleetbook.models.role import RoleName, Permission, has_permission, approval_level_for
from fleetbook.models.user import User
from fleetbook.models.vehicle import Vehicle, VehicleStatus
from fleetbook.schemas.audit_log import RequestContext
from fleetbook.schemas.booking import BookingCreateRequest, BookingUpdateRequest
from fleetbook.services.conflict_detector import find_conflict, describe_conflict
from fleetbook.services.vehicle_status_service import vehicle_status_service
from fleetbook.utils.audit import audit_trail
from fleetbook.utils.datetime_utils import as_utc, utc_now
from fleetbook.utils.exceptions import (
    NotFoundException, ForbiddenException, ValidationException, InvalidDateRangeException,
    VehicleUnavailableException, BookingConflictException, InvalidStateTransitionException,
)

logger = logging.getLogger(__name__)


# ─── State machine ────────────────────────────────────────────────────────────
_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING:     frozenset({BookingStatus.IN_PROGRESS, BookingStatus.REJECTED,
                                          BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.APPROVED, BookingStatus.REJECTED}),
    BookingStatus.APPROVED:    frozenset({BookingStatus.CANCELLED}),
    BookingStatus.REJECTED:    frozenset(),
    BookingStatus.CANCELLED:   frozenset(),
    BookingStatus.COMPLETED:   frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in _TRANSITIONS.items() if not targets)

# Request field -> Booking column
_UPDATABLE_FIELDS = {
    "requesterId": "userId",
    "vehicleId":   "vehicleId",
    "driverId":    "driverId",
    "startDate":   "startDate",
    "endDate":     "endDate",
    "department":  "department",
    "notes":       "notes",
}

# Columns that may not be cleared through an update
_REQUIRED_FIELDS = frozenset({"requesterId", "vehicleId", "startDate", "endDate"})

_UNUSABLE_VEHICLE_STATUSES = (VehicleStatus.MAINTENANCE, VehicleStatus.OUT_OF_SERVICE)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in _TRANSITIONS[current]


def serialize_approval(a: Approval) -> dict:
    return {
        "id":        a.id,
        "bookingId": a.bookingId,
        "level":     a.level,
        "status":    a.status.value,
        "approver":  {
            "id":   a.approver.id,
            "name": a.approver.name,
        } if a.approver else None,
        "comments":   a.comments,
        "approvedAt": a.approvedAt.isoformat() if a.approvedAt else None,
    }


def serialize_booking(b: Booking) -> dict:
    return {
        "id":     b.id,
        "status": b.status.value,
        "requester": {
            "id":         b.user.id,
            "name":       b.user.name,
            "department": b.user.department,
        },
        "createdById": b.createdById,
        "vehicle": {
            "id":          b.vehicle.id,
            "plateNumber": b.vehicle.plateNumber,
            "status":      b.vehicle.status.value,
        },
        "driver": {
            "id":   b.driver.id,
            "name": b.driver.name,
        } if b.driver else None,
        "startDate":       as_utc(b.startDate).isoformat(),
        "endDate":         as_utc(b.endDate).isoformat(),
        "department":      b.department,
        "notes":           b.notes,
        "rejectionReason": b.rejectionReason,
        "approvals":       [serialize_approval(a) for a in b.approvals],
        "createdAt":       b.createdAt.isoformat(),
        "updatedAt":       b.updatedAt.isoformat(),
    }


def _validate_window(start: datetime, end: datetime, require_future: bool = True):
    if end <= start:
        raise InvalidDateRangeException()
    if require_future and start < utc_now():
        raise InvalidDateRangeException("startDate cannot be in the past", field="startDate")


def _lock_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    """SELECT ... FOR UPDATE on the vehicle row; serializes conflict checks per vehicle."""
    v = db.query(Vehicle).filter(Vehicle.id == vehicle_id).with_for_update().first()
    if not v:
        raise NotFoundException("Vehicle")
    return v


def _check_assigned_approver(db: Session, user_id: int, level: int, field: str):
    u = db.query(User).filter(User.id == user_id).first()
    if not u or not u.isActive:
        raise ValidationException(f"Level {level} approver does not exist", field=field)
    if approval_level_for(u.role) != level:
        raise ValidationException(f"User #{user_id} is not a Level {level} approver", field=field)


class BookingService:

    # ─── Reads ────────────────────────────────────────────────────────────────
    def list_bookings(
        self, db: Session, current_user: User,
        page: int, limit: int,
        status: BookingStatus | None = None, vehicle_id: int | None = None,
        requester_id: int | None = None, approver_id: int | None = None,
        start_date: datetime | None = None, end_date: datetime | None = None,
    ) -> tuple[list[dict], int]:
        q = db.query(Booking)

        # Role-based visibility
        if not has_permission(current_user.role, Permission.VIEW_ALL_BOOKINGS):
            q = q.filter(Booking.userId == current_user.id)
        elif requester_id:
            q = q.filter(Booking.userId == requester_id)

        # Filters
        if status:      q = q.filter(Booking.status == status)
        if vehicle_id:  q = q.filter(Booking.vehicleId == vehicle_id)
        if approver_id: q = q.filter(Booking.approvals.any(Approval.approverId == approver_id))
        if start_date:  q = q.filter(Booking.startDate >= as_utc(start_date))
        if end_date:    q = q.filter(Booking.endDate   <= as_utc(end_date))

        total = q.count()
        items = q.order_by(Booking.createdAt.desc(), Booking.id.desc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [serialize_booking(b) for b in items], total

    def get_booking(self, db: Session, booking_id: int, current_user: User) -> dict:
        b = db.query(Booking).filter(Booking.id == booking_id).first()
        if not b:
            raise NotFoundException("Booking")
        if not has_permission(current_user.role, Permission.VIEW_ALL_BOOKINGS) \
                and b.userId != current_user.id:
            raise ForbiddenException("You can only view your own bookings")
        return serialize_booking(b)

    # ─── Create ───────────────────────────────────────────────────────────────
    def create_booking(
        self, db: Session, data: BookingCreateRequest, current_user: User,
        context: RequestContext | None = None,
    ) -> dict:
        if not has_permission(current_user.role, Permission.CREATE_BOOKING):
            raise ForbiddenException("Only employees and administrators can create bookings")

        books_for_others = has_permission(current_user.role, Permission.BOOK_FOR_OTHERS)
        if not books_for_others:
            if data.requesterId not in (None, current_user.id):
                raise ForbiddenException("You can only create bookings for yourself")
            if data.approverL1Id or data.approverL2Id:
                raise ForbiddenException("Only administrators can assign approvers")

        start, end = as_utc(data.startDate), as_utc(data.endDate)
        _validate_window(start, end)

        requester = current_user
        if data.requesterId and data.requesterId != current_user.id:
            requester = db.query(User).filter(User.id == data.requesterId).first()
            if not requester or not requester.isActive:
                raise NotFoundException("Requester")
        if data.driverId and not db.query(Driver).filter(Driver.id == data.driverId).first():
            raise NotFoundException("Driver")
        if data.approverL1Id:
            _check_assigned_approver(db, data.approverL1Id, 1, "approverL1Id")
        if data.approverL2Id:
            _check_assigned_approver(db, data.approverL2Id, 2, "approverL2Id")

        vehicle = _lock_vehicle(db, data.vehicleId)
        if vehicle.status in _UNUSABLE_VEHICLE_STATUSES:
            raise VehicleUnavailableException(vehicle.status.value)

        conflict = find_conflict(db, vehicle.id, start, end)
        if conflict:
            raise BookingConflictException(describe_conflict(conflict))

        b = Booking(
            userId=requester.id,
            createdById=current_user.id if books_for_others else None,
            vehicleId=vehicle.id,
            driverId=data.driverId,
            startDate=start,
            endDate=end,
            department=data.department or requester.department,
            notes=data.notes,
            status=BookingStatus.PENDING,
        )
        assigned = {1: data.approverL1Id, 2: data.approverL2Id}
        for level in APPROVAL_LEVELS:
            b.approvals.append(Approval(
                level=level, approverId=assigned[level], status=ApprovalStatus.PENDING,
            ))
        db.add(b)
        db.flush()

        audit_trail.record(
            db, current_user.id, "CREATE", "Booking", b.id, None,
            {
                "userId":    b.userId,
                "vehicleId": b.vehicleId,
                "driverId":  b.driverId,
                "startDate": start,
                "endDate":   end,
                "notes":     b.notes,
            },
            f"{current_user.name} created booking for vehicle {vehicle.plateNumber}",
            context,
        )
        if settings.VEHICLE_IN_USE_ON_CREATE:
            vehicle_status_service.mark_in_use(db, vehicle.id, current_user.id, context)

        db.commit()
        db.refresh(b)
        logger.info(f"Booking #{b.id} created for vehicle #{b.vehicleId} by user #{current_user.id}")
        return serialize_booking(b)

    # ─── Update ───────────────────────────────────────────────────────────────
    def update_booking(
        self, db: Session, booking_id: int, data: BookingUpdateRequest, current_user: User,
        context: RequestContext | None = None,
    ) -> dict:
        b = self._get_locked(db, booking_id)

        edits_any = has_permission(current_user.role, Permission.EDIT_ANY_BOOKING)
        owns_pending = (
            current_user.role == RoleName.EMPLOYEE
            and b.userId == current_user.id
            and b.status == BookingStatus.PENDING
        )
        if not (edits_any or owns_pending):
            raise ForbiddenException("You cannot edit this booking")
        if b.status in TERMINAL_STATUSES:
            raise InvalidStateTransitionException(
                b.status.value, "EDITED", f"{b.status.value} bookings can no longer be edited",
            )

        # An explicit null clears an optional field; unset fields are left alone
        incoming = data.model_dump(exclude_unset=True)
        for field in sorted(_REQUIRED_FIELDS & incoming.keys()):
            if incoming[field] is None:
                raise ValidationException(f"{field} cannot be cleared", field=field)

        old_values, new_values = {}, {}
        for field, value in incoming.items():
            column = _UPDATABLE_FIELDS[field]
            current = getattr(b, column)
            if isinstance(current, datetime):
                current = as_utc(current)
            if value != current:
                old_values[column] = current
                new_values[column] = value

        if "userId" in new_values and not edits_any:
            raise ForbiddenException("Only administrators can change the requester")

        if not new_values:
            db.commit()
            return serialize_booking(b)

        start = new_values.get("startDate", as_utc(b.startDate))
        end   = new_values.get("endDate", as_utc(b.endDate))
        window_changed = "startDate" in new_values or "endDate" in new_values
        if window_changed:
            _validate_window(start, end, require_future="startDate" in new_values)

        if "userId" in new_values:
            u = db.query(User).filter(User.id == new_values["userId"]).first()
            if not u or not u.isActive:
                raise NotFoundException("Requester")
        if new_values.get("driverId") is not None \
                and not db.query(Driver).filter(Driver.id == new_values["driverId"]).first():
            raise NotFoundException("Driver")

        vehicle_id = new_values.get("vehicleId", b.vehicleId)
        if window_changed or "vehicleId" in new_values:
            vehicle = _lock_vehicle(db, vehicle_id)
            if "vehicleId" in new_values and vehicle.status in _UNUSABLE_VEHICLE_STATUSES:
                raise VehicleUnavailableException(vehicle.status.value)
            conflict = find_conflict(db, vehicle_id, start, end, exclude_id=b.id)
            if conflict:
                raise BookingConflictException(describe_conflict(conflict))

        previous_vehicle_id = b.vehicleId
        for column, value in new_values.items():
            setattr(b, column, value)

        audit_trail.record(
            db, current_user.id, "UPDATE", "Booking", b.id, old_values, new_values,
            f"Booking #{b.id} updated: {', '.join(sorted(new_values))}",
            context,
        )
        # A booking holding its vehicle takes the hold along when moved
        holds_vehicle = b.is_active or settings.VEHICLE_IN_USE_ON_CREATE
        if holds_vehicle and "vehicleId" in new_values:
            vehicle_status_service.release(db, previous_vehicle_id, current_user.id, context)
            vehicle_status_service.mark_in_use(db, b.vehicleId, current_user.id, context)

        db.commit()
        db.refresh(b)
        return serialize_booking(b)

    # ─── Cancel ───────────────────────────────────────────────────────────────
    def cancel_booking(
        self, db: Session, booking_id: int, reason: str, current_user: User,
        context: RequestContext | None = None,
    ) -> dict:
        if not has_permission(current_user.role, Permission.CANCEL_BOOKING):
            raise ForbiddenException("Only administrators can cancel bookings")
        if not reason or not reason.strip():
            raise ValidationException("Cancellation reason is required", field="reason")
        reason = reason.strip()

        b = self._get_locked(db, booking_id)
        self._check_transition(b, BookingStatus.CANCELLED)

        pending = db.query(Approval).filter(
            Approval.bookingId == b.id,
            Approval.status == ApprovalStatus.PENDING,
        ).order_by(Approval.level).all()

        old_status = b.status
        b.status          = BookingStatus.CANCELLED
        b.rejectionReason = reason
        audit_trail.record(
            db, current_user.id, "CANCEL", "Booking", b.id,
            {"status": old_status},
            {"status": b.status, "rejectionReason": reason},
            f"Booking #{b.id} cancelled. Reason: {reason}",
            context,
        )

        for a in pending:
            a.status   = ApprovalStatus.CANCELLED
            a.comments = "Cancelled by admin"
            audit_trail.record(
                db, current_user.id, "CANCEL", "Approval", a.id,
                {"status": ApprovalStatus.PENDING},
                {"status": a.status, "comments": a.comments},
                f"Level {a.level} approval cancelled with booking #{b.id}",
                context,
            )

        vehicle_status_service.release(db, b.vehicleId, current_user.id, context)

        db.commit()
        db.refresh(b)
        logger.info(f"Booking #{b.id} cancelled by user #{current_user.id} "
                    f"({len(pending)} pending approval(s) cancelled)")
        return serialize_booking(b)

    # ─── Transitions used by the approval workflow ────────────────────────────
    def transition(
        self, db: Session, b: Booking, target: BookingStatus, actor_id: int | None,
        description: str, context: RequestContext | None = None,
        reason: str | None = None,
    ) -> None:
        """Edge-checked status write plus its audit entry. Caller commits."""
        self._check_transition(b, target)
        old_values = {"status": b.status}
        new_values = {"status": target}
        b.status = target
        if reason is not None:
            old_values["rejectionReason"] = b.rejectionReason
            new_values["rejectionReason"] = reason
            b.rejectionReason = reason
        audit_trail.record(db, actor_id, "UPDATE", "Booking", b.id,
                           old_values, new_values, description, context)
        logger.info(f"Booking #{b.id} {old_values['status'].value} -> {target.value}")

    def ensure_vehicle_free(self, db: Session, b: Booking) -> None:
        """Lock the booking's vehicle and fail if another active booking overlaps it."""
        _lock_vehicle(db, b.vehicleId)
        conflict = find_conflict(db, b.vehicleId, b.startDate, b.endDate, exclude_id=b.id)
        if conflict:
            raise BookingConflictException(describe_conflict(conflict))

    def activate(
        self, db: Session, b: Booking, actor_id: int | None,
        context: RequestContext | None = None,
    ) -> None:
        """PENDING -> IN_PROGRESS; the booking now holds its vehicle."""
        self.transition(db, b, BookingStatus.IN_PROGRESS, actor_id,
                        "Booking approved at Level 1 - status set to IN_PROGRESS", context)
        vehicle_status_service.mark_in_use(db, b.vehicleId, actor_id, context)

    # ─── Helpers ──────────────────────────────────────────────────────────────
    def _get_locked(self, db: Session, booking_id: int) -> Booking:
        b = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
        if not b:
            raise NotFoundException("Booking")
        return b

    def _check_transition(self, b: Booking, target: BookingStatus) -> None:
        if not can_transition(b.status, target):
            raise InvalidStateTransitionException(b.status.value, target.value)


booking_service = BookingService()
