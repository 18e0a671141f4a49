import logging
from sqlalchemy.orm import Session

from fleetbook.config import settings
from fleetbook.models.approval import Approval, ApprovalStatus
from fleetbook.models.booking import Booking, BookingStatus
from fleetbook.models.role import Permission, has_permission, approval_level_for
from fleetbook.models.user import User
from fleetbook.schemas.approval import Decision, DecisionRequest
from fleetbook.schemas.audit_log import RequestContext
from fleetbook.services.booking_service import booking_service, serialize_approval, serialize_booking
from fleetbook.services.vehicle_status_service import vehicle_status_service
from fleetbook.utils.audit import audit_trail
from fleetbook.utils.datetime_utils import utc_now
from fleetbook.utils.exceptions import (
    NotFoundException, ForbiddenException, ValidationException, AlreadyProcessedException,
    InvalidStateTransitionException, OutOfOrderApprovalException,
)

logger = logging.getLogger(__name__)


def _serialize_with_booking(a: Approval) -> dict:
    data = serialize_approval(a)
    data["booking"] = serialize_booking(a.booking)
    return data


class ApprovalService:

    def list_approvals(
        self, db: Session, current_user: User,
        page: int, limit: int,
        status: ApprovalStatus | None = None, level: int | None = None,
        booking_id: int | None = None, show_all: bool = False,
    ) -> tuple[list[dict], int]:
        if not has_permission(current_user.role, Permission.REVIEW_APPROVALS):
            raise ForbiddenException("Only approvers and administrators can view approvals")

        q = db.query(Approval)
        own_level = approval_level_for(current_user.role)
        if own_level is not None and not show_all:
            q = q.filter(Approval.level == own_level)
        elif level:
            q = q.filter(Approval.level == level)

        if status:     q = q.filter(Approval.status == status)
        if booking_id: q = q.filter(Approval.bookingId == booking_id)

        total = q.count()
        items = q.order_by(Approval.createdAt.desc(), Approval.id.desc())\
                 .offset((page - 1) * limit).limit(limit).all()
        return [_serialize_with_booking(a) for a in items], total

    def get_approval(self, db: Session, approval_id: int, current_user: User) -> dict:
        if not has_permission(current_user.role, Permission.REVIEW_APPROVALS):
            raise ForbiddenException("Only approvers and administrators can view approvals")
        a = db.query(Approval).filter(Approval.id == approval_id).first()
        if not a:
            raise NotFoundException("Approval")
        return _serialize_with_booking(a)

    def record_decision(
        self, db: Session, approval_id: int, data: DecisionRequest, current_user: User,
        context: RequestContext | None = None,
    ) -> dict:
        """
        Record one approver's decision and cascade it.

        Every check runs before the first write. The booking row is locked for
        the whole unit of work, so the approval, its sibling and the booking
        status commit together.
        """
        a = db.query(Approval).filter(Approval.id == approval_id).first()
        if not a:
            raise NotFoundException("Approval")
        b = db.query(Booking).filter(Booking.id == a.bookingId).with_for_update().first()
        db.refresh(a)

        level = approval_level_for(current_user.role)
        if level is None or level != a.level:
            raise ForbiddenException("You do not have permission to decide at this level")
        if a.approverId is not None and a.approverId != current_user.id:
            raise ForbiddenException("You are not the assigned approver for this booking")
        if a.status != ApprovalStatus.PENDING:
            raise AlreadyProcessedException()

        comments = data.comments.strip() if data.comments else None
        if data.decision == Decision.REJECTED and not comments:
            raise ValidationException("Comments are required when rejecting", field="comments")

        sibling = db.query(Approval).filter(
            Approval.bookingId == a.bookingId,
            Approval.level != a.level,
        ).first()

        if data.decision == Decision.APPROVED:
            self._approve(db, a, sibling, b, comments, current_user, context)
        else:
            self._reject(db, a, sibling, b, comments, current_user, context)

        db.commit()
        db.refresh(a)
        logger.info(f"Approval #{a.id} (level {a.level}) {a.status.value} by user #{current_user.id}; "
                    f"booking #{b.id} is {b.status.value}")
        return _serialize_with_booking(a)

    # ─── Decisions ────────────────────────────────────────────────────────────
    def _approve(
        self, db: Session, a: Approval, sibling: Approval | None, b: Booking,
        comments: str | None, current_user: User, context: RequestContext | None,
    ) -> None:
        if a.level == 1:
            if b.status != BookingStatus.PENDING:
                raise InvalidStateTransitionException(b.status.value, BookingStatus.IN_PROGRESS.value)
            booking_service.ensure_vehicle_free(db, b)
        elif settings.STRICT_APPROVAL_ORDER and (
            sibling is None or sibling.status != ApprovalStatus.APPROVED
        ):
            raise OutOfOrderApprovalException()

        self._write_decision(db, a, ApprovalStatus.APPROVED, comments, current_user, context)

        if a.level == 1:
            booking_service.activate(db, b, current_user.id, context)

        # Re-read both rows inside this transaction before promoting
        db.flush()
        rows = db.query(Approval).filter(Approval.bookingId == b.id).all()
        all_approved = all(r.status == ApprovalStatus.APPROVED for r in rows)
        if all_approved and b.status == BookingStatus.IN_PROGRESS:
            booking_service.transition(
                db, b, BookingStatus.APPROVED, current_user.id,
                "Booking fully approved - all approval levels complete", context,
            )

    def _reject(
        self, db: Session, a: Approval, sibling: Approval | None, b: Booking,
        comments: str, current_user: User, context: RequestContext | None,
    ) -> None:
        if b.status not in (BookingStatus.PENDING, BookingStatus.IN_PROGRESS):
            raise InvalidStateTransitionException(b.status.value, BookingStatus.REJECTED.value)

        self._write_decision(db, a, ApprovalStatus.REJECTED, comments, current_user, context)

        if sibling is not None and sibling.status == ApprovalStatus.PENDING:
            sibling.status   = ApprovalStatus.CANCELLED
            sibling.comments = f"Cancelled due to Level {a.level} rejection"
            audit_trail.record(
                db, current_user.id, "CANCEL", "Approval", sibling.id,
                {"status": ApprovalStatus.PENDING},
                {"status": sibling.status, "comments": sibling.comments},
                f"Level {sibling.level} approval cancelled by Level {a.level} rejection",
                context,
            )

        booking_service.transition(
            db, b, BookingStatus.REJECTED, current_user.id,
            f"Booking rejected at Level {a.level} approval", context, reason=comments,
        )
        vehicle_status_service.release(db, b.vehicleId, current_user.id, context)

    def _write_decision(
        self, db: Session, a: Approval, status: ApprovalStatus, comments: str | None,
        current_user: User, context: RequestContext | None,
    ) -> None:
        old_values = {"status": a.status, "comments": a.comments,
                      "approverId": a.approverId, "approvedAt": a.approvedAt}
        a.status     = status
        a.comments   = comments
        a.approverId = current_user.id
        # Only approvals carry a decision timestamp
        a.approvedAt = utc_now() if status == ApprovalStatus.APPROVED else None
        audit_trail.record(
            db, current_user.id,
            "APPROVE" if status == ApprovalStatus.APPROVED else "REJECT",
            "Approval", a.id, old_values,
            {"status": a.status, "comments": a.comments,
             "approverId": a.approverId, "approvedAt": a.approvedAt},
            f"Approval {status.value} at level {a.level}",
            context,
        )


approval_service = ApprovalService()
