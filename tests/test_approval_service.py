import unittest
from unittest import mock

from fleetbook.config import settings
from fleetbook.models import ApprovalStatus, BookingStatus, RoleName, VehicleStatus
from fleetbook.schemas.approval import DecisionRequest
from fleetbook.services.approval_service import approval_service
from fleetbook.utils.exceptions import (
    AlreadyProcessedException, BookingConflictException, ForbiddenException,
    NotFoundException, OutOfOrderApprovalException, ValidationException,
)
from tests.base import DatabaseTestCase

APPROVE = DecisionRequest(decision="APPROVED")


def reject(comments):
    return DecisionRequest(decision="REJECTED", comments=comments)


class ApprovalTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.employee = self.make_user()
        self.admin = self.make_user(RoleName.ADMIN)
        self.l1 = self.make_user(RoleName.APPROVER_L1)
        self.l2 = self.make_user(RoleName.APPROVER_L2)
        self.vehicle = self.make_vehicle()

    def decide(self, booking, level, decision, user=None):
        user = user or (self.l1 if level == 1 else self.l2)
        return approval_service.record_decision(self.db, self.approval(booking, level).id, decision, user)


class TestApprovalFlow(ApprovalTestCase):

    def test_level1_approval_activates_booking(self):
        c = self.make_booking(self.employee, self.vehicle)

        data = self.decide(c, 1, APPROVE)

        self.assertEqual(data["status"], "APPROVED")
        self.assertEqual(data["approver"]["id"], self.l1.id)
        self.assertIsNotNone(data["approvedAt"])
        self.assertEqual(self.reload(c).status, BookingStatus.IN_PROGRESS)
        self.assertEqual(self.approval(c, 2).status, ApprovalStatus.PENDING)
        self.assertEqual(self.reload(self.vehicle).status, VehicleStatus.IN_USE)

    def test_level2_approval_completes_booking(self):
        c = self.make_booking(self.employee, self.vehicle)
        self.decide(c, 1, APPROVE)

        data = self.decide(c, 2, DecisionRequest(decision="APPROVED", comments="  ok  "))

        self.assertEqual(data["comments"], "ok")
        self.assertEqual(data["booking"]["status"], "APPROVED")
        self.assertEqual(self.reload(c).status, BookingStatus.APPROVED)
        statuses = [e.newValues["status"] for e in self.audit_entries("Booking", c.id, "UPDATE")]
        self.assertEqual(statuses, ["IN_PROGRESS", "APPROVED"])

    def test_level1_rejection_cancels_sibling(self):
        d = self.make_booking(self.employee, self.vehicle)

        data = self.decide(d, 1, reject("vehicle unsuitable"))

        self.assertEqual(data["status"], "REJECTED")
        self.assertIsNone(data["approvedAt"])
        self.reload(d)
        self.assertEqual(d.status, BookingStatus.REJECTED)
        self.assertEqual(d.rejectionReason, "vehicle unsuitable")
        sibling = self.approval(d, 2)
        self.assertEqual(sibling.status, ApprovalStatus.CANCELLED)
        self.assertEqual(sibling.comments, "Cancelled due to Level 1 rejection")
        self.assertEqual(len(self.audit_entries("Approval", sibling.id, "CANCEL")), 1)

    def test_level2_rejection_of_in_progress_booking_releases_vehicle(self):
        c = self.make_booking(self.employee, self.vehicle)
        self.decide(c, 1, APPROVE)

        self.decide(c, 2, reject("budget freeze"))

        self.assertEqual(self.reload(c).status, BookingStatus.REJECTED)
        self.assertEqual(self.approval(c, 1).status, ApprovalStatus.APPROVED)
        self.assertEqual(self.reload(self.vehicle).status, VehicleStatus.AVAILABLE)

    def test_rejection_requires_comments(self):
        c = self.make_booking(self.employee, self.vehicle)
        with self.assertRaises(ValidationException):
            self.decide(c, 1, reject("   "))
        self.db.rollback()
        self.assertEqual(self.approval(c, 1).status, ApprovalStatus.PENDING)

    def test_decided_approval_is_already_processed(self):
        c = self.make_booking(self.employee, self.vehicle)
        self.decide(c, 1, APPROVE)
        with self.assertRaises(AlreadyProcessedException):
            self.decide(c, 1, APPROVE)

    def test_cancelled_approval_is_already_processed(self):
        d = self.make_booking(self.employee, self.vehicle)
        self.decide(d, 1, reject("no"))
        with self.assertRaises(AlreadyProcessedException):
            self.decide(d, 2, APPROVE)

    def test_level1_approval_conflicting_with_active_booking_fails(self):
        self.make_booking(self.employee, self.vehicle, 2, 6, status=BookingStatus.APPROVED,
                          l1=ApprovalStatus.APPROVED, l2=ApprovalStatus.APPROVED)
        c = self.make_booking(self.employee, self.vehicle, 0, 4)
        with self.assertRaises(BookingConflictException):
            self.decide(c, 1, APPROVE)
        self.db.rollback()
        self.assertEqual(self.reload(c).status, BookingStatus.PENDING)
        self.assertEqual(self.approval(c, 1).status, ApprovalStatus.PENDING)


class TestApprovalPermissions(ApprovalTestCase):

    def test_wrong_level_is_forbidden(self):
        c = self.make_booking(self.employee, self.vehicle)
        with self.assertRaises(ForbiddenException):
            self.decide(c, 1, APPROVE, user=self.l2)
        with self.assertRaises(ForbiddenException):
            self.decide(c, 2, APPROVE, user=self.l1)

    def test_non_approvers_cannot_decide(self):
        c = self.make_booking(self.employee, self.vehicle)
        for user in (self.employee, self.admin):
            with self.assertRaises(ForbiddenException):
                self.decide(c, 1, APPROVE, user=user)

    def test_only_assigned_approver_may_decide(self):
        assigned = self.make_user(RoleName.APPROVER_L1)
        c = self.make_booking(self.employee, self.vehicle, approver_l1=assigned)
        with self.assertRaises(ForbiddenException):
            self.decide(c, 1, APPROVE)
        data = self.decide(c, 1, APPROVE, user=assigned)
        self.assertEqual(data["approver"]["id"], assigned.id)

    def test_unknown_approval(self):
        with self.assertRaises(NotFoundException):
            approval_service.record_decision(self.db, 999, APPROVE, self.l1)


class TestApprovalOrdering(ApprovalTestCase):

    def test_level2_first_is_recorded_in_loose_mode(self):
        c = self.make_booking(self.employee, self.vehicle)

        self.decide(c, 2, APPROVE)
        self.assertEqual(self.reload(c).status, BookingStatus.PENDING)

        self.decide(c, 1, APPROVE)
        self.assertEqual(self.reload(c).status, BookingStatus.APPROVED)
        self.assertEqual(self.reload(self.vehicle).status, VehicleStatus.IN_USE)

    def test_level2_first_is_refused_in_strict_mode(self):
        c = self.make_booking(self.employee, self.vehicle)
        with mock.patch.object(settings, "STRICT_APPROVAL_ORDER", True):
            with self.assertRaises(OutOfOrderApprovalException):
                self.decide(c, 2, APPROVE)
            self.db.rollback()
            self.decide(c, 1, APPROVE)
            self.decide(c, 2, APPROVE)
        self.assertEqual(self.reload(c).status, BookingStatus.APPROVED)


class TestListApprovals(ApprovalTestCase):

    def setUp(self):
        super().setUp()
        self.first = self.make_booking(self.employee, self.vehicle, 0, 2)
        self.second = self.make_booking(self.employee, self.vehicle, 4, 6)

    def test_approver_sees_own_level(self):
        data, total = approval_service.list_approvals(self.db, self.l1, 1, 20)
        self.assertEqual(total, 2)
        self.assertTrue(all(a["level"] == 1 for a in data))
        self.assertIn("booking", data[0])

    def test_show_all_and_admin_level_filter(self):
        _, total = approval_service.list_approvals(self.db, self.l2, 1, 20, show_all=True)
        self.assertEqual(total, 4)
        _, total = approval_service.list_approvals(self.db, self.admin, 1, 20, level=2)
        self.assertEqual(total, 2)
        _, total = approval_service.list_approvals(self.db, self.admin, 1, 20, booking_id=self.first.id)
        self.assertEqual(total, 2)

    def test_employees_cannot_list_approvals(self):
        with self.assertRaises(ForbiddenException):
            approval_service.list_approvals(self.db, self.employee, 1, 20)


if __name__ == '__main__':
    unittest.main()
