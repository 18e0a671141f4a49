import unittest
from unittest import mock

from fastapi.testclient import TestClient

from fleetbook.database import get_db
from fleetbook.main import app
from fleetbook.models import ApprovalStatus, BookingStatus, RoleName, VehicleStatus
from fleetbook.utils.security import create_access_token
from tests.base import DatabaseTestCase


class ApiTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()

        def override_get_db():
            try:
                yield self.db
            except Exception:
                self.db.rollback()
                raise

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)
        self.employee = self.make_user()
        self.admin = self.make_user(RoleName.ADMIN)
        self.l1 = self.make_user(RoleName.APPROVER_L1)
        self.l2 = self.make_user(RoleName.APPROVER_L2)
        self.vehicle = self.make_vehicle()

    def tearDown(self):
        app.dependency_overrides.clear()
        super().tearDown()

    def auth(self, user, **headers):
        token = create_access_token(user.id, user.role.value)
        return {"Authorization": f"Bearer {token}", **headers}

    def booking_body(self, start_h=0, end_h=4, **extra):
        return {
            "vehicleId": self.vehicle.id,
            "startDate": self.at(start_h).isoformat(),
            "endDate":   self.at(end_h).isoformat(),
            **extra,
        }


class TestAuthentication(ApiTestCase):

    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "ok")

    def test_startup_checks_database(self):
        with mock.patch("fleetbook.main.check_db_connection", return_value=True) as check:
            with TestClient(app) as client:
                self.assertEqual(client.get("/health").status_code, 200)
        check.assert_called_once()

    def test_missing_token(self):
        res = self.client.get("/api/v1/bookings")
        self.assertEqual(res.status_code, 401)
        body = res.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], "UNAUTHORIZED")

    def test_malformed_token(self):
        res = self.client.get("/api/v1/bookings", headers={"Authorization": "Bearer not-a-jwt"})
        self.assertEqual(res.status_code, 401)

    def test_expired_token(self):
        token = create_access_token(self.employee.id, "EMPLOYEE", expires_minutes=-5)
        res = self.client.get("/api/v1/bookings", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["error"]["code"], "TOKEN_EXPIRED")

    def test_inactive_account(self):
        inactive = self.make_user(active=False)
        res = self.client.get("/api/v1/bookings", headers=self.auth(inactive))
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["error"]["code"], "ACCOUNT_INACTIVE")


class TestBookingEndpoints(ApiTestCase):

    def test_create_and_fetch_booking(self):
        res = self.client.post("/api/v1/bookings", json=self.booking_body(notes="site visit"),
                               headers=self.auth(self.employee))
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["status"], "PENDING")
        self.assertEqual(len(body["data"]["approvals"]), 2)

        booking_id = body["data"]["id"]
        res = self.client.get(f"/api/v1/bookings/{booking_id}", headers=self.auth(self.employee))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["data"]["notes"], "site visit")

    def test_request_context_is_audited(self):
        res = self.client.post(
            "/api/v1/bookings", json=self.booking_body(),
            headers=self.auth(self.employee, **{"X-Forwarded-For": "203.0.113.9, 10.0.0.1",
                                                "User-Agent": "fleet-app/2.1"}),
        )
        [entry] = self.audit_entries("Booking", res.json()["data"]["id"])
        self.assertEqual(entry.ipAddress, "203.0.113.9")
        self.assertEqual(entry.userAgent, "fleet-app/2.1")

    def test_schema_errors_use_error_envelope(self):
        res = self.client.post("/api/v1/bookings", json={"startDate": "tomorrow"},
                               headers=self.auth(self.employee))
        self.assertEqual(res.status_code, 422)
        body = res.json()
        self.assertEqual(body["error"]["code"], "VALIDATION_ERROR")
        fields = {d["field"] for d in body["error"]["details"]}
        self.assertIn("vehicleId", fields)

    def test_invalid_window(self):
        res = self.client.post("/api/v1/bookings", json=self.booking_body(4, 2),
                               headers=self.auth(self.employee))
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["code"], "INVALID_DATE_RANGE")

    def test_conflict_references_existing_booking(self):
        a = self.make_booking(self.employee, self.vehicle, 0, 4, status=BookingStatus.APPROVED,
                              l1=ApprovalStatus.APPROVED, l2=ApprovalStatus.APPROVED)
        res = self.client.post("/api/v1/bookings", json=self.booking_body(2, 6),
                               headers=self.auth(self.employee))
        self.assertEqual(res.status_code, 409)
        body = res.json()
        self.assertEqual(body["error"]["code"], "BOOKING_CONFLICT")
        self.assertEqual(body["error"]["details"][0]["id"], a.id)

    def test_list_is_paginated(self):
        for h in (0, 4, 8):
            self.make_booking(self.employee, self.vehicle, h, h + 2)
        res = self.client.get("/api/v1/bookings?page=1&limit=2", headers=self.auth(self.employee))
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(len(body["data"]), 2)
        self.assertEqual(body["meta"], {"page": 1, "limit": 2, "total": 3, "totalPages": 2,
                                        "hasNext": True, "hasPrev": False})

    def test_update_booking(self):
        b = self.make_booking(self.employee, self.vehicle)
        res = self.client.patch(f"/api/v1/bookings/{b.id}", json={"notes": "two passengers"},
                                headers=self.auth(self.admin))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["data"]["notes"], "two passengers")

    def test_cancel_is_admin_only(self):
        b = self.make_booking(self.employee, self.vehicle)
        res = self.client.patch(f"/api/v1/bookings/{b.id}/cancel", json={"reason": "no"},
                                headers=self.auth(self.employee))
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["error"]["code"], "FORBIDDEN")

    def test_cancel_requires_reason(self):
        b = self.make_booking(self.employee, self.vehicle)
        res = self.client.patch(f"/api/v1/bookings/{b.id}/cancel", json={"reason": "  "},
                                headers=self.auth(self.admin))
        self.assertEqual(res.status_code, 422)

    def test_cancel_approved_booking(self):
        self.vehicle.status = VehicleStatus.IN_USE
        self.db.commit()
        b = self.make_booking(self.employee, self.vehicle, status=BookingStatus.APPROVED,
                              l1=ApprovalStatus.APPROVED, l2=ApprovalStatus.APPROVED)
        res = self.client.patch(f"/api/v1/bookings/{b.id}/cancel",
                                json={"reason": "trip no longer needed"}, headers=self.auth(self.admin))
        self.assertEqual(res.status_code, 200)
        data = res.json()["data"]
        self.assertEqual(data["status"], "CANCELLED")
        self.assertEqual(data["vehicle"]["status"], "AVAILABLE")


class TestApprovalEndpoints(ApiTestCase):

    def test_two_level_approval(self):
        b = self.make_booking(self.employee, self.vehicle)
        l1_id, l2_id = self.approval(b, 1).id, self.approval(b, 2).id

        res = self.client.post(f"/api/v1/approvals/{l1_id}/decision", json={"decision": "APPROVED"},
                               headers=self.auth(self.l1))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["message"], "Approval approved successfully")
        self.assertEqual(res.json()["data"]["booking"]["status"], "IN_PROGRESS")

        res = self.client.post(f"/api/v1/approvals/{l2_id}/decision", json={"decision": "APPROVED"},
                               headers=self.auth(self.l2))
        self.assertEqual(res.json()["data"]["booking"]["status"], "APPROVED")

        res = self.client.post(f"/api/v1/approvals/{l2_id}/decision", json={"decision": "APPROVED"},
                               headers=self.auth(self.l2))
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error"]["code"], "ALREADY_PROCESSED")

    def test_reject(self):
        b = self.make_booking(self.employee, self.vehicle)
        res = self.client.post(f"/api/v1/approvals/{self.approval(b, 1).id}/decision",
                               json={"decision": "REJECTED", "comments": "vehicle unsuitable"},
                               headers=self.auth(self.l1))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["message"], "Approval rejected successfully")
        booking = res.json()["data"]["booking"]
        self.assertEqual(booking["status"], "REJECTED")
        self.assertEqual(booking["rejectionReason"], "vehicle unsuitable")

    def test_wrong_level(self):
        b = self.make_booking(self.employee, self.vehicle)
        res = self.client.post(f"/api/v1/approvals/{self.approval(b, 1).id}/decision",
                               json={"decision": "APPROVED"}, headers=self.auth(self.l2))
        self.assertEqual(res.status_code, 403)

    def test_list_own_level(self):
        self.make_booking(self.employee, self.vehicle)
        res = self.client.get("/api/v1/approvals", headers=self.auth(self.l2))
        self.assertEqual(res.status_code, 200)
        self.assertEqual([a["level"] for a in res.json()["data"]], [2])


class TestAuditLogEndpoints(ApiTestCase):

    def test_admin_reads_audit_log(self):
        self.client.post("/api/v1/bookings", json=self.booking_body(), headers=self.auth(self.employee))

        res = self.client.get("/api/v1/audit-logs?entityType=Booking", headers=self.auth(self.admin))
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["meta"]["total"], 1)
        entry = body["data"][0]
        self.assertEqual(entry["action"], "CREATE")
        self.assertEqual(entry["user"]["id"], self.employee.id)

        res = self.client.get(f"/api/v1/audit-logs/{entry['id']}", headers=self.auth(self.admin))
        self.assertEqual(res.json()["data"]["id"], entry["id"])

        res = self.client.get("/api/v1/audit-logs/stats/summary", headers=self.auth(self.admin))
        self.assertEqual(res.json()["data"]["byAction"], {"CREATE": 1})

    def test_audit_log_is_admin_only(self):
        for user in (self.employee, self.l1):
            res = self.client.get("/api/v1/audit-logs", headers=self.auth(user))
            self.assertEqual(res.status_code, 403)

    def test_unknown_entry(self):
        res = self.client.get("/api/v1/audit-logs/999", headers=self.auth(self.admin))
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "NOT_FOUND")


if __name__ == '__main__':
    unittest.main()
