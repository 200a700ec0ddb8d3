from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditLog


class TokenLoginTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.user = self.user_model.objects.create_user(
            username="login-user",
            email="Login.User@Example.com",
            password="pass1234",
            role="manager",
        )

    def test_email_is_normalized_on_save(self):
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, "login.user@example.com")

    def test_token_obtain_accepts_email_in_any_case(self):
        response = self.client.post(
            "/api/v1/token/",
            {"username": "LOGIN.USER@example.com", "password": "pass1234"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.json())
        self.assertIn("refresh", response.json())

    def test_token_obtain_rejects_bad_password_with_envelope(self):
        response = self.client.post(
            "/api/v1/token/",
            {"username": "login-user", "password": "wrong"},
            format="json",
        )

        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["status"], 401)

    def test_me_returns_current_user_with_role(self):
        access = self.client.post(
            "/api/v1/token/",
            {"username": "login-user", "password": "pass1234"},
            format="json",
        ).json()["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

        response = self.client.get("/api/v1/me/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["username"], "login-user")
        self.assertEqual(response.json()["role"], "manager")


class RolePermissionCoreTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.employee = self.user_model.objects.create_user(
            username="employee-core",
            password="pass1234",
            role="employee",
            department="Field",
        )
        self.manager = self.user_model.objects.create_user(
            username="manager-core",
            password="pass1234",
            role="manager",
            department="Ops",
        )

    def test_employee_cannot_list_users_and_denial_is_logged(self):
        self.client.force_authenticate(user=self.employee)
        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self.client.get("/api/v1/users/")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")
        self.assertTrue(any("permission_denied" in message for message in cm.output))

    def test_manager_can_filter_users_by_department(self):
        self.client.force_authenticate(user=self.manager)

        response = self.client.get("/api/v1/users/", {"department": "Field"})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(sorted(payload.keys()), ["count", "next", "previous", "results"])
        self.assertEqual([row["username"] for row in payload["results"]], ["employee-core"])

    def test_unauthenticated_request_uses_error_envelope(self):
        response = self.client.get("/api/v1/users/")

        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertEqual(payload["code"], "not_authenticated")
        self.assertFalse(payload["success"])
        self.assertIsNone(payload["errors"])


class AuditLogTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.admin = self.user_model.objects.create_user(
            username="audit-admin",
            password="pass1234",
            role="admin",
        )
        self.manager = self.user_model.objects.create_user(
            username="audit-manager",
            password="pass1234",
            role="manager",
        )

    def test_location_create_writes_audit_log(self):
        self.client.force_authenticate(user=self.admin)
        res = self.client.post(
            "/api/v1/locations/",
            {"name": "Audit Store", "code": "AUD-1", "location_type": "store"},
            format="json",
            HTTP_X_REQUEST_ID="req-123",
        )

        self.assertEqual(res.status_code, 201)
        log = AuditLog.objects.get(action="location.create", entity="location")
        self.assertEqual(log.request_id, "req-123")
        self.assertEqual(str(log.entity_id), res.json()["id"])
        self.assertEqual(log.actor, self.admin)

    def test_audit_logs_are_admin_only(self):
        self.client.force_authenticate(user=self.manager)

        response = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(response.status_code, 403)

    def test_audit_logs_filter_by_entity(self):
        AuditLog.objects.create(action="item.create", entity="item", actor=self.admin)
        AuditLog.objects.create(action="supplier.create", entity="supplier", actor=self.admin)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/", {"entity": "item"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["action"] for row in response.json()["results"]], ["item.create"])

    def test_audit_logs_filter_by_actor_and_date(self):
        AuditLog.objects.create(action="item.create", entity="item", actor=self.admin)
        AuditLog.objects.create(action="item.update", entity="item", actor=self.manager)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(
            "/api/v1/admin/audit-logs/",
            {"actor_id": str(self.manager.id), "start_date": "2000-01-01"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["action"] for row in response.json()["results"]], ["item.update"])

    def test_malformed_audit_log_filters_are_rejected(self):
        self.client.force_authenticate(user=self.admin)

        bad_uuid = self.client.get("/api/v1/admin/audit-logs/", {"entity_id": "not-a-uuid"})
        bad_date = self.client.get("/api/v1/admin/audit-logs/", {"start_date": "yesterday"})

        self.assertEqual(bad_uuid.status_code, 400)
        self.assertEqual(bad_uuid.json()["code"], "validation_error")
        self.assertEqual(bad_date.status_code, 400)
        self.assertEqual(bad_date.json()["code"], "validation_error")

    def test_audit_logs_are_read_only(self):
        self.client.force_authenticate(user=self.admin)
        log = AuditLog.objects.create(action="test.action", entity="test", actor=self.admin)

        patch_res = self.client.patch(f"/api/v1/admin/audit-logs/{log.id}/", {"action": "changed"}, format="json")
        delete_res = self.client.delete(f"/api/v1/admin/audit-logs/{log.id}/")

        self.assertEqual(patch_res.status_code, 405)
        self.assertEqual(delete_res.status_code, 405)


class HealthCheckTests(TestCase):
    def test_healthz_is_public(self):
        response = APIClient().get("/healthz/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_readyz_checks_database(self):
        response = APIClient().get("/readyz/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ready")
