import csv
import io
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from docflow.models.portal import DocumentStatus
from docflow.services.email import EmailDeliveryError


class TestComplianceFlow:
    def test_end_to_end_compliance(self, client) -> None:
        resp = client.post(
            "/api/admin/users",
            json={
                "email": "u@example.com",
                "first_name": "U",
                "last_name": "Tester",
                "department": "IT",
            },
        )
        assert resp.status_code == 201
        user_id = resp.json()["id"]

        ids = []
        for name in ("a.pdf", "b.pdf"):
            resp = client.post(
                "/api/documents",
                data={"userId": user_id, "documentType": "ID", "originalName": name},
                files={"file": (name, b"%PDF-1.4", "application/pdf")},
            )
            assert resp.status_code == 201
            ids.append(resp.json()["id"])

        client.patch(f"/api/documents/{ids[0]}/status", json={"status": "processed"})
        assert client.get(f"/api/users/{user_id}/compliance").json()["compliance"] == 50

        client.patch(f"/api/documents/{ids[1]}/status", json={"status": "processed"})
        assert client.get(f"/api/users/{user_id}/compliance").json()["compliance"] == 100

        resp = client.get("/api/admin/compliance-by-department/IT")
        assert resp.status_code == 200
        assert resp.json()["percentage"] == 100

        departments = client.get("/api/admin/compliance-by-department").json()
        assert departments == [
            {"name": "IT", "percentage": 100, "total_users": 1, "total_documents": 2}
        ]


class TestAdminDashboards:
    def test_stats(self, client, user, admin, make_document, make_deadline) -> None:
        make_document(user, status=DocumentStatus.processed)
        make_document(admin)
        make_deadline(None, days=-1)
        resp = client.get("/api/admin/stats")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_users"] == 2
        assert data["new_users_this_month"] == 2
        assert data["total_documents"] == 2
        assert data["new_documents_this_week"] == 2
        assert data["pending_documents"] == 1
        assert data["compliance"] == 50
        assert data["overdue"] == 1

    def test_unknown_department(self, client) -> None:
        assert client.get("/api/admin/compliance-by-department/Nowhere").status_code == 404

    def test_document_types(self, client, user, make_document) -> None:
        make_document(user, "Tax")
        make_document(user, "ID")
        make_document(user, "ID")
        resp = client.get("/api/admin/document-types")
        assert resp.json()[0] == {"name": "ID", "count": 2}

    def test_users_status(self, client, user, admin, make_document, make_deadline) -> None:
        make_deadline(user, "ID")
        make_document(user, "ID", DocumentStatus.processed)
        resp = client.get("/api/admin/users-status")
        assert resp.status_code == 200
        by_email = {row["email"]: row for row in resp.json()}
        assert by_email[user.email]["status"] == "complete"
        assert by_email[admin.email]["status"] == "pending"

    def test_export_compliance_report(self, client, user, make_document) -> None:
        make_document(user, status=DocumentStatus.processed)
        resp = client.get("/api/admin/export/compliance-report")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "attachment" in resp.headers["content-disposition"]
        rows = list(csv.DictReader(io.StringIO(resp.text)))
        assert rows[0]["email"] == user.email
        assert rows[0]["compliance"] == "100"


class TestAdminUsers:
    def test_list_and_filter(self, client, user, admin) -> None:
        assert client.get("/api/admin/users").json()["count"] == 2
        resp = client.get("/api/admin/users?department=IT")
        assert [u["email"] for u in resp.json()["items"]] == [admin.email]

    def test_departments(self, client, user, admin) -> None:
        assert client.get("/api/admin/departments").json() == ["Human Resources", "IT"]

    def test_update_and_delete(self, client, user) -> None:
        resp = client.patch(f"/api/admin/users/{user.id}", json={"role": "admin"})
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"
        assert client.delete(f"/api/admin/users/{user.id}").status_code == 204
        assert client.get(f"/api/users/{user.id}").status_code == 404

    def test_documents_include_owner(self, client, user, make_document) -> None:
        make_document(user)
        resp = client.get(f"/api/admin/documents?userId={user.id}&status=pending")
        data = resp.json()
        assert data["count"] == 1
        assert data["items"][0]["user"]["email"] == user.email


class TestAdminDeadlinesAndReminders:
    def test_list_deadlines(self, client, user, make_deadline) -> None:
        make_deadline(user)
        make_deadline(None)
        assert client.get("/api/admin/deadlines").json()["count"] == 2

    def test_notify_deadline(self, client, user, admin, make_deadline) -> None:
        deadline = make_deadline(None, days=2)
        resp = client.post(f"/api/admin/deadlines/{deadline.id}/notify")
        assert resp.status_code == 200
        assert resp.json()["recipients"] == 2
        assert client.get(f"/api/notifications/user/{user.id}").json()["count"] == 1

    def test_reminder_lifecycle(self, client, user, make_deadline) -> None:
        deadline = make_deadline(user, days=3)
        resp = client.post(
            "/api/admin/reminders",
            json={
                "deadline_id": str(deadline.id),
                "reminder_time": (
                    datetime.now(timezone.utc) + timedelta(days=1)
                ).isoformat(),
            },
        )
        assert resp.status_code == 201
        reminder_id = resp.json()["id"]

        assert client.get("/api/admin/reminders").json()["count"] == 1
        resp = client.patch(
            f"/api/admin/reminders/{reminder_id}", json={"send_push": False}
        )
        assert resp.json()["send_push"] is False

        resp = client.post(f"/api/admin/reminders/{reminder_id}/send")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Reminder sent successfully"
        assert client.get(f"/api/admin/reminders/{reminder_id}").json()["is_sent"] is True

        assert client.delete(f"/api/admin/reminders/{reminder_id}").status_code == 204
        assert client.get(f"/api/admin/reminders/{reminder_id}").status_code == 404

    def test_reminder_email_failure(self, client, user, make_deadline) -> None:
        deadline = make_deadline(user, days=3)
        reminder_id = client.post(
            "/api/admin/reminders",
            json={
                "deadline_id": str(deadline.id),
                "reminder_time": datetime.now(timezone.utc).isoformat(),
            },
        ).json()["id"]
        with patch(
            "docflow.services.reminders.dispatcher.notify_reminder_fired",
            new_callable=AsyncMock,
            side_effect=EmailDeliveryError("relay refused"),
        ):
            resp = client.post(f"/api/admin/reminders/{reminder_id}/send")
        assert resp.status_code == 502
        assert client.get(f"/api/admin/reminders/{reminder_id}").json()["is_sent"] is False

    def test_send_unknown_reminder(self, client) -> None:
        assert client.post(f"/api/admin/reminders/{uuid.uuid4()}/send").status_code == 404
