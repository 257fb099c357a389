"""Tests for tickets, documents, the activity stream, audit log and settings."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tenantdesk.api.documents import storage_path_for
from tenantdesk.db.models import ActivityEvent, AuditLog
from tenantdesk.services.counts import get_counts


def _open_ticket(client, actor, subject="Printer on fire", **fields):
    response = client.post(
        "/v1/tickets", json={"subject": subject, **fields}, headers=actor.headers
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.integration
class TestTicketsAPI:
    def test_open_ticket(self, client: TestClient, tenant, seed, test_db):
        member = seed.actor(tenant.account_id, "member")

        ticket = _open_ticket(client, member, priority="high", metadata={"floor": 3})

        assert ticket["status"] == "open"
        assert ticket["priority"] == "high"
        assert ticket["opened_by_person_id"] == str(member.person_id)
        assert ticket["account_id"] == str(tenant.account_id)
        assert ticket["metadata"] == {"floor": 3}

        db = test_db()
        try:
            assert get_counts(db, tenant.account_id)["tickets"] == 1
        finally:
            db.close()

    def test_invalid_priority(self, client: TestClient, tenant):
        response = client.post(
            "/v1/tickets",
            json={"subject": "x", "priority": "whenever"},
            headers=tenant.admin.headers,
        )
        assert response.status_code == 422

    def test_list_filters_by_status(self, client: TestClient, tenant):
        _open_ticket(client, tenant.admin, "One")
        second = _open_ticket(client, tenant.admin, "Two")
        client.patch(
            f"/v1/tickets/{second['id']}",
            json={"status": "resolved"},
            headers=tenant.admin.headers,
        )

        response = client.get("/v1/tickets?status=resolved", headers=tenant.admin.headers)

        assert [t["subject"] for t in response.json()["tickets"]] == ["Two"]

    def test_list_limit(self, client: TestClient, tenant):
        for n in range(3):
            _open_ticket(client, tenant.admin, f"Ticket {n}")

        response = client.get("/v1/tickets?limit=2", headers=tenant.admin.headers)
        assert len(response.json()["tickets"]) == 2

    def test_tickets_are_tenant_scoped(self, client: TestClient, tenant, seed):
        other = seed.account("Other")
        outsider = seed.actor(other, "admin")
        ticket = _open_ticket(client, outsider, "Theirs")

        listing = client.get("/v1/tickets", headers=tenant.admin.headers)
        direct = client.get(f"/v1/tickets/{ticket['id']}", headers=tenant.admin.headers)

        assert listing.json()["tickets"] == []
        assert direct.status_code == 404

    def test_update_requires_operator(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")
        operator = seed.actor(tenant.account_id, "operator")
        ticket = _open_ticket(client, member)

        denied = client.patch(
            f"/v1/tickets/{ticket['id']}", json={"status": "waiting"}, headers=member.headers
        )
        allowed = client.patch(
            f"/v1/tickets/{ticket['id']}",
            json={"status": "waiting", "assigned_to_person_id": str(operator.person_id)},
            headers=operator.headers,
        )

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["status"] == "waiting"
        assert allowed.json()["assigned_to_person_id"] == str(operator.person_id)

    def test_status_change_emits_activity(self, client: TestClient, tenant):
        ticket = _open_ticket(client, tenant.admin)
        client.patch(
            f"/v1/tickets/{ticket['id']}",
            json={"status": "resolved", "metadata": {"note": "replaced toner"}},
            headers=tenant.admin.headers,
        )

        response = client.get(
            "/v1/activity?event_type=ticket.status_changed", headers=tenant.admin.headers
        )
        events = response.json()["events"]
        assert len(events) == 1
        assert events[0]["metadata"] == {"from": "open", "to": "resolved"}
        assert events[0]["entity_id"] == ticket["id"]

    def test_update_writes_audit_and_activity(self, client: TestClient, tenant, test_db):
        ticket = _open_ticket(client, tenant.admin)
        client.patch(
            f"/v1/tickets/{ticket['id']}",
            json={"priority": "urgent"},
            headers=tenant.admin.headers,
        )

        db = test_db()
        try:
            audit = db.query(AuditLog).filter_by(action="ticket.updated").one()
            activity = db.query(ActivityEvent).filter_by(event_type="ticket.updated").one()
        finally:
            db.close()
        assert audit.before_data["priority"] == "medium"
        assert audit.after_data["priority"] == "urgent"
        assert activity.entity_id == ticket["id"]
        assert activity.account_id == tenant.account_id
        assert activity.meta == {"fields": ["priority"]}

    def test_close_adjusts_count(self, client: TestClient, tenant, test_db):
        ticket = _open_ticket(client, tenant.admin)
        response = client.patch(
            f"/v1/tickets/{ticket['id']}",
            json={"is_active": False},
            headers=tenant.admin.headers,
        )
        assert response.json()["is_active"] is False

        db = test_db()
        try:
            assert get_counts(db, tenant.account_id)["tickets"] == 0
        finally:
            db.close()

        hidden = client.get("/v1/tickets", headers=tenant.admin.headers)
        shown = client.get("/v1/tickets?include_inactive=true", headers=tenant.admin.headers)
        assert hidden.json()["tickets"] == []
        assert len(shown.json()["tickets"]) == 1

    def test_unknown_ticket(self, client: TestClient, tenant):
        response = client.get(f"/v1/tickets/{uuid4()}", headers=tenant.admin.headers)
        assert response.status_code == 404
        assert response.json()["title"] == "Ticket Not Found"


@pytest.mark.integration
class TestDocumentsAPI:
    def _attach(self, client, actor, entity_id, filename="invoice.pdf"):
        response = client.post(
            "/v1/documents",
            json={
                "entity_type": "ticket",
                "entity_id": str(entity_id),
                "filename": filename,
                "content_type": "application/pdf",
                "size_bytes": 2048,
            },
            headers=actor.headers,
        )
        assert response.status_code == 201
        return response.json()

    def test_attach_and_list(self, client: TestClient, tenant):
        entity_id = uuid4()
        document = self._attach(client, tenant.admin, entity_id)

        assert document["uploaded_by_person_id"] == str(tenant.admin.person_id)
        assert document["storage_path"].startswith(
            f"{tenant.account_id}/ticket/{entity_id}/"
        )
        assert document["storage_path"].endswith(".pdf")

        response = client.get(
            f"/v1/documents?entity_type=ticket&entity_id={entity_id}",
            headers=tenant.admin.headers,
        )
        assert [d["id"] for d in response.json()["documents"]] == [document["id"]]

    def test_list_requires_entity(self, client: TestClient, tenant):
        response = client.get("/v1/documents?entity_type=ticket", headers=tenant.admin.headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "entity_type and entity_id are required"

    def test_only_uploader_or_admin_deletes(self, client: TestClient, tenant, seed):
        uploader = seed.actor(tenant.account_id, "member")
        other = seed.actor(tenant.account_id, "operator")
        first = self._attach(client, uploader, uuid4())
        second = self._attach(client, uploader, uuid4())

        denied = client.delete(f"/v1/documents/{first['id']}", headers=other.headers)
        by_uploader = client.delete(f"/v1/documents/{first['id']}", headers=uploader.headers)
        by_admin = client.delete(
            f"/v1/documents/{second['id']}", headers=tenant.admin.headers
        )

        assert denied.status_code == 403
        assert by_uploader.json() == {"success": True}
        assert by_admin.status_code == 200

    def test_delete_unknown(self, client: TestClient, tenant):
        response = client.delete(f"/v1/documents/{uuid4()}", headers=tenant.admin.headers)
        assert response.status_code == 404

    def test_storage_path_extension(self):
        account_id, entity_id = uuid4(), uuid4()
        assert storage_path_for(account_id, "ticket", entity_id, "a.tar.gz").endswith(".gz")
        assert storage_path_for(account_id, "ticket", entity_id, "README").endswith(".bin")

    @pytest.mark.parametrize("filename", ["a.b/../../x", "report.p df", "notes.", "x." + "a" * 20])
    def test_storage_path_unsafe_extension(self, filename):
        account_id, entity_id = uuid4(), uuid4()

        path = storage_path_for(account_id, "ticket", entity_id, filename)

        assert path.endswith(".bin")
        assert ".." not in path.split("/")
        assert path.count("/") == 3

    def test_entity_type_must_be_a_plain_name(self, client: TestClient, tenant):
        response = client.post(
            "/v1/documents",
            json={"entity_type": "../ticket", "entity_id": str(uuid4()), "filename": "a.pdf"},
            headers=tenant.admin.headers,
        )
        assert response.status_code == 422


@pytest.mark.integration
class TestActivityAndAuditAPI:
    def test_activity_is_tenant_scoped(self, client: TestClient, tenant, seed):
        outsider = seed.actor(seed.account("Other"), "admin")
        _open_ticket(client, tenant.admin, "Ours")
        _open_ticket(client, outsider, "Theirs")

        response = client.get("/v1/activity", headers=tenant.admin.headers)

        summaries = [e["summary"] for e in response.json()["events"]]
        assert summaries == ["Opened ticket: Ours"]

    def test_audit_log_for_admins(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")
        ticket = _open_ticket(client, member)

        denied = client.get("/v1/audit-log", headers=member.headers)
        response = client.get(
            f"/v1/audit-log?entity_type=ticket&entity_id={ticket['id']}",
            headers=tenant.admin.headers,
        )

        assert denied.status_code == 403
        entries = response.json()["entries"]
        assert [e["action"] for e in entries] == ["ticket.created"]
        assert entries[0]["person_id"] == str(member.person_id)
        assert entries[0]["after_data"]["subject"] == "Printer on fire"


@pytest.mark.integration
class TestSettingsAPI:
    def test_settings_merge(self, client: TestClient, tenant):
        assert client.get("/v1/settings", headers=tenant.admin.headers).json() == {}

        client.patch("/v1/settings", json={"locale": "de"}, headers=tenant.admin.headers)
        response = client.patch(
            "/v1/settings", json={"timezone": "Europe/Berlin"}, headers=tenant.admin.headers
        )

        assert response.json() == {"locale": "de", "timezone": "Europe/Berlin"}
        assert client.get("/v1/settings", headers=tenant.admin.headers).json() == {
            "locale": "de",
            "timezone": "Europe/Berlin",
        }

    def test_settings_update_is_admin_only(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")

        response = client.patch("/v1/settings", json={"locale": "fr"}, headers=member.headers)
        assert response.status_code == 403
        assert client.get("/v1/settings", headers=member.headers).status_code == 200
