"""Tests for impersonation sessions, system health and admin counters."""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from tenantdesk.db.models import AuditLog, ImpersonationSession
from tenantdesk.services.errors import record_error_event
from tests.helpers.seeding import auth_headers


def _start(client, staff, person_id, account_id, **extra):
    return client.post(
        "/v1/impersonation",
        json={
            "target_person_id": str(person_id),
            "target_account_id": str(account_id),
            **extra,
        },
        headers=staff.headers,
    )


@pytest.mark.integration
class TestImpersonationAPI:
    def test_start_session(self, client: TestClient, tenant, seed, staff):
        member = seed.actor(tenant.account_id, "operator", full_name="Olly Operator")

        response = _start(client, staff, member.person_id, tenant.account_id, reason="ticket 42")

        assert response.status_code == 201
        session = response.json()["session"]
        assert session["status"] == "active"
        assert session["admin_person_id"] == str(staff.person_id)
        assert session["target_account_role"] == "operator"
        assert session["reason"] == "ticket 42"
        assert session["target_person"]["full_name"] == "Olly Operator"
        assert session["target_account"]["display_name"] == "Acme"

        started = datetime.fromisoformat(session["started_at"])
        expires = datetime.fromisoformat(session["expires_at"])
        assert expires - started == timedelta(minutes=60)

    def test_non_staff_cannot_impersonate(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")

        response = _start(client, tenant.admin, member.person_id, tenant.account_id)
        assert response.status_code == 403
        assert response.json()["detail"] == "Only system admins can impersonate users"

    def test_cannot_impersonate_self(self, client: TestClient, tenant, staff):
        response = _start(client, staff, staff.person_id, tenant.account_id)
        assert response.status_code == 400

    def test_target_must_be_active_member(self, client: TestClient, tenant, seed, staff):
        stranger = seed.person()

        response = _start(client, staff, stranger, tenant.account_id)
        assert response.status_code == 404

    def test_new_session_ends_previous(self, client: TestClient, tenant, seed, staff, test_db):
        first = seed.actor(tenant.account_id, "member")
        second = seed.actor(tenant.account_id, "member")
        first_id = _start(client, staff, first.person_id, tenant.account_id).json()["session"]["id"]
        _start(client, staff, second.person_id, tenant.account_id)

        db = test_db()
        try:
            statuses = {
                str(s.id): s.status for s in db.query(ImpersonationSession).all()
            }
        finally:
            db.close()
        assert statuses[first_id] == "ended"
        assert sorted(statuses.values()) == ["active", "ended"]

    def test_get_current_and_by_id(self, client: TestClient, tenant, seed, staff):
        member = seed.actor(tenant.account_id, "member")

        assert client.get("/v1/impersonation", headers=staff.headers).json() == {"session": None}

        session_id = _start(client, staff, member.person_id, tenant.account_id).json()["session"]["id"]

        current = client.get("/v1/impersonation", headers=staff.headers)
        by_id = client.get(f"/v1/impersonation?session_id={session_id}", headers=staff.headers)
        missing = client.get(f"/v1/impersonation?session_id={uuid4()}", headers=staff.headers)

        assert current.json()["session"]["id"] == session_id
        assert by_id.json()["session"]["id"] == session_id
        assert missing.status_code == 404

    def test_acting_as_target(self, client: TestClient, tenant, seed, staff, test_db):
        member = seed.actor(tenant.account_id, "member", full_name="Mia Member")
        session_id = _start(client, staff, member.person_id, tenant.account_id).json()["session"]["id"]
        headers = {**staff.headers, "X-Impersonate-Session-Id": session_id}

        me = client.get("/v1/me", headers=headers)
        ticket = client.post("/v1/tickets", json={"subject": "On behalf"}, headers=headers)

        context = me.json()["context"]
        assert me.json()["person"]["full_name"] == "Mia Member"
        assert context["impersonating"] is True
        assert context["account_id"] == str(tenant.account_id)
        assert context["account_role"] == "member"
        assert context["system_role"] is None
        assert ticket.json()["opened_by_person_id"] == str(member.person_id)

        db = test_db()
        try:
            entry = db.query(AuditLog).filter_by(action="ticket.created").one()
            assert entry.person_id == member.person_id
            assert entry.meta == {
                "impersonated_by": str(staff.person_id),
                "impersonation_session_id": session_id,
            }
        finally:
            db.close()

    def test_session_header_ignored_for_non_staff(self, client: TestClient, tenant, seed, staff):
        member = seed.actor(tenant.account_id, "member")
        session_id = _start(client, staff, member.person_id, tenant.account_id).json()["session"]["id"]

        response = client.get(
            "/v1/me",
            headers={**tenant.admin.headers, "X-Impersonate-Session-Id": session_id},
        )

        assert response.json()["context"]["impersonating"] is False
        assert response.json()["person"]["id"] == str(tenant.admin.person_id)

    def test_expired_session_is_not_used(self, client: TestClient, tenant, seed, staff, test_db):
        member = seed.actor(tenant.account_id, "member")
        session_id = _start(client, staff, member.person_id, tenant.account_id).json()["session"]["id"]

        db = test_db()
        try:
            session = db.query(ImpersonationSession).filter_by(id=UUID(session_id)).one()
            session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
            db.commit()
        finally:
            db.close()

        response = client.get(
            "/v1/me", headers={**staff.headers, "X-Impersonate-Session-Id": session_id}
        )
        assert response.json()["context"]["impersonating"] is False

        db = test_db()
        try:
            session = db.query(ImpersonationSession).filter_by(id=UUID(session_id)).one()
            assert session.status == "expired"
        finally:
            db.close()

    def test_end_while_impersonating(self, client: TestClient, tenant, seed, staff):
        member = seed.actor(tenant.account_id, "member")
        session_id = _start(client, staff, member.person_id, tenant.account_id).json()["session"]["id"]

        response = client.delete(
            f"/v1/impersonation?session_id={session_id}",
            headers={**staff.headers, "X-Impersonate-Session-Id": session_id},
        )
        again = client.delete(f"/v1/impersonation?session_id={session_id}", headers=staff.headers)

        assert response.json() == {"ended": True}
        assert again.status_code == 404

    def test_end_all(self, client: TestClient, tenant, seed, staff):
        member = seed.actor(tenant.account_id, "member")
        _start(client, staff, member.person_id, tenant.account_id)

        response = client.delete("/v1/impersonation", headers=staff.headers)
        assert response.json() == {"ended": True, "count": 1}
        assert client.get("/v1/impersonation", headers=staff.headers).json() == {"session": None}


@pytest.mark.integration
class TestSystemHealthAPI:
    def test_recent_errors_and_counts(self, client: TestClient, staff, seed, test_db):
        record_error_event(ValueError("invalid input"), "req-a", "/v1/tickets", session_factory=test_db)
        record_error_event(TimeoutError("slow"), "req-b", "/v1/tickets", session_factory=test_db)
        record_error_event(ValueError("invalid again"), "req-c", "/v1/persons", session_factory=test_db)

        response = client.get("/v1/system-health?hours=1", headers=staff.headers)

        assert response.status_code == 200
        data = response.json()
        assert data["hours"] == 1
        assert len(data["recent_errors"]) == 3
        assert data["error_counts"] == {"validation": 2, "timeout": 1}
        assert data["active_impersonation_sessions"] == 0

    def test_counts_active_sessions(self, client: TestClient, tenant, seed, staff):
        member = seed.actor(tenant.account_id, "member")
        _start(client, staff, member.person_id, tenant.account_id)

        response = client.get("/v1/system-health", headers=staff.headers)
        assert response.json()["active_impersonation_sessions"] == 1

    @pytest.mark.parametrize("hours", [0, 2161])
    def test_hours_out_of_range(self, client: TestClient, staff, hours):
        response = client.get(f"/v1/system-health?hours={hours}", headers=staff.headers)
        assert response.status_code == 422

    def test_staff_only(self, client: TestClient, tenant):
        response = client.get("/v1/system-health", headers=tenant.admin.headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "System staff access required"

    def test_system_operator_is_staff(self, client: TestClient, seed):
        operator = seed.actor(None, role=None, system_role="system_operator")

        response = client.get("/v1/system-health", headers=operator.headers)
        assert response.status_code == 200


@pytest.mark.integration
class TestAdminCountsAPI:
    def test_counters_follow_mutations(self, client: TestClient, tenant, seed):
        client.post("/v1/tickets", json={"subject": "One"}, headers=tenant.admin.headers)
        client.post(
            "/v1/memberships",
            json={"person_id": str(seed.person())},
            headers=tenant.admin.headers,
        )

        response = client.get("/v1/admin-counts", headers=tenant.admin.headers)
        assert response.json() == {"tickets": 1, "members": 1}

    def test_recalculate(self, client: TestClient, tenant, seed):
        seed.actor(tenant.account_id, "member")
        client.post("/v1/tickets", json={"subject": "One"}, headers=tenant.admin.headers)

        response = client.post("/v1/admin-counts/recalculate", headers=tenant.admin.headers)

        assert response.json() == {"members": 2, "apps": 0, "tickets": 1, "documents": 0}
        after = client.get("/v1/admin-counts", headers=tenant.admin.headers)
        assert after.json()["members"] == 2

    def test_admin_only(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")

        assert client.get("/v1/admin-counts", headers=member.headers).status_code == 403
        assert (
            client.post("/v1/admin-counts/recalculate", headers=member.headers).status_code
            == 403
        )

    def test_staff_in_any_account(self, client: TestClient, tenant, staff):
        response = client.get(
            "/v1/admin-counts", headers=auth_headers(staff.person_id, tenant.account_id)
        )
        assert response.status_code == 200
