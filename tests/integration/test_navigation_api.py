"""Tests for navigation, app definitions, nav overrides and tenant themes."""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tenantdesk.services.counts import get_counts

CRM_APP = {
    "slug": "crm",
    "name": "CRM",
    "icon": "users",
    "min_role": "member",
    "nav_items": [
        {"label": "Deals", "view_slug": "deals", "position": 2},
        {"label": "Contacts", "view_slug": "contacts", "position": 1},
        {"label": "Pipeline Setup", "view_slug": "setup", "position": 3, "min_role": "admin"},
    ],
}

ADMIN_APP = {
    "slug": "console",
    "name": "Admin Console",
    "min_role": "admin",
    "nav_items": [{"label": "Users", "route_type": "admin", "position": 0}],
}


def _create_app(client, headers, payload):
    response = client.post("/v1/apps", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.mark.integration
class TestNavAPI:
    def test_empty_nav(self, client: TestClient, tenant):
        response = client.get("/v1/nav", headers=tenant.admin.headers)
        assert response.json() == {"nav_items": [], "apps": [], "role": "admin"}

    def test_member_nav(self, client: TestClient, tenant, seed):
        _create_app(client, tenant.admin.headers, CRM_APP)
        _create_app(client, tenant.admin.headers, ADMIN_APP)
        member = seed.actor(tenant.account_id, "member")

        response = client.get("/v1/nav", headers=member.headers)

        data = response.json()
        assert data["role"] == "member"
        assert [a["slug"] for a in data["apps"]] == ["crm"]
        assert [i["label"] for i in data["nav_items"]] == ["Contacts", "Deals"]
        assert data["nav_items"][0]["app_slug"] == "crm"
        assert data["nav_items"][0]["route_type"] == "view"

    def test_admin_nav(self, client: TestClient, tenant):
        _create_app(client, tenant.admin.headers, CRM_APP)
        _create_app(client, tenant.admin.headers, ADMIN_APP)

        response = client.get("/v1/nav", headers=tenant.admin.headers)

        data = response.json()
        assert [a["slug"] for a in data["apps"]] == ["console", "crm"]
        assert [i["label"] for i in data["nav_items"]] == [
            "Users",
            "Contacts",
            "Deals",
            "Pipeline Setup",
        ]

    def test_admin_can_preview_role(self, client: TestClient, tenant):
        _create_app(client, tenant.admin.headers, CRM_APP)

        response = client.get("/v1/nav?role=portal", headers=tenant.admin.headers)

        assert response.json()["role"] == "portal"
        assert response.json()["apps"] == []

    def test_member_preview_is_ignored(self, client: TestClient, tenant, seed):
        _create_app(client, tenant.admin.headers, CRM_APP)
        member = seed.actor(tenant.account_id, "member")

        response = client.get("/v1/nav?role=admin", headers=member.headers)

        assert response.json()["role"] == "member"
        labels = [i["label"] for i in response.json()["nav_items"]]
        assert "Pipeline Setup" not in labels

    def test_member_unknown_preview_role_is_ignored(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")

        response = client.get("/v1/nav?role=superuser", headers=member.headers)

        assert response.status_code == 200
        assert response.json()["role"] == "member"

    def test_admin_unknown_preview_role(self, client: TestClient, tenant):
        response = client.get("/v1/nav?role=superuser", headers=tenant.admin.headers)

        assert response.status_code == 422
        assert "superuser" in response.json()["detail"]

    def test_inactive_apps_are_hidden(self, client: TestClient, tenant):
        app = _create_app(client, tenant.admin.headers, CRM_APP)
        client.delete(f"/v1/apps/{app['id']}", headers=tenant.admin.headers)

        response = client.get("/v1/nav", headers=tenant.admin.headers)
        assert response.json()["apps"] == []


@pytest.mark.integration
class TestAppsAPI:
    def test_create_and_fetch(self, client: TestClient, tenant, test_db):
        app = _create_app(client, tenant.admin.headers, CRM_APP)

        assert app["is_active"] is True
        assert app["nav_items"][0] == {
            "label": "Deals",
            "view_slug": "deals",
            "position": 2,
            "route_type": "view",
        }

        by_id = client.get(f"/v1/apps/{app['id']}", headers=tenant.admin.headers)
        by_slug = client.get("/v1/apps/by-slug/crm", headers=tenant.admin.headers)
        assert by_id.json()["slug"] == "crm"
        assert by_slug.json()["id"] == app["id"]

        db = test_db()
        try:
            assert get_counts(db, tenant.account_id)["apps"] == 1
        finally:
            db.close()

    def test_duplicate_slug(self, client: TestClient, tenant):
        _create_app(client, tenant.admin.headers, CRM_APP)

        response = client.post("/v1/apps", json=CRM_APP, headers=tenant.admin.headers)
        assert response.status_code == 409

    def test_invalid_slug(self, client: TestClient, tenant):
        response = client.post(
            "/v1/apps", json={"slug": "Not Valid", "name": "X"}, headers=tenant.admin.headers
        )
        assert response.status_code == 422

    def test_members_cannot_create(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")

        response = client.post("/v1/apps", json=CRM_APP, headers=member.headers)
        assert response.status_code == 403

    def test_clone_is_inactive_copy(self, client: TestClient, tenant):
        app = _create_app(client, tenant.admin.headers, CRM_APP)

        response = client.post(f"/v1/apps/{app['id']}/clone", headers=tenant.admin.headers)

        assert response.status_code == 201
        clone = response.json()
        assert clone["slug"] == "crm-custom"
        assert clone["name"] == "CRM (Custom)"
        assert clone["is_active"] is False
        assert clone["nav_items"] == app["nav_items"]

        again = client.post(f"/v1/apps/{app['id']}/clone", headers=tenant.admin.headers)
        assert again.status_code == 409

    def test_clone_unknown(self, client: TestClient, tenant):
        response = client.post(f"/v1/apps/{uuid4()}/clone", headers=tenant.admin.headers)
        assert response.status_code == 404

    def test_list_apps(self, client: TestClient, tenant):
        app = _create_app(client, tenant.admin.headers, CRM_APP)
        client.post(f"/v1/apps/{app['id']}/clone", headers=tenant.admin.headers)

        active = client.get("/v1/apps", headers=tenant.admin.headers)
        everything = client.get("/v1/apps?include_inactive=true", headers=tenant.admin.headers)

        assert [a["slug"] for a in active.json()["apps"]] == ["crm"]
        assert len(everything.json()["apps"]) == 2

    def test_update_app(self, client: TestClient, tenant):
        app = _create_app(client, tenant.admin.headers, CRM_APP)

        response = client.patch(
            f"/v1/apps/{app['id']}",
            json={"name": "Sales", "nav_items": [{"label": "Leads"}]},
            headers=tenant.admin.headers,
        )

        assert response.json()["name"] == "Sales"
        assert response.json()["nav_items"] == [{"label": "Leads", "route_type": "view"}]

    def test_update_app_writes_audit_and_activity(self, client: TestClient, tenant):
        app = _create_app(client, tenant.admin.headers, CRM_APP)
        client.patch(
            f"/v1/apps/{app['id']}", json={"name": "Sales"}, headers=tenant.admin.headers
        )

        audit = client.get("/v1/audit-log?action=app.updated", headers=tenant.admin.headers)
        activity = client.get(
            "/v1/activity?event_type=app.updated", headers=tenant.admin.headers
        )

        entries = audit.json()["entries"]
        events = activity.json()["events"]
        assert len(entries) == 1
        assert entries[0]["before_data"]["name"] == "CRM"
        assert entries[0]["after_data"]["name"] == "Sales"
        assert len(events) == 1
        assert events[0]["summary"] == 'Updated app "Sales"'
        assert events[0]["metadata"] == {"fields": ["name"]}

    def test_clone_is_audited(self, client: TestClient, tenant):
        app = _create_app(client, tenant.admin.headers, CRM_APP)
        clone = client.post(f"/v1/apps/{app['id']}/clone", headers=tenant.admin.headers).json()

        audit = client.get("/v1/audit-log?action=app.cloned", headers=tenant.admin.headers)

        entries = audit.json()["entries"]
        assert [e["entity_id"] for e in entries] == [clone["id"]]
        assert entries[0]["before_data"] == {"source_app_id": app["id"]}

    def test_empty_update(self, client: TestClient, tenant):
        app = _create_app(client, tenant.admin.headers, CRM_APP)

        response = client.patch(f"/v1/apps/{app['id']}", json={}, headers=tenant.admin.headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"

    def test_deactivate(self, client: TestClient, tenant, test_db):
        app = _create_app(client, tenant.admin.headers, CRM_APP)

        response = client.delete(f"/v1/apps/{app['id']}", headers=tenant.admin.headers)

        assert response.json() == {"success": True}
        by_slug = client.get("/v1/apps/by-slug/crm", headers=tenant.admin.headers)
        assert by_slug.status_code == 404
        db = test_db()
        try:
            assert get_counts(db, tenant.account_id)["apps"] == 0
        finally:
            db.close()

    def test_apps_are_tenant_scoped(self, client: TestClient, tenant, seed):
        outsider = seed.actor(seed.account("Other"), "admin")
        app = _create_app(client, outsider.headers, CRM_APP)

        response = client.get(f"/v1/apps/{app['id']}", headers=tenant.admin.headers)
        assert response.status_code == 404


@pytest.mark.integration
class TestNavOverridesAPI:
    def test_override_relabels_and_hides(self, client: TestClient, tenant):
        _create_app(client, tenant.admin.headers, CRM_APP)
        client.post(
            "/v1/nav-overrides",
            json={"nav_key": "crm.deals", "label": "Opportunities", "position": 0},
            headers=tenant.admin.headers,
        )
        client.post(
            "/v1/nav-overrides",
            json={"nav_key": "crm.contacts", "hidden": True},
            headers=tenant.admin.headers,
        )

        response = client.get("/v1/nav", headers=tenant.admin.headers)

        labels = [i["label"] for i in response.json()["nav_items"]]
        assert labels == ["Opportunities", "Pipeline Setup"]

    def test_upsert_replaces_by_key(self, client: TestClient, tenant):
        first = client.post(
            "/v1/nav-overrides",
            json={"nav_key": "crm.deals", "label": "Opportunities"},
            headers=tenant.admin.headers,
        ).json()
        second = client.post(
            "/v1/nav-overrides",
            json={"nav_key": "crm.deals", "hidden": True},
            headers=tenant.admin.headers,
        ).json()

        assert first["id"] == second["id"]
        assert second["hidden"] is True
        listing = client.get("/v1/nav-overrides", headers=tenant.admin.headers)
        assert len(listing.json()["overrides"]) == 1

    def test_override_visibility_by_role(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")
        for key, min_role in (("crm.a", None), ("crm.b", "member"), ("crm.c", "admin")):
            client.post(
                "/v1/nav-overrides",
                json={"nav_key": key, "min_role": min_role},
                headers=tenant.admin.headers,
            )

        response = client.get("/v1/nav-overrides", headers=member.headers)

        keys = sorted(o["nav_key"] for o in response.json()["overrides"])
        assert keys == ["crm.a", "crm.b"]

    def test_delete_override(self, client: TestClient, tenant):
        override = client.post(
            "/v1/nav-overrides",
            json={"nav_key": "crm.deals", "hidden": True},
            headers=tenant.admin.headers,
        ).json()

        deleted = client.delete(
            f"/v1/nav-overrides/{override['id']}", headers=tenant.admin.headers
        )
        missing = client.delete(
            f"/v1/nav-overrides/{override['id']}", headers=tenant.admin.headers
        )

        assert deleted.json() == {"success": True}
        assert missing.status_code == 404

        activity = client.get("/v1/activity", headers=tenant.admin.headers).json()["events"]
        assert sorted(e["event_type"] for e in activity) == [
            "nav_override.deleted",
            "nav_override.updated",
        ]


@pytest.mark.integration
class TestThemeAPI:
    def test_default_theme(self, client: TestClient, tenant):
        response = client.get("/v1/theme", headers=tenant.admin.headers)

        data = response.json()
        assert data["preset"] == "clean"
        assert data["tokens"] == {}
        assert data["resolved_tokens"]["primary"] == "221 83% 53%"

    def test_save_then_update_becomes_custom(self, client: TestClient, tenant):
        created = client.post(
            "/v1/theme",
            json={"preset": "bold", "tokens": {"primary": "10 80% 50%"}},
            headers=tenant.admin.headers,
        )
        assert created.json()["preset"] == "bold"
        assert created.json()["resolved_tokens"]["primary"] == "10 80% 50%"
        assert created.json()["resolved_tokens"]["radius"] == "0.75rem"

        updated = client.post(
            "/v1/theme",
            json={"tokens": {"accent": "0 0% 0%"}, "logo_url": "https://cdn.example/logo.svg"},
            headers=tenant.admin.headers,
        )
        data = updated.json()
        assert data["preset"] == "custom"
        assert data["tokens"] == {"accent": "0 0% 0%"}
        assert data["resolved_tokens"] == {"accent": "0 0% 0%"}
        assert data["logo_url"] == "https://cdn.example/logo.svg"

    def test_unknown_tokens_rejected(self, client: TestClient, tenant):
        response = client.post(
            "/v1/theme",
            json={"tokens": {"sparkle": "1"}, "dark_tokens": {"glow": "2"}},
            headers=tenant.admin.headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown theme token(s): glow, sparkle"

    def test_theme_is_admin_only(self, client: TestClient, tenant, seed):
        member = seed.actor(tenant.account_id, "member")

        response = client.post("/v1/theme", json={"preset": "muted"}, headers=member.headers)
        assert response.status_code == 403

    def test_css(self, client: TestClient, tenant):
        client.post(
            "/v1/theme",
            json={"preset": "clean", "dark_tokens": {"background": "0 0% 0%"}},
            headers=tenant.admin.headers,
        )

        response = client.get("/v1/theme/css", headers=tenant.admin.headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/css")
        assert response.text.startswith(":root {")
        assert "  --primary: 221 83% 53%;" in response.text
        assert ".dark {\n  --background: 0 0% 0%;\n}" in response.text
