"""Unit tests for role-gated navigation computation."""

import pytest

from tenantdesk.domain.navigation import (
    compute_nav,
    effective_role,
    nav_key,
    visible_overrides,
)


@pytest.fixture
def apps():
    return [
        {
            "slug": "admin",
            "name": "Administration",
            "icon": "shield",
            "min_role": "admin",
            "nav_items": [{"label": "Users", "view_slug": "users", "position": 1}],
        },
        {
            "slug": "support",
            "name": "Support",
            "icon": "life-buoy",
            "min_role": "member",
            "nav_items": [
                {"label": "Queue", "view_slug": "queue", "position": 5, "min_role": "operator"},
                {"label": "My Tickets", "view_slug": "mine", "position": 2},
                {"label": "Help", "route_type": "external", "url": "https://help.example.com"},
            ],
        },
    ]


@pytest.mark.unit
class TestEffectiveRole:
    def test_preview_role_wins(self):
        assert effective_role("admin", "portal") == "portal"

    def test_account_role_used(self):
        assert effective_role("operator") == "operator"

    def test_defaults_to_member(self):
        assert effective_role(None) == "member"


@pytest.mark.unit
class TestComputeNav:
    def test_member_sees_member_items_only(self, apps):
        result = compute_nav(apps, "member")

        assert [a["slug"] for a in result["apps"]] == ["support"]
        labels = [i["label"] for i in result["nav_items"]]
        assert labels == ["Help", "My Tickets"]

    def test_admin_sees_everything_sorted_by_position(self, apps):
        result = compute_nav(apps, "admin")

        assert [a["slug"] for a in result["apps"]] == ["admin", "support"]
        assert [i["position"] for i in result["nav_items"]] == [0, 1, 2, 5]

    def test_items_carry_app_fields(self, apps):
        item = compute_nav(apps, "operator")["nav_items"][-1]
        assert item["app_slug"] == "support"
        assert item["app_name"] == "Support"
        assert item["app_icon"] == "life-buoy"
        assert item["label"] == "Queue"
        assert item["route_type"] is None

    def test_unknown_role_ranks_as_member(self, apps):
        result = compute_nav(apps, "owner")
        assert [a["slug"] for a in result["apps"]] == ["support"]

    def test_portal_sees_nothing_member_gated(self, apps):
        result = compute_nav(apps, "portal")
        assert result == {"nav_items": [], "apps": []}

    def test_no_apps(self):
        assert compute_nav([], "admin") == {"nav_items": [], "apps": []}

    def test_stable_sort_keeps_order_for_equal_positions(self):
        apps = [
            {
                "slug": "x",
                "name": "X",
                "nav_items": [{"label": "First"}, {"label": "Second"}, {"label": "Third"}],
            }
        ]
        labels = [i["label"] for i in compute_nav(apps, "member")["nav_items"]]
        assert labels == ["First", "Second", "Third"]


@pytest.mark.unit
class TestNavOverrides:
    def test_nav_key_prefers_view_slug(self):
        assert nav_key("support", {"label": "Queue", "view_slug": "queue"}) == "support.queue"
        assert nav_key("support", {"label": "Help"}) == "support.Help"

    def test_hidden_override_removes_item(self, apps):
        result = compute_nav(apps, "admin", [{"nav_key": "support.mine", "hidden": True}])
        assert "My Tickets" not in [i["label"] for i in result["nav_items"]]

    def test_override_changes_label_and_position(self, apps):
        result = compute_nav(
            apps, "member", [{"nav_key": "support.mine", "label": "Mine", "position": -1}]
        )
        assert result["nav_items"][0]["label"] == "Mine"

    def test_override_min_role_applies_before_filter(self, apps):
        result = compute_nav(
            apps, "member", [{"nav_key": "support.mine", "min_role": "operator"}]
        )
        assert [i["label"] for i in result["nav_items"]] == ["Help"]

    def test_inactive_override_is_ignored(self, apps):
        result = compute_nav(
            apps, "member", [{"nav_key": "support.mine", "hidden": True, "is_active": False}]
        )
        assert "My Tickets" in [i["label"] for i in result["nav_items"]]

    def test_visible_overrides_filters_by_rank(self):
        overrides = [
            {"nav_key": "a", "min_role": None},
            {"nav_key": "b", "min_role": "operator"},
            {"nav_key": "c", "min_role": "admin"},
        ]
        assert [o["nav_key"] for o in visible_overrides(overrides, "operator")] == ["a", "b"]
        assert [o["nav_key"] for o in visible_overrides(overrides, None)] == []
