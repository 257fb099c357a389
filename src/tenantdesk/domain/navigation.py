"""Role-gated navigation computation.

Given an account's active app definitions and the caller's role, work out
which apps and nav items are visible. Per-account nav overrides are applied
to items before the role filter.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core.roles import ROLE_RANK, role_rank

DEFAULT_ROLE = "member"

NAV_ITEM_FIELDS = ("label", "icon", "route_type", "view_slug", "url", "position")


def nav_key(app_slug: str, item: Mapping[str, Any]) -> str:
    """Key used by nav overrides: ``<app_slug>.<view_slug or label>``."""
    return f"{app_slug}.{item.get('view_slug') or item.get('label')}"


def effective_role(
    account_role: Optional[str], preview_role: Optional[str] = None
) -> str:
    """Role used for the nav computation: preview role, caller's role, or member."""
    return preview_role or account_role or DEFAULT_ROLE


def _apply_override(
    item: Dict[str, Any], override: Optional[Mapping[str, Any]]
) -> Optional[Dict[str, Any]]:
    """Apply a nav override to an item copy; None when the item is hidden."""
    if override is None or not override.get("is_active", True):
        return item
    if override.get("hidden"):
        return None
    if override.get("label"):
        item["label"] = override["label"]
    if override.get("position") is not None:
        item["position"] = override["position"]
    if override.get("min_role"):
        item["min_role"] = override["min_role"]
    return item


def compute_nav(
    apps: Iterable[Mapping[str, Any]],
    role: str,
    overrides: Iterable[Mapping[str, Any]] = (),
) -> Dict[str, List[Dict[str, Any]]]:
    """Compute visible apps and nav items for ``role``.

    Args:
        apps: Active app definitions, already ordered by name
        role: Effective role of the caller
        overrides: Nav overrides of the account

    Returns:
        ``{"nav_items": [...], "apps": [...]}`` with nav items stably sorted
        by position
    """
    user_rank = ROLE_RANK.get(role, 1)
    overrides_by_key = {o["nav_key"]: o for o in overrides}

    nav_items: List[Dict[str, Any]] = []
    visible_apps: List[Dict[str, Any]] = []

    for app in apps:
        if user_rank < role_rank(app.get("min_role"), 1):
            continue

        visible_apps.append(
            {"slug": app["slug"], "name": app["name"], "icon": app.get("icon")}
        )

        for raw_item in app.get("nav_items") or []:
            item = _apply_override(
                dict(raw_item), overrides_by_key.get(nav_key(app["slug"], raw_item))
            )
            if item is None:
                continue
            if user_rank < role_rank(item.get("min_role") or DEFAULT_ROLE, 1):
                continue

            computed = {
                "app_slug": app["slug"],
                "app_name": app["name"],
                "app_icon": app.get("icon"),
            }
            for field in NAV_ITEM_FIELDS:
                computed[field] = item.get(field)
            if computed["position"] is None:
                computed["position"] = 0
            nav_items.append(computed)

    nav_items.sort(key=lambda i: i["position"])
    return {"nav_items": nav_items, "apps": visible_apps}


def visible_overrides(
    overrides: Iterable[Mapping[str, Any]], account_role: Optional[str]
) -> List[Mapping[str, Any]]:
    """Overrides whose ``min_role`` the caller meets."""
    user_rank = role_rank(account_role, -1)
    return [o for o in overrides if user_rank >= role_rank(o.get("min_role"), 0)]
