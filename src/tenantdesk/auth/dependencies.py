"""Authentication and authorization dependencies for FastAPI."""

from typing import Any, Callable, Optional

from fastapi import Depends, HTTPException, Query, status

from ..config import get_config
from ..core.roles import has_min_role, has_role, is_system_staff
from .context import RequestContext, get_request_context


def require_auth(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Require an authenticated person."""
    if ctx.person_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ctx


def require_tenant(ctx: RequestContext = Depends(require_auth)) -> RequestContext:
    """Require an authenticated person acting in a tenant account."""
    if ctx.account_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tenant context required",
        )
    return ctx


def _forbidden() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
    )


def require_role(*roles: str) -> Callable[..., RequestContext]:
    """
    Dependency factory requiring one of ``roles`` in the tenant.

    System staff always pass.
    """

    def dependency(ctx: RequestContext = Depends(require_tenant)) -> RequestContext:
        if not has_role(ctx, roles):
            raise _forbidden()
        return ctx

    return dependency


def require_min_role(min_role: str) -> Callable[..., RequestContext]:
    """Dependency factory requiring at least ``min_role`` in the tenant."""

    def dependency(ctx: RequestContext = Depends(require_tenant)) -> RequestContext:
        if not has_min_role(ctx, min_role):
            raise _forbidden()
        return ctx

    return dependency


def require_system_staff(ctx: RequestContext = Depends(require_auth)) -> RequestContext:
    """Require a system admin or system operator."""
    if not is_system_staff(ctx.system_role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="System staff access required",
        )
    return ctx


def clamp_limit(
    raw: Any, default: Optional[int] = None, maximum: Optional[int] = None
) -> int:
    """
    Clamp a page limit to ``[1, maximum]``.

    Non-numeric, zero and missing values fall back to ``default``.
    """
    app = get_config().app
    default = default if default is not None else app.default_page_limit
    maximum = maximum if maximum is not None else app.max_page_limit

    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = 0
    if not value:
        value = default
    return min(max(value, 1), maximum)


def page_limit(limit: Optional[str] = Query(None)) -> int:
    """``?limit=`` query parameter passed through :func:`clamp_limit`."""
    return clamp_limit(limit)
