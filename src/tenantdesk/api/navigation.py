"""Navigation, app definition and nav override endpoints."""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import page_limit, require_role, require_tenant
from ..core.enums import AccountRole
from ..db.database import get_db
from ..domain.navigation import compute_nav, effective_role, visible_overrides
from ..repositories.dependencies import get_repository_container
from ..repositories.interfaces import RepositoryContainer
from ..services.audit import emit_activity, emit_audit
from ..services.counts import adjust_count
from ..services.serialization import model_to_dict
from ..utils.logging_config import get_logger
from .middleware import ProblemDetailsException
from .schemas import (
    AppDefinitionCreate,
    AppDefinitionResponse,
    AppDefinitionUpdate,
    NavOverrideResponse,
    NavOverrideUpsert,
    ProblemDetails,
)

logger = get_logger("api")

router = APIRouter(tags=["navigation"])

ACCOUNT_ROLES = {r.value for r in AccountRole}


def _app_not_found(detail: str = "App definition not found") -> ProblemDetailsException:
    return ProblemDetailsException(
        status_code=status.HTTP_404_NOT_FOUND, title="App Not Found", detail=detail
    )


def _app_dict(app) -> Dict[str, Any]:
    return AppDefinitionResponse.model_validate(app).model_dump(mode="json")


@router.get(
    "/v1/nav",
    responses={200: {"description": "Visible apps and nav items for the caller"}},
)
async def get_nav(
    role: Optional[str] = Query(None, description="Preview as role (admins only)"),
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> Dict[str, Any]:
    """
    Compute the navigation of the tenant account for the caller's role.

    Admins and system staff may preview the navigation of another role with
    ``?role=``; for everyone else the parameter is ignored.
    """
    can_preview = ctx.account_role == "admin" or ctx.is_system_staff
    preview = None
    if role is not None and can_preview:
        if role not in ACCOUNT_ROLES:
            raise ProblemDetailsException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                title="Invalid Preview Role",
                detail=f"Unknown role: {role}",
            )
        preview = role
    nav_role = effective_role(ctx.account_role, preview)

    apps = await repos.app.list_for_account(ctx.account_id)
    if not apps:
        return {"nav_items": [], "apps": [], "role": nav_role}

    overrides = await repos.nav_override.list_for_account(ctx.account_id)
    result = compute_nav(
        [model_to_dict(a) for a in apps],
        nav_role,
        [model_to_dict(o) for o in overrides],
    )
    return {**result, "role": nav_role}


@router.get("/v1/apps", responses={200: {"description": "App definitions by name"}})
async def list_apps(
    include_inactive: bool = Query(False),
    limit: int = Depends(page_limit),
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> Dict[str, Any]:
    apps = await repos.app.list_for_account(
        ctx.account_id, include_inactive=include_inactive, limit=limit
    )
    return {"apps": [_app_dict(a) for a in apps]}


@router.get(
    "/v1/apps/by-slug/{slug}",
    response_model=AppDefinitionResponse,
    responses={404: {"model": ProblemDetails, "description": "No active app with slug"}},
)
async def get_app_by_slug(
    slug: str,
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> AppDefinitionResponse:
    app = await repos.app.get_by_slug(ctx.account_id, slug)
    if app is None or not app.is_active:
        raise _app_not_found(f"No active app with slug '{slug}'")
    return AppDefinitionResponse.model_validate(app)


@router.get(
    "/v1/apps/{app_id}",
    response_model=AppDefinitionResponse,
    responses={404: {"model": ProblemDetails, "description": "App not found"}},
)
async def get_app(
    app_id: UUID,
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> AppDefinitionResponse:
    app = await repos.app.get_by_id(ctx.account_id, app_id)
    if app is None:
        raise _app_not_found()
    return AppDefinitionResponse.model_validate(app)


async def _create_app(
    repos: RepositoryContainer, db: Session, ctx: RequestContext, **fields: Any
):
    try:
        app = await repos.app.create(ctx.account_id, **fields)
        if app.is_active:
            adjust_count(db, ctx.account_id, "apps", 1)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"[{ctx.request_id}] App slug conflict: {e.orig}")
        raise ProblemDetailsException(
            status_code=status.HTTP_409_CONFLICT,
            title="Conflict",
            detail=f"An app with slug '{fields.get('slug')}' already exists",
        )
    db.refresh(app)
    return app


@router.post(
    "/v1/apps",
    response_model=AppDefinitionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ProblemDetails, "description": "Admin role required"},
        409: {"model": ProblemDetails, "description": "Duplicate slug"},
    },
)
async def create_app(
    data: AppDefinitionCreate,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> AppDefinitionResponse:
    fields = data.model_dump()
    fields["nav_items"] = [
        {k: v for k, v in item.items() if v is not None} for item in fields["nav_items"]
    ]
    app = await _create_app(repos, db, ctx, **fields)

    emit_audit(db, ctx, "app.created", "app", app.id, after=model_to_dict(app))
    emit_activity(db, ctx, "app.created", f'Created app "{app.name}"', "app", app.id)
    return AppDefinitionResponse.model_validate(app)


@router.post(
    "/v1/apps/{app_id}/clone",
    response_model=AppDefinitionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ProblemDetails, "description": "Source app not found"},
        409: {"model": ProblemDetails, "description": "Clone already exists"},
    },
)
async def clone_app(
    app_id: UUID,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> AppDefinitionResponse:
    """Copy an app as an inactive draft with slug ``<slug>-custom``."""
    source = await repos.app.get_by_id(ctx.account_id, app_id)
    if source is None:
        raise _app_not_found("Source app not found")

    app = await _create_app(
        repos,
        db,
        ctx,
        slug=f"{source.slug}-custom",
        name=f"{source.name} (Custom)",
        description=source.description,
        icon=source.icon,
        min_role=source.min_role or "member",
        nav_items=list(source.nav_items or []),
        is_active=False,
    )

    emit_activity(
        db,
        ctx,
        "app.cloned",
        f'Cloned app "{source.name}" as "{app.name}"',
        "app",
        app.id,
    )
    emit_audit(
        db, ctx, "app.cloned", "app", app.id,
        before={"source_app_id": source.id}, after=model_to_dict(app),
    )
    return AppDefinitionResponse.model_validate(app)


@router.patch(
    "/v1/apps/{app_id}",
    response_model=AppDefinitionResponse,
    responses={
        400: {"model": ProblemDetails, "description": "No fields to update"},
        404: {"model": ProblemDetails, "description": "App not found"},
    },
)
async def update_app(
    app_id: UUID,
    update: AppDefinitionUpdate,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> AppDefinitionResponse:
    app = await repos.app.get_by_id(ctx.account_id, app_id)
    if app is None:
        raise _app_not_found()

    fields = {k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None}
    if not fields:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Bad Request",
            detail="No fields to update",
        )
    if "nav_items" in fields:
        # exclude_unset above also drops nested defaults such as route_type
        fields["nav_items"] = [item.model_dump(exclude_none=True) for item in update.nav_items]

    before = model_to_dict(app)
    was_active = app.is_active
    for key, value in fields.items():
        setattr(app, key, value)
    if was_active != app.is_active:
        adjust_count(db, ctx.account_id, "apps", 1 if app.is_active else -1)
    db.commit()
    db.refresh(app)

    emit_audit(db, ctx, "app.updated", "app", app.id, before=before, after=model_to_dict(app))
    emit_activity(
        db, ctx, "app.updated", f'Updated app "{app.name}"', "app", app.id,
        metadata={"fields": sorted(fields)},
    )
    return AppDefinitionResponse.model_validate(app)


@router.delete(
    "/v1/apps/{app_id}",
    responses={404: {"model": ProblemDetails, "description": "App not found"}},
)
async def deactivate_app(
    app_id: UUID,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Deactivate an app; it disappears from the computed navigation."""
    app = await repos.app.get_by_id(ctx.account_id, app_id)
    if app is None:
        raise _app_not_found()

    if app.is_active:
        app.is_active = False
        adjust_count(db, ctx.account_id, "apps", -1)
        db.commit()
        emit_audit(db, ctx, "app.deactivated", "app", app_id)
        emit_activity(db, ctx, "app.deactivated", f'Deactivated app "{app.name}"', "app", app_id)
    return {"success": True}


@router.get(
    "/v1/nav-overrides",
    responses={200: {"description": "Nav overrides the caller's role can see"}},
)
async def list_nav_overrides(
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> Dict[str, Any]:
    overrides = await repos.nav_override.list_for_account(ctx.account_id)
    dumped = [
        NavOverrideResponse.model_validate(o).model_dump(mode="json") for o in overrides
    ]
    return {"overrides": visible_overrides(dumped, ctx.account_role)}


@router.post(
    "/v1/nav-overrides",
    response_model=NavOverrideResponse,
    responses={403: {"model": ProblemDetails, "description": "Admin role required"}},
)
async def upsert_nav_override(
    data: NavOverrideUpsert,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> NavOverrideResponse:
    """Create or replace the override for ``nav_key`` in the tenant account."""
    fields = data.model_dump()
    nav_key = fields.pop("nav_key")
    override = await repos.nav_override.upsert(ctx.account_id, nav_key, **fields)
    db.commit()
    db.refresh(override)

    emit_audit(
        db, ctx, "nav_override.upserted", "nav_override", override.id,
        after=model_to_dict(override),
    )
    emit_activity(
        db, ctx, "nav_override.updated", f"Updated navigation item {nav_key}",
        "nav_override", override.id,
    )
    return NavOverrideResponse.model_validate(override)


@router.delete(
    "/v1/nav-overrides/{override_id}",
    responses={404: {"model": ProblemDetails, "description": "Override not found"}},
)
async def delete_nav_override(
    override_id: UUID,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    override = await repos.nav_override.get_by_id(ctx.account_id, override_id)
    if override is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Override Not Found",
            detail=f"Nav override {override_id} does not exist",
        )
    before = model_to_dict(override)
    await repos.nav_override.delete(override)
    db.commit()

    emit_audit(db, ctx, "nav_override.deleted", "nav_override", override_id, before=before)
    emit_activity(
        db, ctx, "nav_override.deleted", f"Removed navigation override {before['nav_key']}",
        "nav_override", override_id,
    )
    return {"success": True}
