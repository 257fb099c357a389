"""Tenant theme API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_role, require_tenant
from ..db.database import get_db
from ..db.models import TenantTheme
from ..domain.theme import (
    CUSTOM_PRESET,
    DEFAULT_PRESET,
    default_theme,
    render_theme_css,
    resolve_tokens,
    unknown_tokens,
)
from ..services.audit import emit_activity, emit_audit
from ..services.serialization import model_to_dict
from .middleware import ProblemDetailsException
from .schemas import ProblemDetails, ThemeResponse, ThemeUpdate

router = APIRouter(prefix="/v1/theme", tags=["theme"])


def _load(db: Session, ctx: RequestContext) -> Optional[TenantTheme]:
    return db.query(TenantTheme).filter(TenantTheme.account_id == ctx.account_id).first()


def _response(theme: Optional[TenantTheme]) -> ThemeResponse:
    data = default_theme()
    if theme is not None:
        data = {
            "preset": theme.preset,
            "logo_url": theme.logo_url,
            "tokens": theme.tokens or {},
            "dark_tokens": theme.dark_tokens or {},
        }
    return ThemeResponse(
        **data, resolved_tokens=resolve_tokens(data["preset"], data["tokens"])
    )


@router.get("", response_model=ThemeResponse)
def get_theme(
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> ThemeResponse:
    """Stored theme of the tenant account, or the default theme."""
    return _response(_load(db, ctx))


@router.post(
    "",
    response_model=ThemeResponse,
    responses={
        400: {"model": ProblemDetails, "description": "Unknown token names"},
        403: {"model": ProblemDetails, "description": "Admin role required"},
    },
)
def save_theme(
    data: ThemeUpdate,
    ctx: RequestContext = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> ThemeResponse:
    """
    Insert or replace the tenant theme.

    Without a ``preset`` a new theme uses ``clean`` and an updated one becomes
    ``custom``. Token maps replace the stored ones.
    """
    bad = unknown_tokens(data.tokens) + unknown_tokens(data.dark_tokens)
    if bad:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Invalid Theme Tokens",
            detail=f"Unknown theme token(s): {', '.join(sorted(set(bad)))}",
        )

    theme = _load(db, ctx)
    before = model_to_dict(theme) if theme else None
    if theme is None:
        theme = TenantTheme(
            account_id=ctx.account_id,
            preset=data.preset or DEFAULT_PRESET,
            logo_url=data.logo_url,
        )
        db.add(theme)
    else:
        theme.preset = data.preset or CUSTOM_PRESET
        if "logo_url" in data.model_fields_set:
            theme.logo_url = data.logo_url
    theme.tokens = data.tokens or {}
    theme.dark_tokens = data.dark_tokens or {}

    db.commit()
    db.refresh(theme)

    emit_audit(
        db, ctx, "theme.updated", "tenant_theme", theme.id,
        before=before, after=model_to_dict(theme),
    )
    emit_activity(db, ctx, "theme.updated", "Updated tenant theme", "tenant_theme", theme.id)
    return _response(theme)


@router.get("/css", response_class=Response)
def get_theme_css(
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Response:
    """Theme as a stylesheet of CSS custom properties."""
    theme = _response(_load(db, ctx))
    css = render_theme_css(
        theme.resolved_tokens, resolve_tokens(None, theme.dark_tokens)
    )
    return Response(content=css, media_type="text/css")
