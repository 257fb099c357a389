"""Tenant settings API endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_role, require_tenant
from ..db.database import get_db
from ..db.models import Account
from ..services.audit import emit_activity, emit_audit
from .schemas import ProblemDetails

router = APIRouter(prefix="/v1/settings", tags=["settings"])


@router.get("", responses={200: {"description": "Settings of the current account"}})
def get_settings(
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    account = db.query(Account).filter(Account.id == ctx.account_id).first()
    return (account.settings if account else None) or {}


@router.patch(
    "",
    responses={
        200: {"description": "Merged settings"},
        403: {"model": ProblemDetails, "description": "Admin role required"},
    },
)
def update_settings(
    changes: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Shallow-merge the request body into the account settings."""
    account = db.query(Account).filter(Account.id == ctx.account_id).one()
    before = dict(account.settings or {})
    account.settings = {**before, **changes}
    db.commit()
    db.refresh(account)

    emit_audit(
        db, ctx, "settings.updated", "account_settings", ctx.account_id,
        before=before, after=account.settings,
    )
    emit_activity(
        db, ctx, "settings.updated", "Updated tenant settings", "account", ctx.account_id
    )
    return account.settings
