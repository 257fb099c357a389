"""Activity stream and audit log read endpoints."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import page_limit, require_role, require_tenant
from ..db.database import get_db
from ..db.models import ActivityEvent, AuditLog
from .schemas import ActivityEventResponse, AuditLogResponse, ProblemDetails

router = APIRouter(tags=["activity"])


@router.get(
    "/v1/activity",
    responses={200: {"description": "Activity events, newest first"}},
)
def list_activity(
    event_type: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    limit: int = Depends(page_limit),
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Activity stream of the tenant account."""
    query = db.query(ActivityEvent).filter(ActivityEvent.account_id == ctx.account_id)
    if event_type:
        query = query.filter(ActivityEvent.event_type == event_type)
    if entity_type:
        query = query.filter(ActivityEvent.entity_type == entity_type)
    if entity_id:
        query = query.filter(ActivityEvent.entity_id == entity_id)

    events = query.order_by(ActivityEvent.created_at.desc()).limit(limit).all()
    return {
        "events": [
            ActivityEventResponse.model_validate(e).model_dump(mode="json") for e in events
        ]
    }


@router.get(
    "/v1/audit-log",
    responses={
        200: {"description": "Audit entries, newest first"},
        403: {"model": ProblemDetails, "description": "Admin role required"},
    },
)
def list_audit_log(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Depends(page_limit),
    ctx: RequestContext = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Audit trail of the tenant account. Admins only."""
    query = db.query(AuditLog).filter(AuditLog.account_id == ctx.account_id)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)

    entries = query.order_by(AuditLog.created_at.desc()).limit(limit).all()
    return {
        "entries": [
            AuditLogResponse.model_validate(e).model_dump(mode="json") for e in entries
        ]
    }
