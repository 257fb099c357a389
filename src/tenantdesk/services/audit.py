"""Audit trail and activity stream emission.

Both helpers run after the main change has been committed and never raise:
a failed write is rolled back and logged.
"""

from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import ActivityEvent, AuditLog
from ..utils.logging_config import get_logger
from .serialization import json_safe

logger = get_logger(__name__)


def _impersonation_metadata(ctx) -> Dict[str, Any]:
    if ctx.impersonating and ctx.real_person_id:
        return {
            "impersonated_by": str(ctx.real_person_id),
            "impersonation_session_id": str(ctx.impersonation_session_id),
        }
    return {}


def _entity_ref(entity_id: Any) -> Optional[str]:
    return str(entity_id) if entity_id is not None else None


def _persist(db: Session, row, request_id: str, what: str) -> bool:
    try:
        db.add(row)
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[{request_id}] {what} emit failed: {e}")
        return False


def emit_audit(
    db: Session,
    ctx,
    action: str,
    entity_type: str,
    entity_id: Any = None,
    before: Any = None,
    after: Any = None,
) -> bool:
    """Write an ``audit_log`` row for a mutation made in ``ctx``."""
    row = AuditLog(
        account_id=ctx.account_id,
        person_id=ctx.person_id,
        request_id=ctx.request_id,
        action=action,
        entity_type=entity_type,
        entity_id=_entity_ref(entity_id),
        before_data=json_safe(before),
        after_data=json_safe(after),
        meta=_impersonation_metadata(ctx),
    )
    ok = _persist(db, row, ctx.request_id, "audit")
    if ok:
        tag = " [IMPERSONATED]" if ctx.impersonating else ""
        logger.info(f"[{ctx.request_id}] audit: {action} {entity_type} {entity_id}{tag}")
    return ok


def emit_activity(
    db: Session,
    ctx,
    event_type: str,
    summary: str,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> bool:
    """Write an ``activity_events`` row for the account in ``ctx``."""
    meta = dict(json_safe(metadata or {}))
    meta.update(_impersonation_metadata(ctx))
    row = ActivityEvent(
        account_id=ctx.account_id,
        person_id=ctx.person_id,
        request_id=ctx.request_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=_entity_ref(entity_id),
        summary=summary[:1000],
        meta=meta,
    )
    ok = _persist(db, row, ctx.request_id, "activity")
    if ok:
        tag = " [IMPERSONATED]" if ctx.impersonating else ""
        logger.info(f"[{ctx.request_id}] activity: {event_type} - {summary}{tag}")
    return ok


def record_auth_failure(
    db: Session, request_id: str, reason: str, user_agent: Optional[str]
) -> bool:
    """Persist a rejected bearer token for security monitoring."""
    row = AuditLog(
        account_id=None,
        person_id=None,
        request_id=request_id,
        action="auth.failed",
        entity_type="auth",
        entity_id=None,
        meta={
            "reason": reason,
            "user_agent": user_agent[:200] if user_agent else None,
        },
    )
    return _persist(db, row, request_id, "auth failure")
