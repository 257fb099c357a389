"""Administrative endpoints: system health and per-account admin counters."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_role, require_system_staff
from ..db.database import get_db
from ..db.models import ErrorEvent, ImpersonationSession
from ..services.counts import get_counts, recalc_all_counts
from .schemas import ErrorEventResponse, ProblemDetails

router = APIRouter(tags=["admin"])

RECENT_ERRORS_LIMIT = 50


@router.get(
    "/v1/system-health",
    responses={
        200: {"description": "Recent errors and platform counters"},
        403: {"model": ProblemDetails, "description": "System staff only"},
    },
)
def get_system_health(
    hours: int = Query(24, ge=1, le=24 * 90),
    ctx: RequestContext = Depends(require_system_staff),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Error events of the last ``hours`` hours, newest first (at most 50),
    plus counts per error code and the number of active impersonation
    sessions.
    """
    since = datetime.now(timezone.utc) - timedelta(hours=hours)

    recent = (
        db.query(ErrorEvent)
        .filter(ErrorEvent.created_at >= since)
        .order_by(ErrorEvent.created_at.desc())
        .limit(RECENT_ERRORS_LIMIT)
        .all()
    )
    by_code = (
        db.query(ErrorEvent.error_code, func.count(ErrorEvent.id))
        .filter(ErrorEvent.created_at >= since)
        .group_by(ErrorEvent.error_code)
        .all()
    )
    active_sessions = (
        db.query(func.count(ImpersonationSession.id))
        .filter(
            ImpersonationSession.status == "active",
            ImpersonationSession.expires_at > datetime.now(timezone.utc),
        )
        .scalar()
    )

    return {
        "hours": hours,
        "recent_errors": [
            ErrorEventResponse.model_validate(e).model_dump(mode="json") for e in recent
        ],
        "error_counts": {code: count for code, count in by_code},
        "active_impersonation_sessions": active_sessions or 0,
    }


@router.get(
    "/v1/admin-counts",
    responses={
        200: {"description": "Counter values keyed by counter name"},
        403: {"model": ProblemDetails, "description": "Admin role required"},
    },
)
def get_admin_counts(
    ctx: RequestContext = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    return get_counts(db, ctx.account_id)


@router.post(
    "/v1/admin-counts/recalculate",
    responses={200: {"description": "Recomputed counter values"}},
)
def recalculate_admin_counts(
    ctx: RequestContext = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> Dict[str, int]:
    """Recompute every counter of the tenant account from the source tables."""
    counts = recalc_all_counts(db, ctx.account_id)
    db.commit()
    return counts
