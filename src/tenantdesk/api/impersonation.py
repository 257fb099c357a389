"""Impersonation session endpoints for system staff."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_auth
from ..config import get_config
from ..db.database import get_db
from ..db.models import Account, ImpersonationSession, Membership, Person
from ..services.audit import emit_activity, emit_audit
from ..utils.logging_config import get_logger
from .middleware import ProblemDetailsException
from .schemas import ImpersonationSessionResponse, ImpersonationStart, ProblemDetails

logger = get_logger("auth")

router = APIRouter(prefix="/v1/impersonation", tags=["impersonation"])


def require_staff_actor(ctx: RequestContext = Depends(require_auth)) -> UUID:
    """
    Person id of the system staff member behind the request.

    While impersonating, the context describes the target person; the real
    staff member is ``real_person_id``.
    """
    if ctx.impersonating and ctx.real_person_id is not None:
        return ctx.real_person_id
    if not ctx.is_system_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only system admins can impersonate users",
        )
    return ctx.person_id


def _session_payload(db: Session, session: ImpersonationSession) -> Dict[str, Any]:
    payload = ImpersonationSessionResponse.model_validate(session).model_dump(mode="json")
    person = db.query(Person).filter(Person.id == session.target_person_id).first()
    account = db.query(Account).filter(Account.id == session.target_account_id).first()
    payload["target_person"] = (
        {"id": str(person.id), "full_name": person.full_name, "email": person.email}
        if person
        else None
    )
    payload["target_account"] = (
        {"id": str(account.id), "display_name": account.display_name} if account else None
    )
    return payload


def _end(session: ImpersonationSession, now: datetime) -> None:
    session.status = "ended"
    session.ended_at = now


@router.get(
    "",
    responses={
        200: {"description": "Requested or current active session"},
        403: {"model": ProblemDetails, "description": "System staff only"},
        404: {"model": ProblemDetails, "description": "Session not found"},
    },
)
def get_impersonation(
    session_id: Optional[UUID] = Query(None),
    actor_id: UUID = Depends(require_staff_actor),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """A specific session of the caller, or their current active session."""
    query = db.query(ImpersonationSession).filter(
        ImpersonationSession.admin_person_id == actor_id
    )
    if session_id is not None:
        session = query.filter(ImpersonationSession.id == session_id).first()
        if session is None:
            raise ProblemDetailsException(
                status_code=status.HTTP_404_NOT_FOUND,
                title="Session Not Found",
                detail="Session not found",
            )
        return {"session": _session_payload(db, session)}

    session = (
        query.filter(
            ImpersonationSession.status == "active",
            ImpersonationSession.expires_at > datetime.now(timezone.utc),
        )
        .order_by(ImpersonationSession.started_at.desc())
        .first()
    )
    return {"session": _session_payload(db, session) if session else None}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Impersonation session started"},
        400: {"model": ProblemDetails, "description": "Cannot impersonate yourself"},
        404: {"model": ProblemDetails, "description": "Target is not an active member"},
    },
)
def start_impersonation(
    data: ImpersonationStart,
    actor_id: UUID = Depends(require_staff_actor),
    ctx: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Start acting as a member of an account.

    Any active session of the caller is ended first. The session expires
    after the configured impersonation TTL.
    """
    if data.target_person_id == actor_id:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Bad Request",
            detail="Cannot impersonate yourself",
        )

    membership = (
        db.query(Membership)
        .filter(
            Membership.person_id == data.target_person_id,
            Membership.account_id == data.target_account_id,
            Membership.status == "active",
        )
        .first()
    )
    if membership is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Target Not Found",
            detail="Target person is not an active member of the specified account",
        )

    now = datetime.now(timezone.utc)
    active = (
        db.query(ImpersonationSession)
        .filter(
            ImpersonationSession.admin_person_id == actor_id,
            ImpersonationSession.status == "active",
        )
        .all()
    )
    for previous in active:
        _end(previous, now)

    ttl = timedelta(minutes=get_config().app.impersonation_ttl_minutes)
    session = ImpersonationSession(
        admin_person_id=actor_id,
        target_person_id=data.target_person_id,
        target_account_id=data.target_account_id,
        target_account_role=membership.account_role,
        reason=data.reason,
        status="active",
        started_at=now,
        expires_at=now + ttl,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(
        f"[impersonate] {actor_id} started session {session.id} as "
        f"{session.target_person_id} in {session.target_account_id}"
    )

    emit_audit(
        db, ctx, "impersonation.started", "impersonation_session", session.id,
        after={
            "target_person_id": session.target_person_id,
            "target_account_id": session.target_account_id,
            "reason": session.reason,
        },
    )
    emit_activity(
        db,
        ctx,
        "impersonation.started",
        "Started impersonation session",
        entity_type="impersonation_session",
        entity_id=session.id,
    )
    return {"session": _session_payload(db, session)}


@router.delete(
    "",
    responses={
        200: {"description": "Session(s) ended"},
        404: {"model": ProblemDetails, "description": "Active session not found"},
    },
)
def end_impersonation(
    session_id: Optional[UUID] = Query(None),
    actor_id: UUID = Depends(require_staff_actor),
    ctx: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """End one active session of the caller, or all of them."""
    now = datetime.now(timezone.utc)
    query = db.query(ImpersonationSession).filter(
        ImpersonationSession.admin_person_id == actor_id,
        ImpersonationSession.status == "active",
    )

    if session_id is not None:
        session = query.filter(ImpersonationSession.id == session_id).first()
        if session is None:
            raise ProblemDetailsException(
                status_code=status.HTTP_404_NOT_FOUND,
                title="Session Not Found",
                detail="Active session not found",
            )
        _end(session, now)
        db.commit()
        emit_audit(db, ctx, "impersonation.ended", "impersonation_session", session_id)
        emit_activity(
            db,
            ctx,
            "impersonation.ended",
            "Ended impersonation session",
            entity_type="impersonation_session",
            entity_id=session_id,
        )
        logger.info(f"[impersonate] {actor_id} ended session {session_id}")
        return {"ended": True}

    sessions = query.all()
    for session in sessions:
        _end(session, now)
    db.commit()
    if sessions:
        emit_audit(
            db, ctx, "impersonation.ended", "impersonation_session",
            after={"count": len(sessions)},
        )
        emit_activity(
            db,
            ctx,
            "impersonation.ended",
            f"Ended {len(sessions)} impersonation session(s)",
            entity_type="impersonation_session",
            metadata={"count": len(sessions)},
        )
    logger.info(f"[impersonate] {actor_id} ended {len(sessions)} session(s)")
    return {"ended": True, "count": len(sessions)}
