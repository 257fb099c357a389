"""Per-request caller context: who is calling, for which tenant, with what role."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..core.roles import is_system_staff
from ..db.database import get_db
from ..db.models import (
    Account,
    AccountPath,
    ImpersonationSession,
    Membership,
    Person,
    Profile,
)
from ..services.audit import record_auth_failure
from ..utils.logging_config import get_logger
from .jwt_auth import get_jwt_manager
from .security import extract_bearer_token, validate_bearer_token_format

logger = get_logger("auth")

REQUEST_ID_HEADER = "X-Request-Id"
ACCOUNT_HEADER = "X-Account-Id"
ACCOUNT_NODE_HEADER = "X-Account-Node-Id"
IMPERSONATION_HEADER = "X-Impersonate-Session-Id"


@dataclass
class RequestContext:
    """Resolved identity and tenant of a request."""

    request_id: str
    person_id: Optional[UUID] = None
    account_id: Optional[UUID] = None
    account_node_id: Optional[UUID] = None
    account_role: Optional[str] = None
    system_role: Optional[str] = None
    auth_subject: Optional[str] = None
    impersonating: bool = False
    real_person_id: Optional[UUID] = None
    impersonation_session_id: Optional[UUID] = None

    @property
    def is_authenticated(self) -> bool:
        return self.person_id is not None

    @property
    def is_system_staff(self) -> bool:
        return is_system_staff(self.system_role)


@dataclass
class _AuthResult:
    person_id: Optional[UUID] = None
    system_role: Optional[str] = None
    auth_subject: Optional[str] = None


def _parse_uuid(raw: Optional[str]) -> Optional[UUID]:
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


def get_request_id(request: Request) -> str:
    """Request id set by the request id middleware, else the header, else a new one."""
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return request.headers.get(REQUEST_ID_HEADER) or str(uuid4())


def resolve_auth(request: Request, db: Session, request_id: str) -> _AuthResult:
    """Authenticate the bearer token; an invalid token yields an anonymous result."""
    token = extract_bearer_token(request.headers.get("authorization"))
    if token is None:
        return _AuthResult()

    try:
        validate_bearer_token_format(token)
        person_id = get_jwt_manager().extract_person_id(token)
    except HTTPException as exc:
        logger.warning(f"[{request_id}] Token verification failed: {exc.detail}")
        record_auth_failure(db, request_id, str(exc.detail), request.headers.get("user-agent"))
        return _AuthResult()

    subject = str(person_id)
    person = (
        db.query(Person)
        .filter(Person.id == person_id, Person.is_active.is_(True))
        .first()
    )
    if person is None:
        logger.warning(f"[{request_id}] No active person found for token subject {subject}")
        return _AuthResult(auth_subject=subject)

    profile = db.query(Profile).filter(Profile.person_id == person.id).first()
    return _AuthResult(
        person_id=person.id,
        system_role=profile.system_role if profile else None,
        auth_subject=subject,
    )


def resolve_impersonation(
    request: Request, db: Session, auth: _AuthResult
) -> Optional[ImpersonationSession]:
    """Active impersonation session named by the request, if the caller may use it."""
    raw = request.headers.get(IMPERSONATION_HEADER)
    if not raw or auth.person_id is None:
        return None

    if not is_system_staff(auth.system_role):
        logger.warning(f"[impersonate] Non-staff {auth.person_id} attempted impersonation")
        return None

    session_id = _parse_uuid(raw)
    session = None
    if session_id is not None:
        session = (
            db.query(ImpersonationSession)
            .filter(
                ImpersonationSession.id == session_id,
                ImpersonationSession.admin_person_id == auth.person_id,
                ImpersonationSession.status == "active",
            )
            .first()
        )
    if session is None:
        logger.warning(f"[impersonate] Session {raw} not found or not active")
        return None

    if session.expires_at < datetime.now(timezone.utc):
        session.status = "expired"
        db.commit()
        logger.warning(f"[impersonate] Session {session.id} expired")
        return None

    logger.info(
        f"[impersonate] {auth.person_id} acting as {session.target_person_id} "
        f"in {session.target_account_id}"
    )
    return session


def resolve_tenant(
    request: Request,
    db: Session,
    person_id: Optional[UUID],
    system_role: Optional[str],
):
    """Return ``(account_id, account_role)`` for the request."""
    if person_id is None:
        return None, None

    raw = request.headers.get(ACCOUNT_HEADER) or request.query_params.get("account_id")

    if not raw:
        membership = (
            db.query(Membership)
            .filter(Membership.person_id == person_id, Membership.status == "active")
            .order_by(Membership.created_at.asc())
            .first()
        )
        if membership is not None:
            return membership.account_id, membership.account_role
        return None, None

    account_id = _parse_uuid(raw)
    if account_id is None:
        return None, None

    membership = (
        db.query(Membership)
        .filter(
            Membership.person_id == person_id,
            Membership.account_id == account_id,
            Membership.status == "active",
        )
        .first()
    )
    if membership is not None:
        return account_id, membership.account_role

    # System staff can act in any existing account without a membership
    if is_system_staff(system_role):
        if db.query(Account.id).filter(Account.id == account_id).first() is None:
            logger.info(f"Staff {person_id} selected unknown account {account_id}")
            return None, None
        return account_id, "admin"

    return None, None


def resolve_account_node(
    request: Request, db: Session, account_id: Optional[UUID]
) -> Optional[UUID]:
    """Requested account node when it lies in the tenant subtree, else the tenant."""
    if account_id is None:
        return None

    raw = request.headers.get(ACCOUNT_NODE_HEADER) or request.query_params.get(
        "account_node_id"
    )
    node_id = _parse_uuid(raw)
    if node_id is None or node_id == account_id:
        return account_id

    path = (
        db.query(AccountPath)
        .filter(AccountPath.ancestor_id == account_id, AccountPath.descendant_id == node_id)
        .first()
    )
    return node_id if path is not None else account_id


def get_request_context(request: Request, db: Session = Depends(get_db)) -> RequestContext:
    """FastAPI dependency resolving the :class:`RequestContext` of a request."""
    request_id = get_request_id(request)
    auth = resolve_auth(request, db, request_id)

    session = resolve_impersonation(request, db, auth)
    if session is not None:
        ctx = RequestContext(
            request_id=request_id,
            person_id=session.target_person_id,
            account_id=session.target_account_id,
            account_node_id=session.target_account_id,
            account_role=session.target_account_role,
            system_role=None,
            auth_subject=auth.auth_subject,
            impersonating=True,
            real_person_id=auth.person_id,
            impersonation_session_id=session.id,
        )
    else:
        account_id, account_role = resolve_tenant(
            request, db, auth.person_id, auth.system_role
        )
        ctx = RequestContext(
            request_id=request_id,
            person_id=auth.person_id,
            account_id=account_id,
            account_node_id=resolve_account_node(request, db, account_id),
            account_role=account_role,
            system_role=auth.system_role,
            auth_subject=auth.auth_subject,
        )

    request.state.context = ctx
    return ctx
