"""Person management API endpoints."""

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_role, require_tenant
from ..db.database import get_db
from ..db.models import Membership, Person, Profile
from ..services.audit import emit_activity, emit_audit
from ..services.counts import adjust_count
from ..services.serialization import model_to_dict
from .middleware import ProblemDetailsException
from .schemas import (
    MembershipResponse,
    PersonCreate,
    PersonResponse,
    PersonUpdate,
    ProblemDetails,
    ProfileResponse,
)

router = APIRouter(prefix="/v1/persons", tags=["persons"])

SECRET_COLUMNS = ("password_hash", "password_salt")


def _person_payload(person: Person, membership: Membership) -> Dict[str, Any]:
    return {
        **PersonResponse.model_validate(person).model_dump(mode="json"),
        "profile": (
            ProfileResponse.model_validate(person.profile).model_dump(mode="json")
            if person.profile
            else None
        ),
        "membership": MembershipResponse.model_validate(membership).model_dump(mode="json"),
    }


def _member_or_404(db: Session, ctx: RequestContext, person_id: UUID):
    row = (
        db.query(Person, Membership)
        .join(Membership, Membership.person_id == Person.id)
        .filter(Person.id == person_id, Membership.account_id == ctx.account_id)
        .first()
    )
    if row is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Person Not Found",
            detail="Person is not a member of this account",
        )
    return row


@router.get(
    "",
    responses={200: {"description": "Members of the current account"}},
)
def list_persons(
    include_inactive: bool = Query(False),
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    List persons who are members of the tenant account.

    Each entry carries the person's profile and membership. Inactive persons
    and memberships are only listed for admins asking for them.
    """
    query = (
        db.query(Person, Membership)
        .join(Membership, Membership.person_id == Person.id)
        .filter(Membership.account_id == ctx.account_id)
    )
    if not (include_inactive and ctx.account_role == "admin"):
        query = query.filter(Membership.status == "active", Person.is_active.is_(True))

    rows = query.order_by(Person.full_name.asc()).all()
    return {"persons": [_person_payload(p, m) for p, m in rows]}


@router.get(
    "/{person_id}",
    responses={
        200: {"description": "Person with profile and membership"},
        404: {"model": ProblemDetails, "description": "Not a member of this account"},
    },
)
def get_person(
    person_id: UUID,
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Get one member of the tenant account."""
    person, membership = _member_or_404(db, ctx, person_id)
    return _person_payload(person, membership)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Person created and added to the account"},
        403: {"model": ProblemDetails, "description": "Admin role required"},
        409: {"model": ProblemDetails, "description": "Email already registered"},
    },
)
def create_person(
    data: PersonCreate,
    ctx: RequestContext = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create a person with a profile and a membership in the tenant account."""
    email = data.email.strip().lower()
    if db.query(Person).filter(func.lower(Person.email) == email).first() is not None:
        raise ProblemDetailsException(
            status_code=status.HTTP_409_CONFLICT,
            title="Conflict",
            detail=f"A person with email {email} already exists",
        )

    person = Person(email=email, full_name=data.full_name, meta=data.metadata)
    if data.password:
        person.set_password(data.password)
    db.add(person)
    db.flush()

    db.add(Profile(person_id=person.id, display_name=data.full_name, system_role="user"))
    membership = Membership(
        person_id=person.id, account_id=ctx.account_id, account_role=data.account_role
    )
    db.add(membership)
    adjust_count(db, ctx.account_id, "members", 1)
    db.commit()
    db.refresh(person)
    db.refresh(membership)

    emit_audit(
        db, ctx, "person.created", "person", person.id,
        after=model_to_dict(person, exclude=SECRET_COLUMNS),
    )
    emit_activity(
        db,
        ctx,
        "person.created",
        f"Added {person.full_name}",
        entity_type="person",
        entity_id=person.id,
    )
    return _person_payload(person, membership)


@router.patch(
    "/{person_id}",
    responses={
        200: {"description": "Person updated"},
        403: {"model": ProblemDetails, "description": "Admin role required"},
        404: {"model": ProblemDetails, "description": "Not a member of this account"},
    },
)
def update_person(
    person_id: UUID,
    update: PersonUpdate,
    ctx: RequestContext = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Update a member's name or active flag; ``metadata`` is merged."""
    person, membership = _member_or_404(db, ctx, person_id)
    before = model_to_dict(person, exclude=SECRET_COLUMNS)

    fields = update.model_dump(exclude_unset=True)
    if fields.get("full_name") is not None:
        person.full_name = fields["full_name"]
    if fields.get("is_active") is not None:
        person.is_active = fields["is_active"]
    if fields.get("metadata") is not None:
        person.meta = {**(person.meta or {}), **fields["metadata"]}

    db.commit()
    db.refresh(person)

    emit_audit(
        db, ctx, "person.updated", "person", person.id,
        before=before, after=model_to_dict(person, exclude=SECRET_COLUMNS),
    )
    emit_activity(
        db, ctx, "person.updated", f"Updated {person.full_name}", "person", person.id
    )
    return _person_payload(person, membership)
