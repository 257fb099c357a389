"""Membership management API endpoints."""

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_role, require_tenant
from ..db.database import get_db
from ..db.models import Membership, Person
from ..repositories.dependencies import get_repository_container
from ..repositories.interfaces import RepositoryContainer
from ..services.audit import emit_activity, emit_audit
from ..services.counts import adjust_count
from ..services.serialization import model_to_dict
from .middleware import ProblemDetailsException
from .schemas import (
    MembershipCreate,
    MembershipResponse,
    MembershipUpdate,
    PersonResponse,
    ProblemDetails,
)

router = APIRouter(prefix="/v1/memberships", tags=["memberships"])


def _counts_as_member(membership: Membership) -> bool:
    return membership.status == "active" and not membership.is_test_data


async def _get_in_tenant(
    repos: RepositoryContainer, ctx: RequestContext, membership_id: UUID
) -> Membership:
    membership = await repos.membership.get_by_id(membership_id)
    if membership is None or membership.account_id != ctx.account_id:
        raise ProblemDetailsException(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Membership Not Found",
            detail=f"Membership with ID {membership_id} does not exist",
        )
    return membership


@router.get(
    "",
    responses={200: {"description": "Memberships of the current account"}},
)
async def list_memberships(
    include_inactive: bool = Query(False),
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List memberships of the tenant account with the person attached."""
    memberships = await repos.membership.list_for_account(
        ctx.account_id, include_inactive=include_inactive and ctx.account_role == "admin"
    )
    person_ids = [m.person_id for m in memberships]
    persons = (
        {p.id: p for p in db.query(Person).filter(Person.id.in_(person_ids)).all()}
        if person_ids
        else {}
    )

    return {
        "memberships": [
            {
                **MembershipResponse.model_validate(m).model_dump(mode="json"),
                "person": (
                    PersonResponse.model_validate(persons[m.person_id]).model_dump(mode="json")
                    if m.person_id in persons
                    else None
                ),
            }
            for m in memberships
        ]
    }


@router.post(
    "",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ProblemDetails, "description": "Admin role required"},
        404: {"model": ProblemDetails, "description": "Person not found"},
        409: {"model": ProblemDetails, "description": "Already a member"},
    },
)
async def create_membership(
    data: MembershipCreate,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> MembershipResponse:
    """Add an existing person to the tenant account."""
    if db.query(Person).filter(Person.id == data.person_id).first() is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Person Not Found",
            detail=f"Person with ID {data.person_id} does not exist",
        )
    if await repos.membership.get(data.person_id, ctx.account_id) is not None:
        raise ProblemDetailsException(
            status_code=status.HTTP_409_CONFLICT,
            title="Conflict",
            detail="Person is already a member of this account",
        )

    membership = await repos.membership.create(
        person_id=data.person_id,
        account_id=ctx.account_id,
        account_role=data.account_role,
        status=data.status,
        scope=data.scope,
        is_test_data=data.is_test_data,
    )
    if _counts_as_member(membership):
        adjust_count(db, ctx.account_id, "members", 1)
    db.commit()
    db.refresh(membership)

    emit_audit(
        db, ctx, "membership.created", "membership", membership.id,
        after=model_to_dict(membership),
    )
    emit_activity(
        db,
        ctx,
        "membership.created",
        f"Added member with role {membership.account_role}",
        entity_type="membership",
        entity_id=membership.id,
    )
    return MembershipResponse.model_validate(membership)


@router.patch(
    "/{membership_id}",
    response_model=MembershipResponse,
    responses={
        403: {"model": ProblemDetails, "description": "Admin role required"},
        404: {"model": ProblemDetails, "description": "Membership not found"},
    },
)
async def update_membership(
    membership_id: UUID,
    update: MembershipUpdate,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> MembershipResponse:
    """Change a membership's role, status or scope."""
    membership = await _get_in_tenant(repos, ctx, membership_id)
    before = model_to_dict(membership)
    was_counted = _counts_as_member(membership)

    for key, value in update.model_dump(exclude_unset=True).items():
        if value is not None or key == "scope":
            setattr(membership, key, value)

    now_counted = _counts_as_member(membership)
    if was_counted != now_counted:
        adjust_count(db, ctx.account_id, "members", 1 if now_counted else -1)
    db.commit()
    db.refresh(membership)

    emit_audit(
        db, ctx, "membership.updated", "membership", membership.id,
        before=before, after=model_to_dict(membership),
    )
    emit_activity(
        db,
        ctx,
        "membership.updated",
        "Updated membership",
        entity_type="membership",
        entity_id=membership.id,
        metadata={"account_role": membership.account_role, "status": membership.status},
    )
    return MembershipResponse.model_validate(membership)


@router.delete(
    "/{membership_id}",
    responses={
        200: {"description": "Membership removed"},
        400: {"model": ProblemDetails, "description": "Cannot remove own membership"},
        404: {"model": ProblemDetails, "description": "Membership not found"},
    },
)
async def delete_membership(
    membership_id: UUID,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Remove a person from the tenant account."""
    membership = await _get_in_tenant(repos, ctx, membership_id)
    if membership.person_id == ctx.person_id:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Bad Request",
            detail="You cannot remove your own membership",
        )

    before = model_to_dict(membership)
    if _counts_as_member(membership):
        adjust_count(db, ctx.account_id, "members", -1)
    await repos.membership.delete(membership)
    db.commit()

    emit_audit(db, ctx, "membership.deleted", "membership", membership_id, before=before)
    emit_activity(
        db,
        ctx,
        "membership.deleted",
        "Removed a member",
        entity_type="membership",
        entity_id=membership_id,
    )
    return {"success": True}
