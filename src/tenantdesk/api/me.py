"""Current-person API endpoint."""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload

from ..auth.context import RequestContext
from ..auth.dependencies import require_auth
from ..db.database import get_db
from ..db.models import Membership, Person, Profile
from .schemas import (
    AccountResponse,
    MembershipResponse,
    PersonResponse,
    ProblemDetails,
    ProfileResponse,
)

router = APIRouter(tags=["me"])


@router.get(
    "/v1/me",
    responses={
        200: {"description": "Current person with profile and memberships"},
        401: {"model": ProblemDetails, "description": "Authentication required"},
    },
)
def get_me(
    ctx: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Return the calling person, their profile and active memberships.

    While impersonating, this describes the impersonated person.
    """
    person = db.query(Person).filter(Person.id == ctx.person_id).first()
    profile = db.query(Profile).filter(Profile.person_id == ctx.person_id).first()
    memberships = (
        db.query(Membership)
        .options(joinedload(Membership.account))
        .filter(Membership.person_id == ctx.person_id, Membership.status == "active")
        .order_by(Membership.created_at.asc())
        .all()
    )

    return {
        "person": PersonResponse.model_validate(person).model_dump(mode="json"),
        "profile": (
            ProfileResponse.model_validate(profile).model_dump(mode="json")
            if profile
            else None
        ),
        "memberships": [
            {
                **MembershipResponse.model_validate(m).model_dump(mode="json"),
                "account": AccountResponse.model_validate(m.account).model_dump(
                    mode="json"
                ),
            }
            for m in memberships
        ],
        "context": {
            "account_id": str(ctx.account_id) if ctx.account_id else None,
            "account_node_id": str(ctx.account_node_id) if ctx.account_node_id else None,
            "account_role": ctx.account_role,
            "system_role": ctx.system_role,
            "impersonating": ctx.impersonating,
        },
    }
