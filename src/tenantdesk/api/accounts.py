"""Account management API endpoints."""

from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_auth, require_role, require_tenant
from ..core.roles import is_system_staff
from ..db.database import get_db
from ..domain.hierarchy import HierarchyError, accessible_accounts
from ..repositories.dependencies import get_repository_container
from ..repositories.interfaces import RepositoryContainer
from ..services.audit import emit_activity, emit_audit
from ..services.counts import adjust_count
from ..services.serialization import model_to_dict
from ..utils.logging_config import get_logger
from .middleware import ProblemDetailsException
from .schemas import (
    AccountCreate,
    AccountMove,
    AccountResponse,
    AccountUpdate,
    ProblemDetails,
)

logger = get_logger("api")

router = APIRouter(prefix="/v1/accounts", tags=["accounts"])

STAFF_LIST_LIMIT = 100


def _not_found(account_id: UUID) -> ProblemDetailsException:
    return ProblemDetailsException(
        status_code=status.HTTP_404_NOT_FOUND,
        title="Account Not Found",
        detail=f"Account with ID {account_id} does not exist",
    )


def _not_accessible() -> ProblemDetailsException:
    return ProblemDetailsException(
        status_code=status.HTTP_403_FORBIDDEN,
        title="Forbidden",
        detail="Account is not accessible from the current tenant",
    )


async def _load_in_tenant(repos: RepositoryContainer, ctx: RequestContext, account_id: UUID):
    """Account ``account_id`` if the caller's tenant reaches it."""
    if not ctx.is_system_staff and not await repos.account.is_descendant(
        ctx.account_id, account_id
    ):
        raise _not_accessible()

    account = await repos.account.get_by_id(account_id)
    if account is None:
        raise _not_found(account_id)
    return account


def _conflict(what: str) -> ProblemDetailsException:
    return ProblemDetailsException(
        status_code=status.HTTP_409_CONFLICT,
        title="Conflict",
        detail=f"{what} conflicts with an existing account (duplicate slug?)",
    )


def _commit_or_conflict(db: Session, what: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"{what} conflict: {e.orig}")
        raise _conflict(what)


@router.get(
    "",
    responses={200: {"description": "Accounts visible to the caller"}},
)
async def list_accounts(
    include_inactive: bool = Query(False),
    ctx: RequestContext = Depends(require_auth),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> Dict[str, Any]:
    """
    List accounts.

    System staff see every account (newest first, at most 100). Everyone else
    sees the accounts they hold an active membership in; inactive accounts
    are included only for tenant admins.
    """
    if ctx.is_system_staff:
        accounts = await repos.account.list_all(
            include_inactive=include_inactive, limit=STAFF_LIST_LIMIT
        )
    else:
        memberships = await repos.membership.list_active_for_person(ctx.person_id)
        accounts = await repos.account.list_by_ids(
            [m.account_id for m in memberships],
            include_inactive=include_inactive and ctx.account_role == "admin",
        )

    return {
        "accounts": [
            AccountResponse.model_validate(a).model_dump(mode="json") for a in accounts
        ]
    }


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    responses={
        403: {"model": ProblemDetails, "description": "Account outside the tenant"},
        404: {"model": ProblemDetails, "description": "Account not found"},
    },
)
async def get_account(
    account_id: UUID,
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> AccountResponse:
    """Get one account. It must be the tenant account or inside its subtree."""
    account = await _load_in_tenant(repos, ctx, account_id)
    return AccountResponse.model_validate(account)


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Account created"},
        403: {"model": ProblemDetails, "description": "Parent not reachable"},
        404: {"model": ProblemDetails, "description": "Parent not found"},
        409: {"model": ProblemDetails, "description": "Duplicate slug"},
    },
)
async def create_account(
    account_data: AccountCreate,
    ctx: RequestContext = Depends(require_auth),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> AccountResponse:
    """
    Create an account, optionally under a parent.

    The parent must be one of the accounts the caller may act on. The creator
    becomes an admin of the new account.
    """
    parent_id = account_data.parent_account_id
    if parent_id is not None:
        if not is_system_staff(ctx.system_role):
            memberships = await repos.membership.list_active_for_person(ctx.person_id)
            paths = await repos.account.get_subtree_paths([m.account_id for m in memberships])
            reachable = accessible_accounts(
                [(m.account_id, m.account_role) for m in memberships], paths
            )
            if parent_id not in reachable:
                raise ProblemDetailsException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    title="Forbidden",
                    detail="Parent account is not reachable by the caller",
                )
        if await repos.account.get_by_id(parent_id) is None:
            raise _not_found(parent_id)

    try:
        account = await repos.account.create(
            display_name=account_data.display_name,
            account_type=account_data.account_type,
            parent_account_id=parent_id,
            slug=account_data.slug,
            settings=account_data.settings,
            metadata=account_data.metadata,
        )
        await repos.membership.create(
            person_id=ctx.person_id, account_id=account.id, account_role="admin"
        )
        adjust_count(db, account.id, "members", 1)
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Account creation conflict: {e.orig}")
        raise _conflict("Account creation")
    _commit_or_conflict(db, "Account creation")
    db.refresh(account)

    emit_audit(db, ctx, "account.created", "account", account.id, after=model_to_dict(account))
    emit_activity(
        db,
        ctx,
        "account.created",
        f"Created account {account.display_name}",
        entity_type="account",
        entity_id=account.id,
    )
    return AccountResponse.model_validate(account)


@router.patch(
    "/{account_id}",
    response_model=AccountResponse,
    responses={
        403: {"model": ProblemDetails, "description": "Admin role required"},
        404: {"model": ProblemDetails, "description": "Account not found"},
        409: {"model": ProblemDetails, "description": "Duplicate slug"},
    },
)
async def update_account(
    account_id: UUID,
    update: AccountUpdate,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> AccountResponse:
    """Update an account. ``metadata`` is merged into the stored metadata."""
    account = await _load_in_tenant(repos, ctx, account_id)
    before = model_to_dict(account)

    fields = update.model_dump(exclude_unset=True)
    if "display_name" in fields and fields["display_name"] is not None:
        account.display_name = fields["display_name"]
    if "slug" in fields:
        account.slug = fields["slug"]
    if fields.get("settings") is not None:
        account.settings = fields["settings"]
    if fields.get("status") is not None:
        account.status = fields["status"]
        account.is_active = fields["status"] != "archived"
    if fields.get("metadata") is not None:
        account.meta = {**(account.meta or {}), **fields["metadata"]}

    _commit_or_conflict(db, "Account update")
    db.refresh(account)

    emit_audit(
        db, ctx, "account.updated", "account", account.id,
        before=before, after=model_to_dict(account),
    )
    emit_activity(
        db,
        ctx,
        "account.updated",
        f"Updated account {account.display_name}",
        entity_type="account",
        entity_id=account.id,
        metadata={"fields": sorted(fields)},
    )
    return AccountResponse.model_validate(account)


@router.post(
    "/{account_id}/move",
    response_model=AccountResponse,
    responses={
        400: {"model": ProblemDetails, "description": "Move would create a cycle"},
        403: {"model": ProblemDetails, "description": "Outside the tenant subtree"},
        404: {"model": ProblemDetails, "description": "Account not found"},
    },
)
async def move_account(
    account_id: UUID,
    move: AccountMove,
    ctx: RequestContext = Depends(require_role("admin")),
    repos: RepositoryContainer = Depends(get_repository_container),
    db: Session = Depends(get_db),
) -> AccountResponse:
    """
    Reparent an account together with its subtree.

    Tenant admins can only move accounts below their tenant account to a new
    parent inside the same subtree. System staff can move anything, including
    to the root (``parent_account_id: null``).
    """
    new_parent_id = move.parent_account_id

    if not ctx.is_system_staff:
        if account_id == ctx.account_id:
            raise ProblemDetailsException(
                status_code=status.HTTP_403_FORBIDDEN,
                title="Forbidden",
                detail="The tenant account itself cannot be moved",
            )
        if new_parent_id is None or not await repos.account.is_descendant(
            ctx.account_id, new_parent_id
        ):
            raise _not_accessible()

    account = await _load_in_tenant(repos, ctx, account_id)
    if new_parent_id is not None and await repos.account.get_by_id(new_parent_id) is None:
        raise _not_found(new_parent_id)

    old_parent_id = account.parent_account_id
    try:
        account = await repos.account.move(account_id, new_parent_id)
    except HierarchyError as e:
        db.rollback()
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Invalid Move",
            detail=str(e),
        )
    db.commit()
    db.refresh(account)

    emit_audit(
        db, ctx, "account.moved", "account", account.id,
        before={"parent_account_id": old_parent_id},
        after={"parent_account_id": new_parent_id},
    )
    emit_activity(
        db,
        ctx,
        "account.moved",
        f"Moved account {account.display_name}",
        entity_type="account",
        entity_id=account.id,
    )
    return AccountResponse.model_validate(account)
