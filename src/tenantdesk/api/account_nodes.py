"""Account hierarchy navigation endpoints."""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..auth.context import RequestContext
from ..auth.dependencies import require_auth, require_tenant
from ..domain.hierarchy import accessible_accounts, build_account_tree
from ..repositories.dependencies import get_repository_container
from ..repositories.interfaces import RepositoryContainer
from ..services.serialization import model_to_dict
from .middleware import ProblemDetailsException
from .schemas import AccountResponse, ProblemDetails

router = APIRouter(prefix="/v1/account-nodes", tags=["account-nodes"])

NODE_COLUMNS = (
    "id",
    "display_name",
    "account_type",
    "status",
    "slug",
    "parent_account_id",
)


def _node(account) -> Dict[str, Any]:
    return model_to_dict(account, columns=NODE_COLUMNS)


@router.get(
    "",
    responses={
        200: {"description": "Node with its ancestors and children"},
        403: {"model": ProblemDetails, "description": "Tenant context required"},
        404: {"model": ProblemDetails, "description": "Node not found"},
    },
)
async def get_account_node(
    node_id: Optional[UUID] = Query(None),
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> Dict[str, Any]:
    """
    Describe one node of the tenant's account tree.

    ``node_id`` defaults to the request's account node. A node outside the
    tenant subtree falls back to the tenant account. Ancestors are ordered
    nearest first; children by display name.
    """
    target = node_id or ctx.account_node_id or ctx.account_id
    if target != ctx.account_id and not await repos.account.is_descendant(
        ctx.account_id, target
    ):
        target = ctx.account_id

    node = await repos.account.get_by_id(target)
    if node is None:
        raise ProblemDetailsException(
            status_code=404, title="Node Not Found", detail=f"Account {target} not found"
        )

    ancestors = await repos.account.get_ancestors(target)
    children = await repos.account.get_children(target)
    return {
        "node": _node(node),
        "ancestors": [_node(a) for a in ancestors],
        "children": [_node(c) for c in children],
    }


@router.get(
    "/tree",
    responses={200: {"description": "Nested subtree of the current account node"}},
)
async def get_account_tree(
    ctx: RequestContext = Depends(require_tenant),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> Dict[str, Any]:
    """Nested tree rooted at the request's account node."""
    root_id = ctx.account_node_id or ctx.account_id
    subtree = await repos.account.get_subtree(root_id)
    roots = build_account_tree([_node(a) for a in subtree], root_id=str(root_id))
    return {"tree": roots[0] if roots else None}


@router.get(
    "/accessible",
    responses={200: {"description": "Accounts the caller may act on"}},
)
async def get_accessible_accounts(
    ctx: RequestContext = Depends(require_auth),
    repos: RepositoryContainer = Depends(get_repository_container),
) -> Dict[str, Any]:
    """
    Accounts the caller may act on, each with the role that applies.

    A membership grants its role on the account and every descendant. System
    staff get every active account as admin.
    """
    if ctx.is_system_staff:
        accounts = await repos.account.list_all()
        roles = {a.id: "admin" for a in accounts}
    else:
        memberships = await repos.membership.list_active_for_person(ctx.person_id)
        paths = await repos.account.get_subtree_paths([m.account_id for m in memberships])
        roles = accessible_accounts(
            [(m.account_id, m.account_role) for m in memberships], paths
        )
        accounts = await repos.account.list_by_ids(list(roles))

    return {
        "accounts": [
            {
                **AccountResponse.model_validate(a).model_dump(mode="json"),
                "account_role": roles[a.id],
            }
            for a in accounts
        ]
    }
