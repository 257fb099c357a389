"""Role ranking and role checks shared by the API and the domain layer."""

from typing import Iterable, Optional, Protocol

from .enums import AccountRole, SystemRole

ROLE_RANK = {
    AccountRole.PORTAL.value: 0,
    AccountRole.MEMBER.value: 1,
    AccountRole.OPERATOR.value: 2,
    AccountRole.ADMIN.value: 3,
}

SYSTEM_STAFF_ROLES = frozenset(
    {SystemRole.SYSTEM_ADMIN.value, SystemRole.SYSTEM_OPERATOR.value}
)


class RoleHolder(Protocol):
    """Anything carrying an account role and a system role (a request context)."""

    account_role: Optional[str]
    system_role: Optional[str]


def role_rank(role: Optional[str], default: int) -> int:
    """Return the rank of ``role``, or ``default`` for empty/unknown roles."""
    if not role:
        return default
    return ROLE_RANK.get(role, default)


def is_system_staff(system_role: Optional[str]) -> bool:
    return bool(system_role) and system_role in SYSTEM_STAFF_ROLES


def has_role(ctx: RoleHolder, roles: Iterable[str]) -> bool:
    """System staff always pass; everyone else needs one of ``roles``."""
    if is_system_staff(ctx.system_role):
        return True
    return bool(ctx.account_role) and ctx.account_role in set(roles)


def has_min_role(ctx: RoleHolder, min_role: str) -> bool:
    """System staff always pass; everyone else needs a rank of at least ``min_role``."""
    if is_system_staff(ctx.system_role):
        return True
    return role_rank(ctx.account_role, -1) >= role_rank(min_role, 0)


def is_portal_user(ctx: RoleHolder) -> bool:
    return ctx.account_role == AccountRole.PORTAL.value
