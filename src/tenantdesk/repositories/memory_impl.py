"""In-memory implementations of repository interfaces for testing."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

from .interfaces import (
    AccountRepository,
    AppDefinitionRepository,
    MembershipRepository,
    NavOverrideRepository,
)
from ..db.models import Account, AppDefinition, Membership, NavOverride
from ..domain.hierarchy import (
    PathRow,
    ancestors_of,
    closure_rows_for_new_account,
    descendants_of,
    is_descendant,
    subtree_move_rows,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BaseMemoryRepository:
    """Base in-memory repository implementation."""

    async def save(self, entity) -> None:
        """Save an entity to the repository."""
        # In memory implementation doesn't need explicit saves
        pass

    async def delete(self, entity) -> None:
        """Delete an entity from the repository."""
        # Handled by specific implementations
        pass

    async def commit(self) -> None:
        """Commit the current transaction."""
        # In memory - changes are immediate
        pass

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        # In memory - no rollback needed for simple case
        pass


class MemoryAccountRepository(BaseMemoryRepository, AccountRepository):
    """In-memory implementation of AccountRepository."""

    def __init__(self):
        self._accounts: Dict[UUID, Account] = {}
        self._paths: List[PathRow] = []

    async def save(self, entity) -> None:
        self._accounts[entity.id] = entity

    async def delete(self, entity) -> None:
        self._accounts.pop(entity.id, None)
        self._paths = [
            p for p in self._paths if entity.id not in (p.ancestor_id, p.descendant_id)
        ]

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        return self._accounts.get(account_id)

    def _newest_first(self, accounts) -> List[Account]:
        return sorted(accounts, key=lambda a: a.created_at, reverse=True)

    async def list_by_ids(
        self, account_ids: Sequence[UUID], include_inactive: bool = False
    ) -> List[Account]:
        wanted = set(account_ids)
        return self._newest_first(
            a
            for a in self._accounts.values()
            if a.id in wanted and (include_inactive or a.is_active)
        )

    async def list_all(
        self, include_inactive: bool = False, limit: Optional[int] = None
    ) -> List[Account]:
        accounts = self._newest_first(
            a for a in self._accounts.values() if include_inactive or a.is_active
        )
        return accounts[:limit] if limit is not None else accounts

    async def create(
        self,
        display_name: str,
        account_type: str = "organization",
        parent_account_id: Optional[UUID] = None,
        slug: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Account:
        now = _now()
        account = Account(
            id=uuid4(),
            display_name=display_name,
            account_type=account_type,
            status="active",
            is_active=True,
            parent_account_id=parent_account_id,
            slug=slug,
            settings=settings or {},
            meta=metadata or {},
            created_at=now,
            updated_at=now,
        )
        self._accounts[account.id] = account

        parent_rows = await self.get_paths_to(parent_account_id) if parent_account_id else []
        self._paths.extend(
            closure_rows_for_new_account(account.id, parent_account_id, parent_rows)
        )
        return account

    async def get_paths_to(self, descendant_id: UUID) -> List[PathRow]:
        return [p for p in self._paths if p.descendant_id == descendant_id]

    async def get_subtree_paths(self, ancestor_ids: Sequence[UUID]) -> List[PathRow]:
        wanted = set(ancestor_ids)
        return [p for p in self._paths if p.ancestor_id in wanted]

    async def is_descendant(self, ancestor_id: UUID, descendant_id: UUID) -> bool:
        return is_descendant(self._paths, ancestor_id, descendant_id)

    async def get_ancestors(self, node_id: UUID) -> List[Account]:
        return [
            self._accounts[i] for i in ancestors_of(self._paths, node_id) if i in self._accounts
        ]

    async def get_children(self, node_id: UUID) -> List[Account]:
        children = [a for a in self._accounts.values() if a.parent_account_id == node_id]
        return sorted(children, key=lambda a: a.display_name)

    async def get_subtree(self, node_id: UUID) -> List[Account]:
        return [
            self._accounts[i]
            for i in descendants_of(self._paths, node_id, include_self=True)
            if i in self._accounts
        ]

    async def move(self, account_id: UUID, new_parent_id: Optional[UUID]) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise LookupError(f"Account {account_id} not found")

        to_delete, to_insert = subtree_move_rows(self._paths, account_id, new_parent_id)
        removed = set(to_delete)
        self._paths = [p for p in self._paths if p not in removed] + to_insert
        account.parent_account_id = new_parent_id
        return account


class MemoryMembershipRepository(BaseMemoryRepository, MembershipRepository):
    """In-memory implementation of MembershipRepository."""

    def __init__(self):
        self._memberships: Dict[UUID, Membership] = {}

    async def delete(self, entity) -> None:
        self._memberships.pop(entity.id, None)

    async def get_by_id(self, membership_id: UUID) -> Optional[Membership]:
        return self._memberships.get(membership_id)

    async def get(self, person_id: UUID, account_id: UUID) -> Optional[Membership]:
        for m in self._memberships.values():
            if m.person_id == person_id and m.account_id == account_id:
                return m
        return None

    async def get_active(self, person_id: UUID, account_id: UUID) -> Optional[Membership]:
        membership = await self.get(person_id, account_id)
        if membership is not None and membership.status == "active":
            return membership
        return None

    async def list_active_for_person(self, person_id: UUID) -> List[Membership]:
        found = [
            m
            for m in self._memberships.values()
            if m.person_id == person_id and m.status == "active"
        ]
        return sorted(found, key=lambda m: m.created_at)

    async def list_for_account(
        self, account_id: UUID, include_inactive: bool = False
    ) -> List[Membership]:
        found = [
            m
            for m in self._memberships.values()
            if m.account_id == account_id and (include_inactive or m.status == "active")
        ]
        return sorted(found, key=lambda m: m.created_at)

    async def create(
        self,
        person_id: UUID,
        account_id: UUID,
        account_role: str = "member",
        status: str = "active",
        scope: Optional[str] = None,
        is_test_data: bool = False,
    ) -> Membership:
        if await self.get(person_id, account_id) is not None:
            raise ValueError("Membership already exists for person and account")
        now = _now()
        membership = Membership(
            id=uuid4(),
            person_id=person_id,
            account_id=account_id,
            account_role=account_role,
            status=status,
            scope=scope,
            is_test_data=is_test_data,
            created_at=now,
            updated_at=now,
        )
        self._memberships[membership.id] = membership
        return membership


class MemoryAppDefinitionRepository(BaseMemoryRepository, AppDefinitionRepository):
    """In-memory implementation of AppDefinitionRepository."""

    def __init__(self):
        self._apps: Dict[UUID, AppDefinition] = {}

    async def delete(self, entity) -> None:
        self._apps.pop(entity.id, None)

    async def list_for_account(
        self,
        account_id: UUID,
        include_inactive: bool = False,
        limit: Optional[int] = None,
    ) -> List[AppDefinition]:
        apps = sorted(
            (
                a
                for a in self._apps.values()
                if a.account_id == account_id and (include_inactive or a.is_active)
            ),
            key=lambda a: a.name,
        )
        return apps[:limit] if limit is not None else apps

    async def get_by_id(self, account_id: UUID, app_id: UUID) -> Optional[AppDefinition]:
        app = self._apps.get(app_id)
        return app if app is not None and app.account_id == account_id else None

    async def get_by_slug(self, account_id: UUID, slug: str) -> Optional[AppDefinition]:
        for app in self._apps.values():
            if app.account_id == account_id and app.slug == slug:
                return app
        return None

    async def create(self, account_id: UUID, **fields: Any) -> AppDefinition:
        if await self.get_by_slug(account_id, fields.get("slug")) is not None:
            raise ValueError(f"App slug already exists: {fields.get('slug')}")
        now = _now()
        values = {
            "min_role": "member",
            "nav_items": [],
            "is_active": True,
            **fields,
        }
        app = AppDefinition(
            id=uuid4(), account_id=account_id, created_at=now, updated_at=now, **values
        )
        self._apps[app.id] = app
        return app


class MemoryNavOverrideRepository(BaseMemoryRepository, NavOverrideRepository):
    """In-memory implementation of NavOverrideRepository."""

    def __init__(self):
        self._overrides: Dict[UUID, NavOverride] = {}

    async def delete(self, entity) -> None:
        self._overrides.pop(entity.id, None)

    async def list_for_account(
        self, account_id: UUID, active_only: bool = True
    ) -> List[NavOverride]:
        found = [
            o
            for o in self._overrides.values()
            if o.account_id == account_id and (not active_only or o.is_active)
        ]
        return sorted(found, key=lambda o: (o.position if o.position is not None else 0, o.nav_key))

    async def get_by_id(self, account_id: UUID, override_id: UUID) -> Optional[NavOverride]:
        override = self._overrides.get(override_id)
        if override is not None and override.account_id == account_id:
            return override
        return None

    async def upsert(self, account_id: UUID, nav_key: str, **fields: Any) -> NavOverride:
        for override in self._overrides.values():
            if override.account_id == account_id and override.nav_key == nav_key:
                break
        else:
            override = NavOverride(
                id=uuid4(),
                account_id=account_id,
                nav_key=nav_key,
                hidden=False,
                is_active=True,
                created_at=_now(),
            )
            self._overrides[override.id] = override
        for key, value in fields.items():
            setattr(override, key, value)
        return override
