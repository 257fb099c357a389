"""Abstract repository interfaces for data access layer."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from ..db.models import Account, AppDefinition, Membership, NavOverride
from ..domain.hierarchy import PathRow


class BaseRepository(ABC):
    """Base repository interface with common operations."""

    @abstractmethod
    async def save(self, entity) -> None:
        """Save an entity to the repository."""
        pass

    @abstractmethod
    async def delete(self, entity) -> None:
        """Delete an entity from the repository."""
        pass

    @abstractmethod
    async def commit(self) -> None:
        """Commit the current transaction."""
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the current transaction."""
        pass


class AccountRepository(BaseRepository):
    """Repository interface for accounts and their closure-table paths."""

    @abstractmethod
    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        """Get an account by ID."""
        pass

    @abstractmethod
    async def list_by_ids(
        self, account_ids: Sequence[UUID], include_inactive: bool = False
    ) -> List[Account]:
        """Get the given accounts, newest first."""
        pass

    @abstractmethod
    async def list_all(
        self, include_inactive: bool = False, limit: Optional[int] = None
    ) -> List[Account]:
        """Get all accounts, newest first."""
        pass

    @abstractmethod
    async def create(
        self,
        display_name: str,
        account_type: str = "organization",
        parent_account_id: Optional[UUID] = None,
        slug: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Account:
        """Create an account together with its closure rows (not committed)."""
        pass

    @abstractmethod
    async def get_paths_to(self, descendant_id: UUID) -> List[PathRow]:
        """Closure rows ending at ``descendant_id`` (its ancestors and itself)."""
        pass

    @abstractmethod
    async def get_subtree_paths(self, ancestor_ids: Sequence[UUID]) -> List[PathRow]:
        """Closure rows starting at any of ``ancestor_ids``."""
        pass

    @abstractmethod
    async def is_descendant(self, ancestor_id: UUID, descendant_id: UUID) -> bool:
        """True when ``descendant_id`` is in the subtree of ``ancestor_id``."""
        pass

    @abstractmethod
    async def get_ancestors(self, node_id: UUID) -> List[Account]:
        """Ancestors of a node, nearest first."""
        pass

    @abstractmethod
    async def get_children(self, node_id: UUID) -> List[Account]:
        """Direct children of a node ordered by display name."""
        pass

    @abstractmethod
    async def get_subtree(self, node_id: UUID) -> List[Account]:
        """A node and all of its descendants."""
        pass

    @abstractmethod
    async def move(self, account_id: UUID, new_parent_id: Optional[UUID]) -> Account:
        """Reparent an account subtree (not committed).

        Raises:
            HierarchyError: If the new parent lies inside the moved subtree
        """
        pass


class MembershipRepository(BaseRepository):
    """Repository interface for Membership entities."""

    @abstractmethod
    async def get_by_id(self, membership_id: UUID) -> Optional[Membership]:
        pass

    @abstractmethod
    async def get(self, person_id: UUID, account_id: UUID) -> Optional[Membership]:
        """Get the membership of a person in an account, whatever its status."""
        pass

    @abstractmethod
    async def get_active(self, person_id: UUID, account_id: UUID) -> Optional[Membership]:
        pass

    @abstractmethod
    async def list_active_for_person(self, person_id: UUID) -> List[Membership]:
        """Active memberships of a person, oldest first."""
        pass

    @abstractmethod
    async def list_for_account(
        self, account_id: UUID, include_inactive: bool = False
    ) -> List[Membership]:
        pass

    @abstractmethod
    async def create(
        self,
        person_id: UUID,
        account_id: UUID,
        account_role: str = "member",
        status: str = "active",
        scope: Optional[str] = None,
        is_test_data: bool = False,
    ) -> Membership:
        """Create a membership (not committed)."""
        pass


class AppDefinitionRepository(BaseRepository):
    """Repository interface for AppDefinition entities."""

    @abstractmethod
    async def list_for_account(
        self,
        account_id: UUID,
        include_inactive: bool = False,
        limit: Optional[int] = None,
    ) -> List[AppDefinition]:
        """App definitions of an account ordered by name."""
        pass

    @abstractmethod
    async def get_by_id(self, account_id: UUID, app_id: UUID) -> Optional[AppDefinition]:
        pass

    @abstractmethod
    async def get_by_slug(self, account_id: UUID, slug: str) -> Optional[AppDefinition]:
        pass

    @abstractmethod
    async def create(self, account_id: UUID, **fields: Any) -> AppDefinition:
        """Create an app definition (not committed)."""
        pass


class NavOverrideRepository(BaseRepository):
    """Repository interface for NavOverride entities."""

    @abstractmethod
    async def list_for_account(
        self, account_id: UUID, active_only: bool = True
    ) -> List[NavOverride]:
        """Overrides of an account ordered by position."""
        pass

    @abstractmethod
    async def get_by_id(self, account_id: UUID, override_id: UUID) -> Optional[NavOverride]:
        pass

    @abstractmethod
    async def upsert(self, account_id: UUID, nav_key: str, **fields: Any) -> NavOverride:
        """Insert or update the override for ``(account_id, nav_key)`` (not committed)."""
        pass


class RepositoryContainer:
    """Container for all repository interfaces to support dependency injection."""

    def __init__(
        self,
        account_repo: AccountRepository,
        membership_repo: MembershipRepository,
        app_repo: AppDefinitionRepository,
        nav_override_repo: NavOverrideRepository,
    ):
        self.account = account_repo
        self.membership = membership_repo
        self.app = app_repo
        self.nav_override = nav_override_repo
