"""SQLAlchemy concrete implementations of repository interfaces."""

from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, desc, or_
from sqlalchemy.orm import Session

from .interfaces import (
    AccountRepository,
    AppDefinitionRepository,
    MembershipRepository,
    NavOverrideRepository,
)
from ..db.models import Account, AccountPath, AppDefinition, Membership, NavOverride
from ..domain.hierarchy import (
    PathRow,
    closure_rows_for_new_account,
    subtree_move_rows,
)
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class BaseSQLAlchemyRepository:
    """Base SQLAlchemy repository implementation."""

    def __init__(self, session: Session):
        self._session = session

    async def save(self, entity) -> None:
        """Save an entity to the repository."""
        self._session.add(entity)

    async def delete(self, entity) -> None:
        """Delete an entity from the repository."""
        self._session.delete(entity)

    async def commit(self) -> None:
        """Commit the current transaction."""
        self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        self._session.rollback()


def _to_path_rows(rows) -> List[PathRow]:
    return [PathRow(r.ancestor_id, r.descendant_id, r.depth) for r in rows]


class SQLAlchemyAccountRepository(BaseSQLAlchemyRepository, AccountRepository):
    """SQLAlchemy implementation of AccountRepository."""

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        return self._session.query(Account).filter(Account.id == account_id).first()

    async def list_by_ids(
        self, account_ids: Sequence[UUID], include_inactive: bool = False
    ) -> List[Account]:
        if not account_ids:
            return []
        query = self._session.query(Account).filter(Account.id.in_(list(account_ids)))
        if not include_inactive:
            query = query.filter(Account.is_active.is_(True))
        return query.order_by(desc(Account.created_at)).all()

    async def list_all(
        self, include_inactive: bool = False, limit: Optional[int] = None
    ) -> List[Account]:
        query = self._session.query(Account)
        if not include_inactive:
            query = query.filter(Account.is_active.is_(True))
        query = query.order_by(desc(Account.created_at))
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    async def create(
        self,
        display_name: str,
        account_type: str = "organization",
        parent_account_id: Optional[UUID] = None,
        slug: Optional[str] = None,
        settings: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Account:
        account = Account(
            display_name=display_name,
            account_type=account_type,
            parent_account_id=parent_account_id,
            slug=slug,
            settings=settings or {},
            meta=metadata or {},
        )
        self._session.add(account)
        self._session.flush()

        parent_rows = (
            await self.get_paths_to(parent_account_id) if parent_account_id else []
        )
        for row in closure_rows_for_new_account(account.id, parent_account_id, parent_rows):
            self._session.add(
                AccountPath(
                    ancestor_id=row.ancestor_id,
                    descendant_id=row.descendant_id,
                    depth=row.depth,
                )
            )
        self._session.flush()
        return account

    async def get_paths_to(self, descendant_id: UUID) -> List[PathRow]:
        rows = (
            self._session.query(AccountPath)
            .filter(AccountPath.descendant_id == descendant_id)
            .all()
        )
        return _to_path_rows(rows)

    async def get_subtree_paths(self, ancestor_ids: Sequence[UUID]) -> List[PathRow]:
        if not ancestor_ids:
            return []
        rows = (
            self._session.query(AccountPath)
            .filter(AccountPath.ancestor_id.in_(list(ancestor_ids)))
            .all()
        )
        return _to_path_rows(rows)

    async def is_descendant(self, ancestor_id: UUID, descendant_id: UUID) -> bool:
        if ancestor_id == descendant_id:
            return True
        row = (
            self._session.query(AccountPath)
            .filter(
                AccountPath.ancestor_id == ancestor_id,
                AccountPath.descendant_id == descendant_id,
            )
            .first()
        )
        return row is not None

    async def get_ancestors(self, node_id: UUID) -> List[Account]:
        return (
            self._session.query(Account)
            .join(AccountPath, AccountPath.ancestor_id == Account.id)
            .filter(AccountPath.descendant_id == node_id, AccountPath.depth > 0)
            .order_by(AccountPath.depth.asc())
            .all()
        )

    async def get_children(self, node_id: UUID) -> List[Account]:
        return (
            self._session.query(Account)
            .filter(Account.parent_account_id == node_id)
            .order_by(Account.display_name.asc())
            .all()
        )

    async def get_subtree(self, node_id: UUID) -> List[Account]:
        return (
            self._session.query(Account)
            .join(AccountPath, AccountPath.descendant_id == Account.id)
            .filter(AccountPath.ancestor_id == node_id)
            .order_by(AccountPath.depth.asc(), Account.display_name.asc())
            .all()
        )

    async def move(self, account_id: UUID, new_parent_id: Optional[UUID]) -> Account:
        account = await self.get_by_id(account_id)
        if account is None:
            raise LookupError(f"Account {account_id} not found")

        subtree_ids = [
            r.descendant_id for r in await self.get_subtree_paths([account_id])
        ] or [account_id]
        conditions = [AccountPath.descendant_id.in_(subtree_ids)]
        if new_parent_id is not None:
            conditions.append(AccountPath.descendant_id == new_parent_id)
        rows = _to_path_rows(self._session.query(AccountPath).filter(or_(*conditions)).all())

        to_delete, to_insert = subtree_move_rows(rows, account_id, new_parent_id)

        for row in to_delete:
            self._session.query(AccountPath).filter(
                and_(
                    AccountPath.ancestor_id == row.ancestor_id,
                    AccountPath.descendant_id == row.descendant_id,
                )
            ).delete(synchronize_session=False)
        for row in to_insert:
            self._session.add(
                AccountPath(
                    ancestor_id=row.ancestor_id,
                    descendant_id=row.descendant_id,
                    depth=row.depth,
                )
            )

        account.parent_account_id = new_parent_id
        self._session.flush()
        logger.info(
            f"Moved account {account_id} under {new_parent_id}: "
            f"{len(to_delete)} paths removed, {len(to_insert)} added"
        )
        return account


class SQLAlchemyMembershipRepository(BaseSQLAlchemyRepository, MembershipRepository):
    """SQLAlchemy implementation of MembershipRepository."""

    async def get_by_id(self, membership_id: UUID) -> Optional[Membership]:
        return (
            self._session.query(Membership).filter(Membership.id == membership_id).first()
        )

    async def get(self, person_id: UUID, account_id: UUID) -> Optional[Membership]:
        return (
            self._session.query(Membership)
            .filter(Membership.person_id == person_id, Membership.account_id == account_id)
            .first()
        )

    async def get_active(self, person_id: UUID, account_id: UUID) -> Optional[Membership]:
        return (
            self._session.query(Membership)
            .filter(
                Membership.person_id == person_id,
                Membership.account_id == account_id,
                Membership.status == "active",
            )
            .first()
        )

    async def list_active_for_person(self, person_id: UUID) -> List[Membership]:
        return (
            self._session.query(Membership)
            .filter(Membership.person_id == person_id, Membership.status == "active")
            .order_by(Membership.created_at.asc())
            .all()
        )

    async def list_for_account(
        self, account_id: UUID, include_inactive: bool = False
    ) -> List[Membership]:
        query = self._session.query(Membership).filter(Membership.account_id == account_id)
        if not include_inactive:
            query = query.filter(Membership.status == "active")
        return query.order_by(Membership.created_at.asc()).all()

    async def create(
        self,
        person_id: UUID,
        account_id: UUID,
        account_role: str = "member",
        status: str = "active",
        scope: Optional[str] = None,
        is_test_data: bool = False,
    ) -> Membership:
        membership = Membership(
            person_id=person_id,
            account_id=account_id,
            account_role=account_role,
            status=status,
            scope=scope,
            is_test_data=is_test_data,
        )
        self._session.add(membership)
        self._session.flush()
        return membership


class SQLAlchemyAppDefinitionRepository(BaseSQLAlchemyRepository, AppDefinitionRepository):
    """SQLAlchemy implementation of AppDefinitionRepository."""

    async def list_for_account(
        self,
        account_id: UUID,
        include_inactive: bool = False,
        limit: Optional[int] = None,
    ) -> List[AppDefinition]:
        query = self._session.query(AppDefinition).filter(
            AppDefinition.account_id == account_id
        )
        if not include_inactive:
            query = query.filter(AppDefinition.is_active.is_(True))
        query = query.order_by(AppDefinition.name.asc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    async def get_by_id(self, account_id: UUID, app_id: UUID) -> Optional[AppDefinition]:
        return (
            self._session.query(AppDefinition)
            .filter(AppDefinition.account_id == account_id, AppDefinition.id == app_id)
            .first()
        )

    async def get_by_slug(self, account_id: UUID, slug: str) -> Optional[AppDefinition]:
        return (
            self._session.query(AppDefinition)
            .filter(AppDefinition.account_id == account_id, AppDefinition.slug == slug)
            .first()
        )

    async def create(self, account_id: UUID, **fields: Any) -> AppDefinition:
        app = AppDefinition(account_id=account_id, **fields)
        self._session.add(app)
        self._session.flush()
        return app


class SQLAlchemyNavOverrideRepository(BaseSQLAlchemyRepository, NavOverrideRepository):
    """SQLAlchemy implementation of NavOverrideRepository."""

    async def list_for_account(
        self, account_id: UUID, active_only: bool = True
    ) -> List[NavOverride]:
        query = self._session.query(NavOverride).filter(NavOverride.account_id == account_id)
        if active_only:
            query = query.filter(NavOverride.is_active.is_(True))
        return query.order_by(NavOverride.position.asc(), NavOverride.nav_key.asc()).all()

    async def get_by_id(self, account_id: UUID, override_id: UUID) -> Optional[NavOverride]:
        return (
            self._session.query(NavOverride)
            .filter(NavOverride.account_id == account_id, NavOverride.id == override_id)
            .first()
        )

    async def upsert(self, account_id: UUID, nav_key: str, **fields: Any) -> NavOverride:
        override = (
            self._session.query(NavOverride)
            .filter(NavOverride.account_id == account_id, NavOverride.nav_key == nav_key)
            .first()
        )
        if override is None:
            override = NavOverride(account_id=account_id, nav_key=nav_key)
            self._session.add(override)
        for key, value in fields.items():
            setattr(override, key, value)
        self._session.flush()
        return override
