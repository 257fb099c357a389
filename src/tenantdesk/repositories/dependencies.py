"""Dependency injection for repository layer."""

from fastapi import Depends
from sqlalchemy.orm import Session

from ..db.database import get_db
from .interfaces import RepositoryContainer
from .sqlalchemy_impl import (
    SQLAlchemyAccountRepository,
    SQLAlchemyAppDefinitionRepository,
    SQLAlchemyMembershipRepository,
    SQLAlchemyNavOverrideRepository,
)


def get_repository_container(db: Session = Depends(get_db)) -> RepositoryContainer:
    """
    Create a repository container with SQLAlchemy implementations.

    All repositories share the request's session, so one ``commit`` covers
    changes made through any of them.
    """
    return RepositoryContainer(
        account_repo=SQLAlchemyAccountRepository(db),
        membership_repo=SQLAlchemyMembershipRepository(db),
        app_repo=SQLAlchemyAppDefinitionRepository(db),
        nav_override_repo=SQLAlchemyNavOverrideRepository(db),
    )


def get_account_repository(db: Session = Depends(get_db)) -> SQLAlchemyAccountRepository:
    """Get Account repository instance."""
    return SQLAlchemyAccountRepository(db)


def get_membership_repository(
    db: Session = Depends(get_db),
) -> SQLAlchemyMembershipRepository:
    """Get Membership repository instance."""
    return SQLAlchemyMembershipRepository(db)
