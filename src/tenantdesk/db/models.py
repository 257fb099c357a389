"""SQLAlchemy models for TenantDesk."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CHAR,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GUID(TypeDecorator):
    """Platform-independent GUID type using CHAR(36) outside PostgreSQL."""

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID())
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, UUID):
            value = UUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, UUID):
            return value
        return UUID(value)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always comes back as UTC (SQLite drops tzinfo)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Account(Base):
    """A tenant account: an organization or a sub-unit in the account tree."""

    __tablename__ = "accounts"

    id = Column(GUID(), primary_key=True, default=uuid4)
    display_name = Column(String(255), nullable=False)
    account_type = Column(String(50), nullable=False, default="organization")
    status = Column(String(20), nullable=False, default="active")  # AccountStatus
    is_active = Column(Boolean, nullable=False, default=True)
    slug = Column(String(100), nullable=True, unique=True)
    parent_account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=True)
    settings = Column(JSON, nullable=False, default=dict)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    parent = relationship("Account", remote_side=[id], backref="children")
    memberships = relationship(
        "Membership", back_populates="account", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_account_parent", "parent_account_id"),)

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, display_name='{self.display_name}')>"


class AccountPath(Base):
    """Closure table row: ``ancestor_id`` reaches ``descendant_id`` at ``depth``."""

    __tablename__ = "account_paths"

    ancestor_id = Column(GUID(), ForeignKey("accounts.id"), primary_key=True)
    descendant_id = Column(GUID(), ForeignKey("accounts.id"), primary_key=True)
    depth = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_account_path_descendant", "descendant_id", "depth"),
    )

    def __repr__(self) -> str:
        return (
            f"<AccountPath(ancestor_id={self.ancestor_id}, "
            f"descendant_id={self.descendant_id}, depth={self.depth})>"
        )


class Person(Base):
    """A human user. Login credentials live here."""

    __tablename__ = "persons"

    id = Column(GUID(), primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=True)
    password_salt = Column(String(64), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    profile = relationship(
        "Profile", back_populates="person", uselist=False, cascade="all, delete-orphan"
    )
    memberships = relationship(
        "Membership", back_populates="person", cascade="all, delete-orphan"
    )

    def set_password(self, password: str) -> None:
        """Hash and store a new password."""
        from ..auth.security import hash_password

        self.password_salt, self.password_hash = hash_password(password)

    def verify_password(self, password: str) -> bool:
        from ..auth.security import verify_password

        return verify_password(password, self.password_salt, self.password_hash)

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, email='{self.email}')>"


class Profile(Base):
    """Per-person profile carrying the platform-wide system role."""

    __tablename__ = "profiles"

    id = Column(GUID(), primary_key=True, default=uuid4)
    person_id = Column(GUID(), ForeignKey("persons.id"), nullable=False, unique=True)
    system_role = Column(String(30), nullable=True)  # SystemRole
    display_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    preferences = Column(JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)

    person = relationship("Person", back_populates="profile")

    def __repr__(self) -> str:
        return f"<Profile(person_id={self.person_id}, system_role={self.system_role})>"


class Membership(Base):
    """A person's role inside one account."""

    __tablename__ = "memberships"

    id = Column(GUID(), primary_key=True, default=uuid4)
    person_id = Column(GUID(), ForeignKey("persons.id"), nullable=False)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False)
    account_role = Column(String(20), nullable=False, default="member")  # AccountRole
    status = Column(String(20), nullable=False, default="active")  # MembershipStatus
    scope = Column(String(50), nullable=True)
    is_test_data = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    person = relationship("Person", back_populates="memberships")
    account = relationship("Account", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("person_id", "account_id", name="uq_membership_person_account"),
        Index("ix_membership_account_status", "account_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Membership(person_id={self.person_id}, account_id={self.account_id}, "
            f"role='{self.account_role}', status='{self.status}')>"
        )


class AppDefinition(Base):
    """An application entry in an account's navigation, with its nav items."""

    __tablename__ = "app_definitions"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False)
    slug = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    min_role = Column(String(20), nullable=False, default="member")
    nav_items = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("account_id", "slug", name="uq_app_slug_per_account"),
    )

    def __repr__(self) -> str:
        return f"<AppDefinition(id={self.id}, slug='{self.slug}')>"


class NavOverride(Base):
    """Per-account adjustment of a single navigation item."""

    __tablename__ = "nav_overrides"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False)
    nav_key = Column(String(255), nullable=False)  # "<app_slug>.<view_slug or label>"
    label = Column(String(255), nullable=True)
    hidden = Column(Boolean, nullable=False, default=False)
    min_role = Column(String(20), nullable=True)  # None keeps the item's own min_role
    default_entity_id = Column(GUID(), nullable=True)
    position = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("account_id", "nav_key", name="uq_nav_override_key"),
    )


class Ticket(Base):
    """A support ticket inside an account."""

    __tablename__ = "tickets"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False)
    subject = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="open")  # TicketStatus
    priority = Column(String(20), nullable=False, default="medium")  # TicketPriority
    category = Column(String(100), nullable=True)
    opened_by_person_id = Column(GUID(), ForeignKey("persons.id"), nullable=True)
    assigned_to_person_id = Column(GUID(), ForeignKey("persons.id"), nullable=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(GUID(), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("ix_ticket_account_status", "account_id", "status"),
        Index("ix_ticket_account_created", "account_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, subject='{self.subject}', status='{self.status}')>"


class TicketMessage(Base):
    """A reply or internal note on a ticket."""

    __tablename__ = "ticket_messages"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False)
    ticket_id = Column(GUID(), ForeignKey("tickets.id"), nullable=False)
    person_id = Column(GUID(), ForeignKey("persons.id"), nullable=True)
    body = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)

    person = relationship("Person")

    __table_args__ = (Index("ix_ticket_message_ticket_created", "ticket_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<TicketMessage(id={self.id}, ticket_id={self.ticket_id})>"


class Document(Base):
    """A document record attached to some entity of an account."""

    __tablename__ = "documents"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(GUID(), nullable=False)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(255), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    storage_path = Column(String(1024), nullable=False)
    uploaded_by_person_id = Column(GUID(), ForeignKey("persons.id"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_document_entity", "account_id", "entity_type", "entity_id"),
    )


class ActivityEvent(Base):
    """User-facing activity stream entry."""

    __tablename__ = "activity_events"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=True)
    person_id = Column(GUID(), nullable=True)
    request_id = Column(String(64), nullable=True)
    event_type = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(64), nullable=True)
    summary = Column(String(1000), nullable=False)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_activity_account_created", "account_id", "created_at"),
    )


class AuditLog(Base):
    """Append-only audit trail with before/after snapshots."""

    __tablename__ = "audit_log"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), nullable=True)
    person_id = Column(GUID(), nullable=True)
    request_id = Column(String(64), nullable=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=True)
    before_data = Column(JSON, nullable=True)
    after_data = Column(JSON, nullable=True)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_audit_account_created", "account_id", "created_at"),
        Index("ix_audit_entity", "entity_type", "entity_id"),
    )


class TenantTheme(Base):
    """Theme preset and token overrides for one account."""

    __tablename__ = "tenant_themes"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False, unique=True)
    preset = Column(String(50), nullable=False, default="clean")
    logo_url = Column(String(1024), nullable=True)
    tokens = Column(JSON, nullable=False, default=dict)
    dark_tokens = Column(JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class ImpersonationSession(Base):
    """A system staff member acting as another person inside an account."""

    __tablename__ = "impersonation_sessions"

    id = Column(GUID(), primary_key=True, default=uuid4)
    admin_person_id = Column(GUID(), ForeignKey("persons.id"), nullable=False)
    target_person_id = Column(GUID(), ForeignKey("persons.id"), nullable=False)
    target_account_id = Column(GUID(), ForeignKey("accounts.id"), nullable=False)
    target_account_role = Column(String(20), nullable=False)
    reason = Column(String(1000), nullable=True)
    status = Column(String(20), nullable=False, default="active")  # ImpersonationStatus
    started_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    expires_at = Column(UTCDateTime(), nullable=False)
    ended_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index("ix_impersonation_admin_status", "admin_person_id", "status"),
    )


class ErrorEvent(Base):
    """A persisted unhandled error, surfaced by the system health endpoint."""

    __tablename__ = "error_events"

    id = Column(GUID(), primary_key=True, default=uuid4)
    account_id = Column(GUID(), nullable=True)
    request_id = Column(String(64), nullable=True)
    function_name = Column(String(255), nullable=False)
    error_code = Column(String(50), nullable=False)  # ErrorCode
    message = Column(String(1000), nullable=False)
    stack_summary = Column(String(500), nullable=True)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)

    __table_args__ = (Index("ix_error_event_created", "created_at"),)


class AdminCount(Base):
    """Denormalised per-account counter shown in the admin area."""

    __tablename__ = "admin_counts"

    account_id = Column(GUID(), ForeignKey("accounts.id"), primary_key=True)
    counter_key = Column(String(50), primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        UTCDateTime(), nullable=False, default=_utcnow, onupdate=_utcnow
    )
