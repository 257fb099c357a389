"""Pydantic models for API request/response validation."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..core.enums import (
    AccountRole,
    AccountStatus,
    MembershipStatus,
    RouteType,
    TicketPriority,
    TicketStatus,
)


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _metadata_field(description: str = "Free-form metadata"):
    # ORM rows expose the "metadata" column as ``meta``
    return Field(
        default_factory=dict,
        validation_alias=AliasChoices("meta", "metadata"),
        description=description,
    )


# Base response models
class BaseResponse(BaseModel):
    """Base response model with common fields."""

    model_config = ConfigDict(from_attributes=True)


class BaseRequest(BaseModel):
    """Base request model; enum fields are stored as their plain values."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class ProblemDetails(BaseModel):
    """RFC 9457 Problem Details for HTTP APIs."""

    type: str = Field(description="A URI reference that identifies the problem type")
    title: str = Field(
        description="A short, human-readable summary of the problem type"
    )
    status: int = Field(description="The HTTP status code")
    detail: Optional[str] = Field(
        None, description="A human-readable explanation specific to this occurrence"
    )
    instance: Optional[str] = Field(
        None, description="A URI reference that identifies the specific occurrence"
    )
    request_id: Optional[str] = Field(None, description="Request correlation id")


# Authentication schemas
class LoginRequest(BaseModel):
    """Schema for login request."""

    email: str = Field(description="Login email address", min_length=3, max_length=255)
    password: str = Field(description="Account password", min_length=1)


class JWTTokenResponse(BaseModel):
    """Schema for JWT token response."""

    access_token: str = Field(description="JWT access token")
    refresh_token: str = Field(description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    access_expires_at: datetime = Field(description="Access token expiration timestamp")
    refresh_expires_at: datetime = Field(
        description="Refresh token expiration timestamp"
    )
    person_id: UUID = Field(description="UUID of the authenticated person")


class TokenRefreshRequest(BaseModel):
    """Schema for token refresh request."""

    refresh_token: str = Field(description="JWT refresh token")


class TokenRefreshResponse(BaseModel):
    """Schema for token refresh response."""

    access_token: str = Field(description="New JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_at: datetime = Field(description="Access token expiration timestamp")


# Account schemas
class AccountCreate(BaseRequest):
    """Schema for creating an account."""

    display_name: str = Field(min_length=1, max_length=255)
    account_type: str = Field(default="organization", max_length=50)
    parent_account_id: Optional[UUID] = None
    slug: Optional[str] = Field(None, max_length=100)
    settings: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AccountUpdate(BaseRequest):
    """Schema for updating an account; ``metadata`` is merged into the stored value."""

    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[AccountStatus] = None
    settings: Optional[Dict[str, Any]] = None
    slug: Optional[str] = Field(None, max_length=100)
    metadata: Optional[Dict[str, Any]] = None


class AccountMove(BaseModel):
    """Schema for reparenting an account."""

    parent_account_id: Optional[UUID] = Field(
        None, description="New parent; null makes the account a root"
    )


class AccountResponse(BaseResponse):
    """Schema for account response."""

    id: UUID
    display_name: str
    account_type: str
    status: str
    is_active: bool
    slug: Optional[str] = None
    parent_account_id: Optional[UUID] = None
    settings: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = _metadata_field()
    created_at: datetime
    updated_at: datetime


# Person and membership schemas
class ProfileResponse(BaseResponse):
    """Schema for profile response."""

    id: UUID
    person_id: UUID
    system_role: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)


class PersonResponse(BaseResponse):
    """Schema for person response. Credentials are never included."""

    id: UUID
    email: str
    full_name: str
    is_active: bool
    metadata: Dict[str, Any] = _metadata_field()
    created_at: datetime


class PersonCreate(BaseRequest):
    """Schema for creating a person as a member of the current account."""

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    full_name: str = Field(min_length=1, max_length=255)
    password: Optional[str] = Field(None, min_length=8)
    account_role: AccountRole = AccountRole.MEMBER
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PersonUpdate(BaseRequest):
    """Schema for updating a person; ``metadata`` is merged."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class MembershipResponse(BaseResponse):
    """Schema for membership response."""

    id: UUID
    person_id: UUID
    account_id: UUID
    account_role: str
    status: str
    scope: Optional[str] = None
    is_test_data: bool = False
    created_at: datetime


class MembershipCreate(BaseRequest):
    """Schema for adding a person to the current account."""

    person_id: UUID
    account_role: AccountRole = AccountRole.MEMBER
    status: MembershipStatus = MembershipStatus.ACTIVE
    scope: Optional[str] = Field(None, max_length=50)
    is_test_data: bool = False


class MembershipUpdate(BaseRequest):
    """Schema for updating a membership."""

    account_role: Optional[AccountRole] = None
    status: Optional[MembershipStatus] = None
    scope: Optional[str] = Field(None, max_length=50)


# Ticket schemas
class TicketCreate(BaseRequest):
    """Schema for opening a ticket."""

    subject: str = Field(min_length=1, max_length=500)
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    category: Optional[str] = Field(None, max_length=100)
    assigned_to_person_id: Optional[UUID] = None
    entity_type: Optional[str] = Field(None, max_length=50)
    entity_id: Optional[UUID] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TicketUpdate(BaseRequest):
    """Schema for updating a ticket; ``metadata`` is merged."""

    subject: Optional[str] = Field(None, min_length=1, max_length=500)
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    category: Optional[str] = Field(None, max_length=100)
    assigned_to_person_id: Optional[UUID] = None
    is_active: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class TicketResponse(BaseResponse):
    """Schema for ticket response."""

    id: UUID
    account_id: UUID
    subject: str
    status: str
    priority: str
    category: Optional[str] = None
    opened_by_person_id: Optional[UUID] = None
    assigned_to_person_id: Optional[UUID] = None
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    is_active: bool
    metadata: Dict[str, Any] = _metadata_field()
    created_at: datetime
    updated_at: datetime


class TicketMessageCreate(BaseRequest):
    """Schema for replying to a ticket."""

    ticket_id: UUID
    body: str = Field(min_length=1, max_length=20000)
    is_internal: bool = False


class MessageAuthor(BaseResponse):
    id: UUID
    full_name: str


class TicketMessageResponse(BaseResponse):
    """Schema for ticket message response."""

    id: UUID
    ticket_id: UUID
    person_id: Optional[UUID] = None
    body: str
    is_internal: bool
    created_at: datetime
    person: Optional[MessageAuthor] = None


# Document schemas
class DocumentCreate(BaseModel):
    """Schema for registering a document attached to an entity."""

    entity_type: str = Field(min_length=1, max_length=50, pattern=r"^[a-z][a-z0-9_]*$")
    entity_id: UUID
    filename: str = Field(min_length=1, max_length=255)
    content_type: Optional[str] = Field(None, max_length=255)
    size_bytes: Optional[int] = Field(None, ge=0)


class DocumentResponse(BaseResponse):
    """Schema for document response."""

    id: UUID
    account_id: UUID
    entity_type: str
    entity_id: UUID
    filename: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    storage_path: str
    uploaded_by_person_id: Optional[UUID] = None
    created_at: datetime


# Activity, audit and error schemas
class ActivityEventResponse(BaseResponse):
    """Schema for activity event response."""

    id: UUID
    account_id: Optional[UUID] = None
    person_id: Optional[UUID] = None
    event_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    summary: str
    metadata: Dict[str, Any] = _metadata_field()
    created_at: datetime


class AuditLogResponse(BaseResponse):
    """Schema for audit log entry response."""

    id: UUID
    account_id: Optional[UUID] = None
    person_id: Optional[UUID] = None
    request_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    before_data: Optional[Any] = None
    after_data: Optional[Any] = None
    metadata: Dict[str, Any] = _metadata_field()
    created_at: datetime


class ErrorEventResponse(BaseResponse):
    """Schema for persisted error event response."""

    id: UUID
    account_id: Optional[UUID] = None
    request_id: Optional[str] = None
    function_name: str
    error_code: str
    message: str
    stack_summary: Optional[str] = None
    created_at: datetime


# Theme schemas
class ThemeUpdate(BaseModel):
    """Schema for upserting the account theme."""

    preset: Optional[str] = Field(None, max_length=50)
    logo_url: Optional[str] = Field(None, max_length=1024)
    tokens: Optional[Dict[str, Optional[str]]] = None
    dark_tokens: Optional[Dict[str, Optional[str]]] = None


class ThemeResponse(BaseModel):
    """Schema for theme response."""

    preset: str
    logo_url: Optional[str] = None
    tokens: Dict[str, Any] = Field(default_factory=dict)
    dark_tokens: Dict[str, Any] = Field(default_factory=dict)
    resolved_tokens: Dict[str, Any] = Field(default_factory=dict)


# Navigation schemas
class NavItem(BaseRequest):
    """A navigation entry inside an app definition."""

    label: str = Field(min_length=1, max_length=255)
    icon: Optional[str] = None
    route_type: RouteType = RouteType.VIEW
    view_slug: Optional[str] = None
    url: Optional[str] = None
    position: Optional[int] = None
    min_role: Optional[AccountRole] = None


class AppDefinitionCreate(BaseRequest):
    """Schema for creating an app definition."""

    slug: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=100)
    min_role: AccountRole = AccountRole.MEMBER
    nav_items: List[NavItem] = Field(default_factory=list)


class AppDefinitionUpdate(BaseRequest):
    """Schema for updating an app definition."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=100)
    min_role: Optional[AccountRole] = None
    nav_items: Optional[List[NavItem]] = None
    is_active: Optional[bool] = None


class AppDefinitionResponse(BaseResponse):
    """Schema for app definition response."""

    id: UUID
    account_id: UUID
    slug: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    min_role: str
    nav_items: List[Dict[str, Any]] = Field(default_factory=list)
    is_active: bool
    created_at: datetime


class NavOverrideUpsert(BaseRequest):
    """Schema for creating or updating a nav override."""

    nav_key: str = Field(min_length=1, max_length=255)
    label: Optional[str] = Field(None, max_length=255)
    hidden: bool = False
    min_role: Optional[AccountRole] = None
    default_entity_id: Optional[UUID] = None
    position: Optional[int] = None
    is_active: bool = True


class NavOverrideResponse(BaseResponse):
    """Schema for nav override response."""

    id: UUID
    account_id: UUID
    nav_key: str
    label: Optional[str] = None
    hidden: bool
    min_role: Optional[str] = None
    default_entity_id: Optional[UUID] = None
    position: Optional[int] = None
    is_active: bool


# Dashboard schemas
class DashboardDataRequest(BaseModel):
    """Widget data envelope. Missing fields are reported as 400 by the handler."""

    widget_type: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


# Impersonation schemas
class ImpersonationStart(BaseModel):
    """Schema for starting an impersonation session."""

    target_person_id: UUID
    target_account_id: UUID
    reason: Optional[str] = Field(None, max_length=1000)


class ImpersonationSessionResponse(BaseResponse):
    """Schema for impersonation session response."""

    id: UUID
    admin_person_id: UUID
    target_person_id: UUID
    target_account_id: UUID
    target_account_role: str
    reason: Optional[str] = None
    status: str
    started_at: datetime
    expires_at: datetime
    ended_at: Optional[datetime] = None
