"""Enums for the TenantDesk application."""

from enum import Enum


class AccountRole(str, Enum):
    """Role of a person inside a tenant account."""

    PORTAL = "portal"
    MEMBER = "member"
    OPERATOR = "operator"
    ADMIN = "admin"


class SystemRole(str, Enum):
    """Platform-wide role stored on a profile."""

    SYSTEM_ADMIN = "system_admin"
    SYSTEM_OPERATOR = "system_operator"
    USER = "user"


class AccountStatus(str, Enum):
    """Lifecycle status of an account."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class MembershipStatus(str, Enum):
    """Status of a membership row."""

    ACTIVE = "active"
    INVITED = "invited"
    INACTIVE = "inactive"


class TicketStatus(str, Enum):
    """Ticket status, declared in pipeline order."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    """Ticket priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RouteType(str, Enum):
    """Kind of target a navigation item points at."""

    VIEW = "view"
    EXTERNAL = "external"
    ADMIN = "admin"


class WidgetType(str, Enum):
    """Dashboard widget types served by the dashboard data endpoint."""

    METRIC = "metric"
    TABLE = "table"
    CHART = "chart"
    ACTIVITY_FEED = "activity_feed"
    PIPELINE = "pipeline"


class ImpersonationStatus(str, Enum):
    """Status of an impersonation session."""

    ACTIVE = "active"
    ENDED = "ended"
    EXPIRED = "expired"


class ErrorCode(str, Enum):
    """Classification of unhandled errors persisted as error events."""

    AUTH_FAILED = "auth_failed"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    DB_ERROR = "db_error"
    TIMEOUT = "timeout"
    EXTERNAL_SERVICE = "external_service"
    INTERNAL = "internal"
