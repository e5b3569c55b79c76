"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of notifications."""

    # Service requests
    SERVICE_REQUEST_CREATED = "SERVICE_REQUEST_CREATED"
    SERVICE_REQUEST_ASSIGNED = "SERVICE_REQUEST_ASSIGNED"
    SERVICE_REQUEST_STATUS_CHANGED = "SERVICE_REQUEST_STATUS_CHANGED"
    SERVICE_REQUEST_APPROVED = "SERVICE_REQUEST_APPROVED"
    SERVICE_REQUEST_REJECTED = "SERVICE_REQUEST_REJECTED"
    SERVICE_COMPLETED = "SERVICE_COMPLETED"
    AGENT_SERVICE_REQUEST_PENDING = "AGENT_SERVICE_REQUEST_PENDING"
    AGENT_REQUEST_APPROVED = "AGENT_REQUEST_APPROVED"

    # Tasks
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_SUBMITTED = "TASK_SUBMITTED"
    TASK_REVIEWED = "TASK_REVIEWED"
    TASK_REVISION_REQUIRED = "TASK_REVISION_REQUIRED"
    TASK_COMPLETED = "TASK_COMPLETED"

    # Applications
    APPLICATION_CREATED = "APPLICATION_CREATED"
    APPLICATION_AGENT_ASSIGNED = "APPLICATION_AGENT_ASSIGNED"
    APPLICATION_STATUS_CHANGED = "APPLICATION_STATUS_CHANGED"
    APPLICATION_DOCUMENT_UPLOADED = "APPLICATION_DOCUMENT_UPLOADED"

    # Generic / admin broadcast
    STATUS_UPDATE = "STATUS_UPDATE"
    GENERAL = "GENERAL"


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    DASHBOARD = "DASHBOARD"
    BOTH = "BOTH"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationTargetType(str, Enum):
    ALL = "ALL"
    ROLE = "ROLE"
    USER = "USER"


class NotificationBulkAction(str, Enum):
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    DELETE = "delete"
    MARK_READ = "mark_read"
