"""Enum definitions for application constants."""

from app.db.enums.applications import ApplicationAssigner, ApplicationStatus
from app.db.enums.audit import AuditAction, AuditEntityType
from app.db.enums.auth import ADVISOR_ROLES, DASHBOARD_URLS, Role, StudentDocumentSlot
from app.db.enums.chat import MessageType
from app.db.enums.notifications import (
    NotificationBulkAction,
    NotificationChannel,
    NotificationPriority,
    NotificationTargetType,
    NotificationType,
)
from app.db.enums.service_requests import (
    TERMINAL_SERVICE_REQUEST_STATUSES,
    AgentApprovalStatus,
    HistoryEvent,
    Priority,
    ServiceRequestStatus,
    ServiceType,
)
from app.db.enums.tasks import DELETABLE_TASK_STATUSES, TaskStatus, TaskType

__all__ = [
    "ADVISOR_ROLES",
    "AgentApprovalStatus",
    "ApplicationAssigner",
    "ApplicationStatus",
    "AuditAction",
    "AuditEntityType",
    "DASHBOARD_URLS",
    "DELETABLE_TASK_STATUSES",
    "HistoryEvent",
    "MessageType",
    "NotificationBulkAction",
    "NotificationChannel",
    "NotificationPriority",
    "NotificationTargetType",
    "NotificationType",
    "Priority",
    "Role",
    "ServiceRequestStatus",
    "ServiceType",
    "StudentDocumentSlot",
    "TERMINAL_SERVICE_REQUEST_STATUSES",
    "TaskStatus",
    "TaskType",
]
