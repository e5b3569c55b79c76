"""Audit enums."""

from enum import Enum


class AuditAction(str, Enum):
    """Audited actions, grouped by entity."""

    # Security
    LOGIN = "login"
    SIGNUP = "signup"
    USER_CREATED = "user_created"
    USER_STATUS_CHANGED = "user_status_changed"
    STUDENT_REFERRED = "student_referred"

    # Student profiles
    STUDENT_ONBOARDED = "student_onboarded"
    STUDENT_PROFILE_UPDATED = "student_profile_updated"
    STUDENT_DOCUMENT_DELETED = "student_document_deleted"

    # Service requests
    SERVICE_APPLIED = "service_applied"
    SERVICE_REQUEST_ASSIGNED = "service_request_assigned"
    SERVICE_REQUEST_STATUS_CHANGED = "service_request_status_changed"
    SERVICE_REQUEST_PROGRESS_UPDATED = "service_request_progress_updated"
    SERVICE_REQUEST_DEADLINE_UPDATED = "service_request_deadline_updated"
    SERVICE_REQUEST_PRIORITY_UPDATED = "service_request_priority_updated"
    SERVICE_REQUEST_NOTE_ADDED = "service_request_note_added"
    AGENT_REQUEST_APPROVED = "agent_request_approved"
    AGENT_REQUEST_REJECTED = "agent_request_rejected"

    # Tasks
    TASK_CREATED = "task_created"
    TASK_SUBMITTED = "task_submitted"
    TASK_REVIEWED = "task_reviewed"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_DELETED = "task_deleted"

    # Applications
    APPLICATION_CREATED = "application_created"
    APPLICATION_STATUS_CHANGED = "application_status_changed"
    APPLICATION_DOCUMENT_UPLOADED = "application_document_uploaded"
    APPLICATION_REMARK_ADDED = "application_remark_added"
    APPLICATION_CHECKLIST_UPDATED = "application_checklist_updated"
    APPLICATION_DELETED = "application_deleted"

    # Files
    FILE_UPLOADED = "file_uploaded"
    FILE_DELETED = "file_deleted"


class AuditEntityType(str, Enum):
    USER = "user"
    STUDENT = "student"
    SERVICE_REQUEST = "service_request"
    TASK = "task"
    APPLICATION = "application"
    FILE = "file"
