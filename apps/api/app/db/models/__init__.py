"""SQLAlchemy ORM models."""

from app.db.models.applications import Application
from app.db.models.audit import AuditLog
from app.db.models.auth import Student, User
from app.db.models.chat import Message
from app.db.models.notifications import Notification
from app.db.models.service_requests import (
    ServiceRequest,
    ServiceRequestNote,
    ServiceRequestStatusHistory,
)
from app.db.models.tasks import Task

__all__ = [
    "Application",
    "AuditLog",
    "Message",
    "Notification",
    "ServiceRequest",
    "ServiceRequestNote",
    "ServiceRequestStatusHistory",
    "Student",
    "Task",
    "User",
]
