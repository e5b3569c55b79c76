"""Notification facade for domain services.

Domain services dispatch business events through this module so they do not
depend on notification_service internals. Every function here is
best-effort: delivery problems are logged downstream and never raised.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import Role
from app.db.models import Application, ServiceRequest, Student, Task, User
from app.services import notification_service


# =============================================================================
# Students
# =============================================================================


def student_onboarded(db: Session, student: Student, user: User) -> None:
    notification_service.notify_student_onboarded(db, student, user)


# =============================================================================
# Service requests
# =============================================================================


def service_request_created(db: Session, sr: ServiceRequest) -> None:
    if sr.is_agent_initiated:
        notification_service.notify_service_request_referred(db, sr)
    else:
        notification_service.notify_service_request_created(db, sr)


def service_request_assigned(db: Session, sr: ServiceRequest, assignee_ids: Iterable[UUID]) -> None:
    notification_service.notify_service_request_assigned(db, sr, assignee_ids)


def service_request_status_changed(
    db: Session, sr: ServiceRequest, from_status: str, to_status: str
) -> None:
    notification_service.notify_service_request_status_changed(db, sr, from_status, to_status)


def service_completed(db: Session, sr: ServiceRequest) -> None:
    notification_service.notify_service_completed(db, sr)


def agent_request_approved(db: Session, sr: ServiceRequest) -> None:
    notification_service.notify_agent_request_approved(db, sr)


def agent_request_rejected(db: Session, sr: ServiceRequest, reason: str) -> None:
    notification_service.notify_agent_request_rejected(db, sr, reason)


# =============================================================================
# Tasks
# =============================================================================


def task_assigned(db: Session, task: Task) -> None:
    notification_service.notify_task_assigned(db, task)


def task_submitted(db: Session, task: Task) -> None:
    notification_service.notify_task_submitted(db, task)


def task_reviewed(db: Session, task: Task, requires_revision: bool) -> None:
    notification_service.notify_task_reviewed(db, task, requires_revision)


# =============================================================================
# Applications
# =============================================================================


def application_created(db: Session, application: Application) -> None:
    notification_service.notify_application_created(db, application)


def application_agent_assigned(db: Session, application: Application) -> None:
    notification_service.notify_application_agent_assigned(db, application)


def application_status_changed(
    db: Session, application: Application, from_status: str, to_status: str
) -> None:
    notification_service.notify_application_status_changed(db, application, from_status, to_status)


def offer_accepted(db: Session, application: Application) -> None:
    notification_service.notify_offer_accepted(db, application)


def application_document_uploaded(
    db: Session, application: Application, uploader_role: Role, document_name: str
) -> None:
    notification_service.notify_application_document_uploaded(
        db, application, uploader_role, document_name
    )
