"""Task domain events - the post-commit cascade from tasks to their case."""

from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import AppError, StaleWrite
from app.db.enums import AuditAction, AuditEntityType, TaskStatus
from app.db.models import ServiceRequest, Task
from app.schemas.auth import UserSession
from app.services import audit_service, service_request_service

logger = logging.getLogger(__name__)

CASCADE_ATTEMPTS = 2


def _task_counts(db: Session, sr_id) -> tuple[int, int]:
    total = db.query(func.count(Task.id)).filter(Task.service_request_id == sr_id).scalar() or 0
    completed = (
        db.query(func.count(Task.id))
        .filter(Task.service_request_id == sr_id, Task.status == TaskStatus.COMPLETED.value)
        .scalar()
        or 0
    )
    return completed, total


def on_task_completed(
    db: Session,
    task: Task,
    session: UserSession,
    request: Request | None = None,
) -> ServiceRequest | None:
    """
    Re-derive the parent case's progress from its task counts once a task
    has committed as COMPLETED. Reaching 100% completes the case.

    Runs after the task write, so a failure here is logged and the task
    stays completed. A lost race is retried once against fresh state.
    """
    for attempt in range(1, CASCADE_ATTEMPTS + 1):
        sr = db.get(ServiceRequest, task.service_request_id)
        if sr is None:
            return None

        previous = sr.progress
        completed, total = _task_counts(db, sr.id)
        try:
            changes = service_request_service.recompute_progress_from_tasks(
                db, sr, completed, total, session
            )
            if changes is None:
                return sr
            service_request_service.commit_service_request(db, sr)
        except StaleWrite:
            logger.warning(
                "Task cascade lost a race on service request %s (attempt %s)", sr.id, attempt
            )
            db.expire_all()
            continue
        except AppError:
            db.rollback()
            logger.exception("Task cascade failed for service request %s", task.service_request_id)
            return None

        audit_service.log_for_session(
            db, session, AuditAction.SERVICE_REQUEST_PROGRESS_UPDATED,
            AuditEntityType.SERVICE_REQUEST, sr.id,
            previous_state={"progress": previous},
            new_state={"progress": sr.progress},
            details={"completedTasks": completed, "totalTasks": total, "taskId": str(task.id)},
            request=request,
        )
        service_request_service.after_status_changes(db, sr, changes, session, request)
        return sr

    logger.error("Task cascade gave up on service request %s", task.service_request_id)
    return None
