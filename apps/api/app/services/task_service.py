"""Task service - tasks an advisor assigns back to the student inside a case."""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.access import check_task_access, check_task_assignee, scope_tasks
from app.core.errors import AccessDenied, InvalidTransition, PreconditionFailed, StaleWrite
from app.core.state_machines import TASK_TRANSITIONS, is_valid_transition, next_statuses
from app.db.base import utcnow
from app.db.enums import (
    DELETABLE_TASK_STATUSES,
    AuditAction,
    AuditEntityType,
    Priority,
    Role,
    ServiceRequestStatus,
    TaskStatus,
    TaskType,
)
from app.db.models import Task
from app.schemas.auth import UserSession
from app.services import (
    audit_service,
    notification_facade,
    realtime_events,
    service_request_service,
    task_events,
)

logger = logging.getLogger(__name__)

T = TaskStatus
SR = ServiceRequestStatus

# Statuses a student may move their own task out of (into IN_PROGRESS)
STUDENT_STARTABLE = {T.PENDING, T.REVISION_REQUIRED}


def get_task(db: Session, task_id: UUID, session: UserSession, *, modify: bool = False) -> Task:
    return check_task_access(db.get(Task, task_id), session, modify=modify)


def allowed_transitions(task: Task) -> list[str]:
    return next_statuses(TASK_TRANSITIONS, T(task.status))


def _invalid(task: Task, target: TaskStatus) -> InvalidTransition:
    return InvalidTransition(
        task.status,
        allowed_transitions(task),
        f"Cannot transition task from {task.status} to {target.value}",
    )


def _stage_status(task: Task, target: TaskStatus, actor_id: UUID, note: str | None = None) -> tuple[str, str]:
    """Apply one permitted task status change in memory."""
    current = T(task.status)
    target = T(target)
    if not is_valid_transition(TASK_TRANSITIONS, current, target):
        raise _invalid(task, target)

    now = utcnow()
    task.status = target.value
    task.status_history = [
        *task.status_history,
        {
            "fromStatus": current.value,
            "toStatus": target.value,
            "changedBy": str(actor_id),
            "changedAt": now.isoformat(),
            "note": note,
        },
    ]
    if target == T.COMPLETED:
        task.completed_at = now
    return current.value, target.value


def _commit(db: Session, task: Task) -> None:
    task_id = task.id
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Stale write on task %s", task_id)
        current = db.get(Task, task_id)
        raise StaleWrite(currentStatus=current.status if current else None) from exc
    db.refresh(task)


def _audit_status(
    db: Session,
    session: UserSession,
    task: Task,
    action: AuditAction,
    changes: list[tuple[str, str]],
    request: Request | None,
    **details,
) -> None:
    previous = changes[0][0] if changes else task.status
    audit_service.log_for_session(
        db, session, action, AuditEntityType.TASK, task.id,
        previous_state={"status": previous},
        new_state={"status": task.status},
        details=details or None,
        request=request,
    )


# =============================================================================
# Create
# =============================================================================


def create_task(
    db: Session,
    session: UserSession,
    service_request_id: UUID,
    title: str,
    task_type: TaskType = TaskType.OTHER,
    description: str = "",
    instructions: str | None = None,
    priority: Priority = Priority.MEDIUM,
    due_date: datetime | None = None,
    request: Request | None = None,
) -> Task:
    """
    Create a task on a case, assigned to the case's student.

    The first task on an ASSIGNED case moves the case to IN_PROGRESS.
    """
    sr = service_request_service.get_service_request(db, service_request_id, session, modify=True)
    if SR(sr.status) == SR.PENDING_ADMIN_ASSIGNMENT or service_request_service.is_terminal(sr):
        raise PreconditionFailed(
            f"Tasks cannot be created while the request is {sr.status}",
            currentStatus=sr.status,
        )

    now = utcnow()
    task = Task(
        service_request_id=sr.id,
        task_type=TaskType(task_type).value,
        title=title.strip(),
        description=description or "",
        instructions=instructions,
        assigned_to_id=sr.student.user_id,
        assigned_by_id=session.user_id,
        status=T.PENDING.value,
        priority=Priority(priority).value,
        due_date=due_date,
        revision_history=[],
        pending_files=[],
        status_history=[
            {
                "fromStatus": None,
                "toStatus": T.PENDING.value,
                "changedBy": str(session.user_id),
                "changedAt": now.isoformat(),
                "note": None,
            }
        ],
    )
    db.add(task)

    sr_changes = []
    if SR(sr.status) == SR.ASSIGNED:
        sr_changes.append(
            service_request_service.stage_transition(sr, SR.IN_PROGRESS, session.user_id, "Work started")
        )
    service_request_service.commit_service_request(db, sr)
    db.refresh(task)

    audit_service.log_for_session(
        db, session, AuditAction.TASK_CREATED, AuditEntityType.TASK, task.id,
        new_state={"status": task.status},
        details={"serviceRequestId": str(sr.id), "taskType": task.task_type},
        request=request,
    )
    if sr_changes:
        service_request_service.after_status_changes(db, sr, sr_changes, session, request)

    notification_facade.task_assigned(db, task)
    realtime_events.broadcast_task_update(task)
    return task


# =============================================================================
# Submit (student)
# =============================================================================


def submit_task(
    db: Session,
    task_id: UUID,
    session: UserSession,
    text: str = "",
    files: list[dict] | None = None,
    request: Request | None = None,
) -> Task:
    """
    Student submits a response. An earlier submission moves into the
    revision history together with the feedback it received.
    """
    task = check_task_assignee(db.get(Task, task_id), session)
    current = T(task.status)
    if current == T.COMPLETED:
        raise PreconditionFailed("Completed tasks cannot be submitted", currentStatus=task.status)
    if current == T.UNDER_REVIEW:
        raise _invalid(task, T.SUBMITTED)

    now = utcnow()
    if task.submission:
        task.revision_history = [
            *task.revision_history,
            {
                "revisionNumber": len(task.revision_history) + 1,
                "submission": task.submission,
                "feedback": task.feedback,
                "movedAt": now.isoformat(),
            },
        ]
        task.feedback = None

    task.submission = {
        "text": text,
        "files": [*(files or []), *task.pending_files],
        "submittedAt": now.isoformat(),
    }
    task.pending_files = []

    changes = []
    if current == T.PENDING:
        changes.append(_stage_status(task, T.IN_PROGRESS, session.user_id))
    if current != T.SUBMITTED:
        changes.append(_stage_status(task, T.SUBMITTED, session.user_id))

    sr = task.service_request
    sr_changes = []
    if SR(sr.status) == SR.WAITING_STUDENT:
        sr_changes.append(
            service_request_service.stage_transition(
                sr, SR.IN_PROGRESS, session.user_id, "Student responded"
            )
        )
    _commit(db, task)

    _audit_status(
        db, session, task, AuditAction.TASK_SUBMITTED, changes, request,
        revision=len(task.revision_history),
    )
    if sr_changes:
        db.refresh(sr)
        service_request_service.after_status_changes(db, sr, sr_changes, session, request)

    notification_facade.task_submitted(db, task)
    realtime_events.broadcast_task_update(task)
    return task


# =============================================================================
# Review (advisor)
# =============================================================================


def review_task(
    db: Session,
    task_id: UUID,
    session: UserSession,
    feedback: str,
    requires_revision: bool = False,
    rating: int | None = None,
    request: Request | None = None,
) -> Task:
    """Attach feedback and complete the task or send it back for revision."""
    task = get_task(db, task_id, session, modify=True)
    if T(task.status) not in (T.SUBMITTED, T.UNDER_REVIEW):
        raise PreconditionFailed(
            "Only submitted tasks can be reviewed",
            currentStatus=task.status,
            allowedTransitions=allowed_transitions(task),
        )

    target = T.REVISION_REQUIRED if requires_revision else T.COMPLETED
    task.feedback = {
        "text": feedback,
        "providedBy": str(session.user_id),
        "providedAt": utcnow().isoformat(),
        "rating": rating,
    }
    changes = [_stage_status(task, target, session.user_id)]
    _commit(db, task)

    _audit_status(
        db, session, task, AuditAction.TASK_REVIEWED, changes, request,
        requiresRevision=requires_revision,
    )
    notification_facade.task_reviewed(db, task, requires_revision)
    realtime_events.broadcast_task_update(task)

    if target == T.COMPLETED:
        task_events.on_task_completed(db, task, session, request)
    return task


# =============================================================================
# Status and delete
# =============================================================================


def change_status(
    db: Session,
    task_id: UUID,
    session: UserSession,
    target: TaskStatus,
    note: str | None = None,
    request: Request | None = None,
) -> Task:
    """
    Run one permitted transition. Students may only start their own task
    (PENDING or REVISION_REQUIRED to IN_PROGRESS).
    """
    target = T(target)
    if session.role == Role.STUDENT:
        task = check_task_assignee(db.get(Task, task_id), session)
        if target != T.IN_PROGRESS or T(task.status) not in STUDENT_STARTABLE:
            raise AccessDenied("Students can only start their own pending tasks")
    else:
        task = get_task(db, task_id, session, modify=True)
        if target == T.COMPLETED and task.submission and not task.feedback:
            raise PreconditionFailed(
                "Submitted tasks are completed through review",
                currentStatus=task.status,
            )

    changes = [_stage_status(task, target, session.user_id, note)]
    _commit(db, task)

    _audit_status(db, session, task, AuditAction.TASK_STATUS_CHANGED, changes, request)
    realtime_events.broadcast_task_update(task)

    if target == T.COMPLETED:
        task_events.on_task_completed(db, task, session, request)
    return task


def delete_task(db: Session, task_id: UUID, session: UserSession, request: Request | None = None) -> None:
    """Only PENDING or IN_PROGRESS tasks can be deleted."""
    task = get_task(db, task_id, session, modify=True)
    if T(task.status) not in DELETABLE_TASK_STATUSES:
        raise PreconditionFailed(
            f"Tasks in {task.status} cannot be deleted",
            currentStatus=task.status,
        )

    snapshot = {"status": task.status, "title": task.title, "serviceRequestId": str(task.service_request_id)}
    db.delete(task)
    db.commit()

    audit_service.log_for_session(
        db, session, AuditAction.TASK_DELETED, AuditEntityType.TASK, task_id,
        previous_state=snapshot,
        request=request,
    )


# =============================================================================
# Queries
# =============================================================================


def list_query(
    db: Session,
    session: UserSession,
    service_request_id: UUID | None = None,
    status: TaskStatus | None = None,
):
    """Role-scoped task query, soonest due first."""
    query = scope_tasks(db.query(Task), session)
    if service_request_id:
        query = query.filter(Task.service_request_id == service_request_id)
    if status:
        query = query.filter(Task.status == status.value)
    return query.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.created_at.desc())


def get_stats(db: Session, session: UserSession, service_request_id: UUID) -> dict:
    """Task counts for one case, restricted to what the caller may see."""
    service_request_service.get_service_request(db, service_request_id, session)
    query = scope_tasks(db.query(Task.status, func.count(Task.id)), session).filter(
        Task.service_request_id == service_request_id
    )
    by_status = dict(query.group_by(Task.status).all())
    total = sum(by_status.values())
    completed = by_status.get(T.COMPLETED.value, 0)
    return {
        "total": total,
        "byStatus": by_status,
        "completionRate": round(completed * 100 / total) if total else 0,
    }

