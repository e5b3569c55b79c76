"""
Service Request Service - the case lifecycle engine.

Every status change runs through ``stage_transition`` (validate against the
transition table, append history, stamp timestamps, apply the progress
floor) followed by ``commit_service_request`` and ``after_status_changes``
(audit, notifications, realtime). The write commits first; side effects run
afterwards and never undo it.
"""

import logging
import math
from datetime import datetime
from uuid import UUID

from fastapi import Request
from sqlalchemy import case, func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.access import (
    agent_approval_pending,
    check_service_request_access,
    scope_service_requests,
)
from app.core.errors import (
    Duplicate,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
    StaleWrite,
    ValidationFailed,
)
from app.core.state_machines import (
    SERVICE_REQUEST_PROGRESS_FLOOR,
    SERVICE_REQUEST_TRANSITIONS,
    is_valid_transition,
    next_statuses,
)
from app.db.base import utcnow
from app.db.enums import (
    TERMINAL_SERVICE_REQUEST_STATUSES,
    AgentApprovalStatus,
    AuditAction,
    AuditEntityType,
    HistoryEvent,
    Priority,
    Role,
    ServiceRequestStatus,
    ServiceType,
)
from app.db.models import (
    ServiceRequest,
    ServiceRequestNote,
    ServiceRequestStatusHistory,
    Student,
    User,
)
from app.schemas.auth import UserSession
from app.schemas.service_request import ServiceRequestRead
from app.services import audit_service, notification_facade, realtime_events, user_service

logger = logging.getLogger(__name__)

SR = ServiceRequestStatus

# Statuses that keep the progress they had instead of applying a floor
_NO_FLOOR = {SR.ON_HOLD, SR.CANCELLED}


# =============================================================================
# Loading and presentation
# =============================================================================


def get_service_request(
    db: Session,
    sr_id: UUID,
    session: UserSession,
    *,
    modify: bool = False,
) -> ServiceRequest:
    """Load a case and run the access predicate on it."""
    return check_service_request_access(db.get(ServiceRequest, sr_id), session, modify=modify)


def allowed_transitions(sr: ServiceRequest) -> list[str]:
    return next_statuses(SERVICE_REQUEST_TRANSITIONS, SR(sr.status))


def to_read(sr: ServiceRequest, session: UserSession) -> ServiceRequestRead:
    """Full case view; internal notes are hidden from students."""
    read = ServiceRequestRead.model_validate(sr)
    return read.model_copy(
        update={
            "notes": [n for n in read.notes if session.role != Role.STUDENT or not n.is_internal],
            "allowed_transitions": allowed_transitions(sr),
        }
    )


def is_terminal(sr: ServiceRequest) -> bool:
    return SR(sr.status) in TERMINAL_SERVICE_REQUEST_STATUSES


# =============================================================================
# Transition primitive
# =============================================================================


def record_history(
    sr: ServiceRequest,
    event: HistoryEvent,
    from_status: str | None,
    to_status: str,
    actor_id: UUID | None,
    note: str | None = None,
) -> ServiceRequestStatusHistory:
    entry = ServiceRequestStatusHistory(
        seq=len(sr.status_history) + 1,
        event=event.value,
        from_status=from_status,
        to_status=to_status,
        changed_by_user_id=actor_id,
        note=note,
        changed_at=utcnow(),
    )
    sr.status_history.append(entry)
    return entry


def stage_transition(
    sr: ServiceRequest,
    target: ServiceRequestStatus,
    actor_id: UUID | None,
    note: str | None = None,
) -> tuple[str, str]:
    """
    Apply one permitted status change in memory (no commit).

    Returns:
        (from_status, to_status)

    Raises:
        InvalidTransition: ``target`` is not permitted from the current status
    """
    current = SR(sr.status)
    target = SR(target)
    if not is_valid_transition(SERVICE_REQUEST_TRANSITIONS, current, target):
        raise InvalidTransition(
            current.value,
            next_statuses(SERVICE_REQUEST_TRANSITIONS, current),
            f"Cannot transition service request from {current.value} to {target.value}",
        )

    now = utcnow()
    sr.status = target.value
    record_history(sr, HistoryEvent.STATUS_CHANGE, current.value, target.value, actor_id, note)

    if target not in _NO_FLOOR:
        sr.progress = max(sr.progress, SERVICE_REQUEST_PROGRESS_FLOOR.get(target, 0))
    if target == SR.COMPLETED:
        sr.progress = 100
        sr.completed_at = now
    elif target == SR.CANCELLED:
        sr.cancelled_at = now

    return current.value, target.value


def stage_completion(sr: ServiceRequest, actor_id: UUID | None, note: str | None = None) -> list[tuple[str, str]]:
    """
    Move a case to COMPLETED, stepping through IN_PROGRESS when the current
    status cannot complete directly (assigned, waiting, on hold).
    """
    changes = []
    current = SR(sr.status)
    if current == SR.COMPLETED:
        return changes
    if (
        not is_valid_transition(SERVICE_REQUEST_TRANSITIONS, current, SR.COMPLETED)
        and is_valid_transition(SERVICE_REQUEST_TRANSITIONS, current, SR.IN_PROGRESS)
    ):
        changes.append(stage_transition(sr, SR.IN_PROGRESS, actor_id, note))
    changes.append(stage_transition(sr, SR.COMPLETED, actor_id, note))
    return changes


def commit_service_request(db: Session, sr: ServiceRequest) -> None:
    """
    Commit a staged case write. The version column makes the UPDATE a
    compare-and-set, so a writer that lost a race fails here.

    Raises:
        StaleWrite: another writer committed first
    """
    sr_id = sr.id
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Stale write on service request %s", sr_id)
        current = db.get(ServiceRequest, sr_id)
        raise StaleWrite(currentStatus=current.status if current else None) from exc
    db.refresh(sr)


def after_status_changes(
    db: Session,
    sr: ServiceRequest,
    changes: list[tuple[str, str]],
    session: UserSession,
    request: Request | None = None,
    notify: bool = True,
) -> None:
    """Audit each committed change, then notify and broadcast once."""
    for from_status, to_status in changes:
        audit_service.log_for_session(
            db, session, AuditAction.SERVICE_REQUEST_STATUS_CHANGED,
            AuditEntityType.SERVICE_REQUEST, sr.id,
            previous_state={"status": from_status},
            new_state={"status": to_status},
            request=request,
        )

    if changes and notify:
        first_from, last_to = changes[0][0], changes[-1][1]
        if last_to == SR.COMPLETED.value:
            notification_facade.service_completed(db, sr)
        else:
            notification_facade.service_request_status_changed(db, sr, first_from, last_to)

    realtime_events.broadcast_service_request_update(sr)


def transition(
    db: Session,
    sr: ServiceRequest,
    target: ServiceRequestStatus,
    session: UserSession,
    note: str | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    """Validate, write and announce one status change."""
    target = SR(target)
    if target == SR.ASSIGNED and not (sr.assigned_counselor_id or sr.assigned_agent_id):
        raise PreconditionFailed(
            "Assign a counselor or agent to move this request to ASSIGNED",
            currentStatus=sr.status,
        )

    changes = [stage_transition(sr, target, session.user_id, note)]
    commit_service_request(db, sr)
    after_status_changes(db, sr, changes, session, request)
    return sr


# =============================================================================
# Creation
# =============================================================================


def find_open_duplicate(db: Session, student_id: UUID, service_type: ServiceType) -> ServiceRequest | None:
    return db.query(ServiceRequest).filter(
        ServiceRequest.student_id == student_id,
        ServiceRequest.service_type == service_type.value,
        ServiceRequest.status.notin_([s.value for s in TERMINAL_SERVICE_REQUEST_STATUSES]),
    ).first()


def _ensure_no_open_duplicate(db: Session, student_id: UUID, service_type: ServiceType) -> None:
    existing = find_open_duplicate(db, student_id, service_type)
    if existing:
        raise Duplicate(
            "An active request for this service already exists",
            status_code=400,
            existingRequestId=str(existing.id),
            currentStatus=existing.status,
        )


def _new_service_request(
    student: Student,
    service_type: ServiceType,
    actor_id: UUID,
    note: str | None,
    **fields,
) -> ServiceRequest:
    sr = ServiceRequest(
        student_id=student.id,
        service_type=service_type.value,
        status=SR.PENDING_ADMIN_ASSIGNMENT.value,
        progress=SERVICE_REQUEST_PROGRESS_FLOOR[SR.PENDING_ADMIN_ASSIGNMENT],
        requested_by_id=actor_id,
        applied_at=utcnow(),
        documents=[],
        meta={},
        **fields,
    )
    record_history(sr, HistoryEvent.STATUS_CHANGE, None, sr.status, actor_id, note)
    if note:
        sr.notes.append(ServiceRequestNote(text=note, added_by_id=actor_id, is_internal=False))
    if service_type.value not in student.selected_services:
        student.selected_services = [*student.selected_services, service_type.value]
    return sr


def create_for_student(
    db: Session,
    session: UserSession,
    service_type: ServiceType,
    notes: str | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    """
    Student applies for a service.

    Raises:
        Duplicate (400): the student already has a non-terminal request of this type
    """
    student = db.get(Student, session.student_id) if session.student_id else None
    if not student:
        raise NotFound("Student profile not found")

    _ensure_no_open_duplicate(db, student.id, service_type)
    sr = _new_service_request(student, service_type, session.user_id, notes)
    db.add(sr)
    db.commit()
    db.refresh(sr)

    audit_service.log_for_session(
        db, session, AuditAction.SERVICE_APPLIED, AuditEntityType.SERVICE_REQUEST, sr.id,
        new_state={"status": sr.status},
        details={"serviceType": sr.service_type},
        request=request,
    )
    notification_facade.service_request_created(db, sr)
    realtime_events.broadcast_service_request_update(sr)
    return sr


def create_for_agent(
    db: Session,
    session: UserSession,
    student_id: UUID,
    service_type: ServiceType,
    notes: str | None = None,
    priority: Priority = Priority.MEDIUM,
    deadline: datetime | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    """
    Agent applies on behalf of one of their students. The request waits for
    super_admin approval before the agent may act on it.
    """
    student = db.get(Student, student_id)
    if not student or not user_service.agent_owns_student(student, session.user_id):
        raise NotFound("Student not found")

    _ensure_no_open_duplicate(db, student.id, service_type)
    sr = _new_service_request(
        student,
        service_type,
        session.user_id,
        notes,
        priority=priority.value,
        deadline=deadline,
        assigned_agent_id=session.user_id,
        is_agent_initiated=True,
        agent_approval_status=AgentApprovalStatus.PENDING_APPROVAL.value,
    )
    db.add(sr)
    db.commit()
    db.refresh(sr)

    audit_service.log_for_session(
        db, session, AuditAction.SERVICE_APPLIED, AuditEntityType.SERVICE_REQUEST, sr.id,
        new_state={"status": sr.status, "agentApprovalStatus": sr.agent_approval_status},
        details={"serviceType": sr.service_type, "agentInitiated": True},
        request=request,
    )
    notification_facade.service_request_created(db, sr)
    realtime_events.broadcast_service_request_update(sr)
    return sr


# =============================================================================
# Assignment and approval (super_admin)
# =============================================================================


def _require_assignee(db: Session, user_id: UUID, role: Role, label: str) -> User:
    user = db.get(User, user_id)
    if not user or not user.is_active or user.role != role.value:
        raise ValidationFailed(f"Assigned {label} must be an active {label}")
    return user


def assign(
    db: Session,
    sr: ServiceRequest,
    session: UserSession,
    counselor_id: UUID | None = None,
    agent_id: UUID | None = None,
    note: str | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    """
    Assign (or reassign, before work starts) a counselor and/or agent.

    Raises:
        ValidationFailed: no assignee, or an assignee of the wrong role
        InvalidTransition: work on the case has already started
        PreconditionFailed: agent request still awaiting approval
    """
    if not counselor_id and not agent_id:
        raise ValidationFailed("assignedCounselor or assignedAgent is required")

    current = SR(sr.status)
    if current not in (SR.PENDING_ADMIN_ASSIGNMENT, SR.ASSIGNED):
        raise InvalidTransition(
            current.value,
            allowed_transitions(sr),
            "Service request can only be assigned before work starts",
        )
    if agent_approval_pending(sr):
        raise PreconditionFailed(
            "Agent-initiated request must be approved before assignment",
            approvalStatus=sr.agent_approval_status,
        )

    if counselor_id:
        _require_assignee(db, counselor_id, Role.COUNSELOR, "counselor")
    if agent_id:
        _require_assignee(db, agent_id, Role.AGENT, "agent")

    previous = {
        "status": sr.status,
        "assignedCounselor": str(sr.assigned_counselor_id) if sr.assigned_counselor_id else None,
        "assignedAgent": str(sr.assigned_agent_id) if sr.assigned_agent_id else None,
    }

    if counselor_id:
        sr.assigned_counselor_id = counselor_id
    if agent_id:
        sr.assigned_agent_id = agent_id
    sr.assigned_by_id = session.user_id
    sr.assigned_at = utcnow()

    student = sr.student
    if counselor_id and student.assigned_counselor_id is None:
        student.assigned_counselor_id = counselor_id
    if agent_id and student.assigned_agent_id is None:
        student.assigned_agent_id = agent_id

    changes = []
    if current == SR.PENDING_ADMIN_ASSIGNMENT:
        changes.append(stage_transition(sr, SR.ASSIGNED, session.user_id, note))
    commit_service_request(db, sr)

    audit_service.log_for_session(
        db, session, AuditAction.SERVICE_REQUEST_ASSIGNED, AuditEntityType.SERVICE_REQUEST, sr.id,
        previous_state=previous,
        new_state={
            "status": sr.status,
            "assignedCounselor": str(sr.assigned_counselor_id) if sr.assigned_counselor_id else None,
            "assignedAgent": str(sr.assigned_agent_id) if sr.assigned_agent_id else None,
        },
        request=request,
    )
    assignees = [uid for uid in (counselor_id, agent_id) if uid]
    # Assignment has its own notification; the status change is not announced twice
    after_status_changes(db, sr, changes, session, request, notify=False)
    notification_facade.service_request_assigned(db, sr, assignees)
    return sr


def _require_pending_approval(sr: ServiceRequest) -> None:
    if not sr.is_agent_initiated:
        raise PreconditionFailed("Not an agent-initiated request")
    if sr.agent_approval_status != AgentApprovalStatus.PENDING_APPROVAL.value:
        raise PreconditionFailed(
            "Request has already been reviewed",
            approvalStatus=sr.agent_approval_status,
        )


def approve_agent_request(
    db: Session,
    sr: ServiceRequest,
    session: UserSession,
    notes: str | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    """Approve an agent-initiated request; it becomes ASSIGNED to the requesting agent."""
    _require_pending_approval(sr)

    now = utcnow()
    sr.agent_approval_status = AgentApprovalStatus.APPROVED.value
    sr.approved_by_id = session.user_id
    sr.approved_at = now
    sr.approval_notes = notes
    record_history(sr, HistoryEvent.AGENT_REQUEST_APPROVED, sr.status, sr.status, session.user_id, notes)

    changes = []
    if SR(sr.status) == SR.PENDING_ADMIN_ASSIGNMENT:
        sr.assigned_by_id = session.user_id
        sr.assigned_at = now
        changes.append(stage_transition(sr, SR.ASSIGNED, session.user_id, notes))
    commit_service_request(db, sr)

    audit_service.log_for_session(
        db, session, AuditAction.AGENT_REQUEST_APPROVED, AuditEntityType.SERVICE_REQUEST, sr.id,
        previous_state={"agentApprovalStatus": AgentApprovalStatus.PENDING_APPROVAL.value},
        new_state={"agentApprovalStatus": sr.agent_approval_status, "status": sr.status},
        request=request,
    )
    after_status_changes(db, sr, changes, session, request, notify=False)
    notification_facade.agent_request_approved(db, sr)
    return sr


def reject_agent_request(
    db: Session,
    sr: ServiceRequest,
    session: UserSession,
    reason: str,
    request: Request | None = None,
) -> ServiceRequest:
    """Reject an agent-initiated request; the case is cancelled."""
    if not reason or not reason.strip():
        raise ValidationFailed("A rejection reason is required")
    _require_pending_approval(sr)

    sr.agent_approval_status = AgentApprovalStatus.REJECTED.value
    sr.rejected_at = utcnow()
    sr.approval_notes = reason
    changes = [stage_transition(sr, SR.CANCELLED, session.user_id, reason)]
    commit_service_request(db, sr)

    audit_service.log_for_session(
        db, session, AuditAction.AGENT_REQUEST_REJECTED, AuditEntityType.SERVICE_REQUEST, sr.id,
        previous_state={"agentApprovalStatus": AgentApprovalStatus.PENDING_APPROVAL.value},
        new_state={"agentApprovalStatus": sr.agent_approval_status, "status": sr.status},
        details={"reason": reason},
        request=request,
    )
    after_status_changes(db, sr, changes, session, request, notify=False)
    notification_facade.agent_request_rejected(db, sr, reason)
    return sr


# =============================================================================
# Progress, deadline, priority
# =============================================================================


def _require_open(sr: ServiceRequest) -> None:
    if is_terminal(sr):
        raise PreconditionFailed(
            f"Service request is {sr.status} and can no longer be changed",
            currentStatus=sr.status,
        )


def update_progress(
    db: Session,
    sr: ServiceRequest,
    progress: int,
    session: UserSession,
    note: str | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    """
    Manual progress update. The value is clamped to [0, 100] and never lowers
    progress; reaching 100 completes the case.
    """
    _require_open(sr)

    previous = sr.progress
    effective = max(previous, max(0, min(100, progress)))

    if effective == 100 and SR(sr.status) == SR.PENDING_ADMIN_ASSIGNMENT:
        raise InvalidTransition(
            sr.status,
            allowed_transitions(sr),
            "An unassigned request cannot be completed",
        )

    sr.progress = effective
    record_history(
        sr, HistoryEvent.PROGRESS_UPDATE, sr.status, sr.status, session.user_id,
        note or f"Progress {previous}% -> {effective}%",
    )
    changes = stage_completion(sr, session.user_id, note) if effective == 100 else []
    commit_service_request(db, sr)

    audit_service.log_for_session(
        db, session, AuditAction.SERVICE_REQUEST_PROGRESS_UPDATED,
        AuditEntityType.SERVICE_REQUEST, sr.id,
        previous_state={"progress": previous},
        new_state={"progress": sr.progress},
        details={"requested": progress},
        request=request,
    )
    after_status_changes(db, sr, changes, session, request)
    return sr


def update_deadline(
    db: Session,
    sr: ServiceRequest,
    deadline: datetime | None,
    session: UserSession,
    note: str | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    _require_open(sr)

    previous = sr.deadline
    sr.deadline = deadline
    record_history(
        sr, HistoryEvent.DEADLINE_UPDATE, sr.status, sr.status, session.user_id,
        note or f"Deadline set to {deadline.isoformat() if deadline else 'none'}",
    )
    commit_service_request(db, sr)

    audit_service.log_for_session(
        db, session, AuditAction.SERVICE_REQUEST_DEADLINE_UPDATED,
        AuditEntityType.SERVICE_REQUEST, sr.id,
        previous_state={"deadline": previous.isoformat() if previous else None},
        new_state={"deadline": sr.deadline.isoformat() if sr.deadline else None},
        request=request,
    )
    realtime_events.broadcast_service_request_update(sr)
    return sr


def update_priority(
    db: Session,
    sr: ServiceRequest,
    priority: Priority,
    session: UserSession,
    note: str | None = None,
    request: Request | None = None,
) -> ServiceRequest:
    _require_open(sr)

    previous = sr.priority
    sr.priority = Priority(priority).value
    record_history(
        sr, HistoryEvent.PRIORITY_UPDATE, sr.status, sr.status, session.user_id,
        note or f"Priority {previous} -> {sr.priority}",
    )
    commit_service_request(db, sr)

    audit_service.log_for_session(
        db, session, AuditAction.SERVICE_REQUEST_PRIORITY_UPDATED,
        AuditEntityType.SERVICE_REQUEST, sr.id,
        previous_state={"priority": previous},
        new_state={"priority": sr.priority},
        request=request,
    )
    realtime_events.broadcast_service_request_update(sr)
    return sr


def recompute_progress_from_tasks(
    db: Session,
    sr: ServiceRequest,
    completed: int,
    total: int,
    session: UserSession,
) -> list[tuple[str, str]] | None:
    """
    Stage ``progress = max(progress, ceil(completed / total * 100))`` and the
    completion it may trigger.

    Returns:
        The staged status changes, or None when progress is unchanged
    """
    if total <= 0 or is_terminal(sr):
        return None
    derived = math.ceil(completed * 100 / total)
    effective = max(sr.progress, derived)
    if effective == sr.progress and effective < 100:
        return None

    previous = sr.progress
    sr.progress = effective
    record_history(
        sr, HistoryEvent.PROGRESS_UPDATE, sr.status, sr.status, session.user_id,
        f"{completed}/{total} tasks completed: {previous}% -> {effective}%",
    )
    if effective == 100:
        return stage_completion(sr, session.user_id, "All tasks completed")
    return []


# =============================================================================
# Notes
# =============================================================================


def add_note(
    db: Session,
    sr_id: UUID,
    session: UserSession,
    text: str,
    is_internal: bool = False,
    request: Request | None = None,
) -> ServiceRequestNote:
    """Students may add (public) notes to their own cases; advisors need write access."""
    if session.role == Role.STUDENT:
        sr = get_service_request(db, sr_id, session)
        is_internal = False
    else:
        sr = get_service_request(db, sr_id, session, modify=True)

    note = ServiceRequestNote(
        service_request_id=sr.id,
        text=text.strip(),
        added_by_id=session.user_id,
        is_internal=is_internal,
    )
    db.add(note)
    db.commit()
    db.refresh(note)

    audit_service.log_for_session(
        db, session, AuditAction.SERVICE_REQUEST_NOTE_ADDED, AuditEntityType.SERVICE_REQUEST, sr.id,
        details={"noteId": str(note.id), "isInternal": is_internal},
        request=request,
    )
    return note


# =============================================================================
# Queries
# =============================================================================


def list_query(
    db: Session,
    session: UserSession,
    status: ServiceRequestStatus | None = None,
    service_type: ServiceType | None = None,
    is_agent_initiated: bool | None = None,
):
    """Role-scoped case query, most recently updated first."""
    query = scope_service_requests(db.query(ServiceRequest), session)
    if status:
        query = query.filter(ServiceRequest.status == status.value)
    if service_type:
        query = query.filter(ServiceRequest.service_type == service_type.value)
    if is_agent_initiated is not None:
        query = query.filter(ServiceRequest.is_agent_initiated.is_(is_agent_initiated))
    return query.order_by(ServiceRequest.updated_at.desc())


def agent_pipeline_query(db: Session, session: UserSession, status: ServiceRequestStatus | None = None):
    """Agent's cases ordered by urgency then deadline."""
    priority_rank = {
        Priority.URGENT.value: 0,
        Priority.HIGH.value: 1,
        Priority.MEDIUM.value: 2,
        Priority.LOW.value: 3,
    }
    query = scope_service_requests(db.query(ServiceRequest), session)
    if status:
        query = query.filter(ServiceRequest.status == status.value)
    return query.order_by(
        case(priority_rank, value=ServiceRequest.priority, else_=4),
        ServiceRequest.deadline.is_(None),
        ServiceRequest.deadline.asc(),
        ServiceRequest.updated_at.desc(),
    )


def pending_assignments_query(db: Session):
    """Cases waiting for an admin, excluding agent requests still under review."""
    return db.query(ServiceRequest).filter(
        ServiceRequest.status == SR.PENDING_ADMIN_ASSIGNMENT.value,
        ServiceRequest.is_agent_initiated.is_(False),
    ).order_by(ServiceRequest.applied_at.asc())


def agent_requests_query(db: Session, approval_status: AgentApprovalStatus | None = None):
    query = db.query(ServiceRequest).filter(ServiceRequest.is_agent_initiated.is_(True))
    if approval_status:
        query = query.filter(ServiceRequest.agent_approval_status == approval_status.value)
    return query.order_by(ServiceRequest.applied_at.desc())


def pending_agent_request_count(db: Session) -> int:
    return agent_requests_query(db, AgentApprovalStatus.PENDING_APPROVAL).count()


def get_stats(db: Session) -> dict:
    by_status = dict(
        db.query(ServiceRequest.status, func.count(ServiceRequest.id)).group_by(ServiceRequest.status).all()
    )
    by_type = dict(
        db.query(ServiceRequest.service_type, func.count(ServiceRequest.id))
        .group_by(ServiceRequest.service_type)
        .all()
    )
    return {"total": sum(by_status.values()), "byStatus": by_status, "byServiceType": by_type}
