"""Application service - university admissions with a strict status table."""

import logging
import uuid
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.access import check_application_access, scope_applications
from app.core.errors import (
    AccessDenied,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
    StaleWrite,
    ValidationFailed,
)
from app.core.state_machines import APPLICATION_TRANSITIONS, is_valid_transition, next_statuses
from app.db.base import utcnow
from app.db.enums import (
    ApplicationAssigner,
    ApplicationStatus,
    AuditAction,
    AuditEntityType,
    Role,
)
from app.db.models import Application, Student, User
from app.schemas.application import ApplicationRead
from app.schemas.auth import UserSession
from app.services import audit_service, notification_facade, realtime_events, user_service

logger = logging.getLogger(__name__)

A = ApplicationStatus


def get_application(db: Session, application_id: UUID, session: UserSession) -> Application:
    return check_application_access(db.get(Application, application_id), session)


def get_next_statuses(application: Application) -> list[str]:
    return next_statuses(APPLICATION_TRANSITIONS, A(application.status))


def to_read(application: Application) -> ApplicationRead:
    read = ApplicationRead.model_validate(application)
    return read.model_copy(update={"next_statuses": get_next_statuses(application)})


def _timeline_entry(action: str, session: UserSession, **extra) -> dict:
    return {
        "action": action,
        "by": str(session.user_id),
        "byRole": session.role.value,
        "date": utcnow().isoformat(),
        **{k: v for k, v in extra.items() if v is not None},
    }


def _append_timeline(application: Application, entry: dict) -> None:
    application.timeline = [*application.timeline, entry]


def _commit(db: Session, application: Application) -> None:
    application_id = application.id
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Stale write on application %s", application_id)
        current = db.get(Application, application_id)
        raise StaleWrite(currentStatus=current.status if current else None) from exc
    db.refresh(application)


def _require_manager(application: Application, session: UserSession) -> None:
    """Only the owning agent or a super_admin may change an application."""
    if session.role == Role.SUPER_ADMIN:
        return
    if session.role == Role.AGENT and application.agent_id == session.user_id:
        return
    raise AccessDenied("Only the assigned agent or an admin can change this application")


def _broadcast(application: Application, event: str) -> None:
    realtime_events.broadcast_application_update(
        application.id,
        {"applicationId": str(application.id), "status": application.status, "event": event},
    )


# =============================================================================
# Create / assign
# =============================================================================


def _new_application(
    student: Student,
    agent_id: UUID,
    session: UserSession,
    assigned_by: ApplicationAssigner,
    university_name: str,
    program_name: str,
    intake: str,
    country: str | None,
    checklist: list[str],
) -> Application:
    return Application(
        student_id=student.id,
        agent_id=agent_id,
        assigned_by=assigned_by.value,
        assigned_by_user_id=session.user_id,
        university_name=university_name.strip(),
        program_name=program_name.strip(),
        intake=intake.strip(),
        country=country,
        status=A.ASSIGNED.value,
        documents=[],
        remarks=[],
        checklist=[
            {"item": item.strip(), "completed": False, "completedAt": None, "completedBy": None}
            for item in checklist
            if item and item.strip()
        ],
        timeline=[_timeline_entry("created", session, toStatus=A.ASSIGNED.value)],
    )


def _after_create(db: Session, application: Application, session: UserSession, request: Request | None) -> None:
    audit_service.log_for_session(
        db, session, AuditAction.APPLICATION_CREATED, AuditEntityType.APPLICATION, application.id,
        new_state={"status": application.status},
        details={"studentId": str(application.student_id), "agentId": str(application.agent_id)},
        request=request,
    )
    notification_facade.application_created(db, application)
    _broadcast(application, "created")


def create_by_agent(
    db: Session,
    session: UserSession,
    student_id: UUID,
    university_name: str,
    program_name: str,
    intake: str,
    country: str | None = None,
    checklist: list[str] | None = None,
    request: Request | None = None,
) -> Application:
    """Agent opens an application for one of their students."""
    student = db.get(Student, student_id)
    if not student or not user_service.agent_owns_student(student, session.user_id):
        raise NotFound("Student not found")

    application = _new_application(
        student, session.user_id, session, ApplicationAssigner.AGENT,
        university_name, program_name, intake, country, checklist or [],
    )
    db.add(application)
    db.commit()
    db.refresh(application)

    _after_create(db, application, session, request)
    return application


def assign_by_admin(
    db: Session,
    session: UserSession,
    student_id: UUID,
    agent_id: UUID,
    university_name: str,
    program_name: str,
    intake: str,
    country: str | None = None,
    checklist: list[str] | None = None,
    request: Request | None = None,
) -> Application:
    """Admin opens an application and hands it to an active agent."""
    student = db.get(Student, student_id)
    if not student:
        raise ValidationFailed("Student not found")
    agent = db.get(User, agent_id)
    if not agent or not agent.is_active or agent.role != Role.AGENT.value:
        raise ValidationFailed("agentId must reference an active agent")

    application = _new_application(
        student, agent.id, session, ApplicationAssigner.ADMIN,
        university_name, program_name, intake, country, checklist or [],
    )
    db.add(application)
    db.commit()
    db.refresh(application)

    _after_create(db, application, session, request)
    notification_facade.application_agent_assigned(db, application)
    return application


# =============================================================================
# Status
# =============================================================================


def _stage_status(application: Application, target: ApplicationStatus, session: UserSession, note: str | None) -> str:
    current = A(application.status)
    target = A(target)
    if not is_valid_transition(APPLICATION_TRANSITIONS, current, target):
        raise InvalidTransition(
            current.value,
            next_statuses(APPLICATION_TRANSITIONS, current),
            f"Cannot move application from {current.value} to {target.value}",
        )
    application.status = target.value
    _append_timeline(
        application,
        _timeline_entry(
            "status_changed", session, fromStatus=current.value, toStatus=target.value, note=note
        ),
    )
    return current.value


def change_status(
    db: Session,
    application_id: UUID,
    session: UserSession,
    target: ApplicationStatus,
    note: str | None = None,
    request: Request | None = None,
) -> Application:
    """Move an application along the admissions table (agent owner or super_admin)."""
    application = get_application(db, application_id, session)
    _require_manager(application, session)

    previous = _stage_status(application, target, session, note)
    _commit(db, application)

    audit_service.log_for_session(
        db, session, AuditAction.APPLICATION_STATUS_CHANGED, AuditEntityType.APPLICATION, application.id,
        previous_state={"status": previous},
        new_state={"status": application.status},
        request=request,
    )
    notification_facade.application_status_changed(db, application, previous, application.status)
    _broadcast(application, "status_changed")
    return application


def accept_offer(
    db: Session,
    application_id: UUID,
    session: UserSession,
    request: Request | None = None,
) -> Application:
    """The student accepts an offer: Offer Received -> Accepted."""
    application = get_application(db, application_id, session)
    if session.role != Role.STUDENT:
        raise AccessDenied("Only the student can accept an offer")
    if application.status != A.OFFER_RECEIVED.value:
        raise PreconditionFailed(
            "Only an application with an offer can be accepted",
            currentStatus=application.status,
        )

    previous = _stage_status(application, A.ACCEPTED, session, "Offer accepted by student")
    _commit(db, application)

    audit_service.log_for_session(
        db, session, AuditAction.APPLICATION_STATUS_CHANGED, AuditEntityType.APPLICATION, application.id,
        previous_state={"status": previous},
        new_state={"status": application.status},
        details={"acceptedOffer": True},
        request=request,
    )
    notification_facade.offer_accepted(db, application)
    _broadcast(application, "offer_accepted")
    return application


# =============================================================================
# Artifacts
# =============================================================================


def add_remark(
    db: Session,
    application_id: UUID,
    session: UserSession,
    text: str,
    request: Request | None = None,
) -> Application:
    application = get_application(db, application_id, session)
    _require_manager(application, session)

    remark = {
        "text": text.strip(),
        "by": str(session.user_id),
        "byRole": session.role.value,
        "date": utcnow().isoformat(),
    }
    application.remarks = [*application.remarks, remark]
    _append_timeline(application, _timeline_entry("remark_added", session))
    _commit(db, application)

    audit_service.log_for_session(
        db, session, AuditAction.APPLICATION_REMARK_ADDED, AuditEntityType.APPLICATION, application.id,
        request=request,
    )
    _broadcast(application, "remark_added")
    return application


def update_checklist(
    db: Session,
    application_id: UUID,
    session: UserSession,
    index: int | None = None,
    item: str | None = None,
    request: Request | None = None,
) -> Application:
    """``index`` toggles an existing item; ``item`` appends a new one."""
    application = get_application(db, application_id, session)
    _require_manager(application, session)

    checklist = [dict(entry) for entry in application.checklist]
    if index is not None:
        if index >= len(checklist):
            raise ValidationFailed(f"Checklist has no item at index {index}")
        entry = checklist[index]
        entry["completed"] = not entry.get("completed", False)
        entry["completedAt"] = utcnow().isoformat() if entry["completed"] else None
        entry["completedBy"] = str(session.user_id) if entry["completed"] else None
        action = "checklist_completed" if entry["completed"] else "checklist_reopened"
        label = entry["item"]
    elif item:
        label = item.strip()
        checklist.append({"item": label, "completed": False, "completedAt": None, "completedBy": None})
        action = "checklist_item_added"
    else:
        raise ValidationFailed("Provide exactly one of index or item")

    application.checklist = checklist
    _append_timeline(application, _timeline_entry(action, session, item=label))
    _commit(db, application)

    audit_service.log_for_session(
        db, session, AuditAction.APPLICATION_CHECKLIST_UPDATED, AuditEntityType.APPLICATION,
        application.id,
        details={"action": action, "item": label},
        request=request,
    )
    _broadcast(application, "checklist_updated")
    return application


def add_document(
    db: Session,
    application_id: UUID,
    session: UserSession,
    name: str,
    url: str,
    doc_type: str | None = None,
    public_id: str | None = None,
    request: Request | None = None,
) -> Application:
    """Attach a document (student, owning agent or admin) and tell the other side."""
    application = get_application(db, application_id, session)

    document = {
        "docId": uuid.uuid4().hex,
        "name": name,
        "url": url,
        "type": doc_type,
        "publicId": public_id,
        "uploadedBy": str(session.user_id),
        "uploadedByRole": session.role.value,
        "uploadedAt": utcnow().isoformat(),
    }
    application.documents = [*application.documents, document]
    _append_timeline(application, _timeline_entry("document_uploaded", session, document=name))
    _commit(db, application)

    audit_service.log_for_session(
        db, session, AuditAction.APPLICATION_DOCUMENT_UPLOADED, AuditEntityType.APPLICATION,
        application.id,
        details={"docId": document["docId"], "name": name},
        request=request,
    )
    notification_facade.application_document_uploaded(db, application, session.role, name)
    _broadcast(application, "document_uploaded")
    return application


def soft_delete(
    db: Session,
    application_id: UUID,
    session: UserSession,
    request: Request | None = None,
) -> None:
    """Hide an application from every read; rows are never hard deleted."""
    application = get_application(db, application_id, session)
    application.is_deleted = True
    application.deleted_at = utcnow()
    _commit(db, application)

    audit_service.log_for_session(
        db, session, AuditAction.APPLICATION_DELETED, AuditEntityType.APPLICATION, application.id,
        previous_state={"isDeleted": False},
        new_state={"isDeleted": True},
        request=request,
    )


# =============================================================================
# Queries
# =============================================================================


def list_query(db: Session, session: UserSession, status: ApplicationStatus | None = None):
    query = scope_applications(db.query(Application), session)
    if status:
        query = query.filter(Application.status == status.value)
    return query.order_by(Application.updated_at.desc())
