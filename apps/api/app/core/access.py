"""Access control - centralized role filters and per-entity predicates.

Route handlers and services only consult these helpers; ownership rules are
never re-implemented inline.

Visibility (reads):
- super_admin: everything
- student: own service requests/applications, tasks assigned to them
- counselor: service requests assigned to them, tasks they created or that
  belong to their cases
- agent: service requests assigned to them (also while pending approval),
  their applications, tasks they created or that belong to their cases

Entities outside the caller's visibility are reported as NotFound so the
response does not reveal that they exist. Visible-but-not-modifiable
entities raise AccessDenied.
"""

from sqlalchemy import false
from sqlalchemy.orm import Query

from app.core.errors import AccessDenied, NotFound
from app.db.enums import ADVISOR_ROLES, AgentApprovalStatus, Role
from app.db.models import Application, ServiceRequest, Task
from app.schemas.auth import UserSession


# =============================================================================
# Role-based list filters
# =============================================================================

def scope_service_requests(query: Query, session: UserSession) -> Query:
    """Restrict a ServiceRequest query to what the caller may list."""
    if session.role == Role.SUPER_ADMIN:
        return query
    if session.role == Role.STUDENT:
        return query.filter(ServiceRequest.student_id == session.student_id)
    if session.role == Role.COUNSELOR:
        return query.filter(ServiceRequest.assigned_counselor_id == session.user_id)
    if session.role == Role.AGENT:
        return query.filter(ServiceRequest.assigned_agent_id == session.user_id)
    return query.filter(false())


def scope_tasks(query: Query, session: UserSession) -> Query:
    """Restrict a Task query to what the caller may list."""
    if session.role == Role.SUPER_ADMIN:
        return query
    if session.role == Role.STUDENT:
        return query.filter(Task.assigned_to_id == session.user_id)
    if session.role in ADVISOR_ROLES:
        return query.filter(Task.assigned_by_id == session.user_id)
    return query.filter(false())


def scope_applications(query: Query, session: UserSession) -> Query:
    """Restrict an Application query to what the caller may list (soft-deleted rows never)."""
    query = query.filter(Application.is_deleted.is_(False))
    if session.role == Role.SUPER_ADMIN:
        return query
    if session.role == Role.STUDENT:
        return query.filter(Application.student_id == session.student_id)
    if session.role == Role.AGENT:
        return query.filter(Application.agent_id == session.user_id)
    return query.filter(false())


# =============================================================================
# Service requests
# =============================================================================

def is_service_request_advisor(sr: ServiceRequest, session: UserSession) -> bool:
    if session.role == Role.COUNSELOR:
        return sr.assigned_counselor_id == session.user_id
    if session.role == Role.AGENT:
        return sr.assigned_agent_id == session.user_id
    return False


def can_view_service_request(sr: ServiceRequest, session: UserSession) -> bool:
    if session.role == Role.SUPER_ADMIN:
        return True
    if session.role == Role.STUDENT:
        return session.student_id is not None and sr.student_id == session.student_id
    return is_service_request_advisor(sr, session)


def agent_approval_pending(sr: ServiceRequest) -> bool:
    """True while an agent-initiated request still awaits admin approval."""
    return (
        sr.is_agent_initiated
        and sr.agent_approval_status != AgentApprovalStatus.APPROVED.value
    )


def check_service_request_access(
    sr: ServiceRequest | None,
    session: UserSession,
    *,
    modify: bool = False,
) -> ServiceRequest:
    """
    Check the caller may read (or, with ``modify``, change) a service request.

    An agent-owned request that is agent-initiated and not yet approved is
    readable by its agent but every modifying operation is refused with the
    approval status attached.

    Raises:
        NotFound: missing or outside the caller's visibility
        AccessDenied: visible but not modifiable by the caller
    """
    if sr is None or not can_view_service_request(sr, session):
        raise NotFound("Service request not found")

    if not modify:
        return sr

    if session.role == Role.SUPER_ADMIN:
        return sr
    if session.role == Role.STUDENT:
        raise AccessDenied("Students cannot modify service requests")
    if session.role == Role.AGENT and agent_approval_pending(sr):
        raise AccessDenied(
            "This request is awaiting admin approval",
            approvalStatus=sr.agent_approval_status,
        )
    return sr


# =============================================================================
# Tasks
# =============================================================================

def can_view_task(task: Task, session: UserSession) -> bool:
    if session.role == Role.SUPER_ADMIN:
        return True
    if session.role == Role.STUDENT:
        return task.assigned_to_id == session.user_id
    if session.role in ADVISOR_ROLES:
        if task.assigned_by_id == session.user_id:
            return True
        sr = task.service_request
        return sr is not None and is_service_request_advisor(sr, session)
    return False


def check_task_access(task: Task | None, session: UserSession, *, modify: bool = False) -> Task:
    """
    Check the caller may read (or, with ``modify``, advise on) a task.

    Modifying a task as an advisor goes through the parent service request
    predicate, so an unapproved agent-initiated case blocks its tasks too.
    """
    if task is None or not can_view_task(task, session):
        raise NotFound("Task not found")

    if not modify:
        return task

    if session.role == Role.STUDENT:
        raise AccessDenied("Only the advisor can perform this action")
    if session.role != Role.SUPER_ADMIN:
        check_service_request_access(task.service_request, session, modify=True)
    return task


def check_task_assignee(task: Task | None, session: UserSession) -> Task:
    """Only the student the task is assigned to may submit it."""
    if task is None or not can_view_task(task, session):
        raise NotFound("Task not found")
    if task.assigned_to_id != session.user_id:
        raise AccessDenied("Only the assigned student can perform this action")
    return task


# =============================================================================
# Applications
# =============================================================================

def check_application_access(application: Application | None, session: UserSession) -> Application:
    if application is None or application.is_deleted:
        raise NotFound("Application not found")
    if session.role == Role.SUPER_ADMIN:
        return application
    if session.role == Role.AGENT and application.agent_id == session.user_id:
        return application
    if (
        session.role == Role.STUDENT
        and session.student_id is not None
        and application.student_id == session.student_id
    ):
        return application
    raise NotFound("Application not found")


# =============================================================================
# Chat
# =============================================================================

def check_chat_access(session: UserSession, sr: ServiceRequest) -> bool:
    """True iff the caller participates in the case conversation."""
    if session.role == Role.SUPER_ADMIN:
        return True
    if session.role == Role.STUDENT:
        return session.student_id is not None and sr.student_id == session.student_id
    if sr.assigned_counselor_id is not None and sr.assigned_counselor_id == session.user_id:
        return True
    return sr.assigned_agent_id is not None and sr.assigned_agent_id == session.user_id

