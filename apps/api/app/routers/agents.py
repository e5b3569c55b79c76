"""Agents router - referrals, agent-initiated requests and the agent case pipeline."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.db.enums import Role, ServiceRequestStatus
from app.schemas.auth import ReferStudentRequest, ReferStudentResponse, StudentRead, UserSession
from app.schemas.common import Paginated
from app.schemas.service_request import (
    AgentApplyService,
    DeadlineUpdate,
    PriorityUpdate,
    ProgressUpdate,
    ServiceRequestListItem,
    ServiceRequestRead,
    StatusChange,
)
from app.schemas.task import CaseTaskCreate, TaskRead
from app.services import service_request_service, task_service, user_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/agents", tags=["Agents"])

require_agent = require_roles([Role.AGENT])


# =============================================================================
# Students
# =============================================================================


@router.post("/refer-student", response_model=ReferStudentResponse, status_code=201)
def refer_student(
    body: ReferStudentRequest,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    """Create a student account referred by (and assigned to) the calling agent."""
    user, student = user_service.refer_student(db, body, session)
    return {"user": user, "student": student}


@router.get("/students", response_model=Paginated[StudentRead])
def list_my_students(
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    items, meta = paginate_query(user_service.list_agent_students(db, session.user_id), pagination)
    return {"data": items, "pagination": meta}


@router.post(
    "/students/{student_id}/apply-service",
    response_model=ServiceRequestRead,
    status_code=201,
)
def apply_service_for_student(
    student_id: UUID,
    body: AgentApplyService,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    """The request stays read-only for the agent until a super_admin approves it."""
    sr = service_request_service.create_for_agent(
        db,
        session,
        student_id,
        body.service_type,
        notes=body.notes,
        priority=body.priority,
        deadline=body.deadline,
        request=request,
    )
    return service_request_service.to_read(sr, session)


# =============================================================================
# Cases
# =============================================================================


@router.get("/cases", response_model=Paginated[ServiceRequestListItem])
def list_cases(
    status: ServiceRequestStatus | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    """Agent pipeline: highest priority first, then nearest deadline."""
    query = service_request_service.agent_pipeline_query(db, session, status)
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get("/cases/{sr_id}", response_model=ServiceRequestRead)
def get_case(
    sr_id: UUID,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session)
    return service_request_service.to_read(sr, session)


@router.patch("/cases/{sr_id}/status", response_model=ServiceRequestRead)
def change_case_status(
    sr_id: UUID,
    body: StatusChange,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.transition(db, sr, body.status, session, body.note, request)
    return service_request_service.to_read(sr, session)


@router.patch("/cases/{sr_id}/progress", response_model=ServiceRequestRead)
def update_case_progress(
    sr_id: UUID,
    body: ProgressUpdate,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    """Progress never goes down; 100 completes the case."""
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.update_progress(db, sr, body.progress, session, body.note, request)
    return service_request_service.to_read(sr, session)


@router.patch("/cases/{sr_id}/deadline", response_model=ServiceRequestRead)
def update_case_deadline(
    sr_id: UUID,
    body: DeadlineUpdate,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.update_deadline(db, sr, body.deadline, session, body.note, request)
    return service_request_service.to_read(sr, session)


@router.patch("/cases/{sr_id}/priority", response_model=ServiceRequestRead)
def update_case_priority(
    sr_id: UUID,
    body: PriorityUpdate,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.update_priority(db, sr, body.priority, session, body.note, request)
    return service_request_service.to_read(sr, session)


@router.post("/cases/{sr_id}/tasks", response_model=TaskRead, status_code=201)
def create_case_task(
    sr_id: UUID,
    body: CaseTaskCreate,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    return task_service.create_task(
        db,
        session,
        sr_id,
        body.title,
        task_type=body.task_type,
        description=body.description,
        instructions=body.instructions,
        priority=body.priority,
        due_date=body.due_date,
        request=request,
    )
