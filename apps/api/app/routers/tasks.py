"""Tasks router - API endpoints for case tasks."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_roles
from app.db.enums import Role, TaskStatus
from app.schemas.auth import UserSession
from app.schemas.common import MessageResponse, Paginated
from app.schemas.task import (
    TaskCreate,
    TaskRead,
    TaskReview,
    TaskStats,
    TaskStatusChange,
    TaskSubmit,
)
from app.services import task_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/tasks", tags=["Tasks"])

require_advisor = require_roles([Role.COUNSELOR, Role.AGENT, Role.SUPER_ADMIN])


@router.post("", response_model=TaskRead, status_code=201)
def create_task(
    body: TaskCreate,
    request: Request,
    session: UserSession = Depends(require_advisor),
    db: Session = Depends(get_db),
):
    """Create a task on a case; it is assigned to the case's student."""
    return task_service.create_task(
        db,
        session,
        body.service_request_id,
        body.title,
        task_type=body.task_type,
        description=body.description,
        instructions=body.instructions,
        priority=body.priority,
        due_date=body.due_date,
        request=request,
    )


@router.get("", response_model=Paginated[TaskRead])
def list_tasks(
    service_request_id: UUID | None = Query(None, alias="serviceRequestId"),
    status: TaskStatus | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    query = task_service.list_query(db, session, service_request_id, status)
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get("/stats/{service_request_id}", response_model=TaskStats)
def task_stats(
    service_request_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return task_service.get_stats(db, session, service_request_id)


@router.get("/{task_id}", response_model=TaskRead)
def get_task(
    task_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return task_service.get_task(db, task_id, session)


@router.post("/{task_id}/submit", response_model=TaskRead)
def submit_task(
    task_id: UUID,
    body: TaskSubmit,
    request: Request,
    session: UserSession = Depends(require_roles([Role.STUDENT])),
    db: Session = Depends(get_db),
):
    files = [f.model_dump(by_alias=True, exclude_none=True) for f in body.files]
    return task_service.submit_task(db, task_id, session, body.text, files, request)


@router.post("/{task_id}/review", response_model=TaskRead)
def review_task(
    task_id: UUID,
    body: TaskReview,
    request: Request,
    session: UserSession = Depends(require_advisor),
    db: Session = Depends(get_db),
):
    """Complete the task, or send it back with ``requiresRevision``."""
    return task_service.review_task(
        db,
        task_id,
        session,
        body.feedback,
        requires_revision=body.requires_revision,
        rating=body.rating,
        request=request,
    )


@router.patch("/{task_id}/status", response_model=TaskRead)
def change_task_status(
    task_id: UUID,
    body: TaskStatusChange,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return task_service.change_status(db, task_id, session, body.status, body.note, request)


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: UUID,
    request: Request,
    session: UserSession = Depends(require_advisor),
    db: Session = Depends(get_db),
):
    task_service.delete_task(db, task_id, session, request)
    return {"message": "Task deleted"}
