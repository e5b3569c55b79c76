"""Admin router - user management, case assignment and agent-request review."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.db.enums import AgentApprovalStatus, Role, ServiceRequestStatus, ServiceType
from app.schemas.auth import AdminUserCreate, RecipientRead, UserRead, UserSession, UserStatusUpdate
from app.schemas.common import Paginated
from app.schemas.service_request import (
    AgentRequestApprove,
    AgentRequestReject,
    PendingCount,
    ServiceRequestAssign,
    ServiceRequestListItem,
    ServiceRequestRead,
    StatusChange,
)
from app.services import service_request_service, user_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_roles([Role.SUPER_ADMIN])


# =============================================================================
# Users
# =============================================================================


@router.post("/users", response_model=UserRead, status_code=201)
def create_user(
    body: AdminUserCreate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create an account of any role (students get their profile too)."""
    user, _student = user_service.create_user_by_admin(db, body, session)
    return user


@router.patch("/users/{user_id}/status", response_model=UserRead)
def set_user_status(
    user_id: UUID,
    body: UserStatusUpdate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return user_service.set_user_active(db, user_id, body.is_active, session)


@router.get("/users/recipients", response_model=list[RecipientRead])
def list_recipients(
    role: Role | None = None,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Active users a broadcast can target."""
    return user_service.list_recipients(db, role)


# =============================================================================
# Service requests
# =============================================================================


@router.get("/service-requests", response_model=Paginated[ServiceRequestListItem])
def list_all_service_requests(
    status: ServiceRequestStatus | None = None,
    service_type: ServiceType | None = Query(None, alias="serviceType"),
    is_agent_initiated: bool | None = Query(None, alias="isAgentInitiated"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = service_request_service.list_query(
        db,
        session,
        status=status,
        service_type=service_type,
        is_agent_initiated=is_agent_initiated,
    )
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get("/pending-assignments", response_model=Paginated[ServiceRequestListItem])
def list_pending_assignments(
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Requests waiting for an advisor (agent requests awaiting approval excluded)."""
    items, meta = paginate_query(service_request_service.pending_assignments_query(db), pagination)
    return {"data": items, "pagination": meta}


@router.post("/service-requests/{sr_id}/assign", response_model=ServiceRequestRead)
def assign_service_request(
    sr_id: UUID,
    body: ServiceRequestAssign,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.assign(
        db,
        sr,
        session,
        counselor_id=body.assigned_counselor,
        agent_id=body.assigned_agent,
        note=body.note,
        request=request,
    )
    return service_request_service.to_read(sr, session)


@router.patch("/service-requests/{sr_id}/status", response_model=ServiceRequestRead)
def admin_change_status(
    sr_id: UUID,
    body: StatusChange,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.transition(db, sr, body.status, session, body.note, request)
    return service_request_service.to_read(sr, session)


# =============================================================================
# Agent-initiated requests
# =============================================================================


@router.get("/agent-requests", response_model=Paginated[ServiceRequestListItem])
def list_agent_requests(
    approval_status: AgentApprovalStatus | None = Query(None, alias="approvalStatus"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = service_request_service.agent_requests_query(db, approval_status)
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get("/agent-requests/pending-count", response_model=PendingCount)
def pending_agent_request_count(
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"count": service_request_service.pending_agent_request_count(db)}


@router.post("/agent-requests/{sr_id}/approve", response_model=ServiceRequestRead)
def approve_agent_request(
    sr_id: UUID,
    request: Request,
    body: AgentRequestApprove | None = None,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Approve and hand the case to the requesting agent."""
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    notes = body.notes if body else None
    sr = service_request_service.approve_agent_request(db, sr, session, notes, request)
    return service_request_service.to_read(sr, session)


@router.post("/agent-requests/{sr_id}/reject", response_model=ServiceRequestRead)
def reject_agent_request(
    sr_id: UUID,
    body: AgentRequestReject,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.reject_agent_request(db, sr, session, body.reason, request)
    return service_request_service.to_read(sr, session)
