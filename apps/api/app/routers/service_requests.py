"""Service requests router - student application and shared case endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_roles
from app.db.enums import Role, ServiceRequestStatus, ServiceType
from app.schemas.auth import UserSession
from app.schemas.common import Paginated
from app.schemas.service_request import (
    NoteCreate,
    NoteRead,
    ServiceRequestCreate,
    ServiceRequestListItem,
    ServiceRequestRead,
    ServiceRequestStats,
    StatusChange,
)
from app.services import service_request_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/service-requests", tags=["Service Requests"])


@router.post("", response_model=ServiceRequestRead, status_code=201)
def apply_for_service(
    body: ServiceRequestCreate,
    request: Request,
    session: UserSession = Depends(require_roles([Role.STUDENT])),
    db: Session = Depends(get_db),
):
    """
    Student applies for a service.

    A second non-terminal request of the same type is rejected with the id
    of the existing one.
    """
    sr = service_request_service.create_for_student(
        db, session, body.service_type, body.notes, request
    )
    return service_request_service.to_read(sr, session)


@router.get("", response_model=Paginated[ServiceRequestListItem])
def list_service_requests(
    status: ServiceRequestStatus | None = None,
    service_type: ServiceType | None = Query(None, alias="serviceType"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Requests visible to the caller, newest first."""
    query = service_request_service.list_query(db, session, status=status, service_type=service_type)
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get(
    "/stats",
    response_model=ServiceRequestStats,
    dependencies=[Depends(require_roles([Role.SUPER_ADMIN]))],
)
def service_request_stats(db: Session = Depends(get_db)):
    return service_request_service.get_stats(db)


@router.get("/{sr_id}", response_model=ServiceRequestRead)
def get_service_request(
    sr_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session)
    return service_request_service.to_read(sr, session)


@router.patch("/{sr_id}/status", response_model=ServiceRequestRead)
def change_status(
    sr_id: UUID,
    body: StatusChange,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Run one permitted transition (assigned advisor or super_admin)."""
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    sr = service_request_service.transition(db, sr, body.status, session, body.note, request)
    return service_request_service.to_read(sr, session)


@router.post("/{sr_id}/notes", response_model=NoteRead, status_code=201)
def add_note(
    sr_id: UUID,
    body: NoteCreate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return service_request_service.add_note(
        db, sr_id, session, body.text, body.is_internal, request
    )
