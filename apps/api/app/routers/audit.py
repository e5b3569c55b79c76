"""Audit router - read-only access to the audit trail for admins."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.db.enums import Role
from app.schemas.audit import AuditLogRead, AuditStats
from app.schemas.common import Paginated
from app.services import audit_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(
    prefix="/audit",
    tags=["Audit"],
    dependencies=[Depends(require_roles([Role.SUPER_ADMIN]))],
)


@router.get("", response_model=Paginated[AuditLogRead])
def list_audit_events(
    entity_type: str | None = Query(None, alias="entityType"),
    entity_id: str | None = Query(None, alias="entityId"),
    actor_user_id: UUID | None = Query(None, alias="actorUserId"),
    action: str | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    """List audit entries, newest first."""
    query = audit_service.list_events(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        action=action,
    )
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get("/stats", response_model=AuditStats)
def audit_stats(db: Session = Depends(get_db)):
    return audit_service.get_stats(db)
