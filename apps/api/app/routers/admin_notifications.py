"""Admin notifications router - broadcasts and their management."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.db.enums import NotificationTargetType, NotificationType, Role
from app.schemas.auth import UserSession
from app.schemas.common import MessageResponse, Paginated
from app.schemas.notification import (
    AdminNotificationCreate,
    ArchiveUpdate,
    BroadcastReport,
    BulkActionRequest,
    BulkActionResponse,
    NotificationRead,
    NotificationStats,
)
from app.services import notification_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/admin/notifications", tags=["Admin Notifications"])

require_admin = require_roles([Role.SUPER_ADMIN])


@router.post("", response_model=BroadcastReport, status_code=201)
def create_broadcast(
    body: AdminNotificationCreate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Send a notification to everyone, one role, or one user.

    Delivery failures for individual recipients are counted in ``failed``
    instead of failing the request.
    """
    return notification_service.create_admin_notification(
        db,
        session.user_id,
        body.target_type,
        body.title,
        body.message,
        type=body.type,
        channel=body.channel,
        priority=body.priority,
        target_role=body.target_role,
        target_user_id=body.target_user_id,
        action_url=body.action_url,
        action_text=body.action_text,
    )


@router.get("", response_model=Paginated[NotificationRead])
def list_broadcasts(
    target_type: NotificationTargetType | None = Query(None, alias="targetType"),
    is_archived: bool | None = Query(None, alias="isArchived"),
    notification_type: NotificationType | None = Query(None, alias="type"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = notification_service.list_broadcasts(
        db,
        target_type=target_type.value if target_type else None,
        is_archived=is_archived,
        notification_type=notification_type.value if notification_type else None,
    )
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get("/stats", response_model=NotificationStats)
def notification_stats(
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return notification_service.get_stats(db)


@router.post("/bulk", response_model=BulkActionResponse)
def bulk_action(
    body: BulkActionRequest,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"affected": notification_service.bulk_action(db, body.ids, body.action)}


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(
    notification_id: UUID,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return notification_service.get_notification(db, notification_id)


@router.patch("/{notification_id}/archive", response_model=NotificationRead)
def set_archived(
    notification_id: UUID,
    body: ArchiveUpdate,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return notification_service.set_archived(db, notification_id, body.archived)


@router.delete("/{notification_id}", response_model=MessageResponse)
def delete_notification(
    notification_id: UUID,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    notification_service.delete_notification(db, notification_id)
    return {"message": "Notification deleted"}
