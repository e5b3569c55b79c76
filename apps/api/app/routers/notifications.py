"""Notifications router - the caller's own notification feed."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db
from app.db.enums import NotificationType
from app.schemas.auth import UserSession
from app.schemas.common import Paginated
from app.schemas.notification import MarkAllReadResponse, NotificationRead, UnreadCount
from app.services import notification_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=Paginated[NotificationRead])
def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    notification_type: NotificationType | None = Query(None, alias="type"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Newest first; archived notifications are not listed."""
    query = notification_service.list_for_recipient(
        db,
        session.user_id,
        unread_only=unread_only,
        notification_type=notification_type.value if notification_type else None,
    )
    items, meta = paginate_query(query, pagination)
    return {"data": items, "pagination": meta}


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return {"count": notification_service.get_unread_count(db, session.user_id)}


@router.patch("/mark-all-read", response_model=MarkAllReadResponse)
def mark_all_read(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return {"updated": notification_service.mark_all_read(db, session.user_id)}


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return notification_service.mark_read(db, notification_id, session.user_id)
