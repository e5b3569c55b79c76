"""Chat router - per-case conversation endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db
from app.schemas.auth import UserSession
from app.schemas.chat import (
    ChatUnreadCount,
    MessageCreate,
    MessageRead,
    Participant,
    ReadAllResponse,
)
from app.schemas.common import Paginated
from app.services import chat_service
from app.utils.pagination import PaginationParams, pagination_with_default, paginate_query

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.get("/{sr_id}/messages", response_model=Paginated[MessageRead])
def list_messages(
    sr_id: UUID,
    pagination: PaginationParams = Depends(pagination_with_default(chat_service.DEFAULT_PAGE_SIZE)),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Oldest first, 50 per page unless ``limit`` says otherwise."""
    items, meta = paginate_query(chat_service.messages_query(db, sr_id, session), pagination)
    return {"data": items, "pagination": meta}


@router.post("/{sr_id}/messages", response_model=MessageRead, status_code=201)
def post_message(
    sr_id: UUID,
    body: MessageCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return chat_service.post_message(
        db,
        sr_id,
        session,
        body.content,
        message_type=body.message_type,
        recipient_id=body.recipient_id,
        attachments=body.attachments,
    )


@router.patch("/{sr_id}/messages/read-all", response_model=ReadAllResponse)
def mark_all_read(
    sr_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return {"updated": chat_service.mark_all_read(db, sr_id, session)}


@router.patch("/{sr_id}/messages/{message_id}/read", response_model=MessageRead)
def mark_read(
    sr_id: UUID,
    message_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return chat_service.mark_read(db, sr_id, message_id, session)


@router.get("/{sr_id}/unread-count", response_model=ChatUnreadCount)
def unread_count(
    sr_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return {"count": chat_service.unread_count(db, sr_id, session)}


@router.get("/{sr_id}/participants", response_model=list[Participant])
def list_participants(
    sr_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return chat_service.list_participants(db, sr_id, session)
