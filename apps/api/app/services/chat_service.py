"""Chat service - per-case conversations between the student and their advisors."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.access import check_chat_access
from app.core.errors import ChatDisabled, NotFound
from app.db.base import utcnow
from app.db.enums import MessageType, Role, ServiceRequestStatus
from app.db.models import Message, ServiceRequest, User
from app.schemas.auth import UserSession
from app.schemas.chat import MessageRead
from app.services import realtime_events

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


def get_chat_service_request(db: Session, service_request_id: UUID, session: UserSession) -> ServiceRequest:
    """Load the case for a chat operation; non-participants get NotFound."""
    sr = db.get(ServiceRequest, service_request_id)
    if not sr or not check_chat_access(session, sr):
        raise NotFound("Service request not found")
    return sr


def ensure_chat_enabled(sr: ServiceRequest) -> None:
    if sr.status == ServiceRequestStatus.PENDING_ADMIN_ASSIGNMENT.value:
        raise ChatDisabled(currentStatus=sr.status)


def participant_ids(sr: ServiceRequest) -> list[UUID]:
    ids = [sr.student.user_id, sr.assigned_counselor_id, sr.assigned_agent_id]
    return [user_id for user_id in dict.fromkeys(ids) if user_id]


def _is_read_by(message: Message, user_id: UUID) -> bool:
    uid = str(user_id)
    return any(entry.get("userId") == uid for entry in message.read_by)


def _visible_messages(db: Session, sr_id: UUID):
    return db.query(Message).filter(
        Message.service_request_id == sr_id,
        Message.is_deleted.is_(False),
    )


# =============================================================================
# Messages
# =============================================================================


def messages_query(db: Session, service_request_id: UUID, session: UserSession):
    """Visible messages of the case in chronological order; ``id`` breaks timestamp ties."""
    sr = get_chat_service_request(db, service_request_id, session)
    ensure_chat_enabled(sr)
    return _visible_messages(db, sr.id).order_by(Message.created_at.asc(), Message.id.asc())


def post_message(
    db: Session,
    service_request_id: UUID,
    session: UserSession,
    content: str,
    message_type: MessageType = MessageType.TEXT,
    recipient_id: UUID | None = None,
    attachments: list[dict] | None = None,
) -> Message:
    """Persist a message and fan it out to the chat room and every other participant."""
    sr = get_chat_service_request(db, service_request_id, session)
    ensure_chat_enabled(sr)

    message = Message(
        service_request_id=sr.id,
        sender_id=session.user_id,
        sender_role=session.role.value,
        recipient_id=recipient_id,
        content=content.strip(),
        message_type=MessageType(message_type).value,
        attachments=list(attachments or []),
        read_by=[{"userId": str(session.user_id), "readAt": utcnow().isoformat()}],
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    sender = db.get(User, session.user_id)
    payload = {
        **MessageRead.model_validate(message).model_dump(mode="json"),
        "senderName": sender.display_name if sender else None,
    }
    realtime_events.broadcast_chat_message(message, participant_ids(sr), payload)
    return message


def mark_read(db: Session, service_request_id: UUID, message_id: UUID, session: UserSession) -> Message:
    """Add the caller to ``read_by``; repeating the call changes nothing."""
    sr = get_chat_service_request(db, service_request_id, session)
    ensure_chat_enabled(sr)

    message = db.get(Message, message_id)
    if not message or message.service_request_id != sr.id or message.is_deleted:
        raise NotFound("Message not found")

    if not _is_read_by(message, session.user_id):
        message.read_by = [
            *message.read_by,
            {"userId": str(session.user_id), "readAt": utcnow().isoformat()},
        ]
        db.commit()
        db.refresh(message)
    return message


def mark_all_read(db: Session, service_request_id: UUID, session: UserSession) -> int:
    """Mark every message the caller did not send as read."""
    sr = get_chat_service_request(db, service_request_id, session)
    ensure_chat_enabled(sr)

    now = utcnow().isoformat()
    updated = 0
    for message in _visible_messages(db, sr.id).filter(Message.sender_id != session.user_id):
        if _is_read_by(message, session.user_id):
            continue
        message.read_by = [*message.read_by, {"userId": str(session.user_id), "readAt": now}]
        updated += 1
    if updated:
        db.commit()
    return updated


def unread_count(db: Session, service_request_id: UUID, session: UserSession) -> int:
    sr = get_chat_service_request(db, service_request_id, session)
    ensure_chat_enabled(sr)

    messages = _visible_messages(db, sr.id).filter(Message.sender_id != session.user_id)
    return sum(1 for message in messages if not _is_read_by(message, session.user_id))


# =============================================================================
# Participants
# =============================================================================


def list_participants(db: Session, service_request_id: UUID, session: UserSession) -> list[dict]:
    """Student, counselor and agent on the case. Served while chat is disabled too."""
    sr = get_chat_service_request(db, service_request_id, session)

    participants = []
    for user_id in participant_ids(sr):
        user = db.get(User, user_id)
        if not user:
            continue
        participants.append(
            {
                "user_id": user.id,
                "role": Role(user.role),
                "display_name": user.display_name,
                "avatar_url": user.avatar_url,
            }
        )
    return participants
