"""Realtime fan-out from the synchronous service layer.

Every helper is best-effort: failures are logged and never reach the caller,
so a transition that already committed is never undone by a dead socket.
"""

import logging
from typing import Iterable
from uuid import UUID

from app.core.async_utils import run_async
from app.core.websocket import manager, role_room, room_name, user_room
from app.db.enums import Role
from app.db.models import Message, Notification, ServiceRequest, Task

logger = logging.getLogger(__name__)

EMIT_TIMEOUT_SECONDS = 5.0


def _dispatch(rooms: list[str], event: str, data: dict) -> None:
    if not manager.has_listeners(rooms):
        return
    run_async(manager.emit(rooms, event, data), timeout=EMIT_TIMEOUT_SECONDS)


def emit(rooms: Iterable[str], event: str, data: dict) -> None:
    """Emit ``event`` once per connection across ``rooms``."""
    room_list = list(dict.fromkeys(rooms))
    try:
        _dispatch(room_list, event, data)
    except Exception:
        logger.exception("Realtime emit failed for event %s", event)


# =============================================================================
# Payload builders
# =============================================================================

def notification_payload(notification: Notification) -> dict:
    return {
        "id": str(notification.id),
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "actionUrl": notification.action_url,
        "actionText": notification.action_text,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
    }


def service_request_payload(sr: ServiceRequest) -> dict:
    return {
        "serviceRequestId": str(sr.id),
        "status": sr.status,
        "progress": sr.progress,
        "priority": sr.priority,
        "agentApprovalStatus": sr.agent_approval_status,
    }


def task_payload(task: Task) -> dict:
    return {
        "taskId": str(task.id),
        "serviceRequestId": str(task.service_request_id),
        "status": task.status,
        "title": task.title,
    }


# =============================================================================
# Emissions
# =============================================================================

def notify_user(user_id: UUID, notification: Notification) -> None:
    emit([user_room(user_id)], "new_notification", notification_payload(notification))


def broadcast_service_request_update(sr: ServiceRequest, user_ids: Iterable[UUID] = ()) -> None:
    """Student room, assignee user rooms, the case room and the admin role room."""
    rooms = [
        room_name("student", sr.student_id),
        room_name("service_request", sr.id),
        role_room(Role.SUPER_ADMIN.value),
    ]
    for assignee in (sr.assigned_counselor_id, sr.assigned_agent_id, *user_ids):
        if assignee:
            rooms.append(user_room(assignee))
    emit(rooms, "service_request_updated", service_request_payload(sr))


def broadcast_task_update(task: Task) -> None:
    """Assignee and creator user rooms, the case room and the admin role room."""
    rooms = [
        room_name("service_request", task.service_request_id),
        role_room(Role.SUPER_ADMIN.value),
        user_room(task.assigned_to_id),
    ]
    if task.assigned_by_id:
        rooms.append(user_room(task.assigned_by_id))
    emit(rooms, "task_updated", task_payload(task))


def broadcast_chat_message(message: Message, participant_ids: Iterable[UUID], payload: dict) -> None:
    """Chat room plus every participant's user room except the sender's."""
    rooms = [room_name("chat", message.service_request_id)]
    for user_id in participant_ids:
        if user_id and user_id != message.sender_id:
            rooms.append(user_room(user_id))
    emit(rooms, "new_chat_message", payload)


def broadcast_application_update(application_id: UUID, data: dict) -> None:
    emit([room_name("application", application_id)], "application_updated", data)


def broadcast_admin_notification(report: dict) -> None:
    emit([role_room(Role.SUPER_ADMIN.value)], "admin_notification_created", report)
