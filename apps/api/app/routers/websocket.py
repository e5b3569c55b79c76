"""
WebSocket router for realtime events.

Provides a WebSocket endpoint that:
1. Authenticates users via the bearer token in ``?token=``
2. Auto-joins the user and role rooms
3. Accepts ``{event, data}`` commands to join/leave entity rooms and to
   broadcast typing indicators
"""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from app.core.access import (
    check_application_access,
    check_chat_access,
    check_service_request_access,
)
from app.core.deps import resolve_token_user
from app.core.errors import AccessDenied, AccountInactive, AppError, NotFound
from app.core.websocket import manager, room_name
from app.db.enums import Role
from app.db.models import Application, ServiceRequest, Student
from app.db.session import SessionLocal
from app.schemas.auth import UserSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

CLOSE_UNAUTHENTICATED = 4001
CLOSE_FORBIDDEN = 4003

# command suffix -> (room kind, payload key holding the entity id)
ROOM_COMMANDS = {
    "chat_room": ("chat", "serviceRequestId"),
    "service_request_room": ("service_request", "serviceRequestId"),
    "student_room": ("student", "studentId"),
    "application_room": ("application", "applicationId"),
}


def _authenticate(token: str | None) -> UserSession:
    db = SessionLocal()
    try:
        user = resolve_token_user(db, token)
        role = Role(user.role)
        student_id = None
        if role == Role.STUDENT:
            student = db.query(Student).filter(Student.user_id == user.id).first()
            student_id = student.id if student else None
        return UserSession(
            user_id=user.id,
            role=role,
            email=user.email,
            display_name=user.display_name,
            student_id=student_id,
        )
    finally:
        db.close()


def _authorize_room(session: UserSession, kind: str, entity_id: UUID) -> None:
    """Apply the same predicates as the HTTP surface; raises on refusal."""
    db = SessionLocal()
    try:
        if kind == "chat":
            sr = db.get(ServiceRequest, entity_id)
            if not sr or not check_chat_access(session, sr):
                raise NotFound("Service request not found")
        elif kind == "service_request":
            check_service_request_access(db.get(ServiceRequest, entity_id), session)
        elif kind == "student":
            if session.role == Role.SUPER_ADMIN:
                return
            if session.role == Role.STUDENT and session.student_id == entity_id:
                return
            student = db.get(Student, entity_id)
            if session.role == Role.AGENT and student and (
                student.assigned_agent_id == session.user_id
                or student.referred_by_id == session.user_id
            ):
                return
            if session.role == Role.COUNSELOR and student and student.assigned_counselor_id == session.user_id:
                return
            raise AccessDenied("Not allowed to join this room")
        elif kind == "application":
            check_application_access(db.get(Application, entity_id), session)
    finally:
        db.close()


async def _send(websocket: WebSocket, event: str, data: dict) -> None:
    await websocket.send_text(json.dumps({"event": event, "data": data}, default=str))


async def _handle_command(websocket: WebSocket, session: UserSession, event: str, data: dict) -> None:
    if event == "ping":
        await _send(websocket, "pong", {})
        return

    if event in ("typing_start", "typing_stop"):
        sr_id = data.get("serviceRequestId")
        room = room_name("chat", sr_id)
        if room not in manager.rooms_for(websocket):
            await _send(websocket, "error", {"message": "Join the chat room first"})
            return
        await manager.emit(
            [room],
            "user_typing",
            {
                "serviceRequestId": str(sr_id),
                "userId": str(session.user_id),
                "displayName": session.display_name,
                "isTyping": event == "typing_start",
            },
            exclude=websocket,
        )
        return

    for prefix in ("join_", "leave_"):
        if event.startswith(prefix) and event[len(prefix):] in ROOM_COMMANDS:
            kind, key = ROOM_COMMANDS[event[len(prefix):]]
            try:
                entity_id = UUID(str(data.get(key)))
            except ValueError:
                await _send(websocket, "error", {"message": f"{key} is required"})
                return
            room = room_name(kind, entity_id)
            if prefix == "leave_":
                await manager.leave(websocket, room)
                await _send(websocket, "left_room", {"room": room})
                return
            try:
                await run_in_threadpool(_authorize_room, session, kind, entity_id)
            except AppError as exc:
                await _send(websocket, "error", {"message": exc.message, "room": room})
                return
            await manager.join(websocket, room)
            await _send(websocket, "joined_room", {"room": room})
            return

    await _send(websocket, "error", {"message": f"Unknown event '{event}'"})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = Query(None)):
    """Realtime channel; closes with 4001 for bad tokens and 4003 for inactive accounts."""
    try:
        session = await run_in_threadpool(_authenticate, token)
    except AccountInactive:
        await websocket.close(code=CLOSE_FORBIDDEN, reason="Account is inactive")
        return
    except AppError:
        await websocket.close(code=CLOSE_UNAUTHENTICATED, reason="Authentication required")
        return

    await manager.connect(websocket, session.user_id, session.role.value)
    logger.info("Websocket connected", extra={"user_id": str(session.user_id), "role": session.role.value})
    if session.student_id:
        await manager.join(websocket, room_name("student", session.student_id))
    await _send(websocket, "connected", {"userId": str(session.user_id), "role": session.role.value})

    try:
        while True:
            raw = await websocket.receive_text()
            if raw == "ping":
                await _send(websocket, "pong", {})
                continue
            try:
                message = json.loads(raw)
                event = message["event"]
                data = message.get("data") or {}
            except (ValueError, KeyError, TypeError, AttributeError):
                await _send(websocket, "error", {"message": "Expected {event, data} JSON"})
                continue
            if not isinstance(data, dict):
                data = {}
            await _handle_command(websocket, session, str(event), data)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
