"""Tests for the realtime channel: room registry and the /ws protocol."""
import json
import uuid

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.core.websocket import ConnectionManager, room_name
from app.db.enums import Role
from app.main import app


class FakeWebSocket:
    def __init__(self) -> None:
        self.accepted = False
        self.sent: list[dict] = []
        self.broken = False

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))


# =============================================================================
# Connection registry
# =============================================================================

@pytest.mark.asyncio
async def test_connect_joins_user_and_role_rooms():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    user_id = uuid.uuid4()

    await manager.connect(ws, user_id, "student")

    assert ws.accepted is True
    assert manager.rooms_for(ws) == {f"user:{user_id}", "role:student"}


@pytest.mark.asyncio
async def test_emit_delivers_once_and_honours_exclude():
    manager = ConnectionManager()
    sender, listener = FakeWebSocket(), FakeWebSocket()
    await manager.connect(sender, uuid.uuid4(), "student")
    await manager.connect(listener, uuid.uuid4(), "counselor")
    sr_id = uuid.uuid4()
    for ws in (sender, listener):
        await manager.join(ws, room_name("chat", sr_id))
    await manager.join(listener, room_name("service_request", sr_id))

    await manager.emit(
        [room_name("chat", sr_id), room_name("service_request", sr_id)],
        "user_typing",
        {"isTyping": True},
        exclude=sender,
    )

    assert sender.sent == []
    assert listener.sent == [{"event": "user_typing", "data": {"isTyping": True}}]


@pytest.mark.asyncio
async def test_failed_send_drops_the_socket():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    await manager.connect(ws, uuid.uuid4(), "agent")
    ws.broken = True

    await manager.emit(["role:agent"], "task_updated", {})

    assert manager.rooms_for(ws) == set()
    assert manager.has_listeners(["role:agent"]) is False


@pytest.mark.asyncio
async def test_leave_and_disconnect_clean_up_rooms():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    await manager.connect(ws, uuid.uuid4(), "counselor")
    room = room_name("application", uuid.uuid4())
    await manager.join(ws, room)

    await manager.leave(ws, room)
    assert room not in manager.rooms_for(ws)

    await manager.disconnect(ws)
    assert manager.get_total_connections() == 0


def test_unknown_room_kind_is_rejected():
    with pytest.raises(ValueError):
        room_name("everyone", "x")


# =============================================================================
# /ws protocol
# =============================================================================

def _send(ws, event: str, **data) -> dict:
    ws.send_text(json.dumps({"event": event, "data": data}))
    return ws.receive_json()


def test_bad_token_closes_with_4001(db):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=not-a-token") as ws:
            ws.receive_json()
    assert exc.value.code == 4001


def test_inactive_account_closes_with_4003(db, make_user):
    inactive = make_user(Role.COUNSELOR, "Ina")
    inactive.user.is_active = False
    db.commit()

    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws?token={inactive.token}") as ws:
            ws.receive_json()
    assert exc.value.code == 4003


def test_connect_and_ping(db, counselor):
    client = TestClient(app)
    with client.websocket_connect(f"/ws?token={counselor.token}") as ws:
        connected = ws.receive_json()
        assert connected == {
            "event": "connected",
            "data": {"userId": str(counselor.user.id), "role": Role.COUNSELOR.value},
        }

        ws.send_text("ping")
        assert ws.receive_json()["event"] == "pong"
        assert _send(ws, "ping")["event"] == "pong"


def test_join_room_uses_access_rules(db, assigned_case, counselor, make_user):
    client = TestClient(app)
    with client.websocket_connect(f"/ws?token={counselor.token}") as ws:
        ws.receive_json()
        joined = _send(ws, "join_service_request_room", serviceRequestId=str(assigned_case.id))
        assert joined == {"event": "joined_room", "data": {"room": f"service_request:{assigned_case.id}"}}

        left = _send(ws, "leave_service_request_room", serviceRequestId=str(assigned_case.id))
        assert left["event"] == "left_room"

    outsider = make_user(Role.COUNSELOR, "Otto")
    with client.websocket_connect(f"/ws?token={outsider.token}") as ws:
        ws.receive_json()
        refused = _send(ws, "join_chat_room", serviceRequestId=str(assigned_case.id))
        assert refused["event"] == "error"
        assert refused["data"]["room"] == f"chat:{assigned_case.id}"

        missing_id = _send(ws, "join_application_room")
        assert missing_id["event"] == "error"


def test_typing_requires_joined_chat_room(db, assigned_case, student):
    client = TestClient(app)
    with client.websocket_connect(f"/ws?token={student.token}") as ws:
        ws.receive_json()
        early = _send(ws, "typing_start", serviceRequestId=str(assigned_case.id))
        assert early["event"] == "error"

        assert _send(ws, "join_chat_room", serviceRequestId=str(assigned_case.id))["event"] == "joined_room"
        # Typing goes to the others in the room only; the next reply is the pong
        ws.send_text(json.dumps({"event": "typing_start", "data": {"serviceRequestId": str(assigned_case.id)}}))
        assert _send(ws, "ping")["event"] == "pong"


def test_typing_reaches_other_participants(db, assigned_case, student, counselor):
    client = TestClient(app)
    sr_id = str(assigned_case.id)
    with client.websocket_connect(f"/ws?token={counselor.token}") as listener:
        listener.receive_json()
        assert _send(listener, "join_chat_room", serviceRequestId=sr_id)["event"] == "joined_room"

        with client.websocket_connect(f"/ws?token={student.token}") as sender:
            sender.receive_json()
            assert _send(sender, "join_chat_room", serviceRequestId=sr_id)["event"] == "joined_room"
            sender.send_text(json.dumps({"event": "typing_start", "data": {"serviceRequestId": sr_id}}))

            typing = listener.receive_json()
            assert typing["event"] == "user_typing"
            assert typing["data"]["userId"] == str(student.user.id)
            assert typing["data"]["isTyping"] is True


def test_unknown_and_malformed_events(db, student):
    client = TestClient(app)
    with client.websocket_connect(f"/ws?token={student.token}") as ws:
        ws.receive_json()
        unknown = _send(ws, "dance")
        assert unknown == {"event": "error", "data": {"message": "Unknown event 'dance'"}}

        ws.send_text("{not json")
        assert ws.receive_json()["event"] == "error"
