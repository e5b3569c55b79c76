"""Tests for case chat: gating, fan-out, read receipts and paging."""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from app.db.enums import Role
from app.db.models import Message


def _seed_messages(db, sr, sender, count: int) -> list[Message]:
    """Insert ``count`` messages one minute apart, oldest first."""
    start = datetime.now(timezone.utc) - timedelta(hours=1)
    messages = [
        Message(
            service_request_id=sr.id,
            sender_id=sender.user.id,
            sender_role=sender.user.role,
            content=f"message {i}",
            read_by=[{"userId": str(sender.user.id), "readAt": start.isoformat()}],
            created_at=start + timedelta(minutes=i),
        )
        for i in range(count)
    ]
    db.add_all(messages)
    db.commit()
    return messages


# =============================================================================
# Gating
# =============================================================================

@pytest.mark.asyncio
async def test_chat_disabled_until_assignment(client: AsyncClient, make_service_request, student, admin, counselor):
    sr = make_service_request(student)

    posted = await client.post(f"/api/chat/{sr.id}/messages", json={"content": "hi"}, headers=student.headers)
    assert posted.status_code == 403
    assert posted.json()["chatDisabled"] is True

    history = await client.get(f"/api/chat/{sr.id}/messages", headers=student.headers)
    assert history.status_code == 403
    assert history.json()["chatDisabled"] is True

    # Participants stay readable while chat is closed
    participants = await client.get(f"/api/chat/{sr.id}/participants", headers=student.headers)
    assert participants.status_code == 200
    assert [p["user_id"] for p in participants.json()] == [str(student.user.id)]

    await client.post(
        f"/api/admin/service-requests/{sr.id}/assign",
        json={"assignedCounselor": str(counselor.user.id)},
        headers=admin.headers,
    )
    reopened = await client.post(f"/api/chat/{sr.id}/messages", json={"content": "hi"}, headers=student.headers)
    assert reopened.status_code == 201


@pytest.mark.asyncio
async def test_message_fans_out_to_room_and_participants(
    client: AsyncClient, assigned_case, student, counselor, realtime_log
):
    response = await client.post(
        f"/api/chat/{assigned_case.id}/messages", json={"content": "  Hello there  "}, headers=student.headers
    )
    assert response.status_code == 201
    message = response.json()
    assert message["content"] == "Hello there"
    assert message["sender_role"] == Role.STUDENT.value
    assert [r["userId"] for r in message["read_by"]] == [str(student.user.id)]

    emitted = [e for e in realtime_log if e["event"] == "new_chat_message"]
    assert len(emitted) == 1
    rooms = emitted[0]["rooms"]
    assert f"chat:{assigned_case.id}" in rooms
    assert f"user:{counselor.user.id}" in rooms
    assert f"user:{student.user.id}" not in rooms
    assert emitted[0]["data"]["senderName"] == student.user.display_name


@pytest.mark.asyncio
async def test_non_participant_gets_not_found(client: AsyncClient, make_user, assigned_case):
    outsider = make_user(Role.COUNSELOR, "Otto")
    response = await client.get(f"/api/chat/{assigned_case.id}/messages", headers=outsider.headers)
    assert response.status_code == 404
    other_student = make_user(Role.STUDENT, "Olga")
    response = await client.post(
        f"/api/chat/{assigned_case.id}/messages", json={"content": "x"}, headers=other_student.headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_can_join_any_conversation(client: AsyncClient, assigned_case, admin):
    response = await client.post(
        f"/api/chat/{assigned_case.id}/messages", json={"content": "Checking in"}, headers=admin.headers
    )
    assert response.status_code == 201


# =============================================================================
# Read receipts
# =============================================================================

@pytest.mark.asyncio
async def test_mark_read_is_idempotent(client: AsyncClient, db, assigned_case, student, counselor):
    [message] = _seed_messages(db, assigned_case, counselor, 1)
    url = f"/api/chat/{assigned_case.id}/messages/{message.id}/read"

    first = await client.patch(url, headers=student.headers)
    second = await client.patch(url, headers=student.headers)
    assert first.status_code == second.status_code == 200
    readers = [r["userId"] for r in second.json()["read_by"]]
    assert readers.count(str(student.user.id)) == 1
    assert second.json()["read_by"] == first.json()["read_by"]


@pytest.mark.asyncio
async def test_read_all_and_unread_count(client: AsyncClient, db, assigned_case, student, counselor):
    _seed_messages(db, assigned_case, counselor, 3)
    _seed_messages(db, assigned_case, student, 1)

    count_url = f"/api/chat/{assigned_case.id}/unread-count"
    assert (await client.get(count_url, headers=student.headers)).json() == {"count": 3}
    assert (await client.get(count_url, headers=counselor.headers)).json() == {"count": 1}

    updated = await client.patch(f"/api/chat/{assigned_case.id}/messages/read-all", headers=student.headers)
    assert updated.json() == {"updated": 3}
    again = await client.patch(f"/api/chat/{assigned_case.id}/messages/read-all", headers=student.headers)
    assert again.json() == {"updated": 0}
    assert (await client.get(count_url, headers=student.headers)).json() == {"count": 0}


@pytest.mark.asyncio
async def test_mark_read_unknown_message(client: AsyncClient, assigned_case, student):
    response = await client.patch(
        f"/api/chat/{assigned_case.id}/messages/00000000-0000-0000-0000-000000000000/read",
        headers=student.headers,
    )
    assert response.status_code == 404


# =============================================================================
# Paging
# =============================================================================

@pytest.mark.asyncio
async def test_history_pages_oldest_first(client: AsyncClient, db, assigned_case, student, counselor):
    _seed_messages(db, assigned_case, counselor, 5)
    url = f"/api/chat/{assigned_case.id}/messages"

    first = (await client.get(url, params={"limit": 2}, headers=student.headers)).json()
    assert [m["content"] for m in first["data"]] == ["message 0", "message 1"]
    assert first["pagination"] == {"total": 5, "page": 1, "limit": 2, "totalPages": 3}

    last = (await client.get(url, params={"limit": 2, "page": 3}, headers=student.headers)).json()
    assert [m["content"] for m in last["data"]] == ["message 4"]

    default = (await client.get(url, headers=student.headers)).json()
    assert default["pagination"]["limit"] == 50
    assert len(default["data"]) == 5


@pytest.mark.asyncio
async def test_paging_returns_messages_sharing_a_timestamp(client: AsyncClient, db, assigned_case, student, counselor):
    stamp = datetime.now(timezone.utc) - timedelta(minutes=30)
    offsets = [0, 1, 1, 2]
    db.add_all([
        Message(
            service_request_id=assigned_case.id,
            sender_id=counselor.user.id,
            sender_role=counselor.user.role,
            content=f"m{i}",
            read_by=[],
            created_at=stamp + timedelta(minutes=offset),
        )
        for i, offset in enumerate(offsets)
    ])
    db.commit()
    url = f"/api/chat/{assigned_case.id}/messages"

    seen = []
    for page in (1, 2):
        body = (await client.get(url, params={"limit": 2, "page": page}, headers=student.headers)).json()
        seen.extend(m["content"] for m in body["data"])

    assert sorted(seen) == ["m0", "m1", "m2", "m3"]
    assert seen[0] == "m0" and seen[-1] == "m3"


@pytest.mark.asyncio
async def test_deleted_messages_are_hidden(client: AsyncClient, db, assigned_case, student, counselor):
    messages = _seed_messages(db, assigned_case, counselor, 2)
    messages[0].is_deleted = True
    db.commit()

    data = (await client.get(f"/api/chat/{assigned_case.id}/messages", headers=student.headers)).json()["data"]
    assert [m["content"] for m in data] == ["message 1"]
    # Still stored
    assert db.query(Message).count() == 2
