"""Tests for university applications (admissions)."""
import pytest
from httpx import AsyncClient

from app.core.state_machines import APPLICATION_TRANSITIONS
from app.db.enums import ApplicationStatus, NotificationType, Role
from app.db.models import Application, Notification

A = ApplicationStatus

UNDER_REVIEW_PATH = [A.DOCS_PENDING, A.DOCS_VERIFIED, A.SUBMITTED, A.UNDER_REVIEW]


async def _create(client: AsyncClient, agent, agent_student, **extra) -> dict:
    response = await client.post(
        "/api/admissions/agent/create",
        json={
            "studentId": str(agent_student.student.id),
            "universityName": "University of Leeds",
            "programName": "MSc Data Science",
            "intake": "Fall 2027",
            "country": "UK",
            "checklist": ["Transcripts", "  ", "IELTS"],
            **extra,
        },
        headers=agent.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _advance(client: AsyncClient, actor, application_id: str, statuses, prefix: str = "agent") -> dict:
    body = {}
    for status in statuses:
        response = await client.patch(
            f"/api/admissions/{prefix}/{application_id}/status",
            json={"status": status.value},
            headers=actor.headers,
        )
        assert response.status_code == 200, response.text
        body = response.json()
    return body


@pytest.fixture
async def application(client: AsyncClient, agent, agent_student) -> dict:
    return await _create(client, agent, agent_student)


# =============================================================================
# Create / assign
# =============================================================================

@pytest.mark.asyncio
async def test_agent_creates_application(client: AsyncClient, db, agent, agent_student, admin, realtime_log):
    data = await _create(client, agent, agent_student)

    assert data["status"] == A.ASSIGNED.value
    assert data["assigned_by"] == "agent"
    assert data["agent_id"] == str(agent.user.id)
    assert [c["item"] for c in data["checklist"]] == ["Transcripts", "IELTS"]
    assert data["next_statuses"] == [A.DOCS_PENDING.value]
    assert data["timeline"][0]["toStatus"] == A.ASSIGNED.value

    for recipient in (agent_student, admin):
        assert db.query(Notification).filter(
            Notification.recipient_id == recipient.user.id,
            Notification.type == NotificationType.APPLICATION_CREATED.value,
        ).count() == 1
    assert any(e["event"] == "application_updated" for e in realtime_log)


@pytest.mark.asyncio
async def test_agent_cannot_create_for_foreign_student(client: AsyncClient, agent, student):
    response = await client.post(
        "/api/admissions/agent/create",
        json={
            "studentId": str(student.student.id),
            "universityName": "U",
            "programName": "P",
            "intake": "Fall 2027",
        },
        headers=agent.headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_assign_requires_active_agent(client: AsyncClient, db, admin, agent, student):
    payload = {
        "studentId": str(student.student.id),
        "agentId": str(agent.user.id),
        "universityName": "TU Munich",
        "programName": "MSc Informatics",
        "intake": "Winter 2027",
    }
    created = await client.post("/api/admissions/admin/assign", json=payload, headers=admin.headers)
    assert created.status_code == 201
    assert created.json()["assigned_by"] == "admin"
    assert created.json()["assigned_by_user_id"] == str(admin.user.id)
    agent_alerts = db.query(Notification).filter(
        Notification.recipient_id == agent.user.id,
        Notification.type == NotificationType.APPLICATION_AGENT_ASSIGNED.value,
    ).all()
    assert len(agent_alerts) == 1
    assert agent_alerts[0].priority == "HIGH"

    agent.user.is_active = False
    db.commit()
    refused = await client.post("/api/admissions/admin/assign", json=payload, headers=admin.headers)
    assert refused.status_code == 400

    not_an_agent = await client.post(
        "/api/admissions/admin/assign",
        json={**payload, "agentId": str(admin.user.id)},
        headers=admin.headers,
    )
    assert not_an_agent.status_code == 400


# =============================================================================
# Status
# =============================================================================

@pytest.mark.asyncio
async def test_invalid_admissions_transition(client: AsyncClient, agent, application):
    await _advance(client, agent, application["id"], UNDER_REVIEW_PATH)

    response = await client.patch(
        f"/api/admissions/agent/{application['id']}/status",
        json={"status": A.ACCEPTED.value},
        headers=agent.headers,
    )
    assert response.status_code == 400
    body = response.json()
    assert body["currentStatus"] == A.UNDER_REVIEW.value
    assert body["allowedTransitions"] == [A.OFFER_RECEIVED.value, A.REJECTED.value]


@pytest.mark.asyncio
async def test_timeline_follows_transition_table(client: AsyncClient, agent, application):
    final = await _advance(
        client, agent, application["id"],
        [*UNDER_REVIEW_PATH, A.OFFER_RECEIVED, A.ACCEPTED, A.VISA_PROCESSING, A.COMPLETED],
    )
    assert final["status"] == A.COMPLETED.value
    assert final["next_statuses"] == []

    steps = [e for e in final["timeline"] if e["action"] == "status_changed"]
    for entry in steps:
        assert A(entry["toStatus"]) in APPLICATION_TRANSITIONS[A(entry["fromStatus"])]


@pytest.mark.asyncio
async def test_offer_received_only_goes_to_accepted_even_for_admin(client: AsyncClient, agent, admin, application):
    await _advance(client, agent, application["id"], [*UNDER_REVIEW_PATH, A.OFFER_RECEIVED])
    response = await client.patch(
        f"/api/admissions/admin/{application['id']}/status",
        json={"status": A.VISA_PROCESSING.value},
        headers=admin.headers,
    )
    assert response.status_code == 400
    assert response.json()["allowedTransitions"] == [A.ACCEPTED.value]


@pytest.mark.asyncio
async def test_student_accepts_offer(client: AsyncClient, db, agent, agent_student, application):
    early = await client.post(
        f"/api/admissions/student/{application['id']}/accept-offer", headers=agent_student.headers
    )
    assert early.status_code == 400
    assert early.json()["currentStatus"] == A.ASSIGNED.value

    offered = await _advance(client, agent, application["id"], [*UNDER_REVIEW_PATH, A.OFFER_RECEIVED])
    assert offered["next_statuses"] == [A.ACCEPTED.value]

    accepted = await client.post(
        f"/api/admissions/student/{application['id']}/accept-offer", headers=agent_student.headers
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == A.ACCEPTED.value
    offer_notes = db.query(Notification).filter(
        Notification.recipient_id == agent.user.id,
        Notification.title == "Offer accepted",
    )
    assert offer_notes.count() == 1
    assert offer_notes.one().priority == "HIGH"


@pytest.mark.asyncio
async def test_student_cannot_change_status(client: AsyncClient, agent_student, application):
    response = await client.patch(
        f"/api/admissions/agent/{application['id']}/status",
        json={"status": A.DOCS_PENDING.value},
        headers=agent_student.headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_other_agent_cannot_see_application(client: AsyncClient, make_user, application):
    other = make_user(Role.AGENT, "Ozzy")
    response = await client.get(f"/api/admissions/agent/{application['id']}", headers=other.headers)
    assert response.status_code == 404


# =============================================================================
# Artifacts
# =============================================================================

@pytest.mark.asyncio
async def test_checklist_toggle_and_append(client: AsyncClient, agent, application):
    url = f"/api/admissions/agent/{application['id']}/checklist"

    toggled = await client.patch(url, json={"index": 1}, headers=agent.headers)
    assert toggled.status_code == 200
    item = toggled.json()["checklist"][1]
    assert item["completed"] is True
    assert item["completedBy"] == str(agent.user.id)
    assert item["completedAt"] is not None

    reopened = (await client.patch(url, json={"index": 1}, headers=agent.headers)).json()
    assert reopened["checklist"][1]["completed"] is False
    assert reopened["checklist"][1]["completedAt"] is None

    appended = (await client.patch(url, json={"item": "Financial proof"}, headers=agent.headers)).json()
    assert appended["checklist"][-1]["item"] == "Financial proof"
    actions = [e["action"] for e in appended["timeline"]]
    assert actions[-3:] == ["checklist_completed", "checklist_reopened", "checklist_item_added"]

    out_of_range = await client.patch(url, json={"index": 9}, headers=agent.headers)
    assert out_of_range.status_code == 400
    both = await client.patch(url, json={"index": 0, "item": "x"}, headers=agent.headers)
    assert both.status_code == 400


@pytest.mark.asyncio
async def test_remark_is_recorded(client: AsyncClient, agent, application):
    response = await client.post(
        f"/api/admissions/agent/{application['id']}/remark", json={"text": "Called the school"}, headers=agent.headers
    )
    assert response.status_code == 201
    remark = response.json()["remarks"][0]
    assert remark["text"] == "Called the school"
    assert remark["byRole"] == Role.AGENT.value
    assert response.json()["timeline"][-1]["action"] == "remark_added"


@pytest.mark.asyncio
async def test_student_uploads_document_file(client: AsyncClient, db, agent, agent_student, application, local_storage):
    response = await client.post(
        f"/api/admissions/student/{application['id']}/upload-doc",
        files={"file": ("passport.pdf", b"%PDF-1.4 passport", "application/pdf")},
        data={"name": "Passport"},
        headers=agent_student.headers,
    )
    assert response.status_code == 201, response.text
    document = response.json()["documents"][0]
    assert document["name"] == "Passport"
    assert document["type"] == "pdf"
    assert document["uploadedByRole"] == Role.STUDENT.value
    assert document["url"].startswith("/api/upload/local/")

    served = await client.get(document["url"])
    assert served.status_code == 200
    assert served.content == b"%PDF-1.4 passport"

    # The agent is the counterparty of a student upload
    assert db.query(Notification).filter(
        Notification.recipient_id == agent.user.id,
        Notification.type == NotificationType.APPLICATION_DOCUMENT_UPLOADED.value,
    ).count() == 1


@pytest.mark.asyncio
async def test_agent_attaches_document_link(client: AsyncClient, db, agent, agent_student, application):
    response = await client.post(
        f"/api/admissions/agent/{application['id']}/upload-doc",
        json={"name": "Offer letter", "url": "https://files.example.com/offer.pdf", "type": "pdf"},
        headers=agent.headers,
    )
    assert response.status_code == 201
    assert response.json()["documents"][0]["url"] == "https://files.example.com/offer.pdf"
    assert db.query(Notification).filter(
        Notification.recipient_id == agent_student.user.id,
        Notification.type == NotificationType.APPLICATION_DOCUMENT_UPLOADED.value,
    ).count() == 1

    invalid = await client.post(
        f"/api/admissions/agent/{application['id']}/upload-doc", json={"url": ""}, headers=agent.headers
    )
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_upload_rejects_disallowed_type(client: AsyncClient, agent, application):
    response = await client.post(
        f"/api/admissions/agent/{application['id']}/upload-doc",
        files={"file": ("run.sh", b"#!/bin/sh", "application/x-sh")},
        headers=agent.headers,
    )
    assert response.status_code == 400


# =============================================================================
# Listing and soft delete
# =============================================================================

@pytest.mark.asyncio
async def test_lists_are_scoped_and_filtered(client: AsyncClient, agent, agent_student, admin, student, application):
    second = await _create(client, agent, agent_student, universityName="University of Toronto")
    await _advance(client, agent, second["id"], [A.DOCS_PENDING])

    mine = (await client.get("/api/admissions/agent", headers=agent.headers)).json()
    assert mine["pagination"]["total"] == 2
    filtered = await client.get(
        "/api/admissions/agent", params={"status": A.DOCS_PENDING.value}, headers=agent.headers
    )
    assert [a["id"] for a in filtered.json()["data"]] == [second["id"]]

    own = (await client.get("/api/admissions/student", headers=agent_student.headers)).json()
    assert own["pagination"]["total"] == 2
    unrelated = (await client.get("/api/admissions/student", headers=student.headers)).json()
    assert unrelated["data"] == []

    everything = (await client.get("/api/admissions/admin", headers=admin.headers)).json()
    assert everything["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_soft_delete_hides_application(client: AsyncClient, db, admin, agent, application):
    response = await client.delete(f"/api/admissions/admin/{application['id']}", headers=admin.headers)
    assert response.status_code == 200

    row = db.query(Application).one()
    db.refresh(row)
    assert row.is_deleted is True
    assert row.deleted_at is not None

    assert (await client.get(f"/api/admissions/admin/{application['id']}", headers=admin.headers)).status_code == 404
    assert (await client.get("/api/admissions/agent", headers=agent.headers)).json()["data"] == []


@pytest.mark.asyncio
async def test_admin_routes_are_admin_only(client: AsyncClient, agent, application):
    response = await client.delete(f"/api/admissions/admin/{application['id']}", headers=agent.headers)
    assert response.status_code == 403


def test_concurrent_status_change_gets_stale_write(db, agent, agent_student, as_session):
    """A writer holding a stale copy is refused and the winner's timeline entry survives."""
    from app.core.errors import StaleWrite
    from app.db.session import SessionLocal
    from app.services import application_service

    session = as_session(agent)
    created = application_service.create_by_agent(
        db, session, agent_student.student.id, "University of Leeds", "MSc Data Science", "Fall 2027"
    )

    other_db = SessionLocal()
    try:
        racer = other_db.get(Application, created.id)
        assert racer.status == A.ASSIGNED.value

        application_service.change_status(db, created.id, session, A.DOCS_PENDING)
        with pytest.raises(StaleWrite) as excinfo:
            application_service.change_status(other_db, created.id, session, A.DOCS_PENDING)
        assert excinfo.value.extra["currentStatus"] == A.DOCS_PENDING.value
    finally:
        other_db.close()

    db.expire_all()
    stored = db.get(Application, created.id)
    transitions = [(e.get("fromStatus"), e.get("toStatus")) for e in stored.timeline]
    assert transitions == [(None, A.ASSIGNED.value), (A.ASSIGNED.value, A.DOCS_PENDING.value)]
    assert stored.version == 2
