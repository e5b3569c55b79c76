"""Tests for the student's own profile, onboarding, document slots and the counselor roster."""
import pytest
from httpx import AsyncClient

from app.db.enums import AuditAction, NotificationType, Role, ServiceType
from app.db.models import AuditLog, Notification
from app.services import task_service

PDF = ("transcript.pdf", b"%PDF-1.4 transcript body", "application/pdf")


# =============================================================================
# Onboarding and profile
# =============================================================================

@pytest.mark.asyncio
async def test_onboarding_records_preferences_and_tells_admins(client: AsyncClient, db, student, admin):
    response = await client.post(
        "/api/students/onboarding",
        json={
            "phone": "+44 7700 900123",
            "preferredCountries": ["UK", "Germany"],
            "selectedServices": [ServiceType.VISA_GUIDANCE.value, ServiceType.VISA_GUIDANCE.value],
        },
        headers=student.headers,
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["student"]["onboarding_completed"] is True
    assert body["student"]["preferred_countries"] == ["UK", "Germany"]
    assert body["student"]["selected_services"] == [ServiceType.VISA_GUIDANCE.value]
    assert body["user"]["phone"] == "+44 7700 900123"

    alert = db.query(Notification).filter(Notification.recipient_id == admin.user.id).one()
    assert alert.type == NotificationType.GENERAL.value
    assert "completed onboarding" in alert.message
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.STUDENT_ONBOARDED.value).count() == 1


@pytest.mark.asyncio
async def test_onboarding_rejects_unknown_service(client: AsyncClient, student):
    response = await client.post(
        "/api/students/onboarding",
        json={"selectedServices": ["CAREER_COACHING"]},
        headers=student.headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_profile_read_and_partial_update(client: AsyncClient, db, student):
    before = await client.get("/api/students/profile", headers=student.headers)
    assert before.status_code == 200
    assert before.json()["student"]["id"] == str(student.student.id)
    assert before.json()["user"]["email"] == student.user.email

    updated = await client.put(
        "/api/students/profile",
        json={"lastName": "  Patel ", "currentEducation": "BSc Physics", "preferredCountries": ["Canada"]},
        headers=student.headers,
    )
    assert updated.status_code == 200
    body = updated.json()
    assert body["user"]["last_name"] == "Patel"
    assert body["user"]["first_name"] == "Sam"
    assert body["student"]["current_education"] == "BSc Physics"
    assert body["student"]["preferred_countries"] == ["Canada"]

    entry = db.query(AuditLog).filter(AuditLog.action == AuditAction.STUDENT_PROFILE_UPDATED.value).one()
    assert entry.previous_state["last_name"] == "Tester"
    assert entry.new_state["current_education"] == "BSc Physics"


@pytest.mark.asyncio
async def test_profile_update_keeps_required_fields(client: AsyncClient, db, student):
    cleared = await client.put("/api/students/profile", json={"firstName": "   "}, headers=student.headers)
    assert cleared.status_code == 400

    ignored = await client.put(
        "/api/students/profile", json={"preferredCountries": None}, headers=student.headers
    )
    assert ignored.status_code == 200
    assert ignored.json()["student"]["preferred_countries"] == []
    # Nothing changed, nothing audited
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.STUDENT_PROFILE_UPDATED.value).count() == 0


@pytest.mark.asyncio
async def test_profile_routes_are_student_only(client: AsyncClient, counselor):
    response = await client.get("/api/students/profile", headers=counselor.headers)
    assert response.status_code == 403


# =============================================================================
# Document slots
# =============================================================================

@pytest.mark.asyncio
async def test_document_slots_list_and_remove(client: AsyncClient, db, student):
    empty = (await client.get("/api/students/documents", headers=student.headers)).json()
    assert empty["documents"] == []
    assert [slot["type"] for slot in empty["availableTypes"]] == [
        "transcripts", "testScores", "sop", "recommendation", "resume", "passport",
    ]
    assert not any(slot["uploaded"] for slot in empty["availableTypes"])

    uploaded = await client.post(
        "/api/upload/student-document/transcripts", files={"file": PDF}, headers=student.headers
    )
    assert uploaded.status_code == 201

    listed = (await client.get("/api/students/documents", headers=student.headers)).json()
    assert [(d["type"], d["label"]) for d in listed["documents"]] == [("transcripts", "Transcripts")]
    assert listed["documents"][0]["url"] == uploaded.json()["documents"]["transcripts"]

    removed = await client.delete("/api/students/documents/transcripts", headers=student.headers)
    assert removed.status_code == 200
    assert removed.json() == {"message": "Transcripts deleted", "documentType": "transcripts"}
    db.refresh(student.student)
    assert "transcripts" not in student.student.documents
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.STUDENT_DOCUMENT_DELETED.value).count() == 1

    again = await client.delete("/api/students/documents/transcripts", headers=student.headers)
    assert again.status_code == 404

    unknown = await client.delete("/api/students/documents/diary", headers=student.headers)
    assert unknown.status_code == 400


# =============================================================================
# Counselor roster
# =============================================================================

@pytest.mark.asyncio
async def test_counselor_roster_counts_cases_and_open_tasks(
    client: AsyncClient, db, assigned_case, counselor, student, make_user, as_session
):
    task_service.create_task(db, as_session(counselor), assigned_case.id, "Upload transcripts")

    response = await client.get("/api/counselors/students", headers=counselor.headers)
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    [entry] = body["data"]
    assert entry["id"] == str(student.student.id)
    assert entry["user"]["email"] == student.user.email
    assert entry["activeRequests"] == 1
    assert entry["pendingTasks"] == 1

    other = make_user(Role.COUNSELOR, "Otto")
    empty = (await client.get("/api/counselors/students", headers=other.headers)).json()
    assert empty["data"] == []
    assert empty["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_roster_is_counselor_only(client: AsyncClient, agent):
    response = await client.get("/api/counselors/students", headers=agent.headers)
    assert response.status_code == 403
