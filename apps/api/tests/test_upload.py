"""Tests for the file gateway and attaching stored files to entities."""
import os

import pytest
from httpx import AsyncClient

from app.db.enums import AuditAction, Role
from app.db.models import AuditLog
from app.services import task_service, upload_service

PDF = ("report.pdf", b"%PDF-1.4 report body", "application/pdf")
PNG = ("face.png", b"\x89PNG\r\n\x1a\nfake-image-bytes", "image/png")


# =============================================================================
# Raw storage
# =============================================================================

@pytest.mark.asyncio
async def test_upload_file_returns_descriptor(client: AsyncClient, student, local_storage):
    response = await client.post(
        "/api/upload/file", files={"file": PDF}, data={"folder": "Reports"}, headers=student.headers
    )
    assert response.status_code == 201
    stored = response.json()
    assert stored["format"] == "pdf"
    assert stored["size"] == len(PDF[1])
    assert stored["originalName"] == "report.pdf"
    assert stored["publicId"].startswith("reports/")
    assert os.path.isfile(os.path.join(local_storage, stored["publicId"]))

    served = await client.get(stored["url"])
    assert served.status_code == 200
    assert served.content == PDF[1]


@pytest.mark.asyncio
async def test_upload_requires_authentication(client: AsyncClient):
    response = await client.post("/api/upload/file", files={"file": PDF})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_upload_rejects_types_and_sizes(client: AsyncClient, student, monkeypatch):
    exe = await client.post(
        "/api/upload/file",
        files={"file": ("tool.exe", b"MZ...", "application/x-msdownload")},
        headers=student.headers,
    )
    assert exe.status_code == 400

    empty = await client.post(
        "/api/upload/file", files={"file": ("empty.pdf", b"", "application/pdf")}, headers=student.headers
    )
    assert empty.status_code == 400

    monkeypatch.setattr(upload_service, "MAX_IMAGE_BYTES", 8)
    too_big = await client.post("/api/upload/file", files={"file": PNG}, headers=student.headers)
    assert too_big.status_code == 400
    assert "Images" in too_big.json()["error"]


@pytest.mark.asyncio
async def test_folder_traversal_is_refused(client: AsyncClient, student):
    response = await client.post(
        "/api/upload/file", files={"file": PDF}, data={"folder": "../etc"}, headers=student.headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_upload_many_files(client: AsyncClient, student, monkeypatch):
    response = await client.post(
        "/api/upload/files",
        files=[("files", PDF), ("files", PNG)],
        headers=student.headers,
    )
    assert response.status_code == 201
    assert [f["format"] for f in response.json()["files"]] == ["pdf", "png"]

    monkeypatch.setattr(upload_service, "MAX_FILES_PER_REQUEST", 1)
    too_many = await client.post(
        "/api/upload/files", files=[("files", PDF), ("files", PDF)], headers=student.headers
    )
    assert too_many.status_code == 400


@pytest.mark.asyncio
async def test_one_bad_file_stores_nothing(client: AsyncClient, student, local_storage):
    response = await client.post(
        "/api/upload/files",
        files=[("files", PDF), ("files", ("x.sh", b"#!", "application/x-sh"))],
        headers=student.headers,
    )
    assert response.status_code == 400
    assert not os.path.exists(local_storage) or os.listdir(local_storage) == []


@pytest.mark.asyncio
async def test_signed_params_for_local_backend(client: AsyncClient, student):
    response = await client.get("/api/upload/signed-params", params={"folder": "docs"}, headers=student.headers)
    assert response.status_code == 200
    params = response.json()
    assert params["uploadUrl"] == "/api/upload/file"
    assert params["publicId"].startswith("docs/")
    assert params["expiresIn"] > 0


@pytest.mark.asyncio
async def test_delete_is_super_admin_only(client: AsyncClient, db, admin, student):
    stored = (await client.post("/api/upload/file", files={"file": PDF}, headers=student.headers)).json()

    refused = await client.request(
        "DELETE", "/api/upload/file", json={"publicId": stored["publicId"]}, headers=student.headers
    )
    assert refused.status_code == 403

    deleted = await client.request(
        "DELETE", "/api/upload/file", json={"publicId": stored["publicId"]}, headers=admin.headers
    )
    assert deleted.status_code == 200
    assert (await client.get(stored["url"])).status_code == 404
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.FILE_DELETED.value).count() == 1

    missing = await client.request(
        "DELETE", "/api/upload/file", json={"publicId": stored["publicId"]}, headers=admin.headers
    )
    assert missing.status_code == 404


# =============================================================================
# Attach to entities
# =============================================================================

@pytest.mark.asyncio
async def test_task_files_join_next_submission(
    client: AsyncClient, db, assigned_case, counselor, student, as_session
):
    task = task_service.create_task(db, as_session(counselor), assigned_case.id, "Upload passport")

    queued = await client.post(f"/api/upload/task/{task.id}", files=[("files", PDF)], headers=student.headers)
    assert queued.status_code == 201
    assert len(queued.json()["pending_files"]) == 1

    submitted = await client.post(f"/api/tasks/{task.id}/submit", json={"text": "See file"}, headers=student.headers)
    body = submitted.json()
    assert body["pending_files"] == []
    assert [f["originalName"] for f in body["submission"]["files"]] == ["report.pdf"]


@pytest.mark.asyncio
async def test_only_assignee_uploads_task_files(client: AsyncClient, db, assigned_case, counselor, as_session):
    task = task_service.create_task(db, as_session(counselor), assigned_case.id, "Upload passport")
    response = await client.post(f"/api/upload/task/{task.id}", files=[("files", PDF)], headers=counselor.headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_service_request_documents(client: AsyncClient, db, assigned_case, counselor, student):
    response = await client.post(
        f"/api/upload/service-request/{assigned_case.id}", files=[("files", PDF)], headers=counselor.headers
    )
    assert response.status_code == 201
    [document] = response.json()["documents"]
    assert document["uploadedBy"] == str(counselor.user.id)
    assert db.query(AuditLog).filter(
        AuditLog.action == AuditAction.FILE_UPLOADED.value,
        AuditLog.entity_id == str(assigned_case.id),
    ).count() == 1

    # Students read their case but cannot write to it
    refused = await client.post(
        f"/api/upload/service-request/{assigned_case.id}", files=[("files", PDF)], headers=student.headers
    )
    assert refused.status_code == 403


@pytest.mark.asyncio
async def test_student_document_slots(client: AsyncClient, student, agent, agent_student):
    own = await client.post("/api/upload/student-document/passport", files={"file": PDF}, headers=student.headers)
    assert own.status_code == 201
    assert own.json()["documents"]["passport"].startswith("/api/upload/local/students/")

    by_agent = await client.post(
        "/api/upload/student-document/testScores",
        params={"studentId": str(agent_student.student.id)},
        files={"file": PDF},
        headers=agent.headers,
    )
    assert by_agent.status_code == 201
    assert "testScores" in by_agent.json()["documents"]

    foreign = await client.post(
        "/api/upload/student-document/sop",
        params={"studentId": str(student.student.id)},
        files={"file": PDF},
        headers=agent.headers,
    )
    assert foreign.status_code == 404

    unknown_slot = await client.post("/api/upload/student-document/diary", files={"file": PDF}, headers=student.headers)
    assert unknown_slot.status_code == 400


@pytest.mark.asyncio
async def test_avatar_must_be_image(client: AsyncClient, counselor):
    document = await client.post("/api/upload/avatar", files={"file": PDF}, headers=counselor.headers)
    assert document.status_code == 400

    image = await client.post("/api/upload/avatar", files={"file": PNG}, headers=counselor.headers)
    assert image.status_code == 201
    assert image.json()["avatar_url"].startswith("/api/upload/local/avatars/")
    assert image.json()["role"] == Role.COUNSELOR.value
