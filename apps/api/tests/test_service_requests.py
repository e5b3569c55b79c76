"""Tests for the service request lifecycle, assignment and visibility."""
import pytest
from httpx import AsyncClient

from app.db.enums import NotificationType, Role, ServiceRequestStatus, ServiceType
from app.db.models import Notification, ServiceRequest

SR = ServiceRequestStatus


def _notifications(db, recipient_id, notification_type: NotificationType):
    return db.query(Notification).filter(
        Notification.recipient_id == recipient_id,
        Notification.type == notification_type.value,
    ).all()


# =============================================================================
# End-to-end
# =============================================================================

@pytest.mark.asyncio
async def test_student_request_assigned_worked_and_completed(
    client: AsyncClient, db, student, admin, counselor, make_user, realtime_log
):
    """Apply, assign, create a task, submit it and approve it."""
    second_admin = make_user(Role.SUPER_ADMIN, "Bo")

    created = await client.post(
        "/api/service-requests", json={"serviceType": "VISA_GUIDANCE"}, headers=student.headers
    )
    assert created.status_code == 201
    sr = created.json()
    assert sr["status"] == SR.PENDING_ADMIN_ASSIGNMENT.value
    assert sr["progress"] == 5
    for each_admin in (admin, second_admin):
        assert len(_notifications(db, each_admin.user.id, NotificationType.SERVICE_REQUEST_CREATED)) == 1

    assigned = await client.post(
        f"/api/admin/service-requests/{sr['id']}/assign",
        json={"assignedCounselor": str(counselor.user.id)},
        headers=admin.headers,
    )
    assert assigned.status_code == 200
    body = assigned.json()
    assert body["status"] == SR.ASSIGNED.value
    assert body["progress"] >= 15
    assert body["assigned_by_id"] == str(admin.user.id)
    assert _notifications(db, counselor.user.id, NotificationType.SERVICE_REQUEST_ASSIGNED)
    assert _notifications(db, student.user.id, NotificationType.SERVICE_REQUEST_ASSIGNED)

    task = await client.post(
        "/api/tasks",
        json={
            "serviceRequestId": sr["id"],
            "taskType": "DOCUMENT_UPLOAD",
            "title": "Upload passport",
            "description": "Scan of the photo page",
        },
        headers=counselor.headers,
    )
    assert task.status_code == 201
    task_id = task.json()["id"]
    case = (await client.get(f"/api/service-requests/{sr['id']}", headers=counselor.headers)).json()
    assert case["status"] == SR.IN_PROGRESS.value
    assert case["progress"] >= 50

    submitted = await client.post(
        f"/api/tasks/{task_id}/submit",
        json={"text": "done", "files": [{"url": "https://files.test/passport.pdf", "originalName": "passport.pdf"}]},
        headers=student.headers,
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "SUBMITTED"
    assert _notifications(db, counselor.user.id, NotificationType.TASK_SUBMITTED)

    reviewed = await client.post(
        f"/api/tasks/{task_id}/review",
        json={"feedback": "ok", "requiresRevision": False},
        headers=counselor.headers,
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["status"] == "COMPLETED"

    final = (await client.get(f"/api/service-requests/{sr['id']}", headers=student.headers)).json()
    assert final["status"] == SR.COMPLETED.value
    assert final["progress"] == 100
    assert final["completed_at"] is not None
    assert _notifications(db, student.user.id, NotificationType.SERVICE_COMPLETED)
    assert _notifications(db, admin.user.id, NotificationType.SERVICE_COMPLETED)
    # Completion is announced once, not as a plain status change as well
    assert not [
        n for n in _notifications(db, student.user.id, NotificationType.SERVICE_REQUEST_STATUS_CHANGED)
        if n.meta.get("toStatus") == SR.COMPLETED.value
    ]

    history = final["status_history"]
    status_rows = [h for h in history if h["event"] == "STATUS_CHANGE"]
    assert [h["to_status"] for h in status_rows] == [
        SR.PENDING_ADMIN_ASSIGNMENT.value,
        SR.ASSIGNED.value,
        SR.IN_PROGRESS.value,
        SR.COMPLETED.value,
    ]
    assert any(e["event"] == "service_request_updated" for e in realtime_log)


@pytest.mark.asyncio
async def test_duplicate_open_request_is_rejected(client: AsyncClient, student):
    first = await client.post(
        "/api/service-requests", json={"serviceType": "PROFILE_ASSESSMENT"}, headers=student.headers
    )
    second = await client.post(
        "/api/service-requests", json={"serviceType": "PROFILE_ASSESSMENT"}, headers=student.headers
    )
    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["existingRequestId"] == first.json()["id"]


@pytest.mark.asyncio
async def test_terminal_request_allows_reapplying(client: AsyncClient, student, make_service_request):
    make_service_request(student, status=SR.CANCELLED, service_type=ServiceType.LOAN_ASSISTANCE)
    response = await client.post(
        "/api/service-requests", json={"serviceType": "LOAN_ASSISTANCE"}, headers=student.headers
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_only_students_apply(client: AsyncClient, counselor):
    response = await client.post(
        "/api/service-requests", json={"serviceType": "VISA_GUIDANCE"}, headers=counselor.headers
    )
    assert response.status_code == 403


# =============================================================================
# Transitions
# =============================================================================

@pytest.mark.asyncio
async def test_invalid_transition_reports_allowed_targets(client: AsyncClient, assigned_case, counselor):
    response = await client.patch(
        f"/api/service-requests/{assigned_case.id}/status",
        json={"status": "COMPLETED"},
        headers=counselor.headers,
    )
    assert response.status_code == 400
    body = response.json()
    assert body["currentStatus"] == SR.ASSIGNED.value
    assert body["allowedTransitions"] == ["IN_PROGRESS", "WAITING_STUDENT", "ON_HOLD", "CANCELLED"]


@pytest.mark.asyncio
async def test_on_hold_keeps_progress_and_resume_applies_floor(client: AsyncClient, assigned_case, counselor):
    url = f"/api/service-requests/{assigned_case.id}/status"
    on_hold = await client.patch(url, json={"status": "ON_HOLD"}, headers=counselor.headers)
    assert on_hold.status_code == 200
    assert on_hold.json()["progress"] == 15

    resumed = await client.patch(url, json={"status": "IN_PROGRESS", "note": "back"}, headers=counselor.headers)
    assert resumed.json()["progress"] == 50
    last = resumed.json()["status_history"][-1]
    assert (last["from_status"], last["to_status"], last["note"]) == ("ON_HOLD", "IN_PROGRESS", "back")


@pytest.mark.asyncio
async def test_cancelled_request_rejects_further_changes(client: AsyncClient, assigned_case, counselor):
    url = f"/api/service-requests/{assigned_case.id}/status"
    assert (await client.patch(url, json={"status": "CANCELLED"}, headers=counselor.headers)).status_code == 200
    response = await client.patch(url, json={"status": "IN_PROGRESS"}, headers=counselor.headers)
    assert response.status_code == 400
    assert response.json()["allowedTransitions"] == []


@pytest.mark.asyncio
async def test_students_cannot_change_status(client: AsyncClient, assigned_case, student):
    response = await client.patch(
        f"/api/service-requests/{assigned_case.id}/status",
        json={"status": "IN_PROGRESS"},
        headers=student.headers,
    )
    assert response.status_code == 403


def test_history_forms_permitted_chain(db, assigned_case, counselor, as_session):
    from app.core.state_machines import SERVICE_REQUEST_TRANSITIONS
    from app.services import service_request_service

    session = as_session(counselor)
    for target in (SR.WAITING_STUDENT, SR.IN_PROGRESS, SR.ON_HOLD, SR.IN_PROGRESS, SR.COMPLETED):
        service_request_service.transition(db, assigned_case, target, session)

    rows = [h for h in assigned_case.status_history if h.event == "STATUS_CHANGE"]
    for previous, current in zip(rows, rows[1:]):
        assert current.from_status == previous.to_status
        assert SR(current.to_status) in SERVICE_REQUEST_TRANSITIONS[SR(current.from_status)]
    assert assigned_case.progress == 100
    assert assigned_case.completed_at is not None


# =============================================================================
# Assignment
# =============================================================================

@pytest.mark.asyncio
async def test_assign_requires_matching_active_role(client: AsyncClient, make_service_request, student, admin, agent):
    sr = make_service_request(student)
    wrong_role = await client.post(
        f"/api/admin/service-requests/{sr.id}/assign",
        json={"assignedCounselor": str(agent.user.id)},
        headers=admin.headers,
    )
    assert wrong_role.status_code == 400

    nobody = await client.post(
        f"/api/admin/service-requests/{sr.id}/assign", json={}, headers=admin.headers
    )
    assert nobody.status_code == 400


@pytest.mark.asyncio
async def test_reassignment_before_work_keeps_assigned(
    client: AsyncClient, db, assigned_case, admin, make_user
):
    other = make_user(Role.COUNSELOR, "Otto")
    history_before = len(assigned_case.status_history)
    response = await client.post(
        f"/api/admin/service-requests/{assigned_case.id}/assign",
        json={"assignedCounselor": str(other.user.id)},
        headers=admin.headers,
    )
    assert response.status_code == 200
    assert response.json()["assigned_counselor_id"] == str(other.user.id)
    assert response.json()["status"] == SR.ASSIGNED.value
    assert len(response.json()["status_history"]) == history_before


@pytest.mark.asyncio
async def test_assignment_after_work_started_is_refused(client: AsyncClient, assigned_case, counselor, admin):
    await client.patch(
        f"/api/service-requests/{assigned_case.id}/status",
        json={"status": "IN_PROGRESS"},
        headers=counselor.headers,
    )
    response = await client.post(
        f"/api/admin/service-requests/{assigned_case.id}/assign",
        json={"assignedCounselor": str(counselor.user.id)},
        headers=admin.headers,
    )
    assert response.status_code == 400
    assert response.json()["currentStatus"] == SR.IN_PROGRESS.value


@pytest.mark.asyncio
async def test_assignment_fills_student_counselor(client: AsyncClient, db, make_service_request, student, counselor, admin):
    sr = make_service_request(student)
    await client.post(
        f"/api/admin/service-requests/{sr.id}/assign",
        json={"assignedCounselor": str(counselor.user.id)},
        headers=admin.headers,
    )
    db.refresh(student.student)
    assert student.student.assigned_counselor_id == counselor.user.id


# =============================================================================
# Visibility
# =============================================================================

@pytest.mark.asyncio
async def test_cases_outside_visibility_are_not_found(
    client: AsyncClient, assigned_case, make_user
):
    stranger = make_user(Role.COUNSELOR, "Stan")
    other_student = make_user(Role.STUDENT, "Olga")
    for actor in (stranger, other_student):
        response = await client.get(f"/api/service-requests/{assigned_case.id}", headers=actor.headers)
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_is_scoped_by_role(client: AsyncClient, assigned_case, make_service_request, make_user, counselor, admin):
    other_student = make_user(Role.STUDENT, "Olga")
    make_service_request(other_student)

    mine = (await client.get("/api/service-requests", headers=counselor.headers)).json()
    assert [item["id"] for item in mine["data"]] == [str(assigned_case.id)]
    everything = (await client.get("/api/service-requests", headers=admin.headers)).json()
    assert everything["pagination"]["total"] == 2
    assert everything["pagination"]["totalPages"] == 1

    filtered = await client.get(
        "/api/service-requests",
        params={"status": "ASSIGNED", "serviceType": "PROFILE_ASSESSMENT"},
        headers=admin.headers,
    )
    assert filtered.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_internal_notes_hidden_from_student(client: AsyncClient, assigned_case, counselor, student):
    internal = await client.post(
        f"/api/service-requests/{assigned_case.id}/notes",
        json={"text": "Weak transcript", "isInternal": True},
        headers=counselor.headers,
    )
    assert internal.status_code == 201
    # Students' notes are always public
    own = await client.post(
        f"/api/service-requests/{assigned_case.id}/notes",
        json={"text": "Uploaded it", "isInternal": True},
        headers=student.headers,
    )
    assert own.status_code == 201
    assert own.json()["is_internal"] is False

    as_student = (await client.get(f"/api/service-requests/{assigned_case.id}", headers=student.headers)).json()
    assert [n["text"] for n in as_student["notes"]] == ["Uploaded it"]
    as_counselor = (await client.get(f"/api/service-requests/{assigned_case.id}", headers=counselor.headers)).json()
    assert {n["text"] for n in as_counselor["notes"]} == {"Weak transcript", "Uploaded it"}


@pytest.mark.asyncio
async def test_stats_are_admin_only(client: AsyncClient, assigned_case, admin, counselor):
    assert (await client.get("/api/service-requests/stats", headers=counselor.headers)).status_code == 403
    stats = (await client.get("/api/service-requests/stats", headers=admin.headers)).json()
    assert stats["total"] == 1
    assert stats["byStatus"] == {"ASSIGNED": 1}
    assert stats["byServiceType"] == {"PROFILE_ASSESSMENT": 1}


def test_concurrent_writer_gets_stale_write(db, assigned_case, counselor, as_session):
    """The version column turns a lost race into StaleWrite instead of a silent overwrite."""
    from app.core.errors import StaleWrite
    from app.db.session import SessionLocal
    from app.services import service_request_service

    other_db = SessionLocal()
    try:
        racer = other_db.get(ServiceRequest, assigned_case.id)
        service_request_service.transition(db, assigned_case, SR.IN_PROGRESS, as_session(counselor))
        with pytest.raises(StaleWrite):
            service_request_service.transition(other_db, racer, SR.ON_HOLD, as_session(counselor))
    finally:
        other_db.close()
