"""Tests for the lifecycle transition tables."""
import pytest

from app.core.state_machines import (
    APPLICATION_TRANSITIONS,
    SERVICE_REQUEST_PROGRESS_FLOOR,
    SERVICE_REQUEST_TRANSITIONS,
    TASK_TRANSITIONS,
    is_terminal,
    is_valid_transition,
    next_statuses,
)
from app.db.enums import ApplicationStatus, ServiceRequestStatus, TaskStatus
from app.db.enums.service_requests import TERMINAL_SERVICE_REQUEST_STATUSES

SR = ServiceRequestStatus
A = ApplicationStatus


@pytest.mark.parametrize(
    "table, enum_cls",
    [
        (SERVICE_REQUEST_TRANSITIONS, ServiceRequestStatus),
        (TASK_TRANSITIONS, TaskStatus),
        (APPLICATION_TRANSITIONS, ApplicationStatus),
    ],
)
def test_every_status_has_an_entry(table, enum_cls):
    assert set(table) == set(enum_cls)
    for targets in table.values():
        assert all(isinstance(t, enum_cls) for t in targets)


@pytest.mark.parametrize(
    "table",
    [SERVICE_REQUEST_TRANSITIONS, TASK_TRANSITIONS, APPLICATION_TRANSITIONS],
)
def test_no_self_transitions(table):
    for status, targets in table.items():
        assert status not in targets


def test_service_request_terminals():
    terminals = {s for s in SR if is_terminal(SERVICE_REQUEST_TRANSITIONS, s)}
    assert terminals == {SR.COMPLETED, SR.CANCELLED}
    assert terminals == set(TERMINAL_SERVICE_REQUEST_STATUSES)
    # Completion only comes from active work
    assert [s for s in SR if SR.COMPLETED in SERVICE_REQUEST_TRANSITIONS[s]] == [SR.IN_PROGRESS]


def test_every_open_case_can_be_cancelled():
    for status, targets in SERVICE_REQUEST_TRANSITIONS.items():
        if targets:
            assert SR.CANCELLED in targets


def test_progress_floor_rises_along_the_happy_path():
    path = [SR.PENDING_ADMIN_ASSIGNMENT, SR.ASSIGNED, SR.IN_PROGRESS, SR.WAITING_STUDENT]
    floors = [SERVICE_REQUEST_PROGRESS_FLOOR[s] for s in path]
    assert floors == sorted(floors)
    assert SERVICE_REQUEST_PROGRESS_FLOOR[SR.COMPLETED] == 100
    assert SR.ON_HOLD not in SERVICE_REQUEST_PROGRESS_FLOOR


def test_application_path_is_linear_until_decision():
    status = A.ASSIGNED
    walked = [status]
    while len(APPLICATION_TRANSITIONS[status]) == 1:
        status = APPLICATION_TRANSITIONS[status][0]
        walked.append(status)
    assert walked == [A.ASSIGNED, A.DOCS_PENDING, A.DOCS_VERIFIED, A.SUBMITTED, A.UNDER_REVIEW]
    assert next_statuses(APPLICATION_TRANSITIONS, A.UNDER_REVIEW) == ["Offer Received", "Rejected"]
    assert next_statuses(APPLICATION_TRANSITIONS, A.OFFER_RECEIVED) == ["Accepted"]


def test_next_statuses_follow_declaration_order():
    assert next_statuses(TASK_TRANSITIONS, TaskStatus.SUBMITTED) == [
        "UNDER_REVIEW",
        "REVISION_REQUIRED",
        "COMPLETED",
    ]
    assert next_statuses(TASK_TRANSITIONS, TaskStatus.COMPLETED) == []


def test_is_valid_transition():
    assert is_valid_transition(TASK_TRANSITIONS, TaskStatus.REVISION_REQUIRED, TaskStatus.SUBMITTED)
    assert not is_valid_transition(TASK_TRANSITIONS, TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS)
    assert not is_valid_transition(APPLICATION_TRANSITIONS, A.OFFER_RECEIVED, A.REJECTED)
