"""Allowed-transition tables for service requests, tasks and applications.

Each table maps a status to the set of statuses it may move to. Terminal
statuses map to an empty set. Every modifier in the services layer validates
against these tables, so they are the single source of truth for lifecycle
rules and can be enumerated directly by tests.
"""

from enum import Enum
from typing import Mapping

from app.db.enums import ApplicationStatus, ServiceRequestStatus, TaskStatus

SR = ServiceRequestStatus
T = TaskStatus
A = ApplicationStatus


SERVICE_REQUEST_TRANSITIONS: dict[SR, frozenset[SR]] = {
    SR.PENDING_ADMIN_ASSIGNMENT: frozenset({SR.ASSIGNED, SR.CANCELLED}),
    SR.ASSIGNED: frozenset({SR.IN_PROGRESS, SR.WAITING_STUDENT, SR.ON_HOLD, SR.CANCELLED}),
    SR.IN_PROGRESS: frozenset({SR.COMPLETED, SR.WAITING_STUDENT, SR.ON_HOLD, SR.CANCELLED}),
    SR.WAITING_STUDENT: frozenset({SR.IN_PROGRESS, SR.ON_HOLD, SR.CANCELLED}),
    SR.ON_HOLD: frozenset({SR.IN_PROGRESS, SR.CANCELLED}),
    SR.COMPLETED: frozenset(),
    SR.CANCELLED: frozenset(),
}

# Progress floor applied when a service request enters a status.
# ON_HOLD and CANCELLED keep the progress they had.
SERVICE_REQUEST_PROGRESS_FLOOR: dict[SR, int] = {
    SR.PENDING_ADMIN_ASSIGNMENT: 5,
    SR.ASSIGNED: 15,
    SR.IN_PROGRESS: 50,
    SR.WAITING_STUDENT: 60,
    SR.COMPLETED: 100,
}

TASK_TRANSITIONS: dict[T, frozenset[T]] = {
    T.PENDING: frozenset({T.IN_PROGRESS, T.COMPLETED}),
    T.IN_PROGRESS: frozenset({T.SUBMITTED, T.COMPLETED}),
    T.SUBMITTED: frozenset({T.UNDER_REVIEW, T.REVISION_REQUIRED, T.COMPLETED}),
    T.UNDER_REVIEW: frozenset({T.REVISION_REQUIRED, T.COMPLETED}),
    T.REVISION_REQUIRED: frozenset({T.IN_PROGRESS, T.SUBMITTED}),
    T.COMPLETED: frozenset(),
}

APPLICATION_TRANSITIONS: dict[A, tuple[A, ...]] = {
    A.ASSIGNED: (A.DOCS_PENDING,),
    A.DOCS_PENDING: (A.DOCS_VERIFIED,),
    A.DOCS_VERIFIED: (A.SUBMITTED,),
    A.SUBMITTED: (A.UNDER_REVIEW,),
    A.UNDER_REVIEW: (A.OFFER_RECEIVED, A.REJECTED),
    A.OFFER_RECEIVED: (A.ACCEPTED,),
    A.ACCEPTED: (A.VISA_PROCESSING,),
    A.VISA_PROCESSING: (A.COMPLETED,),
    A.COMPLETED: (),
    A.REJECTED: (),
}


def _ordered_values(targets, enum_cls: type[Enum]) -> list[str]:
    """Return target values in the enum's declaration order."""
    order = {member: idx for idx, member in enumerate(enum_cls)}
    return [t.value for t in sorted(targets, key=lambda member: order[member])]


def next_statuses(table: Mapping, current: Enum) -> list[str]:
    """Permitted next status values for ``current`` (empty for terminal states)."""
    return _ordered_values(table.get(current, ()), type(current))


def is_valid_transition(table: Mapping, current: Enum, target: Enum) -> bool:
    return target in table.get(current, ())


def is_terminal(table: Mapping, status: Enum) -> bool:
    return not table.get(status)
