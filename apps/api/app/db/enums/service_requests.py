"""Service request (case) enums."""

from enum import Enum


class ServiceType(str, Enum):
    PROFILE_ASSESSMENT = "PROFILE_ASSESSMENT"
    UNIVERSITY_SHORTLISTING = "UNIVERSITY_SHORTLISTING"
    APPLICATION_ASSISTANCE = "APPLICATION_ASSISTANCE"
    VISA_GUIDANCE = "VISA_GUIDANCE"
    SCHOLARSHIP_SEARCH = "SCHOLARSHIP_SEARCH"
    LOAN_ASSISTANCE = "LOAN_ASSISTANCE"
    ACCOMMODATION_HELP = "ACCOMMODATION_HELP"
    PRE_DEPARTURE_ORIENTATION = "PRE_DEPARTURE_ORIENTATION"


class ServiceRequestStatus(str, Enum):
    PENDING_ADMIN_ASSIGNMENT = "PENDING_ADMIN_ASSIGNMENT"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_STUDENT = "WAITING_STUDENT"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


TERMINAL_SERVICE_REQUEST_STATUSES = frozenset(
    {ServiceRequestStatus.COMPLETED, ServiceRequestStatus.CANCELLED}
)


class Priority(str, Enum):
    """Priority shared by service requests and tasks."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class AgentApprovalStatus(str, Enum):
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class HistoryEvent(str, Enum):
    """Kinds of entries in a service request's history."""

    STATUS_CHANGE = "STATUS_CHANGE"
    PROGRESS_UPDATE = "PROGRESS_UPDATE"
    DEADLINE_UPDATE = "DEADLINE_UPDATE"
    PRIORITY_UPDATE = "PRIORITY_UPDATE"
    AGENT_REQUEST_APPROVED = "AGENT_REQUEST_APPROVED"
