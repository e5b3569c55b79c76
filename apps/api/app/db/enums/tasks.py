"""Task-related enums."""

from enum import Enum


class TaskType(str, Enum):
    """Types of tasks an advisor assigns to a student."""

    DOCUMENT_UPLOAD = "DOCUMENT_UPLOAD"
    QUESTIONNAIRE = "QUESTIONNAIRE"
    VIDEO_CALL = "VIDEO_CALL"
    REVIEW_SESSION = "REVIEW_SESSION"
    INFORMATION_SUBMISSION = "INFORMATION_SUBMISSION"
    FORM_COMPLETION = "FORM_COMPLETION"
    PAYMENT = "PAYMENT"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    OTHER = "OTHER"


class TaskStatus(str, Enum):
    PENDING = "PENDING"  # Created, not yet worked on
    IN_PROGRESS = "IN_PROGRESS"  # Student is working on it
    SUBMITTED = "SUBMITTED"  # Student submitted a response
    UNDER_REVIEW = "UNDER_REVIEW"  # Advisor reviewing
    REVISION_REQUIRED = "REVISION_REQUIRED"  # Needs changes
    COMPLETED = "COMPLETED"  # Approved

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


DELETABLE_TASK_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
