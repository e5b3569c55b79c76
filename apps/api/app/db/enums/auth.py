"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Actor roles.

    - STUDENT: owns service requests and applications, works assigned tasks
    - AGENT: refers students, runs agent-owned cases and applications
    - COUNSELOR: runs cases assigned by an admin
    - SUPER_ADMIN: platform admin, unrestricted
    """

    STUDENT = "student"
    AGENT = "agent"
    COUNSELOR = "counselor"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


# Roles that advise on a case (assignable, may create and review tasks)
ADVISOR_ROLES = frozenset({Role.AGENT, Role.COUNSELOR})

DASHBOARD_URLS: dict[Role, str] = {
    Role.STUDENT: "/student/dashboard",
    Role.AGENT: "/agent/dashboard",
    Role.COUNSELOR: "/counselor/dashboard",
    Role.SUPER_ADMIN: "/admin/dashboard",
}


class StudentDocumentSlot(str, Enum):
    """Named document slots on a student profile."""

    TRANSCRIPTS = "transcripts"
    TEST_SCORES = "testScores"
    SOP = "sop"
    RECOMMENDATION = "recommendation"
    RESUME = "resume"
    PASSPORT = "passport"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_

    @property
    def label(self) -> str:
        return STUDENT_DOCUMENT_LABELS[self]


STUDENT_DOCUMENT_LABELS: dict[StudentDocumentSlot, str] = {
    StudentDocumentSlot.TRANSCRIPTS: "Transcripts",
    StudentDocumentSlot.TEST_SCORES: "Test Scores",
    StudentDocumentSlot.SOP: "Statement of Purpose",
    StudentDocumentSlot.RECOMMENDATION: "Recommendation Letters",
    StudentDocumentSlot.RESUME: "Resume/CV",
    StudentDocumentSlot.PASSPORT: "Passport",
}
