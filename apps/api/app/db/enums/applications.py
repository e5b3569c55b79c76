"""Admissions enums."""

from enum import Enum


class ApplicationStatus(str, Enum):
    """Admissions statuses, in lifecycle order."""

    ASSIGNED = "Assigned"
    DOCS_PENDING = "Docs Pending"
    DOCS_VERIFIED = "Docs Verified"
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    OFFER_RECEIVED = "Offer Received"
    REJECTED = "Rejected"
    ACCEPTED = "Accepted"
    VISA_PROCESSING = "Visa Processing"
    COMPLETED = "Completed"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class ApplicationAssigner(str, Enum):
    ADMIN = "admin"
    AGENT = "agent"
