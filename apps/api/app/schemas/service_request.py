"""Pydantic schemas for service requests (cases)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import AgentApprovalStatus, Priority, ServiceRequestStatus, ServiceType
from app.schemas.common import CamelInput


class ServiceRequestCreate(CamelInput):
    """Student applies for a service."""
    service_type: ServiceType
    notes: str | None = Field(None, max_length=2000)


class AgentApplyService(CamelInput):
    """Agent applies for a service on behalf of one of their students."""
    service_type: ServiceType
    notes: str | None = Field(None, max_length=2000)
    priority: Priority = Priority.MEDIUM
    deadline: datetime | None = None


class ServiceRequestAssign(CamelInput):
    assigned_counselor: UUID | None = None
    assigned_agent: UUID | None = None
    note: str | None = Field(None, max_length=2000)


class StatusChange(CamelInput):
    status: ServiceRequestStatus
    note: str | None = Field(None, max_length=2000)


class ProgressUpdate(CamelInput):
    # Out-of-range values are clamped, not rejected
    progress: int
    note: str | None = Field(None, max_length=2000)


class DeadlineUpdate(CamelInput):
    deadline: datetime | None
    note: str | None = Field(None, max_length=2000)


class PriorityUpdate(CamelInput):
    priority: Priority
    note: str | None = Field(None, max_length=2000)


class NoteCreate(CamelInput):
    text: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False


class AgentRequestApprove(CamelInput):
    notes: str | None = Field(None, max_length=2000)


class AgentRequestReject(CamelInput):
    reason: str = Field(..., min_length=1, max_length=2000)


class HistoryRead(BaseModel):
    seq: int
    event: str
    from_status: str | None
    to_status: str
    changed_by_user_id: UUID | None
    note: str | None
    changed_at: datetime

    model_config = {"from_attributes": True}


class NoteRead(BaseModel):
    id: UUID
    text: str
    added_by_id: UUID | None
    is_internal: bool
    added_at: datetime

    model_config = {"from_attributes": True}


class ServiceRequestListItem(BaseModel):
    id: UUID
    student_id: UUID
    service_type: ServiceType
    status: ServiceRequestStatus
    progress: int
    priority: Priority
    deadline: datetime | None = None
    assigned_counselor_id: UUID | None = None
    assigned_agent_id: UUID | None = None
    is_agent_initiated: bool
    agent_approval_status: AgentApprovalStatus | None = None
    applied_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ServiceRequestRead(ServiceRequestListItem):
    """Full case including its history, visible notes and permitted next statuses."""
    assigned_by_id: UUID | None = None
    assigned_at: datetime | None = None
    requested_by_id: UUID | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    approval_notes: str | None = None
    documents: list[dict[str, Any]] = []
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    status_history: list[HistoryRead] = []
    notes: list[NoteRead] = []
    allowed_transitions: list[str] = []


class ServiceRequestStats(BaseModel):
    total: int
    by_status: dict[str, int] = Field(validation_alias="byStatus", serialization_alias="byStatus")
    by_service_type: dict[str, int] = Field(
        validation_alias="byServiceType", serialization_alias="byServiceType"
    )


class PendingCount(BaseModel):
    count: int
