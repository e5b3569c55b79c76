"""Pydantic schemas for tasks."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import Priority, TaskStatus, TaskType
from app.schemas.common import CamelInput


class SubmittedFile(CamelInput):
    url: str = Field(..., min_length=1, max_length=1000)
    public_id: str | None = Field(None, max_length=500)
    original_name: str | None = Field(None, max_length=255)
    size: int | None = None
    format: str | None = Field(None, max_length=20)


class TaskCreate(CamelInput):
    """Advisor creates a task on a case; the assignee is the case's student."""
    service_request_id: UUID
    task_type: TaskType = TaskType.OTHER
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    instructions: str | None = Field(None, max_length=5000)
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None


class CaseTaskCreate(CamelInput):
    """Task created from the agent case view (case id comes from the path)."""
    task_type: TaskType = TaskType.OTHER
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    instructions: str | None = Field(None, max_length=5000)
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None


class TaskSubmit(CamelInput):
    text: str = Field("", max_length=10000)
    files: list[SubmittedFile] = []


class TaskReview(CamelInput):
    feedback: str = Field(..., min_length=1, max_length=10000)
    requires_revision: bool = False
    rating: int | None = Field(None, ge=1, le=5)


class TaskStatusChange(CamelInput):
    status: TaskStatus
    note: str | None = Field(None, max_length=2000)


class TaskRead(BaseModel):
    id: UUID
    service_request_id: UUID
    task_type: TaskType
    title: str
    description: str
    instructions: str | None = None
    assigned_to_id: UUID
    assigned_by_id: UUID | None = None
    status: TaskStatus
    priority: Priority
    due_date: datetime | None = None
    submission: dict[str, Any] | None = None
    feedback: dict[str, Any] | None = None
    revision_history: list[dict[str, Any]] = []
    status_history: list[dict[str, Any]] = []
    pending_files: list[dict[str, Any]] = []
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskStats(BaseModel):
    total: int
    by_status: dict[str, int] = Field(validation_alias="byStatus", serialization_alias="byStatus")
    completion_rate: int = Field(validation_alias="completionRate", serialization_alias="completionRate")
