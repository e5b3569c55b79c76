"""Pydantic schemas for university applications (admissions)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.db.enums import ApplicationStatus
from app.schemas.common import CamelInput


class ApplicationCreate(CamelInput):
    """Agent creates an application for one of their students."""
    student_id: UUID
    university_name: str = Field(..., min_length=1, max_length=255)
    program_name: str = Field(..., min_length=1, max_length=255)
    intake: str = Field(..., min_length=1, max_length=50)
    country: str | None = Field(None, max_length=100)
    checklist: list[str] = []


class ApplicationAssign(ApplicationCreate):
    """Admin assigns an application to an agent."""
    agent_id: UUID


class ApplicationStatusChange(CamelInput):
    status: ApplicationStatus
    note: str | None = Field(None, max_length=2000)


class RemarkCreate(CamelInput):
    text: str = Field(..., min_length=1, max_length=5000)


class ChecklistPatch(CamelInput):
    """Either toggle an existing item by ``index`` or append a new ``item``."""
    index: int | None = Field(None, ge=0)
    item: str | None = Field(None, min_length=1, max_length=255)

    @model_validator(mode="after")
    def _exactly_one(self) -> "ChecklistPatch":
        if (self.index is None) == (self.item is None):
            raise ValueError("Provide exactly one of index or item")
        return self


class DocumentLink(CamelInput):
    """Document already stored elsewhere, attached by URL."""
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000)
    type: str | None = Field(None, max_length=50)


class ApplicationRead(BaseModel):
    id: UUID
    student_id: UUID
    agent_id: UUID
    assigned_by: str
    assigned_by_user_id: UUID | None = None
    university_name: str
    program_name: str
    intake: str
    country: str | None = None
    status: ApplicationStatus
    documents: list[dict[str, Any]] = []
    checklist: list[dict[str, Any]] = []
    remarks: list[dict[str, Any]] = []
    timeline: list[dict[str, Any]] = []
    created_at: datetime
    updated_at: datetime
    next_statuses: list[str] = []

    model_config = {"from_attributes": True}
