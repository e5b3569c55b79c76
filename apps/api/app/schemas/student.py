"""Pydantic schemas for student profiles and the counselor roster."""

from pydantic import BaseModel, Field

from app.db.enums import ServiceType, StudentDocumentSlot
from app.schemas.auth import StudentRead, UserRead
from app.schemas.common import CamelInput


class StudentOnboarding(CamelInput):
    phone: str | None = Field(None, max_length=50)
    nationality: str | None = Field(None, max_length=100)
    preferred_countries: list[str] = []
    selected_services: list[ServiceType] = []


class StudentProfileUpdate(CamelInput):
    """Partial update; omitted fields are left alone."""
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=50)
    nationality: str | None = Field(None, max_length=100)
    current_education: str | None = Field(None, max_length=255)
    intended_study_level: str | None = Field(None, max_length=100)
    preferred_countries: list[str] | None = None


class StudentProfile(BaseModel):
    user: UserRead
    student: StudentRead


class StudentDocument(BaseModel):
    type: StudentDocumentSlot
    label: str
    url: str


class DocumentSlotState(BaseModel):
    type: StudentDocumentSlot
    label: str
    uploaded: bool


class StudentDocuments(BaseModel):
    documents: list[StudentDocument]
    available_types: list[DocumentSlotState] = Field(serialization_alias="availableTypes")


class DocumentRemoved(BaseModel):
    message: str
    document_type: StudentDocumentSlot = Field(serialization_alias="documentType")


class RosterStudent(StudentRead):
    """A counselor's student with their case and task load."""
    user: UserRead
    active_requests: int = Field(serialization_alias="activeRequests")
    pending_tasks: int = Field(serialization_alias="pendingTasks")
