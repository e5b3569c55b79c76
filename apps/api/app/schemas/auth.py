"""Pydantic schemas for authentication and users."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.db.enums import Role
from app.schemas.common import CamelInput


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency; carries everything the
    access predicates need.
    """
    user_id: UUID
    role: Role  # Validated enum
    email: str
    display_name: str
    student_id: UUID | None = None  # set for role=student


class SignupRequest(CamelInput):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    phone: str | None = Field(None, max_length=50)


class LoginRequest(CamelInput):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class UserRead(BaseModel):
    id: UUID
    email: str
    role: Role
    first_name: str
    last_name: str
    phone: str | None = None
    avatar_url: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class StudentRead(BaseModel):
    id: UUID
    user_id: UUID
    assigned_agent_id: UUID | None = None
    assigned_counselor_id: UUID | None = None
    referred_by_id: UUID | None = None
    nationality: str | None = None
    current_education: str | None = None
    intended_study_level: str | None = None
    preferred_countries: list[str] = []
    selected_services: list[str] = []
    documents: dict[str, str] = {}
    onboarding_completed: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Response for signup/login."""
    token: str
    dashboard_url: str = Field(serialization_alias="dashboardUrl")
    user: UserRead
    student: StudentRead | None = None


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user: UserRead
    student: StudentRead | None = None
    dashboard_url: str = Field(serialization_alias="dashboardUrl")


class AdminUserCreate(CamelInput):
    """Admin-created account of any role."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: Role
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    phone: str | None = Field(None, max_length=50)


class UserStatusUpdate(CamelInput):
    is_active: bool


class ReferStudentRequest(CamelInput):
    """Agent referral: mints the student's user account and profile."""
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    phone: str | None = Field(None, max_length=50)
    password: str | None = Field(None, min_length=8, max_length=72)
    nationality: str | None = Field(None, max_length=100)
    current_education: str | None = Field(None, max_length=255)
    intended_study_level: str | None = Field(None, max_length=100)
    preferred_countries: list[str] = []


class RecipientRead(BaseModel):
    id: UUID
    email: str
    role: Role
    display_name: str

    model_config = {"from_attributes": True}


class ReferStudentResponse(BaseModel):
    user: UserRead
    student: StudentRead
