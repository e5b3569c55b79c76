"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, utcnow
from app.db.enums import ApplicationStatus


class Application(Base):
    """
    University application with its own admissions lifecycle.

    JSON shapes:
    - documents: [{docId, name, url, type, uploadedBy, uploadedByRole, uploadedAt}]
    - checklist: [{item, completed, completedAt, completedBy}]
    - remarks: [{text, by, byRole, date}]
    - timeline: [{action, by, byRole, date, fromStatus?, toStatus?}]

    Every UPDATE is guarded by ``version``; a writer holding a stale copy
    gets StaleDataError instead of overwriting the status or JSON columns.
    """

    __tablename__ = "applications"
    __table_args__ = (
        Index("idx_applications_agent_status", "agent_id", "status"),
        Index("idx_applications_student_status", "student_id", "status"),
        Index("idx_applications_deleted", "is_deleted"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    assigned_by: Mapped[str] = mapped_column(String(10), nullable=False)  # admin | agent
    assigned_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    university_name: Mapped[str] = mapped_column(String(255), nullable=False)
    program_name: Mapped[str] = mapped_column(String(255), nullable=False)
    intake: Mapped[str] = mapped_column(String(50), nullable=False)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(30), default=ApplicationStatus.ASSIGNED.value, nullable=False
    )
    documents: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    checklist: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    remarks: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    timeline: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}
