"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, utcnow
from app.db.enums import Priority, TaskStatus

if TYPE_CHECKING:
    from app.db.models import ServiceRequest


class Task(Base):
    """
    Work an advisor assigns back to the student inside a case.

    JSON shapes:
    - submission: {text, files[], submittedAt}
    - feedback: {text, providedBy, providedAt, rating}
    - revision_history: [{submission, feedback, revisionNumber, movedAt}]
    - status_history: [{fromStatus, toStatus, changedBy, changedAt, note}]
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_sr_status", "service_request_id", "status"),
        Index("idx_tasks_assignee_status_due", "assigned_to_id", "status", "due_date"),
        Index("idx_tasks_assigned_by", "assigned_by_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    service_request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False
    )
    task_type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    assigned_to_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    assigned_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(String(30), default=TaskStatus.PENDING.value, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), default=Priority.MEDIUM.value, nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)

    submission: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    feedback: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    revision_history: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    status_history: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # Files uploaded ahead of the next submission
    pending_files: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    service_request: Mapped["ServiceRequest"] = relationship(back_populates="tasks")
