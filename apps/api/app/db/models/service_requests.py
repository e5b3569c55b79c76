"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, utcnow
from app.db.enums import Priority, ServiceRequestStatus

if TYPE_CHECKING:
    from app.db.models import Student, Task


class ServiceRequest(Base):
    """
    A case: one service type requested for one student.

    ``version`` is the optimistic-lock column; every UPDATE is guarded by it so
    that two writers racing on the same case cannot both succeed.
    """

    __tablename__ = "service_requests"
    __table_args__ = (
        Index("idx_sr_student_status", "student_id", "status"),
        Index("idx_sr_student_type", "student_id", "service_type"),
        Index("idx_sr_agent_pipeline", "assigned_agent_id", "status", "priority", "deadline"),
        Index("idx_sr_counselor_status", "assigned_counselor_id", "status"),
        Index("idx_sr_approval", "is_agent_initiated", "agent_approval_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), default=ServiceRequestStatus.PENDING_ADMIN_ASSIGNMENT.value, nullable=False
    )
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), default=Priority.MEDIUM.value, nullable=False)
    deadline: Mapped[datetime | None] = mapped_column(nullable=True)

    # Assignment
    assigned_counselor_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_agent_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Agent-initiated approval workflow
    is_agent_initiated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    agent_approval_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    requested_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    documents: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)

    applied_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    student: Mapped["Student"] = relationship(back_populates="service_requests")
    status_history: Mapped[list["ServiceRequestStatusHistory"]] = relationship(
        back_populates="service_request",
        order_by="ServiceRequestStatusHistory.seq",
        cascade="all, delete-orphan",
    )
    notes: Mapped[list["ServiceRequestNote"]] = relationship(
        back_populates="service_request",
        order_by="ServiceRequestNote.added_at",
        cascade="all, delete-orphan",
    )
    tasks: Mapped[list["Task"]] = relationship(back_populates="service_request")


class ServiceRequestStatusHistory(Base):
    """
    Ordered history of a case.

    STATUS_CHANGE rows record a permitted transition (from -> to). Progress,
    deadline, priority and approval rows keep ``from_status == to_status``
    and describe the change in ``note``.
    """

    __tablename__ = "service_request_status_history"
    __table_args__ = (Index("idx_sr_history_sr", "service_request_id", "seq"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    # Insertion order; changed_at can tie within the same millisecond
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    service_request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False
    )
    event: Mapped[str] = mapped_column(String(30), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    changed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    service_request: Mapped["ServiceRequest"] = relationship(back_populates="status_history")


class ServiceRequestNote(Base):
    """Free-text note on a case. Internal notes are hidden from students."""

    __tablename__ = "service_request_notes"
    __table_args__ = (Index("idx_sr_notes_sr", "service_request_id", "added_at"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    service_request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    added_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    added_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    service_request: Mapped["ServiceRequest"] = relationship(back_populates="notes")
