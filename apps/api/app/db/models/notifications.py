"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, utcnow
from app.db.enums import NotificationChannel, NotificationPriority


class Notification(Base):
    """
    A notification owned by its recipient.

    Delivered on the dashboard (realtime event), by email, or both. Admin
    broadcasts carry ``sent_by_id``/``target_type`` and can be archived.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notif_recipient_unread", "recipient_id", "is_read", "created_at"),
        Index("idx_notif_recipient_archived", "recipient_id", "is_archived"),
        Index("idx_notif_broadcast", "sent_by_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    channel: Mapped[str] = mapped_column(
        String(10), default=NotificationChannel.DASHBOARD.value, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10), default=NotificationPriority.NORMAL.value, nullable=False
    )
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    action_text: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Read state
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Email delivery
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    email_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Admin broadcast
    sent_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    target_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    target_role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Related entities (for click-through)
    related_service_request_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    related_task_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    meta: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
