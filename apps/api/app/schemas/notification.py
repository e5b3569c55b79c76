"""Pydantic schemas for notifications."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.db.enums import (
    NotificationBulkAction,
    NotificationChannel,
    NotificationPriority,
    NotificationTargetType,
    NotificationType,
    Role,
)
from app.schemas.common import CamelInput


class NotificationRead(BaseModel):
    id: UUID
    recipient_id: UUID
    type: NotificationType
    channel: NotificationChannel
    title: str
    message: str
    priority: NotificationPriority
    action_url: str | None = None
    action_text: str | None = None
    is_read: bool
    read_at: datetime | None = None
    email_sent: bool
    email_sent_at: datetime | None = None
    email_error: str | None = None
    sent_by_id: UUID | None = None
    target_type: NotificationTargetType | None = None
    target_role: str | None = None
    is_archived: bool
    related_service_request_id: UUID | None = None
    related_task_id: UUID | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCount(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class AdminNotificationCreate(CamelInput):
    target_type: NotificationTargetType
    target_role: Role | None = None
    target_user_id: UUID | None = None
    type: NotificationType = NotificationType.GENERAL
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)
    channel: NotificationChannel = NotificationChannel.DASHBOARD
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_url: str | None = Field(None, max_length=500)
    action_text: str | None = Field(None, max_length=100)

    @model_validator(mode="after")
    def _target_fields(self) -> "AdminNotificationCreate":
        if self.target_type == NotificationTargetType.ROLE and not self.target_role:
            raise ValueError("targetRole is required when targetType is ROLE")
        if self.target_type == NotificationTargetType.USER and not self.target_user_id:
            raise ValueError("targetUserId is required when targetType is USER")
        return self


class BroadcastReport(BaseModel):
    total: int
    dashboard: int
    email: int
    failed: int
    notification_ids: list[str] = Field(validation_alias="notificationIds", serialization_alias="notificationIds")


class ArchiveUpdate(CamelInput):
    archived: bool = True


class BulkActionRequest(CamelInput):
    ids: list[UUID] = Field(..., min_length=1, max_length=500)
    action: NotificationBulkAction


class BulkActionResponse(BaseModel):
    affected: int


class NotificationStats(BaseModel):
    total: int
    unread: int
    archived: int
    by_type: dict[str, int] = Field(validation_alias="byType", serialization_alias="byType")
