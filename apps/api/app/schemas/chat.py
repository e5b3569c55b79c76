"""Pydantic schemas for case chat."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import MessageType, Role
from app.schemas.common import CamelInput


class MessageCreate(CamelInput):
    content: str = Field(..., min_length=1, max_length=5000)
    message_type: MessageType = MessageType.TEXT
    recipient_id: UUID | None = None
    attachments: list[dict[str, Any]] = []


class MessageRead(BaseModel):
    id: UUID
    service_request_id: UUID
    sender_id: UUID
    sender_role: Role
    recipient_id: UUID | None = None
    content: str
    message_type: MessageType
    attachments: list[dict[str, Any]] = []
    read_by: list[dict[str, Any]] = []
    is_edited: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class Participant(BaseModel):
    user_id: UUID
    role: Role
    display_name: str
    avatar_url: str | None = None


class ChatUnreadCount(BaseModel):
    count: int


class ReadAllResponse(BaseModel):
    updated: int
