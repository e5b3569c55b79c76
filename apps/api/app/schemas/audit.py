"""Pydantic schemas for the audit trail."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class AuditLogRead(BaseModel):
    id: UUID
    actor_user_id: UUID | None = None
    actor_role: str | None = None
    action: str
    entity_type: str
    entity_id: str | None = None
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class AuditStats(BaseModel):
    total: int
    by_action: dict[str, int] = Field(validation_alias="byAction", serialization_alias="byAction")
