"""Audit logging service - append-only trail of transitions and security events.

Security guidelines:
- NEVER log secrets (tokens, passwords)
- Reduce previous/new state to the fields whose change is material
- Use IDs instead of raw data where possible
- IP: Trust X-Forwarded-For only in production behind LB

Recording is best-effort: a failure is reported to the log and swallowed,
it never fails or rolls back the business operation that triggered it.
"""

import hashlib
import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import AuditAction, AuditEntityType
from app.db.models import AuditLog
from app.schemas.auth import UserSession

logger = logging.getLogger(__name__)


def hash_email(email: str) -> str:
    """Hash email for audit details (prefix + SHA256 suffix for debugging)."""
    if not email:
        return ""
    prefix = email.split("@")[0][:3] if "@" in email else email[:3]
    suffix = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{prefix}...@[hash:{suffix}]"


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    """
    if not request:
        return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request | None) -> str | None:
    """Extract user agent from request."""
    if not request:
        return None
    ua = request.headers.get("user-agent", "")
    # Truncate to 500 chars (DB limit)
    return ua[:500] if ua else None


def log_event(
    db: Session,
    action: AuditAction,
    entity_type: AuditEntityType,
    entity_id: UUID | str | None,
    actor_user_id: UUID | None = None,
    actor_role: str | None = None,
    previous_state: dict[str, Any] | None = None,
    new_state: dict[str, Any] | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog | None:
    """
    Record one audit entry in its own commit.

    Returns the entry, or None when recording failed.
    """
    entry = AuditLog(
        actor_user_id=actor_user_id,
        actor_role=actor_role,
        action=action.value,
        entity_type=entity_type.value,
        entity_id=str(entity_id) if entity_id is not None else None,
        previous_state=previous_state,
        new_state=new_state,
        details=details or {},
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    try:
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "Failed to record audit event %s for %s %s", action.value, entity_type.value, entity_id
        )
        return None
    return entry


def log_for_session(
    db: Session,
    session: UserSession,
    action: AuditAction,
    entity_type: AuditEntityType,
    entity_id: UUID | str | None,
    **kwargs: Any,
) -> AuditLog | None:
    """log_event with the actor taken from the request session."""
    return log_event(
        db,
        action,
        entity_type,
        entity_id,
        actor_user_id=session.user_id,
        actor_role=session.role.value,
        **kwargs,
    )


def list_events(
    db: Session,
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor_user_id: UUID | None = None,
    action: str | None = None,
):
    """Query for audit entries, newest first (caller paginates)."""
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if actor_user_id:
        query = query.filter(AuditLog.actor_user_id == actor_user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.timestamp.desc())


def get_stats(db: Session) -> dict:
    rows = db.query(AuditLog.action, func.count(AuditLog.id)).group_by(AuditLog.action).all()
    by_action = {action: count for action, count in rows}
    return {"total": sum(by_action.values()), "byAction": by_action}
