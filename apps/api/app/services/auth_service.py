"""Authentication service - signup, login and session payloads."""

import logging

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.errors import AccountInactive, Unauthenticated
from app.core.security import create_access_token, dummy_password_hash, verify_password
from app.db.base import utcnow
from app.db.enums import DASHBOARD_URLS, AuditAction, AuditEntityType, Role
from app.db.models import Student, User
from app.schemas.auth import SignupRequest
from app.services import audit_service, user_service

logger = logging.getLogger(__name__)


def dashboard_url_for(role: str | Role) -> str:
    return DASHBOARD_URLS[Role(role)]


def build_auth_payload(user: User, student: Student | None, token: str | None = None) -> dict:
    payload = {
        "user": user,
        "student": student,
        "dashboard_url": dashboard_url_for(user.role),
    }
    if token is not None:
        payload["token"] = token
    return payload


def signup(db: Session, payload: SignupRequest, request: Request | None = None) -> dict:
    """Public signup always creates a student."""
    user, student = user_service.create_user(
        db,
        email=payload.email,
        password=payload.password,
        role=Role.STUDENT,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )
    audit_service.log_event(
        db,
        AuditAction.SIGNUP,
        AuditEntityType.USER,
        user.id,
        actor_user_id=user.id,
        actor_role=user.role,
        details={"email": audit_service.hash_email(user.email)},
        request=request,
    )
    token = create_access_token(user.id, user.role)
    return build_auth_payload(user, student, token)


def login(db: Session, email: str, password: str, request: Request | None = None) -> dict:
    """
    Verify credentials and mint a token.

    Raises:
        Unauthenticated: unknown email or wrong password (indistinguishable)
        AccountInactive: the account has been deactivated
    """
    user = user_service.get_user_by_email(db, email)
    # Unknown emails are still checked, against a dummy hash
    password_ok = verify_password(password, user.password_hash if user else dummy_password_hash())
    if not user or not password_ok:
        logger.info("Failed login for %s", audit_service.hash_email(user_service.normalize_email(email)))
        raise Unauthenticated("Invalid email or password")
    if not user.is_active:
        raise AccountInactive()

    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)

    audit_service.log_event(
        db,
        AuditAction.LOGIN,
        AuditEntityType.USER,
        user.id,
        actor_user_id=user.id,
        actor_role=user.role,
        request=request,
    )

    student = user_service.get_student_for_user(db, user.id) if user.role == Role.STUDENT.value else None
    token = create_access_token(user.id, user.role)
    return build_auth_payload(user, student, token)


def get_me(db: Session, user: User) -> dict:
    student = user_service.get_student_for_user(db, user.id) if user.role == Role.STUDENT.value else None
    return build_auth_payload(user, student)
