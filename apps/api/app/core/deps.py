"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.errors import AccessDenied, AccountInactive, Unauthenticated
from app.core.security import decode_access_token
from app.db.session import SessionLocal


BEARER_PREFIX = "bearer "


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def extract_bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if header.lower().startswith(BEARER_PREFIX):
        token = header[len(BEARER_PREFIX):].strip()
        return token or None
    return None


def resolve_token_user(db: Session, token: str | None):
    """
    Resolve a bearer token to an active user.

    Shared by the HTTP dependency and the websocket endpoint.

    Raises:
        Unauthenticated: missing/invalid token or unknown user
        AccountInactive: user is deactivated
    """
    from app.db.models import User

    if not token:
        raise Unauthenticated("No token provided")

    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")

    user = db.get(User, _parse_uuid(payload.get("sub")))
    if not user:
        raise Unauthenticated("User not found")

    if not user.is_active:
        raise AccountInactive("Account is inactive")

    return user


def _parse_uuid(value) -> UUID:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token")


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Get authenticated user from the Authorization bearer header.

    Raises:
        Unauthenticated (401): Authentication failed
        AccountInactive (403): Account disabled
    """
    return resolve_token_user(db, extract_bearer_token(request))


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Get full session context: user, role and (for students) the student record.

    This is the PRIMARY auth dependency for most endpoints.
    """
    # Import here to avoid circular imports
    from app.db.enums import Role
    from app.db.models import Student
    from app.schemas.auth import UserSession

    user = get_current_user(request, db)

    if not Role.has_value(user.role):
        raise AccessDenied(f"Unknown role '{user.role}'. Contact administrator.")

    role = Role(user.role)
    student_id = None
    if role == Role.STUDENT:
        student = db.query(Student).filter(Student.user_id == user.id).first()
        student_id = student.id if student else None

    session = UserSession(
        user_id=user.id,
        role=role,
        email=user.email,
        display_name=user.display_name,
        student_id=student_id,
    )
    request.state.user_session = session
    return session


def require_roles(allowed_roles: list):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.post("/admin", dependencies=[Depends(require_roles([Role.SUPER_ADMIN]))])
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        session = get_current_session(request, db)
        if session.role not in allowed_roles:
            raise AccessDenied(f"Role '{session.role.value}' not authorized for this action")
        return session
    return dependency
