"""User service - accounts, student profiles and agent referrals."""

import logging
import secrets
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Duplicate, NotFound, ValidationFailed
from app.core.security import hash_password
from app.db.enums import (
    AuditAction,
    AuditEntityType,
    Role,
    ServiceRequestStatus,
    StudentDocumentSlot,
    TaskStatus,
)
from app.db.models import ServiceRequest, Student, Task, User
from app.schemas.auth import AdminUserCreate, ReferStudentRequest, StudentRead, UserSession
from app.schemas.student import StudentOnboarding, StudentProfileUpdate
from app.services import audit_service, notification_facade

logger = logging.getLogger(__name__)

USER_PROFILE_FIELDS = {"first_name", "last_name", "phone"}
# Columns that cannot be cleared; a null in the update leaves them unchanged
REQUIRED_PROFILE_FIELDS = {"first_name", "last_name", "preferred_countries"}

ROSTER_ACTIVE_STATUSES = (ServiceRequestStatus.ASSIGNED, ServiceRequestStatus.IN_PROGRESS)
ROSTER_OPEN_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.SUBMITTED, TaskStatus.UNDER_REVIEW)


def normalize_email(email: str) -> str:
    """Emails are stored and looked up trimmed and case-folded."""
    return (email or "").strip().lower()


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_student_for_user(db: Session, user_id: UUID) -> Student | None:
    return db.query(Student).filter(Student.user_id == user_id).first()


def create_user(
    db: Session,
    email: str,
    password: str,
    role: Role,
    first_name: str,
    last_name: str = "",
    phone: str | None = None,
    password_is_hashed: bool = False,
    student_fields: dict | None = None,
) -> tuple[User, Student | None]:
    """
    Create a user, plus the Student profile when the role is student.

    ``password_is_hashed`` stores ``password`` verbatim so previously
    imported hashes survive.

    Raises:
        Duplicate: a user already exists for the case-folded email
    """
    email = normalize_email(email)
    if get_user_by_email(db, email):
        raise Duplicate("Email already registered")

    user = User(
        email=email,
        password_hash=password if password_is_hashed else hash_password(password),
        role=role.value,
        first_name=first_name.strip(),
        last_name=(last_name or "").strip(),
        phone=phone,
    )
    db.add(user)

    student = None
    try:
        db.flush()
        if role == Role.STUDENT:
            student = Student(user_id=user.id, **(student_fields or {}))
            db.add(student)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Duplicate("Email already registered") from exc

    db.refresh(user)
    if student:
        db.refresh(student)
    return user, student


def create_user_by_admin(
    db: Session, payload: AdminUserCreate, session: UserSession
) -> tuple[User, Student | None]:
    user, student = create_user(
        db,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
    )
    audit_service.log_for_session(
        db, session, AuditAction.USER_CREATED, AuditEntityType.USER, user.id,
        new_state={"role": user.role},
        details={"email": audit_service.hash_email(user.email)},
    )
    return user, student


def set_user_active(db: Session, user_id: UUID, is_active: bool, session: UserSession) -> User:
    """Activate or deactivate an account. Admins cannot deactivate themselves."""
    user = get_user_by_id(db, user_id)
    if not user:
        raise NotFound("User not found")
    if user.id == session.user_id and not is_active:
        raise ValidationFailed("You cannot deactivate your own account")

    previous = user.is_active
    if previous != is_active:
        user.is_active = is_active
        db.commit()
        db.refresh(user)
        audit_service.log_for_session(
            db, session, AuditAction.USER_STATUS_CHANGED, AuditEntityType.USER, user.id,
            previous_state={"isActive": previous},
            new_state={"isActive": is_active},
        )
    return user


def list_recipients(db: Session, role: Role | None = None) -> list[User]:
    """Active users, optionally of one role, for the broadcast composer."""
    query = db.query(User).filter(User.is_active.is_(True))
    if role:
        query = query.filter(User.role == role.value)
    return query.order_by(User.role, User.email).all()


# =============================================================================
# Agent referrals
# =============================================================================


def refer_student(
    db: Session, payload: ReferStudentRequest, session: UserSession
) -> tuple[User, Student]:
    """
    Agent mints a student account. The agent becomes both the referrer and
    the assigned agent; a random password is set unless one is given.
    """
    user, student = create_user(
        db,
        email=payload.email,
        password=payload.password or secrets.token_urlsafe(16),
        role=Role.STUDENT,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        student_fields={
            "referred_by_id": session.user_id,
            "assigned_agent_id": session.user_id,
            "nationality": payload.nationality,
            "current_education": payload.current_education,
            "intended_study_level": payload.intended_study_level,
            "preferred_countries": list(payload.preferred_countries),
        },
    )
    audit_service.log_for_session(
        db, session, AuditAction.STUDENT_REFERRED, AuditEntityType.STUDENT, student.id,
        details={"email": audit_service.hash_email(user.email)},
    )
    return user, student


def agent_owns_student(student: Student, agent_id: UUID) -> bool:
    return student.assigned_agent_id == agent_id or student.referred_by_id == agent_id


def list_agent_students(db: Session, agent_id: UUID):
    """Query for students referred by or assigned to an agent, newest first."""
    return (
        db.query(Student)
        .filter(or_(Student.assigned_agent_id == agent_id, Student.referred_by_id == agent_id))
        .order_by(Student.created_at.desc())
    )


# =============================================================================
# Student profile
# =============================================================================


def get_own_student(db: Session, session: UserSession) -> Student:
    student = db.get(Student, session.student_id) if session.student_id else None
    if not student:
        raise NotFound("Student profile not found")
    return student


def complete_onboarding(db: Session, session: UserSession, payload: StudentOnboarding) -> Student:
    """Record the student's first preferences and tell the admins a new student arrived."""
    student = get_own_student(db, session)
    user = student.user
    if payload.phone is not None:
        user.phone = payload.phone
    if payload.nationality is not None:
        student.nationality = payload.nationality
    student.preferred_countries = list(payload.preferred_countries)
    student.selected_services = [service.value for service in dict.fromkeys(payload.selected_services)]
    student.onboarding_completed = True
    db.commit()
    db.refresh(student)

    audit_service.log_for_session(
        db, session, AuditAction.STUDENT_ONBOARDED, AuditEntityType.STUDENT, student.id,
        details={
            "preferredCountries": student.preferred_countries,
            "selectedServices": student.selected_services,
        },
    )
    notification_facade.student_onboarded(db, student, user)
    return student


def update_profile(db: Session, session: UserSession, payload: StudentProfileUpdate) -> Student:
    """Apply the fields that were sent, to the User row or the Student row they belong to."""
    student = get_own_student(db, session)
    user = student.user
    previous, updated = {}, {}
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in REQUIRED_PROFILE_FIELDS:
            continue
        if isinstance(value, str):
            value = value.strip()
        if field == "first_name" and not value:
            raise ValidationFailed("First name cannot be empty")
        target = user if field in USER_PROFILE_FIELDS else student
        previous[field] = getattr(target, field)
        setattr(target, field, value)
        updated[field] = value

    if updated:
        db.commit()
        db.refresh(student)
        audit_service.log_for_session(
            db, session, AuditAction.STUDENT_PROFILE_UPDATED, AuditEntityType.STUDENT, student.id,
            previous_state=previous,
            new_state=updated,
        )
    return student


def student_documents(student: Student) -> dict:
    stored = student.documents or {}
    return {
        "documents": [
            {"type": slot, "label": slot.label, "url": stored[slot.value]}
            for slot in StudentDocumentSlot
            if stored.get(slot.value)
        ],
        "available_types": [
            {"type": slot, "label": slot.label, "uploaded": bool(stored.get(slot.value))}
            for slot in StudentDocumentSlot
        ],
    }


def remove_student_document(
    db: Session, student: Student, slot: StudentDocumentSlot, session: UserSession
) -> None:
    """Clear one document slot. The stored object itself is left in place."""
    previous = (student.documents or {}).get(slot.value)
    if not previous:
        raise NotFound("Document not found")
    student.documents = {k: v for k, v in student.documents.items() if k != slot.value}
    db.commit()

    audit_service.log_for_session(
        db, session, AuditAction.STUDENT_DOCUMENT_DELETED, AuditEntityType.STUDENT, student.id,
        previous_state={slot.value: previous},
        details={"documentType": slot.value},
    )


# =============================================================================
# Counselor roster
# =============================================================================


def list_counselor_students(db: Session, counselor_id: UUID):
    """Query for students whose assigned counselor is ``counselor_id``, newest first."""
    return (
        db.query(Student)
        .filter(Student.assigned_counselor_id == counselor_id)
        .order_by(Student.created_at.desc())
    )


def roster_entries(db: Session, students: list[Student], counselor_id: UUID) -> list[dict]:
    """Attach each student's active case count and the counselor's open tasks for them."""
    if not students:
        return []
    student_ids = [s.id for s in students]
    user_ids = [s.user_id for s in students]

    active = dict(
        db.query(ServiceRequest.student_id, func.count(ServiceRequest.id))
        .filter(
            ServiceRequest.student_id.in_(student_ids),
            ServiceRequest.status.in_([s.value for s in ROSTER_ACTIVE_STATUSES]),
        )
        .group_by(ServiceRequest.student_id)
        .all()
    )
    pending = dict(
        db.query(Task.assigned_to_id, func.count(Task.id))
        .filter(
            Task.assigned_to_id.in_(user_ids),
            Task.assigned_by_id == counselor_id,
            Task.status.in_([s.value for s in ROSTER_OPEN_TASK_STATUSES]),
        )
        .group_by(Task.assigned_to_id)
        .all()
    )
    return [
        {
            **StudentRead.model_validate(student).model_dump(),
            "user": student.user,
            "active_requests": active.get(student.id, 0),
            "pending_tasks": pending.get(student.user_id, 0),
        }
        for student in students
    ]
