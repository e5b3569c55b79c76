"""Students router - the student's own profile, onboarding and document slots."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.db.enums import Role, StudentDocumentSlot
from app.schemas.auth import UserSession
from app.schemas.student import (
    DocumentRemoved,
    StudentDocuments,
    StudentOnboarding,
    StudentProfile,
    StudentProfileUpdate,
)
from app.services import user_service

router = APIRouter(prefix="/students", tags=["Students"])

require_student = require_roles([Role.STUDENT])


@router.post("/onboarding", response_model=StudentProfile, status_code=201)
def complete_onboarding(
    body: StudentOnboarding,
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    student = user_service.complete_onboarding(db, session, body)
    return {"user": student.user, "student": student}


@router.get("/profile", response_model=StudentProfile)
def get_profile(
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    student = user_service.get_own_student(db, session)
    return {"user": student.user, "student": student}


@router.put("/profile", response_model=StudentProfile)
def update_profile(
    body: StudentProfileUpdate,
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    student = user_service.update_profile(db, session, body)
    return {"user": student.user, "student": student}


@router.get("/documents", response_model=StudentDocuments)
def list_documents(
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    """Filled slots plus the state of all six. Uploads go through ``/upload/student-document``."""
    return user_service.student_documents(user_service.get_own_student(db, session))


@router.delete("/documents/{slot}", response_model=DocumentRemoved)
def remove_document(
    slot: StudentDocumentSlot,
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    student = user_service.get_own_student(db, session)
    user_service.remove_student_document(db, student, slot, session)
    return {"message": f"{slot.label} deleted", "document_type": slot}
