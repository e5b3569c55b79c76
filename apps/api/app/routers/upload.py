"""Upload router - the file gateway and entity attachment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.access import check_task_assignee
from app.core.deps import get_current_session, get_db, require_roles
from app.core.errors import NotFound, ValidationFailed
from app.db.enums import Role, StudentDocumentSlot
from app.db.models import Student, Task, User
from app.schemas.auth import StudentRead, UserRead, UserSession
from app.schemas.common import MessageResponse
from app.schemas.service_request import ServiceRequestRead
from app.schemas.task import TaskRead
from app.schemas.upload import FileDelete, SignedUploadParams, UploadedFile, UploadedFiles
from app.services import service_request_service, upload_service, user_service
from app.utils.file_upload import content_length_exceeds_limit, read_upload

router = APIRouter(prefix="/upload", tags=["Upload"])


def _reject_oversized_request(request: Request, file_count: int = 1) -> None:
    if content_length_exceeds_limit(
        request.headers.get("content-length"),
        max_size_bytes=upload_service.MAX_DOCUMENT_BYTES * file_count,
    ):
        raise ValidationFailed("Upload is too large")


async def _read_all(files: list[UploadFile]) -> list[tuple[bytes, str, str]]:
    if len(files) > upload_service.MAX_FILES_PER_REQUEST:
        raise ValidationFailed(f"At most {upload_service.MAX_FILES_PER_REQUEST} files per request")
    return [await read_upload(f, upload_service.MAX_DOCUMENT_BYTES) for f in files]


# =============================================================================
# Raw storage
# =============================================================================


@router.post("/file", response_model=UploadedFile, status_code=201)
async def upload_file(
    request: Request,
    file: Annotated[UploadFile, File()],
    folder: Annotated[str | None, Form()] = None,
    session: UserSession = Depends(get_current_session),
):
    """Store one file and return its URL; attaching it is up to the caller."""
    _reject_oversized_request(request)
    content, filename, content_type = await read_upload(file, upload_service.MAX_DOCUMENT_BYTES)
    return await run_in_threadpool(upload_service.store_file, content, filename, content_type, folder)


@router.post("/files", response_model=UploadedFiles, status_code=201)
async def upload_files(
    request: Request,
    files: Annotated[list[UploadFile], File()],
    folder: Annotated[str | None, Form()] = None,
    session: UserSession = Depends(get_current_session),
):
    _reject_oversized_request(request, upload_service.MAX_FILES_PER_REQUEST)
    stored = await run_in_threadpool(upload_service.store_files, await _read_all(files), folder)
    return {"files": stored}


@router.delete("/file", response_model=MessageResponse)
def delete_file(
    body: FileDelete,
    session: UserSession = Depends(require_roles([Role.SUPER_ADMIN])),
    db: Session = Depends(get_db),
):
    upload_service.delete_file(body.public_id)
    upload_service.record_deletion(db, body.public_id, session)
    return {"message": "File deleted"}


@router.get("/signed-params", response_model=SignedUploadParams)
def signed_params(
    folder: str | None = None,
    session: UserSession = Depends(get_current_session),
):
    """Parameters for a direct browser upload."""
    return upload_service.signed_upload_params(folder)


@router.get("/local/{public_id:path}")
def serve_local_file(public_id: str):
    """Serve objects from the local backend (dev and tests)."""
    return FileResponse(upload_service.local_file_path(public_id))


# =============================================================================
# Attach to entities
# =============================================================================


@router.post("/task/{task_id}", response_model=TaskRead, status_code=201)
async def upload_task_files(
    task_id: UUID,
    request: Request,
    files: Annotated[list[UploadFile], File()],
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Queue files for the assigned student's next submission."""
    task = check_task_assignee(db.get(Task, task_id), session)
    _reject_oversized_request(request, upload_service.MAX_FILES_PER_REQUEST)
    stored = await run_in_threadpool(upload_service.store_files, await _read_all(files), f"tasks/{task.id}")
    return await run_in_threadpool(upload_service.attach_to_task, db, task, stored, session)


@router.post("/service-request/{sr_id}", response_model=ServiceRequestRead, status_code=201)
async def upload_service_request_files(
    sr_id: UUID,
    request: Request,
    files: Annotated[list[UploadFile], File()],
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    sr = service_request_service.get_service_request(db, sr_id, session, modify=True)
    _reject_oversized_request(request, upload_service.MAX_FILES_PER_REQUEST)
    stored = await run_in_threadpool(
        upload_service.store_files, await _read_all(files), f"service-requests/{sr.id}"
    )
    sr = await run_in_threadpool(upload_service.attach_to_service_request, db, sr, stored, session)
    return service_request_service.to_read(sr, session)


@router.post("/student-document/{slot}", response_model=StudentRead, status_code=201)
async def upload_student_document(
    slot: StudentDocumentSlot,
    request: Request,
    file: Annotated[UploadFile, File()],
    student_id: UUID | None = Query(None, alias="studentId"),
    session: UserSession = Depends(require_roles([Role.STUDENT, Role.AGENT])),
    db: Session = Depends(get_db),
):
    """Fill one of the six profile document slots (the student, or their agent with ``studentId``)."""
    if session.role == Role.STUDENT:
        student = db.get(Student, session.student_id) if session.student_id else None
    else:
        if not student_id:
            raise ValidationFailed("studentId is required")
        student = db.get(Student, student_id)
        if student and not user_service.agent_owns_student(student, session.user_id):
            student = None
    if not student:
        raise NotFound("Student not found")

    _reject_oversized_request(request)
    content, filename, content_type = await read_upload(file, upload_service.MAX_DOCUMENT_BYTES)
    stored = await run_in_threadpool(
        upload_service.store_file, content, filename, content_type, f"students/{student.id}"
    )
    return await run_in_threadpool(upload_service.set_student_document, db, student, slot, stored, session)


@router.post("/avatar", response_model=UserRead, status_code=201)
async def upload_avatar(
    request: Request,
    file: Annotated[UploadFile, File()],
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    _reject_oversized_request(request)
    content, filename, content_type = await read_upload(file, upload_service.MAX_IMAGE_BYTES)
    user = db.get(User, session.user_id)
    return await run_in_threadpool(
        upload_service.set_avatar, db, user, content, filename, content_type, session
    )
