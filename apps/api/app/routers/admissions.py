"""Admissions router - university applications, split by caller role.

Each role gets its own path prefix (``/admissions/agent``, ``/admissions/student``,
``/admissions/admin``); the role gate sits on the endpoint and the visibility
rules stay in the access predicates.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.deps import get_db, require_roles
from app.core.errors import ValidationFailed
from app.db.enums import ApplicationStatus, Role
from app.schemas.application import (
    ApplicationAssign,
    ApplicationCreate,
    ApplicationRead,
    ApplicationStatusChange,
    ChecklistPatch,
    DocumentLink,
    RemarkCreate,
)
from app.schemas.auth import UserSession
from app.schemas.common import MessageResponse, Paginated
from app.services import application_service, upload_service
from app.utils.file_upload import read_upload
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/admissions", tags=["Admissions"])

require_agent = require_roles([Role.AGENT])
require_student = require_roles([Role.STUDENT])
require_admin = require_roles([Role.SUPER_ADMIN])


def _page(db: Session, session: UserSession, status: ApplicationStatus | None, pagination: PaginationParams):
    query = application_service.list_query(db, session, status)
    items, meta = paginate_query(query, pagination)
    return {"data": [application_service.to_read(a) for a in items], "pagination": meta}


def _read(db: Session, application_id: UUID, session: UserSession) -> ApplicationRead:
    return application_service.to_read(application_service.get_application(db, application_id, session))


async def _upload_document(
    request: Request,
    db: Session,
    application_id: UUID,
    session: UserSession,
) -> ApplicationRead:
    """
    Accept either a multipart ``file`` (stored through the file gateway) or a
    JSON ``{name, url, type}`` link.
    """
    # Access is checked before any bytes are stored
    await run_in_threadpool(application_service.get_application, db, application_id, session)

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if upload is None or isinstance(upload, str):
            raise ValidationFailed("A file is required")
        content, filename, file_type = await read_upload(upload, upload_service.MAX_DOCUMENT_BYTES)
        stored = await run_in_threadpool(
            upload_service.store_file, content, filename, file_type, f"applications/{application_id}"
        )
        name = form.get("name") or filename
        application = await run_in_threadpool(
            application_service.add_document,
            db, application_id, session,
            name=str(name),
            url=stored["url"],
            doc_type=stored["format"],
            public_id=stored["publicId"],
            request=request,
        )
    else:
        try:
            link = DocumentLink.model_validate(await request.json())
        except ValueError as exc:
            details = exc.errors() if isinstance(exc, ValidationError) else []
            raise ValidationFailed(
                "Provide a file or a JSON document link",
                details=[
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in details
                ] or None,
            ) from exc
        application = await run_in_threadpool(
            application_service.add_document,
            db, application_id, session,
            name=link.name,
            url=link.url,
            doc_type=link.type,
            request=request,
        )
    return application_service.to_read(application)


# =============================================================================
# Agent
# =============================================================================


@router.post("/agent/create", response_model=ApplicationRead, status_code=201)
def agent_create(
    body: ApplicationCreate,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    application = application_service.create_by_agent(
        db,
        session,
        body.student_id,
        body.university_name,
        body.program_name,
        body.intake,
        country=body.country,
        checklist=body.checklist,
        request=request,
    )
    return application_service.to_read(application)


@router.get("/agent", response_model=Paginated[ApplicationRead])
def agent_list(
    status: ApplicationStatus | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    return _page(db, session, status, pagination)


@router.get("/agent/{application_id}", response_model=ApplicationRead)
def agent_get(
    application_id: UUID,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    return _read(db, application_id, session)


@router.patch("/agent/{application_id}/status", response_model=ApplicationRead)
def agent_change_status(
    application_id: UUID,
    body: ApplicationStatusChange,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    application = application_service.change_status(
        db, application_id, session, body.status, body.note, request
    )
    return application_service.to_read(application)


@router.post("/agent/{application_id}/upload-doc", response_model=ApplicationRead, status_code=201)
async def agent_upload_doc(
    application_id: UUID,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    return await _upload_document(request, db, application_id, session)


@router.post("/agent/{application_id}/remark", response_model=ApplicationRead, status_code=201)
def agent_add_remark(
    application_id: UUID,
    body: RemarkCreate,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    application = application_service.add_remark(db, application_id, session, body.text, request)
    return application_service.to_read(application)


@router.patch("/agent/{application_id}/checklist", response_model=ApplicationRead)
def agent_update_checklist(
    application_id: UUID,
    body: ChecklistPatch,
    request: Request,
    session: UserSession = Depends(require_agent),
    db: Session = Depends(get_db),
):
    application = application_service.update_checklist(
        db, application_id, session, index=body.index, item=body.item, request=request
    )
    return application_service.to_read(application)


# =============================================================================
# Student
# =============================================================================


@router.get("/student", response_model=Paginated[ApplicationRead])
def student_list(
    status: ApplicationStatus | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    return _page(db, session, status, pagination)


@router.get("/student/{application_id}", response_model=ApplicationRead)
def student_get(
    application_id: UUID,
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    return _read(db, application_id, session)


@router.post("/student/{application_id}/upload-doc", response_model=ApplicationRead, status_code=201)
async def student_upload_doc(
    application_id: UUID,
    request: Request,
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    return await _upload_document(request, db, application_id, session)


@router.post("/student/{application_id}/accept-offer", response_model=ApplicationRead)
def student_accept_offer(
    application_id: UUID,
    request: Request,
    session: UserSession = Depends(require_student),
    db: Session = Depends(get_db),
):
    """Only an application in ``Offer Received`` can be accepted."""
    application = application_service.accept_offer(db, application_id, session, request)
    return application_service.to_read(application)


# =============================================================================
# Admin
# =============================================================================


@router.post("/admin/assign", response_model=ApplicationRead, status_code=201)
def admin_assign(
    body: ApplicationAssign,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    application = application_service.assign_by_admin(
        db,
        session,
        body.student_id,
        body.agent_id,
        body.university_name,
        body.program_name,
        body.intake,
        country=body.country,
        checklist=body.checklist,
        request=request,
    )
    return application_service.to_read(application)


@router.get("/admin", response_model=Paginated[ApplicationRead])
def admin_list(
    status: ApplicationStatus | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _page(db, session, status, pagination)


@router.get("/admin/{application_id}", response_model=ApplicationRead)
def admin_get(
    application_id: UUID,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _read(db, application_id, session)


@router.patch("/admin/{application_id}/status", response_model=ApplicationRead)
def admin_change_status(
    application_id: UUID,
    body: ApplicationStatusChange,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    application = application_service.change_status(
        db, application_id, session, body.status, body.note, request
    )
    return application_service.to_read(application)


@router.post("/admin/{application_id}/upload-doc", response_model=ApplicationRead, status_code=201)
async def admin_upload_doc(
    application_id: UUID,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return await _upload_document(request, db, application_id, session)


@router.post("/admin/{application_id}/remark", response_model=ApplicationRead, status_code=201)
def admin_add_remark(
    application_id: UUID,
    body: RemarkCreate,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    application = application_service.add_remark(db, application_id, session, body.text, request)
    return application_service.to_read(application)


@router.patch("/admin/{application_id}/checklist", response_model=ApplicationRead)
def admin_update_checklist(
    application_id: UUID,
    body: ChecklistPatch,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    application = application_service.update_checklist(
        db, application_id, session, index=body.index, item=body.item, request=request
    )
    return application_service.to_read(application)


@router.delete("/admin/{application_id}", response_model=MessageResponse)
def admin_delete(
    application_id: UUID,
    request: Request,
    session: UserSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    application_service.soft_delete(db, application_id, session, request)
    return {"message": "Application deleted"}
