"""File gateway - validate uploads, store them and attach the URL to an entity."""

import logging
import os
import re
import uuid
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import DependencyFailed, NotFound, ValidationFailed
from app.db.base import utcnow
from app.db.enums import AuditAction, AuditEntityType, StudentDocumentSlot
from app.db.models import ServiceRequest, Student, Task, User
from app.schemas.auth import UserSession
from app.services import audit_service, realtime_events
from app.services.storage_client import get_s3_client, public_object_url

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024  # 10 MB
MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MB
MAX_FILES_PER_REQUEST = 10

DOCUMENT_TYPES = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "text/plain": "txt",
}
IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

DEFAULT_FOLDER = "uploads"
_FOLDER_RE = re.compile(r"^[a-z0-9][a-z0-9_\-/]{0,99}$")


def _use_s3() -> bool:
    return settings.STORAGE_BACKEND == "s3"


def get_local_storage_path() -> str:
    path = settings.LOCAL_STORAGE_PATH
    os.makedirs(path, exist_ok=True)
    return path


def _local_path(public_id: str) -> str:
    root = os.path.realpath(get_local_storage_path())
    path = os.path.realpath(os.path.join(root, public_id))
    if not path.startswith(root + os.sep):
        raise ValidationFailed("Invalid file reference")
    return path


def _local_url(public_id: str) -> str:
    return f"/api/upload/local/{public_id}"


# =============================================================================
# Validation
# =============================================================================

def normalize_folder(folder: str | None) -> str:
    folder = (folder or DEFAULT_FOLDER).strip().strip("/").lower()
    if not _FOLDER_RE.match(folder) or ".." in folder:
        raise ValidationFailed("Invalid upload folder")
    return folder


def validate_file(filename: str, content_type: str, size: int) -> str:
    """
    Check the file against the allowlists and size limits.

    Returns:
        The file's format (extension)

    Raises:
        ValidationFailed: type not allowed, empty or too large
    """
    if content_type in DOCUMENT_TYPES:
        file_format, max_bytes, kind = DOCUMENT_TYPES[content_type], MAX_DOCUMENT_BYTES, "Documents"
    elif content_type in IMAGE_TYPES:
        file_format, max_bytes, kind = IMAGE_TYPES[content_type], MAX_IMAGE_BYTES, "Images"
    else:
        raise ValidationFailed(f"File type '{content_type}' is not allowed")

    if size <= 0:
        raise ValidationFailed(f"File '{filename}' is empty")
    if size > max_bytes:
        raise ValidationFailed(f"{kind} must be {max_bytes // (1024 * 1024)} MB or smaller")

    return file_format


# =============================================================================
# Storage
# =============================================================================

def store_file(
    content: bytes,
    filename: str,
    content_type: str,
    folder: str | None = None,
) -> dict[str, Any]:
    """
    Validate and store one file.

    Returns:
        ``{url, publicId, size, format, originalName}``

    Raises:
        ValidationFailed: rejected by the allowlist
        DependencyFailed: the object store failed
    """
    size = len(content)
    file_format = validate_file(filename, content_type, size)
    public_id = f"{normalize_folder(folder)}/{uuid.uuid4().hex}.{file_format}"

    if _use_s3():
        try:
            get_s3_client().put_object(
                Bucket=settings.S3_BUCKET,
                Key=public_id,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Object store upload failed for %s", public_id)
            raise DependencyFailed("File upload failed") from exc
        url = public_object_url(public_id)
    else:
        path = _local_path(public_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        try:
            with open(path, "wb") as f:
                f.write(content)
        except OSError as exc:
            logger.exception("Local storage write failed for %s", public_id)
            raise DependencyFailed("File upload failed") from exc
        url = _local_url(public_id)

    return {
        "url": url,
        "publicId": public_id,
        "size": size,
        "format": file_format,
        "originalName": filename,
    }


def store_files(files: list[tuple[bytes, str, str]], folder: str | None = None) -> list[dict[str, Any]]:
    """Store several ``(content, filename, content_type)`` files, validating all first."""
    if not files:
        raise ValidationFailed("No files provided")
    if len(files) > MAX_FILES_PER_REQUEST:
        raise ValidationFailed(f"At most {MAX_FILES_PER_REQUEST} files per request")
    for content, filename, content_type in files:
        validate_file(filename, content_type, len(content))
    return [store_file(content, filename, content_type, folder) for content, filename, content_type in files]


def delete_file(public_id: str) -> None:
    """Remove a stored object."""
    if not public_id:
        raise ValidationFailed("publicId is required")

    if _use_s3():
        try:
            get_s3_client().delete_object(Bucket=settings.S3_BUCKET, Key=public_id)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("Object store delete failed for %s", public_id)
            raise DependencyFailed("File deletion failed") from exc
        return

    path = _local_path(public_id)
    if not os.path.exists(path):
        raise NotFound("File not found")
    os.remove(path)


def local_file_path(public_id: str) -> str:
    """Filesystem path of a locally stored object (local backend only)."""
    if _use_s3():
        raise NotFound("File not found")
    path = _local_path(public_id)
    if not os.path.isfile(path):
        raise NotFound("File not found")
    return path


def signed_upload_params(folder: str | None = None) -> dict[str, Any]:
    """
    Parameters for a direct browser upload.

    S3 returns a presigned POST; the local backend points back at this API.
    """
    public_id = f"{normalize_folder(folder)}/{uuid.uuid4().hex}"
    expires_in = settings.SIGNED_UPLOAD_EXPIRY_SECONDS

    if not _use_s3():
        return {
            "uploadUrl": "/api/upload/file",
            "fields": {"folder": normalize_folder(folder)},
            "publicId": public_id,
            "expiresIn": expires_in,
        }

    try:
        presigned = get_s3_client().generate_presigned_post(
            Bucket=settings.S3_BUCKET,
            Key=public_id,
            Conditions=[["content-length-range", 1, MAX_DOCUMENT_BYTES]],
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.exception("Could not presign upload for %s", public_id)
        raise DependencyFailed("Could not prepare upload") from exc

    return {
        "uploadUrl": presigned["url"],
        "fields": presigned["fields"],
        "publicId": public_id,
        "expiresIn": expires_in,
    }


# =============================================================================
# Attachment to entities
# =============================================================================

def _file_record(stored: dict, session: UserSession) -> dict:
    return {
        **stored,
        "uploadedBy": str(session.user_id),
        "uploadedAt": utcnow().isoformat(),
    }


def attach_to_task(db: Session, task: Task, stored: list[dict], session: UserSession) -> Task:
    """Queue files for the task's next submission."""
    task.pending_files = [*task.pending_files, *(_file_record(s, session) for s in stored)]
    db.commit()
    db.refresh(task)

    audit_service.log_for_session(
        db, session, AuditAction.FILE_UPLOADED, AuditEntityType.TASK, task.id,
        details={"publicIds": [s["publicId"] for s in stored]},
    )
    return task


def attach_to_service_request(
    db: Session, sr: ServiceRequest, stored: list[dict], session: UserSession
) -> ServiceRequest:
    sr.documents = [*sr.documents, *(_file_record(s, session) for s in stored)]
    db.commit()
    db.refresh(sr)

    audit_service.log_for_session(
        db, session, AuditAction.FILE_UPLOADED, AuditEntityType.SERVICE_REQUEST, sr.id,
        details={"publicIds": [s["publicId"] for s in stored]},
    )
    realtime_events.broadcast_service_request_update(sr)
    return sr


def set_student_document(
    db: Session,
    student: Student,
    slot: StudentDocumentSlot,
    stored: dict,
    session: UserSession,
) -> Student:
    """Store the URL in one of the six named document slots (replacing any previous one)."""
    previous = student.documents.get(slot.value)
    student.documents = {**student.documents, slot.value: stored["url"]}
    db.commit()
    db.refresh(student)

    audit_service.log_for_session(
        db, session, AuditAction.FILE_UPLOADED, AuditEntityType.STUDENT, student.id,
        previous_state={slot.value: previous} if previous else None,
        new_state={slot.value: stored["url"]},
        details={"publicId": stored["publicId"]},
    )
    return student


def record_deletion(db: Session, public_id: str, session: UserSession) -> None:
    audit_service.log_for_session(
        db, session, AuditAction.FILE_DELETED, AuditEntityType.FILE, public_id,
    )


def set_avatar(
    db: Session,
    user: User,
    content: bytes,
    filename: str,
    content_type: str,
    session: UserSession,
) -> User:
    """Store an image and make it the user's avatar, replacing any previous one."""
    if content_type not in IMAGE_TYPES:
        raise ValidationFailed("Avatar must be an image")
    stored = store_file(content, filename, content_type, "avatars")

    previous = user.avatar_url
    user.avatar_url = stored["url"]
    db.commit()
    db.refresh(user)

    audit_service.log_for_session(
        db, session, AuditAction.FILE_UPLOADED, AuditEntityType.USER, user.id,
        previous_state={"avatarUrl": previous} if previous else None,
        new_state={"avatarUrl": user.avatar_url},
        details={"publicId": stored["publicId"]},
    )
    return user
