"""Pydantic schemas for the file gateway."""

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import CamelInput


class UploadedFile(BaseModel):
    """Stored file as returned to clients (camelCase keys on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    url: str
    public_id: str = Field(alias="publicId", serialization_alias="publicId")
    size: int
    format: str
    original_name: str = Field(alias="originalName", serialization_alias="originalName")


class UploadedFiles(BaseModel):
    files: list[UploadedFile]


class FileDelete(CamelInput):
    public_id: str = Field(..., min_length=1, max_length=500)


class SignedUploadParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl", serialization_alias="uploadUrl")
    fields: dict[str, str]
    public_id: str = Field(alias="publicId", serialization_alias="publicId")
    expires_in: int = Field(alias="expiresIn", serialization_alias="expiresIn")
