"""Pydantic schemas for API request/response models."""

from app.schemas.auth import AuthResponse, MeResponse, UserRead, UserSession
from app.schemas.common import MessageResponse, Paginated, PaginationMeta

__all__ = [
    "AuthResponse",
    "MeResponse",
    "MessageResponse",
    "Paginated",
    "PaginationMeta",
    "UserRead",
    "UserSession",
]
