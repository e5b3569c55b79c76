"""Shared request base and response envelopes."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelInput(BaseModel):
    """Request body accepting camelCase keys (snake_case works too)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int = Field(serialization_alias="totalPages")


class Paginated(BaseModel, Generic[T]):
    """``{data: [...], pagination: {total, page, limit, totalPages}}``."""
    data: list[T]
    pagination: PaginationMeta


class MessageResponse(BaseModel):
    message: str
