"""Pagination utilities for list endpoints."""

from dataclasses import dataclass

from fastapi import Query
from sqlalchemy.orm import Query as SQLAlchemyQuery

from app.schemas.common import PaginationMeta


# Pagination limits
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass
class PaginationParams:
    """Pagination parameters from query string."""
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def get_pagination(
    page: int = Query(DEFAULT_PAGE, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, description=f"Items per page (capped at {MAX_LIMIT})"),
) -> PaginationParams:
    """
    Pagination dependency. Oversized limits are capped rather than rejected.

    Usage:
        @router.get("/items")
        def list_items(pagination: PaginationParams = Depends(get_pagination)):
            ...
    """
    return PaginationParams(page=page, limit=min(limit, MAX_LIMIT))


def pagination_with_default(default_limit: int):
    """Same as ``get_pagination`` with a different default page size."""
    def dependency(
        page: int = Query(DEFAULT_PAGE, ge=1, description="Page number (1-indexed)"),
        limit: int = Query(default_limit, ge=1, description=f"Items per page (capped at {MAX_LIMIT})"),
    ) -> PaginationParams:
        return PaginationParams(page=page, limit=min(limit, MAX_LIMIT))
    return dependency


def build_meta(total: int, pagination: PaginationParams) -> PaginationMeta:
    pages = (total + pagination.limit - 1) // pagination.limit if pagination.limit > 0 else 0
    return PaginationMeta(
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        total_pages=pages,
    )


def paginate_query(query: SQLAlchemyQuery, pagination: PaginationParams) -> tuple[list, PaginationMeta]:
    """
    Apply pagination to a SQLAlchemy query.

    Returns:
        (items, pagination meta)
    """
    total = query.order_by(None).count()
    items = query.offset(pagination.offset).limit(pagination.limit).all()
    return items, build_meta(total, pagination)
