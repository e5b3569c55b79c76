"""Utility modules."""

from app.utils.file_upload import content_length_exceeds_limit, read_upload
from app.utils.pagination import (
    PaginationParams,
    build_meta,
    get_pagination,
    paginate_query,
)

__all__ = [
    # Uploads
    "content_length_exceeds_limit",
    "read_upload",
    # Pagination
    "PaginationParams",
    "build_meta",
    "get_pagination",
    "paginate_query",
]
