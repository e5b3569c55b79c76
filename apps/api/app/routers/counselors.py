"""Counselors router - the counselor's student roster."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.db.enums import Role
from app.schemas.auth import UserSession
from app.schemas.common import Paginated
from app.schemas.student import RosterStudent
from app.services import user_service
from app.utils.pagination import PaginationParams, get_pagination, paginate_query

router = APIRouter(prefix="/counselors", tags=["Counselors"])


@router.get("/students", response_model=Paginated[RosterStudent])
def list_my_students(
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(require_roles([Role.COUNSELOR])),
    db: Session = Depends(get_db),
):
    """Students whose assigned counselor is the caller, with active case and open task counts."""
    items, meta = paginate_query(user_service.list_counselor_students(db, session.user_id), pagination)
    return {"data": user_service.roster_entries(db, items, session.user_id), "pagination": meta}
