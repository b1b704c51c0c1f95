# lms/api/endpoints/students.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from lms.api.deps import get_db_session
from lms.core.rbac import require_staff
from lms.models.user import User
from lms.schemas.section import StudentSearchResult
from lms.services import section_service
from lms.services.section_service import SEARCH_DEFAULT_LIMIT, SEARCH_MAX_LIMIT

router = APIRouter(
    prefix="/api/students",
    tags=["Students"]
)


# ------------------------------------------------------------
# AUTOCOMPLETE (reg no / name / email prefix)
# ------------------------------------------------------------
@router.get("/search", response_model=List[StudentSearchResult])
async def search_students(
    q: str = Query(..., min_length=1),
    limit: int = Query(SEARCH_DEFAULT_LIMIT, ge=1, le=SEARCH_MAX_LIMIT),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_staff),
):
    return await section_service.search_students(session, user, q, limit=limit)
