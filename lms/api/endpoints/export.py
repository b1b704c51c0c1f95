# lms/api/endpoints/export.py

import io
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import get_db_session
from lms.core.errors import to_http
from lms.core.rbac import AllowRoles
from lms.models.user import User, UserRole
from lms.services import export_service

router = APIRouter(prefix="/api/export", tags=["Export"])


def _csv_response(filename: str, text: str) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(text.encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/section/{section_id}/analytics")
async def export_section_analytics(
    section_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.HOD, UserRole.Dean, UserRole.Teacher)),
):
    try:
        filename, text = await export_service.section_analytics_csv(session, user, section_id)
    except Exception as e:
        raise to_http(e)
    return _csv_response(filename, text)


@router.get("/course/{course_id}/sections")
async def export_course_sections(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.HOD, UserRole.Dean)),
):
    try:
        filename, text = await export_service.course_sections_csv(session, user, course_id)
    except Exception as e:
        raise to_http(e)
    return _csv_response(filename, text)
