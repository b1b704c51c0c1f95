# lms/api/endpoints/learning.py

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from lms.api.deps import get_db_session
from lms.core.errors import to_http
from lms.core.rbac import require_student
from lms.models.user import User
from lms.schemas.course import CourseRead
from lms.schemas.learning import CourseContent, CourseProgress, ProgressRead, ProgressUpdate
from lms.services import learning_service
from lms.services.course_service import list_courses


router = APIRouter(prefix="/api/learning", tags=["Student Learning"])


@router.get("/courses", response_model=List[CourseRead])
async def my_courses(
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    """Launched courses of the student's section."""
    courses = await list_courses(session, student)
    return [c for c in courses if c.is_launched]


@router.get("/courses/{course_id}", response_model=CourseContent)
async def course_content(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    try:
        return await learning_service.get_course_content(session, student, course_id)
    except Exception as e:
        raise to_http(e)


@router.get("/courses/{course_id}/progress", response_model=CourseProgress)
async def course_progress(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    try:
        return await learning_service.get_course_progress(session, student, course_id)
    except Exception as e:
        raise to_http(e)


@router.post("/progress", response_model=ProgressRead)
async def record_progress(
    payload: ProgressUpdate,
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    try:
        return await learning_service.record_progress(
            session,
            student,
            payload.content_type,
            payload.content_id,
            watched_seconds=payload.watched_seconds,
            completed=payload.completed,
        )
    except Exception as e:
        raise to_http(e)
