# lms/api/endpoints/analytics.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from lms.api.deps import get_db_session, get_current_user
from lms.core.errors import to_http
from lms.core.rbac import AllowRoles
from lms.models.user import User, UserRole
from lms.services import analytics_service

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/dean")
async def dean_overview(
    school_id: Optional[int] = Query(None, description="Required for Admins"),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Dean)),
):
    try:
        return await analytics_service.dean_overview(session, user, school_id=school_id)
    except Exception as e:
        raise to_http(e)


@router.get("/hod")
async def hod_department(
    department_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.HOD, UserRole.Dean)),
):
    try:
        return await analytics_service.hod_department_analytics(session, user, department_id=department_id)
    except Exception as e:
        raise to_http(e)


@router.get("/section/{section_id}")
async def section_analytics(
    section_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.HOD, UserRole.Dean, UserRole.Teacher)),
):
    try:
        return await analytics_service.section_analytics(session, user, section_id)
    except Exception as e:
        raise to_http(e)


@router.get("/teacher")
async def teacher_analytics(
    teacher_id: Optional[UUID] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Teacher, UserRole.HOD, UserRole.Dean)),
):
    try:
        return await analytics_service.teacher_analytics(session, user, teacher_id=teacher_id)
    except Exception as e:
        raise to_http(e)


@router.get("/student/{student_id}")
async def student_analytics(
    student_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        return await analytics_service.student_analytics(session, user, student_id)
    except Exception as e:
        raise to_http(e)
