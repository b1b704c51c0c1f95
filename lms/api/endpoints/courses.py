# lms/api/endpoints/courses.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from lms.api.deps import get_db_session, get_current_user
from lms.core.errors import to_http
from lms.core.rbac import AllowRoles, require_admin
from lms.models.user import User, UserRole
from lms.models.enums import ContentType
from lms.schemas.course import (
    SchoolCreate, SchoolRead, DeanAssign,
    DepartmentCreate, DepartmentRead, HODAssign,
    CourseCreate, CourseRead, CoordinatorAssign,
    UnitCreate, UnitRead,
    VideoCreate, VideoRead,
    DocumentCreate, DocumentRead,
)
from lms.schemas.user import UserBrief
from lms.services import course_service
from lms.services.access_service import get_course

router = APIRouter(prefix="/api", tags=["Course Structure"])

content_managers = AllowRoles(UserRole.Teacher, UserRole.HOD)


# ===================================================================
# SCHOOLS
# ===================================================================
@router.post("/schools", response_model=SchoolRead, status_code=status.HTTP_201_CREATED)
async def create_school(
    data: SchoolCreate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(require_admin),
):
    try:
        return await course_service.create_school(session, data.name, data.code)
    except Exception as e:
        raise to_http(e)


@router.get("/schools", response_model=List[SchoolRead])
async def list_schools(
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    return await course_service.list_schools(session)


@router.put("/schools/{school_id}/dean", response_model=SchoolRead)
async def assign_dean(
    school_id: int,
    data: DeanAssign,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(require_admin),
):
    try:
        return await course_service.assign_dean(session, school_id, data.dean_id)
    except Exception as e:
        raise to_http(e)


# ===================================================================
# DEPARTMENTS
# ===================================================================
@router.post("/departments", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Dean)),
):
    try:
        return await course_service.create_department(session, user, data.name, data.code, data.school_id)
    except Exception as e:
        raise to_http(e)


@router.get("/departments", response_model=List[DepartmentRead])
async def list_departments(
    school_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    return await course_service.list_departments(session, user, school_id=school_id)


@router.put("/departments/{department_id}/hod", response_model=DepartmentRead)
async def set_department_hod(
    department_id: int,
    data: HODAssign,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Dean)),
):
    try:
        return await course_service.set_department_hod(session, user, department_id, data.hod_id)
    except Exception as e:
        raise to_http(e)


# ===================================================================
# COURSES
# ===================================================================
@router.post("/courses", response_model=CourseRead, status_code=status.HTTP_201_CREATED)
async def create_course(
    data: CourseCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Dean, UserRole.HOD)),
):
    try:
        return await course_service.create_course(session, user, data.title, data.code, data.department_id)
    except Exception as e:
        raise to_http(e)


@router.get("/courses", response_model=List[CourseRead])
async def list_courses(
    department_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    return await course_service.list_courses(session, user, department_id=department_id)


@router.get("/courses/coordinated", response_model=List[CourseRead])
async def my_coordinated_courses(
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Teacher)),
):
    return await course_service.coordinated_courses(session, user)


@router.get("/courses/{course_id}", response_model=CourseRead)
async def get_course_detail(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    try:
        return await get_course(session, course_id)
    except Exception as e:
        raise to_http(e)


# ===================================================================
# UNITS & CONTENT
# ===================================================================
@router.get("/courses/{course_id}/units", response_model=List[UnitRead])
async def list_units(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(content_managers),
):
    try:
        course = await get_course(session, course_id)
        await course_service.ensure_content_manager(session, user, course)
    except Exception as e:
        raise to_http(e)
    return await course_service.list_units(session, course.id)


@router.post("/courses/{course_id}/units", response_model=UnitRead, status_code=status.HTTP_201_CREATED)
async def create_unit(
    course_id: UUID,
    data: UnitCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(content_managers),
):
    try:
        return await course_service.create_unit(
            session, user, course_id, data.title, description=data.description, order=data.order
        )
    except Exception as e:
        raise to_http(e)


@router.post("/units/{unit_id}/videos", response_model=VideoRead, status_code=status.HTTP_201_CREATED)
async def add_video(
    unit_id: UUID,
    data: VideoCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(content_managers),
):
    try:
        return await course_service.add_video(
            session, user, unit_id, data.title, video_url=data.video_url, duration=data.duration
        )
    except Exception as e:
        raise to_http(e)


@router.post("/units/{unit_id}/documents", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
async def add_document(
    unit_id: UUID,
    data: DocumentCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(content_managers),
):
    try:
        return await course_service.add_document(
            session, user, unit_id, data.title, file_url=data.file_url, pages=data.pages
        )
    except Exception as e:
        raise to_http(e)


@router.delete("/content/{content_type}/{content_id}")
async def delete_content(
    content_type: ContentType,
    content_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(content_managers),
):
    try:
        await course_service.delete_content(session, user, content_type, content_id)
    except Exception as e:
        raise to_http(e)
    return {"detail": f"{content_type.value.capitalize()} deleted"}


# ===================================================================
# COURSE COORDINATORS
# ===================================================================
@router.get("/courses/{course_id}/coordinators", response_model=List[UserBrief])
async def list_coordinators(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    return await course_service.list_coordinators(session, course_id)


@router.post("/courses/{course_id}/coordinators", status_code=status.HTTP_201_CREATED)
async def assign_coordinator(
    course_id: UUID,
    data: CoordinatorAssign,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.HOD)),
):
    try:
        link = await course_service.assign_coordinator(session, user, course_id, data.teacher_id)
    except Exception as e:
        raise to_http(e)
    return {"detail": "Coordinator assigned", "course_id": link.course_id, "teacher_id": link.teacher_id}


@router.delete("/courses/{course_id}/coordinators/{teacher_id}")
async def remove_coordinator(
    course_id: UUID,
    teacher_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.HOD)),
):
    try:
        await course_service.remove_coordinator(session, user, course_id, teacher_id)
    except Exception as e:
        raise to_http(e)
    return {"detail": "Coordinator removed"}
