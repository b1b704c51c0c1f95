# lms/api/endpoints/sections.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from lms.api.deps import get_db_session, get_current_user
from lms.core.errors import to_http
from lms.core.rbac import AllowRoles, require_staff
from lms.models.user import User, UserRole
from lms.schemas.section import (
    SectionCreate,
    SectionRead,
    StudentsAdd,
    TeacherAssign,
    SectionCourse,
    SectionDetail,
    TeacherAssignment,
)
from lms.schemas.user import UserBrief
from lms.services import section_service

router = APIRouter(prefix="/api/sections", tags=["Sections"])

section_managers = AllowRoles(UserRole.Dean, UserRole.HOD)


def _section_course(row) -> SectionCourse:
    course = row["course"]
    teacher = row["teacher"]
    return SectionCourse(
        course_id=course.id,
        course_title=course.title,
        course_code=course.code,
        teacher=UserBrief.model_validate(teacher) if teacher else None,
    )


# ------------------------------------------------------------
# SECTIONS
# ------------------------------------------------------------
@router.post("/", response_model=SectionRead, status_code=status.HTTP_201_CREATED)
async def create_section(
    data: SectionCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(section_managers),
):
    try:
        return await section_service.create_section(
            session, user, data.name, data.department_id,
            academic_year=data.academic_year, semester=data.semester,
        )
    except Exception as e:
        raise to_http(e)


@router.get("/", response_model=List[SectionRead])
async def list_sections(
    department_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_staff),
):
    return await section_service.list_sections(session, user, department_id=department_id)


# declared before /{section_id}
@router.get("/my-assignments", response_model=List[TeacherAssignment])
async def my_assignments(
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Teacher)),
):
    rows = await section_service.teacher_assignments(session, user.id)
    return [
        TeacherAssignment(
            section_id=r["section"].id,
            section_name=r["section"].name,
            course_id=r["course"].id,
            course_title=r["course"].title,
            course_code=r["course"].code,
            students_count=r["students_count"],
        )
        for r in rows
    ]


@router.get("/{section_id}", response_model=SectionDetail)
async def get_section(
    section_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        detail = await section_service.get_section_detail(session, user, section_id)
    except Exception as e:
        raise to_http(e)

    return SectionDetail(
        section=SectionRead.model_validate(detail["section"]),
        students=[UserBrief.model_validate(s) for s in detail["students"]],
        courses=[_section_course(r) for r in detail["courses"]],
    )


# ------------------------------------------------------------
# STUDENTS
# ------------------------------------------------------------
@router.post("/{section_id}/students")
async def add_students(
    section_id: UUID,
    data: StudentsAdd,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(section_managers),
):
    try:
        added = await section_service.add_students(session, user, section_id, data.student_ids)
    except Exception as e:
        raise to_http(e)
    return {"detail": f"{added} student(s) added", "added": added}


@router.delete("/{section_id}/students/{student_id}")
async def remove_student(
    section_id: UUID,
    student_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(section_managers),
):
    try:
        await section_service.remove_student(session, user, section_id, student_id)
    except Exception as e:
        raise to_http(e)
    return {"detail": "Student removed from section"}


# ------------------------------------------------------------
# TEACHERS
# ------------------------------------------------------------
@router.get("/{section_id}/courses", response_model=List[SectionCourse])
async def list_section_courses(
    section_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        detail = await section_service.get_section_detail(session, user, section_id)
    except Exception as e:
        raise to_http(e)
    return [_section_course(r) for r in detail["courses"]]


@router.post("/{section_id}/teachers", status_code=status.HTTP_201_CREATED)
async def assign_teacher(
    section_id: UUID,
    data: TeacherAssign,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(section_managers),
):
    try:
        link = await section_service.assign_teacher(session, user, section_id, data.course_id, data.teacher_id)
    except Exception as e:
        raise to_http(e)
    return {
        "detail": "Teacher assigned",
        "section_id": link.section_id,
        "course_id": link.course_id,
        "teacher_id": link.teacher_id,
    }


@router.delete("/{section_id}/teachers/{course_id}")
async def remove_teacher(
    section_id: UUID,
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(section_managers),
):
    try:
        await section_service.remove_teacher(session, user, section_id, course_id)
    except Exception as e:
        raise to_http(e)
    return {"detail": "Teacher assignment removed"}
