# lms/services/access_service.py

import uuid
from typing import List

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import NotFound
from lms.models.user import User, UserRole
from lms.models.school import School
from lms.models.department import Department
from lms.models.course import Course, CourseCoordinator
from lms.models.section import Section, SectionStudent, SectionCourseTeacher


# ------------------------------------------------------------
# LOOKUPS
# ------------------------------------------------------------
async def get_course(session: AsyncSession, course_id: uuid.UUID) -> Course:
    course = await session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    return course


async def get_department(session: AsyncSession, department_id: int) -> Department:
    dept = await session.get(Department, department_id)
    if not dept:
        raise NotFound("Department not found")
    return dept


async def get_section(session: AsyncSession, section_id: uuid.UUID) -> Section:
    section = await session.get(Section, section_id)
    if not section:
        raise NotFound("Section not found")
    return section


# ------------------------------------------------------------
# ROLE CHECKS
# ------------------------------------------------------------
def is_admin(user: User) -> bool:
    return user.role == UserRole.Admin


async def hod_department_ids(session: AsyncSession, user: User) -> List[int]:
    """Departments an HOD heads: own department plus any pointing at them via hod_id."""
    ids = set()
    if user.role == UserRole.HOD and user.department_id:
        ids.add(user.department_id)

    result = await session.execute(select(Department.id).where(Department.hod_id == user.id))
    ids.update(result.scalars().all())
    return sorted(ids)


async def is_hod_of(session: AsyncSession, user: User, department_id: int) -> bool:
    if user.role == UserRole.HOD and user.department_id == department_id:
        return True
    dept = await session.get(Department, department_id)
    return bool(dept and dept.hod_id == user.id)


async def is_cc_of(session: AsyncSession, user: User, course_id: uuid.UUID) -> bool:
    if user.role != UserRole.Teacher:
        return False
    result = await session.execute(
        select(CourseCoordinator.id).where(
            CourseCoordinator.course_id == course_id,
            CourseCoordinator.teacher_id == user.id,
        )
    )
    return result.first() is not None


async def dean_school_id(session: AsyncSession, user: User) -> int | None:
    if user.role != UserRole.Dean:
        return None
    if user.school_id:
        return user.school_id
    result = await session.execute(select(School.id).where(School.dean_id == user.id))
    return result.scalars().first()


# ------------------------------------------------------------
# SCOPE GUARDS (raise PermissionError)
# ------------------------------------------------------------
async def ensure_department_scope(session: AsyncSession, user: User, department_id: int):
    """Admin: all. Dean: departments of own school. HOD/Teacher: own department."""
    if is_admin(user):
        return

    dept = await get_department(session, department_id)

    if user.role == UserRole.Dean:
        if dept.school_id == await dean_school_id(session, user):
            return
    elif user.role == UserRole.HOD:
        if await is_hod_of(session, user, department_id):
            return
    elif user.role == UserRole.Teacher:
        if user.department_id == department_id:
            return

    raise PermissionError("You do not have access to this department")


async def ensure_hod_of(session: AsyncSession, user: User, department_id: int):
    if is_admin(user):
        return
    if not await is_hod_of(session, user, department_id):
        raise PermissionError("Only the HOD of this department can perform this action")


async def ensure_cc_of(session: AsyncSession, user: User, course_id: uuid.UUID):
    if is_admin(user):
        return
    if not await is_cc_of(session, user, course_id):
        raise PermissionError("Only the course coordinator can perform this action")


async def ensure_section_scope(session: AsyncSession, user: User, section: Section):
    """Teachers may only touch sections they teach in."""
    if user.role == UserRole.Teacher:
        result = await session.execute(
            select(SectionCourseTeacher.id).where(
                SectionCourseTeacher.section_id == section.id,
                SectionCourseTeacher.teacher_id == user.id,
            )
        )
        if result.first() is None:
            raise PermissionError("You are not assigned to this section")
        return
    await ensure_department_scope(session, user, section.department_id)


async def student_section_id(session: AsyncSession, student_id: uuid.UUID) -> uuid.UUID | None:
    result = await session.execute(
        select(SectionStudent.section_id).where(SectionStudent.student_id == student_id)
    )
    return result.scalars().first()


async def is_enrolled(session: AsyncSession, student_id: uuid.UUID, course_id: uuid.UUID) -> bool:
    """A student takes a course when their section has it assigned."""
    result = await session.execute(
        select(SectionCourseTeacher.id)
        .join(SectionStudent, SectionStudent.section_id == SectionCourseTeacher.section_id)
        .where(
            SectionStudent.student_id == student_id,
            SectionCourseTeacher.course_id == course_id,
        )
    )
    return result.first() is not None


async def enrolled_student_ids(session: AsyncSession, course_id: uuid.UUID) -> List[uuid.UUID]:
    result = await session.execute(
        select(SectionStudent.student_id)
        .join(SectionCourseTeacher, SectionCourseTeacher.section_id == SectionStudent.section_id)
        .where(SectionCourseTeacher.course_id == course_id)
        .distinct()
    )
    return list(result.scalars().all())
