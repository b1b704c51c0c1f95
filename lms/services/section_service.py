# lms/services/section_service.py

import uuid
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlmodel import select
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import NotFound
from lms.models.user import User, UserRole
from lms.models.department import Department
from lms.models.course import Course
from lms.models.section import Section, SectionStudent, SectionCourseTeacher
from lms.services import access_service


SEARCH_DEFAULT_LIMIT = 10
SEARCH_MAX_LIMIT = 50


# ============================================================================
# SECTIONS
# ============================================================================
async def create_section(
    session: AsyncSession,
    user: User,
    name: str,
    department_id: int,
    academic_year: Optional[str] = None,
    semester: Optional[int] = None,
) -> Section:
    if user.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot create sections")
    await access_service.ensure_department_scope(session, user, department_id)
    dept = await access_service.get_department(session, department_id)

    section = Section(
        name=name.strip(),
        department_id=dept.id,
        school_id=dept.school_id,
        academic_year=academic_year,
        semester=semester,
    )
    session.add(section)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError(f"Section '{name}' already exists in this department")
    await session.refresh(section)
    return section


async def list_sections(session: AsyncSession, user: User, department_id: Optional[int] = None) -> List[Section]:
    query = select(Section).order_by(Section.name)

    if user.role == UserRole.Dean:
        query = query.where(Section.school_id == await access_service.dean_school_id(session, user))
    elif user.role == UserRole.HOD:
        query = query.where(Section.department_id.in_(await access_service.hod_department_ids(session, user)))
    elif user.role == UserRole.Teacher:
        query = query.where(
            Section.id.in_(
                select(SectionCourseTeacher.section_id).where(SectionCourseTeacher.teacher_id == user.id)
            )
        )

    if department_id is not None:
        query = query.where(Section.department_id == department_id)

    result = await session.execute(query)
    return list(result.scalars().all())


async def section_students(session: AsyncSession, section_id: uuid.UUID) -> List[User]:
    result = await session.execute(
        select(User)
        .join(SectionStudent, SectionStudent.student_id == User.id)
        .where(SectionStudent.section_id == section_id)
        .order_by(User.name)
    )
    return list(result.scalars().all())


async def section_courses(session: AsyncSession, section_id: uuid.UUID) -> List[Dict[str, Any]]:
    """Course assignments of a section with their teacher."""
    result = await session.execute(
        select(SectionCourseTeacher, Course, User)
        .join(Course, Course.id == SectionCourseTeacher.course_id)
        .outerjoin(User, User.id == SectionCourseTeacher.teacher_id)
        .where(SectionCourseTeacher.section_id == section_id)
        .order_by(Course.title)
    )
    return [
        {"assignment": link, "course": course, "teacher": teacher}
        for link, course, teacher in result.all()
    ]


async def get_section_detail(session: AsyncSession, user: User, section_id: uuid.UUID) -> Dict[str, Any]:
    section = await access_service.get_section(session, section_id)
    await access_service.ensure_section_scope(session, user, section)
    return {
        "section": section,
        "students": await section_students(session, section.id),
        "courses": await section_courses(session, section.id),
    }


# ============================================================================
# STUDENTS
# ============================================================================
async def add_students(
    session: AsyncSession,
    user: User,
    section_id: uuid.UUID,
    student_ids: List[uuid.UUID],
) -> int:
    section = await access_service.get_section(session, section_id)
    if user.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot change section membership")
    await access_service.ensure_department_scope(session, user, section.department_id)

    added = 0
    for sid in dict.fromkeys(student_ids):
        student = await session.get(User, sid)
        if not student or student.role != UserRole.Student:
            raise ValueError(f"User {sid} is not a student")
        if user.role != UserRole.Admin and student.department_id != section.department_id:
            raise ValueError(f"Student {student.name} belongs to a different department")

        existing = await access_service.student_section_id(session, student.id)
        if existing == section.id:
            continue
        if existing is not None:
            raise ValueError(f"Student {student.name} is already in another section")

        session.add(SectionStudent(section_id=section.id, student_id=student.id))
        added += 1

    await session.commit()
    logger.info(f"Added {added} students to section {section.name}")
    return added


async def remove_student(session: AsyncSession, user: User, section_id: uuid.UUID, student_id: uuid.UUID):
    section = await access_service.get_section(session, section_id)
    if user.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot change section membership")
    await access_service.ensure_department_scope(session, user, section.department_id)

    result = await session.execute(
        select(SectionStudent).where(
            SectionStudent.section_id == section.id,
            SectionStudent.student_id == student_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise NotFound("Student is not in this section")

    await session.delete(link)
    await session.commit()


# ============================================================================
# TEACHER ASSIGNMENTS
# ============================================================================
async def assign_teacher(
    session: AsyncSession,
    user: User,
    section_id: uuid.UUID,
    course_id: uuid.UUID,
    teacher_id: uuid.UUID,
) -> SectionCourseTeacher:
    section = await access_service.get_section(session, section_id)
    if user.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot assign teachers")
    await access_service.ensure_department_scope(session, user, section.department_id)

    course = await access_service.get_course(session, course_id)

    teacher = await session.get(User, teacher_id)
    if not teacher or teacher.role != UserRole.Teacher:
        raise ValueError("User is not a teacher")
    if user.role != UserRole.Admin and teacher.department_id != section.department_id:
        raise ValueError("Teacher must belong to the section's department")

    result = await session.execute(
        select(SectionCourseTeacher).where(
            SectionCourseTeacher.section_id == section.id,
            SectionCourseTeacher.course_id == course.id,
        )
    )
    link = result.scalar_one_or_none()

    # one teacher per section-course; reassigning replaces the teacher
    if link:
        link.teacher_id = teacher.id
        link.assigned_by = user.id
    else:
        link = SectionCourseTeacher(
            section_id=section.id,
            course_id=course.id,
            teacher_id=teacher.id,
            assigned_by=user.id,
        )
    session.add(link)
    await session.commit()
    await session.refresh(link)
    return link


async def remove_teacher(session: AsyncSession, user: User, section_id: uuid.UUID, course_id: uuid.UUID):
    section = await access_service.get_section(session, section_id)
    if user.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot remove assignments")
    await access_service.ensure_department_scope(session, user, section.department_id)

    result = await session.execute(
        select(SectionCourseTeacher).where(
            SectionCourseTeacher.section_id == section.id,
            SectionCourseTeacher.course_id == course_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise NotFound("Course is not assigned to this section")

    await session.delete(link)
    await session.commit()


async def teacher_assignments(session: AsyncSession, teacher_id: uuid.UUID) -> List[Dict[str, Any]]:
    result = await session.execute(
        select(SectionCourseTeacher, Section, Course)
        .join(Section, Section.id == SectionCourseTeacher.section_id)
        .join(Course, Course.id == SectionCourseTeacher.course_id)
        .where(SectionCourseTeacher.teacher_id == teacher_id)
        .order_by(Section.name, Course.title)
    )
    rows = result.all()

    counts: Dict[uuid.UUID, int] = {}
    if rows:
        count_res = await session.execute(
            select(SectionStudent.section_id, func.count(SectionStudent.id))
            .where(SectionStudent.section_id.in_(list({s.id for _, s, _ in rows})))
            .group_by(SectionStudent.section_id)
        )
        counts = dict(count_res.all())

    return [
        {"assignment": link, "section": section, "course": course, "students_count": counts.get(section.id, 0)}
        for link, section, course in rows
    ]


# ============================================================================
# STUDENT SEARCH
# ============================================================================
async def search_students(
    session: AsyncSession,
    user: User,
    q: str,
    limit: int = SEARCH_DEFAULT_LIMIT,
) -> List[Dict[str, Any]]:
    term = (q or "").strip().lower()
    if not term:
        return []
    limit = max(1, min(limit or SEARCH_DEFAULT_LIMIT, SEARCH_MAX_LIMIT))

    # wildcards in the query are literal characters
    prefix = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
    query = (
        select(User, Section.name, Department.name)
        .outerjoin(SectionStudent, SectionStudent.student_id == User.id)
        .outerjoin(Section, Section.id == SectionStudent.section_id)
        .outerjoin(Department, Department.id == User.department_id)
        .where(
            User.role == UserRole.Student,
            User.is_active == True,  # noqa: E712
            or_(
                func.lower(User.registration_number).like(prefix, escape="\\"),
                func.lower(User.name).like(prefix, escape="\\"),
                func.lower(User.email).like(prefix, escape="\\"),
            ),
        )
    )

    if user.role == UserRole.Dean:
        query = query.where(User.school_id == await access_service.dean_school_id(session, user))
    elif user.role == UserRole.HOD:
        query = query.where(User.department_id.in_(await access_service.hod_department_ids(session, user)))
    elif user.role == UserRole.Teacher:
        query = query.where(User.department_id == user.department_id)

    result = await session.execute(query.order_by(User.name).limit(limit))
    return [
        {
            "id": student.id,
            "name": student.name,
            "email": student.email,
            "registration_number": student.registration_number,
            "section_name": section_name,
            "department_name": dept_name,
        }
        for student, section_name, dept_name in result.all()
    ]
