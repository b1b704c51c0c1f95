# lms/services/analytics_service.py
"""
Dashboard numbers for Deans, HODs, teachers and students.

Completion of a student in a course is the share of items in the launched
arrangement they completed; a course that was never launched counts as 0.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import NotFound
from lms.models.user import User, UserRole
from lms.models.school import School
from lms.models.department import Department
from lms.models.course import Course
from lms.models.section import Section, SectionStudent, SectionCourseTeacher
from lms.models.progress import StudentProgress
from lms.services import access_service, cache_service
from lms.services.learning_service import active_content_ids, completed_counts, percent
from lms.services.section_service import section_students, teacher_assignments


# ============================================================================
# SHARED
# ============================================================================
async def _course_students(session: AsyncSession, course_id: uuid.UUID, section_id: Optional[uuid.UUID] = None):
    query = (
        select(SectionStudent.student_id)
        .join(SectionCourseTeacher, SectionCourseTeacher.section_id == SectionStudent.section_id)
        .where(SectionCourseTeacher.course_id == course_id)
    )
    if section_id is not None:
        query = query.where(SectionStudent.section_id == section_id)
    result = await session.execute(query.distinct())
    return list(result.scalars().all())


async def course_completion(
    session: AsyncSession,
    course: Course,
    student_ids: List[uuid.UUID],
) -> Dict[str, Any]:
    """Per-student completion for one course plus the average."""
    content_ids = await active_content_ids(session, course)
    total = len(content_ids)
    done = await completed_counts(session, course, content_ids, student_ids) if total else {}

    per_student = {sid: percent(done.get(sid, 0), total) for sid in student_ids}
    average = round(sum(per_student.values()) / len(per_student), 2) if per_student else 0.0

    return {
        "total_items": total,
        "completed": {sid: done.get(sid, 0) for sid in student_ids},
        "per_student": per_student,
        "average_completion": average,
    }


async def _count(session: AsyncSession, query) -> int:
    return (await session.execute(query)).scalar() or 0


# ============================================================================
# 1. DEAN OVERVIEW
# ============================================================================
async def dean_overview(session: AsyncSession, user: User, school_id: Optional[int] = None) -> Dict[str, Any]:
    if user.role == UserRole.Dean:
        school_id = await access_service.dean_school_id(session, user)
    if school_id is None:
        raise ValueError("school_id is required")

    cache_key = f"dean:{school_id}"
    cached = await cache_service.get_cached(cache_key)
    if cached is not None:
        return cached

    school = await session.get(School, school_id)
    if not school:
        raise NotFound("School not found")

    result = await session.execute(
        select(Department).where(Department.school_id == school.id).order_by(Department.name)
    )

    departments = []
    for dept in result.scalars().all():
        courses = (await session.execute(
            select(Course).where(Course.department_id == dept.id)
        )).scalars().all()

        averages = []
        for course in courses:
            students = await _course_students(session, course.id)
            if students:
                averages.append((await course_completion(session, course, students))["average_completion"])

        departments.append({
            "department_id": dept.id,
            "department_name": dept.name,
            "courses": len(courses),
            "launched_courses": sum(1 for c in courses if c.is_launched),
            "teachers": await _count(session, select(func.count(User.id)).where(
                User.department_id == dept.id, User.role == UserRole.Teacher)),
            "students": await _count(session, select(func.count(User.id)).where(
                User.department_id == dept.id, User.role == UserRole.Student)),
            "sections": await _count(session, select(func.count(Section.id)).where(
                Section.department_id == dept.id)),
            "average_completion": round(sum(averages) / len(averages), 2) if averages else 0.0,
        })

    overview = {
        "school_id": school.id,
        "school_name": school.name,
        "departments": departments,
        "totals": {
            key: sum(d[key] for d in departments)
            for key in ("courses", "launched_courses", "teachers", "students", "sections")
        },
    }
    await cache_service.set_cached(cache_key, overview)
    return overview


# ============================================================================
# 2. HOD DEPARTMENT
# ============================================================================
async def hod_department_analytics(
    session: AsyncSession,
    user: User,
    department_id: Optional[int] = None,
) -> Dict[str, Any]:
    if department_id is None:
        if user.role == UserRole.HOD:
            ids = await access_service.hod_department_ids(session, user)
            if not ids:
                raise NotFound("No department assigned")
            department_id = ids[0]
        else:
            raise ValueError("department_id is required")

    await access_service.ensure_department_scope(session, user, department_id)
    dept = await access_service.get_department(session, department_id)

    cache_key = f"hod:{dept.id}"
    cached = await cache_service.get_cached(cache_key)
    if cached is not None:
        return cached

    courses = (await session.execute(
        select(Course).where(Course.department_id == dept.id).order_by(Course.title)
    )).scalars().all()

    rows = []
    for course in courses:
        students = await _course_students(session, course.id)
        stats = await course_completion(session, course, students)
        rows.append({
            "course_id": course.id,
            "title": course.title,
            "code": course.code,
            "is_launched": course.is_launched,
            "arrangement_status": course.current_arrangement_status.value,
            "active_arrangement_version": course.active_arrangement_version,
            "students_enrolled": len(students),
            "total_items": stats["total_items"],
            "average_completion": stats["average_completion"],
        })

    analytics = {
        "department_id": dept.id,
        "department_name": dept.name,
        "courses": rows,
        "totals": {
            "courses": len(rows),
            "launched_courses": sum(1 for r in rows if r["is_launched"]),
            "students": await _count(session, select(func.count(User.id)).where(
                User.department_id == dept.id, User.role == UserRole.Student)),
            "teachers": await _count(session, select(func.count(User.id)).where(
                User.department_id == dept.id, User.role == UserRole.Teacher)),
            "sections": await _count(session, select(func.count(Section.id)).where(
                Section.department_id == dept.id)),
        },
    }
    await cache_service.set_cached(cache_key, analytics)
    return analytics


# ============================================================================
# 3. SECTION
# ============================================================================
async def section_analytics(session: AsyncSession, user: User, section_id: uuid.UUID) -> Dict[str, Any]:
    section = await access_service.get_section(session, section_id)
    await access_service.ensure_section_scope(session, user, section)

    dept = await session.get(Department, section.department_id)
    students = await section_students(session, section.id)
    student_ids = [s.id for s in students]

    links = (await session.execute(
        select(Course)
        .join(SectionCourseTeacher, SectionCourseTeacher.course_id == Course.id)
        .where(SectionCourseTeacher.section_id == section.id)
        .order_by(Course.title)
    )).scalars().all()

    rows = []
    courses = []
    for course in links:
        stats = await course_completion(session, course, student_ids)
        courses.append({
            "course_id": course.id,
            "title": course.title,
            "code": course.code,
            "total_items": stats["total_items"],
            "average_completion": stats["average_completion"],
        })
        for student in students:
            rows.append({
                "student_id": student.id,
                "student_name": student.name,
                "registration_number": student.registration_number,
                "email": student.email,
                "course_id": course.id,
                "course_title": course.title,
                "course_code": course.code,
                "completed_items": stats["completed"][student.id],
                "total_items": stats["total_items"],
                "completion_percent": stats["per_student"][student.id],
            })

    return {
        "section_id": section.id,
        "section_name": section.name,
        "department_name": dept.name if dept else None,
        "students_count": len(students),
        "courses": courses,
        "rows": rows,
    }


# ============================================================================
# 4. TEACHER
# ============================================================================
async def teacher_analytics(
    session: AsyncSession,
    user: User,
    teacher_id: Optional[uuid.UUID] = None,
) -> Dict[str, Any]:
    teacher = user
    if teacher_id is not None and teacher_id != user.id:
        if user.role == UserRole.Teacher:
            raise PermissionError("Teachers can only view their own analytics")
        teacher = await session.get(User, teacher_id)
        if not teacher or teacher.role != UserRole.Teacher:
            raise NotFound("Teacher not found")
        await access_service.ensure_department_scope(session, user, teacher.department_id)

    assignments = []
    for entry in await teacher_assignments(session, teacher.id):
        course = entry["course"]
        section = entry["section"]
        students = await _course_students(session, course.id, section.id)
        stats = await course_completion(session, course, students)
        assignments.append({
            "section_id": section.id,
            "section_name": section.name,
            "course_id": course.id,
            "course_title": course.title,
            "course_code": course.code,
            "is_launched": course.is_launched,
            "students_count": len(students),
            "total_items": stats["total_items"],
            "average_completion": stats["average_completion"],
        })

    return {
        "teacher_id": teacher.id,
        "teacher_name": teacher.name,
        "sections": len({a["section_id"] for a in assignments}),
        "courses": len({a["course_id"] for a in assignments}),
        "students": sum(a["students_count"] for a in assignments),
        "assignments": assignments,
    }


# ============================================================================
# 5. INDIVIDUAL STUDENT
# ============================================================================
async def student_analytics(session: AsyncSession, user: User, student_id: uuid.UUID) -> Dict[str, Any]:
    student = await session.get(User, student_id)
    if not student or student.role != UserRole.Student:
        raise NotFound("Student not found")

    if user.role == UserRole.Student:
        if user.id != student.id:
            raise PermissionError("Students can only view their own analytics")
    elif user.role == UserRole.Teacher:
        section_id = await access_service.student_section_id(session, student.id)
        section = await session.get(Section, section_id) if section_id else None
        if not section:
            raise PermissionError("Student is not in any of your sections")
        await access_service.ensure_section_scope(session, user, section)
    else:
        await access_service.ensure_department_scope(session, user, student.department_id)

    courses = (await session.execute(
        select(Course)
        .join(SectionCourseTeacher, SectionCourseTeacher.course_id == Course.id)
        .join(SectionStudent, SectionStudent.section_id == SectionCourseTeacher.section_id)
        .where(SectionStudent.student_id == student.id)
        .order_by(Course.title)
        .distinct()
    )).scalars().all()

    last = dict((await session.execute(
        select(StudentProgress.course_id, func.max(StudentProgress.updated_at))
        .where(StudentProgress.student_id == student.id)
        .group_by(StudentProgress.course_id)
    )).all())

    rows = []
    for course in courses:
        stats = await course_completion(session, course, [student.id])
        rows.append({
            "course_id": course.id,
            "course_title": course.title,
            "course_code": course.code,
            "is_launched": course.is_launched,
            "completed_items": stats["completed"][student.id],
            "total_items": stats["total_items"],
            "completion_percent": stats["per_student"][student.id],
            "last_activity": last.get(course.id),
        })

    overall = round(sum(r["completion_percent"] for r in rows) / len(rows), 2) if rows else 0.0

    return {
        "student_id": student.id,
        "name": student.name,
        "registration_number": student.registration_number,
        "email": student.email,
        "overall_completion": overall,
        "courses": rows,
    }
