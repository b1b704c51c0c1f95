# lms/services/export_service.py

import csv
import io
import re
import uuid
from typing import Tuple

from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.user import User, UserRole
from lms.models.section import Section, SectionStudent, SectionCourseTeacher
from lms.services import access_service
from lms.services.analytics_service import section_analytics


SECTION_ANALYTICS_HEADER = [
    "Section", "Department", "Student Name", "Reg No", "Email",
    "Course Title", "Course Code", "Completed Items", "Total Items", "Completion %",
]

COURSE_SECTIONS_HEADER = [
    "Course Title", "Course Code", "Section Name", "Teacher Name", "Teacher Email", "Students Count",
]


def _slug(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", value).strip("_") or "export"


async def section_analytics_csv(session: AsyncSession, user: User, section_id: uuid.UUID) -> Tuple[str, str]:
    """Returns (filename, csv text)."""
    data = await section_analytics(session, user, section_id)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(SECTION_ANALYTICS_HEADER)

    for row in data["rows"]:
        writer.writerow([
            data["section_name"],
            data["department_name"] or "",
            row["student_name"],
            row["registration_number"] or "",
            row["email"],
            row["course_title"],
            row["course_code"],
            row["completed_items"],
            row["total_items"],
            f"{row['completion_percent']:.2f}",
        ])

    return f"section_{_slug(data['section_name'])}_analytics.csv", output.getvalue()


async def course_sections_csv(session: AsyncSession, user: User, course_id: uuid.UUID) -> Tuple[str, str]:
    course = await access_service.get_course(session, course_id)
    if user.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot export course assignments")
    await access_service.ensure_department_scope(session, user, course.department_id)

    counts = (
        select(SectionStudent.section_id, func.count(SectionStudent.id).label("students"))
        .group_by(SectionStudent.section_id)
        .subquery()
    )
    result = await session.execute(
        select(Section.name, User.name, User.email, counts.c.students)
        .join(SectionCourseTeacher, SectionCourseTeacher.section_id == Section.id)
        .outerjoin(User, User.id == SectionCourseTeacher.teacher_id)
        .outerjoin(counts, counts.c.section_id == Section.id)
        .where(SectionCourseTeacher.course_id == course.id)
        .order_by(Section.name)
    )

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(COURSE_SECTIONS_HEADER)

    for section_name, teacher_name, teacher_email, students in result.all():
        writer.writerow([
            course.title,
            course.code,
            section_name,
            teacher_name or "",
            teacher_email or "",
            students or 0,
        ])

    return f"course_{_slug(course.code)}_sections.csv", output.getvalue()
