# lms/services/course_service.py

import uuid
from typing import List, Optional

from loguru import logger
from sqlmodel import select
from sqlalchemy import func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import NotFound
from lms.models.user import User, UserRole, utcnow
from lms.models.school import School
from lms.models.department import Department
from lms.models.course import Course, CourseCoordinator
from lms.models.content import Unit, Video, ReadingMaterial
from lms.models.progress import StudentProgress
from lms.models.section import SectionStudent, SectionCourseTeacher
from lms.models.enums import ContentType
from lms.services import access_service


# ============================================================================
# SCHOOLS
# ============================================================================
async def create_school(session: AsyncSession, name: str, code: str) -> School:
    school = School(name=name.strip(), code=code.strip().upper())
    session.add(school)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError("School with this name or code already exists")
    await session.refresh(school)
    return school


async def list_schools(session: AsyncSession) -> List[School]:
    result = await session.execute(select(School).order_by(School.name))
    return list(result.scalars().all())


async def assign_dean(session: AsyncSession, school_id: int, dean_id: uuid.UUID) -> School:
    school = await session.get(School, school_id)
    if not school:
        raise NotFound("School not found")

    dean = await session.get(User, dean_id)
    if not dean or dean.role != UserRole.Dean:
        raise ValueError("User is not a Dean")

    school.dean_id = dean.id
    dean.school_id = school.id
    session.add(school)
    session.add(dean)
    await session.commit()
    await session.refresh(school)
    return school


# ============================================================================
# DEPARTMENTS
# ============================================================================
async def create_department(
    session: AsyncSession,
    user: User,
    name: str,
    code: str,
    school_id: int,
) -> Department:
    if not await session.get(School, school_id):
        raise NotFound("School not found")

    if user.role == UserRole.Dean:
        if school_id != await access_service.dean_school_id(session, user):
            raise PermissionError("Deans can only create departments in their own school")
    elif user.role != UserRole.Admin:
        raise PermissionError("Only Admins or Deans can create departments")

    dept = Department(name=name.strip(), code=code.strip().upper(), school_id=school_id)
    session.add(dept)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError("Department with this name or code already exists")
    await session.refresh(dept)
    return dept


async def list_departments(session: AsyncSession, user: User, school_id: Optional[int] = None) -> List[Department]:
    query = select(Department).order_by(Department.name)

    if user.role == UserRole.Dean:
        query = query.where(Department.school_id == await access_service.dean_school_id(session, user))
    elif school_id is not None:
        query = query.where(Department.school_id == school_id)

    result = await session.execute(query)
    return list(result.scalars().all())


async def set_department_hod(
    session: AsyncSession,
    user: User,
    department_id: int,
    hod_id: uuid.UUID,
) -> Department:
    dept = await access_service.get_department(session, department_id)

    if user.role == UserRole.Dean:
        if dept.school_id != await access_service.dean_school_id(session, user):
            raise PermissionError("Deans can only manage departments in their own school")
    elif user.role != UserRole.Admin:
        raise PermissionError("Only Admins or Deans can assign a HOD")

    hod = await session.get(User, hod_id)
    if not hod or hod.role != UserRole.HOD:
        raise ValueError("User is not a HOD")
    if hod.department_id not in (None, dept.id):
        raise ValueError("HOD belongs to a different department")

    hod.department_id = dept.id
    hod.school_id = dept.school_id
    dept.hod_id = hod.id
    session.add(hod)
    session.add(dept)
    await session.commit()
    await session.refresh(dept)
    return dept


# ============================================================================
# COURSES
# ============================================================================
async def create_course(
    session: AsyncSession,
    user: User,
    title: str,
    code: str,
    department_id: int,
) -> Course:
    if user.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot create courses")
    await access_service.ensure_department_scope(session, user, department_id)

    course = Course(title=title.strip(), code=code.strip().upper(), department_id=department_id)
    session.add(course)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError("Course with this code already exists")
    await session.refresh(course)
    logger.info(f"Course {course.code} created in department {department_id}")
    return course


async def list_courses(session: AsyncSession, user: User, department_id: Optional[int] = None) -> List[Course]:
    query = select(Course).order_by(Course.title)

    if user.role == UserRole.Student:
        query = (
            query.join(SectionCourseTeacher, SectionCourseTeacher.course_id == Course.id)
            .join(SectionStudent, SectionStudent.section_id == SectionCourseTeacher.section_id)
            .where(SectionStudent.student_id == user.id)
            .distinct()
        )
    elif user.role == UserRole.Dean:
        school_id = await access_service.dean_school_id(session, user)
        query = query.join(Department, Department.id == Course.department_id).where(
            Department.school_id == school_id
        )
    elif user.role in (UserRole.HOD, UserRole.Teacher):
        dept_ids = (
            await access_service.hod_department_ids(session, user)
            if user.role == UserRole.HOD else [user.department_id]
        )
        query = query.where(Course.department_id.in_([d for d in dept_ids if d]))

    if department_id is not None:
        query = query.where(Course.department_id == department_id)

    result = await session.execute(query)
    return list(result.scalars().all())


async def ensure_content_manager(session: AsyncSession, user: User, course: Course):
    """Admin, HOD of the department, CCs and teachers of the department."""
    if user.role == UserRole.Admin:
        return
    if await access_service.is_hod_of(session, user, course.department_id):
        return
    if user.role == UserRole.Teacher and (
        user.department_id == course.department_id
        or await access_service.is_cc_of(session, user, course.id)
    ):
        return
    raise PermissionError("You cannot manage content for this course")


async def _flag_new_content(session: AsyncSession, course: Course):
    if course.is_launched:
        course.has_new_content = True
        course.last_content_update = utcnow()
        session.add(course)


# ============================================================================
# UNITS & CONTENT
# ============================================================================
async def list_units(session: AsyncSession, course_id: uuid.UUID) -> List[Unit]:
    result = await session.execute(
        select(Unit).where(Unit.course_id == course_id).order_by(Unit.order, Unit.created_at)
    )
    return list(result.scalars().all())


async def create_unit(
    session: AsyncSession,
    user: User,
    course_id: uuid.UUID,
    title: str,
    description: Optional[str] = None,
    order: Optional[int] = None,
) -> Unit:
    course = await access_service.get_course(session, course_id)
    await ensure_content_manager(session, user, course)

    if order is None:
        result = await session.execute(select(func.max(Unit.order)).where(Unit.course_id == course.id))
        order = (result.scalar() or 0) + 1

    unit = Unit(course_id=course.id, title=title.strip(), description=description, order=order)
    session.add(unit)
    await session.commit()
    await session.refresh(unit)
    return unit


async def _unit_for_upload(session: AsyncSession, user: User, unit_id: uuid.UUID):
    unit = await session.get(Unit, unit_id)
    if not unit:
        raise NotFound("Unit not found")
    course = await access_service.get_course(session, unit.course_id)
    await ensure_content_manager(session, user, course)
    return unit, course


async def add_video(
    session: AsyncSession,
    user: User,
    unit_id: uuid.UUID,
    title: str,
    video_url: Optional[str] = None,
    duration: int = 0,
) -> Video:
    unit, course = await _unit_for_upload(session, user, unit_id)

    result = await session.execute(select(func.max(Video.sequence)).where(Video.unit_id == unit.id))
    video = Video(
        course_id=course.id,
        unit_id=unit.id,
        title=title.strip(),
        video_url=video_url,
        duration=max(duration or 0, 0),
        sequence=(result.scalar() or 0) + 1,
        uploaded_by=user.id,
    )
    session.add(video)
    await _flag_new_content(session, course)
    await session.commit()
    await session.refresh(video)
    return video


async def add_document(
    session: AsyncSession,
    user: User,
    unit_id: uuid.UUID,
    title: str,
    file_url: Optional[str] = None,
    pages: int = 0,
) -> ReadingMaterial:
    unit, course = await _unit_for_upload(session, user, unit_id)

    result = await session.execute(
        select(func.max(ReadingMaterial.order)).where(ReadingMaterial.unit_id == unit.id)
    )
    doc = ReadingMaterial(
        course_id=course.id,
        unit_id=unit.id,
        title=title.strip(),
        file_url=file_url,
        pages=max(pages or 0, 0),
        order=(result.scalar() or 0) + 1,
        uploaded_by=user.id,
    )
    session.add(doc)
    await _flag_new_content(session, course)
    await session.commit()
    await session.refresh(doc)
    return doc


async def delete_content(
    session: AsyncSession,
    user: User,
    content_type: ContentType,
    content_id: uuid.UUID,
):
    model = Video if content_type == ContentType.video else ReadingMaterial
    row = await session.get(model, content_id)
    if not row:
        raise NotFound(f"{content_type.value.capitalize()} not found")

    course = await access_service.get_course(session, row.course_id)
    await ensure_content_manager(session, user, course)

    await session.execute(delete(StudentProgress).where(StudentProgress.content_id == row.id))
    await session.delete(row)
    await _flag_new_content(session, course)
    await session.commit()
    logger.info(f"Deleted {content_type.value} {content_id} from course {course.code}")


# ============================================================================
# COURSE COORDINATORS
# ============================================================================
async def assign_coordinator(
    session: AsyncSession,
    user: User,
    course_id: uuid.UUID,
    teacher_id: uuid.UUID,
) -> CourseCoordinator:
    course = await access_service.get_course(session, course_id)
    await access_service.ensure_hod_of(session, user, course.department_id)

    teacher = await session.get(User, teacher_id)
    if not teacher or teacher.role != UserRole.Teacher:
        raise ValueError("Only teachers can be course coordinators")
    if user.role != UserRole.Admin and teacher.department_id != course.department_id:
        raise ValueError("Teacher must belong to the course's department")

    link = CourseCoordinator(course_id=course.id, teacher_id=teacher.id, assigned_by=user.id)
    session.add(link)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError("Teacher is already a coordinator for this course")
    await session.refresh(link)
    return link


async def remove_coordinator(session: AsyncSession, user: User, course_id: uuid.UUID, teacher_id: uuid.UUID):
    course = await access_service.get_course(session, course_id)
    await access_service.ensure_hod_of(session, user, course.department_id)

    result = await session.execute(
        select(CourseCoordinator).where(
            CourseCoordinator.course_id == course.id,
            CourseCoordinator.teacher_id == teacher_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise NotFound("Coordinator assignment not found")

    await session.delete(link)
    await session.commit()


async def list_coordinators(session: AsyncSession, course_id: uuid.UUID) -> List[User]:
    result = await session.execute(
        select(User)
        .join(CourseCoordinator, CourseCoordinator.teacher_id == User.id)
        .where(CourseCoordinator.course_id == course_id)
        .order_by(User.name)
    )
    return list(result.scalars().all())


async def coordinated_courses(session: AsyncSession, user: User) -> List[Course]:
    result = await session.execute(
        select(Course)
        .join(CourseCoordinator, CourseCoordinator.course_id == Course.id)
        .where(CourseCoordinator.teacher_id == user.id)
        .order_by(Course.title)
    )
    return list(result.scalars().all())
