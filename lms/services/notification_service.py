# lms/services/notification_service.py

import uuid
from typing import Iterable, List, Set

from loguru import logger
from sqlmodel import select
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import NotFound
from lms.models.user import User, UserRole, utcnow
from lms.models.course import CourseCoordinator
from lms.models.section import SectionStudent, SectionCourseTeacher
from lms.models.notification import Announcement, Notification
from lms.models.enums import AnnouncementScope
from lms.services import access_service


MAX_TITLE_LENGTH = 200


# ------------------------------------------------------------
# FAN-OUT
# ------------------------------------------------------------
async def notify_users(
    session: AsyncSession,
    user_ids: Iterable[uuid.UUID],
    kind: str,
    title: str,
    message: str,
    announcement_id: uuid.UUID | None = None,
    commit: bool = True,
) -> int:
    count = 0
    for uid in set(user_ids):
        session.add(Notification(
            user_id=uid,
            announcement_id=announcement_id,
            kind=kind,
            title=title[:MAX_TITLE_LENGTH],
            message=message,
        ))
        count += 1

    if commit:
        await session.commit()
    return count


# ------------------------------------------------------------
# SCOPE RESOLUTION
# ------------------------------------------------------------
async def _ids(session: AsyncSession, query) -> Set[uuid.UUID]:
    result = await session.execute(query)
    return {i for i in result.scalars().all() if i}


async def _school_recipients(session: AsyncSession, sender: User, school_id: int) -> Set[uuid.UUID]:
    if sender.role == UserRole.Dean:
        if school_id != await access_service.dean_school_id(session, sender):
            raise PermissionError("Deans can only announce to their own school")
    elif sender.role != UserRole.Admin:
        raise PermissionError("Only Deans or Admins can announce to a whole school")

    return await _ids(session, select(User.id).where(User.school_id == school_id, User.is_active == True))  # noqa: E712


async def _department_recipients(session: AsyncSession, sender: User, department_id: int) -> Set[uuid.UUID]:
    if sender.role == UserRole.Teacher:
        raise PermissionError("Teachers cannot announce to a whole department")
    await access_service.ensure_department_scope(session, sender, department_id)

    return await _ids(
        session,
        select(User.id).where(User.department_id == department_id, User.is_active == True)  # noqa: E712
    )


async def _section_recipients(session: AsyncSession, sender: User, section_id: uuid.UUID) -> Set[uuid.UUID]:
    section = await access_service.get_section(session, section_id)
    await access_service.ensure_section_scope(session, sender, section)

    students = await _ids(session, select(SectionStudent.student_id).where(SectionStudent.section_id == section.id))
    teachers = await _ids(
        session, select(SectionCourseTeacher.teacher_id).where(SectionCourseTeacher.section_id == section.id)
    )
    return students | teachers


async def _course_recipients(session: AsyncSession, sender: User, course_id: uuid.UUID) -> Set[uuid.UUID]:
    course = await access_service.get_course(session, course_id)

    if sender.role == UserRole.Teacher:
        teaches = await _ids(
            session,
            select(SectionCourseTeacher.teacher_id).where(
                SectionCourseTeacher.course_id == course.id,
                SectionCourseTeacher.teacher_id == sender.id,
            )
        )
        if not teaches and not await access_service.is_cc_of(session, sender, course.id):
            raise PermissionError("You do not teach this course")
    else:
        await access_service.ensure_department_scope(session, sender, course.department_id)

    students = set(await access_service.enrolled_student_ids(session, course.id))
    teachers = await _ids(
        session, select(SectionCourseTeacher.teacher_id).where(SectionCourseTeacher.course_id == course.id)
    )
    coordinators = await _ids(
        session, select(CourseCoordinator.teacher_id).where(CourseCoordinator.course_id == course.id)
    )
    return students | teachers | coordinators


# ------------------------------------------------------------
# ANNOUNCEMENTS
# ------------------------------------------------------------
async def create_announcement(
    session: AsyncSession,
    sender: User,
    scope: AnnouncementScope,
    target_id: str,
    title: str,
    message: str,
) -> Announcement:
    title = (title or "").strip()
    message = (message or "").strip()
    if not title or not message:
        raise ValueError("Title and message are required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValueError(f"Title cannot exceed {MAX_TITLE_LENGTH} characters")

    try:
        if scope in (AnnouncementScope.school, AnnouncementScope.department):
            target = int(target_id)
        else:
            target = uuid.UUID(str(target_id))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid target id for scope '{scope.value}'")

    if scope == AnnouncementScope.school:
        recipients = await _school_recipients(session, sender, target)
    elif scope == AnnouncementScope.department:
        recipients = await _department_recipients(session, sender, target)
    elif scope == AnnouncementScope.section:
        recipients = await _section_recipients(session, sender, target)
    else:
        recipients = await _course_recipients(session, sender, target)

    recipients.discard(sender.id)

    announcement = Announcement(
        sender_id=sender.id,
        sender_role=sender.role.value,
        scope=scope,
        target_id=str(target_id),
        title=title,
        message=message,
        recipients_count=len(recipients),
    )
    session.add(announcement)
    await session.flush()

    await notify_users(
        session, recipients, kind="announcement", title=title, message=message,
        announcement_id=announcement.id, commit=False,
    )

    await session.commit()
    await session.refresh(announcement)

    logger.info(
        f"Announcement {announcement.id} ({scope.value}:{target_id}) sent to {len(recipients)} users"
    )
    return announcement


async def list_sent_announcements(session: AsyncSession, sender: User, limit: int = 50) -> List[Announcement]:
    query = select(Announcement).order_by(Announcement.created_at.desc()).limit(limit)
    if sender.role != UserRole.Admin:
        query = query.where(Announcement.sender_id == sender.id)
    result = await session.execute(query)
    return list(result.scalars().all())


# ------------------------------------------------------------
# INBOX
# ------------------------------------------------------------
async def list_notifications(
    session: AsyncSession,
    user: User,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> List[Notification]:
    query = select(Notification).where(Notification.user_id == user.id)
    if unread_only:
        query = query.where(Notification.read_at.is_(None))
    query = query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)

    result = await session.execute(query)
    return list(result.scalars().all())


async def unread_count(session: AsyncSession, user: User) -> int:
    result = await session.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user.id,
            Notification.read_at.is_(None),
        )
    )
    return result.scalar() or 0


async def mark_read(session: AsyncSession, user: User, notification_id: uuid.UUID) -> Notification:
    notification = await session.get(Notification, notification_id)
    if not notification or notification.user_id != user.id:
        raise NotFound("Notification not found")

    if notification.read_at is None:
        notification.read_at = utcnow()
        session.add(notification)
        await session.commit()
        await session.refresh(notification)
    return notification


async def mark_all_read(session: AsyncSession, user: User) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.read_at.is_(None))
        .values(read_at=utcnow())
    )
    await session.commit()
    return result.rowcount or 0
