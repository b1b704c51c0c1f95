# lms/services/chat_service.py

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import NotFound
from lms.models.user import User, UserRole
from lms.models.course import Course
from lms.models.section import Section, SectionStudent, SectionCourseTeacher
from lms.models.chat import ChatMessage
from lms.services import access_service


MAX_MESSAGE_LENGTH = 2000
MAX_PAGE_SIZE = 100


async def _room(session: AsyncSession, section_id: uuid.UUID, course_id: uuid.UUID) -> SectionCourseTeacher:
    result = await session.execute(
        select(SectionCourseTeacher).where(
            SectionCourseTeacher.section_id == section_id,
            SectionCourseTeacher.course_id == course_id,
        )
    )
    link = result.scalar_one_or_none()
    if not link:
        raise NotFound("Chat room not found")
    return link


async def ensure_member(session: AsyncSession, user: User, section_id: uuid.UUID, course_id: uuid.UUID):
    """Students of the section, the assigned teacher, the HOD, the Dean and Admins."""
    link = await _room(session, section_id, course_id)
    section = await access_service.get_section(session, section_id)

    if user.role == UserRole.Admin:
        return section
    if user.role == UserRole.Student:
        if await access_service.student_section_id(session, user.id) == section.id:
            return section
    elif user.role == UserRole.Teacher:
        if link.teacher_id == user.id:
            return section
    elif user.role == UserRole.HOD:
        if await access_service.is_hod_of(session, user, section.department_id):
            return section
    elif user.role == UserRole.Dean:
        if section.school_id == await access_service.dean_school_id(session, user):
            return section

    raise PermissionError("You are not a member of this chat")


async def post_message(
    session: AsyncSession,
    user: User,
    section_id: uuid.UUID,
    course_id: uuid.UUID,
    message: str,
) -> ChatMessage:
    await ensure_member(session, user, section_id, course_id)

    text = (message or "").strip()
    if not text:
        raise ValueError("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")

    msg = ChatMessage(
        section_id=section_id,
        course_id=course_id,
        sender_id=user.id,
        sender_name=user.name,
        sender_role=user.role.value,
        message=text,
    )
    session.add(msg)
    await session.commit()
    await session.refresh(msg)
    return msg


async def list_messages(
    session: AsyncSession,
    user: User,
    section_id: uuid.UUID,
    course_id: uuid.UUID,
    limit: int = 50,
    before: Optional[datetime] = None,
) -> List[ChatMessage]:
    """Newest page first from the database, returned oldest -> newest."""
    await ensure_member(session, user, section_id, course_id)
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    query = select(ChatMessage).where(
        ChatMessage.section_id == section_id,
        ChatMessage.course_id == course_id,
    )
    if before is not None:
        query = query.where(ChatMessage.created_at < before)

    result = await session.execute(query.order_by(ChatMessage.created_at.desc()).limit(limit))
    return list(reversed(result.scalars().all()))


async def delete_message(session: AsyncSession, user: User, message_id: uuid.UUID) -> ChatMessage:
    msg = await session.get(ChatMessage, message_id)
    if not msg or msg.is_deleted:
        raise NotFound("Message not found")

    if not (user.role == UserRole.Admin or msg.sender_id == user.id):
        section = await access_service.get_section(session, msg.section_id)
        if not await access_service.is_hod_of(session, user, section.department_id):
            raise PermissionError("Only the sender, HOD or Admin can delete this message")

    msg.is_deleted = True
    msg.deleted_by = user.id
    session.add(msg)
    await session.commit()
    await session.refresh(msg)
    return msg


async def list_rooms(session: AsyncSession, user: User) -> List[Dict[str, Any]]:
    query = (
        select(SectionCourseTeacher, Section, Course)
        .join(Section, Section.id == SectionCourseTeacher.section_id)
        .join(Course, Course.id == SectionCourseTeacher.course_id)
    )

    if user.role == UserRole.Student:
        query = query.join(SectionStudent, SectionStudent.section_id == Section.id).where(
            SectionStudent.student_id == user.id
        )
    elif user.role == UserRole.Teacher:
        query = query.where(SectionCourseTeacher.teacher_id == user.id)
    elif user.role == UserRole.HOD:
        query = query.where(Section.department_id.in_(await access_service.hod_department_ids(session, user)))
    elif user.role == UserRole.Dean:
        query = query.where(Section.school_id == await access_service.dean_school_id(session, user))

    result = await session.execute(query.order_by(Section.name, Course.title))

    rooms = []
    for link, section, course in result.all():
        last = (await session.execute(
            select(ChatMessage.created_at)
            .where(ChatMessage.section_id == section.id, ChatMessage.course_id == course.id)
            .order_by(ChatMessage.created_at.desc())
            .limit(1)
        )).scalar_one_or_none()
        rooms.append({
            "section_id": section.id,
            "section_name": section.name,
            "course_id": course.id,
            "course_title": course.title,
            "course_code": course.code,
            "teacher_id": link.teacher_id,
            "last_message_at": last,
        })
    return rooms


def render(msg: ChatMessage) -> Dict[str, Any]:
    return {
        "id": msg.id,
        "section_id": msg.section_id,
        "course_id": msg.course_id,
        "sender_id": msg.sender_id,
        "sender_name": msg.sender_name,
        "sender_role": msg.sender_role,
        "message": "" if msg.is_deleted else msg.message,
        "is_deleted": msg.is_deleted,
        "created_at": msg.created_at,
    }
