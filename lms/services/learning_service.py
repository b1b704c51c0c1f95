# lms/services/learning_service.py

import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import NotFound
from lms.core.config import settings
from lms.models.user import User, utcnow
from lms.models.course import Course
from lms.models.content import Unit, Video, ReadingMaterial
from lms.models.content_arrangement import ContentArrangement
from lms.models.enums import ArrangementStatus, ContentType, ProgressStatus
from lms.models.progress import StudentProgress
from lms.models.quiz import UnitQuiz, QuizAttempt
from lms.services import access_service


# ============================================================================
# ACTIVE ARRANGEMENT
# ============================================================================
async def active_arrangement(session: AsyncSession, course: Course) -> Optional[ContentArrangement]:
    if not course.is_launched or not course.active_arrangement_version:
        return None
    result = await session.execute(
        select(ContentArrangement).where(
            ContentArrangement.course_id == course.id,
            ContentArrangement.version == course.active_arrangement_version,
            ContentArrangement.status == ArrangementStatus.approved,
        )
    )
    return result.scalars().first()


async def active_content_ids(session: AsyncSession, course: Course) -> List[str]:
    arrangement = await active_arrangement(session, course)
    if not arrangement:
        return []
    return [i["content_id"] for i in arrangement.items]


async def completed_counts(
    session: AsyncSession,
    course: Course,
    content_ids: Iterable[str],
    student_ids: Optional[Iterable[uuid.UUID]] = None,
) -> Dict[uuid.UUID, int]:
    """student_id -> number of active items completed."""
    ids = [uuid.UUID(c) for c in content_ids]
    if not ids:
        return {}

    query = (
        select(StudentProgress.student_id, func.count(StudentProgress.id))
        .where(
            StudentProgress.course_id == course.id,
            StudentProgress.status == ProgressStatus.completed,
            StudentProgress.content_id.in_(ids),
        )
        .group_by(StudentProgress.student_id)
    )
    if student_ids is not None:
        student_ids = list(student_ids)
        if not student_ids:
            return {}
        query = query.where(StudentProgress.student_id.in_(student_ids))

    result = await session.execute(query)
    return dict(result.all())


def percent(completed: int, total: int) -> float:
    if not total:
        return 0.0
    return round(completed * 100.0 / total, 2)


# ============================================================================
# STUDENT VIEW
# ============================================================================
async def launched_course_for(session: AsyncSession, student: User, course_id: uuid.UUID) -> Course:
    course = await access_service.get_course(session, course_id)
    if not await access_service.is_enrolled(session, student.id, course.id):
        raise PermissionError("You are not enrolled in this course")
    if not course.is_launched:
        raise NotFound("Course has not been launched yet")
    return course


async def active_quizzes(session: AsyncSession, course_id: uuid.UUID) -> Dict[uuid.UUID, UnitQuiz]:
    """unit_id -> active quiz."""
    result = await session.execute(
        select(UnitQuiz).where(UnitQuiz.course_id == course_id, UnitQuiz.is_active == True)  # noqa: E712
    )
    return {q.unit_id: q for q in result.scalars().all()}


async def passed_quiz_ids(
    session: AsyncSession, student_id: uuid.UUID, quiz_ids: Iterable[uuid.UUID]
) -> Set[uuid.UUID]:
    quiz_ids = list(quiz_ids)
    if not quiz_ids:
        return set()
    result = await session.execute(
        select(QuizAttempt.quiz_id)
        .where(
            QuizAttempt.student_id == student_id,
            QuizAttempt.quiz_id.in_(quiz_ids),
            QuizAttempt.passed == True,  # noqa: E712
        )
        .distinct()
    )
    return set(result.scalars().all())


async def course_outline(session: AsyncSession, student: User, course: Course) -> List[Dict[str, Any]]:
    """
    The launched arrangement as one student sees it, unit by unit.

    Videos open one at a time in arranged order. The first arranged video is
    always open; any later one opens once every earlier video is completed
    and the quiz of every earlier unit is passed. A video the student has
    already started stays open after a rearrangement. Documents are never
    locked.
    """
    arrangement = await active_arrangement(session, course)
    items = arrangement.items if arrangement else []

    ids = [uuid.UUID(i["content_id"]) for i in items]
    videos = {}
    docs = {}
    if ids:
        v_res = await session.execute(
            select(Video).where(Video.id.in_(ids), Video.is_approved == True)  # noqa: E712
        )
        videos = {str(v.id): v for v in v_res.scalars().all()}
        d_res = await session.execute(
            select(ReadingMaterial).where(ReadingMaterial.id.in_(ids), ReadingMaterial.is_approved == True)  # noqa: E712
        )
        docs = {str(d.id): d for d in d_res.scalars().all()}

    p_res = await session.execute(
        select(StudentProgress).where(
            StudentProgress.student_id == student.id,
            StudentProgress.course_id == course.id,
        )
    )
    progress = {str(p.content_id): p for p in p_res.scalars().all()}

    quizzes = await active_quizzes(session, course.id)
    passed = await passed_quiz_ids(session, student.id, [q.id for q in quizzes.values()])

    u_res = await session.execute(select(Unit).where(Unit.course_id == course.id).order_by(Unit.order))
    outline = []
    gate = True
    for unit in u_res.scalars().all():
        unit_items = sorted(
            (i for i in items if i["unit_id"] == str(unit.id)),
            key=lambda i: i["order"],
        )
        entries = []
        for item in unit_items:
            cid = item["content_id"]
            is_video = item["type"] == ContentType.video.value
            row = videos.get(cid) if is_video else docs.get(cid)
            if row is None:
                continue
            p = progress.get(cid)
            # needs_review rows keep completed_at
            done = p is not None and p.completed_at is not None
            if is_video:
                unlocked = gate or p is not None
                gate = gate and done
            else:
                unlocked = True
            entries.append({"item": item, "row": row, "progress": p, "done": done, "is_unlocked": unlocked})

        quiz = quizzes.get(unit.id)
        quiz_passed = quiz is not None and quiz.id in passed
        if quiz is not None:
            gate = gate and quiz_passed
        outline.append({"unit": unit, "entries": entries, "quiz": quiz, "quiz_passed": quiz_passed})

    return outline


async def get_course_content(session: AsyncSession, student: User, course_id: uuid.UUID) -> Dict[str, Any]:
    course = await launched_course_for(session, student, course_id)
    outline = await course_outline(session, student, course)

    units = []
    for part in outline:
        entries = []
        for entry in part["entries"]:
            item, row, p = entry["item"], entry["row"], entry["progress"]
            entries.append({
                "type": item["type"],
                "content_id": item["content_id"],
                "title": row.title,
                "order": item["order"],
                "url": getattr(row, "video_url", None) or getattr(row, "file_url", None),
                "duration": getattr(row, "duration", None),
                "pages": getattr(row, "pages", None),
                "status": p.status.value if p else None,
                "watched_seconds": p.watched_seconds if p else 0,
                "is_unlocked": entry["is_unlocked"],
            })
        unit = part["unit"]
        units.append({
            "id": unit.id,
            "title": unit.title,
            "order": unit.order,
            "items": entries,
            "has_quiz": part["quiz"] is not None,
            "quiz_passed": part["quiz_passed"],
        })

    return {
        "course_id": course.id,
        "title": course.title,
        "code": course.code,
        "arrangement_version": course.active_arrangement_version,
        "units": units,
    }


async def _progress_row(
    session: AsyncSession,
    student: User,
    course: Course,
    unit_id: uuid.UUID,
    content_type: ContentType,
    content_id: uuid.UUID,
) -> StudentProgress:
    result = await session.execute(
        select(StudentProgress).where(
            StudentProgress.student_id == student.id,
            StudentProgress.content_id == content_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = StudentProgress(
            student_id=student.id,
            course_id=course.id,
            unit_id=unit_id,
            content_type=content_type,
            content_id=content_id,
        )
    row.unit_id = unit_id
    row.arrangement_version = course.active_arrangement_version
    row.updated_at = utcnow()
    return row


async def record_progress(
    session: AsyncSession,
    student: User,
    content_type: ContentType,
    content_id: uuid.UUID,
    watched_seconds: int = 0,
    completed: bool = False,
) -> StudentProgress:
    """
    Videos complete once watched_seconds reaches the configured share of the
    duration (or when the player says so); documents complete on open.
    Progress on a locked video is refused.
    """
    model = Video if content_type == ContentType.video else ReadingMaterial
    content = await session.get(model, content_id)
    if not content:
        raise NotFound(f"{content_type.value.capitalize()} not found")

    course = await launched_course_for(session, student, content.course_id)
    if str(content.id) not in await active_content_ids(session, course):
        raise PermissionError("This content is not part of the launched course")

    if content_type == ContentType.video:
        outline = await course_outline(session, student, course)
        unlocked = any(
            e["is_unlocked"]
            for part in outline
            for e in part["entries"]
            if e["item"]["content_id"] == str(content.id)
        )
        if not unlocked:
            raise PermissionError("This video is locked until the earlier lessons are completed")

    row = await _progress_row(session, student, course, content.unit_id, content_type, content.id)

    if content_type == ContentType.video:
        # never go backwards
        row.watched_seconds = max(row.watched_seconds or 0, max(watched_seconds or 0, 0))
        threshold = content.duration * settings.VIDEO_COMPLETION_RATIO
        done = completed or (content.duration > 0 and row.watched_seconds >= threshold)
    else:
        done = True

    if done:
        if row.status != ProgressStatus.completed:
            row.completed_at = utcnow()
        row.status = ProgressStatus.completed
    elif row.status != ProgressStatus.completed:
        row.status = ProgressStatus.in_progress

    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


async def get_course_progress(session: AsyncSession, student: User, course_id: uuid.UUID) -> Dict[str, Any]:
    course = await launched_course_for(session, student, course_id)
    content_ids = await active_content_ids(session, course)
    done = (await completed_counts(session, course, content_ids, [student.id])).get(student.id, 0)
    return {
        "course_id": course.id,
        "completed_items": done,
        "total_items": len(content_ids),
        "completion_percent": percent(done, len(content_ids)),
    }
