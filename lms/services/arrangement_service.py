# lms/services/arrangement_service.py
"""
Content arrangement workflow.

A coordinator (CC) reorders the videos and documents of a course, submits the
order, the HOD approves or rejects it and finally launches the course. Every
working copy is a new version; only one copy per course is ever open.

    open -> submitted -> approved | rejected
"""

import uuid
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlmodel import select
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.errors import ArrangementLocked, NotFound
from lms.models.user import User, UserRole, utcnow
from lms.models.course import Course, CourseLaunch
from lms.models.content import Unit, Video, ReadingMaterial
from lms.models.content_arrangement import ContentArrangement
from lms.models.enums import (
    ArrangementStatus,
    CourseArrangementState,
    ContentType,
    ProgressStatus,
)
from lms.models.progress import StudentProgress
from lms.services import access_service
from lms.services.notification_service import notify_users


MAX_COMMENT_LENGTH = 1000


# ============================================================================
# CONTENT HELPERS
# ============================================================================
async def _units(session: AsyncSession, course_id: uuid.UUID) -> List[Unit]:
    result = await session.execute(
        select(Unit).where(Unit.course_id == course_id).order_by(Unit.order, Unit.created_at)
    )
    return list(result.scalars().all())


async def _content_index(session: AsyncSession, course_id: uuid.UUID) -> Dict[str, Tuple[ContentType, Any]]:
    """content_id (str) -> (type, row) for every video/document of the course."""
    index: Dict[str, Tuple[ContentType, Any]] = {}

    videos = await session.execute(select(Video).where(Video.course_id == course_id))
    for v in videos.scalars().all():
        index[str(v.id)] = (ContentType.video, v)

    docs = await session.execute(select(ReadingMaterial).where(ReadingMaterial.course_id == course_id))
    for d in docs.scalars().all():
        index[str(d.id)] = (ContentType.document, d)

    return index


def _item(ctype: ContentType, content, unit_id, order: int) -> Dict[str, Any]:
    return {
        "type": ctype.value,
        "content_id": str(content.id),
        "title": content.title,
        "unit_id": str(unit_id),
        "order": order,
        "original_unit_id": str(unit_id),
        "original_order": order,
    }


async def build_snapshot(session: AsyncSession, course_id: uuid.UUID) -> List[Dict[str, Any]]:
    """
    Current course layout as arrangement items. Inside a unit the videos come
    first (by sequence), then documents (by order), numbered 1..n.
    """
    items: List[Dict[str, Any]] = []

    for unit in await _units(session, course_id):
        videos = (await session.execute(
            select(Video).where(Video.unit_id == unit.id).order_by(Video.sequence, Video.created_at)
        )).scalars().all()
        docs = (await session.execute(
            select(ReadingMaterial).where(ReadingMaterial.unit_id == unit.id)
            .order_by(ReadingMaterial.order, ReadingMaterial.created_at)
        )).scalars().all()

        position = 0
        for v in videos:
            position += 1
            items.append(_item(ContentType.video, v, unit.id, position))
        for d in docs:
            position += 1
            items.append(_item(ContentType.document, d, unit.id, position))

    return items


async def _sync_items(session: AsyncSession, arrangement: ContentArrangement) -> bool:
    """
    Bring an open arrangement in line with the course: drop items whose content
    is gone, append new content at the end of its unit. Returns True if changed.
    """
    index = await _content_index(session, arrangement.course_id)

    kept = [dict(i) for i in arrangement.items if i["content_id"] in index]
    changed = len(kept) != len(arrangement.items)

    present = {i["content_id"] for i in kept}

    for unit in await _units(session, arrangement.course_id):
        unit_key = str(unit.id)
        fresh = [
            (ctype, row) for cid, (ctype, row) in index.items()
            if cid not in present and str(row.unit_id) == unit_key
        ]
        # videos before documents, each in their current course order
        fresh.sort(key=lambda p: (
            0 if p[0] == ContentType.video else 1,
            p[1].sequence if p[0] == ContentType.video else p[1].order,
        ))

        for ctype, row in fresh:
            orders = [i["order"] for i in kept if i["unit_id"] == unit_key]
            kept.append(_item(ctype, row, unit.id, (max(orders) if orders else 0) + 1))
            present.add(str(row.id))
            changed = True
            logger.info(f"Added new {ctype.value} '{row.title}' to arrangement {arrangement.id}")

    if changed:
        # JSON column: assign a new list so the change is tracked
        arrangement.items = kept
    return changed


async def _latest(
    session: AsyncSession,
    course_id: uuid.UUID,
    statuses: Optional[List[ArrangementStatus]] = None,
) -> Optional[ContentArrangement]:
    query = select(ContentArrangement).where(ContentArrangement.course_id == course_id)
    if statuses:
        query = query.where(ContentArrangement.status.in_(statuses))
    result = await session.execute(query.order_by(ContentArrangement.version.desc()).limit(1))
    return result.scalars().first()


async def _next_version(session: AsyncSession, course_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.max(ContentArrangement.version)).where(ContentArrangement.course_id == course_id)
    )
    return (result.scalar() or 0) + 1


async def _new_version(
    session: AsyncSession,
    course: Course,
    user: User,
    items: List[Dict[str, Any]],
) -> ContentArrangement:
    arrangement = ContentArrangement(
        course_id=course.id,
        coordinator_id=user.id,
        status=ArrangementStatus.open,
        items=items,
        version=await _next_version(session, course.id),
        comments=[],
    )
    session.add(arrangement)

    course.has_new_content = False
    course.current_arrangement_status = CourseArrangementState.draft
    session.add(course)

    try:
        await session.commit()
    except IntegrityError:
        # another request created this version first; hand back its copy
        await session.rollback()
        # rollback expired everything the request loaded
        await session.refresh(course)
        await session.refresh(user)
        current = await _latest(session, course.id)
        if current is None or current.status != ArrangementStatus.open:
            raise ValueError("Content arrangement changed concurrently, please retry")
        logger.info(
            f"Arrangement v{current.version} for course {course.code} was created concurrently; reusing it"
        )
        return current

    await session.refresh(arrangement)

    logger.info(
        f"Created arrangement v{arrangement.version} for course {course.code} "
        f"with {len(items)} items"
    )
    return arrangement


async def get_arrangement(session: AsyncSession, arrangement_id: uuid.UUID) -> ContentArrangement:
    arrangement = await session.get(ContentArrangement, arrangement_id)
    if not arrangement:
        raise NotFound("Arrangement not found")
    return arrangement


def _can_edit(arrangement: ContentArrangement, user: User) -> bool:
    return arrangement.status == ArrangementStatus.open and (
        user.role == UserRole.Admin or arrangement.coordinator_id == user.id
    )


# ============================================================================
# 1. GET (OR CREATE) WORKING ARRANGEMENT
# ============================================================================
async def get_course_arrangement(session: AsyncSession, course_id: uuid.UUID, user: User) -> Dict[str, Any]:
    course = await access_service.get_course(session, course_id)

    is_admin = user.role == UserRole.Admin
    is_cc = await access_service.is_cc_of(session, user, course.id)
    is_hod = await access_service.is_hod_of(session, user, course.department_id)

    if not (is_cc or is_hod or is_admin):
        raise PermissionError(
            "Only Course Coordinators, HODs, or Admins can view content arrangements"
        )

    # HOD reviews, never edits
    if is_hod and not is_cc and not is_admin:
        arrangement = await _latest(
            session, course.id,
            [ArrangementStatus.submitted, ArrangementStatus.approved, ArrangementStatus.rejected],
        )
        if not arrangement:
            raise NotFound("No content arrangement found for this course")
        return {"arrangement": arrangement, "units": await _units(session, course.id), "can_edit": False}

    arrangement = await _latest(session, course.id)

    if arrangement is None:
        arrangement = await _new_version(session, course, user, await build_snapshot(session, course.id))

    elif arrangement.status == ArrangementStatus.approved:
        if not (course.has_new_content or
                course.current_arrangement_status == CourseArrangementState.pending_relaunch):
            raise ArrangementLocked(
                "Course arrangement is approved and locked. "
                "New content must be added before creating new arrangements.",
                arrangement=arrangement,
            )
        arrangement = await _new_version(session, course, user, await build_snapshot(session, course.id))

    elif arrangement.status == ArrangementStatus.rejected:
        # keep the CC's previous order as the starting point
        arrangement = await _new_version(session, course, user, [dict(i) for i in arrangement.items])
        if await _sync_items(session, arrangement):
            session.add(arrangement)
            await session.commit()
            await session.refresh(arrangement)

    elif arrangement.status == ArrangementStatus.open:
        if await _sync_items(session, arrangement):
            arrangement.updated_at = utcnow()
            session.add(arrangement)
            if course.has_new_content:
                course.has_new_content = False
                session.add(course)
            await session.commit()
            await session.refresh(arrangement)

    units = await _units(session, course.id)
    return {"arrangement": arrangement, "units": units, "can_edit": _can_edit(arrangement, user)}


# ============================================================================
# 2. UPDATE ITEMS (drag and drop reorder)
# ============================================================================
async def update_arrangement(
    session: AsyncSession,
    arrangement_id: uuid.UUID,
    items: List[Dict[str, Any]],
    user: User,
) -> ContentArrangement:
    arrangement = await get_arrangement(session, arrangement_id)

    if arrangement.coordinator_id != user.id and user.role != UserRole.Admin:
        raise PermissionError("Only the assigned coordinator can update this arrangement")

    if arrangement.status != ArrangementStatus.open:
        raise ValueError(f"Cannot edit arrangement with status: {arrangement.status.value}")

    await _sync_items(session, arrangement)

    index = await _content_index(session, arrangement.course_id)
    unit_ids = {str(u.id) for u in await _units(session, arrangement.course_id)}
    current = {i["content_id"]: i for i in arrangement.items}

    seen = set()
    new_items: List[Dict[str, Any]] = []

    for item in items:
        cid = str(item["content_id"])
        uid = str(item["unit_id"])
        ctype = ContentType(item["type"])

        if cid in seen:
            raise ValueError(f"Content {cid} appears more than once")
        seen.add(cid)

        if cid not in current or cid not in index:
            raise ValueError(f"Content {cid} does not belong to this arrangement")
        if index[cid][0] != ctype:
            raise ValueError(f"Content {cid} is not a {ctype.value}")
        if uid not in unit_ids:
            raise ValueError(f"Unit {uid} does not belong to this course")
        if int(item["order"]) < 1:
            raise ValueError("Item order must be a positive integer")

        new_items.append({
            "type": ctype.value,
            "content_id": cid,
            "title": index[cid][1].title,
            "unit_id": uid,
            "order": int(item["order"]),
            "original_unit_id": current[cid].get("original_unit_id", current[cid]["unit_id"]),
            "original_order": current[cid].get("original_order", current[cid]["order"]),
        })

    missing = set(current) - seen
    if missing:
        raise ValueError(f"Arrangement is missing {len(missing)} content item(s)")

    arrangement.items = new_items
    arrangement.updated_at = utcnow()
    session.add(arrangement)
    await session.commit()
    await session.refresh(arrangement)
    return arrangement


# ============================================================================
# 3. SUBMIT FOR HOD REVIEW
# ============================================================================
async def submit_arrangement(session: AsyncSession, arrangement_id: uuid.UUID, user: User) -> ContentArrangement:
    arrangement = await get_arrangement(session, arrangement_id)

    if arrangement.coordinator_id != user.id and user.role != UserRole.Admin:
        raise PermissionError("Only the assigned coordinator can submit this arrangement")

    if arrangement.status != ArrangementStatus.open:
        raise ValueError(f"Cannot submit arrangement with status: {arrangement.status.value}")

    if not arrangement.items:
        raise ValueError("Cannot submit an empty arrangement")

    now = utcnow()
    arrangement.status = ArrangementStatus.submitted
    arrangement.submitted_at = now
    arrangement.updated_at = now
    session.add(arrangement)

    course = await access_service.get_course(session, arrangement.course_id)
    course.current_arrangement_status = CourseArrangementState.submitted
    session.add(course)

    await session.commit()
    await session.refresh(arrangement)
    return arrangement


# ============================================================================
# 4. REVIEW (approve / reject)
# ============================================================================
async def apply_arrangement(session: AsyncSession, arrangement: ContentArrangement):
    """Moves every item into its unit and renumbers videos and documents 1..n."""
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for item in arrangement.items:
        groups.setdefault(item["unit_id"], []).append(item)

    for unit_id, unit_items in groups.items():
        unit_items = sorted(unit_items, key=lambda i: i["order"])
        unit_uuid = uuid.UUID(unit_id)

        videos = [i for i in unit_items if i["type"] == ContentType.video.value]
        docs = [i for i in unit_items if i["type"] == ContentType.document.value]

        for position, item in enumerate(videos, start=1):
            video = await session.get(Video, uuid.UUID(item["content_id"]))
            if video:
                video.unit_id = unit_uuid
                video.sequence = position
                session.add(video)

        for position, item in enumerate(docs, start=1):
            doc = await session.get(ReadingMaterial, uuid.UUID(item["content_id"]))
            if doc:
                doc.unit_id = unit_uuid
                doc.order = position
                session.add(doc)


async def review_arrangement(
    session: AsyncSession,
    arrangement_id: uuid.UUID,
    action: str,
    reason: Optional[str],
    user: User,
) -> ContentArrangement:
    arrangement = await get_arrangement(session, arrangement_id)
    course = await access_service.get_course(session, arrangement.course_id)

    await access_service.ensure_hod_of(session, user, course.department_id)

    if arrangement.status != ArrangementStatus.submitted:
        raise ValueError(f"Cannot review arrangement with status: {arrangement.status.value}")

    now = utcnow()

    if action == "approve":
        await apply_arrangement(session, arrangement)
        arrangement.status = ArrangementStatus.approved
        arrangement.approved_at = now
        arrangement.approved_by = user.id
        course.current_arrangement_status = CourseArrangementState.approved

    elif action == "reject":
        if not reason or not reason.strip():
            raise ValueError("A reason is required to reject an arrangement")
        arrangement.status = ArrangementStatus.rejected
        arrangement.rejected_at = now
        arrangement.rejected_by = user.id
        arrangement.rejection_reason = reason.strip()
        course.current_arrangement_status = CourseArrangementState.rejected

    else:
        raise ValueError('Invalid action. Use "approve" or "reject"')

    arrangement.updated_at = now
    session.add(arrangement)
    session.add(course)

    await notify_users(
        session,
        [arrangement.coordinator_id],
        kind="arrangement_review",
        title=f"Arrangement {arrangement.status.value}: {course.title}",
        message=(
            f"Version {arrangement.version} of the content arrangement for {course.code} "
            f"was {arrangement.status.value}."
            + (f" Reason: {arrangement.rejection_reason}" if arrangement.rejection_reason else "")
        ),
        commit=False,
    )

    await session.commit()
    await session.refresh(arrangement)
    return arrangement


# ============================================================================
# 5. COMMENTS / HISTORY
# ============================================================================
async def add_comment(
    session: AsyncSession,
    arrangement_id: uuid.UUID,
    comment: str,
    user: User,
) -> ContentArrangement:
    arrangement = await get_arrangement(session, arrangement_id)
    course = await access_service.get_course(session, arrangement.course_id)

    allowed = (
        user.role == UserRole.Admin
        or await access_service.is_cc_of(session, user, course.id)
        or await access_service.is_hod_of(session, user, course.department_id)
    )
    if not allowed:
        raise PermissionError("Only the CC, HOD or Admin can comment on this arrangement")

    text = (comment or "").strip()
    if not text:
        raise ValueError("Comment cannot be empty")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValueError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")

    arrangement.comments = list(arrangement.comments or []) + [{
        "user_id": str(user.id),
        "user_name": user.name,
        "comment": text,
        "created_at": utcnow().isoformat(),
    }]
    session.add(arrangement)
    await session.commit()
    await session.refresh(arrangement)
    return arrangement


async def _names(session: AsyncSession, ids) -> Dict[uuid.UUID, User]:
    ids = {i for i in ids if i}
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def get_history(session: AsyncSession, course_id: uuid.UUID, user: User) -> List[Dict[str, Any]]:
    course = await access_service.get_course(session, course_id)

    if user.role != UserRole.Admin and not (
        await access_service.is_cc_of(session, user, course.id)
        or await access_service.is_hod_of(session, user, course.department_id)
    ):
        raise PermissionError("You do not have access to this course's arrangements")

    result = await session.execute(
        select(ContentArrangement)
        .where(ContentArrangement.course_id == course.id)
        .order_by(ContentArrangement.version.desc())
    )
    arrangements = result.scalars().all()

    users = await _names(
        session,
        [a.coordinator_id for a in arrangements]
        + [a.approved_by for a in arrangements]
        + [a.rejected_by for a in arrangements],
    )

    def name(uid):
        return users[uid].name if uid in users else None

    return [
        {
            "arrangement": a,
            "coordinator_name": name(a.coordinator_id),
            "approved_by_name": name(a.approved_by),
            "rejected_by_name": name(a.rejected_by),
        }
        for a in arrangements
    ]


# ============================================================================
# 6. HOD QUEUES
# ============================================================================
async def _scoped_courses(session: AsyncSession, user: User) -> List[Course]:
    query = select(Course).order_by(Course.title)
    if user.role != UserRole.Admin:
        dept_ids = await access_service.hod_department_ids(session, user)
        if not dept_ids:
            return []
        query = query.where(Course.department_id.in_(dept_ids))
    result = await session.execute(query)
    return list(result.scalars().all())


async def list_pending(session: AsyncSession, user: User) -> Dict[str, Any]:
    courses = await _scoped_courses(session, user)
    by_id = {c.id: c for c in courses}

    arrangements: List[ContentArrangement] = []
    if by_id:
        result = await session.execute(
            select(ContentArrangement)
            .where(
                ContentArrangement.course_id.in_(list(by_id)),
                ContentArrangement.status == ArrangementStatus.submitted,
            )
            .order_by(ContentArrangement.submitted_at.asc())
        )
        arrangements = list(result.scalars().all())

    users = await _names(session, [a.coordinator_id for a in arrangements])

    return {
        "courses": courses,
        "arrangements": [
            {
                "arrangement": a,
                "course": by_id[a.course_id],
                "coordinator_name": users[a.coordinator_id].name if a.coordinator_id in users else None,
            }
            for a in arrangements
        ],
    }


async def list_launch_ready(session: AsyncSession, user: User) -> List[Dict[str, Any]]:
    """Approved versions that were never launched, or newer than what students see."""
    courses = await _scoped_courses(session, user)
    by_id = {c.id: c for c in courses}
    if not by_id:
        return []

    result = await session.execute(
        select(ContentArrangement)
        .where(
            ContentArrangement.course_id.in_(list(by_id)),
            ContentArrangement.status == ArrangementStatus.approved,
        )
        .order_by(ContentArrangement.approved_at.desc())
    )

    ready = []
    for a in result.scalars().all():
        course = by_id[a.course_id]
        if not course.is_launched or a.version > (course.active_arrangement_version or 0):
            ready.append({"arrangement": a, "course": course})
    return ready


# ============================================================================
# 7. LAUNCH
# ============================================================================
async def launch_course(session: AsyncSession, course_id: uuid.UUID, user: User) -> Dict[str, Any]:
    course = await access_service.get_course(session, course_id)
    await access_service.ensure_hod_of(session, user, course.department_id)

    arrangement = await _latest(session, course.id, [ArrangementStatus.approved])
    if not arrangement:
        raise ValueError("Course must have an approved content arrangement before launch")

    now = utcnow()

    course.is_launched = True
    course.launched_at = now
    course.launched_by = user.id
    course.active_arrangement_version = arrangement.version
    course.has_new_content = False
    course.current_arrangement_status = CourseArrangementState.approved
    session.add(course)

    session.add(CourseLaunch(
        course_id=course.id,
        arrangement_id=arrangement.id,
        version=arrangement.version,
        launched_by=user.id,
        launched_at=now,
    ))

    video_ids = [uuid.UUID(i["content_id"]) for i in arrangement.items if i["type"] == ContentType.video.value]
    doc_ids = [uuid.UUID(i["content_id"]) for i in arrangement.items if i["type"] == ContentType.document.value]

    if video_ids:
        await session.execute(
            update(Video).where(Video.id.in_(video_ids))
            .values(is_approved=True, approved_at=now, approved_by=user.id)
        )
    if doc_ids:
        await session.execute(
            update(ReadingMaterial).where(ReadingMaterial.id.in_(doc_ids))
            .values(is_approved=True, approved_at=now, approved_by=user.id)
        )

    # existing progress is kept, it just follows the new version
    await session.execute(
        update(StudentProgress)
        .where(StudentProgress.course_id == course.id)
        .values(arrangement_version=arrangement.version, updated_at=now)
    )

    students = await access_service.enrolled_student_ids(session, course.id)
    await notify_users(
        session,
        students,
        kind="course_launch",
        title=f"{course.title} is now available",
        message=f"{course.code} has been launched with the latest approved content.",
        commit=False,
    )

    await session.commit()
    await session.refresh(course)

    logger.info(f"Course {course.code} launched with arrangement v{arrangement.version} by {user.id}")

    return {
        "course": course,
        "arrangement": arrangement,
        "students_notified": len(students),
        "launched_at": now,
    }


# ============================================================================
# 8. NEW CONTENT AFTER LAUNCH
# ============================================================================
async def mark_content_updated(
    session: AsyncSession,
    course_id: uuid.UUID,
    user: User,
    unit_id: Optional[uuid.UUID] = None,
) -> Dict[str, Any]:
    course = await access_service.get_course(session, course_id)

    if user.role != UserRole.Admin and not await access_service.is_cc_of(session, user, course.id):
        raise PermissionError("Only the Course Coordinator or an Admin can mark content updated")

    students_query = select(func.count(func.distinct(StudentProgress.student_id))).where(
        StudentProgress.course_id == course.id
    )

    if unit_id is not None:
        unit = await session.get(Unit, unit_id)
        if not unit or unit.course_id != course.id:
            raise NotFound("Unit not found in this course")

        students_query = students_query.where(StudentProgress.unit_id == unit_id)
        affected = (await session.execute(students_query)).scalar() or 0

        await session.execute(
            update(StudentProgress)
            .where(StudentProgress.course_id == course.id, StudentProgress.unit_id == unit_id)
            .values(status=ProgressStatus.needs_review, updated_at=utcnow())
        )
    else:
        affected = (await session.execute(students_query)).scalar() or 0

    now = utcnow()
    course.has_new_content = True
    course.last_content_update = now
    course.current_arrangement_status = CourseArrangementState.pending_relaunch
    session.add(course)

    await session.commit()
    await session.refresh(course)

    return {"course": course, "students_affected": affected}

