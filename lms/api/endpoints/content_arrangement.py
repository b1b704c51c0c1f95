# lms/api/endpoints/content_arrangement.py

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from lms.api.deps import get_db_session, get_current_user
from lms.core.errors import ArrangementLocked, to_http
from lms.core.rbac import AllowRoles, require_reviewer
from lms.models.user import User, UserRole
from lms.schemas.arrangement import (
    ArrangementRead,
    ArrangementView,
    ArrangementHistoryEntry,
    ArrangementUpdateRequest,
    ReviewRequest,
    CommentRequest,
    MarkUpdatedRequest,
    PendingArrangements,
    LaunchReadyArrangement,
    LaunchResponse,
    ContentUpdatedResponse,
    CourseBrief,
)
from lms.services import arrangement_service
from lms.services.access_service import get_course
from lms.services.audit_service import log_activity
from lms.services.auth_service import get_user_by_id
from lms.services.cache_service import invalidate_analytics
from lms.services.email_service import (
    send_arrangement_reviewed_email,
    send_course_launched_email,
)


router = APIRouter(
    prefix="/api/content-arrangement",
    tags=["Content Arrangement"],
)


def _audit(background_tasks: BackgroundTasks, user: User, action: str, arrangement, remarks=None):
    background_tasks.add_task(
        log_activity,
        action=action,
        actor_id=user.id,
        actor_role=user.role.value,
        actor_name=user.name,
        category="arrangement",
        resource_type="content_arrangement",
        resource_id=str(arrangement.id),
        remarks=remarks,
        details={"course_id": str(arrangement.course_id), "version": arrangement.version},
    )


# ------------------------------------------------------------
# HOD QUEUES (declared before the /{id} routes)
# ------------------------------------------------------------
@router.get("/pending", response_model=PendingArrangements)
async def pending_arrangements(
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_reviewer),
):
    return await arrangement_service.list_pending(session, user)


@router.get("/approved", response_model=List[LaunchReadyArrangement])
async def launch_ready_arrangements(
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_reviewer),
):
    return await arrangement_service.list_launch_ready(session, user)


# ------------------------------------------------------------
# WORKING ARRANGEMENT
# ------------------------------------------------------------
@router.get("/course/{course_id}", response_model=ArrangementView)
async def get_course_arrangement(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        return await arrangement_service.get_course_arrangement(session, course_id, user)
    except ArrangementLocked as e:
        arrangement = None
        if e.arrangement is not None:
            arrangement = jsonable_encoder(ArrangementRead.model_validate(e.arrangement))
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={
                "detail": str(e),
                "arrangement": arrangement,
                "units": [],
                "can_edit": False,
                "is_locked": True,
            },
        )
    except Exception as e:
        raise to_http(e)


@router.put("/{arrangement_id}", response_model=ArrangementRead)
async def update_arrangement(
    arrangement_id: UUID,
    payload: ArrangementUpdateRequest,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    items = [item.model_dump(mode="json") for item in payload.items]
    try:
        return await arrangement_service.update_arrangement(session, arrangement_id, items, user)
    except Exception as e:
        raise to_http(e)


@router.post("/{arrangement_id}/submit", response_model=ArrangementRead)
async def submit_arrangement(
    arrangement_id: UUID,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        arrangement = await arrangement_service.submit_arrangement(session, arrangement_id, user)
    except Exception as e:
        raise to_http(e)

    _audit(background_tasks, user, "SUBMIT", arrangement)
    return arrangement


# ------------------------------------------------------------
# REVIEW (HOD / Admin)
# ------------------------------------------------------------
@router.post("/{arrangement_id}/review", response_model=ArrangementRead)
async def review_arrangement(
    arrangement_id: UUID,
    payload: ReviewRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_reviewer),
):
    try:
        arrangement = await arrangement_service.review_arrangement(
            session, arrangement_id, payload.action, payload.reason, user
        )
        course = await get_course(session, arrangement.course_id)
    except Exception as e:
        raise to_http(e)

    action = "APPROVE" if payload.action == "approve" else "REJECT"
    _audit(background_tasks, user, action, arrangement, remarks=arrangement.rejection_reason)

    coordinator = await get_user_by_id(session, arrangement.coordinator_id)
    if coordinator:
        background_tasks.add_task(
            send_arrangement_reviewed_email,
            {
                "name": coordinator.name,
                "email": coordinator.email,
                "course_id": str(course.id),
                "course_title": course.title,
                "course_code": course.code,
                "version": arrangement.version,
                "status": arrangement.status.value,
                "reason": arrangement.rejection_reason,
                "reviewer_name": user.name,
            },
        )
    return arrangement


@router.post("/{arrangement_id}/comments", response_model=ArrangementRead)
async def comment_on_arrangement(
    arrangement_id: UUID,
    payload: CommentRequest,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        return await arrangement_service.add_comment(session, arrangement_id, payload.comment, user)
    except Exception as e:
        raise to_http(e)


@router.get("/{course_id}/history", response_model=List[ArrangementHistoryEntry])
async def arrangement_history(
    course_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        return await arrangement_service.get_history(session, course_id, user)
    except Exception as e:
        raise to_http(e)


# ------------------------------------------------------------
# LAUNCH / CONTENT UPDATES
# ------------------------------------------------------------
@router.post("/course/{course_id}/launch", response_model=LaunchResponse)
async def launch_course(
    course_id: UUID,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_reviewer),
):
    try:
        result = await arrangement_service.launch_course(session, course_id, user)
    except Exception as e:
        raise to_http(e)

    course = result["course"]
    arrangement = result["arrangement"]

    await invalidate_analytics()
    _audit(background_tasks, user, "LAUNCH", arrangement)

    coordinator = await get_user_by_id(session, arrangement.coordinator_id)
    if coordinator:
        background_tasks.add_task(
            send_course_launched_email,
            {
                "name": coordinator.name,
                "email": coordinator.email,
                "course_id": str(course.id),
                "course_title": course.title,
                "course_code": course.code,
                "version": arrangement.version,
                "students_notified": result["students_notified"],
            },
        )

    return LaunchResponse(
        message="Course launched successfully",
        course=CourseBrief.model_validate(course),
        arrangement_version=arrangement.version,
        students_notified=result["students_notified"],
        launched_at=result["launched_at"],
    )


@router.post("/course/{course_id}/mark-updated", response_model=ContentUpdatedResponse)
async def mark_content_updated(
    course_id: UUID,
    payload: MarkUpdatedRequest,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(AllowRoles(UserRole.Teacher)),
):
    try:
        result = await arrangement_service.mark_content_updated(
            session, course_id, user, unit_id=payload.unit_id
        )
    except Exception as e:
        raise to_http(e)

    return ContentUpdatedResponse(
        message="Course marked for re-arrangement",
        course=CourseBrief.model_validate(result["course"]),
        students_affected=result["students_affected"],
    )
