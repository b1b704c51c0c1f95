# lms/api/endpoints/notifications.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from lms.api.deps import get_db_session, get_current_user
from lms.core.errors import to_http
from lms.core.rbac import require_staff
from lms.models.user import User
from lms.schemas.notification import AnnouncementCreate, AnnouncementRead, NotificationRead
from lms.services import notification_service


router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


# ------------------------------------------------------------
# ANNOUNCEMENTS
# ------------------------------------------------------------
@router.post("/announce", response_model=AnnouncementRead, status_code=status.HTTP_201_CREATED)
async def announce(
    payload: AnnouncementCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_staff),
):
    try:
        return await notification_service.create_announcement(
            session, user, payload.scope, payload.target_id, payload.title, payload.message
        )
    except Exception as e:
        raise to_http(e)


@router.get("/sent", response_model=List[AnnouncementRead])
async def sent_announcements(
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_staff),
):
    return await notification_service.list_sent_announcements(session, user, limit=limit)


# ------------------------------------------------------------
# INBOX
# ------------------------------------------------------------
@router.get("/", response_model=List[NotificationRead])
async def my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    return await notification_service.list_notifications(
        session, user, unread_only=unread_only, limit=limit, offset=offset
    )


@router.get("/unread-count")
async def unread_count(
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    return {"unread": await notification_service.unread_count(session, user)}


@router.post("/read-all")
async def mark_all_read(
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    updated = await notification_service.mark_all_read(session, user)
    return {"detail": "All notifications marked as read", "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        return await notification_service.mark_read(session, user, notification_id)
    except Exception as e:
        raise to_http(e)
