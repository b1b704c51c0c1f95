# lms/api/endpoints/chat.py

from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from lms.api.deps import get_db_session, get_current_user
from lms.core.errors import to_http
from lms.models.user import User
from lms.schemas.chat import ChatMessageCreate, ChatMessageRead, ChatRoom
from lms.services import chat_service

router = APIRouter(prefix="/api/chat", tags=["Group Chat"])


@router.get("/rooms", response_model=List[ChatRoom])
async def my_rooms(
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    return await chat_service.list_rooms(session, user)


@router.get("/{section_id}/{course_id}/messages", response_model=List[ChatMessageRead])
async def list_messages(
    section_id: UUID,
    course_id: UUID,
    limit: int = Query(50, ge=1, le=chat_service.MAX_PAGE_SIZE),
    before: Optional[datetime] = Query(None, description="Only messages older than this timestamp"),
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        messages = await chat_service.list_messages(
            session, user, section_id, course_id, limit=limit, before=before
        )
    except Exception as e:
        raise to_http(e)
    return [chat_service.render(m) for m in messages]


@router.post(
    "/{section_id}/{course_id}/messages",
    response_model=ChatMessageRead,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    section_id: UUID,
    course_id: UUID,
    payload: ChatMessageCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        msg = await chat_service.post_message(session, user, section_id, course_id, payload.message)
    except Exception as e:
        raise to_http(e)
    return chat_service.render(msg)


@router.delete("/messages/{message_id}", response_model=ChatMessageRead)
async def delete_message(
    message_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    try:
        msg = await chat_service.delete_message(session, user, message_id)
    except Exception as e:
        raise to_http(e)
    return chat_service.render(msg)
