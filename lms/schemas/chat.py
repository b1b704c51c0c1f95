from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime


class ChatMessageCreate(BaseModel):
    # length is checked after stripping in the service
    message: str = Field(min_length=1)


class ChatMessageRead(BaseModel):
    id: UUID
    section_id: UUID
    course_id: UUID
    sender_id: UUID
    sender_name: Optional[str] = None
    sender_role: Optional[str] = None
    message: str
    is_deleted: bool
    created_at: datetime


class ChatRoom(BaseModel):
    section_id: UUID
    section_name: str
    course_id: UUID
    course_title: str
    course_code: str
    teacher_id: Optional[UUID] = None
    last_message_at: Optional[datetime] = None
