# lms/models/chat.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Text, Boolean, DateTime, Index
from datetime import datetime
from typing import Optional
import uuid

from lms.models.user import utcnow


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_room_created", "section_id", "course_id", "created_at"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    section_id: uuid.UUID = Field(foreign_key="sections.id")
    course_id: uuid.UUID = Field(foreign_key="courses.id")

    sender_id: uuid.UUID = Field(foreign_key="users.id")
    sender_name: Optional[str] = None
    sender_role: Optional[str] = None

    message: str = Field(sa_column=Column(Text, nullable=False))
    is_deleted: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    deleted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
