# lms/models/notification.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Text, DateTime
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional
import uuid

from lms.models.enums import AnnouncementScope
from lms.models.user import utcnow


class Announcement(SQLModel, table=True):
    __tablename__ = "announcements"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    sender_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    sender_role: Optional[str] = None

    scope: AnnouncementScope = Field(
        sa_column=Column(SAEnum(AnnouncementScope, name="announcement_scope"), nullable=False)
    )
    # school / department ids are ints, section / course ids are uuids
    target_id: str = Field(sa_column=Column(String, nullable=False))

    title: str = Field(sa_column=Column(String(200), nullable=False))
    message: str = Field(sa_column=Column(Text, nullable=False))
    recipients_count: int = 0

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    announcement_id: Optional[uuid.UUID] = Field(default=None, foreign_key="announcements.id")

    # "announcement", "arrangement_review", "course_launch", ...
    kind: str = Field(default="announcement", sa_column=Column(String(32), nullable=False))
    title: str = Field(sa_column=Column(String(200), nullable=False))
    message: str = Field(sa_column=Column(Text, nullable=False))

    read_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
