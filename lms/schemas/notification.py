from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from lms.models.enums import AnnouncementScope


class AnnouncementCreate(BaseModel):
    scope: AnnouncementScope
    target_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)


class AnnouncementRead(BaseModel):
    id: UUID
    sender_id: Optional[UUID] = None
    sender_role: Optional[str] = None
    scope: AnnouncementScope
    target_id: str
    title: str
    message: str
    recipients_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationRead(BaseModel):
    id: UUID
    announcement_id: Optional[UUID] = None
    kind: str
    title: str
    message: str
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
