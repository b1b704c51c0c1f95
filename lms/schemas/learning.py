from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from lms.models.enums import ContentType, ProgressStatus


class LearningItem(BaseModel):
    type: ContentType
    content_id: UUID
    title: str
    order: int
    url: Optional[str] = None
    duration: Optional[int] = None
    pages: Optional[int] = None
    status: Optional[ProgressStatus] = None
    watched_seconds: int = 0
    is_unlocked: bool = True


class LearningUnit(BaseModel):
    id: UUID
    title: str
    order: int
    items: List[LearningItem]
    has_quiz: bool = False
    quiz_passed: bool = False


class CourseContent(BaseModel):
    course_id: UUID
    title: str
    code: str
    arrangement_version: int
    units: List[LearningUnit]


class ProgressUpdate(BaseModel):
    content_type: ContentType
    content_id: UUID
    watched_seconds: int = Field(default=0, ge=0)
    completed: bool = False


class ProgressRead(BaseModel):
    content_id: UUID
    content_type: ContentType
    status: ProgressStatus
    watched_seconds: int
    arrangement_version: int
    completed_at: Optional[datetime] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class CourseProgress(BaseModel):
    course_id: UUID
    completed_items: int
    total_items: int
    completion_percent: float
