from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from lms.models.enums import ArrangementStatus, ContentType


# ---------------------------------------------------------
# ITEMS
# ---------------------------------------------------------
class ArrangementItem(BaseModel):
    type: ContentType
    content_id: UUID
    title: Optional[str] = None
    unit_id: UUID
    order: int = Field(ge=1)
    original_unit_id: Optional[UUID] = None
    original_order: Optional[int] = None


class ArrangementComment(BaseModel):
    user_id: UUID
    user_name: Optional[str] = None
    comment: str
    created_at: datetime


# ---------------------------------------------------------
# ARRANGEMENT (response)
# ---------------------------------------------------------
class ArrangementRead(BaseModel):
    id: UUID
    course_id: UUID
    coordinator_id: UUID
    status: ArrangementStatus
    version: int
    items: List[ArrangementItem] = []
    comments: List[ArrangementComment] = []

    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejection_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UnitBrief(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    order: int

    class Config:
        from_attributes = True


class ArrangementView(BaseModel):
    arrangement: ArrangementRead
    units: List[UnitBrief]
    can_edit: bool


class ArrangementHistoryEntry(BaseModel):
    arrangement: ArrangementRead
    coordinator_name: Optional[str] = None
    approved_by_name: Optional[str] = None
    rejected_by_name: Optional[str] = None


class CourseBrief(BaseModel):
    id: UUID
    title: str
    code: str
    department_id: int
    is_launched: bool
    active_arrangement_version: int

    class Config:
        from_attributes = True


class PendingArrangement(BaseModel):
    arrangement: ArrangementRead
    course: CourseBrief
    coordinator_name: Optional[str] = None


class PendingArrangements(BaseModel):
    courses: List[CourseBrief]
    arrangements: List[PendingArrangement]


class LaunchReadyArrangement(BaseModel):
    arrangement: ArrangementRead
    course: CourseBrief


# ---------------------------------------------------------
# REQUESTS
# ---------------------------------------------------------
class ArrangementUpdateRequest(BaseModel):
    items: List[ArrangementItem]


class ReviewRequest(BaseModel):
    action: str  # "approve" | "reject"
    reason: Optional[str] = Field(default=None, max_length=2000)


class CommentRequest(BaseModel):
    comment: str = Field(min_length=1, max_length=1000)


class MarkUpdatedRequest(BaseModel):
    unit_id: Optional[UUID] = None


# ---------------------------------------------------------
# LAUNCH / IMPACT
# ---------------------------------------------------------
class LaunchResponse(BaseModel):
    message: str
    course: CourseBrief
    arrangement_version: int
    students_notified: int
    launched_at: datetime


class ContentUpdatedResponse(BaseModel):
    message: str
    course: CourseBrief
    students_affected: int
