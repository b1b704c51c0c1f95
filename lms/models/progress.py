# lms/models/progress.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, DateTime, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional
import uuid

from lms.models.enums import ContentType, ProgressStatus
from lms.models.user import utcnow


class StudentProgress(SQLModel, table=True):
    """One row per (student, content item)."""
    __tablename__ = "student_progress"
    __table_args__ = (UniqueConstraint("student_id", "content_id", name="uq_progress_student_content"),)

    id: Optional[int] = Field(default=None, primary_key=True)

    student_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    unit_id: uuid.UUID = Field(foreign_key="units.id")

    content_type: ContentType = Field(
        sa_column=Column(SAEnum(ContentType, name="content_type"), nullable=False)
    )
    content_id: uuid.UUID

    status: ProgressStatus = Field(
        default=ProgressStatus.in_progress,
        sa_column=Column(SAEnum(ProgressStatus, name="progress_status"), nullable=False)
    )

    watched_seconds: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    arrangement_version: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
