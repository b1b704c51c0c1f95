# lms/models/content_arrangement.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, Text, DateTime, JSON, Index, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional, List, Dict, Any
import uuid

from lms.models.enums import ArrangementStatus
from lms.models.user import utcnow


class ContentArrangement(SQLModel, table=True):
    __tablename__ = "content_arrangements"
    __table_args__ = (
        Index("ix_arrangement_course_status", "course_id", "status"),
        # one row per (course, version)
        UniqueConstraint("course_id", "version", name="uq_arrangement_course_version"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    course_id: uuid.UUID = Field(foreign_key="courses.id", nullable=False)
    coordinator_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)

    status: ArrangementStatus = Field(
        default=ArrangementStatus.open,
        sa_column=Column(SAEnum(ArrangementStatus, name="arrangement_status"), nullable=False)
    )

    # [{"type", "content_id", "title", "unit_id", "order",
    #   "original_unit_id", "original_order"}]  ids stored as strings
    items: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False)
    )

    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))

    submitted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))

    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    rejected_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    rejected_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    rejection_reason: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))

    # [{"user_id", "user_name", "comment", "created_at"}]
    comments: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False)
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
