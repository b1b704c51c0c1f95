# lms/models/course.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from datetime import datetime
from typing import Optional
import uuid

from lms.models.enums import CourseArrangementState
from lms.models.user import utcnow


class Course(SQLModel, table=True):
    __tablename__ = "courses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    title: str = Field(sa_column=Column(String, nullable=False))
    code: str = Field(sa_column=Column(String(32), nullable=False, unique=True, index=True))

    department_id: int = Field(
        sa_column=Column(Integer, ForeignKey("departments.id"), nullable=False)
    )

    # --------------------------------------------------------
    # LAUNCH / ARRANGEMENT STATE
    # --------------------------------------------------------
    is_launched: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    launched_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    launched_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    has_new_content: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    last_content_update: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))

    current_arrangement_status: CourseArrangementState = Field(
        default=CourseArrangementState.none,
        sa_column=Column(
            SAEnum(CourseArrangementState, name="course_arrangement_state"),
            nullable=False,
            default=CourseArrangementState.none,
        )
    )
    active_arrangement_version: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class CourseCoordinator(SQLModel, table=True):
    """Teacher <-> course link that makes the teacher a CC."""
    __tablename__ = "course_coordinators"
    __table_args__ = (UniqueConstraint("course_id", "teacher_id", name="uq_course_coordinator"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    teacher_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    assigned_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    assigned_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class CourseLaunch(SQLModel, table=True):
    __tablename__ = "course_launches"

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    arrangement_id: uuid.UUID = Field(foreign_key="content_arrangements.id")
    version: int
    launched_by: uuid.UUID = Field(foreign_key="users.id")
    launched_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
