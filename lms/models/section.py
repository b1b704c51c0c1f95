# lms/models/section.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid

from lms.models.user import utcnow


class Section(SQLModel, table=True):
    __tablename__ = "sections"
    __table_args__ = (UniqueConstraint("department_id", "name", name="uq_section_name"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(sa_column=Column(String(64), nullable=False))

    school_id: int = Field(sa_column=Column(Integer, ForeignKey("schools.id"), nullable=False))
    department_id: int = Field(sa_column=Column(Integer, ForeignKey("departments.id"), nullable=False))

    academic_year: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    semester: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class SectionStudent(SQLModel, table=True):
    __tablename__ = "section_students"
    # a student sits in one section at a time
    __table_args__ = (UniqueConstraint("student_id", name="uq_section_student"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    section_id: uuid.UUID = Field(foreign_key="sections.id", index=True)
    student_id: uuid.UUID = Field(foreign_key="users.id")
    added_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class SectionCourseTeacher(SQLModel, table=True):
    __tablename__ = "section_course_teachers"
    __table_args__ = (UniqueConstraint("section_id", "course_id", name="uq_section_course"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    section_id: uuid.UUID = Field(foreign_key="sections.id", index=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    teacher_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    assigned_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    assigned_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
