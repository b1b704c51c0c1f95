# lms/models/content.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, String, Text, Boolean, DateTime
from datetime import datetime
from typing import Optional
import uuid

from lms.models.user import utcnow


class Unit(SQLModel, table=True):
    __tablename__ = "units"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    title: str
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    order: int = Field(default=1, sa_column=Column("order", Integer, nullable=False, default=1))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class Video(SQLModel, table=True):
    __tablename__ = "videos"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    unit_id: uuid.UUID = Field(foreign_key="units.id", index=True)

    title: str
    video_url: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    duration: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))  # seconds
    sequence: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))

    is_approved: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    uploaded_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class ReadingMaterial(SQLModel, table=True):
    __tablename__ = "reading_materials"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    unit_id: uuid.UUID = Field(foreign_key="units.id", index=True)

    title: str
    file_url: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    pages: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    order: int = Field(default=1, sa_column=Column("order", Integer, nullable=False, default=1))

    is_approved: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    uploaded_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
