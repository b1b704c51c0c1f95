from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from lms.models.enums import CourseArrangementState


# ---------------------------------------------------------
# SCHOOLS / DEPARTMENTS
# ---------------------------------------------------------
class SchoolCreate(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=32)


class SchoolRead(BaseModel):
    id: int
    name: str
    code: str
    dean_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class DeanAssign(BaseModel):
    dean_id: UUID


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    code: str = Field(min_length=1, max_length=32)
    school_id: int


class DepartmentRead(BaseModel):
    id: int
    name: str
    code: str
    school_id: int
    hod_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class HODAssign(BaseModel):
    hod_id: UUID


# ---------------------------------------------------------
# COURSES
# ---------------------------------------------------------
class CourseCreate(BaseModel):
    title: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=32)
    department_id: int


class CourseRead(BaseModel):
    id: UUID
    title: str
    code: str
    department_id: int
    is_launched: bool
    launched_at: Optional[datetime] = None
    has_new_content: bool
    last_content_update: Optional[datetime] = None
    current_arrangement_status: CourseArrangementState
    active_arrangement_version: int
    created_at: datetime

    class Config:
        from_attributes = True


class CoordinatorAssign(BaseModel):
    teacher_id: UUID


# ---------------------------------------------------------
# UNITS / CONTENT
# ---------------------------------------------------------
class UnitCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=1)


class UnitRead(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    description: Optional[str] = None
    order: int

    class Config:
        from_attributes = True


class VideoCreate(BaseModel):
    title: str = Field(min_length=1)
    video_url: Optional[str] = None
    duration: int = Field(default=0, ge=0)


class VideoRead(BaseModel):
    id: UUID
    course_id: UUID
    unit_id: UUID
    title: str
    video_url: Optional[str] = None
    duration: int
    sequence: int
    is_approved: bool

    class Config:
        from_attributes = True


class DocumentCreate(BaseModel):
    title: str = Field(min_length=1)
    file_url: Optional[str] = None
    pages: int = Field(default=0, ge=0)


class DocumentRead(BaseModel):
    id: UUID
    course_id: UUID
    unit_id: UUID
    title: str
    file_url: Optional[str] = None
    pages: int
    order: int
    is_approved: bool

    class Config:
        from_attributes = True
