from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from lms.schemas.user import UserBrief


class SectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    department_id: int
    academic_year: Optional[str] = Field(default=None, max_length=16)
    semester: Optional[int] = Field(default=None, ge=1, le=12)


class SectionRead(BaseModel):
    id: UUID
    name: str
    school_id: int
    department_id: int
    academic_year: Optional[str] = None
    semester: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StudentsAdd(BaseModel):
    student_ids: List[UUID] = Field(min_length=1)


class TeacherAssign(BaseModel):
    course_id: UUID
    teacher_id: UUID


class SectionCourse(BaseModel):
    course_id: UUID
    course_title: str
    course_code: str
    teacher: Optional[UserBrief] = None


class SectionDetail(BaseModel):
    section: SectionRead
    students: List[UserBrief]
    courses: List[SectionCourse]


class TeacherAssignment(BaseModel):
    section_id: UUID
    section_name: str
    course_id: UUID
    course_title: str
    course_code: str
    students_count: int


class StudentSearchResult(BaseModel):
    id: UUID
    name: str
    email: str
    registration_number: Optional[str] = None
    section_name: Optional[str] = None
    department_name: Optional[str] = None
