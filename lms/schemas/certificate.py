from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class CertificateActivate(BaseModel):
    course_id: UUID
    section_id: UUID


class ActivationResult(BaseModel):
    course_id: UUID
    section_id: UUID
    issued: int
    refreshed: int


class CertificateRead(BaseModel):
    id: UUID
    certificate_number: str
    student_id: UUID
    course_id: UUID
    student_name: str
    course_title: str
    total_quizzes: int
    passed_quizzes: int
    marks_percent: float
    completion_percent: float
    issued_at: datetime
    is_revoked: bool
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None

    class Config:
        from_attributes = True


class CertificateStatusRow(BaseModel):
    student_id: UUID
    name: str
    registration_number: Optional[str] = None
    certificate: Optional[CertificateRead] = None


class CertificateVerification(BaseModel):
    certificate_number: str
    student_name: str
    course_title: str
    marks_percent: float
    issued_at: datetime
    is_revoked: bool
    is_valid: bool


class RevokeRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class CertificateStatus(BaseModel):
    course_id: UUID
    section_id: UUID
    students: List[CertificateStatusRow]
