# lms/models/certificate.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, Float, String, Text, Boolean, DateTime, UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid

from lms.models.user import utcnow


class Certificate(SQLModel, table=True):
    __tablename__ = "certificates"
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="uq_certificate_student_course"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    certificate_number: str = Field(sa_column=Column(String(32), nullable=False, unique=True, index=True))

    student_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    section_id: uuid.UUID = Field(foreign_key="sections.id")

    # --------------------------------------------------------
    # PUBLIC VERIFICATION DATA
    # --------------------------------------------------------
    student_name: str
    course_title: str
    total_quizzes: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    passed_quizzes: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    marks_percent: float = Field(default=0.0, sa_column=Column(Float, nullable=False, default=0.0))
    completion_percent: float = Field(default=0.0, sa_column=Column(Float, nullable=False, default=0.0))
    verification_hash: str = Field(sa_column=Column(String(64), nullable=False))

    activated_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    issued_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    # --------------------------------------------------------
    # REVOCATION
    # --------------------------------------------------------
    is_revoked: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    revoked_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    revoked_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    revocation_reason: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
