# lms/models/user.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, ForeignKey, Integer, String, Boolean
from sqlalchemy import Enum as SAEnum
from datetime import datetime, timezone
import uuid
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    Admin = "Admin"
    Dean = "Dean"
    HOD = "HOD"
    Teacher = "Teacher"   # becomes a CC through course_coordinators
    Student = "Student"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    name: str = Field(nullable=False)
    email: str = Field(nullable=False, index=True, unique=True)
    password_hash: str = Field(nullable=False)

    role: UserRole = Field(
        sa_column=Column(SAEnum(UserRole, name="user_role"), nullable=False)
    )

    # Dean -> school_id, HOD/Teacher/Student -> department_id (+ school_id)
    school_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("schools.id"), nullable=True)
    )
    department_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("departments.id"), nullable=True)
    )

    # Students: university registration number. Teachers: staff id.
    registration_number: Optional[str] = Field(
        default=None,
        sa_column=Column(String, nullable=True, unique=True, index=True)
    )

    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True)
    )

    # --- Forgot Password ---
    otp_code: Optional[str] = Field(
        default=None,
        sa_column=Column(String, nullable=True)
    )
    otp_expires_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
