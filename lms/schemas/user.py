from typing import Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from lms.models.user import UserRole


# ---------------------------------------------------------
# BASE
# ---------------------------------------------------------
class UserBase(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    email: EmailStr


# ---------------------------------------------------------
# CREATE USER (Admin creates any user)
# ---------------------------------------------------------
class UserCreate(UserBase):
    password: str = Field(min_length=8)
    role: UserRole
    department_id: Optional[int] = None   # HOD / Teacher / Student
    school_id: Optional[int] = None       # Dean
    registration_number: Optional[str] = None


# ---------------------------------------------------------
# UPDATE USER (Admin edits)
# ---------------------------------------------------------
class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    department_id: Optional[int] = None
    school_id: Optional[int] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------
# READ USER (response)
# ---------------------------------------------------------
class UserRead(UserBase):
    id: UUID
    role: UserRole | str
    department_id: Optional[int] = None
    school_id: Optional[int] = None
    registration_number: Optional[str] = None
    is_active: bool = True
    department_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserBrief(BaseModel):
    id: UUID
    name: str
    email: str
    role: UserRole | str

    class Config:
        from_attributes = True
