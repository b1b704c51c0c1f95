from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from lms.schemas.user import UserRead


# -------------------------------------------------------------------
# LOGIN REQUEST (email or registration number)
# -------------------------------------------------------------------
class LoginRequest(BaseModel):
    identifier: str = Field(min_length=1)
    password: str

    class Config:
        json_schema_extra = {
            "examples": [
                {"identifier": "hod.cse@campus.edu", "password": "password123"},
                {"identifier": "22CSE1042", "password": "password123"},
            ]
        }


# -------------------------------------------------------------------
# TOKEN + USER DETAILS (Used for login response)
# -------------------------------------------------------------------
class TokenWithUser(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: UserRead

    department_name: Optional[str] = None


# -------------------------------------------------------------------
# PASSWORD FLOWS
# -------------------------------------------------------------------
class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(min_length=8)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=6, max_length=6)


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=6, max_length=6)
    new_password: str = Field(min_length=8)
