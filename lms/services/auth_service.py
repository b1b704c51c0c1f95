# lms/services/auth_service.py

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
import uuid
import secrets
from datetime import datetime, timedelta, timezone

from loguru import logger

from lms.models.user import User, UserRole
from lms.models.school import School
from lms.models.department import Department
from lms.core.config import settings
from lms.core.security import (
    hash_password,
    verify_password,
    create_access_token,
)
from lms.schemas.auth import TokenWithUser
from lms.schemas.user import UserRead


OTP_TTL_MINUTES = 15


def _as_aware(value: datetime) -> datetime:
    # sqlite hands datetimes back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# FETCH USER
# ============================================================================
async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_identifier(session: AsyncSession, identifier: str) -> User | None:
    """Email or registration number."""
    identifier = identifier.strip()
    result = await session.execute(
        select(User).where(
            (func.lower(User.email) == identifier.lower()) |
            (func.lower(User.registration_number) == identifier.lower())
        )
    )
    return result.scalars().first()


# ============================================================================
# CREATE USER
# ============================================================================
async def _validate_placement(
    session: AsyncSession,
    role: UserRole,
    school_id: int | None,
    department_id: int | None,
) -> int | None:
    """
    Returns the school_id to store. Department users inherit the school of
    their department.
    """
    if role in (UserRole.HOD, UserRole.Teacher, UserRole.Student):
        if department_id is None:
            raise ValueError(f"{role.value} must be assigned to a department")
        dept = await session.get(Department, department_id)
        if not dept:
            raise ValueError("Department not found")
        return dept.school_id

    if role == UserRole.Dean:
        if department_id is not None:
            raise ValueError("Dean cannot have a department_id")
        if school_id is None:
            raise ValueError("Dean must be assigned to a school")
        if not await session.get(School, school_id):
            raise ValueError("School not found")
        return school_id

    # Admin
    if department_id is not None or school_id is not None:
        raise ValueError("Admin cannot be assigned to a school or department")
    return None


async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    department_id: int | None = None,
    school_id: int | None = None,
    registration_number: str | None = None,
) -> User:

    school_id = await _validate_placement(session, role, school_id, department_id)

    if role == UserRole.Student and not registration_number:
        raise ValueError("Student account must include registration_number")

    user = User(
        id=uuid.uuid4(),
        name=name,
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role,
        department_id=department_id,
        school_id=school_id,
        registration_number=registration_number,
    )

    session.add(user)

    try:
        await session.commit()
        await session.refresh(user)
        return user

    except IntegrityError:
        await session.rollback()
        raise ValueError("User with this email or registration number already exists")


# ============================================================================
# AUTHENTICATE
# ============================================================================
async def authenticate_user(session: AsyncSession, identifier: str, password: str) -> User | None:
    user = await get_user_by_identifier(session, identifier)
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


async def create_login_response(user: User, session: AsyncSession) -> TokenWithUser:
    role_str = (
        user.role.value.lower()
        if isinstance(user.role, UserRole)
        else str(user.role).lower()
    )

    department_name = None
    if user.department_id:
        result = await session.execute(
            select(Department.name).where(Department.id == user.department_id)
        )
        department_name = result.scalar_one_or_none()

    token = create_access_token(
        subject=str(user.id),
        data={
            "role": role_str,
            "department_id": user.department_id,
            "school_id": user.school_id,
        },
    )

    user_read = UserRead.model_validate(user)
    user_read.department_name = department_name

    return TokenWithUser(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=user_read,
        department_name=department_name,
    )


# ============================================================================
# FORGOT PASSWORD
# ============================================================================
async def request_password_reset(session: AsyncSession, email: str) -> str:
    """
    Generates and stores an OTP. Returns it so the caller can queue the mail.
    """
    user = await get_user_by_email(session, email)
    if not user:
        raise ValueError("User not found")

    otp = f"{secrets.randbelow(900000) + 100000}"
    user.otp_code = otp
    user.otp_expires_at = datetime.now(timezone.utc) + timedelta(minutes=OTP_TTL_MINUTES)

    session.add(user)
    await session.commit()
    logger.info(f"Password reset OTP issued for user {user.id}")
    return otp


async def verify_reset_otp(session: AsyncSession, email: str, otp: str) -> bool:
    user = await get_user_by_email(session, email)
    if not user or not user.otp_code or user.otp_code != otp:
        return False

    if user.otp_expires_at and _as_aware(user.otp_expires_at) < datetime.now(timezone.utc):
        return False

    return True


async def finalize_password_reset(session: AsyncSession, email: str, otp: str, new_password: str):
    """
    Verifies the OTP one last time, updates password, clears OTP fields.
    """
    user = await get_user_by_email(session, email)
    if not user or not user.otp_code or user.otp_code != otp:
        raise ValueError("Invalid or expired OTP")

    if user.otp_expires_at and _as_aware(user.otp_expires_at) < datetime.now(timezone.utc):
        raise ValueError("OTP has expired")

    user.password_hash = hash_password(new_password)
    user.otp_code = None
    user.otp_expires_at = None

    session.add(user)
    await session.commit()
    return True


# ============================================================================
# LIST / DELETE / UPDATE
# ============================================================================
async def list_users(
    session: AsyncSession,
    role: UserRole | None = None,
    department_id: int | None = None,
) -> list[User]:
    query = select(User).order_by(User.created_at.desc())
    if role:
        query = query.where(User.role == role)
    if department_id is not None:
        query = query.where(User.department_id == department_id)
    result = await session.execute(query)
    return result.scalars().all()


async def delete_user_by_id(session: AsyncSession, user_id: uuid.UUID) -> None:
    """Soft delete: accounts are referenced by audit and progress rows."""
    user = await get_user_by_id(session, user_id)

    if not user:
        raise ValueError("User not found")

    user.is_active = False
    session.add(user)
    await session.commit()


async def update_user(
    session: AsyncSession,
    user_id: uuid.UUID,
    name: str | None = None,
    email: str | None = None,
    role: UserRole | None = None,
    department_id: int | None = None,
    school_id: int | None = None,
    is_active: bool | None = None,
) -> User:

    user = await get_user_by_id(session, user_id)

    if not user:
        raise ValueError("User not found")

    if email and email.lower() != user.email:
        if await get_user_by_email(session, email):
            raise ValueError("Email already in use")
        user.email = email.strip().lower()

    if name:
        user.name = name

    if role or department_id is not None or school_id is not None:
        new_role = role or user.role
        new_dept = department_id if department_id is not None else (
            user.department_id if new_role in (UserRole.HOD, UserRole.Teacher, UserRole.Student) else None
        )
        new_school = school_id if school_id is not None else (
            user.school_id if new_role == UserRole.Dean else None
        )
        user.school_id = await _validate_placement(session, new_role, new_school, new_dept)
        user.role = new_role
        user.department_id = new_dept

    if is_active is not None:
        user.is_active = is_active

    try:
        await session.commit()
        await session.refresh(user)
        return user

    except IntegrityError:
        await session.rollback()
        raise ValueError("Failed to update user")
