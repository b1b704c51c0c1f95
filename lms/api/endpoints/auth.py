# lms/api/endpoints/auth.py

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.schemas.auth import (
    LoginRequest,
    TokenWithUser,
    ForgotPasswordRequest,
    VerifyOTPRequest,
    ResetPasswordRequest,
)
from lms.schemas.user import UserRead
from lms.models.user import User
from lms.services.auth_service import (
    authenticate_user,
    create_login_response,
    get_user_by_email,
    request_password_reset,
    verify_reset_otp,
    finalize_password_reset,
    OTP_TTL_MINUTES,
)
from lms.services.audit_service import log_activity
from lms.services.email_service import send_password_reset_email
from lms.core.config import settings
from lms.core.rate_limiter import limiter
from lms.api.deps import get_db_session, get_current_user

router = APIRouter(prefix="/api/auth", tags=["Auth"])


# -------------------------------------------------------------------
# LOGIN (any role; email or registration number)
# -------------------------------------------------------------------
@router.post("/login", response_model=TokenWithUser)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session)
):
    user = await authenticate_user(session, payload.identifier, payload.password)

    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    background_tasks.add_task(
        log_activity,
        action="LOGIN",
        actor_id=user.id,
        actor_role=user.role.value,
        actor_name=user.name,
        category="auth",
        details={"ip": request.client.host if request.client else None},
    )

    return await create_login_response(user, session)


@router.get("/me", response_model=UserRead)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


# -------------------------------------------------------------------
# FORGOT PASSWORD (public)
# -------------------------------------------------------------------
@router.post("/forgot-password", tags=["Password Reset"])
@limiter.limit("5/minute")
async def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session)
):
    try:
        otp = await request_password_reset(session, payload.email)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    user = await get_user_by_email(session, payload.email)
    background_tasks.add_task(
        send_password_reset_email,
        {"name": user.name, "email": user.email, "otp": otp, "valid_minutes": OTP_TTL_MINUTES},
    )
    return {"message": "OTP sent successfully. Please check your mail."}


@router.post("/verify-reset-otp", tags=["Password Reset"])
async def verify_reset_otp_endpoint(
    payload: VerifyOTPRequest,
    session: AsyncSession = Depends(get_db_session)
):
    if not await verify_reset_otp(session, payload.email, payload.otp):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")
    return {"message": "OTP verified"}


@router.post("/reset-password", tags=["Password Reset"])
async def reset_password(
    payload: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session)
):
    try:
        await finalize_password_reset(session, payload.email, payload.otp, payload.new_password)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    user = await get_user_by_email(session, payload.email)
    background_tasks.add_task(
        log_activity,
        action="PASSWORD_RESET",
        actor_id=user.id,
        actor_role=user.role.value,
        actor_name=user.name,
        category="auth",
    )
    return {"message": "Password has been reset successfully"}
