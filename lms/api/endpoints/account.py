# lms/api/endpoints/account.py

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import get_current_user, get_db_session
from lms.core.security import verify_password, hash_password
from lms.models.user import User
from lms.schemas.auth import ChangePasswordRequest
from lms.services.audit_service import log_activity

router = APIRouter(prefix="/api/account", tags=["Account"])


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session)
):
    """Any signed-in role. Any pending reset OTP is dropped along with the old password."""
    if not verify_password(payload.old_password, current_user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    if verify_password(payload.new_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must differ from the current one",
        )

    current_user.password_hash = hash_password(payload.new_password)
    current_user.otp_code = None
    current_user.otp_expires_at = None
    session.add(current_user)
    await session.commit()

    background_tasks.add_task(
        log_activity,
        action="PASSWORD_CHANGED",
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        actor_name=current_user.name,
        category="auth",
        resource_type="user",
        resource_id=str(current_user.id),
    )
    return {"detail": "Password changed successfully"}
