# lms/api/endpoints/users.py

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from lms.api.deps import get_db_session
from lms.core.rbac import require_admin
from lms.schemas.user import UserRead, UserCreate, UserUpdate
from lms.services import auth_service
from lms.services.audit_service import log_activity
from lms.services.email_service import send_welcome_email
from lms.models.user import User, UserRole

router = APIRouter(prefix="/api/users", tags=["Users"])


# -------------------------------------------------------------------
# Create ANY user (Admin only)
# -------------------------------------------------------------------
@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_new_user(
    data: UserCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    admin: User = Depends(require_admin)
):
    if await auth_service.get_user_by_email(session, data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    try:
        user = await auth_service.create_user(
            session,
            data.name,
            data.email,
            data.password,
            role=data.role,
            department_id=data.department_id,
            school_id=data.school_id,
            registration_number=data.registration_number,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    background_tasks.add_task(
        send_welcome_email,
        {
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
            "registration_number": user.registration_number,
        },
    )
    background_tasks.add_task(
        log_activity,
        action="USER_CREATED",
        actor_id=admin.id,
        actor_role=admin.role.value,
        actor_name=admin.name,
        category="users",
        resource_type="user",
        resource_id=str(user.id),
        details={"role": user.role.value, "email": user.email},
    )
    return user


# -------------------------------------------------------------------
# List users (Admin only)
# -------------------------------------------------------------------
@router.get("/", response_model=List[UserRead])
async def list_users(
    role: Optional[UserRole] = Query(None),
    department_id: Optional[int] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(require_admin)
):
    return await auth_service.list_users(session, role=role, department_id=department_id)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(require_admin)
):
    user = await auth_service.get_user_by_id(session, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# -------------------------------------------------------------------
# Update a user (Admin only)
# -------------------------------------------------------------------
@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    admin: User = Depends(require_admin)
):
    try:
        user = await auth_service.update_user(session, user_id, **data.model_dump(exclude_unset=True))
    except ValueError as e:
        code = 404 if "not found" in str(e).lower() else 400
        raise HTTPException(status_code=code, detail=str(e))

    background_tasks.add_task(
        log_activity,
        action="USER_UPDATED",
        actor_id=admin.id,
        actor_role=admin.role.value,
        actor_name=admin.name,
        category="users",
        resource_type="user",
        resource_id=str(user.id),
        details=data.model_dump(exclude_unset=True, mode="json"),
    )
    return user


# -------------------------------------------------------------------
# Deactivate a user (Admin only)
# -------------------------------------------------------------------
@router.delete("/{user_id}")
async def delete_user(
    user_id: UUID,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    admin: User = Depends(require_admin)
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    try:
        await auth_service.delete_user_by_id(session, user_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    background_tasks.add_task(
        log_activity,
        action="USER_DEACTIVATED",
        actor_id=admin.id,
        actor_role=admin.role.value,
        actor_name=admin.name,
        category="users",
        resource_type="user",
        resource_id=str(user_id),
    )
    return {"detail": "User deactivated successfully"}
