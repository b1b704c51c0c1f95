# lms/core/rbac.py

from fastapi import Depends, HTTPException, Request, status
from loguru import logger

from lms.api.deps import get_current_user
from lms.models.user import User, UserRole


def _as_role(role) -> UserRole:
    if isinstance(role, UserRole):
        return role
    # tokens and query strings may carry "hod", "Teacher", ...
    for candidate in UserRole:
        if candidate.value.lower() == str(role).strip().lower():
            return candidate
    raise ValueError(f"Unknown role '{role}'")


def AllowRoles(*allowed_roles):
    """
    Route guard for the campus roles.

    Admin passes every guard. Everyone else must hold one of ``allowed_roles``;
    finer scoping (own department, own school, coordinated course) is left to
    the services.
    """
    allowed = frozenset(_as_role(r) for r in allowed_roles)

    async def role_checker(request: Request, current_user: User = Depends(get_current_user)):
        role = _as_role(current_user.role)

        if role == UserRole.Admin or role in allowed:
            return current_user

        logger.info(
            f"Role '{role.value}' denied on {request.method} {request.url.path} "
            f"(user={current_user.id})"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied for role '{role.value}'"
        )

    return role_checker


# Guards shared across routers
require_admin = AllowRoles(UserRole.Admin)
require_staff = AllowRoles(UserRole.Dean, UserRole.HOD, UserRole.Teacher)
require_reviewer = AllowRoles(UserRole.HOD)
require_student = AllowRoles(UserRole.Student)
