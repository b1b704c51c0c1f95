# lms/api/endpoints/security.py

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.api.deps import get_db_session, get_current_user
from lms.core.rate_limiter import get_real_ip, limiter
from lms.models.user import User
from lms.schemas.audit import SecurityAttemptRequest
from lms.services.audit_service import record_security_event

router = APIRouter(prefix="/api/security", tags=["Security"])


# -------------------------------------------------------------------
# CLIENT REPORTED ATTEMPT (devtools, copy, screen capture...)
# -------------------------------------------------------------------
@router.post("/log-attempt", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def log_security_attempt(
    request: Request,
    payload: SecurityAttemptRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    event = await record_security_event(
        session,
        event_type=payload.type,
        user_id=current_user.id,
        user_role=current_user.role.value,
        client_timestamp=payload.timestamp,
        ip_address=get_real_ip(request),
        user_agent=payload.user_agent or request.headers.get("user-agent"),
        details=payload.details,
    )
    return {"detail": "Security attempt logged", "id": event.id}
