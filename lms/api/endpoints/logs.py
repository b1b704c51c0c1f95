# lms/api/endpoints/logs.py

from fastapi import APIRouter, Depends, Query
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from lms.api.deps import get_db_session
from lms.core.rbac import require_admin
from lms.models.user import User
from lms.models.audit import AuditLog, SecurityEvent
from lms.schemas.audit import AuditLogRead, SecurityEventRead

router = APIRouter(prefix="/api/admin", tags=["Audit & Logs"])


# -------------------------------------------------------------------
# CLIENT SECURITY EVENTS
# -------------------------------------------------------------------
@router.get("/security-events", response_model=List[SecurityEventRead])
async def get_security_events(
    event_type: Optional[str] = Query(None, description="Filter by event type"),
    user_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(require_admin),
):
    query = select(SecurityEvent).order_by(SecurityEvent.timestamp.desc()).limit(limit)

    if event_type:
        query = query.where(SecurityEvent.event_type == event_type)
    if user_id:
        query = query.where(SecurityEvent.user_id == user_id)

    result = await session.execute(query)
    return result.scalars().all()


# -------------------------------------------------------------------
# WORKFLOW AUDIT LOGS
# -------------------------------------------------------------------
@router.get("/audit-logs", response_model=List[AuditLogRead])
async def get_audit_logs(
    action: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    actor_role: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(require_admin),
):
    query = select(AuditLog).order_by(AuditLog.timestamp.desc()).limit(limit)

    if action:
        query = query.where(AuditLog.action == action)
    if category:
        query = query.where(AuditLog.category == category)
    if actor_role:
        query = query.where(AuditLog.actor_role == actor_role)
    if resource_id:
        query = query.where(AuditLog.resource_id == resource_id)

    result = await session.execute(query)
    return result.scalars().all()
