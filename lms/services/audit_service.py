# lms/services/audit_service.py

from uuid import UUID
from typing import Optional, Dict, Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from lms.models.audit import AuditLog, SecurityEvent
from lms.core.database import AsyncSessionLocal


# Runs in its own session so it can be queued as a BackgroundTask
# after the request session is gone.
async def log_activity(
    action: str,
    actor_id: Optional[UUID],
    actor_role: Optional[str] = None,
    actor_name: Optional[str] = None,
    category: str = "other",
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    remarks: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
):
    """
    Creates an audit log entry in a separate DB session.
    Safe for use in BackgroundTasks.
    """
    async with AsyncSessionLocal() as session:
        try:
            log_entry = AuditLog(
                actor_id=actor_id,
                actor_role=actor_role,
                actor_name=actor_name,
                action=action,
                category=category,
                resource_type=resource_type,
                resource_id=str(resource_id) if resource_id is not None else None,
                remarks=remarks,
                details=details or {}
            )

            session.add(log_entry)
            await session.commit()

        except Exception as e:
            # never take the worker down over an audit row
            logger.error(f"Audit log write failed for {action}: {e}")
            await session.rollback()


async def record_security_event(
    session: AsyncSession,
    event_type: str,
    user_id: Optional[UUID] = None,
    user_role: Optional[str] = None,
    client_timestamp: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> SecurityEvent:
    event = SecurityEvent(
        user_id=user_id,
        user_role=user_role,
        event_type=event_type,
        client_timestamp=client_timestamp,
        ip_address=ip_address,
        user_agent=user_agent,
        details=details or {},
    )
    session.add(event)
    await session.commit()
    await session.refresh(event)

    logger.warning(
        f"Security attempt '{event_type}' by user={user_id} role={user_role} "
        f"ip={ip_address} ua={user_agent}"
    )
    return event
