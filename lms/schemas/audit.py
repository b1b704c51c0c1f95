from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from uuid import UUID
from datetime import datetime


class AuditLogRead(BaseModel):
    id: UUID
    action: str
    category: str
    actor_id: Optional[UUID] = None
    actor_role: Optional[str] = None
    actor_name: Optional[str] = None

    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    remarks: Optional[str] = None
    details: Dict[str, Any] = {}
    timestamp: datetime

    class Config:
        from_attributes = True


class SecurityEventRead(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    user_role: Optional[str] = None
    event_type: str
    client_timestamp: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Dict[str, Any] = {}
    timestamp: datetime

    class Config:
        from_attributes = True


# -------------------------------------------------------------------
# CLIENT REPORTED SECURITY ATTEMPT
# -------------------------------------------------------------------
class SecurityAttemptRequest(BaseModel):
    type: str = Field(min_length=1, max_length=64)
    timestamp: Optional[str] = None
    user_agent: Optional[str] = Field(default=None, max_length=512)
    details: Dict[str, Any] = {}
