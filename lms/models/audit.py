# lms/models/audit.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, DateTime
from typing import Optional, Dict, Any
from uuid import UUID, uuid4
from datetime import datetime

from lms.models.user import utcnow


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    actor_id: Optional[UUID] = Field(default=None, foreign_key="users.id")
    actor_role: Optional[str] = None

    # Snapshot so the log survives user renames/deletes
    actor_name: Optional[str] = None

    # e.g. SUBMIT / APPROVE / REJECT / LAUNCH / USER_CREATED
    action: str = Field(index=True)
    category: str = Field(default="other", index=True)

    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    remarks: Optional[str] = None

    # {"course_title": "...", "version": 2, "item_count": 14}
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    timestamp: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )


class SecurityEvent(SQLModel, table=True):
    """Client reported security attempts (devtools, copy, screen capture...)."""
    __tablename__ = "security_events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: Optional[UUID] = Field(default=None, foreign_key="users.id")
    user_role: Optional[str] = None

    event_type: str = Field(index=True)
    client_timestamp: Optional[str] = None

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    timestamp: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
