from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    GROUP_CREATED = "group_created"
    GROUP_UPDATED = "group_updated"
    ROLE_CHANGED = "role_changed"
    MEMBER_REMOVED = "member_removed"
    INVITE_CODE_GENERATED = "invite_code_generated"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"


class AuditTargetType(str, Enum):
    USER = "user"
    GROUP = "group"
    INVITE_CODE = "invite_code"


class AuditUserInfo(BaseModel):
    """Display info joined onto an entry at read time."""

    id: str
    name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None


class AuditGroupInfo(BaseModel):
    id: str
    name: Optional[str] = None


class AuditLogEntry(BaseModel):
    """Immutable audit record as stored, plus view-time display joins."""

    id: str
    actor_id: str
    action: str
    target_type: str
    target_id: str
    group_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    actor: Optional[AuditUserInfo] = None
    group: Optional[AuditGroupInfo] = None
    target_user: Optional[AuditUserInfo] = None

    model_config = {"frozen": True}


class AuditLogFilters(BaseModel):
    action: Optional[AuditAction] = None
    actor_id: Optional[str] = None
    group_id: Optional[str] = None
    target_type: Optional[AuditTargetType] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    limit: int = Field(50, ge=1)
    offset: int = Field(0, ge=0)


class AuditLogResponse(BaseModel):
    entries: list[AuditLogEntry] = Field(default_factory=list)
    count: int = 0
    has_more: bool = False


class AuditStatsRequest(BaseModel):
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    group_id: Optional[str] = None


class AuditStats(BaseModel):
    total_events: int = 0
    events_by_action: dict[str, int] = Field(default_factory=dict)
    recent_activity: list[AuditLogEntry] = Field(default_factory=list)
