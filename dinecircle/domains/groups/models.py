# dinecircle/domains/groups/models.py
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

GROUP_NAME_MAX_LENGTH = 100


class GroupCreate(BaseModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Group name is required")
        if len(v) > GROUP_NAME_MAX_LENGTH:
            raise ValueError("Group name must be 100 characters or less")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class GroupUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Group name cannot be empty")
        if len(v) > GROUP_NAME_MAX_LENGTH:
            raise ValueError("Group name must be 100 characters or less")
        return v

    @model_validator(mode="after")
    def validate_has_update(self) -> "GroupUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class CreateGroupResponse(BaseModel):
    success: bool
    group_id: str
    audit_id: Optional[str] = None
    message: str


class GroupUpdateResponse(BaseModel):
    success: bool
    group: Optional[dict[str, Any]] = None
    audit_id: Optional[str] = None
    message: str


class UpdateRoleRequest(BaseModel):
    new_role: Literal["member", "admin", "owner"]
    reason: Optional[str] = None


class UpdateRoleResponse(BaseModel):
    success: bool
    old_role: str
    new_role: str
    audit_id: Optional[str] = None
    message: str


class RemoveMemberResponse(BaseModel):
    success: bool
    removed_role: str
    audit_id: Optional[str] = None
    message: str


class InviteCode(BaseModel):
    id: str
    code: str
    maxUses: int
    currentUses: int
    expiresAt: datetime
    createdAt: Optional[datetime] = None
    usesRemaining: int


class InviteCodeResponse(BaseModel):
    success: bool
    inviteCode: InviteCode
    audit_id: Optional[str] = None
    message: str = Field("Invite code generated successfully")
