from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Capability(str, Enum):
    """
    Defines all capabilities available in the system.

    Capabilities are the only unit of authorization. Which role grants which
    capability is decided by the external resolver, never in this codebase.
    """

    # Global (system-wide) capabilities
    CREATE_GROUP = "create_group"  # Create new groups
    MANAGE_ANY_GROUP = "manage_any_group"  # Act on groups without membership
    VIEW_AUDIT_LOG = "view_audit_log"  # Read the audit trail
    MANAGE_INVITES = "manage_invites"  # Manage signup invite codes

    # Group-scoped capabilities
    MANAGE_ROLES = "manage_roles"  # Change member roles
    REMOVE_MEMBER = "remove_member"  # Remove members from a group
    EDIT_GROUP = "edit_group"  # Update group name and description
    DELETE_GROUP = "delete_group"  # Delete the group
    TRANSFER_OWNERSHIP = "transfer_ownership"  # Hand the group to another member
    INVITE_MEMBER = "invite_member"  # Generate invite codes for the group
    POST_REVIEW = "post_review"  # Publish reviews


class GlobalRole(str, Enum):
    admin = "admin"
    user = "user"


class GroupRole(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"
    none = "none"


class PermissionContext(BaseModel):
    """Read-only snapshot of what a user may do, optionally within a group."""

    user_id: str
    global_role: GlobalRole = GlobalRole.user
    group_role: Optional[GroupRole] = None
    group_id: Optional[str] = None
    capabilities: list[Capability] = Field(default_factory=list)

    model_config = {"frozen": True}


class PermissionCheck(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    required_role: Optional[str] = None
    missing_capability: Optional[str] = None


class RoleHint(BaseModel):
    required_role: str
    reason: str


_GLOBAL_ADMIN = "Global Admin"
_GROUP_OWNER_OR_ADMIN = "Group Owner or Admin"
_GROUP_OWNER = "Group Owner"

# Denial text shown to users. Not consulted for authorization decisions.
REQUIRED_ROLE_HINTS: dict[Capability, RoleHint] = {
    Capability.CREATE_GROUP: RoleHint(
        required_role=_GLOBAL_ADMIN,
        reason="Only global administrators can create new groups",
    ),
    Capability.MANAGE_ANY_GROUP: RoleHint(
        required_role=_GLOBAL_ADMIN,
        reason="Global administrator privileges required",
    ),
    Capability.VIEW_AUDIT_LOG: RoleHint(
        required_role=_GLOBAL_ADMIN,
        reason="Global administrator privileges required",
    ),
    Capability.MANAGE_INVITES: RoleHint(
        required_role=_GLOBAL_ADMIN,
        reason="Global administrator privileges required",
    ),
    Capability.MANAGE_ROLES: RoleHint(
        required_role=_GROUP_OWNER_OR_ADMIN,
        reason="Group owner or admin role required within this group",
    ),
    Capability.REMOVE_MEMBER: RoleHint(
        required_role=_GROUP_OWNER_OR_ADMIN,
        reason="Group owner or admin role required within this group",
    ),
    Capability.EDIT_GROUP: RoleHint(
        required_role=_GROUP_OWNER_OR_ADMIN,
        reason="Group owner or admin role required within this group",
    ),
    Capability.DELETE_GROUP: RoleHint(
        required_role=_GROUP_OWNER,
        reason="Group owner role required",
    ),
    Capability.TRANSFER_OWNERSHIP: RoleHint(
        required_role=_GROUP_OWNER,
        reason="Group owner role required",
    ),
}
