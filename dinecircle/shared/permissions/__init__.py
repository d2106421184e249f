"""
Shared permission system for capability-based access control.

This module provides a centralized permission system that can be used
across all domains in the application. Capabilities are resolved live by
the external store on every check; nothing is cached server-side.

Usage:
    from dinecircle.shared.permissions import Capability, require_capability

    @router.get("/groups/{group_id}/resource")
    async def get_resource(
        user_id: str = Depends(require_capability(Capability.EDIT_GROUP))
    ):
        pass
"""

from .dependencies import get_permission_service, get_request_info, require_capability
from .models import (
    REQUIRED_ROLE_HINTS,
    Capability,
    GlobalRole,
    GroupRole,
    PermissionCheck,
    PermissionContext,
)
from .resolver import CapabilityResolver, SupabaseCapabilityResolver
from .services import (
    INSUFFICIENT_PERMISSIONS,
    PermissionDeniedError,
    PermissionService,
    can_user_perform_on_group,
    get_user_group_capabilities,
)

__all__ = [
    "Capability",
    "CapabilityResolver",
    "GlobalRole",
    "GroupRole",
    "INSUFFICIENT_PERMISSIONS",
    "PermissionCheck",
    "PermissionContext",
    "PermissionDeniedError",
    "PermissionService",
    "REQUIRED_ROLE_HINTS",
    "SupabaseCapabilityResolver",
    "can_user_perform_on_group",
    "get_permission_service",
    "get_request_info",
    "get_user_group_capabilities",
    "require_capability",
]
