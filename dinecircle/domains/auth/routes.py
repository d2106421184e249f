# dinecircle/domains/auth/routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dinecircle.domains.auth.dependencies import get_current_user_id
from dinecircle.shared.exceptions import InvalidDataError, NotAuthorizedError
from dinecircle.shared.permissions import (
    PermissionCheck,
    PermissionContext,
    PermissionService,
    get_permission_service,
)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _ensure_self(current_user_id: str, user_id: Optional[str]) -> None:
    # Permission snapshots are only served for the caller themselves
    if user_id and user_id != current_user_id:
        raise NotAuthorizedError("Cannot inspect another user's permissions")


@router.get(
    "/permissions",
    response_model=PermissionContext,
    operation_id="getPermissions",
)
async def get_permissions(
    user_id: Optional[str] = Query(None, description="Must match the caller"),
    group_id: Optional[str] = Query(None, description="Group scope"),
    current_user_id: str = Depends(get_current_user_id),
    permissions: PermissionService = Depends(get_permission_service),
) -> PermissionContext:
    """
    Get the caller's permission context and capabilities.

    Always answers; lookups that fail degrade to the least privileged value.
    """
    _ensure_self(current_user_id, user_id)
    return await permissions.get_user_permissions(current_user_id, group_id)


@router.get(
    "/check-permission",
    response_model=PermissionCheck,
    operation_id="checkPermission",
)
async def check_permission(
    capability: Optional[str] = Query(None, description="Capability to check"),
    user_id: Optional[str] = Query(None, description="Must match the caller"),
    group_id: Optional[str] = Query(None, description="Group scope"),
    current_user_id: str = Depends(get_current_user_id),
    permissions: PermissionService = Depends(get_permission_service),
) -> PermissionCheck:
    """
    Check a specific capability with detailed reasoning.

    Unknown capability names are denied rather than rejected.
    """
    if not capability:
        raise InvalidDataError("Capability parameter is required")
    _ensure_self(current_user_id, user_id)
    return await permissions.check_permission(current_user_id, capability, group_id)
