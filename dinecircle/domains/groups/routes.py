# dinecircle/domains/groups/routes.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from supabase import AsyncClient

from dinecircle.core.database import get_db
from dinecircle.domains.auth.dependencies import get_current_user_id
from dinecircle.domains.groups.models import (
    CreateGroupResponse,
    GroupCreate,
    GroupUpdate,
    GroupUpdateResponse,
    InviteCodeResponse,
    RemoveMemberResponse,
    UpdateRoleRequest,
    UpdateRoleResponse,
)
from dinecircle.domains.groups.service import GroupService
from dinecircle.shared.audit import AuditService, create_audit_context
from dinecircle.shared.permissions import PermissionService, get_permission_service

router = APIRouter(prefix="/groups", tags=["Groups"])


def get_group_service(
    db: AsyncClient = Depends(get_db),
    permissions: PermissionService = Depends(get_permission_service),
) -> GroupService:
    return GroupService(db, permissions, AuditService(db))


@router.post(
    "",
    response_model=CreateGroupResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="createGroup",
)
async def create_group(
    request: Request,
    group_data: GroupCreate,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
) -> CreateGroupResponse:
    """
    Create a new group with the caller as owner.

    Requires the create_group capability (global administrators).
    """
    return await service.create_group(
        create_audit_context(request, user_id), group_data
    )


@router.patch(
    "/{group_id}",
    response_model=GroupUpdateResponse,
    operation_id="updateGroup",
)
async def update_group(
    request: Request,
    group_id: str,
    updates: GroupUpdate,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
) -> GroupUpdateResponse:
    """Update a group's name or description (owner or admin)."""
    return await service.update_group(
        create_audit_context(request, user_id), group_id, updates
    )


@router.patch(
    "/{group_id}/members/{member_id}/role",
    response_model=UpdateRoleResponse,
    operation_id="updateMemberRole",
)
async def update_member_role(
    request: Request,
    group_id: str,
    member_id: str,
    body: UpdateRoleRequest,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
) -> UpdateRoleResponse:
    """
    Update a member's role within a group.

    Business rules:
    - Requires manage_roles in the group
    - Setting the role to owner transfers ownership and also requires
      transfer_ownership
    - The owner's role cannot be changed except by transferring ownership
    """
    return await service.change_member_role(
        create_audit_context(request, user_id), group_id, member_id, body
    )


@router.delete(
    "/{group_id}/members/{member_id}",
    response_model=RemoveMemberResponse,
    operation_id="removeGroupMember",
)
async def remove_group_member(
    request: Request,
    group_id: str,
    member_id: str,
    reason: Optional[str] = Query(None, description="Why the member is removed"),
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
) -> RemoveMemberResponse:
    """Remove a member from a group (owner or admin)."""
    return await service.remove_member(
        create_audit_context(request, user_id), group_id, member_id, reason
    )


@router.post(
    "/{group_id}/invite-code",
    response_model=InviteCodeResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="generateInviteCode",
)
async def generate_invite_code(
    request: Request,
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service),
) -> InviteCodeResponse:
    """Generate a 6-digit invite code for the group."""
    return await service.generate_invite_code(
        create_audit_context(request, user_id), group_id
    )
