# dinecircle/domains/groups/service.py
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from supabase import AsyncClient

from dinecircle.core.database import execute
from dinecircle.core.settings import settings
from dinecircle.domains.groups.models import (
    CreateGroupResponse,
    GroupCreate,
    GroupUpdate,
    GroupUpdateResponse,
    InviteCode,
    InviteCodeResponse,
    RemoveMemberResponse,
    UpdateRoleRequest,
    UpdateRoleResponse,
)
from dinecircle.shared.audit import AuditContext, AuditService
from dinecircle.shared.exceptions import (
    ExternalServiceError,
    GroupNotFoundError,
    InvalidDataError,
    MembershipNotFoundError,
)
from dinecircle.shared.permissions import Capability, GroupRole, PermissionService

logger = logging.getLogger(__name__)

INVITE_CODE_MAX_ATTEMPTS = 10


def generate_invite_code() -> str:
    """Random 6-digit numeric code."""
    return f"{secrets.randbelow(900000) + 100000}"


class GroupService:
    """
    Sensitive group mutations.

    Each operation checks its capability before touching the store, applies
    the write, and only then records the audit entry.
    """

    def __init__(
        self, db: AsyncClient, permissions: PermissionService, audit: AuditService
    ):
        self.db = db
        self.permissions = permissions
        self.audit = audit

    async def create_group(
        self, context: AuditContext, data: GroupCreate
    ) -> CreateGroupResponse:
        await self.permissions.ensure_can(context.actor_id, Capability.CREATE_GROUP)

        result = await self._rpc(
            "create_group_and_add_owner",
            {
                "group_name": data.name,
                "group_description": data.description,
                "owner_user_id": context.actor_id,
            },
            "Failed to create group",
        )
        group_id = str(result["group_id"])

        audit_id = await self.audit.log_group_created(
            context, group_id, data.name, data.description
        )
        return CreateGroupResponse(
            success=True,
            group_id=group_id,
            audit_id=audit_id,
            message=result.get("message") or "Group created successfully",
        )

    async def update_group(
        self, context: AuditContext, group_id: str, data: GroupUpdate
    ) -> GroupUpdateResponse:
        """
        Update group name and/or description.

        Only fields that actually change are written and audited, as
        ``{field: {"from": old, "to": new}}``.
        """
        await self.permissions.ensure_can(
            context.actor_id, Capability.EDIT_GROUP, group_id
        )

        current = await self._first(
            self.db.table("groups")
            .select("name, description")
            .eq("id", group_id)
            .limit(1),
            "Failed to load group",
        )
        if not current:
            raise GroupNotFoundError()

        updates = data.model_dump(exclude_unset=True)
        changes = {
            field: {"from": current.get(field), "to": value}
            for field, value in updates.items()
            if value != current.get(field)
        }
        if not changes:
            return GroupUpdateResponse(success=True, message="No changes to apply")

        updated = await self._first(
            self.db.table("groups")
            .update({field: change["to"] for field, change in changes.items()})
            .eq("id", group_id),
            "Failed to update group",
        )

        audit_id = await self.audit.log_group_updated(context, group_id, changes)
        return GroupUpdateResponse(
            success=True,
            group=updated,
            audit_id=audit_id,
            message="Group updated successfully",
        )

    async def change_member_role(
        self,
        context: AuditContext,
        group_id: str,
        target_user_id: str,
        request: UpdateRoleRequest,
    ) -> UpdateRoleResponse:
        """
        Change a member's role, or transfer ownership when the new role is owner.

        Ownership moves through a single RPC so the group never has two
        owners or none.
        """
        actor_id = context.actor_id
        await self.permissions.ensure_can(actor_id, Capability.MANAGE_ROLES, group_id)
        transferring = request.new_role == GroupRole.owner.value
        if transferring:
            await self.permissions.ensure_can(
                actor_id, Capability.TRANSFER_OWNERSHIP, group_id
            )
            if target_user_id == actor_id:
                raise InvalidDataError("You already own this group")

        old_role = await self._member_role(group_id, target_user_id)
        if old_role == GroupRole.owner.value and not transferring:
            raise InvalidDataError(
                "Transfer ownership before changing the owner's role"
            )

        if transferring:
            result = await self._rpc(
                "transfer_group_ownership",
                {
                    "group_id_param": group_id,
                    "current_owner_id": actor_id,
                    "new_owner_id": target_user_id,
                },
                "Failed to transfer ownership",
            )
            audit_id = await self.audit.log_ownership_transferred(
                context, target_user_id, group_id, request.reason
            )
            return UpdateRoleResponse(
                success=True,
                old_role=old_role,
                new_role=GroupRole.owner.value,
                audit_id=audit_id,
                message=result.get("message") or "Ownership transferred",
            )

        result = await self._rpc(
            "update_group_role",
            {
                "target_user_id": target_user_id,
                "group_id_param": group_id,
                "new_role_param": request.new_role,
            },
            "Failed to update role",
        )
        audit_id = await self.audit.log_role_changed(
            context,
            target_user_id,
            group_id,
            old_role=old_role,
            new_role=request.new_role,
            reason=request.reason,
        )
        return UpdateRoleResponse(
            success=True,
            old_role=old_role,
            new_role=request.new_role,
            audit_id=audit_id,
            message=result.get("message") or "Role updated",
        )

    async def remove_member(
        self,
        context: AuditContext,
        group_id: str,
        target_user_id: str,
        reason: Optional[str] = None,
    ) -> RemoveMemberResponse:
        await self.permissions.ensure_can(
            context.actor_id, Capability.REMOVE_MEMBER, group_id
        )

        if target_user_id == context.actor_id:
            raise InvalidDataError("Cannot remove yourself from the group")

        removed_role = await self._member_role(group_id, target_user_id)
        if removed_role == GroupRole.owner.value:
            raise InvalidDataError("Cannot remove the group owner")

        try:
            await execute(
                self.db.table("user_groups")
                .delete()
                .eq("user_id", target_user_id)
                .eq("group_id", group_id)
            )
        except Exception:
            logger.error(
                f"Error removing {target_user_id} from group {group_id}",
                exc_info=True,
            )
            raise ExternalServiceError("Failed to remove member")

        audit_id = await self.audit.log_member_removed(
            context, target_user_id, group_id, removed_role, reason
        )
        return RemoveMemberResponse(
            success=True,
            removed_role=removed_role,
            audit_id=audit_id,
            message="Member removed",
        )

    async def generate_invite_code(
        self, context: AuditContext, group_id: str
    ) -> InviteCodeResponse:
        await self.permissions.ensure_can(
            context.actor_id, Capability.INVITE_MEMBER, group_id
        )

        code = await self._unique_code()
        expires_at = datetime.now(timezone.utc) + timedelta(
            days=settings.INVITE_CODE_TTL_DAYS
        )
        row = await self._first(
            self.db.table("invite_codes").insert(
                {
                    "code": code,
                    "group_id": group_id,
                    "max_uses": settings.INVITE_CODE_MAX_USES,
                    "current_uses": 0,
                    "is_active": True,
                    "expires_at": expires_at.isoformat(),
                    "created_by": context.actor_id,
                }
            ),
            "Failed to create invite code",
        )
        if not row:
            raise ExternalServiceError("Failed to create invite code")

        audit_id = await self.audit.log_invite_code_generated(
            context, str(row["id"]), code, group_id
        )
        return InviteCodeResponse(
            success=True,
            inviteCode=InviteCode(
                id=str(row["id"]),
                code=row["code"],
                maxUses=row["max_uses"],
                currentUses=row["current_uses"],
                expiresAt=row["expires_at"],
                createdAt=row.get("created_at"),
                usesRemaining=row["max_uses"] - row["current_uses"],
            ),
            audit_id=audit_id,
        )

    async def _unique_code(self) -> str:
        for _ in range(INVITE_CODE_MAX_ATTEMPTS):
            code = generate_invite_code()
            existing = await self._first(
                self.db.table("invite_codes").select("id").eq("code", code).limit(1),
                "Failed to generate invite code",
            )
            if not existing:
                return code
        raise ExternalServiceError(
            "Failed to generate unique invite code. Please try again."
        )

    async def _member_role(self, group_id: str, user_id: str) -> str:
        membership = await self._first(
            self.db.table("user_groups")
            .select("role")
            .eq("user_id", user_id)
            .eq("group_id", group_id)
            .limit(1),
            "Failed to load membership",
        )
        if not membership:
            raise MembershipNotFoundError()
        return str(membership["role"])

    async def _first(self, query: Any, message: str) -> Optional[dict[str, Any]]:
        try:
            response = await execute(query)
        except Exception:
            logger.error(message, exc_info=True)
            raise ExternalServiceError(message)
        rows = response.data or []
        return rows[0] if rows else None

    async def _rpc(
        self, name: str, params: dict[str, Any], message: str
    ) -> dict[str, Any]:
        """Run a mutation RPC that answers ``{success, message, ...}``."""
        try:
            response = await execute(self.db.rpc(name, params))
        except Exception:
            logger.error(f"{name} failed", exc_info=True)
            raise ExternalServiceError(message)

        result = response.data or {}
        if not result.get("success"):
            logger.error(f"{name} rejected: {result.get('message')}")
            raise ExternalServiceError(result.get("message") or message)
        return result
