import asyncio
import logging
from typing import Any, Optional, Union

from fastapi import HTTPException, status

from .models import (
    REQUIRED_ROLE_HINTS,
    Capability,
    GlobalRole,
    GroupRole,
    PermissionCheck,
    PermissionContext,
)
from .resolver import CapabilityResolver

logger = logging.getLogger(__name__)

CapabilityLike = Union[Capability, str]

INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"


class PermissionDeniedError(HTTPException):
    """Raised by ``PermissionService.ensure_can`` when a capability is missing."""

    code = INSUFFICIENT_PERMISSIONS

    def __init__(self, capability: str, group_id: Optional[str] = None) -> None:
        self.capability = capability
        self.context = {"group_id": group_id} if group_id else None
        message = f"Insufficient permissions: {capability} capability required"
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "Insufficient permissions",
                "message": message,
                "code": self.code,
                "capability": capability,
            },
        )


def _capability_value(capability: CapabilityLike) -> str:
    """Normalize to the wire value, rejecting names outside the enum."""
    return Capability(capability).value


class PermissionService:
    """
    Capability-based access checks backed by the external resolver.

    Every method is total except ``ensure_can``: resolver errors, timeouts and
    malformed capability names are logged and turned into the safest denial
    for the method's return type.
    """

    def __init__(self, resolver: CapabilityResolver):
        self.resolver = resolver

    async def can(
        self,
        user_id: str,
        capability: CapabilityLike,
        group_id: Optional[str] = None,
    ) -> bool:
        """
        Check if a user has a specific capability.

        Args:
            user_id: The user to check
            capability: Capability to check
            group_id: Group scope for group-level capabilities

        Returns:
            True only when the resolver positively confirms the capability
        """
        try:
            value = _capability_value(capability)
            allowed = await self.resolver.resolve_capability(user_id, value, group_id)
        except Exception:
            logger.error(
                f"Permission check failed for user {user_id}, "
                f"capability {capability!r}, group {group_id}; denying",
                exc_info=True,
            )
            return False

        return allowed is True

    async def ensure_can(
        self,
        user_id: str,
        capability: CapabilityLike,
        group_id: Optional[str] = None,
    ) -> None:
        """
        Require a capability before a mutation.

        Raises:
            PermissionDeniedError: If the user lacks the capability
        """
        if not await self.can(user_id, capability, group_id):
            value = (
                capability.value
                if isinstance(capability, Capability)
                else str(capability)
            )
            logger.warning(f"Denied {value} for user {user_id} (group {group_id})")
            raise PermissionDeniedError(value, group_id)

    async def get_user_permissions(
        self, user_id: str, group_id: Optional[str] = None
    ) -> PermissionContext:
        """
        Get the user's complete permission context.

        The global role, group role and capability set are fetched
        concurrently. A failing call degrades only its own field.
        """
        try:
            group_role_call: Any = (
                self.resolver.resolve_group_role(user_id, group_id)
                if group_id
                else _no_group_role()
            )
            global_role, group_role, capabilities = await asyncio.gather(
                self.resolver.resolve_global_role(user_id),
                group_role_call,
                self.resolver.resolve_capability_set(user_id, group_id),
                return_exceptions=True,
            )
        except Exception:
            logger.error(
                f"Permission context lookup failed for user {user_id}", exc_info=True
            )
            return _snapshot(user_id, group_id)

        return _snapshot(
            user_id,
            group_id,
            global_role=self._parse_global_role(user_id, global_role),
            group_role=self._parse_group_role(user_id, group_role),
            capabilities=self._parse_capabilities(user_id, capabilities),
        )

    async def check_capabilities(
        self,
        user_id: str,
        capabilities: list[CapabilityLike],
        group_id: Optional[str] = None,
    ) -> dict[str, bool]:
        """
        Check several capabilities at once.

        Returns:
            Mapping with exactly one boolean per requested capability,
            in request order
        """
        keys = [
            c.value if isinstance(c, Capability) else str(c) for c in capabilities
        ]
        results = await asyncio.gather(
            *(self.can(user_id, capability, group_id) for capability in capabilities)
        )
        return dict(zip(keys, results))

    async def check_permission(
        self,
        user_id: str,
        capability: CapabilityLike,
        group_id: Optional[str] = None,
    ) -> PermissionCheck:
        """Detailed permission check with a human-readable denial reason."""
        name = capability.value if isinstance(capability, Capability) else capability
        try:
            if await self.can(user_id, capability, group_id):
                return PermissionCheck(allowed=True)

            hint = None
            if name in Capability._value2member_map_:
                hint = REQUIRED_ROLE_HINTS.get(Capability(name))

            if hint:
                return PermissionCheck(
                    allowed=False,
                    reason=hint.reason,
                    required_role=hint.required_role,
                    missing_capability=name,
                )
            return PermissionCheck(
                allowed=False,
                reason=f"{name} capability not available to current user",
                missing_capability=name,
            )
        except Exception:
            logger.error(f"Detailed permission check failed for {name}", exc_info=True)
            return PermissionCheck(
                allowed=False,
                reason="Unable to verify permissions",
                missing_capability=name,
            )

    async def is_global_admin(self, user_id: str) -> bool:
        return await self.can(user_id, Capability.CREATE_GROUP)

    async def is_group_owner(self, user_id: str, group_id: str) -> bool:
        return await self.can(user_id, Capability.DELETE_GROUP, group_id)

    async def is_group_admin(self, user_id: str, group_id: str) -> bool:
        """Owners pass too: both hold manage_roles."""
        return await self.can(user_id, Capability.MANAGE_ROLES, group_id)

    def _parse_global_role(self, user_id: str, value: Any) -> GlobalRole:
        if isinstance(value, BaseException):
            logger.error(
                f"Global role lookup failed for user {user_id}", exc_info=value
            )
            return GlobalRole.user
        try:
            return GlobalRole(value)
        except ValueError:
            logger.warning(f"Unknown global role {value!r} for user {user_id}")
            return GlobalRole.user

    def _parse_group_role(self, user_id: str, value: Any) -> Optional[GroupRole]:
        if value is None:
            return None
        if isinstance(value, BaseException):
            logger.error(f"Group role lookup failed for user {user_id}", exc_info=value)
            return None
        try:
            role = GroupRole(value)
        except ValueError:
            logger.warning(f"Unknown group role {value!r} for user {user_id}")
            return None
        return None if role is GroupRole.none else role

    def _parse_capabilities(self, user_id: str, value: Any) -> list[Capability]:
        if isinstance(value, BaseException):
            logger.error(
                f"Capability set lookup failed for user {user_id}", exc_info=value
            )
            return []
        if not isinstance(value, (list, tuple)):
            if value is not None:
                logger.warning(f"Unexpected capability set {value!r} for user {user_id}")
            return []
        capabilities = []
        for item in value:
            try:
                capabilities.append(Capability(item))
            except ValueError:
                logger.warning(f"Ignoring unknown capability {item!r}")
        return capabilities


async def _no_group_role() -> None:
    return None


def _snapshot(user_id: Any, group_id: Any, **fields: Any) -> PermissionContext:
    """Context keyed by the ids as strings, whatever the caller passed."""
    return PermissionContext(
        user_id="" if user_id is None else str(user_id),
        group_id=None if group_id is None else str(group_id),
        **fields,
    )


async def get_user_group_capabilities(
    service: PermissionService, user_id: str, group_id: Optional[str] = None
) -> list[Capability]:
    """Get the capabilities a user holds, optionally within a group."""
    permissions = await service.get_user_permissions(user_id, group_id)
    return permissions.capabilities


async def can_user_perform_on_group(
    service: PermissionService, user_id: str, capability: Capability, group_id: str
) -> bool:
    return await service.can(user_id, capability, group_id)
