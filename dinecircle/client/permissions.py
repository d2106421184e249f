"""
Client-side permission consumer.

``PermissionsClient`` fetches the caller's ``PermissionContext`` from the API
once per (user, group) scope and answers ``can``/``can_any``/``can_all``
synchronously from that snapshot. The snapshot only ever confirms
capabilities the server returned; anything absent is re-asked through
``check_permission``. There is no cache shared between client instances.

``PermissionGate`` and ``with_permission`` are rendering guards built on it:
nothing renders while the snapshot is loading.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel

from dinecircle.shared.permissions.models import (
    Capability,
    PermissionCheck,
    PermissionContext,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

CapabilityLike = Union[Capability, str]

PERMISSIONS_PATH = "/api/auth/permissions"
CHECK_PERMISSION_PATH = "/api/auth/check-permission"


def _as_capability(capability: CapabilityLike) -> Optional[Capability]:
    try:
        return Capability(capability)
    except ValueError:
        return None


class CapabilityStates(BaseModel):
    permissions: dict[str, bool]
    loading: bool
    has_any: bool
    has_all: bool
    missing: list[str]


class PermissionsClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        user_id: Optional[str],
        group_id: Optional[str] = None,
    ) -> None:
        self.http = http
        self.user_id = user_id
        self.group_id = group_id
        self.permissions: Optional[PermissionContext] = None
        self.loading = True
        self._loaded_scope: Optional[tuple[Optional[str], Optional[str]]] = None

    async def load(self) -> Optional[PermissionContext]:
        """Fetch the snapshot unless the current scope is already loaded."""
        if self._loaded_scope != (self.user_id, self.group_id):
            await self.refetch()
        return self.permissions

    async def refetch(self) -> Optional[PermissionContext]:
        scope = (self.user_id, self.group_id)
        if not self.user_id:
            self.permissions = None
            self.loading = False
            self._loaded_scope = scope
            return None

        self.loading = True
        params = {"user_id": self.user_id}
        if self.group_id:
            params["group_id"] = self.group_id

        try:
            response = await self.http.get(PERMISSIONS_PATH, params=params)
            response.raise_for_status()
            self.permissions = PermissionContext.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch permissions: {e}")
            self.permissions = None
        finally:
            self.loading = False
            self._loaded_scope = scope

        return self.permissions

    async def set_scope(
        self, user_id: Optional[str], group_id: Optional[str] = None
    ) -> Optional[PermissionContext]:
        """Switch user or group; refetches only when the scope changed."""
        self.user_id = user_id
        self.group_id = group_id
        return await self.load()

    def can(self, capability: CapabilityLike) -> bool:
        if not self.permissions:
            return False
        value = _as_capability(capability)
        return value is not None and value in self.permissions.capabilities

    def can_any(self, capabilities: Iterable[CapabilityLike]) -> bool:
        return any(self.can(capability) for capability in capabilities)

    def can_all(self, capabilities: Iterable[CapabilityLike]) -> bool:
        return all(self.can(capability) for capability in capabilities)

    async def check_permission(self, capability: CapabilityLike) -> PermissionCheck:
        """
        Detailed check: trusts the snapshot for granted capabilities and asks
        the server about anything else.
        """
        name = capability.value if isinstance(capability, Capability) else capability
        if not self.user_id:
            return PermissionCheck(
                allowed=False,
                reason="User not authenticated",
                missing_capability=name,
            )

        if self.can(capability):
            return PermissionCheck(allowed=True)

        params = {"user_id": self.user_id, "capability": name}
        if self.group_id:
            params["group_id"] = self.group_id

        try:
            response = await self.http.get(CHECK_PERMISSION_PATH, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Permission check error: {e}")
            return PermissionCheck(
                allowed=False,
                reason="Unable to verify permissions",
                missing_capability=name,
            )

        if response.is_success:
            try:
                return PermissionCheck.model_validate(response.json())
            except ValueError:
                logger.error("Malformed permission check response")

        return PermissionCheck(
            allowed=False,
            reason="Permission check failed",
            missing_capability=name,
        )

    def capability_states(
        self, capabilities: list[CapabilityLike]
    ) -> CapabilityStates:
        states = {
            (c.value if isinstance(c, Capability) else c): self.can(c)
            for c in capabilities
        }
        return CapabilityStates(
            permissions=states,
            loading=self.loading,
            has_any=any(states.values()),
            has_all=all(states.values()),
            missing=[name for name, granted in states.items() if not granted],
        )

    # Convenience checks
    @property
    def can_create_group(self) -> bool:
        return self.can(Capability.CREATE_GROUP)

    @property
    def can_view_audit_log(self) -> bool:
        return self.can(Capability.VIEW_AUDIT_LOG)

    @property
    def can_manage_invites(self) -> bool:
        return self.can(Capability.MANAGE_INVITES)

    @property
    def can_edit_group(self) -> bool:
        return self.can(Capability.EDIT_GROUP)

    @property
    def can_manage_roles(self) -> bool:
        return self.can(Capability.MANAGE_ROLES)

    @property
    def can_invite_members(self) -> bool:
        return self.can(Capability.INVITE_MEMBER)

    @property
    def can_remove_members(self) -> bool:
        return self.can(Capability.REMOVE_MEMBER)

    @property
    def can_delete_group(self) -> bool:
        return self.can(Capability.DELETE_GROUP)

    @property
    def can_transfer_ownership(self) -> bool:
        return self.can(Capability.TRANSFER_OWNERSHIP)

    @property
    def can_post_review(self) -> bool:
        return self.can(Capability.POST_REVIEW)

    @property
    def can_manage_group(self) -> bool:
        return self.can_any(
            [Capability.EDIT_GROUP, Capability.MANAGE_ROLES, Capability.DELETE_GROUP]
        )

    @property
    def capabilities(self) -> list[Capability]:
        return list(self.permissions.capabilities) if self.permissions else []


def _render(value: Any, *args: Any, **kwargs: Any) -> Any:
    return value(*args, **kwargs) if callable(value) else value


class PermissionGate:
    """
    Declarative guard: renders ``children`` iff the capability check passes.

    A list of capabilities passes when any of them is held, or all of them
    with ``require_all=True``. A gate given a ``group_id`` denies unless the
    client is scoped to that same group.
    """

    def __init__(
        self,
        permissions: PermissionsClient,
        capability: Union[CapabilityLike, list[CapabilityLike]],
        require_all: bool = False,
        fallback: Any = None,
        group_id: Optional[str] = None,
    ) -> None:
        self.permissions = permissions
        self.capabilities = capability if isinstance(capability, list) else [capability]
        self.require_all = require_all
        self.fallback = fallback
        self.group_id = group_id

    def allows(self) -> bool:
        if self.permissions.loading:
            return False
        if self.group_id is not None and self.group_id != self.permissions.group_id:
            return False
        if self.require_all:
            return self.permissions.can_all(self.capabilities)
        return self.permissions.can_any(self.capabilities)

    def render(self, children: Any) -> Any:
        if self.permissions.loading:
            return None
        if not self.allows():
            return _render(self.fallback)
        return _render(children)


def with_permission(
    component: Callable[..., R],
    capability: CapabilityLike,
    fallback: Any = None,
) -> Callable[..., Optional[R]]:
    """
    Wrap a render function so it only runs for holders of ``capability``.

    The wrapped function takes the ``PermissionsClient`` as its first
    argument; a callable ``fallback`` receives the same remaining arguments.
    """

    @wraps(component)
    def wrapper(permissions: PermissionsClient, *args: Any, **kwargs: Any) -> Any:
        if permissions.loading:
            return None
        if not permissions.can(capability):
            return _render(fallback, *args, **kwargs)
        return component(*args, **kwargs)

    return wrapper
