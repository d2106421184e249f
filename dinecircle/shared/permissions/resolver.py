"""
Capability resolution against the external role store.

The role -> capability decision table lives in database functions. This
module only defines the calling contract and the Supabase RPC binding.
"""

from typing import Optional, Protocol

from supabase import AsyncClient

from dinecircle.core.database import execute


class CapabilityResolver(Protocol):
    """Contract for the external authority on roles and capabilities.

    Implementations may raise on any transport or store failure; callers
    are expected to fail closed.
    """

    async def resolve_capability(
        self, user_id: str, capability: str, group_id: Optional[str] = None
    ) -> bool: ...

    async def resolve_global_role(self, user_id: str) -> str: ...

    async def resolve_group_role(self, user_id: str, group_id: str) -> str: ...

    async def resolve_capability_set(
        self, user_id: str, group_id: Optional[str] = None
    ) -> list[str]: ...


class SupabaseCapabilityResolver:
    """Resolves capabilities through Supabase RPC functions. Never caches."""

    def __init__(self, db: AsyncClient):
        self.db = db

    async def resolve_capability(
        self, user_id: str, capability: str, group_id: Optional[str] = None
    ) -> bool:
        response = await execute(
            self.db.rpc(
                "can_user_perform",
                {
                    "user_id_param": user_id,
                    "capability_param": capability,
                    "group_id_param": group_id,
                },
            )
        )
        return response.data is True

    async def resolve_global_role(self, user_id: str) -> str:
        response = await execute(
            self.db.rpc("get_user_global_role", {"user_id_param": user_id})
        )
        return str(response.data)

    async def resolve_group_role(self, user_id: str, group_id: str) -> str:
        response = await execute(
            self.db.rpc(
                "get_user_group_role",
                {"user_id_param": user_id, "group_id_param": group_id},
            )
        )
        return str(response.data) if response.data else "none"

    async def resolve_capability_set(
        self, user_id: str, group_id: Optional[str] = None
    ) -> list[str]:
        response = await execute(
            self.db.rpc(
                "get_user_capabilities",
                {"user_id_param": user_id, "group_id_param": group_id},
            )
        )
        return [str(capability) for capability in response.data or []]
