from typing import Awaitable, Callable, Optional

from fastapi import Depends, Request
from supabase import AsyncClient

from dinecircle.core.database import get_db
from dinecircle.domains.auth.dependencies import get_current_user_id

from .models import Capability
from .resolver import SupabaseCapabilityResolver
from .services import PermissionService


async def get_permission_service(
    db: AsyncClient = Depends(get_db),
) -> PermissionService:
    """Permission service bound to the Supabase capability resolver."""
    return PermissionService(SupabaseCapabilityResolver(db))


def require_capability(
    capability: Capability,
) -> Callable[..., Awaitable[str]]:
    """
    Dependency factory for capability-based authorization.

    Creates a dependency that validates the current user holds the
    capability, scoped to the ``group_id`` path parameter when the route
    has one.

    Args:
        capability: The capability required to access the endpoint

    Returns:
        Async dependency function that validates the capability and returns
        the current user id
    """

    async def check_capability(
        request: Request,
        user_id: str = Depends(get_current_user_id),
        permissions: PermissionService = Depends(get_permission_service),
    ) -> str:
        """
        Raises:
            PermissionDeniedError: If the user lacks the capability
        """
        group_id: Optional[str] = request.path_params.get("group_id")
        await permissions.ensure_can(user_id, capability, group_id)
        return user_id

    return check_capability


def get_request_info(request: Request) -> dict[str, str]:
    """Extract client ip and user agent for audit entries."""
    return {
        "ip": request.headers.get("x-forwarded-for")
        or request.headers.get("x-real-ip")
        or "unknown",
        "user_agent": request.headers.get("user-agent") or "unknown",
    }
