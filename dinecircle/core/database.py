# dinecircle/core/database.py
import asyncio
from typing import Any

from supabase import AsyncClient, acreate_client

from dinecircle.core.settings import settings

# Global Supabase client, created in the app lifespan
_client: AsyncClient | None = None


async def connect() -> AsyncClient:
    """Create the shared Supabase client using the service role key."""
    global _client
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise ValueError("Supabase configuration is required")
    _client = await acreate_client(
        settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
    )
    return _client


async def disconnect() -> None:
    global _client
    _client = None


async def get_db() -> AsyncClient:
    """Database dependency for FastAPI dependency injection."""
    if _client is None:
        raise RuntimeError("Supabase client is not connected")
    return _client


async def execute(query: Any, timeout: float | None = None) -> Any:
    """
    Execute a PostgREST query or RPC builder with a bounded wait.

    Raises:
        asyncio.TimeoutError: If the store does not answer in time
        postgrest.exceptions.APIError: If the store rejects the request
    """
    return await asyncio.wait_for(
        query.execute(),
        timeout=timeout if timeout is not None else settings.EXTERNAL_CALL_TIMEOUT,
    )
