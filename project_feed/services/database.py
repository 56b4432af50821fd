"""
Supabase database client.

Provides configured Supabase clients and a query helper that turns
backend failures into TransportError.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Any, Callable, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, Client, acreate_client, create_client

from project_feed.config import get_settings
from project_feed.services.errors import TransportError

logger = logging.getLogger(__name__)

# Type aliases for clarity
SupabaseClient = Client
AsyncSupabaseClient = AsyncClient

# PostgREST / Postgres error codes mapped onto HTTP-like statuses
_API_ERROR_STATUS = {
    "PGRST301": 401,
    "PGRST302": 401,
    "42501": 403,
    "PGRST116": 404,
}

_async_client: Optional[AsyncSupabaseClient] = None


def _resolve_key(use_service_role: bool) -> str:
    settings = get_settings()
    if use_service_role:
        if not settings.supabase_service_role_key:
            raise ValueError("SUPABASE_SERVICE_ROLE_KEY not configured")
        return settings.supabase_service_role_key
    return settings.supabase_anon_key


@lru_cache
def get_supabase_client(use_service_role: bool = False) -> SupabaseClient:
    """
    Get a cached Supabase client instance.

    Args:
        use_service_role: If True, use service role key for elevated permissions.
                         Should only be used for server-side operations.

    Returns:
        Configured Supabase client.

    Raises:
        ValueError: If required configuration is missing.
    """
    settings = get_settings()
    client = create_client(settings.supabase_url, _resolve_key(use_service_role))
    logger.info(
        f"Supabase client created (service_role={use_service_role})"
    )
    return client


async def get_async_supabase_client() -> AsyncSupabaseClient:
    """
    Get the shared async Supabase client.

    Realtime channels are only available on the async client.
    """
    global _async_client
    if _async_client is None:
        settings = get_settings()
        _async_client = await acreate_client(settings.supabase_url, _resolve_key(False))
        logger.info("Async Supabase client created for realtime")
    return _async_client


def execute_query(query: Any, action: str) -> Any:
    """
    Execute a PostgREST query builder.

    Args:
        query: Query builder returned by ``client.table(...)...``.
        action: Short description used in error messages.

    Raises:
        TransportError: If the backend call fails.
    """
    try:
        return query.execute()
    except APIError as e:
        status_code = _API_ERROR_STATUS.get(str(e.code or ""))
        logger.error(f"{action} failed: {e.message} (code={e.code})")
        raise TransportError(
            f"{action} failed: {e.message}",
            status_code=status_code,
            original=e,
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"{action} failed: {e}")
        raise TransportError(f"{action} failed: {e}", original=e) from e


def record_from_payload(payload: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Inserted row of a realtime postgres_changes payload, if any."""
    # payload shape differs between client versions
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]
    for key in ("new", "record"):
        if isinstance(payload.get(key), dict):
            return payload[key]
    return None


class CallbackTasks:
    """
    Runs realtime callbacks for one channel.

    Coroutine callbacks become tasks that are held until they finish;
    their failures are logged instead of being left on the loop.
    """

    def __init__(self, channel_name: str):
        self.channel_name = channel_name
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def run(self, callback: Callable[[Any], Any], value: Any) -> None:
        result = callback(value)
        if asyncio.iscoroutine(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Realtime callback failed on {self.channel_name}: {error}",
                exc_info=error,
            )

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()


async def check_database_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise.
    """
    settings = get_settings()
    try:
        client = get_supabase_client()
        execute_query(
            client.table(settings.projects_table).select("id").limit(1),
            "Connection check",
        )
        return True
    except (TransportError, ValueError) as e:
        logger.error(f"Database connection check failed: {e}")
        return False
