"""Service-role Supabase client singleton."""

import asyncio
from functools import partial
from typing import Any, Callable

from supabase import create_client, Client
from tailorhub.config import settings

_client: Client | None = None


def get_supabase() -> Client:
    """Get or create the Supabase client using service role key."""
    global _client
    if _client is None:
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set"
            )
        _client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )
    return _client


async def run_sync(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking Supabase call in the default thread executor.

    The supabase client is synchronous; every adapter goes through here
    so the event loop keeps serving requests while PostgREST/Storage answer.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(fn, *args, **kwargs))
