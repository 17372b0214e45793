import threading

from supabase import AsyncClient, Client, acreate_client, create_client

from app.core.config import settings

# Thread-local storage for Supabase client to avoid connection pool sharing issues
_thread_local = threading.local()

_async_client: AsyncClient | None = None


def _require_credentials() -> None:
    if not settings.supabase_url or not settings.supabase_secret_key:
        raise RuntimeError(
            "Supabase credentials not configured. "
            "Set SUPABASE_URL and SUPABASE_SECRET_KEY environment variables."
        )


def get_supabase_client() -> Client:
    """Get a thread-local Supabase client using the service-role key.

    Each worker thread gets its own client so pooled HTTP/2 connections are
    never reused across threads.
    """
    _require_credentials()

    if not hasattr(_thread_local, "client"):
        _thread_local.client = create_client(
            settings.supabase_url,
            settings.supabase_secret_key,
        )
    return _thread_local.client


def reset_supabase_client() -> None:
    """Drop the thread-local client so the next call opens a fresh connection."""
    if hasattr(_thread_local, "client"):
        delattr(_thread_local, "client")


async def get_async_supabase_client() -> AsyncClient:
    """Get the process-wide async client (used for realtime channels)."""
    global _async_client
    _require_credentials()
    if _async_client is None:
        _async_client = await acreate_client(
            settings.supabase_url,
            settings.supabase_secret_key,
        )
    return _async_client
