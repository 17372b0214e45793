import functools
import logging
import time
from typing import Callable, TypeVar

import httpx
from supabase import Client

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Tables every request path depends on; checked once at startup
REQUIRED_TABLES = ("profiles", "user_roles", "user_usage_summary")

# Errors after which the pooled connection is dropped and the call repeated
TRANSIENT_ERRORS = (httpx.RemoteProtocolError, httpx.ConnectError, httpx.ReadError)


def init_db() -> bool:
    """Check at startup that Supabase is reachable and migrated.

    Schema and row-level security live in Supabase migrations. Returns False
    (and only logs) when something is missing so the API can still boot.
    """
    if not settings.supabase_url or not settings.supabase_secret_key:
        logger.warning("Supabase credentials not configured. Database features disabled.")
        return False

    for table in REQUIRED_TABLES:
        try:
            get_db().table(table).select("*", count="exact").limit(0).execute()
        except Exception as e:
            logger.warning(f"Supabase check failed for table '{table}': {e}")
            return False
    logger.info(f"Supabase connection verified ({', '.join(REQUIRED_TABLES)})")
    return True


def get_db() -> Client:
    """Supabase client for the current thread."""
    from .supabase_client import get_supabase_client
    return get_supabase_client()


def with_retry(max_retries: int = 2, delay: float = 0.1) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry a repository call after a transient connection error.

    The thread's client is reset before each retry because the HTTP/2 pool
    behind it is the usual culprit ("Server disconnected").
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            from .supabase_client import reset_supabase_client

            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except TRANSIENT_ERRORS as e:
                    if attempt >= max_retries:
                        logger.error(f"{func.__name__} failed after {max_retries} retries: {e}")
                        raise
                    attempt += 1
                    logger.warning(f"{func.__name__} hit {type(e).__name__}, retry {attempt}/{max_retries}")
                    reset_supabase_client()
                    time.sleep(delay * attempt)
        return wrapper
    return decorator
