import logging
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from database import init_db
from app.api import api_router
from app.core.config import settings
from app.core.usage import usage_cache
from app.services.realtime import RealtimeManager, SupabaseRealtimeTransport, watch_usage_changes

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


async def start_realtime() -> RealtimeManager | None:
    """Subscribe to profile and usage-summary changes to drop stale usage snapshots."""
    if not settings.realtime_enabled:
        return None
    manager = RealtimeManager(SupabaseRealtimeTransport())
    try:
        await watch_usage_changes(manager, usage_cache.invalidate)
    except Exception as e:
        logger.warning(f"Realtime unavailable, usage snapshots will rely on the refresh interval: {e}")
        await manager.close()
        return None
    return manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.realtime = await start_realtime()
    yield
    if app.state.realtime is not None:
        await app.state.realtime.close()


class DynamicCORSMiddleware(BaseHTTPMiddleware):
    """CORS for the web app plus the open function-style endpoints.

    /functions/ answers any origin with ``*``. Other routes echo the origin:
    any origin in development, fixsense.app and its subdomains in production.
    """

    ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS, PATCH"
    ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
    FUNCTIONS_PREFIX = "/functions/"

    def __init__(self, app, origin_regex: str | None = None, production: bool | None = None):
        super().__init__(app)
        self.origin_pattern = re.compile(origin_regex or settings.cors_origin_regex)
        self.production = settings.is_production if production is None else production

    def allowed_origin(self, origin: str | None, path: str) -> str | None:
        if path.startswith(self.FUNCTIONS_PREFIX):
            return "*"
        if not origin:
            return None
        if not self.production or self.origin_pattern.match(origin):
            return origin
        logger.warning(f"CORS rejected - Origin '{origin}' does not match pattern")
        return None

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)

        allowed = self.allowed_origin(request.headers.get("origin"), request.url.path)
        if allowed:
            response.headers["Access-Control-Allow-Origin"] = allowed
            if allowed != "*":
                response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = self.ALLOW_METHODS
        response.headers["Access-Control-Allow-Headers"] = self.ALLOW_HEADERS

        return response


def create_app() -> FastAPI:
    app = FastAPI(
        title="FixSense API",
        description="Access guards, usage limits, Paystack billing and exports for FixSense",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(DynamicCORSMiddleware)
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
