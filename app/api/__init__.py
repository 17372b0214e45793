from fastapi import APIRouter

from .routes import (
    access,
    admin,
    calendars,
    functions,
    health,
    pricing,
    profile,
    usage,
)

api_router = APIRouter()

# Health check
api_router.include_router(health.router, tags=["health"])

# Function-style handlers (payments, notifications)
api_router.include_router(functions.router, prefix="/functions/v1", tags=["functions"])

# Route guards and quotas
api_router.include_router(access.router, prefix="/access", tags=["access"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])

# User-scoped resources
api_router.include_router(profile.router, prefix="/profile", tags=["profile"])
api_router.include_router(calendars.router, prefix="/calendar", tags=["calendar"])

# Public endpoints (no auth required)
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
