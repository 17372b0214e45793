"""
Entitlement checking for quota-gated operations.

Uses dependency injection pattern consistent with permissions.py.

Usage:
    @router.post("/properties")
    def create_property(
        check: UsageCheck = Depends(require_usage(UsageKind.PROPERTY)),
        user: dict = Depends(require_auth),
    ):
        # Only executes if the property quota still has room
        pass
"""
from fastapi import Depends, HTTPException, status

from app.core.security import require_auth
from app.core.usage import UsageCheck, UsageKind, check_usage, get_usage_snapshot


class LimitExceededError(HTTPException):
    """Raised when a plan limit would be exceeded by an operation."""

    def __init__(self, resource: str, limit: int, current: int):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "LIMIT_EXCEEDED",
                "resource": resource,
                "limit": limit,
                "current": current,
                "message": f"Your plan allows {limit} {resource}. You currently have {current}.",
                "upgrade_required": True,
            }
        )


class FeatureLockedError(HTTPException):
    """Raised when the user's tier has no quota at all for a resource."""

    def __init__(self, resource: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "FEATURE_LOCKED",
                "resource": resource,
                "message": f"{resource.capitalize()} is not included in your plan.",
                "upgrade_required": True,
            }
        )


def enforce_usage(check: UsageCheck, kind: UsageKind) -> UsageCheck:
    """Raise the matching error unless the check allows one more use."""
    if check.is_locked:
        raise FeatureLockedError(kind.value)
    if check.is_at_limit:
        raise LimitExceededError(kind.value, check.limit, check.usage)
    return check


def require_usage(kind: UsageKind):
    """Factory to create a dependency that requires remaining quota for ``kind``.

    The snapshot is always re-read so a burst of requests cannot ride on a
    cached count.
    """
    def dependency(auth_payload: dict = Depends(require_auth)) -> UsageCheck:
        snapshot = get_usage_snapshot(auth_payload["sub"], fresh=True)
        return enforce_usage(check_usage(snapshot, kind), kind)

    return dependency
