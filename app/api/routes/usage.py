from fastapi import APIRouter, Depends, Path

from app.core.entitlements import require_usage
from app.core.features import SubscriptionTier
from app.core.security import require_auth
from app.core.usage import UsageCheck, UsageKind, check_usage, get_usage_snapshot
from app.domain.schemas import UsageCheckResponse, UsageResponse

router = APIRouter()


@router.get("", response_model=UsageResponse)
def get_usage(auth: dict = Depends(require_auth)):
    """Usage versus limits for every resource kind.

    Until the usage summary exists every kind reports as locked.
    """
    snapshot = get_usage_snapshot(auth["sub"])
    return {
        "tier": snapshot.subscription_tier if snapshot else SubscriptionTier.FREE.value,
        "loaded": snapshot is not None,
        "current_period_start": snapshot.current_period_start if snapshot else None,
        "current_period_end": snapshot.current_period_end if snapshot else None,
        "checks": {kind.value: check_usage(snapshot, kind).to_dict() for kind in UsageKind},
    }


@router.get("/{kind}", response_model=UsageCheckResponse)
def get_usage_for_kind(
    kind: UsageKind = Path(...),
    auth: dict = Depends(require_auth),
):
    """Usage versus limit for one resource kind."""
    return check_usage(get_usage_snapshot(auth["sub"]), kind).to_dict()


def _preflight_endpoint(kind: UsageKind):
    def preflight(check: UsageCheck = Depends(require_usage(kind))):
        return check.to_dict()

    preflight.__doc__ = f"Confirm one more {kind.value} fits the plan (403 otherwise)."
    return preflight


# Called before an upload or a new property is created
for _kind in UsageKind:
    router.add_api_route(
        f"/{_kind.value}/preflight",
        _preflight_endpoint(_kind),
        methods=["POST"],
        response_model=UsageCheckResponse,
        name=f"preflight_{_kind.value}",
    )
