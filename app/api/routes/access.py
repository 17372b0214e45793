from fastapi import APIRouter, Depends, Query

from app.core.guards import SessionContext, check_admin, check_business, check_onboarding
from app.core.permissions import get_session_context
from app.core.security import require_auth
from app.domain.schemas import GuardDecisionResponse

router = APIRouter()


@router.get("/admin", response_model=GuardDecisionResponse)
def admin_access(ctx: SessionContext = Depends(get_session_context)):
    """Decision for the admin area. Anonymous callers are sent to sign-in."""
    return check_admin(ctx).to_dict()


@router.get("/business", response_model=GuardDecisionResponse)
def business_access(
    _: dict = Depends(require_auth),
    ctx: SessionContext = Depends(get_session_context),
):
    """Decision for business-only features.

    A denial is a soft gate: the response carries an upgrade link and no redirect.
    """
    return check_business(ctx).to_dict()


@router.get("/onboarding", response_model=GuardDecisionResponse)
def onboarding_access(
    path: str = Query(..., description="Route the user is navigating to"),
    ctx: SessionContext = Depends(get_session_context),
):
    """Decision for a navigation, evaluated on every route change."""
    return check_onboarding(ctx, path).to_dict()
