from typing import Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials

from app.core.guards import (
    SIGN_IN_PATH,
    GuardDecision,
    GuardState,
    SessionContext,
    check_admin,
    check_business,
    check_onboarding,
)
from app.core.security import AuthError, decode_token, require_auth, security
from app.repositories.profile import ProfileRepository


def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[dict]:
    """Resolve the principal, treating a missing or invalid token as anonymous."""
    if not credentials:
        return None
    try:
        return decode_token(credentials.credentials)
    except AuthError:
        return None


def get_session_context(principal: Optional[dict] = Depends(get_optional_principal)) -> SessionContext:
    """Per-request session object handed to the guards."""
    return SessionContext(principal)


def get_current_user_profile(auth_payload: dict = Depends(require_auth)) -> dict:
    """Get the profile row for the authenticated user.

    Raises:
        HTTPException 401 if the token has no sub claim
        HTTPException 404 if the profile does not exist
    """
    user_id = auth_payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing sub claim"
        )

    profile = ProfileRepository.get_by_id(user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found. Please complete registration."
        )

    return profile


def _raise_for(decision: GuardDecision) -> None:
    if decision.state == GuardState.UNAUTHENTICATED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Not authenticated", "redirect_to": decision.redirect_to},
            headers={"WWW-Authenticate": "Bearer"},
        )
    if decision.state == GuardState.NON_BUSINESS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "BUSINESS_PLAN_REQUIRED",
                "message": "This feature is available for business users only.",
                "upgrade_required": True,
                "upgrade_url": decision.upgrade_url,
            },
        )
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Access denied", "redirect_to": decision.redirect_to},
        )


def require_admin(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Require the admin role. 401 when anonymous, 403 otherwise."""
    _raise_for(check_admin(ctx))
    return ctx


def require_business(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Require business access. Denial carries an upgrade payload instead of a redirect."""
    if ctx.principal is None:
        _raise_for(GuardDecision(GuardState.UNAUTHENTICATED, redirect_to=SIGN_IN_PATH))
    _raise_for(check_business(ctx))
    return ctx


def require_onboarded(
    path: str = Query("/dashboard"),
    ctx: SessionContext = Depends(get_session_context),
) -> SessionContext:
    """Require a completed onboarding for the route being rendered."""
    _raise_for(check_onboarding(ctx, path))
    return ctx


def require_onboarded_for(path: str):
    """Build an onboarding dependency for a route whose page path is fixed."""

    def dependency(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
        _raise_for(check_onboarding(ctx, path))
        return ctx

    return dependency
