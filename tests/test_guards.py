from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from app.core.features import effective_subscription, has_business_access
from app.core.guards import (
    PENDING,
    GuardState,
    SessionContext,
    check_admin,
    check_business,
    check_onboarding,
    decide_admin,
    decide_business,
    decide_onboarding,
)
from app.core.security import AuthError

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def context(principal, roles=None, profile=None, onboarded=True, **loaders):
    return SessionContext(
        principal,
        roles_loader=loaders.get("roles_loader", MagicMock(return_value=roles or [])),
        profile_loader=loaders.get("profile_loader", MagicMock(return_value=profile)),
        onboarding_loader=loaders.get("onboarding_loader", MagicMock(return_value=onboarded)),
    )


class TestAdminGuard:

    def test_anonymous_redirects_to_sign_in_without_role_lookup(self):
        roles_loader = MagicMock()
        decision = check_admin(context(None, roles_loader=roles_loader))
        assert decision.state == GuardState.UNAUTHENTICATED
        assert decision.redirect_to == "/auth"
        roles_loader.assert_not_called()

    def test_admin_among_several_roles_wins(self, principal):
        decision = check_admin(context(principal, roles=["free", "pro", "admin"]))
        assert decision.state == GuardState.ADMIN
        assert decision.allowed is True

    def test_non_admin_goes_to_unauthorized(self, principal):
        decision = check_admin(context(principal, roles=["business"]))
        assert decision.state == GuardState.NON_ADMIN
        assert decision.redirect_to == "/unauthorized"

    def test_lookup_failure_denies(self, principal):
        loader = MagicMock(side_effect=RuntimeError("db down"))
        decision = check_admin(context(principal, roles_loader=loader))
        assert decision.state == GuardState.NON_ADMIN
        assert decision.allowed is False

    def test_pending_lookups_are_loading(self, principal):
        assert decide_admin(PENDING, None).state == GuardState.LOADING
        assert decide_admin(principal, PENDING).state == GuardState.LOADING

    def test_role_is_looked_up_once_per_context(self, principal):
        loader = MagicMock(return_value=["admin"])
        ctx = context(principal, roles_loader=loader)
        check_admin(ctx)
        check_admin(ctx)
        loader.assert_called_once_with("user-1")


class TestBusinessGuard:

    def test_user_type_business_alone_grants_access(self):
        profile = {"user_type": "business", "subscription_tier": "free", "subscription_status": "none"}
        assert decide_business(profile).state == GuardState.BUSINESS

    def test_active_business_subscription_grants_access(self):
        profile = {"user_type": "homeowner", "subscription_tier": "business", "subscription_status": "active"}
        assert decide_business(profile).state == GuardState.BUSINESS

    def test_cancelled_business_subscription_is_denied_with_upgrade_link(self):
        profile = {"user_type": "homeowner", "subscription_tier": "business", "subscription_status": "cancelled"}
        decision = decide_business(profile)
        assert decision.state == GuardState.NON_BUSINESS
        assert decision.upgrade_url == "/settings?tab=billing"
        assert decision.redirect_to is None

    def test_pending_cancellation_keeps_access_until_effective(self):
        profile = {
            "subscription_tier": "business",
            "subscription_status": "pending_cancellation",
            "cancellation_effective_at": (NOW + timedelta(days=3)).isoformat(),
        }
        assert has_business_access(profile, NOW) is True
        assert has_business_access(profile, NOW + timedelta(days=4)) is False

    def test_missing_profile_is_denied(self):
        assert decide_business(None).state == GuardState.NON_BUSINESS

    def test_pending_profile_is_loading(self):
        assert decide_business(PENDING).state == GuardState.LOADING

    def test_lookup_errors_propagate(self, principal):
        loader = MagicMock(side_effect=RuntimeError("db down"))
        with pytest.raises(RuntimeError):
            check_business(context(principal, profile_loader=loader))

    def test_anonymous_raises(self):
        with pytest.raises(AuthError):
            check_business(context(None))


class TestOnboardingGuard:

    @pytest.mark.parametrize("path", ["/auth", "/onboarding"])
    def test_exempt_paths_never_check(self, path):
        loader = MagicMock()
        decision = check_onboarding(context(None, onboarding_loader=loader), path)
        assert decision.state == GuardState.ALLOWED
        loader.assert_not_called()

    def test_incomplete_onboarding_redirects(self, principal):
        decision = check_onboarding(context(principal, onboarded=False), "/dashboard")
        assert decision.state == GuardState.ONBOARDING_INCOMPLETE
        assert decision.redirect_to == "/onboarding"

    def test_completed_onboarding_is_allowed(self, principal):
        assert check_onboarding(context(principal), "/dashboard").allowed is True

    def test_anonymous_redirects_to_sign_in(self):
        assert check_onboarding(context(None), "/dashboard").redirect_to == "/auth"

    def test_lookup_failure_redirects_to_onboarding(self, principal):
        loader = MagicMock(side_effect=RuntimeError("db down"))
        decision = check_onboarding(context(principal, onboarding_loader=loader), "/dashboard")
        assert decision.redirect_to == "/onboarding"

    def test_pending_is_loading(self, principal):
        assert decide_onboarding("/dashboard", principal, PENDING).state == GuardState.LOADING


def test_expired_pending_cancellation_reads_as_cancelled():
    profile = {
        "subscription_tier": "pro",
        "subscription_status": "pending_cancellation",
        "cancellation_effective_at": "2025-03-01T00:00:00Z",
    }
    assert effective_subscription(profile, NOW) == ("free", "cancelled")
