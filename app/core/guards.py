"""
Route guards for the web app.

Each guard turns the current session into a ``GuardDecision``: a state the
frontend renders (spinner, children, upgrade card) plus an optional redirect.

The ``decide_*`` functions are pure and accept ``PENDING`` for lookups that
have not resolved yet, so a client holding partial data gets ``loading``
instead of a flash of the unauthorized view. The ``check_*`` functions resolve
the lookups through a ``SessionContext`` and apply the failure policy:

- admin and onboarding guards log lookup errors and deny;
- the business guard lets lookup errors propagate to the caller.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from app.core.features import AppRole, has_business_access, resolve_role
from app.core.security import AuthError
from app.repositories.profile import ProfileRepository
from app.repositories.user_role import UserRoleRepository

logger = logging.getLogger(__name__)

SIGN_IN_PATH = "/auth"
ONBOARDING_PATH = "/onboarding"
UNAUTHORIZED_PATH = "/unauthorized"
UPGRADE_PATH = "/settings?tab=billing"

# The onboarding guard never runs on these routes
ONBOARDING_EXEMPT_PATHS = frozenset({SIGN_IN_PATH, ONBOARDING_PATH})


class _Pending:
    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()


class GuardState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    ADMIN = "admin"
    NON_ADMIN = "non_admin"
    BUSINESS = "business"
    NON_BUSINESS = "non_business"
    ONBOARDING_INCOMPLETE = "onboarding_incomplete"
    ALLOWED = "allowed"


GRANTED_STATES = frozenset({GuardState.ADMIN, GuardState.BUSINESS, GuardState.ALLOWED})


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    redirect_to: str | None = None
    upgrade_url: str | None = None

    @property
    def allowed(self) -> bool:
        return self.state in GRANTED_STATES

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "allowed": self.allowed,
            "redirect_to": self.redirect_to,
            "upgrade_url": self.upgrade_url,
        }


LOADING = GuardDecision(GuardState.LOADING)
SIGN_IN_REDIRECT = GuardDecision(GuardState.UNAUTHENTICATED, redirect_to=SIGN_IN_PATH)


def decide_admin(principal, role) -> GuardDecision:
    if principal is PENDING:
        return LOADING
    if principal is None:
        return SIGN_IN_REDIRECT
    if role is PENDING:
        return LOADING
    if role == AppRole.ADMIN:
        return GuardDecision(GuardState.ADMIN)
    return GuardDecision(GuardState.NON_ADMIN, redirect_to=UNAUTHORIZED_PATH)


def decide_business(profile) -> GuardDecision:
    """Soft gate: a denial carries an upgrade link but never redirects."""
    if profile is PENDING:
        return LOADING
    if has_business_access(profile):
        return GuardDecision(GuardState.BUSINESS)
    return GuardDecision(GuardState.NON_BUSINESS, upgrade_url=UPGRADE_PATH)


def decide_onboarding(path: str, principal, onboarding_completed) -> GuardDecision:
    if path in ONBOARDING_EXEMPT_PATHS:
        return GuardDecision(GuardState.ALLOWED)
    if principal is PENDING:
        return LOADING
    if principal is None:
        return SIGN_IN_REDIRECT
    if onboarding_completed is PENDING:
        return LOADING
    if not onboarding_completed:
        return GuardDecision(GuardState.ONBOARDING_INCOMPLETE, redirect_to=ONBOARDING_PATH)
    return GuardDecision(GuardState.ALLOWED)


class SessionContext:
    """The authenticated principal plus its lookups, memoised for one request."""

    def __init__(
        self,
        principal: dict | None,
        roles_loader: Callable[[str], list[str]] | None = None,
        profile_loader: Callable[[str], dict | None] | None = None,
        onboarding_loader: Callable[[str], bool] | None = None,
    ):
        self.principal = principal
        self._roles_loader = roles_loader or UserRoleRepository.get_roles
        self._profile_loader = profile_loader or ProfileRepository.get_access_fields
        self._onboarding_loader = onboarding_loader or ProfileRepository.get_onboarding_completed
        self._cache: dict[str, object] = {}

    @property
    def user_id(self) -> str | None:
        return self.principal.get("sub") if self.principal else None

    @property
    def email(self) -> str | None:
        return self.principal.get("email") if self.principal else None

    def _memo(self, key: str, loader: Callable[[str], object]):
        if key not in self._cache:
            if self.user_id is None:
                raise AuthError("Not authenticated")
            self._cache[key] = loader(self.user_id)
        return self._cache[key]

    def role(self) -> AppRole:
        return self._memo("role", lambda uid: resolve_role(self._roles_loader(uid)))

    def access_profile(self) -> dict | None:
        return self._memo("access_profile", self._profile_loader)

    def onboarding_completed(self) -> bool:
        return self._memo("onboarding_completed", self._onboarding_loader)


def check_admin(ctx: SessionContext) -> GuardDecision:
    if ctx.principal is None:
        return SIGN_IN_REDIRECT
    try:
        role = ctx.role()
    except Exception as e:
        logger.error(f"Error fetching role for user {ctx.user_id}: {e}")
        return GuardDecision(GuardState.NON_ADMIN, redirect_to=UNAUTHORIZED_PATH)
    return decide_admin(ctx.principal, role)


def check_business(ctx: SessionContext) -> GuardDecision:
    """Lookup errors (including a missing principal) propagate."""
    return decide_business(ctx.access_profile())


def check_onboarding(ctx: SessionContext, path: str) -> GuardDecision:
    if path in ONBOARDING_EXEMPT_PATHS:
        return GuardDecision(GuardState.ALLOWED)
    if ctx.principal is None:
        return SIGN_IN_REDIRECT
    try:
        completed = ctx.onboarding_completed()
    except Exception as e:
        logger.error(f"Error checking onboarding status for user {ctx.user_id}: {e}")
        return GuardDecision(GuardState.ONBOARDING_INCOMPLETE, redirect_to=ONBOARDING_PATH)
    return decide_onboarding(path, ctx.principal, completed)
