"""
Tier, role and subscription definitions.
Single source of truth for subscription entitlements.

This module defines:
- Subscription tiers and statuses
- Property limits per tier
- Paystack plan name to tier mapping
- Role precedence used when a user holds several roles

The frontend mirrors the tier and limit definitions in src/lib/plans.ts
"""
from datetime import datetime, timezone
from enum import Enum


class SubscriptionTier(str, Enum):
    """Subscription tier identifiers."""
    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class SubscriptionStatus(str, Enum):
    """Lifecycle of a profile's subscription."""
    NONE = "none"
    ACTIVE = "active"
    PENDING_CANCELLATION = "pending_cancellation"
    CANCELLED = "cancelled"


class AppRole(str, Enum):
    """Roles stored in the user_roles table."""
    ADMIN = "admin"
    BUSINESS = "business"
    PRO = "pro"
    FREE = "free"


# Highest first. A user holding several roles is treated as the highest one.
ROLE_PRECEDENCE: tuple[AppRole, ...] = (
    AppRole.ADMIN,
    AppRole.BUSINESS,
    AppRole.PRO,
    AppRole.FREE,
)

# Statuses that still grant the paid tier's features
ENTITLED_STATUSES = frozenset({
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.PENDING_CANCELLATION.value,
})

# Maximum number of properties per tier
PROPERTY_LIMITS: dict[SubscriptionTier, int] = {
    SubscriptionTier.FREE: 1,
    SubscriptionTier.PRO: 5,
    SubscriptionTier.BUSINESS: 30,
}

DEFAULT_PROPERTY_LIMIT = 1

# Paystack plan names (metadata.plan) to tiers
PLAN_TIERS: dict[str, SubscriptionTier] = {
    "Pro": SubscriptionTier.PRO,
    "Host Business": SubscriptionTier.BUSINESS,
}


def get_property_limit(tier: str | None) -> int:
    """Get the property limit for a tier, 1 for unknown tiers."""
    try:
        return PROPERTY_LIMITS[SubscriptionTier(tier)]
    except (ValueError, KeyError):
        return DEFAULT_PROPERTY_LIMIT


def tier_from_plan(plan: str | None) -> SubscriptionTier:
    """Map a Paystack plan name to a subscription tier (free when unknown)."""
    return PLAN_TIERS.get(plan or "", SubscriptionTier.FREE)


def resolve_role(roles: list[str]) -> AppRole:
    """Pick the highest-ranked role out of a user's role rows.

    Unknown role names are ignored. No usable rows means FREE.
    """
    granted = set()
    for role in roles:
        try:
            granted.add(AppRole(role))
        except ValueError:
            continue
    for role in ROLE_PRECEDENCE:
        if role in granted:
            return role
    return AppRole.FREE


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a Postgres timestamp into an aware datetime (UTC when naive)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def effective_subscription(profile: dict, now: datetime | None = None) -> tuple[str, str]:
    """Return the (tier, status) a profile is entitled to at ``now``.

    A pending cancellation whose effective time has passed reads as a
    cancelled free subscription even before the sweep has persisted it.
    """
    tier = profile.get("subscription_tier") or SubscriptionTier.FREE.value
    status = profile.get("subscription_status") or SubscriptionStatus.NONE.value

    if status == SubscriptionStatus.PENDING_CANCELLATION.value:
        now = now or datetime.now(timezone.utc)
        effective_at = parse_timestamp(profile.get("cancellation_effective_at"))
        if effective_at is None or effective_at <= now:
            return SubscriptionTier.FREE.value, SubscriptionStatus.CANCELLED.value

    return tier, status


def has_business_access(profile: dict | None, now: datetime | None = None) -> bool:
    """Business access is granted by user_type alone, or by an entitled business subscription."""
    if not profile:
        return False
    if profile.get("user_type") == "business":
        return True
    tier, status = effective_subscription(profile, now)
    return tier == SubscriptionTier.BUSINESS.value and status in ENTITLED_STATUSES
