"""
Tier entitlements: the static catalog of per-plan limits.

Every ``Tier`` has exactly one ``EntitlementProfile``. Lookups branch over the
closed enum explicitly, so a new tier has to be added here before anything can
resolve limits for it.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from renderlab.core.exceptions import UnknownTierError
from renderlab.models.subscription import SubscriptionStatus, Tier
from renderlab.models.usage_period import ActionType

UNBOUNDED = math.inf


@dataclass(frozen=True)
class EntitlementProfile:
    enhancement_limit: int
    consultation_limit: int
    active_deployment_limit: Union[int, float]  # UNBOUNDED for agency
    overage_rate: Decimal
    demo_credits: int


STARTER_PROFILE = EntitlementProfile(
    enhancement_limit=200,
    consultation_limit=50,
    active_deployment_limit=3,
    overage_rate=Decimal("0.25"),
    demo_credits=5,
)

PRO_PROFILE = EntitlementProfile(
    enhancement_limit=500,
    consultation_limit=200,
    active_deployment_limit=10,
    overage_rate=Decimal("0.25"),
    demo_credits=10,
)

AGENCY_PROFILE = EntitlementProfile(
    enhancement_limit=1500,
    consultation_limit=750,
    active_deployment_limit=UNBOUNDED,
    overage_rate=Decimal("0.20"),
    demo_credits=20,
)


@dataclass(frozen=True)
class SubscriptionState:
    """Minimal view of a subscription; the ORM row satisfies the same shape."""
    tier: Tier
    status: SubscriptionStatus
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None


# Accounts without a subscription row are metered as trialing starters, never blocked.
DEFAULT_SUBSCRIPTION = SubscriptionState(tier=Tier.STARTER, status=SubscriptionStatus.TRIALING)


def coerce_tier(tier: Union[Tier, str]) -> Tier:
    if isinstance(tier, Tier):
        return tier
    try:
        return Tier(str(tier).lower())
    except ValueError:
        raise UnknownTierError(tier) from None


def get_entitlement_profile(tier: Union[Tier, str]) -> EntitlementProfile:
    """Resolve the profile for a tier; unknown values raise UnknownTierError."""
    tier = coerce_tier(tier)
    if tier is Tier.STARTER:
        return STARTER_PROFILE
    elif tier is Tier.PRO:
        return PRO_PROFILE
    elif tier is Tier.AGENCY:
        return AGENCY_PROFILE
    raise UnknownTierError(tier)


def limit_for(profile: EntitlementProfile, action_type: ActionType) -> int:
    if action_type is ActionType.ENHANCEMENT:
        return profile.enhancement_limit
    elif action_type is ActionType.CONSULTATION:
        return profile.consultation_limit
    raise ValueError(f"Unknown action type: {action_type!r}")


def can_activate_deployment(tier: Union[Tier, str], active_count: int) -> bool:
    """Whether one more widget/visualizer may go live under this tier"""
    return active_count < get_entitlement_profile(tier).active_deployment_limit
