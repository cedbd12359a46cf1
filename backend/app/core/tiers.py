"""
Subscription tier limits and Stripe price lookups.

A limit of ``UNLIMITED`` (-1) means the quota is not enforced.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from app.core.config import settings

UNLIMITED = -1
TRIAL_DAYS = 14

FREEMIUM = "freemium"
STARTER = "starter"
PROFESSIONAL = "professional"
AGENCY = "agency"
TRIAL = "trial"

ACTIVE_STATUSES = ("active", "trialing")


@dataclass(frozen=True)
class TierLimits:
    max_clients: int
    max_posts_per_month: int
    max_ai_credits_per_month: int


TIER_LIMITS: Dict[str, TierLimits] = {
    FREEMIUM: TierLimits(max_clients=1, max_posts_per_month=0, max_ai_credits_per_month=10),
    STARTER: TierLimits(max_clients=1, max_posts_per_month=30, max_ai_credits_per_month=100),
    PROFESSIONAL: TierLimits(max_clients=5, max_posts_per_month=150, max_ai_credits_per_month=500),
    AGENCY: TierLimits(max_clients=UNLIMITED, max_posts_per_month=UNLIMITED, max_ai_credits_per_month=2000),
    TRIAL: TierLimits(max_clients=5, max_posts_per_month=150, max_ai_credits_per_month=500),
}


@dataclass(frozen=True)
class CreditPackage:
    package_id: str
    credits: int
    price_cents: int
    price_setting: str

    @property
    def price_id(self) -> Optional[str]:
        return getattr(settings, self.price_setting)


CREDIT_PACKAGES: Dict[str, CreditPackage] = {
    "small": CreditPackage("small", 50, 999, "STRIPE_CREDITS_50_PRICE_ID"),
    "medium": CreditPackage("medium", 150, 2499, "STRIPE_CREDITS_150_PRICE_ID"),
    "large": CreditPackage("large", 500, 7499, "STRIPE_CREDITS_500_PRICE_ID"),
}


def get_tier_limits(tier: Optional[str]) -> TierLimits:
    """Limits for a tier name; unknown tiers get freemium limits."""
    return TIER_LIMITS.get(tier or FREEMIUM, TIER_LIMITS[FREEMIUM])


def price_id_for_tier(tier: str) -> Optional[str]:
    mapping = {
        STARTER: settings.STRIPE_STARTER_PRICE_ID,
        PROFESSIONAL: settings.STRIPE_PROFESSIONAL_PRICE_ID,
        AGENCY: settings.STRIPE_AGENCY_PRICE_ID,
    }
    return mapping.get(tier)


def tier_for_price_id(price_id: Optional[str]) -> Optional[str]:
    """Reverse lookup of a subscription price id; None for unknown prices."""
    if not price_id:
        return None
    for tier in (STARTER, PROFESSIONAL, AGENCY):
        if price_id_for_tier(tier) == price_id:
            return tier
    return None


def within_limit(used: int, limit: int) -> bool:
    """True when one more unit fits under the limit."""
    if limit == UNLIMITED:
        return True
    return used < limit
