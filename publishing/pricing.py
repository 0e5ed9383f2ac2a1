"""
Tier pricing for catalog projections.

Prices are integer cents per month. The retail price is the wholesale
price plus a percentage markup; explicit prices on the source win over
both the tier table and the markup.
"""

from typing import Optional, Tuple
from dataclasses import dataclass

from core.config import settings
from models.base import PricingTier, PricingType, BillingCycle

TIER_WHOLESALE_CENTS = {
    PricingTier.FREE: 0,
    PricingTier.STARTER: 999,
    PricingTier.PRO: 2499,
    PricingTier.ENTERPRISE: 4999,
}


@dataclass(frozen=True)
class ResolvedPrice:
    wholesale_price_monthly: int
    retail_price_monthly: int
    pricing_type: PricingType
    billing_cycle: BillingCycle


def calculate_retail_price(wholesale_cents: int, markup_percent: Optional[int] = None) -> int:
    if markup_percent is None:
        markup_percent = settings.DEFAULT_RETAIL_MARKUP_PERCENT
    if wholesale_cents <= 0:
        return 0
    return wholesale_cents + (wholesale_cents * markup_percent) // 100


def billing_for_price(price_cents: int) -> Tuple[PricingType, BillingCycle]:
    """Zero price is a free one-time entry; any positive price bills monthly."""
    if price_cents > 0:
        return PricingType.MONTHLY, BillingCycle.MONTHLY
    return PricingType.FREE, BillingCycle.ONE_TIME


def resolve_pricing(source) -> ResolvedPrice:
    """Map a ModuleSource's tier and explicit overrides to concrete prices."""
    tier = source.pricing_tier or PricingTier.FREE
    if isinstance(tier, str) and not isinstance(tier, PricingTier):
        tier = PricingTier(tier)

    wholesale = source.wholesale_price_monthly
    if wholesale is None:
        wholesale = TIER_WHOLESALE_CENTS.get(tier, 0)

    retail = source.retail_price_monthly
    if retail is None:
        retail = calculate_retail_price(wholesale)

    pricing_type, billing_cycle = billing_for_price(retail)
    return ResolvedPrice(
        wholesale_price_monthly=wholesale,
        retail_price_monthly=retail,
        pricing_type=pricing_type,
        billing_cycle=billing_cycle,
    )
