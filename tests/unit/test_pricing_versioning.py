"""
Unit tests for tier pricing and version labels
"""

from types import SimpleNamespace

import pytest

from models.base import PricingTier, PricingType, BillingCycle
from publishing.pricing import (
    TIER_WHOLESALE_CENTS,
    billing_for_price,
    calculate_retail_price,
    resolve_pricing,
)
from publishing.versioning import compare_versions, increment_version, parse_version


def _source(tier=PricingTier.FREE, wholesale=None, retail=None):
    return SimpleNamespace(
        pricing_tier=tier,
        wholesale_price_monthly=wholesale,
        retail_price_monthly=retail,
    )


class TestPricing:

    def test_tier_table(self):
        assert TIER_WHOLESALE_CENTS[PricingTier.FREE] == 0
        assert TIER_WHOLESALE_CENTS[PricingTier.STARTER] == 999
        assert TIER_WHOLESALE_CENTS[PricingTier.PRO] == 2499
        assert TIER_WHOLESALE_CENTS[PricingTier.ENTERPRISE] == 4999

    def test_retail_applies_markup(self):
        assert calculate_retail_price(999, markup_percent=100) == 1998
        assert calculate_retail_price(1000, markup_percent=50) == 1500
        assert calculate_retail_price(0, markup_percent=100) == 0

    def test_billing_follows_price(self):
        assert billing_for_price(0) == (PricingType.FREE, BillingCycle.ONE_TIME)
        assert billing_for_price(1) == (PricingType.MONTHLY, BillingCycle.MONTHLY)

    def test_free_tier_resolves_free(self):
        price = resolve_pricing(_source())

        assert price.wholesale_price_monthly == 0
        assert price.retail_price_monthly == 0
        assert price.pricing_type == PricingType.FREE
        assert price.billing_cycle == BillingCycle.ONE_TIME

    def test_paid_tier_resolves_monthly(self):
        price = resolve_pricing(_source(tier=PricingTier.PRO))

        assert price.wholesale_price_monthly == 2499
        assert price.retail_price_monthly == calculate_retail_price(2499)
        assert price.pricing_type == PricingType.MONTHLY

    def test_explicit_prices_win(self):
        price = resolve_pricing(_source(tier=PricingTier.ENTERPRISE, wholesale=100, retail=250))

        assert price.wholesale_price_monthly == 100
        assert price.retail_price_monthly == 250

    def test_tier_given_as_string(self):
        assert resolve_pricing(_source(tier="starter")).wholesale_price_monthly == 999


class TestVersions:

    def test_parse(self):
        parsed = parse_version("1.2.3-beta.1")
        assert (parsed.major, parsed.minor, parsed.patch, parsed.prerelease) == (1, 2, 3, "beta.1")
        assert str(parsed) == "1.2.3-beta.1"

    @pytest.mark.parametrize("label", [None, "", "1.2", "v1.2.3", "1.2.3.4", "latest"])
    def test_parse_rejects(self, label):
        assert parse_version(label) is None

    @pytest.mark.parametrize("current,bump,expected", [
        ("1.2.3", "patch", "1.2.4"),
        ("1.2.3", "minor", "1.3.0"),
        ("1.2.3", "major", "2.0.0"),
        (None, "patch", "1.0.0"),
        ("garbage", "minor", "1.0.0"),
    ])
    def test_increment(self, current, bump, expected):
        assert increment_version(current, bump) == expected

    def test_compare(self):
        assert compare_versions("1.10.0", "1.9.9") == 1
        assert compare_versions("1.0.0", "1.0.0") == 0
        assert compare_versions("1.0.0-rc.1", "1.0.0") == -1
        assert compare_versions("2.0.0", "10.0.0") == -1
