import pytest

from tradesfinder.common.enums import SubscriptionTier
from tradesfinder.common.exceptions import QuotaExceededError
from tradesfinder.config import settings
from tradesfinder.core.entitlements.limits import (
    UNLIMITED,
    UPGRADE_URL,
    LimitKind,
    ensure_within_cap,
    is_unlimited,
    limits_for,
    list_plans,
    remaining,
    tier_for_price_id,
)


def test_free_tier_limits():
    limits = limits_for(SubscriptionTier.FREE)
    assert limits.max_portfolio_photos == 5
    assert limits.monthly_application_limit == 5
    assert limits.monthly_quote_limit == 10
    assert limits.max_verification_badges == 1


def test_pro_tier_has_unlimited_quotes_only():
    limits = limits_for(SubscriptionTier.PRO)
    assert limits.max_portfolio_photos == 20
    assert limits.monthly_application_limit == 20
    assert is_unlimited(limits.monthly_quote_limit)
    assert limits.max_verification_badges == 3


def test_premium_is_unlimited_everywhere():
    limits = limits_for(SubscriptionTier.PREMIUM)
    for kind in LimitKind:
        assert is_unlimited(limits.get(kind))


def test_stored_tier_string_resolves():
    assert limits_for("PRO") == limits_for(SubscriptionTier.PRO)


def test_unknown_tier_raises_key_error():
    with pytest.raises(KeyError):
        limits_for("ENTERPRISE")


def test_remaining_is_clamped_at_zero():
    assert remaining(SubscriptionTier.FREE, LimitKind.APPLICATIONS, 2) == 3
    assert remaining(SubscriptionTier.FREE, LimitKind.APPLICATIONS, 9) == 0
    assert remaining(SubscriptionTier.PREMIUM, LimitKind.APPLICATIONS, 500) == UNLIMITED


def test_ensure_within_cap_raises_with_upgrade_link():
    ensure_within_cap(SubscriptionTier.FREE, LimitKind.VERIFICATION_BADGES, 0, "verification badges")

    with pytest.raises(QuotaExceededError) as exc:
        ensure_within_cap(SubscriptionTier.FREE, LimitKind.VERIFICATION_BADGES, 1, "verification badges")
    assert exc.value.status_code == 402
    assert exc.value.to_payload()["upgradeUrl"] == UPGRADE_URL


def test_unlimited_cap_never_raises():
    ensure_within_cap(SubscriptionTier.PREMIUM, LimitKind.PORTFOLIO_PHOTOS, 10_000, "portfolio photos")


def test_price_ids_map_to_paid_tiers():
    assert tier_for_price_id(settings.STRIPE_PRO_PRICE_ID) == SubscriptionTier.PRO
    assert tier_for_price_id(settings.STRIPE_PREMIUM_PRICE_ID) == SubscriptionTier.PREMIUM
    assert tier_for_price_id("price_unknown") is None
    assert tier_for_price_id(None) is None


def test_plans_list_every_tier():
    plans = list_plans()
    assert [p.tier for p in plans] == ["FREE", "PRO", "PREMIUM"]
    assert plans[0].price_id is None
    assert plans[1].limits.monthly_application_limit == 20


@pytest.mark.asyncio
async def test_plans_endpoint(client):
    response = await client.get("/api/v1/billing/plans")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 3
    assert data[2]["limits"]["max_portfolio_photos"] == UNLIMITED
