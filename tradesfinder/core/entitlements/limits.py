"""Subscription tier entitlements.

Every countable action a tradesperson can take is capped per tier. ``UNLIMITED``
is a sentinel, not a large number: callers must go through
:func:`is_unlimited` before doing any arithmetic or comparison with a limit.
"""

import enum

from pydantic import BaseModel

from tradesfinder.common.enums import SubscriptionTier
from tradesfinder.common.exceptions import QuotaExceededError
from tradesfinder.config import settings

UNLIMITED = -1

UPGRADE_URL = "/dashboard/subscription"


class LimitKind(str, enum.Enum):
    PORTFOLIO_PHOTOS = "max_portfolio_photos"
    APPLICATIONS = "monthly_application_limit"
    QUOTES = "monthly_quote_limit"
    VERIFICATION_BADGES = "max_verification_badges"


class TierLimits(BaseModel, frozen=True):
    max_portfolio_photos: int
    monthly_application_limit: int
    monthly_quote_limit: int
    max_verification_badges: int

    def get(self, kind: LimitKind) -> int:
        return getattr(self, kind.value)


TIER_LIMITS: dict[SubscriptionTier, TierLimits] = {
    SubscriptionTier.FREE: TierLimits(
        max_portfolio_photos=5,
        monthly_application_limit=5,
        monthly_quote_limit=10,
        max_verification_badges=1,
    ),
    SubscriptionTier.PRO: TierLimits(
        max_portfolio_photos=20,
        monthly_application_limit=20,
        monthly_quote_limit=UNLIMITED,
        max_verification_badges=3,
    ),
    SubscriptionTier.PREMIUM: TierLimits(
        max_portfolio_photos=UNLIMITED,
        monthly_application_limit=UNLIMITED,
        monthly_quote_limit=UNLIMITED,
        max_verification_badges=UNLIMITED,
    ),
}


class PlanInfo(BaseModel):
    tier: str
    name: str
    monthly_price_gbp: int
    price_id: str | None
    features: list[str]
    limits: TierLimits


def limits_for(tier: SubscriptionTier | str) -> TierLimits:
    """Return the entitlements for ``tier``.

    The mapping is total over :class:`SubscriptionTier`; anything else is a
    programming error and raises ``KeyError``. Plain strings work too since
    the tier enum hashes like its value (status columns store the value).
    """
    return TIER_LIMITS[tier]


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def remaining(tier: SubscriptionTier | str, kind: LimitKind, used: int) -> int:
    limit = limits_for(tier).get(kind)
    if is_unlimited(limit):
        return UNLIMITED
    return max(limit - used, 0)


def ensure_within_cap(
    tier: SubscriptionTier | str,
    kind: LimitKind,
    current: int,
    label: str,
    show_upgrade: bool = True,
) -> None:
    """Raise QuotaExceededError when one more item would break the tier cap."""
    limit = limits_for(tier).get(kind)
    if is_unlimited(limit):
        return
    if current >= limit:
        raise QuotaExceededError(
            f"Your plan allows a maximum of {limit} {label}. Upgrade to add more.",
            upgrade_url=UPGRADE_URL if show_upgrade else None,
        )


def price_id_for(tier: SubscriptionTier) -> str | None:
    if tier == SubscriptionTier.PRO:
        return settings.STRIPE_PRO_PRICE_ID
    if tier == SubscriptionTier.PREMIUM:
        return settings.STRIPE_PREMIUM_PRICE_ID
    return None


def tier_for_price_id(price_id: str | None) -> SubscriptionTier | None:
    if not price_id:
        return None
    if price_id == settings.STRIPE_PRO_PRICE_ID:
        return SubscriptionTier.PRO
    if price_id == settings.STRIPE_PREMIUM_PRICE_ID:
        return SubscriptionTier.PREMIUM
    return None


def list_plans() -> list[PlanInfo]:
    return [
        PlanInfo(
            tier=SubscriptionTier.FREE.value,
            name="Free",
            monthly_price_gbp=0,
            price_id=None,
            features=[
                "Basic profile listing",
                "Up to 5 portfolio photos",
                "10 quote requests per month",
                "1 verification badge",
            ],
            limits=TIER_LIMITS[SubscriptionTier.FREE],
        ),
        PlanInfo(
            tier=SubscriptionTier.PRO.value,
            name="Pro",
            monthly_price_gbp=29,
            price_id=price_id_for(SubscriptionTier.PRO),
            features=[
                "Everything in Free",
                "Up to 20 portfolio photos",
                "Unlimited quote requests",
                "Up to 3 verification badges",
            ],
            limits=TIER_LIMITS[SubscriptionTier.PRO],
        ),
        PlanInfo(
            tier=SubscriptionTier.PREMIUM.value,
            name="Premium",
            monthly_price_gbp=59,
            price_id=price_id_for(SubscriptionTier.PREMIUM),
            features=[
                "Everything in Pro",
                "Unlimited portfolio photos",
                "Unlimited verification badges",
                "Priority support",
            ],
            limits=TIER_LIMITS[SubscriptionTier.PREMIUM],
        ),
    ]
