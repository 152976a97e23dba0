"""Monthly usage counting for tier-limited submissions.

Counts are derived from timestamped rows on every check; there is no stored
counter. The window is the current UTC calendar month, so quotas reset at
midnight UTC on the 1st regardless of when the profile signed up.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.exceptions import QuotaExceededError
from tradesfinder.common.logging import get_logger
from tradesfinder.core.entitlements.limits import UPGRADE_URL, LimitKind, is_unlimited, limits_for
from tradesfinder.db.base import utcnow
from tradesfinder.db.models.job import JobApplication
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.quote import QuoteRequest

logger = get_logger("usage.counters")


class UsageKind(str, enum.Enum):
    APPLICATIONS = "applications"
    QUOTES = "quotes"


_SOURCES = {
    UsageKind.APPLICATIONS: (JobApplication, LimitKind.APPLICATIONS),
    UsageKind.QUOTES: (QuoteRequest, LimitKind.QUOTES),
}


def month_start_utc(now: datetime | None = None) -> datetime:
    now = (now or utcnow()).astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def count_this_month(
    db: AsyncSession,
    profile_id: uuid.UUID,
    kind: UsageKind,
    now: datetime | None = None,
) -> int:
    model, _ = _SOURCES[kind]
    result = await db.execute(
        select(func.count())
        .select_from(model)
        .where(
            model.profile_id == profile_id,
            model.created_at >= month_start_utc(now),
        )
    )
    return result.scalar() or 0


async def can_submit(
    db: AsyncSession,
    profile: TradesProfile,
    kind: UsageKind,
    now: datetime | None = None,
) -> bool:
    _, limit_kind = _SOURCES[kind]
    limit = limits_for(profile.subscription_tier).get(limit_kind)
    if is_unlimited(limit):
        return True
    used = await count_this_month(db, profile.id, kind, now)
    return used < limit


async def ensure_can_submit(
    db: AsyncSession,
    profile: TradesProfile,
    kind: UsageKind,
    show_upgrade: bool = True,
) -> None:
    """Reject a new submission when the profile has used its monthly quota.

    ``show_upgrade`` is False when the caller is not the profile owner (a
    customer requesting a quote), so no upgrade link is exposed to them.
    """
    if await can_submit(db, profile, kind):
        return

    _, limit_kind = _SOURCES[kind]
    limit = limits_for(profile.subscription_tier).get(limit_kind)
    logger.info("Profile %s hit monthly %s limit (%d)", profile.id, kind.value, limit)

    if kind == UsageKind.APPLICATIONS:
        raise QuotaExceededError(
            f"You have reached your monthly application limit ({limit}). "
            "Upgrade your plan to apply for more jobs.",
            upgrade_url=UPGRADE_URL if show_upgrade else None,
        )
    if show_upgrade:
        raise QuotaExceededError(
            f"You have reached your monthly quote request limit ({limit}).",
            upgrade_url=UPGRADE_URL,
        )
    raise QuotaExceededError("This tradesperson is not accepting new quote requests this month")
