"""
Seed script for Tradesfinder.

Populates the trade catalogue, an admin account and a small set of demo
customers and tradespeople so the job board and profiles have content.

Usage:
    python -m tradesfinder.scripts.seed
"""

import asyncio
import uuid
from datetime import timedelta

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import JobStatus, SubscriptionTier, Timeframe, UserRole
from tradesfinder.common.security import get_password_hash
from tradesfinder.config import settings
from tradesfinder.core.profiles.service import slugify
from tradesfinder.db.base import utcnow
from tradesfinder.db.models import Job, Trade, TradesProfile, User, profile_trades
from tradesfinder.db.session import async_session_factory

ADMIN_EMAIL = "admin@tradesfinder.co.uk"

TRADE_CATALOGUE = {
    "Plumbing": ["Boiler Repair", "Bathroom Fitting", "Leak Detection"],
    "Electrical": ["Rewiring", "EV Charger Installation", "Fault Finding"],
    "Building": ["Extensions", "Loft Conversions", "Brickwork"],
    "Carpentry": ["Kitchen Fitting", "Flooring", "Doors and Windows"],
    "Decorating": ["Painting", "Wallpapering"],
    "Roofing": ["Flat Roofs", "Guttering"],
    "Landscaping": ["Fencing", "Patios", "Garden Design"],
    "Plastering": [],
    "Tiling": [],
}


async def seed_trades(session: AsyncSession) -> dict[str, Trade]:
    trades: dict[str, Trade] = {}
    for parent_name, children in TRADE_CATALOGUE.items():
        parent = Trade(id=uuid.uuid4(), name=parent_name, slug=slugify(parent_name))
        session.add(parent)
        trades[parent_name] = parent
        for child_name in children:
            child = Trade(id=uuid.uuid4(), name=child_name, slug=slugify(child_name), parent_id=parent.id)
            session.add(child)
            trades[child_name] = child
    await session.flush()
    return trades


async def seed(session: AsyncSession) -> dict[str, int] | None:
    """Insert demo data. Returns counts, or None when already seeded."""
    result = await session.execute(select(User).where(User.email == ADMIN_EMAIL))
    if result.scalar_one_or_none() is not None:
        return None

    trades = await seed_trades(session)
    hashed = get_password_hash("testpass123")

    # ==================================================================
    # USERS
    # ==================================================================
    admin = User(
        id=uuid.uuid4(),
        email=ADMIN_EMAIL,
        hashed_password=get_password_hash("adminpass123"),
        name="Platform Admin",
        role=UserRole.ADMIN.value,
    )
    customers = [
        User(
            id=uuid.uuid4(),
            email="priya@example.com",
            hashed_password=hashed,
            name="Priya Patel",
            phone="07700 900101",
            role=UserRole.CUSTOMER.value,
        ),
        User(
            id=uuid.uuid4(),
            email="tom@example.com",
            hashed_password=hashed,
            name="Tom Hughes",
            phone="07700 900102",
            role=UserRole.CUSTOMER.value,
        ),
    ]
    session.add_all([admin, *customers])

    # ==================================================================
    # TRADESPEOPLE
    # ==================================================================
    tradespeople = [
        ("Dave Morgan", "Morgan Plumbing & Heating", "Manchester", "M1 2AB", ["Plumbing", "Boiler Repair"],
         SubscriptionTier.PRO),
        ("Aisha Khan", "Bright Spark Electrical", "London", "SE1 7PB", ["Electrical", "Rewiring"],
         SubscriptionTier.FREE),
        ("Gareth Jones", "Valley Builders", "Cardiff", "CF10 1EP", ["Building", "Extensions", "Brickwork"],
         SubscriptionTier.PREMIUM),
    ]
    profiles = []
    for name, business_name, city, postcode, trade_names, tier in tradespeople:
        user = User(
            id=uuid.uuid4(),
            email=f"{slugify(name)}@example.com",
            hashed_password=hashed,
            name=name,
            role=UserRole.TRADESPERSON.value,
        )
        session.add(user)
        await session.flush()

        profile = TradesProfile(
            id=uuid.uuid4(),
            user_id=user.id,
            business_name=business_name,
            slug=slugify(business_name),
            email=user.email,
            city=city,
            postcode=postcode,
            bio=f"{business_name} has served {city} and the surrounding area for over ten years.",
            subscription_tier=tier.value,
        )
        session.add(profile)
        await session.flush()
        await session.execute(
            insert(profile_trades),
            [{"profile_id": profile.id, "trade_id": trades[t].id} for t in trade_names],
        )
        profiles.append(profile)

    # ==================================================================
    # JOBS
    # ==================================================================
    jobs = [
        Job(
            customer_id=customers[0].id,
            trade_id=trades["Boiler Repair"].id,
            title="Combi boiler losing pressure",
            description="Pressure drops to zero every couple of days. Boiler is about eight years old.",
            postcode="M14 5TQ",
            budget_min=100,
            budget_max=400,
            timeframe=Timeframe.ASAP.value,
            status=JobStatus.OPEN.value,
            expires_at=utcnow() + timedelta(days=settings.JOB_EXPIRY_DAYS),
        ),
        Job(
            customer_id=customers[1].id,
            trade_id=trades["Rewiring"].id,
            title="Full rewire of a two bedroom flat",
            description="Ground floor flat, original wiring. Flat is empty so access is easy.",
            postcode="SE15 4QN",
            budget_min=3000,
            budget_max=5000,
            timeframe=Timeframe.ONE_MONTH.value,
            status=JobStatus.OPEN.value,
            expires_at=utcnow() + timedelta(days=settings.JOB_EXPIRY_DAYS),
        ),
    ]
    session.add_all(jobs)
    await session.flush()

    return {
        "trades": len(trades),
        "users": 1 + len(customers) + len(profiles),
        "profiles": len(profiles),
        "jobs": len(jobs),
    }


async def main() -> None:
    async with async_session_factory() as session:
        counts = await seed(session)
        if counts is None:
            print("Database already seeded -- skipping.")
            return
        await session.commit()
        print(
            f"Seeded: {counts['trades']} trades, {counts['users']} users, "
            f"{counts['profiles']} profiles, {counts['jobs']} jobs"
        )


if __name__ == "__main__":
    asyncio.run(main())
