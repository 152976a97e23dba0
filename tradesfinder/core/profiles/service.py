import re
import uuid

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import UserRole
from tradesfinder.common.exceptions import ConflictError, NotFoundError, QuotaExceededError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.common.security import get_password_hash
from tradesfinder.core.access.gate import AuthContext, Operation, can_access, profile_resource, require_access
from tradesfinder.core.entitlements.limits import UPGRADE_URL, LimitKind, is_unlimited, limits_for
from tradesfinder.core.lookups import require_own_profile
from tradesfinder.db.models.profile import PortfolioItem, Trade, TradesProfile, profile_trades
from tradesfinder.db.models.user import User

logger = get_logger("profiles.service")

DEFAULT_COVERAGE_RADIUS = 25
EDITABLE_FIELDS = ("business_name", "phone", "email", "city", "postcode", "bio", "coverage_radius")


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "business"


async def unique_slug(db: AsyncSession, business_name: str) -> str:
    base = slugify(business_name)
    slug, counter = base, 1
    while (await db.execute(select(TradesProfile.id).where(TradesProfile.slug == slug))).scalars().first():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


async def load_trades(db: AsyncSession, trade_ids: list[uuid.UUID]) -> list[Trade]:
    ids = list(dict.fromkeys(trade_ids))
    result = await db.execute(select(Trade).where(Trade.id.in_(ids), Trade.is_deleted.is_(False)))
    trades = list(result.scalars().all())
    if len(trades) != len(ids):
        raise ValidationError("One or more selected trades do not exist")
    return trades


async def trade_ids_for(db: AsyncSession, profile_id: uuid.UUID) -> list[uuid.UUID]:
    result = await db.execute(select(profile_trades.c.trade_id).where(profile_trades.c.profile_id == profile_id))
    return list(result.scalars().all())


class ProfileService:
    async def register_tradesperson(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password: str,
        business_name: str,
        phone: str,
        city: str,
        postcode: str,
        trade_ids: list[uuid.UUID],
        coverage_radius: int | None = None,
    ) -> tuple[User, TradesProfile]:
        """Create a TRADESPERSON user and their profile in one go."""
        if not all(v and str(v).strip() for v in (name, email, password, business_name, phone, city, postcode)):
            raise ValidationError("Missing required fields")
        if not trade_ids:
            raise ValidationError("Please select at least one trade")

        email = email.strip().lower()
        existing = await db.execute(select(User.id).where(User.email == email))
        if existing.scalars().first():
            raise ConflictError("An account with this email already exists")

        await load_trades(db, trade_ids)

        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            name=name.strip(),
            phone=phone,
            role=UserRole.TRADESPERSON.value,
        )
        db.add(user)
        await db.flush()

        profile = TradesProfile(
            user_id=user.id,
            business_name=business_name.strip(),
            slug=await unique_slug(db, business_name),
            phone=phone,
            email=email,
            city=city.strip(),
            postcode=postcode.strip().upper(),
            coverage_radius=coverage_radius or DEFAULT_COVERAGE_RADIUS,
        )
        db.add(profile)
        await db.flush()
        await self._set_trades(db, profile.id, trade_ids)
        await db.refresh(profile)

        logger.info("Tradesperson %s registered with profile %s (%s)", user.id, profile.id, profile.slug)
        return user, profile

    async def get_public(self, db: AsyncSession, ctx: AuthContext, slug: str) -> TradesProfile:
        result = await db.execute(
            select(TradesProfile).where(TradesProfile.slug == slug, TradesProfile.is_deleted.is_(False))
        )
        profile = result.scalar_one_or_none()
        if not profile:
            raise NotFoundError("Profile")
        if not can_view(ctx, profile):
            # Deactivated profiles are gone as far as the public is concerned
            raise NotFoundError("Profile")
        return profile

    async def update_own(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        trade_ids: list[uuid.UUID] | None = None,
        **fields,
    ) -> TradesProfile:
        profile = await require_own_profile(db, ctx)
        require_access(ctx, profile_resource(profile), Operation.MANAGE)

        for key, value in fields.items():
            if key not in EDITABLE_FIELDS or value is None:
                continue
            if key == "postcode":
                value = value.strip().upper()
            elif key == "business_name" and not value.strip():
                raise ValidationError("Business name cannot be blank")
            setattr(profile, key, value)

        if trade_ids:
            await load_trades(db, trade_ids)
            await db.execute(delete(profile_trades).where(profile_trades.c.profile_id == profile.id))
            await self._set_trades(db, profile.id, trade_ids)

        await db.flush()
        await db.refresh(profile)
        return profile

    async def _set_trades(self, db: AsyncSession, profile_id: uuid.UUID, trade_ids: list[uuid.UUID]) -> None:
        rows = [{"profile_id": profile_id, "trade_id": t} for t in dict.fromkeys(trade_ids)]
        await db.execute(insert(profile_trades), rows)

    async def list_trades(self, db: AsyncSession) -> list[tuple[Trade, list[Trade]]]:
        """Top-level trades with their sub-trades, both alphabetical."""
        result = await db.execute(select(Trade).where(Trade.is_deleted.is_(False)).order_by(Trade.name))
        trades = list(result.scalars().all())
        children: dict[uuid.UUID, list[Trade]] = {}
        for trade in trades:
            if trade.parent_id is not None:
                children.setdefault(trade.parent_id, []).append(trade)
        return [(t, children.get(t.id, [])) for t in trades if t.parent_id is None]

    # ---------- Portfolio ----------

    async def list_portfolio(self, db: AsyncSession, profile_id: uuid.UUID) -> list[PortfolioItem]:
        result = await db.execute(
            select(PortfolioItem)
            .where(PortfolioItem.profile_id == profile_id, PortfolioItem.is_deleted.is_(False))
            .order_by(PortfolioItem.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_portfolio_item(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        title: str,
        description: str | None = None,
        location: str | None = None,
        images: list[str] | None = None,
    ) -> PortfolioItem:
        profile = await require_own_profile(db, ctx)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        images = images or []

        limit = limits_for(profile.subscription_tier).get(LimitKind.PORTFOLIO_PHOTOS)
        if not is_unlimited(limit):
            held = sum(len(item.images or []) for item in await self.list_portfolio(db, profile.id))
            if held + len(images) > limit:
                raise QuotaExceededError(
                    f"Your plan allows a maximum of {limit} portfolio photos. Upgrade to add more.",
                    upgrade_url=UPGRADE_URL,
                )

        item = PortfolioItem(
            profile_id=profile.id,
            title=title,
            description=description,
            location=location,
            images=images,
        )
        db.add(item)
        await db.flush()
        await db.refresh(item)
        return item

    async def delete_portfolio_item(self, db: AsyncSession, ctx: AuthContext, item_id: uuid.UUID) -> None:
        profile = await require_own_profile(db, ctx)
        result = await db.execute(
            select(PortfolioItem).where(
                PortfolioItem.id == item_id,
                PortfolioItem.profile_id == profile.id,
                PortfolioItem.is_deleted.is_(False),
            )
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundError("Portfolio item")
        item.soft_delete()
        await db.flush()


def can_view(ctx: AuthContext, profile: TradesProfile) -> bool:
    return can_access(ctx, profile_resource(profile), Operation.READ)
