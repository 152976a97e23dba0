import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.entitlements.limits import LimitKind, remaining
from tradesfinder.core.lookups import require_own_profile
from tradesfinder.core.profiles.service import ProfileService, trade_ids_for
from tradesfinder.core.reviews.service import ReviewService
from tradesfinder.core.usage.counters import UsageKind, count_this_month
from tradesfinder.db.models.profile import PortfolioItem, Trade, TradesProfile

router = APIRouter(tags=["Profiles"])

profiles = ProfileService()
reviews = ReviewService()


# ---------- Schemas ----------


class TradeResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str

    model_config = {"from_attributes": True}


class TradeTreeResponse(TradeResponse):
    children: list[TradeResponse] = []


class PortfolioItemRequest(BaseModel):
    title: str
    description: str | None = None
    location: str | None = None
    images: list[str] = []


class PortfolioItemResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    location: str | None
    images: list[str] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdateRequest(BaseModel):
    business_name: str | None = None
    phone: str | None = None
    email: str | None = None
    city: str | None = None
    postcode: str | None = None
    bio: str | None = None
    coverage_radius: int | None = None
    selected_trades: list[uuid.UUID] | None = None


class ProfileReviewResponse(BaseModel):
    id: uuid.UUID
    overall_rating: int
    title: str
    content: str
    response: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileResponse(BaseModel):
    id: uuid.UUID
    business_name: str
    slug: str
    city: str | None
    postcode: str | None
    bio: str | None
    coverage_radius: int
    is_active: bool
    is_verified: bool
    subscription_tier: str
    average_rating: float
    review_count: int
    response_rate: float | None
    trades: list[TradeResponse] = []
    portfolio: list[PortfolioItemResponse] = []
    reviews: list[ProfileReviewResponse] = []


class UsageResponse(BaseModel):
    applications_used: int
    applications_remaining: int
    quotes_received: int
    quotes_remaining: int


class OwnProfileResponse(ProfileResponse):
    phone: str | None
    email: str | None
    usage: UsageResponse


# ---------- Endpoints ----------


@router.get("/trades", response_model=list[TradeTreeResponse])
async def list_trades(db: AsyncSession = Depends(get_db)):
    tree = await profiles.list_trades(db)
    return [
        TradeTreeResponse(
            id=trade.id,
            name=trade.name,
            slug=trade.slug,
            children=[TradeResponse.model_validate(c) for c in children],
        )
        for trade, children in tree
    ]


@router.get("/profiles/{slug}", response_model=ProfileResponse)
async def get_public_profile(
    slug: str,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    profile = await profiles.get_public(db, ctx, slug)
    return ProfileResponse(
        **await _profile_fields(db, profile),
        reviews=[ProfileReviewResponse.model_validate(r) for r in await reviews.list_approved(db, profile.id)],
    )


@router.get("/profile", response_model=OwnProfileResponse)
async def get_own_profile(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    profile = await require_own_profile(db, ctx)
    return await _own_profile_response(db, profile)


@router.patch("/profile", response_model=OwnProfileResponse)
async def update_own_profile(
    body: ProfileUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude={"selected_trades"}, exclude_none=True)
    profile = await profiles.update_own(db, ctx, trade_ids=body.selected_trades, **fields)
    return await _own_profile_response(db, profile)


@router.post("/portfolio", response_model=PortfolioItemResponse, status_code=201)
async def add_portfolio_item(
    body: PortfolioItemRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await profiles.add_portfolio_item(
        db, ctx, title=body.title, description=body.description, location=body.location, images=body.images
    )


@router.delete("/portfolio/{item_id}", status_code=204)
async def delete_portfolio_item(
    item_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await profiles.delete_portfolio_item(db, ctx, item_id)


async def _profile_fields(db: AsyncSession, profile: TradesProfile) -> dict:
    trade_ids = await trade_ids_for(db, profile.id)
    trades = []
    if trade_ids:
        result = await db.execute(select(Trade).where(Trade.id.in_(trade_ids)).order_by(Trade.name))
        trades = [TradeResponse.model_validate(t) for t in result.scalars().all()]
    items: list[PortfolioItem] = await profiles.list_portfolio(db, profile.id)

    return {
        "id": profile.id,
        "business_name": profile.business_name,
        "slug": profile.slug,
        "city": profile.city,
        "postcode": profile.postcode,
        "bio": profile.bio,
        "coverage_radius": profile.coverage_radius,
        "is_active": profile.is_active,
        "is_verified": profile.is_verified,
        "subscription_tier": profile.subscription_tier,
        "average_rating": profile.average_rating,
        "review_count": profile.review_count,
        "response_rate": profile.response_rate,
        "trades": trades,
        "portfolio": [PortfolioItemResponse.model_validate(i) for i in items],
    }


async def _own_profile_response(db: AsyncSession, profile: TradesProfile) -> OwnProfileResponse:
    applications = await count_this_month(db, profile.id, UsageKind.APPLICATIONS)
    quotes = await count_this_month(db, profile.id, UsageKind.QUOTES)
    return OwnProfileResponse(
        **await _profile_fields(db, profile),
        phone=profile.phone,
        email=profile.email,
        usage=UsageResponse(
            applications_used=applications,
            applications_remaining=remaining(profile.subscription_tier, LimitKind.APPLICATIONS, applications),
            quotes_received=quotes,
            quotes_remaining=remaining(profile.subscription_tier, LimitKind.QUOTES, quotes),
        ),
    )
