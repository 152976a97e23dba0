import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.quotes.service import GuestContact, QuoteService
from tradesfinder.db.models.quote import QuoteRequest

router = APIRouter(prefix="/quotes", tags=["Quotes"])

quotes = QuoteService()


# ---------- Schemas ----------


class QuoteCreateRequest(BaseModel):
    profile_id: uuid.UUID
    title: str
    description: str
    postcode: str
    trade_type: str | None = None
    address: str | None = None
    timeframe: str | None = None
    preferred_dates: str | None = None
    budget_range: str | None = None
    images: list[str] = []
    # Guest requests only
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None


class QuoteRespondRequest(BaseModel):
    message: str
    estimated_cost: str | None = None
    available_date: str | None = None


class QuoteDecisionRequest(BaseModel):
    action: str  # "accept", "decline"


class QuoteResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    customer_id: uuid.UUID | None
    title: str
    description: str
    trade_type: str | None
    postcode: str
    timeframe: str | None
    preferred_dates: str | None
    budget_range: str | None
    images: list[str] | None
    status: str
    viewed_at: datetime | None
    responded_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class QuoteRespondResponse(BaseModel):
    quote: QuoteResponse
    conversation_id: uuid.UUID | None


# ---------- Endpoints ----------


@router.post("", response_model=QuoteResponse, status_code=201)
async def create_quote(
    body: QuoteCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await quotes.create(
        db,
        ctx,
        profile_id=body.profile_id,
        title=body.title,
        description=body.description,
        postcode=body.postcode,
        contact=GuestContact(name=body.name, email=body.email, phone=body.phone),
        trade_type=body.trade_type,
        address=body.address,
        timeframe=body.timeframe,
        preferred_dates=body.preferred_dates,
        budget_range=body.budget_range,
        images=body.images,
    )


@router.get("", response_model=list[QuoteResponse])
async def list_quotes(
    status: str | None = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await quotes.list_for_caller(db, ctx, status=status)


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    quote_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await quotes.get(db, ctx, quote_id)


@router.post("/{quote_id}/respond", response_model=QuoteRespondResponse)
async def respond_to_quote(
    quote_id: uuid.UUID,
    body: QuoteRespondRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    quote, conversation = await quotes.respond(
        db,
        ctx,
        quote_id,
        message=body.message,
        estimated_cost=body.estimated_cost,
        available_date=body.available_date,
    )
    return QuoteRespondResponse(
        quote=_quote_to_response(quote),
        conversation_id=conversation.id if conversation else None,
    )


@router.post("/{quote_id}/close", response_model=QuoteResponse)
async def close_quote(
    quote_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await quotes.close(db, ctx, quote_id)


@router.patch("/{quote_id}", response_model=QuoteResponse)
async def decide_quote(
    quote_id: uuid.UUID,
    body: QuoteDecisionRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await quotes.decide(db, ctx, quote_id, body.action)


def _quote_to_response(quote: QuoteRequest) -> QuoteResponse:
    return QuoteResponse.model_validate(quote)
