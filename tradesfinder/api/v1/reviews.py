import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.reviews.service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])

reviews = ReviewService()


# ---------- Schemas ----------


class ReviewCreateRequest(BaseModel):
    profile_id: uuid.UUID
    overall_rating: int
    title: str
    content: str
    quality_rating: int | None = None
    reliability_rating: int | None = None
    value_rating: int | None = None
    work_type: str | None = None
    work_date: datetime | None = None
    cost: str | None = None


class ReviewRespondRequest(BaseModel):
    response: str


class ReviewResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    author_id: uuid.UUID
    status: str
    overall_rating: int
    quality_rating: int | None
    reliability_rating: int | None
    value_rating: int | None
    title: str
    content: str
    work_type: str | None
    work_date: datetime | None
    is_verified: bool
    response: str | None
    responded_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ---------- Endpoints ----------


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    body: ReviewCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await reviews.create(db, ctx, **body.model_dump())


@router.get("", response_model=list[ReviewResponse])
async def list_reviews(
    profile_id: uuid.UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await reviews.list_approved(db, profile_id)


@router.post("/{review_id}/respond", response_model=ReviewResponse)
async def respond_to_review(
    review_id: uuid.UUID,
    body: ReviewRespondRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await reviews.respond(db, ctx, review_id, body.response)
