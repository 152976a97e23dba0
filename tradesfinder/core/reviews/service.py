import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import ReviewStatus, UserRole
from tradesfinder.common.exceptions import ConflictError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.core.access.gate import AuthContext, Operation, profile_resource, require_access, require_role
from tradesfinder.core.lookups import get_or_404
from tradesfinder.core.workflows.audit import apply_transition
from tradesfinder.core.workflows.definitions import REVIEW_WORKFLOW
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.base import utcnow
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.review import Review

logger = get_logger("reviews.service")

MIN_CONTENT_LENGTH = 50
MIN_RESPONSE_LENGTH = 10


async def recompute_profile_rating(db: AsyncSession, profile_id: uuid.UUID) -> TradesProfile:
    """Rebuild ``average_rating``/``review_count`` from the approved reviews.

    Idempotent; called after every review status change that enters or
    leaves APPROVED.
    """
    result = await db.execute(
        select(func.avg(Review.overall_rating), func.count(Review.id)).where(
            Review.profile_id == profile_id,
            Review.status == ReviewStatus.APPROVED.value,
            Review.is_deleted.is_(False),
        )
    )
    average, count = result.one()

    profile = await get_or_404(db, TradesProfile, profile_id, "Trades profile")
    profile.average_rating = float(average) if count else 0.0
    profile.review_count = count
    await db.flush()

    logger.info("Profile %s rating recomputed: %.2f over %d reviews", profile_id, profile.average_rating, count)
    return profile


def _check_rating(value: int | None, label: str) -> None:
    if value is None:
        return
    if not 1 <= value <= 5:
        raise ValidationError(f"{label} must be between 1 and 5")


class ReviewService:
    async def create(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        profile_id: uuid.UUID,
        overall_rating: int,
        title: str,
        content: str,
        quality_rating: int | None = None,
        reliability_rating: int | None = None,
        value_rating: int | None = None,
        work_type: str | None = None,
        work_date: datetime | None = None,
        cost: str | None = None,
    ) -> Review:
        require_role(ctx, UserRole.CUSTOMER, UserRole.TRADESPERSON, UserRole.ADMIN)

        profile = await get_or_404(db, TradesProfile, profile_id, "Trades profile")
        require_access(ctx, profile_resource(profile), Operation.READ)
        if profile.user_id == ctx.user_id:
            raise ValidationError("You cannot review your own profile")

        _check_rating(overall_rating, "Rating")
        _check_rating(quality_rating, "Quality rating")
        _check_rating(reliability_rating, "Reliability rating")
        _check_rating(value_rating, "Value rating")

        title = (title or "").strip()
        content = (content or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if len(content) < MIN_CONTENT_LENGTH:
            raise ValidationError(f"Review must be at least {MIN_CONTENT_LENGTH} characters")

        existing = await db.execute(
            select(Review.id).where(
                Review.author_id == ctx.user_id,
                Review.profile_id == profile.id,
                Review.is_deleted.is_(False),
            )
        )
        if existing.scalar_one_or_none():
            raise ConflictError("You have already reviewed this tradesperson")

        review = Review(
            profile_id=profile.id,
            author_id=ctx.user_id,
            status=ReviewStatus.PENDING.value,
            overall_rating=overall_rating,
            quality_rating=quality_rating,
            reliability_rating=reliability_rating,
            value_rating=value_rating,
            title=title,
            content=content,
            work_type=work_type,
            work_date=work_date,
            cost=cost,
        )
        try:
            async with db.begin_nested():
                db.add(review)
        except IntegrityError:
            raise ConflictError("You have already reviewed this tradesperson")
        await db.refresh(review)

        logger.info("Review %s submitted for profile %s", review.id, profile.id)
        return review

    async def list_approved(self, db: AsyncSession, profile_id: uuid.UUID) -> list[Review]:
        result = await db.execute(
            select(Review)
            .where(
                Review.profile_id == profile_id,
                Review.status == ReviewStatus.APPROVED.value,
                Review.is_deleted.is_(False),
            )
            .order_by(Review.created_at.desc())
        )
        return list(result.scalars().all())

    async def respond(self, db: AsyncSession, ctx: AuthContext, review_id: uuid.UUID, response: str) -> Review:
        review = await get_or_404(db, Review, review_id, "Review")
        profile = await get_or_404(db, TradesProfile, review.profile_id, "Trades profile")
        # Only the reviewed tradesperson may reply
        require_access(ctx, profile_resource(profile), Operation.MANAGE)

        if review.response:
            raise ConflictError("You have already responded to this review")

        response = (response or "").strip()
        if len(response) < MIN_RESPONSE_LENGTH:
            raise ValidationError(f"Response must be at least {MIN_RESPONSE_LENGTH} characters")

        review.response = response
        review.responded_at = utcnow()
        await db.flush()
        await db.refresh(review)
        return review

    async def moderate(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        review: Review,
        action: str,
        reason: str | None = None,
        actor: Actor = Actor.ADMIN,
    ) -> Review:
        reason = (reason or "").strip() or None
        if action == "reject" and not reason:
            raise ValidationError("A reason is required to reject a review")

        previous = await apply_transition(
            db, REVIEW_WORKFLOW, review, action, actor, ctx.user_id, reason=reason
        )
        if reason:
            review.moderation_reason = reason
        await db.flush()

        approved = ReviewStatus.APPROVED.value
        if approved in (previous, review.status):
            await recompute_profile_rating(db, review.profile_id)

        await db.refresh(review)
        return review
