import uuid

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import ReportReason, ReportStatus, ReportTargetType, ReviewStatus
from tradesfinder.common.exceptions import AuthenticationRequiredError, ConflictError, NotFoundError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.common.pagination import PaginationParams, paginate
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.reviews.service import ReviewService
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.models.conversation import Message
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.report import Report
from tradesfinder.db.models.review import Review

logger = get_logger("reports.service")

TARGET_MODELS = {
    ReportTargetType.REVIEW.value: Review,
    ReportTargetType.PROFILE.value: TradesProfile,
    ReportTargetType.MESSAGE.value: Message,
}

OPEN_STATUSES = (ReportStatus.PENDING.value, ReportStatus.INVESTIGATING.value)


async def load_target(db: AsyncSession, target_type: str, target_id: uuid.UUID):
    model = TARGET_MODELS[target_type]
    result = await db.execute(select(model).where(model.id == target_id, model.is_deleted.is_(False)))
    return result.scalar_one_or_none()


class ReportService:
    def __init__(self, reviews: ReviewService | None = None):
        self.reviews = reviews or ReviewService()

    async def create(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        target_type: str,
        target_id: uuid.UUID,
        reason: str,
        description: str | None = None,
    ) -> Report:
        if ctx.is_anonymous:
            raise AuthenticationRequiredError("You must be logged in to submit a report")
        if target_type not in TARGET_MODELS:
            raise ValidationError("Invalid target type")
        if reason not in ReportReason.__members__:
            raise ValidationError("Invalid report reason")

        target = await load_target(db, target_type, target_id)
        if target is None:
            raise NotFoundError("Reported content")

        existing = await db.execute(
            select(Report.id).where(
                Report.reporter_id == ctx.user_id,
                Report.target_type == target_type,
                Report.target_id == target_id,
                Report.status.in_(OPEN_STATUSES),
                Report.is_deleted.is_(False),
            )
        )
        if existing.scalars().first():
            raise ConflictError("You have already reported this content")

        report = Report(
            reporter_id=ctx.user_id,
            target_type=target_type,
            target_id=target_id,
            reason=reason,
            description=(description or "").strip() or None,
            status=ReportStatus.PENDING.value,
        )
        db.add(report)
        await db.flush()

        # A reported review drops out of public view until moderated
        if target_type == ReportTargetType.REVIEW.value and target.status == ReviewStatus.APPROVED.value:
            await self.reviews.moderate(db, ctx, target, "flag", actor=Actor.SYSTEM)

        await db.refresh(report)
        logger.info("Report %s filed against %s %s", report.id, target_type, target_id)
        return report

    async def list_reports(
        self,
        db: AsyncSession,
        params: PaginationParams,
        status: str | None = None,
        target_type: str | None = None,
    ) -> tuple[list[Report], int]:
        query = select(Report).where(Report.is_deleted.is_(False))
        if status and status != "all":
            query = query.where(Report.status == status)
        if target_type and target_type != "all":
            query = query.where(Report.target_type == target_type)

        # Open reports first
        open_first = case((Report.status.in_(OPEN_STATUSES), 0), else_=1)
        return await paginate(db, query.order_by(open_first, Report.created_at.desc()), params)
