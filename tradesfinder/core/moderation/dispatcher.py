"""Admin moderation of user reports.

Resolving a report can cascade a content action onto the reported item
(reject or flag a review, deactivate a profile, delete a message). The
report's own transition is validated before anything is touched, and the
content action runs in the same savepoint as the report update: if the
action fails, neither the report nor the target changes.
"""

from collections.abc import Awaitable, Callable

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import ContentAction, ReportTargetType, ReviewStatus
from tradesfinder.common.exceptions import NotFoundError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.reports.service import load_target
from tradesfinder.core.reviews.service import ReviewService
from tradesfinder.core.workflows.audit import record_transition
from tradesfinder.core.workflows.definitions import REPORT_WORKFLOW
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.base import utcnow
from tradesfinder.db.models.report import Report

logger = get_logger("moderation.dispatcher")

DEFAULT_DISMISSAL = "Dismissed by moderator without further action"

ALLOWED_CONTENT_ACTIONS = {
    ReportTargetType.REVIEW.value: {ContentAction.REJECT, ContentAction.FLAG},
    ReportTargetType.PROFILE.value: {ContentAction.DEACTIVATE},
    ReportTargetType.MESSAGE.value: {ContentAction.DELETE},
}

ContentHandler = Callable[[AsyncSession, Report, AuthContext, str], Awaitable[None]]


class ModerationPayload(BaseModel):
    resolution: str | None = None
    content_action: ContentAction | None = None


class ModerationDispatcher:
    def __init__(self, reviews: ReviewService | None = None):
        self.reviews = reviews or ReviewService()
        self.handlers: dict[tuple[str, ContentAction], ContentHandler] = {
            (ReportTargetType.REVIEW.value, ContentAction.REJECT): self._reject_review,
            (ReportTargetType.REVIEW.value, ContentAction.FLAG): self._flag_review,
            (ReportTargetType.PROFILE.value, ContentAction.DEACTIVATE): self._deactivate_profile,
            (ReportTargetType.MESSAGE.value, ContentAction.DELETE): self._delete_message,
        }

    async def apply(
        self,
        db: AsyncSession,
        report: Report,
        action: str,
        payload: ModerationPayload,
        ctx: AuthContext,
    ) -> Report:
        target_status = REPORT_WORKFLOW.fire(report.status, action, Actor.ADMIN)

        resolution = (payload.resolution or "").strip() or None
        content_action = payload.content_action

        if action == "resolve":
            if not resolution:
                raise ValidationError("A resolution is required to resolve a report")
            if content_action is None:
                raise ValidationError("A content action is required to resolve a report")
            if content_action != ContentAction.NONE and content_action not in ALLOWED_CONTENT_ACTIONS.get(
                report.target_type, set()
            ):
                raise ValidationError(
                    f"Content action '{content_action.value}' is not valid for {report.target_type.lower()} reports"
                )
        else:
            content_action = None
            if action == "dismiss" and not resolution:
                resolution = DEFAULT_DISMISSAL

        async with db.begin_nested():
            if content_action is not None and content_action != ContentAction.NONE:
                handler = self.handlers[(report.target_type, content_action)]
                await handler(db, report, ctx, resolution)

            previous = report.status
            report.status = target_status
            if resolution is not None:
                report.resolution = resolution
            if content_action is not None:
                report.content_action = content_action.value
            report.handled_by = ctx.user_id
            report.handled_at = utcnow()
            await record_transition(
                db,
                REPORT_WORKFLOW.entity,
                report.id,
                action,
                ctx.user_id,
                previous,
                target_status,
                content_action=content_action.value if content_action else None,
            )

        await db.refresh(report)
        logger.info("Report %s %s by %s", report.id, report.status, ctx.user_id)
        return report

    # ---------- Content actions ----------

    async def _target(self, db: AsyncSession, report: Report):
        target = await load_target(db, report.target_type, report.target_id)
        if target is None:
            raise NotFoundError("Reported content")
        return target

    async def _reject_review(self, db: AsyncSession, report: Report, ctx: AuthContext, resolution: str) -> None:
        review = await self._target(db, report)
        if review.status != ReviewStatus.REJECTED.value:
            await self.reviews.moderate(db, ctx, review, "reject", reason=resolution)

    async def _flag_review(self, db: AsyncSession, report: Report, ctx: AuthContext, resolution: str) -> None:
        review = await self._target(db, report)
        if review.status != ReviewStatus.FLAGGED.value:
            await self.reviews.moderate(db, ctx, review, "flag", reason=resolution)

    async def _deactivate_profile(self, db: AsyncSession, report: Report, ctx: AuthContext, resolution: str) -> None:
        profile = await self._target(db, report)
        profile.is_active = False
        await db.flush()
        logger.info("Profile %s deactivated (report %s)", profile.id, report.id)

    async def _delete_message(self, db: AsyncSession, report: Report, ctx: AuthContext, resolution: str) -> None:
        message = await self._target(db, report)
        message.soft_delete()
        await db.flush()
        logger.info("Message %s deleted (report %s)", message.id, report.id)