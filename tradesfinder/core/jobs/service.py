import uuid
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import ApplicationStatus, JobStatus, UserRole
from tradesfinder.common.exceptions import ConflictError, NotFoundError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.common.pagination import PaginationParams, paginate
from tradesfinder.config import settings
from tradesfinder.core.access.gate import (
    AuthContext,
    Operation,
    actor_for,
    application_resource,
    job_resource,
    require_access,
    require_role,
)
from tradesfinder.core.lookups import get_or_404, require_own_profile
from tradesfinder.core.messaging.service import MessagingService
from tradesfinder.core.usage.counters import UsageKind, ensure_can_submit
from tradesfinder.core.workflows.audit import apply_transition
from tradesfinder.core.workflows.definitions import APPLICATION_WORKFLOW, JOB_WORKFLOW
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.base import as_utc, utcnow
from tradesfinder.db.models.job import Job, JobApplication
from tradesfinder.db.models.profile import Trade, TradesProfile, profile_trades

logger = get_logger("jobs.service")

MIN_COVER_LETTER_LENGTH = 50
MATCHING_LIMIT = 50
EDITABLE_FIELDS = ("title", "description", "postcode", "address", "budget_min", "budget_max", "timeframe", "images")


def is_expired(job: Job, now: datetime | None = None) -> bool:
    expires_at = as_utc(job.expires_at)
    return expires_at is not None and expires_at <= (now or utcnow())


def _check_budget(budget_min: int | None, budget_max: int | None) -> None:
    for value in (budget_min, budget_max):
        if value is not None and value < 0:
            raise ValidationError("Budget cannot be negative")
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        raise ValidationError("Minimum budget cannot exceed maximum budget")


class JobService:
    def __init__(self, messaging: MessagingService | None = None):
        self.messaging = messaging or MessagingService()

    # ---------- Jobs ----------

    async def create(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        trade_id: uuid.UUID,
        title: str,
        description: str,
        postcode: str,
        address: str | None = None,
        budget_min: int | None = None,
        budget_max: int | None = None,
        timeframe: str | None = None,
        images: list[str] | None = None,
    ) -> Job:
        require_role(ctx, UserRole.CUSTOMER)

        title = (title or "").strip()
        description = (description or "").strip()
        postcode = (postcode or "").strip().upper()
        if not title or not description or not postcode:
            raise ValidationError("Title, description and postcode are required")
        _check_budget(budget_min, budget_max)

        await get_or_404(db, Trade, trade_id, "Trade")

        job = Job(
            customer_id=ctx.user_id,
            trade_id=trade_id,
            title=title,
            description=description,
            postcode=postcode,
            address=address,
            budget_min=budget_min,
            budget_max=budget_max,
            timeframe=timeframe,
            images=images or [],
            status=JobStatus.OPEN.value,
            expires_at=utcnow() + timedelta(days=settings.JOB_EXPIRY_DAYS),
        )
        db.add(job)
        await db.flush()
        await db.refresh(job)

        logger.info("Job %s posted by %s", job.id, ctx.user_id)
        return job

    async def expire_if_due(self, db: AsyncSession, job: Job) -> Job:
        """Move an OPEN job past its expiry date to EXPIRED.

        Expiry is applied lazily whenever a job is loaded for an action.
        """
        if job.status == JobStatus.OPEN.value and is_expired(job):
            await apply_transition(db, JOB_WORKFLOW, job, "expire", Actor.SYSTEM, None)
            await db.flush()
        return job

    async def list_open(
        self,
        db: AsyncSession,
        params: PaginationParams,
        trade: str | None = None,
        postcode: str | None = None,
    ) -> tuple[list[Job], int]:
        query = select(Job).where(
            Job.status == JobStatus.OPEN.value,
            Job.expires_at > utcnow(),
            Job.is_deleted.is_(False),
        )
        if trade:
            query = query.join(Trade, Trade.id == Job.trade_id).where(
                or_(Trade.slug == trade, Trade.name.ilike(trade))
            )
        if postcode:
            area = postcode.strip().upper().split(" ")[0]
            query = query.where(Job.postcode.startswith(area))

        return await paginate(db, query.order_by(Job.created_at.desc()), params)

    async def matching_jobs(self, db: AsyncSession, ctx: AuthContext) -> list[tuple[Job, bool]]:
        """Open jobs in the tradesperson's trades, newest first, with whether they applied."""
        profile = await require_own_profile(db, ctx)

        trade_ids = (
            await db.execute(select(profile_trades.c.trade_id).where(profile_trades.c.profile_id == profile.id))
        ).scalars().all()
        if not trade_ids:
            return []

        result = await db.execute(
            select(Job)
            .where(
                Job.status == JobStatus.OPEN.value,
                Job.trade_id.in_(trade_ids),
                Job.expires_at > utcnow(),
                Job.is_deleted.is_(False),
            )
            .order_by(Job.created_at.desc())
            .limit(MATCHING_LIMIT)
        )
        jobs = list(result.scalars().all())

        applied = set(
            (
                await db.execute(
                    select(JobApplication.job_id).where(
                        JobApplication.profile_id == profile.id,
                        JobApplication.job_id.in_([j.id for j in jobs]),
                    )
                )
            ).scalars().all()
        )
        return [(job, job.id in applied) for job in jobs]

    async def get(self, db: AsyncSession, ctx: AuthContext, job_id: uuid.UUID) -> Job:
        job = await get_or_404(db, Job, job_id, "Job")
        await self.expire_if_due(db, job)
        require_access(ctx, job_resource(job, listing=True), Operation.READ)

        job.view_count = (job.view_count or 0) + 1
        await db.flush()
        await db.refresh(job)
        return job

    async def get_owned(self, db: AsyncSession, ctx: AuthContext, job_id: uuid.UUID) -> Job:
        job = await get_or_404(db, Job, job_id, "Job")
        require_access(ctx, job_resource(job), Operation.MANAGE)
        await self.expire_if_due(db, job)
        return job

    async def update(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        job_id: uuid.UUID,
        action: str | None = None,
        **fields,
    ) -> Job:
        job = await self.get_owned(db, ctx, job_id)

        changes = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS and v is not None}
        if changes:
            if job.status != JobStatus.OPEN.value:
                raise ValidationError("Only open jobs can be edited")
            if "postcode" in changes:
                changes["postcode"] = changes["postcode"].strip().upper()
            _check_budget(
                changes.get("budget_min", job.budget_min),
                changes.get("budget_max", job.budget_max),
            )
            for key, value in changes.items():
                setattr(job, key, value)

        if action:
            await apply_transition(db, JOB_WORKFLOW, job, action, Actor.CUSTOMER, ctx.user_id)

        await db.flush()
        await db.refresh(job)
        return job

    async def close(self, db: AsyncSession, ctx: AuthContext, job_id: uuid.UUID) -> Job:
        return await self.update(db, ctx, job_id, action="close")

    # ---------- Applications ----------

    async def apply(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        job_id: uuid.UUID,
        cover_letter: str,
        proposed_budget: int | None = None,
        proposed_start_date: datetime | None = None,
    ) -> JobApplication:
        require_role(ctx, UserRole.TRADESPERSON)
        profile = await require_own_profile(db, ctx)

        job = await get_or_404(db, Job, job_id, "Job")
        await self.expire_if_due(db, job)
        if job.status != JobStatus.OPEN.value:
            raise ValidationError("This job is no longer accepting applications")

        cover_letter = (cover_letter or "").strip()
        if len(cover_letter) < MIN_COVER_LETTER_LENGTH:
            raise ValidationError(f"Cover letter must be at least {MIN_COVER_LETTER_LENGTH} characters")
        if proposed_budget is not None and proposed_budget < 0:
            raise ValidationError("Proposed budget cannot be negative")

        existing = await db.execute(
            select(JobApplication.id).where(
                JobApplication.job_id == job.id,
                JobApplication.profile_id == profile.id,
            )
        )
        if existing.scalar_one_or_none():
            raise ConflictError("You have already applied to this job")

        await ensure_can_submit(db, profile, UsageKind.APPLICATIONS)

        application = JobApplication(
            job_id=job.id,
            profile_id=profile.id,
            status=ApplicationStatus.PENDING.value,
            cover_letter=cover_letter,
            proposed_budget=proposed_budget,
            proposed_start_date=proposed_start_date,
        )
        try:
            async with db.begin_nested():
                db.add(application)
        except IntegrityError:
            raise ConflictError("You have already applied to this job")

        await db.refresh(application)
        logger.info("Profile %s applied to job %s", profile.id, job.id)
        return application

    async def list_applications(
        self, db: AsyncSession, ctx: AuthContext, job_id: uuid.UUID
    ) -> list[tuple[JobApplication, TradesProfile]]:
        """Applications for the caller's job; unread ones become VIEWED."""
        job = await self.get_owned(db, ctx, job_id)

        result = await db.execute(
            select(JobApplication, TradesProfile)
            .join(TradesProfile, TradesProfile.id == JobApplication.profile_id)
            .where(JobApplication.job_id == job.id, JobApplication.is_deleted.is_(False))
            .order_by(JobApplication.created_at.desc())
        )
        rows = [tuple(row) for row in result.all()]

        now = utcnow()
        for application, _ in rows:
            if application.status == ApplicationStatus.PENDING.value:
                await apply_transition(db, APPLICATION_WORKFLOW, application, "view", Actor.SYSTEM, ctx.user_id)
                application.viewed_at = now
        await db.flush()
        return rows

    async def update_application(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        job_id: uuid.UUID,
        application_id: uuid.UUID,
        action: str,
    ) -> JobApplication:
        job = await get_or_404(db, Job, job_id, "Job")
        application = await get_or_404(db, JobApplication, application_id, "Application")
        if application.job_id != job.id:
            raise NotFoundError("Application")
        profile = await get_or_404(db, TradesProfile, application.profile_id, "Trades profile")

        require_access(ctx, application_resource(application, job, profile), Operation.MANAGE)
        await self.expire_if_due(db, job)
        actor = actor_for(ctx, customer_id=job.customer_id, tradesperson_user_id=profile.user_id)

        if action == "accept" and actor == Actor.CUSTOMER:
            # Validate both transitions before changing anything
            APPLICATION_WORKFLOW.fire(application.status, action, actor)
            if job.status != JobStatus.IN_PROGRESS.value:
                JOB_WORKFLOW.fire(job.status, "start", Actor.SYSTEM)

        await apply_transition(db, APPLICATION_WORKFLOW, application, action, actor, ctx.user_id)

        if application.status == ApplicationStatus.ACCEPTED.value:
            if job.status != JobStatus.IN_PROGRESS.value:
                await apply_transition(db, JOB_WORKFLOW, job, "start", Actor.SYSTEM, ctx.user_id)
            await self.messaging.open_conversation(
                db,
                participant_ids=[job.customer_id, profile.user_id],
                sender_id=job.customer_id,
                content=(
                    f'Your application for "{job.title}" has been accepted! '
                    "Let's discuss the details."
                ),
                job_application_id=application.id,
            )

        await db.flush()
        await db.refresh(application)
        logger.info("Application %s %s by %s", application.id, application.status, actor.value)
        return application

    async def list_my_applications(
        self, db: AsyncSession, ctx: AuthContext, status: str | None = None
    ) -> list[tuple[JobApplication, Job]]:
        profile = await require_own_profile(db, ctx)

        query = (
            select(JobApplication, Job)
            .join(Job, Job.id == JobApplication.job_id)
            .where(JobApplication.profile_id == profile.id, JobApplication.is_deleted.is_(False))
        )
        if status:
            query = query.where(JobApplication.status == status)
        result = await db.execute(query.order_by(JobApplication.created_at.desc()))
        return [tuple(row) for row in result.all()]
