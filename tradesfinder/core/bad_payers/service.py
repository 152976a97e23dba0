import re
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import BadPayerStatus, DisputeStatus
from tradesfinder.common.exceptions import AuthenticationRequiredError, AuthorizationError, ConflictError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.common.pagination import PaginationParams, paginate
from tradesfinder.config import settings
from tradesfinder.core.access.gate import AuthContext, Operation, bad_payer_resource, require_access
from tradesfinder.core.bad_payers.content_filter import filter_error_message, filter_report_content
from tradesfinder.core.lookups import get_or_404, get_profile_for_user
from tradesfinder.core.workflows.audit import apply_transition
from tradesfinder.core.workflows.definitions import BAD_PAYER_WORKFLOW, DISPUTE_WORKFLOW
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.base import as_utc, utcnow
from tradesfinder.db.models.bad_payer import BadPayerDispute, BadPayerReport
from tradesfinder.db.models.profile import TradesProfile

logger = get_logger("bad_payers.service")

MIN_DESCRIPTION_LENGTH = 50
MIN_EXPLANATION_LENGTH = 50
OWNER_DELETABLE = (
    BadPayerStatus.DRAFT.value,
    BadPayerStatus.PENDING_REVIEW.value,
    BadPayerStatus.REJECTED.value,
)
HIDDEN_STATUSES = (
    BadPayerStatus.REJECTED.value,
    BadPayerStatus.REMOVED.value,
    BadPayerStatus.RESOLVED.value,
    BadPayerStatus.EXPIRED.value,
)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PIN_PRECISION = 2
MAX_MAP_LOCATIONS = 500


class ReportStats(BaseModel):
    total: int
    pending: int
    published: int
    disputed: int
    rejected: int
    total_owed: Decimal


def outward_code(postcode: str | None) -> str | None:
    if not postcode:
        return None
    return postcode.strip().upper()[:4] or None


def _pin(value: float | None) -> float | None:
    return None if value is None else round(value, PIN_PRECISION)


class BadPayerService:
    async def create(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        incident_date: datetime,
        work_description: str,
        agreed_amount: Decimal,
        amount_owed: Decimal,
        location_area: str,
        legal_consent_given: bool,
        truth_declaration: bool,
        location_postcode: str | None = None,
        payment_terms: str | None = None,
        invoice_reference: str | None = None,
        contract_reference: str | None = None,
        communication_summary: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> BadPayerReport:
        if ctx.is_anonymous:
            raise AuthenticationRequiredError()
        profile = await get_profile_for_user(db, ctx.user_id)
        if not profile:
            raise AuthorizationError("Only registered tradespeople can submit reports")

        work_description = (work_description or "").strip()
        location_area = (location_area or "").strip()
        if not work_description or not location_area or not agreed_amount or not amount_owed:
            raise ValidationError("Missing required fields")
        if agreed_amount < 0 or amount_owed < 0:
            raise ValidationError("Amounts cannot be negative")
        if not legal_consent_given or not truth_declaration:
            raise ValidationError("You must agree to the legal terms and confirm the information is true")
        if len(work_description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(f"Work description must be at least {MIN_DESCRIPTION_LENGTH} characters")
        if (latitude is None) != (longitude is None):
            raise ValidationError("Latitude and longitude must be given together")
        if latitude is not None and not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise ValidationError("Coordinates are out of range")

        communication_summary = (communication_summary or "").strip() or None
        result = filter_report_content(work_description, location_area, communication_summary)
        if not result.is_valid:
            raise ValidationError(
                filter_error_message(result.issues),
                extra={"issues": [issue.model_dump() for issue in result.issues]},
            )

        now = utcnow()
        report = BadPayerReport(
            reporter_id=profile.id,
            incident_date=incident_date,
            work_description=work_description,
            agreed_amount=agreed_amount,
            amount_owed=amount_owed,
            payment_terms=(payment_terms or "").strip() or None,
            location_area=location_area,
            location_postcode=outward_code(location_postcode),
            invoice_reference=(invoice_reference or "").strip() or None,
            contract_reference=(contract_reference or "").strip() or None,
            communication_summary=communication_summary,
            latitude=_pin(latitude),
            longitude=_pin(longitude),
            legal_consent_given=True,
            legal_consent_at=now,
            truth_declaration=True,
            status=BadPayerStatus.PENDING_REVIEW.value,
            expires_at=now + timedelta(days=settings.BAD_PAYER_EXPIRY_DAYS),
        )
        db.add(report)
        await db.flush()
        await db.refresh(report)

        logger.info("Bad payer report %s submitted by profile %s", report.id, profile.id)
        return report

    async def expire_if_due(self, db: AsyncSession, report: BadPayerReport) -> BadPayerReport:
        expires_at = as_utc(report.expires_at)
        if report.status == BadPayerStatus.PUBLISHED.value and expires_at and expires_at <= utcnow():
            await apply_transition(db, BAD_PAYER_WORKFLOW, report, "expire", Actor.SYSTEM, None)
            report.is_public = False
            await db.flush()
        return report

    async def list_reports(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        params: PaginationParams,
        search: str | None = None,
        postcode: str | None = None,
        status: str | None = None,
    ) -> tuple[list[BadPayerReport], int]:
        query = select(BadPayerReport).where(BadPayerReport.is_deleted.is_(False))
        if not ctx.is_admin:
            query = query.where(
                BadPayerReport.status == BadPayerStatus.PUBLISHED.value,
                BadPayerReport.is_public.is_(True),
                or_(BadPayerReport.expires_at.is_(None), BadPayerReport.expires_at > utcnow()),
            )
        elif status:
            query = query.where(BadPayerReport.status == status)

        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    BadPayerReport.work_description.ilike(pattern),
                    BadPayerReport.location_area.ilike(pattern),
                )
            )
        if postcode:
            query = query.where(BadPayerReport.location_postcode.startswith(outward_code(postcode)))

        return await paginate(db, query.order_by(BadPayerReport.created_at.desc()), params)

    async def locations(
        self,
        db: AsyncSession,
        postcode: str | None = None,
        min_amount: Decimal | None = None,
        max_amount: Decimal | None = None,
    ) -> list[tuple[BadPayerReport, str]]:
        """Published reports with a map pin, newest first, with the reporter's business name."""
        query = (
            select(BadPayerReport, TradesProfile.business_name)
            .join(TradesProfile, TradesProfile.id == BadPayerReport.reporter_id)
            .where(
                BadPayerReport.is_deleted.is_(False),
                BadPayerReport.status == BadPayerStatus.PUBLISHED.value,
                BadPayerReport.is_public.is_(True),
                or_(BadPayerReport.expires_at.is_(None), BadPayerReport.expires_at > utcnow()),
                BadPayerReport.latitude.is_not(None),
                BadPayerReport.longitude.is_not(None),
            )
        )
        if postcode:
            query = query.where(BadPayerReport.location_postcode.startswith(outward_code(postcode)))
        if min_amount is not None:
            query = query.where(BadPayerReport.amount_owed >= min_amount)
        if max_amount is not None:
            query = query.where(BadPayerReport.amount_owed <= max_amount)

        result = await db.execute(
            query.order_by(BadPayerReport.created_at.desc()).limit(MAX_MAP_LOCATIONS)
        )
        return [tuple(row) for row in result.all()]

    async def list_own(self, db: AsyncSession, ctx: AuthContext) -> tuple[list[BadPayerReport], ReportStats]:
        if ctx.is_anonymous:
            raise AuthenticationRequiredError()
        profile = await get_profile_for_user(db, ctx.user_id)
        if not profile:
            raise AuthorizationError("Only registered tradespeople have bad payer reports")

        result = await db.execute(
            select(BadPayerReport)
            .where(BadPayerReport.reporter_id == profile.id, BadPayerReport.is_deleted.is_(False))
            .order_by(BadPayerReport.created_at.desc())
        )
        reports = list(result.scalars().all())

        def count(status: BadPayerStatus) -> int:
            return sum(1 for r in reports if r.status == status.value)

        stats = ReportStats(
            total=len(reports),
            pending=count(BadPayerStatus.PENDING_REVIEW),
            published=count(BadPayerStatus.PUBLISHED),
            disputed=count(BadPayerStatus.DISPUTED),
            rejected=count(BadPayerStatus.REJECTED),
            total_owed=sum((Decimal(r.amount_owed) for r in reports), Decimal("0")),
        )
        return reports, stats

    async def get(
        self, db: AsyncSession, ctx: AuthContext, report_id: uuid.UUID
    ) -> tuple[BadPayerReport, TradesProfile, list[BadPayerDispute]]:
        """A report with its disputes; disputes are only shown to the reporter and admins."""
        report = await get_or_404(db, BadPayerReport, report_id, "Report")
        await self.expire_if_due(db, report)
        reporter = await get_or_404(db, TradesProfile, report.reporter_id, "Trades profile")

        resource = bad_payer_resource(report, reporter)
        require_access(ctx, resource, Operation.READ)

        disputes: list[BadPayerDispute] = []
        if ctx.is_admin or ctx.user_id in resource.owner_ids:
            result = await db.execute(
                select(BadPayerDispute)
                .where(BadPayerDispute.report_id == report.id, BadPayerDispute.is_deleted.is_(False))
                .order_by(BadPayerDispute.created_at.desc())
            )
            disputes = list(result.scalars().all())
        return report, reporter, disputes

    async def delete(self, db: AsyncSession, ctx: AuthContext, report_id: uuid.UUID) -> None:
        report = await get_or_404(db, BadPayerReport, report_id, "Report")
        reporter = await get_or_404(db, TradesProfile, report.reporter_id, "Trades profile")

        if not ctx.is_admin:
            require_access(ctx, bad_payer_resource(report, reporter), Operation.MANAGE)
            if report.status not in OWNER_DELETABLE:
                raise ValidationError("Published reports cannot be deleted")

        report.soft_delete()
        report.is_public = False
        await db.flush()
        logger.info("Bad payer report %s deleted by %s", report.id, ctx.user_id)

    async def dispute(
        self,
        db: AsyncSession,
        report_id: uuid.UUID,
        contact_email: str,
        reason: str,
        explanation: str,
        contact_phone: str | None = None,
        contact_name: str | None = None,
    ) -> BadPayerDispute:
        """File a dispute against a published report. Open to anyone, no login."""
        report = await get_or_404(db, BadPayerReport, report_id, "Report")
        await self.expire_if_due(db, report)
        # Validate the report can be disputed before looking at the body
        BAD_PAYER_WORKFLOW.fire(report.status, "dispute", Actor.PUBLIC)

        contact_email = (contact_email or "").strip().lower()
        reason = (reason or "").strip()
        explanation = (explanation or "").strip()
        if not contact_email or not reason or not explanation:
            raise ValidationError("Contact email, reason, and explanation are required")
        if not EMAIL_RE.match(contact_email):
            raise ValidationError("Invalid email address")
        if len(explanation) < MIN_EXPLANATION_LENGTH:
            raise ValidationError(f"Explanation must be at least {MIN_EXPLANATION_LENGTH} characters")

        existing = await db.execute(
            select(BadPayerDispute.id).where(
                BadPayerDispute.report_id == report.id,
                BadPayerDispute.contact_email == contact_email,
                BadPayerDispute.is_deleted.is_(False),
            )
        )
        if existing.scalars().first():
            raise ConflictError("A dispute has already been submitted from this email address")

        dispute = BadPayerDispute(
            report_id=report.id,
            contact_email=contact_email,
            contact_phone=contact_phone or None,
            contact_name=contact_name or None,
            reason=reason,
            explanation=explanation,
            status=DisputeStatus.PENDING.value,
        )
        db.add(dispute)
        await apply_transition(db, BAD_PAYER_WORKFLOW, report, "dispute", Actor.PUBLIC, None)
        await db.flush()
        await db.refresh(dispute)

        logger.info("Dispute %s filed against bad payer report %s", dispute.id, report.id)
        return dispute

    # ---------- Admin ----------

    async def moderate(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        report_id: uuid.UUID,
        action: str,
        admin_notes: str | None = None,
        rejection_reason: str | None = None,
    ) -> BadPayerReport:
        report = await get_or_404(db, BadPayerReport, report_id, "Report")

        rejection_reason = (rejection_reason or "").strip() or None
        if action == "reject" and not rejection_reason:
            raise ValidationError("A rejection reason is required")

        await apply_transition(db, BAD_PAYER_WORKFLOW, report, action, Actor.ADMIN, ctx.user_id)

        if report.status == BadPayerStatus.PUBLISHED.value:
            report.is_public = True
        elif report.status in HIDDEN_STATUSES:
            report.is_public = False
        if rejection_reason:
            report.rejection_reason = rejection_reason
        if admin_notes:
            report.admin_notes = admin_notes
        report.reviewed_at = utcnow()
        report.reviewed_by = ctx.user_id

        await db.flush()
        await db.refresh(report)
        return report

    async def moderate_dispute(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        dispute_id: uuid.UUID,
        action: str,
        admin_notes: str | None = None,
    ) -> BadPayerDispute:
        """Uphold or dismiss a dispute, cascading onto the report.

        Upholding removes the report. Dismissing the last pending dispute
        puts a disputed report back to PUBLISHED.
        """
        dispute = await get_or_404(db, BadPayerDispute, dispute_id, "Dispute")
        report = await get_or_404(db, BadPayerReport, dispute.report_id, "Report")

        await apply_transition(db, DISPUTE_WORKFLOW, dispute, action, Actor.ADMIN, ctx.user_id)
        dispute.handled_by = ctx.user_id
        dispute.handled_at = utcnow()
        if admin_notes:
            dispute.admin_notes = admin_notes
        await db.flush()

        if dispute.status == DisputeStatus.UPHELD.value:
            if BAD_PAYER_WORKFLOW.can_fire(report.status, "remove", Actor.SYSTEM):
                await apply_transition(db, BAD_PAYER_WORKFLOW, report, "remove", Actor.SYSTEM, ctx.user_id)
                report.is_public = False
        else:
            pending = (
                await db.execute(
                    select(func.count()).select_from(BadPayerDispute).where(
                        BadPayerDispute.report_id == report.id,
                        BadPayerDispute.status == DisputeStatus.PENDING.value,
                        BadPayerDispute.is_deleted.is_(False),
                    )
                )
            ).scalar() or 0
            if not pending and BAD_PAYER_WORKFLOW.can_fire(report.status, "reinstate", Actor.SYSTEM):
                await apply_transition(db, BAD_PAYER_WORKFLOW, report, "reinstate", Actor.SYSTEM, ctx.user_id)

        await db.flush()
        await db.refresh(dispute)
        return dispute
