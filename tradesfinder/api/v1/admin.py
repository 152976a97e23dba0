import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel as PydanticModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_db, require_role
from tradesfinder.api.v1.bad_payers import DisputeResponse, OwnBadPayerResponse
from tradesfinder.api.v1.reports import ReportResponse
from tradesfinder.api.v1.reviews import ReviewResponse
from tradesfinder.api.v1.verifications import VerificationResponse
from tradesfinder.common.enums import (
    BadPayerStatus,
    ContentAction,
    DisputeStatus,
    JobStatus,
    ReviewStatus,
    UserRole,
    VerificationStatus,
)
from tradesfinder.common.pagination import PaginatedResponse, PaginationParams, paginate
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.bad_payers.service import BadPayerService
from tradesfinder.core.lookups import get_or_404
from tradesfinder.core.moderation.dispatcher import ModerationDispatcher, ModerationPayload
from tradesfinder.core.reports.service import OPEN_STATUSES, ReportService
from tradesfinder.core.reviews.service import ReviewService
from tradesfinder.core.verifications.service import VerificationService
from tradesfinder.core.workflows.definitions import (
    REPORT_WORKFLOW,
    REVIEW_WORKFLOW,
    VERIFICATION_WORKFLOW,
)
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.models.bad_payer import BadPayerDispute, BadPayerReport
from tradesfinder.db.models.job import Job
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.report import Report
from tradesfinder.db.models.review import Review
from tradesfinder.db.models.user import User
from tradesfinder.db.models.verification import Verification

router = APIRouter(prefix="/admin", tags=["Admin"])

reviews = ReviewService()
reports = ReportService(reviews)
dispatcher = ModerationDispatcher(reviews)
verifications = VerificationService()
bad_payers = BadPayerService()

admin_only = require_role(UserRole.ADMIN)


# ---------- Schemas ----------


class PlatformStatsResponse(PydanticModel):
    total_users: int
    users_by_role: dict[str, int]
    total_profiles: int
    open_jobs: int
    pending_reviews: int
    open_reports: int
    pending_verifications: int
    pending_bad_payer_reports: int
    pending_disputes: int


class AdminReviewResponse(ReviewResponse):
    moderation_reason: str | None
    allowed_actions: list[str]


class ReviewModerationRequest(PydanticModel):
    action: str  # "approve", "reject", "flag"
    reason: str | None = None


class AdminReportResponse(ReportResponse):
    allowed_actions: list[str]


class ReportModerationRequest(PydanticModel):
    action: str  # "investigate", "resolve", "dismiss"
    resolution: str | None = None
    content_action: ContentAction | None = None


class AdminVerificationResponse(VerificationResponse):
    verified_by: uuid.UUID | None
    allowed_actions: list[str]


class VerificationModerationRequest(PydanticModel):
    action: str  # "approve", "reject"
    notes: str | None = None
    reason: str | None = None
    expires_at: datetime | None = None


class BadPayerModerationRequest(PydanticModel):
    action: str  # "publish", "reject", "remove", "resolve"
    admin_notes: str | None = None
    rejection_reason: str | None = None


class AdminBadPayerResponse(OwnBadPayerResponse):
    admin_notes: str | None
    reviewed_at: datetime | None
    reviewed_by: uuid.UUID | None


class DisputeModerationRequest(PydanticModel):
    action: str  # "uphold", "dismiss"
    admin_notes: str | None = None


class AdminDisputeResponse(DisputeResponse):
    contact_phone: str | None
    admin_notes: str | None
    handled_by: uuid.UUID | None
    handled_at: datetime | None


# ---------- Stats ----------


async def _count(db: AsyncSession, model, *conditions) -> int:
    query = select(func.count()).select_from(model).where(model.is_deleted.is_(False), *conditions)
    return (await db.execute(query)).scalar() or 0


@router.get("/stats", response_model=PlatformStatsResponse)
async def platform_stats(
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    role_rows = await db.execute(
        select(User.role, func.count()).where(User.is_deleted.is_(False)).group_by(User.role)
    )
    users_by_role = {role: count for role, count in role_rows.all()}

    return PlatformStatsResponse(
        total_users=sum(users_by_role.values()),
        users_by_role=users_by_role,
        total_profiles=await _count(db, TradesProfile),
        open_jobs=await _count(db, Job, Job.status == JobStatus.OPEN.value),
        pending_reviews=await _count(db, Review, Review.status == ReviewStatus.PENDING.value),
        open_reports=await _count(db, Report, Report.status.in_(OPEN_STATUSES)),
        pending_verifications=await _count(
            db, Verification, Verification.status == VerificationStatus.PENDING.value
        ),
        pending_bad_payer_reports=await _count(
            db, BadPayerReport, BadPayerReport.status == BadPayerStatus.PENDING_REVIEW.value
        ),
        pending_disputes=await _count(db, BadPayerDispute, BadPayerDispute.status == DisputeStatus.PENDING.value),
    )


# ---------- Reviews ----------


@router.get("/reviews", response_model=PaginatedResponse[AdminReviewResponse])
async def list_reviews(
    status: str | None = Query(ReviewStatus.PENDING.value),
    params: PaginationParams = Depends(),
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    query = select(Review).where(Review.is_deleted.is_(False))
    if status and status != "all":
        query = query.where(Review.status == status)
    items, total = await paginate(db, query.order_by(Review.created_at.desc()), params)
    return PaginatedResponse.build([_review_to_response(r) for r in items], total, params)


@router.get("/reviews/{review_id}", response_model=AdminReviewResponse)
async def get_review(
    review_id: uuid.UUID,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return _review_to_response(await get_or_404(db, Review, review_id, "Review"))


@router.patch("/reviews/{review_id}", response_model=AdminReviewResponse)
async def moderate_review(
    review_id: uuid.UUID,
    body: ReviewModerationRequest,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    review = await get_or_404(db, Review, review_id, "Review")
    review = await reviews.moderate(db, ctx, review, body.action, reason=body.reason)
    return _review_to_response(review)


# ---------- Reports ----------


@router.get("/reports", response_model=PaginatedResponse[AdminReportResponse])
async def list_reports(
    status: str | None = Query(None),
    target_type: str | None = Query(None),
    params: PaginationParams = Depends(),
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    items, total = await reports.list_reports(db, params, status=status, target_type=target_type)
    return PaginatedResponse.build([_report_to_response(r) for r in items], total, params)


@router.get("/reports/{report_id}", response_model=AdminReportResponse)
async def get_report(
    report_id: uuid.UUID,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return _report_to_response(await get_or_404(db, Report, report_id, "Report"))


@router.patch("/reports/{report_id}", response_model=AdminReportResponse)
async def moderate_report(
    report_id: uuid.UUID,
    body: ReportModerationRequest,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    report = await get_or_404(db, Report, report_id, "Report")
    payload = ModerationPayload(resolution=body.resolution, content_action=body.content_action)
    report = await dispatcher.apply(db, report, body.action, payload, ctx)
    return _report_to_response(report)


# ---------- Verifications ----------


@router.get("/verifications", response_model=PaginatedResponse[AdminVerificationResponse])
async def list_verifications(
    status: str | None = Query(VerificationStatus.PENDING.value),
    params: PaginationParams = Depends(),
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    query = select(Verification).where(Verification.is_deleted.is_(False))
    if status and status != "all":
        query = query.where(Verification.status == status)
    items, total = await paginate(db, query.order_by(Verification.created_at.asc()), params)
    return PaginatedResponse.build([_verification_to_response(v) for v in items], total, params)


@router.get("/verifications/{verification_id}", response_model=AdminVerificationResponse)
async def get_verification(
    verification_id: uuid.UUID,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return _verification_to_response(await get_or_404(db, Verification, verification_id, "Verification"))


@router.patch("/verifications/{verification_id}", response_model=AdminVerificationResponse)
async def moderate_verification(
    verification_id: uuid.UUID,
    body: VerificationModerationRequest,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    verification = await verifications.moderate(
        db,
        ctx,
        verification_id,
        body.action,
        notes=body.notes,
        reason=body.reason,
        expires_at=body.expires_at,
    )
    return _verification_to_response(verification)


# ---------- Bad payers ----------


@router.patch("/bad-payers/disputes/{dispute_id}", response_model=AdminDisputeResponse)
async def moderate_dispute(
    dispute_id: uuid.UUID,
    body: DisputeModerationRequest,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await bad_payers.moderate_dispute(db, ctx, dispute_id, body.action, admin_notes=body.admin_notes)


@router.patch("/bad-payers/{report_id}", response_model=AdminBadPayerResponse)
async def moderate_bad_payer(
    report_id: uuid.UUID,
    body: BadPayerModerationRequest,
    ctx: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    return await bad_payers.moderate(
        db,
        ctx,
        report_id,
        body.action,
        admin_notes=body.admin_notes,
        rejection_reason=body.rejection_reason,
    )


def _review_to_response(review: Review) -> AdminReviewResponse:
    return AdminReviewResponse(
        **ReviewResponse.model_validate(review).model_dump(),
        moderation_reason=review.moderation_reason,
        allowed_actions=REVIEW_WORKFLOW.allowed_actions(review.status, Actor.ADMIN),
    )


def _report_to_response(report: Report) -> AdminReportResponse:
    return AdminReportResponse(
        **ReportResponse.model_validate(report).model_dump(),
        allowed_actions=REPORT_WORKFLOW.allowed_actions(report.status, Actor.ADMIN),
    )


def _verification_to_response(verification: Verification) -> AdminVerificationResponse:
    return AdminVerificationResponse(
        **VerificationResponse.model_validate(verification).model_dump(),
        verified_by=verification.verified_by,
        allowed_actions=VERIFICATION_WORKFLOW.allowed_actions(verification.status, Actor.ADMIN),
    )
