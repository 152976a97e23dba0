import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.common.enums import Timeframe
from tradesfinder.common.pagination import PaginatedResponse, PaginationParams
from tradesfinder.core.access.gate import AuthContext, actor_for
from tradesfinder.core.jobs.service import JobService
from tradesfinder.core.workflows.definitions import APPLICATION_WORKFLOW, JOB_WORKFLOW
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.models.job import Job, JobApplication
from tradesfinder.db.models.profile import TradesProfile

router = APIRouter(tags=["Jobs"])

jobs = JobService()


# ---------- Schemas ----------


class JobCreateRequest(BaseModel):
    trade_id: uuid.UUID
    title: str
    description: str
    postcode: str
    address: str | None = None
    budget_min: int | None = None
    budget_max: int | None = None
    timeframe: Timeframe | None = None
    images: list[str] = []


class JobUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    postcode: str | None = None
    address: str | None = None
    budget_min: int | None = None
    budget_max: int | None = None
    timeframe: Timeframe | None = None
    images: list[str] | None = None
    action: str | None = None  # "close", "complete"


class JobResponse(BaseModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    trade_id: uuid.UUID
    title: str
    description: str
    postcode: str
    budget_min: int | None
    budget_max: int | None
    timeframe: str | None
    images: list[str] | None
    status: str
    view_count: int
    expires_at: datetime | None
    created_at: datetime
    allowed_actions: list[str] = []


class MatchingJobResponse(JobResponse):
    has_applied: bool


class ApplyRequest(BaseModel):
    cover_letter: str
    proposed_budget: int | None = None
    proposed_start_date: datetime | None = None


class ApplicationUpdateRequest(BaseModel):
    action: str  # "shortlist", "accept", "decline", "withdraw"


class ApplicationResponse(BaseModel):
    id: uuid.UUID
    job_id: uuid.UUID
    profile_id: uuid.UUID
    status: str
    cover_letter: str
    proposed_budget: int | None
    proposed_start_date: datetime | None
    viewed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class JobApplicationResponse(ApplicationResponse):
    business_name: str
    profile_slug: str
    average_rating: float
    review_count: int
    allowed_actions: list[str] = []


class MyApplicationResponse(ApplicationResponse):
    job_title: str
    job_status: str


# ---------- Jobs ----------


@router.post("/jobs", response_model=JobResponse, status_code=201)
async def create_job(
    body: JobCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    job = await jobs.create(
        db,
        ctx,
        trade_id=body.trade_id,
        title=body.title,
        description=body.description,
        postcode=body.postcode,
        address=body.address,
        budget_min=body.budget_min,
        budget_max=body.budget_max,
        timeframe=body.timeframe.value if body.timeframe else None,
        images=body.images,
    )
    return _job_to_response(job, ctx)


@router.get("/jobs", response_model=PaginatedResponse[JobResponse])
async def list_jobs(
    trade: str | None = Query(None, description="Trade slug or name"),
    postcode: str | None = Query(None, description="Postcode or postcode area"),
    params: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    items, total = await jobs.list_open(db, params, trade=trade, postcode=postcode)
    return PaginatedResponse.build([_job_to_response(j) for j in items], total, params)


@router.get("/jobs/matching", response_model=list[MatchingJobResponse])
async def matching_jobs(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    rows = await jobs.matching_jobs(db, ctx)
    return [
        MatchingJobResponse(**_job_to_response(job).model_dump(), has_applied=has_applied)
        for job, has_applied in rows
    ]


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    job = await jobs.get(db, ctx, job_id)
    return _job_to_response(job, ctx)


@router.patch("/jobs/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: uuid.UUID,
    body: JobUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude={"action"}, exclude_none=True)
    if "timeframe" in fields:
        fields["timeframe"] = body.timeframe.value
    job = await jobs.update(db, ctx, job_id, action=body.action, **fields)
    return _job_to_response(job, ctx)


@router.delete("/jobs/{job_id}", response_model=JobResponse)
async def close_job(
    job_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    job = await jobs.close(db, ctx, job_id)
    return _job_to_response(job, ctx)


# ---------- Applications ----------


@router.post("/jobs/{job_id}/apply", response_model=ApplicationResponse, status_code=201)
async def apply_to_job(
    job_id: uuid.UUID,
    body: ApplyRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await jobs.apply(
        db,
        ctx,
        job_id,
        cover_letter=body.cover_letter,
        proposed_budget=body.proposed_budget,
        proposed_start_date=body.proposed_start_date,
    )


@router.get("/jobs/{job_id}/applications", response_model=list[JobApplicationResponse])
async def list_job_applications(
    job_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    rows = await jobs.list_applications(db, ctx, job_id)
    return [_application_to_response(a, p) for a, p in rows]


@router.patch("/jobs/{job_id}/applications/{application_id}", response_model=ApplicationResponse)
async def update_application(
    job_id: uuid.UUID,
    application_id: uuid.UUID,
    body: ApplicationUpdateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await jobs.update_application(db, ctx, job_id, application_id, body.action)


@router.get("/applications", response_model=list[MyApplicationResponse])
async def my_applications(
    status: str | None = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    rows = await jobs.list_my_applications(db, ctx, status=status)
    return [
        MyApplicationResponse(
            **ApplicationResponse.model_validate(application).model_dump(),
            job_title=job.title,
            job_status=job.status,
        )
        for application, job in rows
    ]


def _job_to_response(job: Job, ctx: AuthContext | None = None) -> JobResponse:
    actor = actor_for(ctx, customer_id=job.customer_id) if ctx else Actor.PUBLIC
    return JobResponse(
        id=job.id,
        customer_id=job.customer_id,
        trade_id=job.trade_id,
        title=job.title,
        description=job.description,
        postcode=job.postcode,
        budget_min=job.budget_min,
        budget_max=job.budget_max,
        timeframe=job.timeframe,
        images=job.images,
        status=job.status,
        view_count=job.view_count,
        expires_at=job.expires_at,
        created_at=job.created_at,
        allowed_actions=JOB_WORKFLOW.allowed_actions(job.status, actor),
    )


def _application_to_response(application: JobApplication, profile: TradesProfile) -> JobApplicationResponse:
    return JobApplicationResponse(
        **ApplicationResponse.model_validate(application).model_dump(),
        business_name=profile.business_name,
        profile_slug=profile.slug,
        average_rating=profile.average_rating,
        review_count=profile.review_count,
        allowed_actions=APPLICATION_WORKFLOW.allowed_actions(application.status, Actor.CUSTOMER),
    )
