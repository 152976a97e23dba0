import uuid
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.common.pagination import PaginatedResponse, PaginationParams
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.bad_payers.service import BadPayerService, ReportStats

router = APIRouter(prefix="/bad-payers", tags=["Bad payers"])

bad_payers = BadPayerService()


# ---------- Schemas ----------


class BadPayerCreateRequest(BaseModel):
    incident_date: datetime
    work_description: str
    agreed_amount: Decimal = Field(max_digits=12, decimal_places=2)
    amount_owed: Decimal = Field(max_digits=12, decimal_places=2)
    location_area: str
    location_postcode: str | None = None
    payment_terms: str | None = None
    invoice_reference: str | None = None
    contract_reference: str | None = None
    communication_summary: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    legal_consent_given: bool = False
    truth_declaration: bool = False


class DisputeRequest(BaseModel):
    contact_email: str
    reason: str
    explanation: str
    contact_phone: str | None = None
    contact_name: str | None = None


class BadPayerResponse(BaseModel):
    id: uuid.UUID
    incident_date: datetime
    work_description: str
    agreed_amount: Decimal
    amount_owed: Decimal
    payment_terms: str | None
    location_area: str
    location_postcode: str | None
    status: str
    is_public: bool
    expires_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class OwnBadPayerResponse(BadPayerResponse):
    invoice_reference: str | None
    contract_reference: str | None
    communication_summary: str | None
    rejection_reason: str | None


class DisputeResponse(BaseModel):
    id: uuid.UUID
    report_id: uuid.UUID
    contact_email: str
    contact_name: str | None
    reason: str
    explanation: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BadPayerDetailResponse(BadPayerResponse):
    reporter_business_name: str
    reporter_slug: str
    disputes: list[DisputeResponse] = []


class LocationResponse(BaseModel):
    id: uuid.UUID
    lat: float
    lng: float
    area: str
    postcode: str | None
    amount: Decimal
    date: datetime
    reporter: str


class MyBadPayersResponse(BaseModel):
    reports: list[OwnBadPayerResponse]
    stats: ReportStats


# ---------- Endpoints ----------


@router.get("", response_model=PaginatedResponse[BadPayerResponse])
async def list_bad_payers(
    search: str | None = Query(None),
    postcode: str | None = Query(None),
    status: str | None = Query(None, description="Admin only"),
    params: PaginationParams = Depends(),
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    items, total = await bad_payers.list_reports(db, ctx, params, search=search, postcode=postcode, status=status)
    return PaginatedResponse.build([BadPayerResponse.model_validate(r) for r in items], total, params)


@router.post("", response_model=OwnBadPayerResponse, status_code=201)
async def create_bad_payer(
    body: BadPayerCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await bad_payers.create(db, ctx, **body.model_dump())


@router.get("/locations", response_model=list[LocationResponse])
async def bad_payer_locations(
    postcode: str | None = Query(None),
    min_amount: Decimal | None = Query(None, ge=0),
    max_amount: Decimal | None = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
):
    rows = await bad_payers.locations(db, postcode=postcode, min_amount=min_amount, max_amount=max_amount)
    return [
        LocationResponse(
            id=report.id,
            lat=report.latitude,
            lng=report.longitude,
            area=report.location_area,
            postcode=report.location_postcode,
            amount=report.amount_owed,
            date=report.created_at,
            reporter=business_name,
        )
        for report, business_name in rows
    ]


@router.get("/my", response_model=MyBadPayersResponse)
async def my_bad_payers(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    reports, stats = await bad_payers.list_own(db, ctx)
    return MyBadPayersResponse(
        reports=[OwnBadPayerResponse.model_validate(r) for r in reports],
        stats=stats,
    )


@router.get("/{report_id}", response_model=BadPayerDetailResponse)
async def get_bad_payer(
    report_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    report, reporter, disputes = await bad_payers.get(db, ctx, report_id)
    return BadPayerDetailResponse(
        **BadPayerResponse.model_validate(report).model_dump(),
        reporter_business_name=reporter.business_name,
        reporter_slug=reporter.slug,
        disputes=[DisputeResponse.model_validate(d) for d in disputes],
    )


@router.delete("/{report_id}", status_code=204)
async def delete_bad_payer(
    report_id: uuid.UUID,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await bad_payers.delete(db, ctx, report_id)


@router.post("/{report_id}/dispute", response_model=DisputeResponse, status_code=201)
async def dispute_bad_payer(
    report_id: uuid.UUID,
    body: DisputeRequest,
    db: AsyncSession = Depends(get_db),
):
    return await bad_payers.dispute(db, report_id, **body.model_dump())
