import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.reports.service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])

reports = ReportService()


# ---------- Schemas ----------


class ReportCreateRequest(BaseModel):
    target_type: str
    target_id: uuid.UUID
    reason: str
    description: str | None = None


class ReportResponse(BaseModel):
    id: uuid.UUID
    reporter_id: uuid.UUID
    target_type: str
    target_id: uuid.UUID
    reason: str
    description: str | None
    status: str
    resolution: str | None
    content_action: str | None
    handled_by: uuid.UUID | None
    handled_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ---------- Endpoints ----------


@router.post("", response_model=ReportResponse, status_code=201)
async def create_report(
    body: ReportCreateRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await reports.create(
        db,
        ctx,
        target_type=body.target_type,
        target_id=body.target_id,
        reason=body.reason,
        description=body.description,
    )
