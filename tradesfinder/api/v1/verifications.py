import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.verifications.service import VerificationService

router = APIRouter(prefix="/verifications", tags=["Verifications"])

verifications = VerificationService()


class VerificationRequest(BaseModel):
    type: str
    document_url: str
    notes: str | None = None


class VerificationResponse(BaseModel):
    id: uuid.UUID
    profile_id: uuid.UUID
    type: str
    status: str
    document_url: str
    notes: str | None
    verified_at: datetime | None
    expires_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


@router.post("", response_model=VerificationResponse, status_code=201)
async def submit_verification(
    body: VerificationRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await verifications.submit(db, ctx, body.type, body.document_url, body.notes)


@router.get("", response_model=list[VerificationResponse])
async def list_verifications(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await verifications.list_own(db, ctx)
