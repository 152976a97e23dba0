from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.api.deps import get_auth_context, get_db
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.billing.service import BillingService
from tradesfinder.core.entitlements.limits import PlanInfo, list_plans

router = APIRouter(prefix="/billing", tags=["Billing"])

billing = BillingService()


class CheckoutRequest(BaseModel):
    tier: str


class RedirectResponse(BaseModel):
    url: str


@router.get("/plans", response_model=list[PlanInfo])
async def get_plans():
    return list_plans()


@router.post("/checkout", response_model=RedirectResponse)
async def create_checkout(
    body: CheckoutRequest,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return RedirectResponse(url=await billing.create_checkout(db, ctx, body.tier))


@router.post("/portal", response_model=RedirectResponse)
async def create_portal(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return RedirectResponse(url=await billing.create_portal(db, ctx))


@router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Handle Stripe subscription events."""
    payload = await request.body()
    event_type = await billing.handle_webhook(db, payload, request.headers.get("stripe-signature"))
    return {"received": True, "type": event_type}
