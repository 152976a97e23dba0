import uuid
from dataclasses import dataclass

import httpx
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import QuoteStatus, UserRole
from tradesfinder.common.exceptions import AuthenticationRequiredError, NotFoundError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.core.access.gate import AuthContext, Operation, actor_for, quote_resource, require_access
from tradesfinder.core.lookups import get_or_404, get_profile_for_user, get_user
from tradesfinder.core.messaging.service import MessagingService
from tradesfinder.core.usage.counters import UsageKind, ensure_can_submit
from tradesfinder.core.workflows.audit import apply_transition
from tradesfinder.core.workflows.definitions import QUOTE_WORKFLOW
from tradesfinder.core.workflows.machine import Actor
from tradesfinder.db.base import utcnow
from tradesfinder.db.models.conversation import Conversation
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.db.models.quote import QuoteRequest
from tradesfinder.db.models.user import User
from tradesfinder.integrations.sendgrid import EmailClient

logger = get_logger("quotes.service")

ANSWERED_STATUSES = (
    QuoteStatus.RESPONDED.value,
    QuoteStatus.ACCEPTED.value,
    QuoteStatus.DECLINED.value,
)


@dataclass
class GuestContact:
    name: str | None = None
    email: str | None = None
    phone: str | None = None


async def recompute_response_rate(db: AsyncSession, profile_id: uuid.UUID) -> float | None:
    """Share of the profile's quote requests that were answered, as a percentage."""
    total = (
        await db.execute(
            select(func.count()).select_from(QuoteRequest).where(
                QuoteRequest.profile_id == profile_id,
                QuoteRequest.is_deleted.is_(False),
            )
        )
    ).scalar() or 0
    answered = (
        await db.execute(
            select(func.count()).select_from(QuoteRequest).where(
                QuoteRequest.profile_id == profile_id,
                QuoteRequest.status.in_(ANSWERED_STATUSES),
                QuoteRequest.is_deleted.is_(False),
            )
        )
    ).scalar() or 0

    profile = await get_or_404(db, TradesProfile, profile_id, "Trades profile")
    profile.response_rate = (answered / total) * 100 if total else None
    await db.flush()
    return profile.response_rate


class QuoteService:
    def __init__(self, messaging: MessagingService | None = None, email: EmailClient | None = None):
        self.messaging = messaging or MessagingService()
        self.email = email or EmailClient()

    async def _guest_customer(self, db: AsyncSession, contact: GuestContact) -> User:
        name = (contact.name or "").strip()
        email = (contact.email or "").strip().lower()
        phone = (contact.phone or "").strip()
        if not name or not email or not phone:
            raise ValidationError("Please provide your contact details")
        if "@" not in email:
            raise ValidationError("Please provide a valid email address")

        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user:
            return user

        user = User(email=email, name=name, phone=phone, role=UserRole.CUSTOMER.value)
        db.add(user)
        await db.flush()
        logger.info("Created guest customer %s for quote request", user.id)
        return user

    async def create(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        profile_id: uuid.UUID,
        title: str,
        description: str,
        postcode: str,
        contact: GuestContact | None = None,
        trade_type: str | None = None,
        address: str | None = None,
        timeframe: str | None = None,
        preferred_dates: str | None = None,
        budget_range: str | None = None,
        images: list[str] | None = None,
    ) -> QuoteRequest:
        title = (title or "").strip()
        description = (description or "").strip()
        postcode = (postcode or "").strip().upper()
        if not title or not description or not postcode:
            raise ValidationError("Missing required fields")

        result = await db.execute(
            select(TradesProfile).where(
                TradesProfile.id == profile_id,
                TradesProfile.is_active.is_(True),
                TradesProfile.is_deleted.is_(False),
            )
        )
        profile = result.scalar_one_or_none()
        if not profile:
            raise NotFoundError("Tradesperson")
        if profile.user_id == ctx.user_id:
            raise ValidationError("You cannot request a quote from yourself")

        # Customers never see the tradesperson's upgrade link
        await ensure_can_submit(db, profile, UsageKind.QUOTES, show_upgrade=False)

        if ctx.is_anonymous:
            customer_id = (await self._guest_customer(db, contact or GuestContact())).id
        else:
            customer_id = ctx.user_id

        quote = QuoteRequest(
            profile_id=profile.id,
            customer_id=customer_id,
            title=title,
            description=description,
            trade_type=trade_type,
            postcode=postcode,
            address=address,
            timeframe=timeframe,
            preferred_dates=preferred_dates,
            budget_range=budget_range,
            images=images or [],
            status=QuoteStatus.PENDING.value,
        )
        db.add(quote)
        await db.flush()
        await db.refresh(quote)

        logger.info("Quote request %s sent to profile %s", quote.id, profile.id)
        return quote

    async def list_for_caller(
        self, db: AsyncSession, ctx: AuthContext, status: str | None = None
    ) -> list[QuoteRequest]:
        """A tradesperson's inbox, or the quotes a customer has sent."""
        if ctx.is_anonymous:
            raise AuthenticationRequiredError()
        profile = await get_profile_for_user(db, ctx.user_id)
        if profile:
            query = select(QuoteRequest).where(QuoteRequest.profile_id == profile.id)
        else:
            query = select(QuoteRequest).where(QuoteRequest.customer_id == ctx.user_id)
        query = query.where(QuoteRequest.is_deleted.is_(False))
        if status:
            query = query.where(QuoteRequest.status == status)

        result = await db.execute(query.order_by(QuoteRequest.created_at.desc()))
        return list(result.scalars().all())

    async def _load(
        self, db: AsyncSession, ctx: AuthContext, quote_id: uuid.UUID, op: Operation
    ) -> tuple[QuoteRequest, TradesProfile, Actor]:
        quote = await get_or_404(db, QuoteRequest, quote_id, "Quote request")
        profile = await get_or_404(db, TradesProfile, quote.profile_id, "Trades profile")
        require_access(ctx, quote_resource(quote, profile), op)
        return quote, profile, actor_for(ctx, customer_id=quote.customer_id, tradesperson_user_id=profile.user_id)

    async def get(self, db: AsyncSession, ctx: AuthContext, quote_id: uuid.UUID) -> QuoteRequest:
        quote, _, actor = await self._load(db, ctx, quote_id, Operation.READ)

        # First read by the recipient
        if actor == Actor.TRADESPERSON and quote.status == QuoteStatus.PENDING.value:
            await apply_transition(db, QUOTE_WORKFLOW, quote, "view", Actor.SYSTEM, ctx.user_id)
            quote.viewed_at = utcnow()
            await db.flush()
            await db.refresh(quote)
        return quote

    async def respond(
        self,
        db: AsyncSession,
        ctx: AuthContext,
        quote_id: uuid.UUID,
        message: str,
        estimated_cost: str | None = None,
        available_date: str | None = None,
    ) -> tuple[QuoteRequest, Conversation | None]:
        quote, profile, actor = await self._load(db, ctx, quote_id, Operation.MANAGE)

        message = (message or "").strip()
        if not message:
            raise ValidationError("Message is required")

        await apply_transition(db, QUOTE_WORKFLOW, quote, "respond", actor, ctx.user_id)
        quote.responded_at = utcnow()

        content = message
        if estimated_cost:
            content += f"\n\nEstimated cost: £{estimated_cost}"
        if available_date:
            content += f"\nAvailable from: {available_date}"

        conversation = None
        if quote.customer_id is not None:
            conversation = await self.messaging.open_conversation(
                db,
                participant_ids=[profile.user_id, quote.customer_id],
                sender_id=profile.user_id,
                content=content,
                quote_request_id=quote.id,
            )

        await db.flush()
        await recompute_response_rate(db, profile.id)
        await self._notify_customer(db, quote, profile, message, estimated_cost)

        await db.refresh(quote)
        return quote, conversation

    async def _notify_customer(
        self,
        db: AsyncSession,
        quote: QuoteRequest,
        profile: TradesProfile,
        message: str,
        estimated_cost: str | None,
    ) -> None:
        if quote.customer_id is None:
            return
        customer = await get_user(db, quote.customer_id)
        if not customer or not customer.email:
            return
        try:
            await self.email.send_quote_response(
                to=customer.email,
                customer_name=customer.name or "there",
                business_name=profile.business_name,
                quote_title=quote.title,
                message=message,
                estimated_cost=estimated_cost,
            )
        except httpx.HTTPError as e:
            # The response itself is saved; the email is best-effort
            logger.error("Failed to send quote response email for %s: %s", quote.id, e)

    async def close(self, db: AsyncSession, ctx: AuthContext, quote_id: uuid.UUID) -> QuoteRequest:
        quote, _, actor = await self._load(db, ctx, quote_id, Operation.MANAGE)
        await apply_transition(db, QUOTE_WORKFLOW, quote, "close", actor, ctx.user_id)
        await db.flush()
        await db.refresh(quote)
        return quote

    async def decide(self, db: AsyncSession, ctx: AuthContext, quote_id: uuid.UUID, action: str) -> QuoteRequest:
        if action not in ("accept", "decline"):
            raise ValidationError(f"Invalid action: {action}")
        quote, _, actor = await self._load(db, ctx, quote_id, Operation.MANAGE)
        await apply_transition(db, QUOTE_WORKFLOW, quote, action, actor, ctx.user_id)
        await db.flush()
        await db.refresh(quote)
        return quote
