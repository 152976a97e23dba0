"""Subscription billing: Stripe checkout, billing portal and webhook sync.

The profile's ``subscription_tier`` only ever changes here, driven by
signature-verified Stripe events.
"""

import uuid
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.enums import SubscriptionTier
from tradesfinder.common.exceptions import ExternalServiceError, NotFoundError, ValidationError
from tradesfinder.common.logging import get_logger
from tradesfinder.config import settings
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.entitlements.limits import UPGRADE_URL, price_id_for, tier_for_price_id
from tradesfinder.core.lookups import get_user, require_own_profile
from tradesfinder.db.models.profile import TradesProfile
from tradesfinder.integrations.stripe_client import StripeClient

logger = get_logger("billing.service")

PAID_TIERS = (SubscriptionTier.PRO.value, SubscriptionTier.PREMIUM.value)
ACTIVE_STATUSES = ("active", "trialing")
LAPSED_STATUSES = ("canceled", "unpaid", "past_due")


def _price_of(subscription: dict[str, Any]) -> str | None:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


class BillingService:
    def __init__(self, stripe: StripeClient | None = None):
        self.stripe = stripe or StripeClient()

    async def create_checkout(self, db: AsyncSession, ctx: AuthContext, tier: str) -> str:
        if tier not in PAID_TIERS:
            raise ValidationError("Invalid subscription tier")
        profile = await require_own_profile(db, ctx)

        price_id = price_id_for(SubscriptionTier(tier))
        if not price_id:
            raise ExternalServiceError("stripe", f"No price configured for {tier}")

        try:
            customer_id = await self._ensure_customer(db, profile)
            session = await self.stripe.create_checkout_session(
                customer_id=customer_id,
                price_id=price_id,
                success_url=f"{settings.APP_URL}{UPGRADE_URL}?success=true",
                cancel_url=f"{settings.APP_URL}{UPGRADE_URL}?canceled=true",
                metadata={"profileId": str(profile.id)},
            )
        except httpx.HTTPError as e:
            logger.error("Checkout session failed for profile %s: %s", profile.id, e)
            raise ExternalServiceError("stripe", str(e)) from e

        logger.info("Checkout session %s created for profile %s (%s)", session.get("id"), profile.id, tier)
        return session["url"]

    async def create_portal(self, db: AsyncSession, ctx: AuthContext) -> str:
        profile = await require_own_profile(db, ctx)
        if not profile.stripe_customer_id:
            raise NotFoundError("Billing account")

        try:
            session = await self.stripe.create_billing_portal_session(
                profile.stripe_customer_id, f"{settings.APP_URL}{UPGRADE_URL}"
            )
        except httpx.HTTPError as e:
            logger.error("Billing portal failed for profile %s: %s", profile.id, e)
            raise ExternalServiceError("stripe", str(e)) from e
        return session["url"]

    async def _ensure_customer(self, db: AsyncSession, profile: TradesProfile) -> str:
        if profile.stripe_customer_id:
            return profile.stripe_customer_id

        user = await get_user(db, profile.user_id)
        customer = await self.stripe.create_customer(
            email=user.email if user else (profile.email or ""),
            name=profile.business_name,
            metadata={"userId": str(profile.user_id), "profileId": str(profile.id)},
        )
        profile.stripe_customer_id = customer["id"]
        await db.flush()
        return customer["id"]

    # ---------- Webhook ----------

    async def handle_webhook(self, db: AsyncSession, payload: bytes, signature: str | None) -> str:
        """Apply one Stripe event. Returns the event type."""
        try:
            event = self.stripe.verify_webhook_signature(payload, signature)
        except ValueError as e:
            logger.warning("Webhook signature verification failed: %s", e)
            raise ValidationError("Invalid signature")

        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            await self._sync_subscription(db, obj)
        elif event_type == "customer.subscription.deleted":
            profile = await self._profile_for(db, obj)
            if profile:
                self._downgrade(profile)
        elif event_type == "checkout.session.completed":
            await self._checkout_completed(db, obj)
        else:
            logger.debug("Ignoring Stripe event %s", event_type)

        await db.flush()
        return event_type

    async def _profile_for(self, db: AsyncSession, obj: dict[str, Any]) -> TradesProfile | None:
        profile_id = (obj.get("metadata") or {}).get("profileId")
        query = None
        if profile_id:
            try:
                query = select(TradesProfile).where(TradesProfile.id == uuid.UUID(profile_id))
            except ValueError:
                logger.warning("Stripe event carries malformed profileId %r", profile_id)
        if query is None and obj.get("customer"):
            query = select(TradesProfile).where(TradesProfile.stripe_customer_id == obj["customer"])
        if query is None:
            return None

        profile = (await db.execute(query)).scalar_one_or_none()
        if not profile:
            logger.warning("Stripe event for unknown profile (metadata=%s)", obj.get("metadata"))
        return profile

    async def _sync_subscription(self, db: AsyncSession, subscription: dict[str, Any]) -> None:
        profile = await self._profile_for(db, subscription)
        if not profile:
            return

        status = subscription.get("status")
        if status in ACTIVE_STATUSES:
            tier = tier_for_price_id(_price_of(subscription))
            if tier is None:
                logger.warning("Subscription %s has unknown price %s", subscription.get("id"), _price_of(subscription))
                return
            profile.subscription_tier = tier.value
            profile.subscription_id = subscription.get("id")
            logger.info("Profile %s subscribed to %s", profile.id, tier.value)
        elif status in LAPSED_STATUSES:
            self._downgrade(profile)

    async def _checkout_completed(self, db: AsyncSession, session: dict[str, Any]) -> None:
        if session.get("mode") != "subscription" or not session.get("subscription"):
            return
        profile = await self._profile_for(db, session)
        if not profile:
            return

        try:
            subscription = await self.stripe.retrieve_subscription(session["subscription"])
        except httpx.HTTPError as e:
            logger.error("Could not load subscription %s: %s", session["subscription"], e)
            raise ExternalServiceError("stripe", str(e)) from e

        # The session's metadata identifies the profile even when the subscription's does not
        subscription = {**subscription, "metadata": {"profileId": str(profile.id)}}
        await self._sync_subscription(db, subscription)

    def _downgrade(self, profile: TradesProfile) -> None:
        profile.subscription_tier = SubscriptionTier.FREE.value
        profile.subscription_id = None
        logger.info("Profile %s downgraded to FREE", profile.id)
