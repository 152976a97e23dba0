"""Stripe subscription billing client.

Talks to the Stripe REST API over httpx when a real key is configured,
otherwise returns mock sessions pointing back at the app.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from typing import Any

import httpx

from tradesfinder.config import settings
from tradesfinder.integrations.base import BaseIntegration

WEBHOOK_TOLERANCE_SECONDS = 300


class StripeClient(BaseIntegration):
    BASE_URL = "https://api.stripe.com/v1"

    def __init__(self) -> None:
        super().__init__("stripe")

    @property
    def is_mock(self) -> bool:
        return settings.STRIPE_SECRET_KEY.startswith("mock_")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {settings.STRIPE_SECRET_KEY}"}

    async def _post(self, path: str, data: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=30) as client:
            resp = await client.post(f"{self.BASE_URL}{path}", headers=self._headers(), data=data)
            resp.raise_for_status()
            return resp.json()

    async def health_check(self) -> bool:
        if self.is_mock:
            self.logger.info("Stripe health check: OK (mock)")
            return True
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.get(f"{self.BASE_URL}/balance", headers=self._headers())
                return resp.status_code == 200
        except httpx.HTTPError as e:
            self.logger.error("Stripe health check failed: %s", e)
            return False

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def create_customer(self, email: str, name: str, metadata: dict[str, str] | None = None) -> dict[str, Any]:
        if not self.is_mock:
            payload: dict[str, Any] = {"email": email, "name": name}
            for k, v in (metadata or {}).items():
                payload[f"metadata[{k}]"] = v
            data = await self._post("/customers", payload)
            self.logger.info("Created Stripe customer: %s", data["id"])
            return data

        customer_id = f"cus_{uuid.uuid4().hex[:14]}"
        self.logger.info("Mock Stripe customer created: %s", customer_id)
        return {"id": customer_id, "object": "customer", "email": email, "name": name}

    # ------------------------------------------------------------------
    # Checkout and billing portal
    # ------------------------------------------------------------------

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        if not self.is_mock:
            payload: dict[str, Any] = {
                "customer": customer_id,
                "mode": "subscription",
                "line_items[0][price]": price_id,
                "line_items[0][quantity]": 1,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
            for k, v in (metadata or {}).items():
                payload[f"metadata[{k}]"] = v
                payload[f"subscription_data[metadata][{k}]"] = v
            data = await self._post("/checkout/sessions", payload)
            self.logger.info("Created checkout session %s for %s", data["id"], customer_id)
            return data

        session_id = f"cs_{uuid.uuid4().hex[:24]}"
        self.logger.info("Mock checkout session %s (price=%s)", session_id, price_id)
        return {
            "id": session_id,
            "object": "checkout.session",
            "mode": "subscription",
            "customer": customer_id,
            "url": f"{success_url}&session_id={session_id}",
            "metadata": metadata or {},
        }

    async def create_billing_portal_session(self, customer_id: str, return_url: str) -> dict[str, Any]:
        if not self.is_mock:
            data = await self._post(
                "/billing_portal/sessions",
                {"customer": customer_id, "return_url": return_url},
            )
            self.logger.info("Created billing portal session for %s", customer_id)
            return data

        session_id = f"bps_{uuid.uuid4().hex[:24]}"
        self.logger.info("Mock billing portal session %s", session_id)
        return {"id": session_id, "object": "billing_portal.session", "customer": customer_id, "url": return_url}

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        if not self.is_mock:
            async with httpx.AsyncClient(timeout=30) as client:
                resp = await client.get(
                    f"{self.BASE_URL}/subscriptions/{subscription_id}",
                    headers=self._headers(),
                )
                resp.raise_for_status()
                return resp.json()

        self.logger.info("Mock subscription lookup: %s", subscription_id)
        return {
            "id": subscription_id,
            "object": "subscription",
            "status": "active",
            "items": {"data": [{"price": {"id": settings.STRIPE_PRO_PRICE_ID}}]},
            "metadata": {},
        }

    # ------------------------------------------------------------------
    # Webhook signature verification
    # ------------------------------------------------------------------

    def verify_webhook_signature(self, payload: bytes, sig_header: str | None) -> dict[str, Any]:
        """Verify a Stripe webhook signature and return the parsed event.

        Raises ValueError when the signature is missing, wrong, or stale.
        Without a configured webhook secret the payload is parsed as-is, but
        only when APP_ENV is "development".
        """
        secret = settings.STRIPE_WEBHOOK_SECRET
        if not secret:
            if settings.APP_ENV != "development":
                raise ValueError("Stripe webhook secret is not configured")
            return json.loads(payload)

        if not sig_header:
            raise ValueError("Missing stripe-signature header")

        timestamp = ""
        signatures = []
        for item in sig_header.split(","):
            key, _, value = item.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signatures.append(value)
        if not timestamp or not signatures:
            raise ValueError("Malformed stripe-signature header")

        signed_payload = f"{timestamp}.{payload.decode()}"
        expected = hmac.new(secret.encode(), signed_payload.encode(), hashlib.sha256).hexdigest()
        if not any(hmac.compare_digest(expected, s) for s in signatures):
            raise ValueError("Invalid Stripe webhook signature")

        try:
            age = abs(time.time() - int(timestamp))
        except ValueError as e:
            raise ValueError("Malformed stripe-signature timestamp") from e
        if age > WEBHOOK_TOLERANCE_SECONDS:
            raise ValueError("Stripe webhook timestamp too old")

        return json.loads(payload)
