"""SendGrid email integration client.

Uses the real SendGrid API when a valid key is configured, otherwise
falls back to logging-only mock mode.
"""

from __future__ import annotations

import html
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

from tradesfinder.config import settings
from tradesfinder.integrations.base import BaseIntegration


class EmailClient(BaseIntegration):
    SENDGRID_URL = "https://api.sendgrid.com/v3"

    def __init__(self) -> None:
        super().__init__("sendgrid")

    @property
    def is_mock(self) -> bool:
        return settings.SENDGRID_API_KEY.startswith("mock_")

    async def health_check(self) -> bool:
        if self.is_mock:
            self.logger.info("SendGrid health check: OK (mock)")
            return True
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.get(
                    f"{self.SENDGRID_URL}/scopes",
                    headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
                )
                return resp.status_code == 200
        except httpx.HTTPError as e:
            self.logger.error("SendGrid health check failed: %s", e)
            return False

    async def send_email(self, to: str, subject: str, html_body: str) -> dict[str, Any]:
        """Send one email. Raises httpx.HTTPError when SendGrid rejects it."""
        message_id = str(uuid.uuid4())
        sent_at = datetime.now(timezone.utc).isoformat()

        if self.is_mock:
            self.logger.info("Mock email | to=%s | subject='%s'", to, subject)
            return {"status": "sent", "message_id": message_id, "to": to, "subject": subject, "timestamp": sent_at}

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": settings.FROM_EMAIL},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_body}],
        }
        async with httpx.AsyncClient(timeout=30) as client:
            resp = await client.post(
                f"{self.SENDGRID_URL}/mail/send",
                headers={
                    "Authorization": f"Bearer {settings.SENDGRID_API_KEY}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            resp.raise_for_status()
            sg_id = resp.headers.get("X-Message-Id", message_id)

        self.logger.info("Email sent via SendGrid: %s", sg_id)
        return {"status": "sent", "message_id": sg_id, "to": to, "subject": subject, "timestamp": sent_at}

    async def send_quote_response(
        self,
        to: str,
        customer_name: str,
        business_name: str,
        quote_title: str,
        message: str,
        estimated_cost: str | None = None,
    ) -> dict[str, Any]:
        subject = f"{business_name} has responded to your quote request"
        cost_line = f"<p><strong>Estimated cost:</strong> £{html.escape(estimated_cost)}</p>" if estimated_cost else ""
        body = (
            f"<p>Hi {html.escape(customer_name)},</p>"
            f"<p>{html.escape(business_name)} has responded to your quote request "
            f"&ldquo;{html.escape(quote_title)}&rdquo;:</p>"
            f"<blockquote>{html.escape(message)}</blockquote>"
            f"{cost_line}"
            f'<p><a href="{settings.APP_URL}/account/messages">View the conversation</a></p>'
        )
        return await self.send_email(to, subject, body)
