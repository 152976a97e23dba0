"""External service clients (Stripe billing, SendGrid email)."""

from tradesfinder.integrations.base import BaseIntegration
from tradesfinder.integrations.sendgrid import EmailClient
from tradesfinder.integrations.stripe_client import StripeClient

__all__ = [
    "BaseIntegration",
    "EmailClient",
    "StripeClient",
]
