# =============================================================
# 💳 GATEWAY — Payment bridge to Stripe (LibraryFlow)
# =============================================================
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

import stripe
from fastapi import Request

from config import Settings


class StripeGateway:
    """Thin wrapper over the PaymentIntent API."""

    def __init__(self, secret_key: str, currency: str = "usd"):
        self.secret_key = secret_key
        self.currency = currency

    @staticmethod
    def to_cents(amount: Decimal) -> int:
        return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def create_intent(self, amount: Decimal, user_id: str) -> Dict[str, str]:
        intent = stripe.PaymentIntent.create(
            api_key=self.secret_key,
            amount=self.to_cents(amount),
            currency=self.currency,
            metadata={"userId": user_id},
        )
        return {"id": intent["id"], "client_secret": intent["client_secret"]}


def build_gateway(settings: Settings) -> Optional[StripeGateway]:
    if not settings.stripe_secret_key:
        return None
    return StripeGateway(settings.stripe_secret_key, settings.currency)


def get_gateway(request: Request) -> Optional[StripeGateway]:
    return request.app.state.gateway
