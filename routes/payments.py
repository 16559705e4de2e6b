# =============================================================
# 💳 ROUTES PAYMENTS — Fine payments through Stripe (LibraryFlow)
# =============================================================
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

import storage
from database import get_session
from gateway import StripeGateway, get_gateway
from models import User
from schemas import (
    PaymentConfirmRequest,
    PaymentIntentRequest,
    PaymentIntentResponse,
    StatusMessage,
)
from security import get_current_user

logger = logging.getLogger("uvicorn")

router = APIRouter(prefix="/api", tags=["Payments"])

DEMO_MODE_MESSAGE = "Payment processing is not available in demo mode. Stripe configuration required."


def _require_gateway(gateway: Optional[StripeGateway]) -> StripeGateway:
    if gateway is None:
        raise HTTPException(status_code=503, detail=DEMO_MODE_MESSAGE)
    return gateway


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    data: PaymentIntentRequest,
    session: Session = Depends(get_session),
    gateway: Optional[StripeGateway] = Depends(get_gateway),
    current_user: User = Depends(get_current_user),
):
    """
    Ask Stripe for a PaymentIntent and keep a pending local mirror of it.
    """
    gateway = _require_gateway(gateway)

    if data.fine_id is not None:
        try:
            storage.check_payable_fine(session, current_user.id, data.fine_id)
        except LookupError:
            raise HTTPException(status_code=404, detail="Fine not found")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    try:
        intent = gateway.create_intent(data.amount, current_user.id)
        storage.record_payment(session, current_user.id, data.amount, intent["id"], data.fine_id)
        logger.info(f"💳 Payment intent {intent['id']} created for {current_user.id}")
        return PaymentIntentResponse(client_secret=intent["client_secret"], payment_intent_id=intent["id"])
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Error creating payment intent: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating payment intent: {e}")


@router.post("/payment/confirm", response_model=StatusMessage)
def confirm_payment(
    data: PaymentConfirmRequest,
    session: Session = Depends(get_session),
    gateway: Optional[StripeGateway] = Depends(get_gateway),
    current_user: User = Depends(get_current_user),
):
    """
    Client-triggered confirmation: settle the payment and lower the stored balance.
    """
    _require_gateway(gateway)
    try:
        payment = storage.confirm_payment(session, current_user.id, data.payment_intent_id)
        logger.info(f"✅ Payment {payment.id} confirmed for {current_user.id}")
    except LookupError:
        raise HTTPException(status_code=404, detail="Payment not found")
    except Exception as e:
        logger.error(f"❌ Error confirming payment: {e}")
        raise HTTPException(status_code=500, detail="Failed to confirm payment")
    return StatusMessage(message="Payment confirmed")
