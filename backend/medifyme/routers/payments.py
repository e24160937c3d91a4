# medifyme/routers/payments.py
#
# Creates Stripe payment intents for the fixed consultation fee.

import logging
import os

import stripe
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..models import PaymentIntentResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

# --- Configuration ---
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
# Amount is in minor units (paise)
PAYMENT_AMOUNT = int(os.getenv("PAYMENT_AMOUNT", "1000"))
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "inr")


@router.post("/create_payment_intent", response_model=PaymentIntentResponse,
             responses={500: {"description": "Payment provider error"}})
def create_payment_intent():
    """Creates a payment intent and returns its client secret for the frontend."""
    try:
        intent = stripe.PaymentIntent.create(
            amount=PAYMENT_AMOUNT,
            currency=PAYMENT_CURRENCY,
            automatic_payment_methods={"enabled": True},
            api_key=STRIPE_SECRET_KEY,
        )
    except stripe.StripeError as e:
        logger.error("PAYMENT: Error creating payment intent: %r", e)
        return JSONResponse(
            status_code=500,
            content={"message": "An error occurred while creating the payment intent."},
        )
    return PaymentIntentResponse(clientSecret=intent.client_secret)
