"""
Lifetime premium payment handlers.

Every handler requires an authenticated caller whose uid matches the
userId in the request body.
"""

import logging

from fastapi import APIRouter, Depends

from cvplus_payments.api.auth import CallerIdentity, get_caller, require_same_user
from cvplus_payments.api.dependencies import get_payment_service
from cvplus_payments.api.schemas import (
    ConfirmPaymentRequest,
    CreateCheckoutSessionRequest,
    CreatePaymentIntentRequest,
    GetUserSubscriptionRequest,
)
from cvplus_payments.errors import run_handler
from cvplus_payments.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/functions", tags=["payments"])


@router.post("/createPaymentIntent")
def create_payment_intent(
    body: CreatePaymentIntentRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PaymentService = Depends(get_payment_service),
):
    require_same_user(caller, body.user_id)
    return run_handler(
        "createPaymentIntent",
        lambda: service.create_payment_intent(
            user_id=body.user_id,
            email=body.email,
            google_id=body.google_id,
            amount=body.amount,
        ),
        context={"user_id": body.user_id},
    )


@router.post("/createCheckoutSession")
def create_checkout_session(
    body: CreateCheckoutSessionRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PaymentService = Depends(get_payment_service),
):
    require_same_user(caller, body.user_id)
    return run_handler(
        "createCheckoutSession",
        lambda: service.create_checkout_session(
            user_id=body.user_id,
            user_email=body.user_email,
            price_id=body.price_id,
            success_url=body.success_url,
            cancel_url=body.cancel_url,
        ),
        context={"user_id": body.user_id},
    )


@router.post("/confirmPayment")
def confirm_payment(
    body: ConfirmPaymentRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PaymentService = Depends(get_payment_service),
):
    """Grant lifetime access for a payment the client reports as complete."""
    require_same_user(caller, body.user_id)
    return run_handler(
        "confirmPayment",
        lambda: service.confirm_payment(
            payment_intent_id=body.payment_intent_id,
            user_id=body.user_id,
            google_id=body.google_id,
        ),
        context={"user_id": body.user_id, "payment_intent_id": body.payment_intent_id},
    )


@router.post("/getUserSubscription")
def get_user_subscription(
    body: GetUserSubscriptionRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PaymentService = Depends(get_payment_service),
):
    require_same_user(caller, body.user_id)
    return run_handler(
        "getUserSubscription",
        lambda: service.get_user_subscription(body.user_id),
        context={"user_id": body.user_id},
    )
