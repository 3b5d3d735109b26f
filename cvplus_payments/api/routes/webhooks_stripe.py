"""
Stripe webhook endpoint.

SECURITY: Every delivery MUST pass signature verification before any
processing. Stripe signs the raw body with the endpoint's webhook secret.

Response codes drive Stripe's retry behaviour:
- 400: bad signature/payload, never retried usefully
- 200: processed, duplicate, malformed metadata or unhandled type
- 500: processing failed, Stripe redelivers

Documentation: https://docs.stripe.com/webhooks
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cvplus_payments.api.dependencies import get_payment_gateway
from cvplus_payments.database.session import get_db_session
from cvplus_payments.integrations.stripe.gateway import (
    PaymentGatewayError,
    StripeGateway,
    WebhookSignatureError,
)
from cvplus_payments.services.stripe_webhook_handler import get_webhook_handler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class WebhookResponse(BaseModel):
    """Standard webhook response."""
    received: bool = True
    message: str = "Webhook processed"


@router.post("/stripe", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    gateway: StripeGateway = Depends(get_payment_gateway),
    db_session: Session = Depends(get_db_session),
):
    """
    Handle a Stripe event delivery.

    SECURITY: Verifies the Stripe-Signature header before processing.
    """
    body = await request.body()

    try:
        event = gateway.verify_webhook(body, stripe_signature)
    except WebhookSignatureError as e:
        logger.warning("Webhook signature verification failed", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {e}",
        )
    except PaymentGatewayError as e:
        logger.error("Webhook verification not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook verification not configured",
        )

    handler = get_webhook_handler(db_session)
    result = handler.handle_event(event)

    if result.error:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    logger.info("Stripe webhook handled", extra={
        "event_id": event.get("id"),
        "event_type": result.event_type,
        "processed": result.processed,
        "skipped_reason": result.skipped_reason,
    })

    return WebhookResponse(message=result.message)
