"""
Stripe webhook handler with idempotency support.

Processes verified Stripe events with:
- Per-delivery event routing (no global listeners)
- Metadata validation (malformed events are logged and dropped)
- Redelivery deduplication against the user's subscription record
- Atomic lifetime grant on payment success
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from cvplus_payments.config.feature_catalog import FeatureCatalog
from cvplus_payments.errors import MalformedEventError
from cvplus_payments.integrations.stripe.gateway import GatewayPaymentIntent
from cvplus_payments.models.base import utcnow
from cvplus_payments.models.payment_record import PaymentStatus
from cvplus_payments.repositories.subscription_repository import SubscriptionRepository
from cvplus_payments.services.lifetime_access import LifetimeAccessService
from cvplus_payments.services.payment_events import (
    PaymentEvent,
    PaymentEventRouter,
    PaymentEventType,
)

logger = logging.getLogger(__name__)

REQUIRED_METADATA_FIELDS = ("userId", "googleId", "email")


@dataclass
class WebhookProcessingResult:
    """Result of webhook processing."""
    processed: bool
    message: str
    event_type: Optional[str] = None
    user_id: Optional[str] = None
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


class StripeWebhookHandler:
    """
    Handler for Stripe payment webhooks with idempotency.

    A redelivered payment_intent.succeeded is detected by comparing the
    intent id with the one stored on the user's subscription, which is
    written in the same transaction as the grant itself.
    """

    def __init__(
        self,
        db_session: Session,
        catalog: Optional[FeatureCatalog] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db_session
        self._now = clock or utcnow
        self._subscriptions = SubscriptionRepository(db_session)
        self._lifetime_access = LifetimeAccessService(db_session, catalog=catalog, clock=self._now)

    def build_router(self) -> PaymentEventRouter:
        return PaymentEventRouter([
            (PaymentEventType.PAYMENT_INTENT_SUCCEEDED, self.handle_payment_succeeded),
            (PaymentEventType.PAYMENT_INTENT_PAYMENT_FAILED, self.handle_payment_failed),
            (PaymentEventType.CHARGE_DISPUTE_CREATED, self.handle_dispute_created),
        ])

    def handle_event(self, event_data: Dict[str, Any]) -> WebhookProcessingResult:
        """
        Route a verified event to its subscribers.

        Args:
            event_data: Event payload as returned by signature verification

        Returns:
            WebhookProcessingResult of the (single) matching subscriber
        """
        event = PaymentEvent.from_gateway_event(event_data)
        router = self.build_router()

        logger.info("Processing webhook event", extra={
            "event_id": event.id,
            "event_type": event.type,
        })

        results = router.dispatch(event)
        if not results:
            return WebhookProcessingResult(
                processed=False,
                message=f"Unhandled event type: {event.type}",
                event_type=event.type,
                skipped_reason="unhandled_event_type",
            )
        return results[0]

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def handle_payment_succeeded(self, event: PaymentEvent) -> WebhookProcessingResult:
        try:
            intent = self._parse_intent(event)
            metadata = self._require_metadata(event, intent)
        except MalformedEventError as e:
            logger.error("Malformed payment event dropped", extra={
                "event_id": event.id,
                "payment_intent_id": event.object.get("id"),
                "missing_fields": e.missing_fields,
            })
            return WebhookProcessingResult(
                processed=False,
                message=str(e),
                event_type=event.type,
                skipped_reason="malformed_event",
            )

        user_id = metadata["userId"]

        try:
            if self._subscriptions.is_payment_already_applied(user_id, intent.id):
                logger.info("Duplicate payment event skipped", extra={
                    "event_id": event.id,
                    "payment_intent_id": intent.id,
                    "user_id": user_id,
                })
                return WebhookProcessingResult(
                    processed=False,
                    message="Payment already processed",
                    event_type=event.type,
                    user_id=user_id,
                    skipped_reason="duplicate",
                )

            self._lifetime_access.grant(
                intent,
                user_id=user_id,
                google_id=metadata["googleId"],
                email=metadata["email"],
            )
        except Exception as e:
            logger.error("Error processing payment success", extra={
                "event_id": event.id,
                "payment_intent_id": intent.id,
                "user_id": user_id,
                "error": str(e),
            }, exc_info=True)
            self.db.rollback()
            return WebhookProcessingResult(
                processed=False,
                message=f"Processing error: {str(e)}",
                event_type=event.type,
                user_id=user_id,
                error="processing_error",
            )

        return WebhookProcessingResult(
            processed=True,
            message="Lifetime access granted",
            event_type=event.type,
            user_id=user_id,
        )

    def handle_payment_failed(self, event: PaymentEvent) -> WebhookProcessingResult:
        try:
            intent = self._parse_intent(event)
        except MalformedEventError as e:
            logger.error("Malformed payment event dropped", extra={
                "event_id": event.id,
                "missing_fields": e.missing_fields,
            })
            return WebhookProcessingResult(
                processed=False,
                message=str(e),
                event_type=event.type,
                skipped_reason="malformed_event",
            )

        user_id = intent.metadata.get("userId")
        failure_reason = intent.last_error_message or "Payment failed"

        logger.warning("Payment failed", extra={
            "event_id": event.id,
            "payment_intent_id": intent.id,
            "user_id": user_id,
            "failure_reason": failure_reason,
        })

        try:
            self._subscriptions.stage_payment(intent.id, {
                "user_id": user_id,
                "amount": intent.amount,
                "currency": intent.currency,
                "status": PaymentStatus.FAILED,
                "stripe_payment_intent_id": intent.id,
                "stripe_customer_id": intent.customer_id,
                "payment_method": {"type": intent.primary_payment_method_type},
                "failure_reason": failure_reason,
                "failed_at": self._now(),
            })
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Failed to record payment failure", extra={
                "event_id": event.id,
                "payment_intent_id": intent.id,
                "error": str(e),
            })
            return WebhookProcessingResult(
                processed=False,
                message="Failed payment not recorded",
                event_type=event.type,
                user_id=user_id,
                skipped_reason="record_failed",
            )

        return WebhookProcessingResult(
            processed=True,
            message="Payment failure recorded",
            event_type=event.type,
            user_id=user_id,
        )

    def handle_dispute_created(self, event: PaymentEvent) -> WebhookProcessingResult:
        dispute = event.object
        logger.warning("Charge dispute created", extra={
            "event_id": event.id,
            "dispute_id": dispute.get("id"),
            "charge_id": dispute.get("charge"),
            "amount": dispute.get("amount"),
            "reason": dispute.get("reason"),
        })
        return WebhookProcessingResult(
            processed=True,
            message="Dispute logged",
            event_type=event.type,
        )

    @staticmethod
    def _parse_intent(event: PaymentEvent) -> GatewayPaymentIntent:
        if not event.object.get("id"):
            raise MalformedEventError(event.id, ["id"])
        return GatewayPaymentIntent.from_dict(event.object)

    @staticmethod
    def _require_metadata(event: PaymentEvent, intent: GatewayPaymentIntent) -> Dict[str, str]:
        missing = [name for name in REQUIRED_METADATA_FIELDS if not intent.metadata.get(name)]
        if missing:
            raise MalformedEventError(event.id, missing)
        return intent.metadata


def get_webhook_handler(db_session: Session) -> StripeWebhookHandler:
    """Factory function to create a StripeWebhookHandler."""
    return StripeWebhookHandler(db_session)
