"""
Subscription and payment history repository.

Write methods only stage changes on the session; the caller owns the
transaction and commits all staged writes together.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from cvplus_payments.models.payment_record import PaymentRecord
from cvplus_payments.models.subscription import UserSubscription

logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """Data access for user_subscriptions and payment_history."""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def get(self, user_id: str) -> Optional[UserSubscription]:
        """Get the subscription record for a user, if any."""
        if not user_id:
            return None
        return self.db_session.get(UserSubscription, user_id)

    def has_lifetime_access(self, user_id: str) -> bool:
        subscription = self.get(user_id)
        return bool(subscription and subscription.lifetime_access)

    def is_payment_already_applied(self, user_id: str, payment_intent_id: str) -> bool:
        """
        Check whether the user's subscription was granted by this payment.

        Used as the idempotency guard for redelivered payment events.
        """
        subscription = self.get(user_id)
        return bool(
            subscription is not None
            and subscription.stripe_payment_intent_id == payment_intent_id
        )

    def stage_subscription(self, user_id: str, fields: Dict[str, Any]) -> UserSubscription:
        """
        Create or overwrite the user's subscription record.

        Columns not present in fields keep their stored values.
        """
        record = UserSubscription(user_id=user_id, **fields)
        return self.db_session.merge(record)

    # ------------------------------------------------------------------
    # Payment history
    # ------------------------------------------------------------------

    def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        return self.db_session.get(PaymentRecord, payment_id)

    def stage_payment(self, payment_id: str, fields: Dict[str, Any]) -> PaymentRecord:
        """Create or overwrite a payment history record (set semantics)."""
        record = PaymentRecord(payment_id=payment_id, **fields)
        return self.db_session.merge(record)

    def find_customer_id(self, user_id: str) -> Optional[str]:
        """
        Return the gateway customer id from the user's earliest payment record.

        Mirrors the "first matching payment" lookup; records without a
        customer id do not count.
        """
        record = (
            self.db_session.query(PaymentRecord)
            .filter(PaymentRecord.user_id == user_id)
            .order_by(PaymentRecord.created_at.asc())
            .first()
        )
        if record and record.stripe_customer_id:
            return record.stripe_customer_id
        return None
