"""
Lifetime premium access grant.

Shared by payment confirmation and the payment webhook. The three writes
(subscription, payment history, user flags) commit together or not at
all: a user must never be entitled without a payment record, or the
reverse.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from cvplus_payments.config.feature_catalog import FeatureCatalog, get_feature_catalog
from cvplus_payments.errors import UserNotFoundError
from cvplus_payments.integrations.stripe.gateway import GatewayPaymentIntent
from cvplus_payments.models.base import utcnow
from cvplus_payments.models.payment_record import PaymentStatus
from cvplus_payments.models.subscription import PREMIUM_LIFETIME, SubscriptionStatus
from cvplus_payments.repositories.subscription_repository import SubscriptionRepository
from cvplus_payments.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass
class LifetimeGrantResult:
    """What was written by a successful grant."""
    user_id: str
    payment_intent_id: str
    plan_id: str
    features: Dict[str, bool]
    purchased_at: datetime


class LifetimeAccessService:

    def __init__(
        self,
        db_session: Session,
        catalog: Optional[FeatureCatalog] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db_session
        self._catalog = catalog or get_feature_catalog()
        self._now = clock or utcnow
        self._users = UserRepository(db_session)
        self._subscriptions = SubscriptionRepository(db_session)

    def grant(
        self,
        payment_intent: GatewayPaymentIntent,
        user_id: str,
        google_id: str,
        email: Optional[str],
    ) -> LifetimeGrantResult:
        """
        Atomically grant lifetime access for a succeeded payment.

        Raises:
            UserNotFoundError: No profile to update (nothing is written)
            SQLAlchemyError: Commit failed (nothing is written)
        """
        grant = self._catalog.lifetime_grant
        features = grant.feature_flags()
        now = self._now()
        verification = {
            "googleEmail": email,
            "googleId": google_id,
            "verifiedAt": now.isoformat(),
        }

        try:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            self._subscriptions.stage_subscription(user_id, {
                "email": email,
                "google_id": google_id,
                "status": SubscriptionStatus.ACTIVE.value,
                "subscription_status": PREMIUM_LIFETIME,
                "plan_id": grant.plan_id,
                "current_period_end": None,
                "lifetime_access": True,
                "features": features,
                "payment_method": "stripe",
                "stripe_customer_id": payment_intent.customer_id,
                "stripe_payment_intent_id": payment_intent.id,
                "purchased_at": now,
                "extra_metadata": {
                    "paymentAmount": payment_intent.amount,
                    "currency": payment_intent.currency,
                    "accountVerification": verification,
                },
            })

            self._subscriptions.stage_payment(payment_intent.id, {
                "user_id": user_id,
                "amount": payment_intent.amount,
                "currency": payment_intent.currency,
                "status": PaymentStatus.SUCCEEDED,
                "stripe_payment_intent_id": payment_intent.id,
                "stripe_customer_id": payment_intent.customer_id,
                "payment_method": {"type": payment_intent.primary_payment_method_type},
                "processed_at": now,
            })

            user.subscription_status = PREMIUM_LIFETIME
            user.premium_features = list(grant.features)
            user.lifetime_access_granted = True
            user.purchase_date = now
            user.google_account_verification = {
                "email": email,
                "id": google_id,
                "verifiedAt": now.isoformat(),
            }

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Lifetime premium access granted", extra={
            "user_id": user_id,
            "payment_intent_id": payment_intent.id,
            "amount": payment_intent.amount,
        })

        return LifetimeGrantResult(
            user_id=user_id,
            payment_intent_id=payment_intent.id,
            plan_id=grant.plan_id,
            features=features,
            purchased_at=now,
        )
