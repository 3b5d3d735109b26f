"""
Subscription model for tracking per-user billing state.

CRITICAL: One subscription record per user.
Written only by payment confirmation and the payment webhook; the
entitlement resolver treats it as read-only.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, String, Boolean, DateTime, Index

from cvplus_payments.models.base import Base, JSONType, TimestampMixin, ensure_utc


class SubscriptionStatus(str, Enum):
    """Subscription status values (payment gateway lifecycle)."""
    ACTIVE = "active"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"


PREMIUM_LIFETIME = "premium_lifetime"


class UserSubscription(Base, TimestampMixin):
    """
    Per-user subscription record.

    A lifetime purchase is stored as an active subscription with
    lifetime_access=True and no current_period_end.
    """

    __tablename__ = "user_subscriptions"

    user_id = Column(
        String(128),
        primary_key=True,
        comment="One subscription per user"
    )
    email = Column(String(320), nullable=True)
    google_id = Column(String(128), nullable=True)

    status = Column(
        String(32),
        nullable=False,
        default=SubscriptionStatus.INCOMPLETE.value,
        index=True,
        comment="Gateway subscription status"
    )
    subscription_status = Column(
        String(50),
        nullable=False,
        default="free",
        comment="Product-level status label (free, premium_lifetime)"
    )
    plan_id = Column(
        String(64),
        nullable=True,
        comment="Plan / tier identifier (free, basic, pro, enterprise)"
    )
    current_period_end = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of current billing period; null for lifetime access"
    )

    lifetime_access = Column(Boolean, nullable=False, default=False)
    features = Column(JSONType, nullable=True)
    payment_method = Column(String(32), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_payment_intent_id = Column(
        String(255),
        nullable=True,
        comment="Last payment intent that granted access (idempotency key)"
    )
    purchased_at = Column(DateTime(timezone=True), nullable=True)
    extra_metadata = Column(JSONType, nullable=True)

    __table_args__ = (
        Index("ix_user_subscriptions_payment_intent", "stripe_payment_intent_id"),
    )

    def __repr__(self) -> str:
        return f"<UserSubscription(user_id={self.user_id}, status={self.status}, plan_id={self.plan_id})>"

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    def is_period_expired(self, now: Optional[datetime] = None) -> bool:
        """True when a period end is set and has already passed."""
        period_end = ensure_utc(self.current_period_end)
        if period_end is None:
            return False
        return (now or datetime.now(timezone.utc)) > period_end
