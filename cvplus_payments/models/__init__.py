"""
Database models for users, subscriptions, payments and entitlements.
"""

from cvplus_payments.models.base import Base, TimestampMixin
from cvplus_payments.models.user import UserProfile
from cvplus_payments.models.subscription import (
    UserSubscription,
    SubscriptionStatus,
    PREMIUM_LIFETIME,
)
from cvplus_payments.models.payment_record import PaymentRecord, PaymentStatus
from cvplus_payments.models.grace_period import GracePeriod
from cvplus_payments.models.plan import SubscriptionPlan
from cvplus_payments.models.usage import FeatureUsageEvent
from cvplus_payments.models.cv_job import CvJob
from cvplus_payments.models.meeting import MeetingRequest, MeetingStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "UserProfile",
    "UserSubscription",
    "SubscriptionStatus",
    "PREMIUM_LIFETIME",
    "PaymentRecord",
    "PaymentStatus",
    "GracePeriod",
    "SubscriptionPlan",
    "FeatureUsageEvent",
    "CvJob",
    "MeetingRequest",
    "MeetingStatus",
]
