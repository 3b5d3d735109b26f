"""Repository layer over the SQLAlchemy session."""

from cvplus_payments.repositories.user_repository import UserRepository
from cvplus_payments.repositories.subscription_repository import SubscriptionRepository
from cvplus_payments.repositories.entitlement_repository import EntitlementRepository
from cvplus_payments.repositories.meeting_repository import MeetingRepository

__all__ = [
    "UserRepository",
    "SubscriptionRepository",
    "EntitlementRepository",
    "MeetingRepository",
]
