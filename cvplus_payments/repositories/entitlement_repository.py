"""
Entitlement data access: grace periods, plan limits and usage events.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func
from sqlalchemy.orm import Session

from cvplus_payments.models.base import utcnow
from cvplus_payments.models.grace_period import GracePeriod
from cvplus_payments.models.plan import SubscriptionPlan
from cvplus_payments.models.usage import FeatureUsageEvent

logger = logging.getLogger(__name__)


class EntitlementRepository:

    def __init__(self, db_session: Session):
        self.db_session = db_session

    # ------------------------------------------------------------------
    # Grace periods
    # ------------------------------------------------------------------

    def get_grace_period(self, user_id: str, feature: str) -> Optional[GracePeriod]:
        return (
            self.db_session.query(GracePeriod)
            .filter(
                GracePeriod.user_id == user_id,
                GracePeriod.feature == feature,
            )
            .first()
        )

    def delete_grace_period(self, grace_period: GracePeriod) -> None:
        """Delete one grace period and commit. Deleting twice is a no-op."""
        self.db_session.execute(
            delete(GracePeriod).where(GracePeriod.id == grace_period.id)
        )
        self.db_session.commit()

    def delete_expired_grace_periods(self, cutoff: datetime, batch_size: int = 500) -> int:
        """
        Delete one batch of grace periods that ended before cutoff.

        Returns:
            Number of rows deleted in this batch
        """
        expired_ids: List[str] = [
            row.id
            for row in self.db_session.query(GracePeriod.id)
            .filter(
                (GracePeriod.end_date < cutoff) | (GracePeriod.end_date.is_(None))
            )
            .limit(batch_size)
            .all()
        ]
        if not expired_ids:
            return 0

        result = self.db_session.execute(
            delete(GracePeriod).where(GracePeriod.id.in_(expired_ids))
        )
        self.db_session.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def get_plan(self, plan_id: str) -> Optional[SubscriptionPlan]:
        if not plan_id:
            return None
        return self.db_session.get(SubscriptionPlan, plan_id)

    # ------------------------------------------------------------------
    # Usage events
    # ------------------------------------------------------------------

    def count_usage(self, user_id: str, feature: str, start: datetime, end: datetime) -> int:
        """Count usage events with start <= timestamp <= end."""
        return (
            self.db_session.query(func.count(FeatureUsageEvent.id))
            .filter(
                FeatureUsageEvent.user_id == user_id,
                FeatureUsageEvent.feature == feature,
                FeatureUsageEvent.timestamp >= start,
                FeatureUsageEvent.timestamp <= end,
            )
            .scalar()
        ) or 0

    def record_usage(self, user_id: str, feature: str, timestamp: Optional[datetime] = None) -> FeatureUsageEvent:
        """Append a usage event and commit."""
        event = FeatureUsageEvent(
            user_id=user_id,
            feature=feature,
            timestamp=timestamp or utcnow(),
        )
        self.db_session.add(event)
        self.db_session.commit()
        return event
