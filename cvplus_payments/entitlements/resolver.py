"""
Entitlement Resolver - answers "can user U use feature F right now?".

Composes four signals, in strict order (first matching branch wins):
1. Feature requirement: free features always pass
2. Subscription status: inactive/absent → grace period override, else deny
3. Tier comparison: free < basic < pro < enterprise (unknown tiers pass)
4. Monthly usage quota from the plan config (-1 = unlimited)
5. Subscription period expiry

Fail-OPEN in two places, both deliberate:
- Unknown tier names on either side of the comparison
- Usage count lookup failure (treated as unlimited)

Expired grace periods are deleted on read (best-effort, never fails the call).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlencode

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cvplus_payments.config.feature_catalog import FeatureCatalog, get_feature_catalog
from cvplus_payments.config.settings import PaymentsSettings, get_settings
from cvplus_payments.entitlements.models import (
    AccessDecision,
    AccessReason,
    UsageLimit,
    UNLIMITED,
)
from cvplus_payments.entitlements.tiers import is_tier_sufficient
from cvplus_payments.errors import InvalidFeatureError, UserNotFoundError
from cvplus_payments.models.base import ensure_utc, utcnow
from cvplus_payments.models.usage import FeatureUsageEvent
from cvplus_payments.repositories.entitlement_repository import EntitlementRepository
from cvplus_payments.repositories.subscription_repository import SubscriptionRepository
from cvplus_payments.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# Sub-lookups fail open on storage errors and on malformed plan documents
LOOKUP_ERRORS = (SQLAlchemyError, ValueError, TypeError, AttributeError)


def month_window(now: datetime) -> Tuple[datetime, datetime]:
    """
    Calendar month containing now, both bounds inclusive.

    Returns:
        (first instant of the month, last instant of the month)
    """
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = start + relativedelta(months=1) - timedelta(microseconds=1)
    return start, end


def build_upgrade_url(base_url: str, feature: str, required_tier: str) -> str:
    """Deterministic upgrade link for a feature and its minimum tier."""
    query = urlencode({"feature": feature, "tier": required_tier})
    return f"{base_url.rstrip('/')}/billing/upgrade?{query}"


@dataclass(frozen=True)
class UsageCheck:
    """Outcome of the usage quota lookup."""
    usage: UsageLimit

    @property
    def within_limits(self) -> bool:
        return not self.usage.is_exceeded


class EntitlementResolver:
    """
    Resolves feature access for a single user.

    One instance per request. Stateless between calls except for the
    injected collaborators (session, catalogue, settings, clock).
    """

    def __init__(
        self,
        db_session: Session,
        catalog: Optional[FeatureCatalog] = None,
        settings: Optional[PaymentsSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db_session
        self._catalog = catalog or get_feature_catalog()
        self._settings = settings or get_settings()
        self._now = clock or utcnow
        self._users = UserRepository(db_session)
        self._subscriptions = SubscriptionRepository(db_session)
        self._entitlements = EntitlementRepository(db_session)

    # ------------------------------------------------------------------
    # Primary API
    # ------------------------------------------------------------------

    def resolve(
        self,
        user_id: str,
        feature: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> AccessDecision:
        """
        Resolve whether user_id may use feature right now.

        Raises:
            InvalidFeatureError: feature is not in the catalogue
            UserNotFoundError: no profile exists for user_id
        """
        if not self._catalog.is_valid_feature(feature):
            raise InvalidFeatureError(feature)

        logger.info("Checking feature access", extra={
            "user_id": user_id,
            "feature": feature,
            "context": context or "no_context",
        })

        if not self._users.exists(user_id):
            raise UserNotFoundError(user_id)

        if not self._catalog.requires_subscription(feature):
            return AccessDecision(
                has_access=True,
                feature=feature,
                reason=AccessReason.FREE_FEATURE,
            )

        required_tier = self._catalog.get_minimum_tier(feature)
        subscription = self._subscriptions.get(user_id)

        if subscription is None or not subscription.is_active:
            grace_period_end = self._check_grace_period(user_id, feature)
            if grace_period_end is not None:
                return AccessDecision(
                    has_access=True,
                    feature=feature,
                    reason=AccessReason.GRACE_PERIOD,
                    grace_period_end=grace_period_end,
                )
            return AccessDecision(
                has_access=False,
                feature=feature,
                reason=AccessReason.NO_SUBSCRIPTION,
                required_tier=required_tier,
                upgrade_url=self.upgrade_url(feature),
            )

        current_tier = subscription.plan_id or "free"
        if not is_tier_sufficient(current_tier, required_tier):
            return AccessDecision(
                has_access=False,
                feature=feature,
                reason=AccessReason.INSUFFICIENT_TIER,
                required_tier=required_tier,
                current_tier=current_tier,
                upgrade_url=self.upgrade_url(feature),
            )

        usage_check = self._check_usage_limits(user_id, feature, current_tier)
        if not usage_check.within_limits:
            return AccessDecision(
                has_access=False,
                feature=feature,
                reason=AccessReason.USAGE_LIMIT_EXCEEDED,
                usage_limit=usage_check.usage,
                upgrade_url=self.upgrade_url(feature),
            )

        if subscription.is_period_expired(self._now()):
            return AccessDecision(
                has_access=False,
                feature=feature,
                reason=AccessReason.SUBSCRIPTION_EXPIRED,
                upgrade_url=self.upgrade_url(feature),
            )

        usage = usage_check.usage
        logger.info("Feature access granted", extra={
            "user_id": user_id,
            "feature": feature,
            "tier": current_tier,
            "usage_remaining": None if usage.is_unlimited else usage.limit - usage.current,
        })

        return AccessDecision(
            has_access=True,
            feature=feature,
            reason=AccessReason.SUBSCRIPTION_ACCESS,
            current_tier=current_tier,
            usage_limit=usage if usage.limit > 0 else None,
        )

    def record_usage(self, user_id: str, feature: str) -> FeatureUsageEvent:
        """Append one usage event for a feature invocation."""
        if not self._catalog.is_valid_feature(feature):
            raise InvalidFeatureError(feature)
        event = self._entitlements.record_usage(user_id, feature, self._now())
        logger.info("Feature usage recorded", extra={
            "user_id": user_id,
            "feature": feature,
        })
        return event

    def upgrade_url(self, feature: str) -> str:
        return build_upgrade_url(
            self._settings.frontend_url,
            feature,
            self._catalog.get_minimum_tier(feature),
        )

    # ------------------------------------------------------------------
    # Sub-lookups
    # ------------------------------------------------------------------

    def _check_grace_period(self, user_id: str, feature: str) -> Optional[datetime]:
        """
        Return the grace period end if one is active for (user, feature).

        An expired grace period is deleted and never honoured again.
        Lookup failures count as "no grace period".
        """
        try:
            grace_period = self._entitlements.get_grace_period(user_id, feature)
        except LOOKUP_ERRORS as e:
            logger.error("Failed to check grace period", extra={
                "user_id": user_id,
                "feature": feature,
                "error": str(e),
            })
            self.db.rollback()
            return None

        if grace_period is None:
            return None

        end_date = ensure_utc(grace_period.end_date)
        if end_date is None or self._now() > end_date:
            self._delete_expired_grace_period(grace_period)
            return None

        return end_date

    def _delete_expired_grace_period(self, grace_period) -> None:
        try:
            self._entitlements.delete_grace_period(grace_period)
            logger.info("Expired grace period removed", extra={
                "user_id": grace_period.user_id,
                "feature": grace_period.feature,
            })
        except SQLAlchemyError as e:
            logger.warning("Failed to delete expired grace period", extra={
                "user_id": grace_period.user_id,
                "feature": grace_period.feature,
                "error": str(e),
            })
            self.db.rollback()

    def _check_usage_limits(self, user_id: str, feature: str, plan_id: str) -> UsageCheck:
        """
        Compare this month's usage with the plan's quota for the feature.

        No configured limit, or any lookup failure, yields an unlimited result.
        """
        now = self._now()
        start_of_month, end_of_month = month_window(now)

        try:
            plan = self._entitlements.get_plan(plan_id)
            limits = plan.get_feature_limits(feature) if plan else None
            limit = self._select_limit(limits)

            if limit is None:
                return self._unlimited(now)

            current_usage = self._entitlements.count_usage(
                user_id, feature, start_of_month, end_of_month
            )
        except LOOKUP_ERRORS as e:
            logger.error("Failed to check usage limits", extra={
                "user_id": user_id,
                "feature": feature,
                "plan_id": plan_id,
                "error": str(e),
            })
            self.db.rollback()
            return self._unlimited(now)

        return UsageCheck(usage=UsageLimit(
            current=current_usage,
            limit=limit,
            reset_date=end_of_month,
        ))

    @staticmethod
    def _select_limit(limits: Optional[Dict[str, Any]]) -> Optional[int]:
        """First configured of monthly, total; None when neither is set."""
        if not limits:
            return None
        for key in ("monthly", "total"):
            value = limits.get(key)
            if value is not None:
                return int(value)
        return None

    @staticmethod
    def _unlimited(now: datetime) -> UsageCheck:
        return UsageCheck(usage=UsageLimit(
            current=0,
            limit=UNLIMITED,
            reset_date=now + timedelta(days=30),
        ))
