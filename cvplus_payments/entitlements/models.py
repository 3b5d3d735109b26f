"""
Entitlement decision types.

AccessDecision is the resolver's output. It is never persisted and is
serialised camelCase for the callable surface.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

UNLIMITED = -1


class AccessReason(str, Enum):
    """Closed set of reasons attached to every decision."""
    FREE_FEATURE = "free_feature"
    GRACE_PERIOD = "grace_period"
    NO_SUBSCRIPTION = "no_subscription"
    INSUFFICIENT_TIER = "insufficient_tier"
    USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_ACCESS = "subscription_access"


@dataclass(frozen=True)
class UsageLimit:
    """Usage against a plan quota for the current window."""
    current: int
    limit: int
    reset_date: datetime

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def is_exceeded(self) -> bool:
        """-1 never denies, regardless of counted usage."""
        if self.is_unlimited:
            return False
        return self.current >= self.limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "limit": self.limit,
            "resetDate": self.reset_date.isoformat(),
        }


@dataclass(frozen=True)
class AccessDecision:
    """Resolved entitlement for one user and one feature."""

    has_access: bool
    feature: str
    reason: AccessReason
    required_tier: Optional[str] = None
    current_tier: Optional[str] = None
    usage_limit: Optional[UsageLimit] = None
    upgrade_url: Optional[str] = None
    grace_period_end: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase response shape, omitting unset fields."""
        body: Dict[str, Any] = {
            "hasAccess": self.has_access,
            "feature": self.feature,
            "reason": self.reason.value,
        }
        if self.required_tier is not None:
            body["requiredTier"] = self.required_tier
        if self.current_tier is not None:
            body["currentTier"] = self.current_tier
        if self.usage_limit is not None:
            body["usageLimit"] = self.usage_limit.to_dict()
        if self.upgrade_url is not None:
            body["upgradeUrl"] = self.upgrade_url
        if self.grace_period_end is not None:
            body["gracePeriodEnd"] = self.grace_period_end.isoformat()
        return body
