"""
Feature entitlement resolution.

Resolution order: free feature → subscription / grace period → tier →
usage quota → period expiry.
"""

from cvplus_payments.entitlements.models import (
    AccessDecision,
    AccessReason,
    UsageLimit,
    UNLIMITED,
)
from cvplus_payments.entitlements.tiers import TIER_ORDER, is_tier_sufficient, tier_rank
from cvplus_payments.entitlements.resolver import (
    EntitlementResolver,
    build_upgrade_url,
    month_window,
)

__all__ = [
    "AccessDecision",
    "AccessReason",
    "UsageLimit",
    "UNLIMITED",
    "TIER_ORDER",
    "is_tier_sufficient",
    "tier_rank",
    "EntitlementResolver",
    "build_upgrade_url",
    "month_window",
]
