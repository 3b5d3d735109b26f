"""
Subscription tier ordering.

Tiers form a fixed total order: free < basic < pro < enterprise.

Unknown tier names on either side of a comparison are treated
permissively (the comparison passes). This fail-open policy is
intentional and must not be tightened without a product decision.
"""

import logging
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

TIER_ORDER = ("free", "basic", "pro", "enterprise")


def tier_rank(tier: Optional[str], order: Sequence[str] = TIER_ORDER) -> Optional[int]:
    """Position of a tier in the ordering, or None if unknown."""
    if tier is None:
        return None
    try:
        return list(order).index(tier)
    except ValueError:
        return None


def is_tier_sufficient(
    current_tier: Optional[str],
    required_tier: Optional[str],
    order: Sequence[str] = TIER_ORDER,
) -> bool:
    """
    Check whether current_tier meets required_tier.

    Returns True when either tier is not part of the ordering.
    """
    current_rank = tier_rank(current_tier, order)
    required_rank = tier_rank(required_tier, order)

    if current_rank is None or required_rank is None:
        logger.warning("Unknown tier in comparison, allowing access", extra={
            "current_tier": current_tier,
            "required_tier": required_tier,
        })
        return True

    return current_rank >= required_rank
