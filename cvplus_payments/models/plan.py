"""
SubscriptionPlan model.

Per-tier usage limits. The features column maps feature identifier to
{"limits": {"monthly": int, "total": int}}; -1 means unlimited.
"""

from typing import Any, Dict, Optional

from sqlalchemy import Column, String

from cvplus_payments.models.base import Base, JSONType, TimestampMixin


class SubscriptionPlan(Base, TimestampMixin):

    __tablename__ = "subscription_plans"

    id = Column(String(64), primary_key=True, comment="Plan id, same as tier name")
    display_name = Column(String(255), nullable=True)
    features = Column(JSONType, nullable=True)

    def __repr__(self) -> str:
        return f"<SubscriptionPlan(id={self.id})>"

    def get_feature_limits(self, feature: str) -> Optional[Dict[str, Any]]:
        """
        Return the limits mapping for a feature, or None if not configured.

        Entries that are not mappings are treated as unconfigured.
        """
        features = self.features if isinstance(self.features, dict) else {}
        feature_config = features.get(feature)
        if not isinstance(feature_config, dict):
            return None
        limits = feature_config.get("limits")
        if not isinstance(limits, dict):
            return None
        return limits or None
