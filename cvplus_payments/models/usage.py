"""
Feature usage events.

HIGH VOLUME, APPEND-ONLY - one row per feature invocation. Only counted
within the current calendar month.
"""

from sqlalchemy import Column, String, DateTime, Index

from cvplus_payments.models.base import Base, generate_uuid, utcnow


class FeatureUsageEvent(Base):
    """
    Individual feature invocation.

    NOTE: Does not include TimestampMixin to reduce storage (uses timestamp).
    """

    __tablename__ = "feature_usage"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(128), nullable=False)
    feature = Column(String(64), nullable=False)
    timestamp = Column(
        "timestamp",
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When the feature was used"
    )

    __table_args__ = (
        Index("ix_feature_usage_user_feature_time", "user_id", "feature", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<FeatureUsageEvent(user_id={self.user_id}, feature={self.feature}, timestamp={self.timestamp})>"
