"""
GracePeriod model.

Temporary per-user, per-feature access override. Rows are created by an
out-of-band grant process and removed lazily once expired.
"""

from sqlalchemy import Column, String, DateTime, UniqueConstraint

from cvplus_payments.models.base import Base, TimestampMixin, generate_uuid


class GracePeriod(Base, TimestampMixin):

    __tablename__ = "grace_periods"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(128), nullable=False, index=True)
    feature = Column(String(64), nullable=False)
    end_date = Column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
        comment="Override ends at this instant; null is treated as expired"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "feature", name="uq_grace_periods_user_feature"),
    )

    def __repr__(self) -> str:
        return f"<GracePeriod(user_id={self.user_id}, feature={self.feature}, end_date={self.end_date})>"
