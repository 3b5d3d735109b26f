"""
Payment history model.

Keyed by the gateway payment intent id, so re-writing the same payment
overwrites rather than duplicates.
"""

from sqlalchemy import Column, String, Integer, DateTime, Text

from cvplus_payments.models.base import Base, JSONType, TimestampMixin


class PaymentStatus:
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentRecord(Base, TimestampMixin):
    """One row per payment attempt reported by the gateway."""

    __tablename__ = "payment_history"

    payment_id = Column(
        String(255),
        primary_key=True,
        comment="Gateway payment intent id"
    )
    user_id = Column(String(128), nullable=True, index=True)
    amount = Column(Integer, nullable=True, comment="Amount in minor units (cents)")
    currency = Column(String(8), nullable=True)
    status = Column(String(32), nullable=False)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    payment_method = Column(JSONType, nullable=True)
    failure_reason = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<PaymentRecord(payment_id={self.payment_id}, status={self.status})>"
