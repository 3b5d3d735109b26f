"""
UserProfile model.

One row per authenticated user. Entitlement flags on this row are
denormalized copies of the subscription record, written in the same
transaction as the subscription and payment history.
"""

from sqlalchemy import Column, String, Boolean, DateTime

from cvplus_payments.models.base import Base, JSONType, TimestampMixin


class UserProfile(Base, TimestampMixin):
    """Application user profile keyed by the auth provider uid."""

    __tablename__ = "users"

    id = Column(
        String(128),
        primary_key=True,
        comment="Auth provider uid (JWT sub claim)"
    )
    email = Column(String(320), nullable=True, index=True)
    display_name = Column(String(255), nullable=True)
    google_id = Column(String(128), nullable=True)

    # Denormalized entitlement flags
    subscription_status = Column(
        String(50),
        nullable=False,
        default="free",
        comment="free or premium_lifetime"
    )
    premium_features = Column(JSONType, nullable=True)
    lifetime_access_granted = Column(Boolean, nullable=False, default=False)
    purchase_date = Column(DateTime(timezone=True), nullable=True)
    google_account_verification = Column(JSONType, nullable=True)

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, subscription_status={self.subscription_status})>"
