"""
Root test configuration and fixtures.

Provides database fixtures, a fixed clock and seed-data factories used by
unit and integration tests.
"""

import os
import uuid
from datetime import datetime, timezone
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_engine():
    """
    Create a fresh SQLite in-memory engine per test.

    Handlers commit and roll back on their own, so each test gets its own
    schema rather than an enclosing transaction.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Import and create all tables
    from cvplus_payments.db_base import Base
    from cvplus_payments import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()

    yield session

    session.close()


@pytest.fixture
def clock():
    """Fixed clock: 2024-01-15 12:00 UTC."""
    return lambda: FIXED_NOW


@pytest.fixture
def catalog():
    """The packaged premium feature catalogue."""
    from cvplus_payments.config.feature_catalog import FeatureCatalog

    return FeatureCatalog()


@pytest.fixture
def settings():
    from cvplus_payments.config.settings import PaymentsSettings

    return PaymentsSettings(
        env="test",
        frontend_url="https://cvplus-webapp.web.app",
        app_base_url="https://getmycv-ai.web.app",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test_123",
        auth_jwt_secret="test-jwt-secret",
    )


# =============================================================================
# Seed data factories
# =============================================================================


@pytest.fixture
def make_user(db_session):
    from cvplus_payments.models.user import UserProfile

    def _make(user_id: str = None, **fields) -> UserProfile:
        user = UserProfile(
            id=user_id or f"user-{uuid.uuid4().hex[:8]}",
            email=fields.pop("email", "user@example.com"),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_subscription(db_session):
    from cvplus_payments.models.subscription import SubscriptionStatus, UserSubscription

    def _make(user_id: str, plan_id: str = "pro", status: str = SubscriptionStatus.ACTIVE.value, **fields):
        subscription = UserSubscription(
            user_id=user_id,
            plan_id=plan_id,
            status=status,
            **fields,
        )
        db_session.add(subscription)
        db_session.commit()
        return subscription
    return _make


@pytest.fixture
def make_plan(db_session):
    from cvplus_payments.models.plan import SubscriptionPlan

    def _make(plan_id: str, features: dict):
        plan = SubscriptionPlan(id=plan_id, display_name=plan_id.title(), features=features)
        db_session.add(plan)
        db_session.commit()
        return plan
    return _make


@pytest.fixture
def add_usage(db_session):
    from cvplus_payments.models.usage import FeatureUsageEvent

    def _add(user_id: str, feature: str, count: int, timestamp: datetime = FIXED_NOW):
        for _ in range(count):
            db_session.add(FeatureUsageEvent(user_id=user_id, feature=feature, timestamp=timestamp))
        db_session.commit()
    return _add


@pytest.fixture
def make_grace_period(db_session):
    from cvplus_payments.models.grace_period import GracePeriod

    def _make(user_id: str, feature: str, end_date):
        grace_period = GracePeriod(user_id=user_id, feature=feature, end_date=end_date)
        db_session.add(grace_period)
        db_session.commit()
        return grace_period
    return _make


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")
    config.addinivalue_line("markers", "integration: mark test as route-level integration test")
