"""
Route-level tests for the callable handlers.

Collaborators are swapped through app.dependency_overrides: the SQLite
test session, a mocked Stripe gateway and the mock email sender.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import jwt
import pytest
from fastapi.testclient import TestClient

from cvplus_payments.api.dependencies import (
    get_app_settings,
    get_catalog,
    get_notification_sender,
    get_payment_gateway,
)
from cvplus_payments.config.settings import reset_settings
from cvplus_payments.database.session import get_db_session
from cvplus_payments.integrations.stripe.gateway import GatewayPaymentIntent, PaymentGatewayError
from cvplus_payments.models.cv_job import CvJob
from cvplus_payments.models.subscription import UserSubscription
from cvplus_payments.models.usage import FeatureUsageEvent
from cvplus_payments.services.email_sender import MockEmailSender

pytestmark = pytest.mark.integration

JWT_SECRET = "test-jwt-secret"
USER_ID = "user-abc"


def _token(sub=USER_ID, **claims):
    return jwt.encode({"sub": sub, **claims}, JWT_SECRET, algorithm="HS256")


def _auth(sub=USER_ID):
    return {"Authorization": f"Bearer {_token(sub)}"}


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.create_customer.return_value = "cus_new"
    gateway.create_payment_intent.return_value = GatewayPaymentIntent(
        id="pi_123",
        status="requires_payment_method",
        amount=4900,
        currency="usd",
        customer_id="cus_new",
        client_secret="pi_123_secret_abc",
    )
    gateway.retrieve_payment_intent.return_value = GatewayPaymentIntent(
        id="pi_123",
        status="succeeded",
        amount=4900,
        currency="usd",
        customer_id="cus_new",
        metadata={"userId": USER_ID, "googleId": "google-123", "email": "buyer@example.com"},
        payment_method_types=["card"],
    )
    return gateway


@pytest.fixture
def sender():
    return MockEmailSender()


@pytest.fixture
def client(db_session, catalog, settings, gateway, sender, monkeypatch):
    monkeypatch.setenv("AUTH_JWT_SECRET", JWT_SECRET)
    reset_settings()

    from cvplus_payments.main import app

    def override_db_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notification_sender] = lambda: sender

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
    reset_settings()


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


@pytest.mark.security
class TestAuthentication:

    def test_missing_token(self, client):
        response = client.post("/api/functions/checkFeatureAccess", json={"feature": "aiChat"})

        assert response.status_code == 401
        assert response.json() == {
            "error": {"status": "unauthenticated", "message": "User must be authenticated"},
        }

    def test_non_bearer_scheme(self, client):
        response = client.post(
            "/api/functions/checkFeatureAccess",
            json={"feature": "aiChat"},
            headers={"Authorization": f"Basic {_token()}"},
        )

        assert response.status_code == 401

    def test_expired_token(self, client):
        token = _token(exp=datetime.now(timezone.utc) - timedelta(minutes=1))

        response = client.post(
            "/api/functions/checkFeatureAccess",
            json={"feature": "aiChat"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Authentication token has expired"

    def test_user_id_mismatch(self, client, gateway):
        response = client.post(
            "/api/functions/createPaymentIntent",
            json={"userId": "someone-else", "email": "a@example.com", "googleId": "g1"},
            headers=_auth(),
        )

        assert response.status_code == 403
        assert response.json()["error"] == {
            "status": "permission-denied",
            "message": "User ID mismatch",
        }
        gateway.create_payment_intent.assert_not_called()


class TestFeatureRoutes:

    def test_insufficient_tier(self, client, make_user, make_subscription):
        make_user(USER_ID)
        make_subscription(USER_ID, plan_id="basic")

        response = client.post(
            "/api/functions/checkFeatureAccess",
            json={"feature": "aiChat"},
            headers=_auth(),
        )

        assert response.status_code == 200
        assert response.json() == {
            "hasAccess": False,
            "feature": "aiChat",
            "reason": "insufficient_tier",
            "requiredTier": "pro",
            "currentTier": "basic",
            "upgradeUrl": "https://cvplus-webapp.web.app/billing/upgrade?feature=aiChat&tier=pro",
        }

    def test_free_feature(self, client, make_user):
        make_user(USER_ID)

        response = client.post(
            "/api/functions/checkFeatureAccess",
            json={"feature": "cvAnalysis"},
            headers=_auth(),
        )

        assert response.json() == {"hasAccess": True, "feature": "cvAnalysis", "reason": "free_feature"}

    def test_unknown_feature(self, client, make_user):
        make_user(USER_ID)

        response = client.post(
            "/api/functions/checkFeatureAccess",
            json={"feature": "teleportation"},
            headers=_auth(),
        )

        assert response.status_code == 400
        assert response.json()["error"]["status"] == "invalid-argument"
        assert response.json()["error"]["message"] == "Valid premium feature required"

    def test_missing_profile(self, client):
        response = client.post(
            "/api/functions/checkFeatureAccess",
            json={"feature": "aiChat"},
            headers=_auth(),
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "User profile not found"

    def test_record_usage_when_entitled(self, client, db_session, make_user, make_subscription):
        make_user(USER_ID)
        make_subscription(USER_ID, plan_id="pro")

        response = client.post(
            "/api/functions/recordFeatureUsage",
            json={"feature": "aiChat"},
            headers=_auth(),
        )

        assert response.status_code == 200
        assert response.json()["recorded"] is True
        assert response.json()["access"]["hasAccess"] is True
        assert db_session.query(FeatureUsageEvent).count() == 1

    def test_record_usage_when_denied(self, client, db_session, make_user):
        make_user(USER_ID)

        response = client.post(
            "/api/functions/recordFeatureUsage",
            json={"feature": "aiChat"},
            headers=_auth(),
        )

        assert response.json()["recorded"] is False
        assert response.json()["access"]["reason"] == "no_subscription"
        assert db_session.query(FeatureUsageEvent).count() == 0


class TestPaymentRoutes:

    def test_create_payment_intent(self, client, gateway):
        response = client.post(
            "/api/functions/createPaymentIntent",
            json={"userId": USER_ID, "email": "buyer@example.com", "googleId": "google-123"},
            headers=_auth(),
        )

        assert response.status_code == 200
        assert response.json() == {
            "clientSecret": "pi_123_secret_abc",
            "paymentIntentId": "pi_123",
            "customerId": "cus_new",
            "amount": 4900,
        }

    def test_missing_required_field(self, client):
        response = client.post(
            "/api/functions/createPaymentIntent",
            json={"userId": USER_ID, "googleId": "google-123"},
            headers=_auth(),
        )

        assert response.status_code == 400
        body = response.json()["error"]
        assert body["status"] == "invalid-argument"
        assert body["details"]["fields"] == ["email"]

    def test_gateway_failure_is_internal(self, client, gateway):
        gateway.create_customer.side_effect = PaymentGatewayError("Stripe is down")

        response = client.post(
            "/api/functions/createPaymentIntent",
            json={"userId": USER_ID, "email": "buyer@example.com", "googleId": "google-123"},
            headers=_auth(),
        )

        assert response.status_code == 500
        assert response.json()["error"] == {
            "status": "internal",
            "message": "Failed to create payment intent",
        }

    def test_already_lifetime(self, client, make_subscription):
        make_subscription(USER_ID, lifetime_access=True)

        response = client.post(
            "/api/functions/createCheckoutSession",
            json={"userId": USER_ID, "userEmail": "buyer@example.com"},
            headers=_auth(),
        )

        assert response.status_code == 400
        assert response.json()["error"]["status"] == "failed-precondition"

    def test_confirm_payment(self, client, db_session, make_user):
        make_user(USER_ID)

        response = client.post(
            "/api/functions/confirmPayment",
            json={"paymentIntentId": "pi_123", "userId": USER_ID, "googleId": "google-123"},
            headers=_auth(),
        )

        assert response.status_code == 200
        assert response.json()["subscriptionStatus"] == "premium_lifetime"
        assert db_session.get(UserSubscription, USER_ID).lifetime_access is True

    def test_get_user_subscription(self, client):
        response = client.post(
            "/api/functions/getUserSubscription",
            json={"userId": USER_ID},
            headers=_auth(),
        )

        assert response.status_code == 200
        assert response.json()["subscriptionStatus"] == "free"


class TestSchedulingRoutes:

    def test_send_scheduling_email_is_public(self, client, sender):
        response = client.post("/api/functions/sendSchedulingEmail", json={
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "phone": "+1 555 0100",
            "date": "2024-01-22",
            "time": "10:30 AM",
        })

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert len(sender.sent_messages) == 2

    def test_send_scheduling_email_missing_fields(self, client, sender):
        response = client.post("/api/functions/sendSchedulingEmail", json={"name": "Ada"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Missing required fields"
        assert sender.sent_messages == []

    def test_book_meeting_requires_auth(self, client):
        response = client.post("/api/functions/bookMeeting", json={"jobId": "job-1"})

        assert response.status_code == 401

    def test_book_meeting(self, client, db_session):
        db_session.add(CvJob(id="job-1", user_id=USER_ID, parsed_data={"personalInfo": {"name": "Ada"}}))
        db_session.commit()

        response = client.post(
            "/api/functions/bookMeeting",
            json={"jobId": "job-1", "duration": 30, "attendeeEmail": "guest@example.com"},
            headers=_auth(),
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["calendarUrl"].startswith("https://calendar.google.com/calendar/render?")

    def test_book_meeting_for_someone_elses_cv(self, client, db_session):
        db_session.add(CvJob(id="job-1", user_id="owner-2", parsed_data={"personalInfo": {"name": "Ada"}}))
        db_session.commit()

        response = client.post(
            "/api/functions/bookMeeting",
            json={"jobId": "job-1", "duration": 30, "attendeeEmail": "guest@example.com"},
            headers=_auth(),
        )

        assert response.status_code == 403
