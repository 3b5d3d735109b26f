"""
Tests for PaymentService.

The Stripe gateway is mocked; persistence uses the SQLite test session.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from cvplus_payments.config.feature_catalog import FeatureCatalog
from cvplus_payments.errors import (
    FailedPreconditionError,
    PermissionDeniedError,
    UserNotFoundError,
)
from cvplus_payments.integrations.stripe.gateway import (
    GatewayCheckoutSession,
    GatewayPaymentIntent,
)
from cvplus_payments.models.payment_record import PaymentRecord
from cvplus_payments.models.subscription import UserSubscription
from cvplus_payments.services.payment_service import PaymentService

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

USER_ID = "user-abc"
GOOGLE_ID = "google-123"
EMAIL = "buyer@example.com"


def _intent(status="succeeded", metadata=None, intent_id="pi_123"):
    return GatewayPaymentIntent(
        id=intent_id,
        status=status,
        amount=4900,
        currency="usd",
        customer_id="cus_123",
        metadata=metadata if metadata is not None else {
            "userId": USER_ID,
            "googleId": GOOGLE_ID,
            "email": EMAIL,
        },
        payment_method_types=["card"],
        client_secret="pi_123_secret_abc",
    )


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.create_customer.return_value = "cus_new"
    gateway.create_payment_intent.return_value = _intent(status="requires_payment_method")
    gateway.create_checkout_session.return_value = GatewayCheckoutSession(
        id="cs_123", url="https://checkout.stripe.com/c/pay/cs_123", customer_id="cus_new"
    )
    gateway.retrieve_payment_intent.return_value = _intent()
    return gateway


@pytest.fixture
def service(db_session, gateway, catalog, settings, clock):
    return PaymentService(db_session, gateway=gateway, catalog=catalog, settings=settings, clock=clock)


class TestCreatePaymentIntent:

    def test_uses_catalogue_price_by_default(self, service, gateway):
        result = service.create_payment_intent(USER_ID, EMAIL, GOOGLE_ID)

        assert result == {
            "clientSecret": "pi_123_secret_abc",
            "paymentIntentId": "pi_123",
            "customerId": "cus_new",
            "amount": 4900,
        }
        kwargs = gateway.create_payment_intent.call_args.kwargs
        assert kwargs["amount"] == 4900
        assert kwargs["currency"] == "usd"
        assert kwargs["customer_id"] == "cus_new"

    def test_metadata_carries_identity_for_the_webhook(self, service, gateway):
        service.create_payment_intent(USER_ID, EMAIL, GOOGLE_ID)

        metadata = gateway.create_payment_intent.call_args.kwargs["metadata"]
        assert metadata["userId"] == USER_ID
        assert metadata["googleId"] == GOOGLE_ID
        assert metadata["email"] == EMAIL
        assert metadata["productType"] == "lifetime_premium"
        assert metadata["tier"] == "PREMIUM"
        assert metadata["priceCents"] == 4900
        assert metadata["priceDollars"] == Decimal("49")

    def test_explicit_amount_overrides_catalogue(self, service, gateway):
        result = service.create_payment_intent(USER_ID, EMAIL, GOOGLE_ID, amount=2900)

        assert result["amount"] == 2900
        assert gateway.create_payment_intent.call_args.kwargs["amount"] == 2900

    def test_creates_customer_when_none_on_file(self, service, gateway):
        service.create_payment_intent(USER_ID, EMAIL, GOOGLE_ID)

        gateway.create_customer.assert_called_once()
        kwargs = gateway.create_customer.call_args.kwargs
        assert kwargs["email"] == EMAIL
        assert kwargs["metadata"]["userId"] == USER_ID
        assert kwargs["metadata"]["googleId"] == GOOGLE_ID
        assert kwargs["metadata"]["platform"] == "cvplus"

    def test_reuses_customer_from_payment_history(self, service, gateway, db_session):
        db_session.add(PaymentRecord(
            payment_id="pi_old",
            user_id=USER_ID,
            status="failed",
            stripe_customer_id="cus_existing",
        ))
        db_session.commit()

        result = service.create_payment_intent(USER_ID, EMAIL, GOOGLE_ID)

        assert result["customerId"] == "cus_existing"
        gateway.create_customer.assert_not_called()

    def test_rejects_user_with_lifetime_access(self, service, gateway, make_subscription):
        make_subscription(USER_ID, lifetime_access=True, subscription_status="premium_lifetime")

        with pytest.raises(FailedPreconditionError) as exc_info:
            service.create_payment_intent(USER_ID, EMAIL, GOOGLE_ID)

        assert exc_info.value.message == "User already has lifetime premium access"
        gateway.create_payment_intent.assert_not_called()


class TestCreateCheckoutSession:

    def test_default_urls_and_session_shape(self, service, gateway):
        result = service.create_checkout_session(USER_ID, EMAIL)

        assert result == {
            "sessionId": "cs_123",
            "url": "https://checkout.stripe.com/c/pay/cs_123",
            "customerId": "cus_new",
        }
        params = gateway.create_checkout_session.call_args.args[0]
        assert params["mode"] == "payment"
        assert params["payment_method_types"] == ["card"]
        assert params["success_url"] == (
            "https://getmycv-ai.web.app/payment-success?session_id={CHECKOUT_SESSION_ID}"
        )
        assert params["cancel_url"] == "https://getmycv-ai.web.app/pricing?canceled=true"
        assert params["metadata"] == {
            "userId": USER_ID,
            "userEmail": EMAIL,
            "productType": "lifetime_premium",
        }
        assert params["invoice_creation"] == {"enabled": True}

    def test_falls_back_to_inline_price_without_configured_id(self, service, gateway):
        service.create_checkout_session(USER_ID, EMAIL)

        line_item = gateway.create_checkout_session.call_args.args[0]["line_items"][0]
        assert line_item["quantity"] == 1
        assert line_item["price_data"]["unit_amount"] == 4900
        assert line_item["price_data"]["currency"] == "usd"
        assert line_item["price_data"]["product_data"]["name"] == "CVPlus Premium - Lifetime Access"
        assert line_item["price_data"]["product_data"]["images"] == [
            "https://getmycv-ai.web.app/CVisionary_Logo.png"
        ]

    def test_explicit_price_id_wins(self, service, gateway):
        service.create_checkout_session(USER_ID, EMAIL, price_id="price_explicit")

        line_item = gateway.create_checkout_session.call_args.args[0]["line_items"][0]
        assert line_item == {"price": "price_explicit", "quantity": 1}

    def test_configured_price_id_is_used(self, db_session, gateway, settings, clock):
        catalog = FeatureCatalog(raw={
            "pricing": {
                "PREMIUM": {
                    "name": "Premium",
                    "price": {"dollars": 49, "currency": "USD"},
                    "stripe_price_ids": {"test": "price_1Pabc"},
                },
            },
        })
        service = PaymentService(db_session, gateway=gateway, catalog=catalog, settings=settings, clock=clock)

        service.create_checkout_session(USER_ID, EMAIL)

        line_item = gateway.create_checkout_session.call_args.args[0]["line_items"][0]
        assert line_item == {"price": "price_1Pabc", "quantity": 1}

    def test_custom_urls(self, service, gateway):
        service.create_checkout_session(
            USER_ID, EMAIL,
            success_url="https://example.com/ok",
            cancel_url="https://example.com/cancel",
        )

        params = gateway.create_checkout_session.call_args.args[0]
        assert params["success_url"] == "https://example.com/ok"
        assert params["cancel_url"] == "https://example.com/cancel"

    def test_rejects_user_with_lifetime_access(self, service, gateway, make_subscription):
        make_subscription(USER_ID, lifetime_access=True)

        with pytest.raises(FailedPreconditionError):
            service.create_checkout_session(USER_ID, EMAIL)

        gateway.create_checkout_session.assert_not_called()


class TestConfirmPayment:

    def test_grants_lifetime_access(self, service, db_session, make_user):
        make_user(USER_ID, email=EMAIL)

        result = service.confirm_payment("pi_123", USER_ID, GOOGLE_ID)

        assert result == {
            "success": True,
            "subscriptionStatus": "premium_lifetime",
            "lifetimeAccess": True,
            "features": {
                "webPortal": True,
                "aiChat": True,
                "podcast": True,
                "advancedAnalytics": True,
            },
            "purchasedAt": "2024-01-15T12:00:00+00:00",
            "message": "Lifetime premium access granted successfully",
        }
        assert db_session.get(UserSubscription, USER_ID).lifetime_access is True
        assert db_session.get(PaymentRecord, "pi_123").status == "succeeded"

    def test_incomplete_payment_is_rejected(self, service, gateway, db_session, make_user):
        make_user(USER_ID)
        gateway.retrieve_payment_intent.return_value = _intent(status="processing")

        with pytest.raises(FailedPreconditionError) as exc_info:
            service.confirm_payment("pi_123", USER_ID, GOOGLE_ID)

        assert exc_info.value.message == "Payment not completed. Status: processing"
        assert db_session.get(UserSubscription, USER_ID) is None

    @pytest.mark.parametrize("metadata", [
        {"userId": "someone-else", "googleId": GOOGLE_ID, "email": EMAIL},
        {"userId": USER_ID, "googleId": "google-other", "email": EMAIL},
        {},
    ])
    def test_metadata_mismatch_is_rejected(self, service, gateway, db_session, make_user, metadata):
        make_user(USER_ID)
        gateway.retrieve_payment_intent.return_value = _intent(metadata=metadata)

        with pytest.raises(PermissionDeniedError):
            service.confirm_payment("pi_123", USER_ID, GOOGLE_ID)

        assert db_session.get(UserSubscription, USER_ID) is None

    def test_missing_profile_writes_nothing(self, service, db_session):
        with pytest.raises(UserNotFoundError):
            service.confirm_payment("pi_123", USER_ID, GOOGLE_ID)

        assert db_session.get(UserSubscription, USER_ID) is None
        assert db_session.get(PaymentRecord, "pi_123") is None


class TestGetUserSubscription:

    def test_no_record_is_free(self, service):
        result = service.get_user_subscription(USER_ID)

        assert result["subscriptionStatus"] == "free"
        assert result["lifetimeAccess"] is False
        assert result["features"] == {}
        assert result["purchasedAt"] is None
        assert result["message"] == "No premium subscription found"

    def test_lifetime_record(self, service, make_subscription):
        make_subscription(
            USER_ID,
            subscription_status="premium_lifetime",
            lifetime_access=True,
            features={"aiChat": True},
            purchased_at=FIXED_NOW,
            stripe_customer_id="cus_123",
            extra_metadata={
                "paymentAmount": 4900,
                "currency": "usd",
                "accountVerification": {"verifiedAt": FIXED_NOW.isoformat()},
            },
        )

        result = service.get_user_subscription(USER_ID)

        assert result == {
            "subscriptionStatus": "premium_lifetime",
            "lifetimeAccess": True,
            "features": {"aiChat": True},
            "purchasedAt": "2024-01-15T12:00:00+00:00",
            "paymentAmount": 4900,
            "currency": "usd",
            "googleAccountVerified": FIXED_NOW.isoformat(),
            "stripeCustomerId": "cus_123",
            "message": "Lifetime premium access active",
        }

    def test_non_lifetime_record(self, service, make_subscription):
        make_subscription(USER_ID, plan_id="basic", subscription_status="basic")

        result = service.get_user_subscription(USER_ID)

        assert result["lifetimeAccess"] is False
        assert result["message"] == "Free tier active"
