"""
Payment service for lifetime premium purchases.

Handles:
- Payment intent creation (embedded card form)
- Hosted checkout session creation
- Payment confirmation and the lifetime grant
- Subscription summary lookup

Caller identity is checked by the route layer before any method here runs.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from cvplus_payments.config.feature_catalog import FeatureCatalog, get_feature_catalog
from cvplus_payments.config.settings import PaymentsSettings, get_settings
from cvplus_payments.errors import FailedPreconditionError, PermissionDeniedError
from cvplus_payments.integrations.stripe.gateway import StripeGateway, get_stripe_gateway
from cvplus_payments.models.base import ensure_utc, utcnow
from cvplus_payments.models.subscription import PREMIUM_LIFETIME
from cvplus_payments.repositories.subscription_repository import SubscriptionRepository
from cvplus_payments.services.lifetime_access import LifetimeAccessService

logger = logging.getLogger(__name__)

PRODUCT_TYPE = "lifetime_premium"
PRICING_TIER = "PREMIUM"
PRODUCT_IMAGE_PATH = "/CVisionary_Logo.png"


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


class PaymentService:
    """
    Service for lifetime premium payments.

    Reads pricing from the feature catalogue and talks to Stripe through
    the gateway client; all persistence goes through the repositories.
    """

    def __init__(
        self,
        db_session: Session,
        gateway: Optional[StripeGateway] = None,
        catalog: Optional[FeatureCatalog] = None,
        settings: Optional[PaymentsSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db_session
        self._gateway = gateway or get_stripe_gateway()
        self._catalog = catalog or get_feature_catalog()
        self._settings = settings or get_settings()
        self._now = clock or utcnow
        self._subscriptions = SubscriptionRepository(db_session)
        self._lifetime_access = LifetimeAccessService(db_session, catalog=self._catalog, clock=self._now)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_not_lifetime(self, user_id: str) -> None:
        if self._subscriptions.has_lifetime_access(user_id):
            raise FailedPreconditionError("User already has lifetime premium access")

    def _get_or_create_customer(self, user_id: str, email: str, metadata: Dict[str, Any]) -> str:
        """Reuse the customer from a prior payment, else create one."""
        customer_id = self._subscriptions.find_customer_id(user_id)
        if customer_id:
            return customer_id

        customer_id = self._gateway.create_customer(
            email=email,
            metadata={"userId": user_id, **metadata, "platform": "cvplus"},
        )
        logger.info("Stripe customer created", extra={
            "user_id": user_id,
            "customer_id": customer_id,
        })
        return customer_id

    def _log_pricing_status(self) -> None:
        validation = self._catalog.validate_pricing_config(PRICING_TIER, self._settings.env)
        if not validation.is_valid:
            logger.error("Pricing configuration validation failed", extra={
                "errors": validation.errors,
                "warnings": validation.warnings,
            })
        elif validation.warnings:
            logger.warning("Pricing configuration warnings", extra={
                "warnings": validation.warnings,
            })

    def _line_item(self, price_id: Optional[str]) -> Dict[str, Any]:
        """
        Build the checkout line item.

        Order: explicit price id, then the environment's configured price id
        unless it is a template placeholder, then inline price data.
        """
        if price_id:
            return {"price": price_id, "quantity": 1}

        pricing = self._catalog.get_tier_config(PRICING_TIER)
        configured_price_id = self._catalog.get_stripe_price_id(PRICING_TIER, self._settings.env)

        if configured_price_id and "template" not in configured_price_id:
            logger.info("Using environment-specific Stripe price id", extra={
                "price_id": configured_price_id,
                "environment": self._settings.env,
            })
            return {"price": configured_price_id, "quantity": 1}

        unit_amount = self._catalog.get_price_in_cents(PRICING_TIER)
        logger.warning("Using price_data fallback due to missing Stripe price id", extra={
            "price_cents": unit_amount,
            "environment": self._settings.env,
            "configured_price_id": configured_price_id,
        })
        return {
            "price_data": {
                "currency": pricing.currency.lower(),
                "product_data": {
                    "name": f"CVPlus {pricing.name} - Lifetime Access",
                    "description": pricing.description,
                    "images": [f"{self._settings.app_base_url}{PRODUCT_IMAGE_PATH}"],
                },
                "unit_amount": unit_amount,
            },
            "quantity": 1,
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_payment_intent(
        self,
        user_id: str,
        email: str,
        google_id: str,
        amount: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Create a payment intent for the lifetime premium purchase.

        Raises:
            FailedPreconditionError: User already has lifetime access
            PaymentGatewayError: Stripe call failed
        """
        self._log_pricing_status()

        pricing = self._catalog.get_tier_config(PRICING_TIER)
        default_amount = self._catalog.get_price_in_cents(PRICING_TIER)
        final_amount = amount if amount is not None else default_amount

        logger.info("Creating payment intent", extra={
            "user_id": user_id,
            "provided_amount": amount,
            "final_amount": final_amount,
            "default_amount": default_amount,
        })

        self._ensure_not_lifetime(user_id)
        customer_id = self._get_or_create_customer(user_id, email, {"googleId": google_id})

        intent = self._gateway.create_payment_intent(
            amount=final_amount,
            currency=pricing.currency.lower(),
            customer_id=customer_id,
            description=f"CVPlus {pricing.name} - {pricing.description}",
            metadata={
                "userId": user_id,
                "googleId": google_id,
                "email": email,
                "productType": PRODUCT_TYPE,
                "tier": pricing.tier,
                "priceCents": final_amount,
                "priceDollars": Decimal(final_amount) / 100,
            },
        )

        logger.info("Payment intent created", extra={
            "user_id": user_id,
            "payment_intent_id": intent.id,
            "amount": final_amount,
            "customer_id": customer_id,
        })

        return {
            "clientSecret": intent.client_secret,
            "paymentIntentId": intent.id,
            "customerId": customer_id,
            "amount": final_amount,
        }

    def create_checkout_session(
        self,
        user_id: str,
        user_email: str,
        price_id: Optional[str] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a hosted checkout session for the lifetime premium purchase.

        Raises:
            FailedPreconditionError: User already has lifetime access
            PaymentGatewayError: Stripe call failed
        """
        base_url = self._settings.app_base_url
        success_url = success_url or f"{base_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}"
        cancel_url = cancel_url or f"{base_url}/pricing?canceled=true"

        self._ensure_not_lifetime(user_id)
        customer_id = self._get_or_create_customer(user_id, user_email, {})

        self._log_pricing_status()

        session = self._gateway.create_checkout_session({
            "customer": customer_id,
            "payment_method_types": ["card"],
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {
                "userId": user_id,
                "userEmail": user_email,
                "productType": PRODUCT_TYPE,
            },
            "customer_update": {"address": "auto"},
            "invoice_creation": {"enabled": True},
            "line_items": [self._line_item(price_id)],
        })

        logger.info("Checkout session created", extra={
            "user_id": user_id,
            "session_id": session.id,
            "customer_id": customer_id,
            "provided_price_id": price_id,
        })

        return {
            "sessionId": session.id,
            "url": session.url,
            "customerId": customer_id,
        }

    def confirm_payment(self, payment_intent_id: str, user_id: str, google_id: str) -> Dict[str, Any]:
        """
        Verify a succeeded payment intent and grant lifetime access.

        Raises:
            FailedPreconditionError: Intent has not succeeded
            PermissionDeniedError: Intent metadata belongs to someone else
            UserNotFoundError: No profile to update
        """
        intent = self._gateway.retrieve_payment_intent(payment_intent_id)

        if intent.status != "succeeded":
            raise FailedPreconditionError(f"Payment not completed. Status: {intent.status}")

        if intent.metadata.get("userId") != user_id or intent.metadata.get("googleId") != google_id:
            raise PermissionDeniedError("Payment metadata mismatch")

        result = self._lifetime_access.grant(
            intent,
            user_id=user_id,
            google_id=google_id,
            email=intent.metadata.get("email"),
        )

        return {
            "success": True,
            "subscriptionStatus": PREMIUM_LIFETIME,
            "lifetimeAccess": True,
            "features": result.features,
            "purchasedAt": _iso(result.purchased_at),
            "message": "Lifetime premium access granted successfully",
        }

    def get_user_subscription(self, user_id: str) -> Dict[str, Any]:
        subscription = self._subscriptions.get(user_id)

        if subscription is None:
            summary: Dict[str, Any] = {
                "subscriptionStatus": "free",
                "lifetimeAccess": False,
                "features": {},
                "purchasedAt": None,
                "paymentAmount": None,
                "currency": None,
                "googleAccountVerified": None,
                "stripeCustomerId": None,
            }
        else:
            metadata = subscription.extra_metadata or {}
            verification = metadata.get("accountVerification") or {}
            summary = {
                "subscriptionStatus": subscription.subscription_status,
                "lifetimeAccess": bool(subscription.lifetime_access),
                "features": subscription.features or {},
                "purchasedAt": _iso(subscription.purchased_at),
                "paymentAmount": metadata.get("paymentAmount"),
                "currency": metadata.get("currency"),
                "googleAccountVerified": verification.get("verifiedAt"),
                "stripeCustomerId": subscription.stripe_customer_id,
            }

        if summary["lifetimeAccess"]:
            summary["message"] = "Lifetime premium access active"
        elif summary["subscriptionStatus"] == "free":
            summary["message"] = "No premium subscription found"
        else:
            summary["message"] = "Free tier active"

        logger.info("User subscription retrieved", extra={
            "user_id": user_id,
            "subscription_status": summary["subscriptionStatus"],
            "lifetime_access": summary["lifetimeAccess"],
        })
        return summary
