"""
Stripe payment gateway client.

Narrow wrapper over the stripe SDK covering exactly what the service uses:
customers, payment intents, checkout sessions and webhook verification.
Results are converted to plain dataclasses so callers never depend on
StripeObject internals.

Documentation: https://docs.stripe.com/api
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import stripe

logger = logging.getLogger(__name__)

# Pinned API version
STRIPE_API_VERSION = "2024-06-20"

# Stripe metadata values must be strings of at most 500 characters
METADATA_VALUE_MAX_LENGTH = 500


class PaymentGatewayError(Exception):
    """Error communicating with the payment gateway."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class WebhookSignatureError(PaymentGatewayError):
    """Webhook payload or signature failed verification."""
    pass


def build_metadata(data: Dict[str, Any]) -> Dict[str, str]:
    """Stringify metadata values and truncate them to Stripe's limit."""
    metadata: Dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        string_value = str(value)
        metadata[key] = string_value[:METADATA_VALUE_MAX_LENGTH]
    return metadata


def _to_plain(obj: Any) -> Dict[str, Any]:
    """Convert a StripeObject (or dict) to a plain recursive dict."""
    if obj is None:
        return {}
    if hasattr(obj, "to_dict_recursive"):
        return obj.to_dict_recursive()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


@dataclass
class GatewayPaymentIntent:
    """Payment intent fields used by this service."""
    id: str
    status: str
    amount: Optional[int]
    currency: Optional[str]
    customer_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    payment_method_types: List[str] = field(default_factory=list)
    client_secret: Optional[str] = None
    last_error_message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewayPaymentIntent":
        customer = data.get("customer")
        if isinstance(customer, dict):
            customer = customer.get("id")
        last_error = data.get("last_payment_error") or {}
        return cls(
            id=data["id"],
            status=data.get("status", ""),
            amount=data.get("amount"),
            currency=data.get("currency"),
            customer_id=customer,
            metadata=dict(data.get("metadata") or {}),
            payment_method_types=list(data.get("payment_method_types") or []),
            client_secret=data.get("client_secret"),
            last_error_message=last_error.get("message"),
        )

    @property
    def primary_payment_method_type(self) -> Optional[str]:
        return self.payment_method_types[0] if self.payment_method_types else None


@dataclass
class GatewayCheckoutSession:
    id: str
    url: Optional[str]
    customer_id: Optional[str] = None


class StripeGateway:
    """
    Client for Stripe operations.

    Every call passes the API key explicitly; no module-level SDK state
    is mutated.
    """

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key or os.getenv("STRIPE_SECRET_KEY")
        self.webhook_secret = webhook_secret or os.getenv("STRIPE_WEBHOOK_SECRET")

        if not self.api_key:
            logger.warning("Stripe API key not configured")

    def _request_options(self) -> Dict[str, Any]:
        if not self.api_key:
            raise PaymentGatewayError("Stripe API key not configured", code="not_configured")
        return {"api_key": self.api_key, "stripe_version": STRIPE_API_VERSION}

    def create_customer(self, email: str, metadata: Dict[str, Any]) -> str:
        """Create a customer and return its id."""
        try:
            customer = stripe.Customer.create(
                email=email,
                metadata=build_metadata(metadata),
                **self._request_options(),
            )
        except stripe.StripeError as e:
            logger.error("Stripe customer creation failed", extra={"error": str(e)})
            raise PaymentGatewayError(str(e), code=getattr(e, "code", None)) from e
        return customer.id

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: str,
        description: str,
        metadata: Dict[str, Any],
    ) -> GatewayPaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                customer=customer_id,
                description=description,
                metadata=build_metadata(metadata),
                automatic_payment_methods={"enabled": True},
                **self._request_options(),
            )
        except stripe.StripeError as e:
            logger.error("Stripe payment intent creation failed", extra={
                "customer_id": customer_id,
                "error": str(e),
            })
            raise PaymentGatewayError(str(e), code=getattr(e, "code", None)) from e
        return GatewayPaymentIntent.from_dict(_to_plain(intent))

    def retrieve_payment_intent(self, payment_intent_id: str) -> GatewayPaymentIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(
                payment_intent_id,
                **self._request_options(),
            )
        except stripe.StripeError as e:
            logger.error("Stripe payment intent retrieval failed", extra={
                "payment_intent_id": payment_intent_id,
                "error": str(e),
            })
            raise PaymentGatewayError(str(e), code=getattr(e, "code", None)) from e
        return GatewayPaymentIntent.from_dict(_to_plain(intent))

    def create_checkout_session(self, params: Dict[str, Any]) -> GatewayCheckoutSession:
        session_params = dict(params)
        if "metadata" in session_params:
            session_params["metadata"] = build_metadata(session_params["metadata"])
        try:
            session = stripe.checkout.Session.create(
                **session_params,
                **self._request_options(),
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout session creation failed", extra={"error": str(e)})
            raise PaymentGatewayError(str(e), code=getattr(e, "code", None)) from e
        return GatewayCheckoutSession(
            id=session.id,
            url=getattr(session, "url", None),
            customer_id=params.get("customer"),
        )

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the event as a plain dict.

        Raises:
            WebhookSignatureError: Missing/invalid signature or unparseable payload
        """
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature header")
        if not self.webhook_secret:
            raise PaymentGatewayError("Stripe webhook secret not configured", code="not_configured")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Invalid signature: {e}") from e
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e

        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e


_gateway: Optional[StripeGateway] = None


def get_stripe_gateway() -> StripeGateway:
    """Factory for the process-wide gateway client."""
    global _gateway
    if _gateway is None:
        from cvplus_payments.config.settings import get_settings

        settings = get_settings()
        _gateway = StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
        )
    return _gateway
