"""Stripe payment gateway integration."""

from cvplus_payments.integrations.stripe.gateway import (
    StripeGateway,
    GatewayPaymentIntent,
    GatewayCheckoutSession,
    PaymentGatewayError,
    WebhookSignatureError,
    build_metadata,
    get_stripe_gateway,
)

__all__ = [
    "StripeGateway",
    "GatewayPaymentIntent",
    "GatewayCheckoutSession",
    "PaymentGatewayError",
    "WebhookSignatureError",
    "build_metadata",
    "get_stripe_gateway",
]
