"""
Request bodies for the callable handlers.

Clients send camelCase keys; fields are snake_case in Python. Most fields
are optional at the schema level so the handler itself reports the
missing value with its own error code.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class HandlerRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckFeatureAccessRequest(HandlerRequest):
    feature: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class RecordFeatureUsageRequest(HandlerRequest):
    feature: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class CreatePaymentIntentRequest(HandlerRequest):
    user_id: Optional[str] = None
    email: str
    google_id: str
    amount: Optional[int] = Field(None, gt=0, description="Amount in cents; defaults to PREMIUM price")


class CreateCheckoutSessionRequest(HandlerRequest):
    user_id: Optional[str] = None
    user_email: str
    price_id: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class ConfirmPaymentRequest(HandlerRequest):
    payment_intent_id: str
    user_id: Optional[str] = None
    google_id: str


class GetUserSubscriptionRequest(HandlerRequest):
    user_id: Optional[str] = None


class SendSchedulingEmailRequest(HandlerRequest):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    message: Optional[str] = None


class BookMeetingRequest(HandlerRequest):
    job_id: Optional[str] = None
    duration: Optional[int] = None
    attendee_email: Optional[str] = None
    attendee_name: Optional[str] = None
    meeting_type: Optional[str] = None
