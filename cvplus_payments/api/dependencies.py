"""
Shared FastAPI dependencies.

External collaborators are resolved here so tests can swap them through
app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from cvplus_payments.config.feature_catalog import FeatureCatalog, get_feature_catalog
from cvplus_payments.config.settings import PaymentsSettings, get_settings
from cvplus_payments.database.session import get_db_session
from cvplus_payments.entitlements.resolver import EntitlementResolver
from cvplus_payments.integrations.stripe.gateway import StripeGateway, get_stripe_gateway
from cvplus_payments.services.email_sender import EmailSender, get_email_sender
from cvplus_payments.services.meeting_service import MeetingService
from cvplus_payments.services.payment_service import PaymentService
from cvplus_payments.services.scheduling_service import SchedulingService


def get_catalog() -> FeatureCatalog:
    return get_feature_catalog()


def get_app_settings() -> PaymentsSettings:
    return get_settings()


def get_payment_gateway() -> StripeGateway:
    return get_stripe_gateway()


def get_notification_sender() -> EmailSender:
    return get_email_sender()


def get_entitlement_resolver(
    db_session: Session = Depends(get_db_session),
    catalog: FeatureCatalog = Depends(get_catalog),
    settings: PaymentsSettings = Depends(get_app_settings),
) -> EntitlementResolver:
    return EntitlementResolver(db_session, catalog=catalog, settings=settings)


def get_payment_service(
    db_session: Session = Depends(get_db_session),
    gateway: StripeGateway = Depends(get_payment_gateway),
    catalog: FeatureCatalog = Depends(get_catalog),
    settings: PaymentsSettings = Depends(get_app_settings),
) -> PaymentService:
    return PaymentService(db_session, gateway=gateway, catalog=catalog, settings=settings)


def get_scheduling_service(
    sender: EmailSender = Depends(get_notification_sender),
    settings: PaymentsSettings = Depends(get_app_settings),
) -> SchedulingService:
    return SchedulingService(email_sender=sender, settings=settings)


def get_meeting_service(db_session: Session = Depends(get_db_session)) -> MeetingService:
    return MeetingService(db_session)
