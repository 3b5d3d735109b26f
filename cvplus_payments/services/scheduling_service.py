"""
Call scheduling requests from the FAQ page.

Sends the request to the support inbox (reply-to the requester) and a
confirmation to the requester. Both sends must succeed.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Any, Callable, Dict, Optional

from dateutil import parser as date_parser
from dateutil import tz

from cvplus_payments.config.settings import PaymentsSettings, get_settings
from cvplus_payments.errors import InternalError, InvalidArgumentError
from cvplus_payments.models.base import utcnow
from cvplus_payments.services.email_sender import EmailMessage, EmailSender, get_email_sender

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SUPPORT_TIMEZONE = "America/New_York"

ADMIN_SUBJECT = "Call Scheduling Request - CVPlus FAQ"
CONFIRMATION_SUBJECT = "Call Scheduling Request Received - CVPlus"


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value) is not None


@dataclass
class SchedulingRequest:
    name: str
    email: str
    phone: str
    date: str
    time: str
    message: Optional[str] = None

    def validate(self) -> None:
        """
        Raises:
            InvalidArgumentError: Missing field or malformed email
        """
        if not all([self.name, self.email, self.phone, self.date, self.time]):
            raise InvalidArgumentError("Missing required fields")
        if not is_valid_email(self.email):
            raise InvalidArgumentError("Invalid email format")


def format_requested_date(value: str) -> str:
    """Render a requested date as e.g. 'Monday, January 15, 2024'."""
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError) as e:
        raise InvalidArgumentError("Invalid date format", details={"date": value}) from e
    return f"{parsed:%A}, {parsed:%B} {parsed.day}, {parsed.year}"


class SchedulingService:

    def __init__(
        self,
        email_sender: Optional[EmailSender] = None,
        settings: Optional[PaymentsSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._sender = email_sender or get_email_sender()
        self._settings = settings or get_settings()
        self._now = clock or utcnow

    def send_scheduling_request(self, request: SchedulingRequest) -> Dict[str, Any]:
        """
        Notify support of a call request and confirm it to the requester.

        Raises:
            InvalidArgumentError: Invalid request fields
            InternalError: Either email could not be sent
        """
        request.validate()
        requested_date = format_requested_date(request.date)
        now = self._now()
        submitted_at = now.astimezone(tz.gettz(SUPPORT_TIMEZONE))

        admin_body = self._admin_body(request, requested_date, submitted_at)
        admin_message_id = self._sender.send(EmailMessage(
            to_email=self._settings.scheduling_admin_email,
            subject=ADMIN_SUBJECT,
            text_body=admin_body,
            html_body=self._as_html(admin_body),
            reply_to=request.email,
            tags=["scheduling-request"],
        ))
        if admin_message_id is None:
            raise InternalError("Failed to send scheduling request")

        logger.info("Scheduling email sent successfully", extra={
            "message_id": admin_message_id,
            "user_email": request.email,
            "requested_date": request.date,
            "requested_time": request.time,
        })

        confirmation_body = self._confirmation_body(request, requested_date)
        confirmation_id = self._sender.send(EmailMessage(
            to_email=request.email,
            to_name=request.name,
            subject=CONFIRMATION_SUBJECT,
            text_body=confirmation_body,
            html_body=self._as_html(confirmation_body),
            tags=["scheduling-confirmation"],
        ))
        if confirmation_id is None:
            raise InternalError("Failed to send scheduling request")

        return {
            "success": True,
            "message": "Scheduling request sent successfully",
            "timestamp": now.isoformat(),
        }

    @staticmethod
    def _admin_body(request: SchedulingRequest, requested_date: str, submitted_at: datetime) -> str:
        return (
            "New call scheduling request from CVPlus FAQ page:\n\n"
            "CALL SCHEDULING REQUEST\n\n"
            "Contact Information:\n"
            f"   Name: {request.name}\n"
            f"   Email: {request.email}\n"
            f"   Phone: {request.phone}\n\n"
            "Requested Schedule:\n"
            f"   Date: {requested_date}\n"
            f"   Time: {request.time} EST\n\n"
            "Additional Message:\n"
            f"   {request.message or 'No additional message provided'}\n\n"
            "ACTION REQUIRED: Please contact this user to confirm the scheduled call.\n\n"
            "This request was submitted through the CVPlus FAQ support system.\n"
            f"Timestamp: {submitted_at:%m/%d/%Y, %I:%M:%S %p} EST\n"
        )

    @staticmethod
    def _confirmation_body(request: SchedulingRequest, requested_date: str) -> str:
        return (
            f"Hi {request.name},\n\n"
            "Thank you for your call scheduling request! "
            "We have received your request for a call on:\n\n"
            f"Date: {requested_date}\n"
            f"Time: {request.time} EST\n\n"
            "Our team will contact you within 24 hours to confirm this appointment. "
            "If you need to make any changes or have urgent questions, please reply to this email.\n\n"
            "Best regards,\n"
            "CVPlus Support Team\n"
        )

    @staticmethod
    def _as_html(text: str) -> str:
        return "<pre>" + escape(text) + "</pre>"
