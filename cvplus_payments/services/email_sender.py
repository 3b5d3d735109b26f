"""
Email sender abstraction for scheduling notifications.

Supports multiple providers:
- SendGrid (production)
- SMTP (development)
- Mock (testing)

Every sender returns the provider message id on success and None on
failure; callers decide whether a failed send is fatal.
"""

import logging
import os
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
DEFAULT_FROM_EMAIL = "noreply@cvplus.ai"
DEFAULT_FROM_NAME = "CVPlus"


@dataclass
class EmailMessage:
    """Email message data."""
    to_email: str
    subject: str
    html_body: str
    to_name: Optional[str] = None
    text_body: Optional[str] = None
    reply_to: Optional[str] = None
    tags: Optional[List[str]] = None


class EmailSender(ABC):
    """Abstract base class for email sending."""

    @abstractmethod
    def send(self, message: EmailMessage) -> Optional[str]:
        """
        Send an email.

        Args:
            message: Email message to send

        Returns:
            Provider message id on success, None on failure
        """
        pass


class SendGridEmailSender(EmailSender):
    """SendGrid email sender implementation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key or os.getenv("SENDGRID_API_KEY")
        self.from_email = from_email or os.getenv("NOTIFICATION_FROM_EMAIL", DEFAULT_FROM_EMAIL)
        self.from_name = from_name or os.getenv("NOTIFICATION_FROM_NAME", DEFAULT_FROM_NAME)
        self.timeout = timeout

        if not self.api_key:
            logger.warning("SendGrid API key not configured")

    def _payload(self, message: EmailMessage) -> dict:
        to = {"email": message.to_email}
        if message.to_name:
            to["name"] = message.to_name

        payload = {
            "personalizations": [{"to": [to]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": message.subject,
            "content": [{"type": "text/html", "value": message.html_body}],
        }
        if message.text_body:
            payload["content"].insert(0, {"type": "text/plain", "value": message.text_body})
        if message.reply_to:
            payload["reply_to"] = {"email": message.reply_to}
        if message.tags:
            payload["categories"] = message.tags
        return payload

    def send(self, message: EmailMessage) -> Optional[str]:
        if not self.api_key:
            logger.error("Cannot send email: SendGrid API key not configured")
            return None

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    SENDGRID_SEND_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=self._payload(message),
                )
        except httpx.HTTPError as e:
            logger.error("Failed to send email via SendGrid", extra={
                "to_email": message.to_email,
                "error": str(e),
            }, exc_info=True)
            return None

        if response.status_code not in (200, 202):
            logger.error("SendGrid API error", extra={
                "status_code": response.status_code,
                "response": response.text,
                "to_email": message.to_email,
            })
            return None

        message_id = response.headers.get("X-Message-Id") or make_msgid(domain="sendgrid.net")
        logger.info("Email sent successfully", extra={
            "to_email": message.to_email,
            "subject": message.subject,
            "message_id": message_id,
        })
        return message_id


class SMTPEmailSender(EmailSender):
    """SMTP email sender for development."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.host = host or os.getenv("SMTP_HOST", "localhost")
        self.port = port or int(os.getenv("SMTP_PORT", "587"))
        self.username = username or os.getenv("SMTP_USERNAME")
        self.password = password or os.getenv("SMTP_PASSWORD")
        self.use_tls = use_tls
        self.from_email = from_email or os.getenv("NOTIFICATION_FROM_EMAIL", DEFAULT_FROM_EMAIL)
        self.from_name = from_name or os.getenv("NOTIFICATION_FROM_NAME", DEFAULT_FROM_NAME)

    def send(self, message: EmailMessage) -> Optional[str]:
        message_id = make_msgid(domain=self.from_email.split("@")[-1])

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = message.to_email
        msg["Message-ID"] = message_id
        if message.reply_to:
            msg["Reply-To"] = message.reply_to

        if message.text_body:
            msg.attach(MIMEText(message.text_body, "plain"))
        msg.attach(MIMEText(message.html_body, "html"))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [message.to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email via SMTP", extra={
                "to_email": message.to_email,
                "error": str(e),
            }, exc_info=True)
            return None

        logger.info("Email sent via SMTP", extra={
            "to_email": message.to_email,
            "subject": message.subject,
            "message_id": message_id,
        })
        return message_id


class MockEmailSender(EmailSender):
    """Mock email sender for testing."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent_messages: List[EmailMessage] = []

    def send(self, message: EmailMessage) -> Optional[str]:
        if self.fail:
            return None
        self.sent_messages.append(message)
        logger.info("Mock email sent", extra={
            "to_email": message.to_email,
            "subject": message.subject,
        })
        return f"mock-{len(self.sent_messages)}"

    def clear(self) -> None:
        self.sent_messages.clear()


def get_email_sender() -> EmailSender:
    """
    Get configured email sender based on environment.

    Returns:
        Appropriate EmailSender implementation
    """
    provider = os.getenv("NOTIFICATION_EMAIL_PROVIDER", "sendgrid").lower()

    if provider == "smtp":
        return SMTPEmailSender()
    elif provider == "mock":
        return MockEmailSender()
    else:
        return SendGridEmailSender()
