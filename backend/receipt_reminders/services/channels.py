"""Delivery channels for reminder notifications.

Each channel is a small capability object built from settings at invocation
time. The engine only sees ``send`` and the exceptions below.
"""
import logging
import re
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Protocol

import requests

from receipt_reminders.config import Settings
from receipt_reminders.services.preferences import EMAIL, SMS

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"


class ChannelError(Exception):
    """A provider rejected or failed to deliver a message."""


class ChannelConfigurationError(ChannelError):
    """A channel cannot send because credentials or a recipient are missing."""


@dataclass(frozen=True)
class DeliveryResult:
    id: str


class EmailChannel(Protocol):
    def send(self, to: str, subject: str, html: str) -> DeliveryResult: ...


class SmsChannel(Protocol):
    def send(self, to: str, body: str) -> DeliveryResult: ...


def html_to_text(html: str) -> str:
    """Plain text fallback for an HTML body."""
    plain_text = html.replace("<br>", "\n").replace("</p>", "\n\n").replace("</li>", "\n")
    return re.sub(r"<[^>]+>", "", plain_text)


class SmtpEmailChannel:
    """Send email over SMTP with STARTTLS."""

    def __init__(
        self,
        host: str | None,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_email: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email

    def send(self, to: str, subject: str, html: str) -> DeliveryResult:
        if not self.host:
            raise ChannelConfigurationError("SMTP is not configured (SMTP_HOST missing)")
        if not to:
            raise ChannelConfigurationError("No email address configured for this user")

        message_id = make_msgid(domain="receipt-reminders")
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        msg["Message-ID"] = message_id
        msg.attach(MIMEText(html_to_text(html), "plain"))
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise ChannelError(f"Email failed: {e}") from e

        logger.debug(f"Email {message_id} accepted for {to}")
        return DeliveryResult(id=message_id)


class TwilioSmsChannel:
    """Send SMS through the Twilio Messages REST API."""

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        timeout: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    def send(self, to: str, body: str) -> DeliveryResult:
        if not self.account_sid or not self.auth_token or not self.from_number:
            raise ChannelConfigurationError("Twilio configuration is incomplete")
        if not to:
            raise ChannelConfigurationError("No phone number configured for this user")

        url = TWILIO_MESSAGES_URL.format(account_sid=self.account_sid)
        try:
            response = requests.post(
                url,
                data={"From": self.from_number, "To": to, "Body": body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ChannelError(f"SMS failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not 200 <= response.status_code < 300:
            detail = payload.get("message") or response.reason or f"HTTP {response.status_code}"
            raise ChannelError(f"SMS failed: {detail}")

        return DeliveryResult(id=str(payload.get("sid", "")))


@dataclass
class ChannelRegistry:
    """The delivery capabilities available to one run."""

    email: EmailChannel | None = None
    sms: SmsChannel | None = None

    def get(self, channel: str):
        if channel == EMAIL:
            return self.email
        if channel == SMS:
            return self.sms
        return None


def build_channels(settings: Settings) -> ChannelRegistry:
    """Build delivery channels from explicit settings."""
    return ChannelRegistry(
        email=SmtpEmailChannel(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.smtp_from_email,
        ),
        sms=TwilioSmsChannel(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            timeout=settings.sms_timeout_seconds,
        ),
    )
