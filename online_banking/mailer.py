"""
Email Delivery Module

Sends transactional email through Resend's REST API (or a logging backend in
development). Delivery problems are logged and reported in the result; they
never abort the business operation that triggered the email.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Any

import requests

from . import email_templates as templates
from .config import BanklineConfig, get_config
from .logging_config import log_action
from .money import format_amount

logger = logging.getLogger("bankline.email")


@dataclass
class EmailMessage:
    """An outbound email"""
    to: List[str]
    subject: str
    html: str
    from_address: Optional[str] = None
    reply_to: Optional[str] = None
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    tags: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class EmailResult:
    """Outcome of a send attempt"""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailProvider(ABC):
    """Abstract base class for email providers"""

    @abstractmethod
    def send(self, message: EmailMessage) -> EmailResult:
        """Deliver a message; must not raise"""
        pass


class LogEmailProvider(EmailProvider):
    """Development provider that logs messages instead of sending them"""

    def __init__(self):
        self.sent: List[EmailMessage] = []

    def send(self, message: EmailMessage) -> EmailResult:
        self.sent.append(message)
        logger.info(f"[EMAIL] to={','.join(message.to)} subject={message.subject}")
        return EmailResult(success=True, message_id=f"log-{len(self.sent)}")


class ResendEmailProvider(EmailProvider):
    """Resend REST API provider"""

    def __init__(self, api_key: str, api_url: str = "https://api.resend.com/emails", timeout: float = 10.0):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout

    def send(self, message: EmailMessage) -> EmailResult:
        payload: Dict[str, Any] = {
            "from": message.from_address,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.reply_to:
            payload["reply_to"] = message.reply_to
        if message.cc:
            payload["cc"] = message.cc
        if message.bcc:
            payload["bcc"] = message.bcc
        if message.tags:
            payload["tags"] = message.tags

        try:
            response = requests.post(
                self.api_url,
                json=payload,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        except requests.RequestException as e:
            logger.error(f"Resend request failed: {e}")
            return EmailResult(success=False, error=str(e))

        if response.status_code in (200, 201):
            return EmailResult(success=True, message_id=response.json().get("id"))

        logger.warning(f"Resend returned {response.status_code}: {response.text}")
        return EmailResult(success=False, error=f"Email provider error ({response.status_code})")


class Mailer:
    """
    High level email facade.

    Resolves the site name and sender from site settings (falling back to
    configuration), renders templates and delivers them through a provider.
    """

    def __init__(
        self,
        config: Optional[BanklineConfig] = None,
        provider: Optional[EmailProvider] = None,
        settings=None,
        sleep=time.sleep
    ):
        self.config = config or get_config()
        self.settings = settings  # SiteSettingsManager, optional
        self._sleep = sleep
        if provider is not None:
            self.provider = provider
        elif self.config.email_backend == "log":
            self.provider = LogEmailProvider()
        elif self.config.resend_api_key:
            self.provider = ResendEmailProvider(
                self.config.resend_api_key, self.config.resend_api_url, self.config.email_timeout
            )
        else:
            self.provider = None

    # Site identity

    def _setting(self, key: str) -> Any:
        if self.settings is None:
            return None
        return self.settings.get(key) or self.settings.get(f"app_{key}")

    @property
    def site_name(self) -> str:
        return self._setting("siteName") or self.config.site_name

    @property
    def site_email(self) -> str:
        return self._setting("siteEmail") or self.config.email_from or "support@example.com"

    @property
    def site_url(self) -> str:
        return self.config.site_url

    @property
    def from_address(self) -> str:
        return f"{self.site_name} <{self.site_email}>"

    # Delivery

    def send(self, message: EmailMessage) -> EmailResult:
        """Send one message; never raises"""
        if self.provider is None:
            logger.warning("Email service not configured; skipping email",
                           extra={"extra": {"subject": message.subject}})
            return EmailResult(success=False, error="Email service not configured")

        if not message.from_address:
            message.from_address = self.from_address

        try:
            result = self.provider.send(message)
        except Exception as e:
            logger.error(f"Email provider raised: {e}")
            return EmailResult(success=False, error=str(e))

        log_action(
            logger, "info" if result.success else "warning",
            f"Email {'sent' if result.success else 'failed'}: {message.subject}",
            action="send_email", resource="email",
            extra={"to": message.to, "message_id": result.message_id, "error": result.error}
        )
        return result

    def send_batch(self, messages: List[EmailMessage]) -> Dict[str, Any]:
        """Send in batches with a short pause between batches"""
        batch_size = max(1, self.config.email_batch_size)
        results: List[EmailResult] = []
        for start in range(0, len(messages), batch_size):
            if start:
                self._sleep(0.1)
            for message in messages[start:start + batch_size]:
                results.append(self.send(message))
        sent = sum(1 for r in results if r.success)
        return {"sent": sent, "failed": len(results) - sent, "results": results}

    @staticmethod
    def build_message(to: str, template: templates.Template) -> EmailMessage:
        subject, html = template
        return EmailMessage(to=[to], subject=subject, html=html)

    def send_template(self, to: str, template: templates.Template) -> EmailResult:
        return self.send(self.build_message(to, template))

    # Convenience senders

    def send_welcome(self, to: str, name: str) -> EmailResult:
        return self.send_template(to, templates.welcome(self.site_name, name, self.site_url))

    def send_welcome_with_credentials(self, to: str, name: str, password: str, account_number: str) -> EmailResult:
        return self.send_template(to, templates.welcome_with_credentials(
            self.site_name, name, to, password, account_number, self.site_url))

    def send_registration_received(self, to: str, name: str) -> EmailResult:
        return self.send_template(to, templates.registration_received(self.site_name, name, self.site_url))

    def send_password_reset(self, to: str, name: str, token: str) -> EmailResult:
        reset_url = f"{self.site_url.rstrip('/')}/reset-password?token={token}"
        return self.send_template(to, templates.password_reset(self.site_name, name, reset_url, self.site_url))

    def send_password_reset_success(self, to: str, name: str) -> EmailResult:
        return self.send_template(to, templates.password_reset_success(self.site_name, name, self.site_url))

    def send_kyc_submitted(self, to: str, name: str) -> EmailResult:
        return self.send_template(to, templates.kyc_submitted(self.site_name, name, self.site_url))

    def send_kyc_approved(self, to: str, name: str) -> EmailResult:
        return self.send_template(to, templates.kyc_approved(self.site_name, name, self.site_url))

    def send_kyc_rejected(self, to: str, name: str, reason: str) -> EmailResult:
        return self.send_template(to, templates.kyc_rejected(self.site_name, name, reason, self.site_url))

    def send_account_approved(self, to: str, name: str, account_number: str) -> EmailResult:
        return self.send_template(to, templates.account_approved(self.site_name, name, account_number, self.site_url))

    def send_deposit_status(self, to: str, name: str, status: str, amount: Decimal,
                            reference: str, reason: Optional[str] = None) -> EmailResult:
        """status is pending, approved or rejected"""
        shown = format_amount(amount)
        if status == "approved":
            template = templates.deposit_approved(self.site_name, name, shown, reference, self.site_url)
        elif status == "rejected":
            template = templates.deposit_rejected(self.site_name, name, shown, reference, reason, self.site_url)
        else:
            template = templates.deposit_pending(self.site_name, name, shown, reference, self.site_url)
        return self.send_template(to, template)

    def send_withdrawal_status(self, to: str, name: str, status: str, amount: Decimal,
                               reference: str, reason: Optional[str] = None) -> EmailResult:
        shown = format_amount(amount)
        if status == "approved":
            template = templates.withdrawal_approved(self.site_name, name, shown, reference, self.site_url)
        elif status == "rejected":
            template = templates.withdrawal_rejected(self.site_name, name, shown, reference, reason, self.site_url)
        else:
            template = templates.withdrawal_pending(self.site_name, name, shown, reference, self.site_url)
        return self.send_template(to, template)

    def send_credit_alert(self, to: str, name: str, amount: Decimal, description: str,
                          balance: Decimal, reference: str, currency: str = "USD") -> EmailResult:
        return self.send_template(to, templates.credit_alert(
            self.site_name, name, format_amount(amount, currency), description,
            format_amount(balance, currency), reference, self.site_url))

    def send_debit_alert(self, to: str, name: str, amount: Decimal, description: str,
                         balance: Decimal, reference: str, currency: str = "USD") -> EmailResult:
        return self.send_template(to, templates.debit_alert(
            self.site_name, name, format_amount(amount, currency), description,
            format_amount(balance, currency), reference, self.site_url))

    def send_transfer_otp(self, to: str, name: str, otp: str, amount: Decimal,
                          recipient_name: str, expiry_minutes: int) -> EmailResult:
        return self.send_template(to, templates.transfer_otp(
            self.site_name, name, otp, format_amount(amount), recipient_name, expiry_minutes, self.site_url))

    def admin_message(self, to: str, name: str, subject: str, message: str) -> EmailMessage:
        return self.build_message(to, templates.admin_message(self.site_name, name, subject, message, self.site_url))

    def send_admin_message(self, to: str, name: str, subject: str, message: str) -> EmailResult:
        return self.send(self.admin_message(to, name, subject, message))
