"""
Tests for email delivery and templates
"""

import pytest
import requests
from decimal import Decimal
from unittest.mock import MagicMock, patch

from online_banking.activity import ActivityLog
from online_banking.config import BanklineConfig
from online_banking.mailer import (
    EmailMessage, LogEmailProvider, Mailer, ResendEmailProvider
)
from online_banking.site_settings import SettingsCategory, SiteSettingsManager
from online_banking.storage import InMemoryStorage


def message(to="jane@example.com"):
    return EmailMessage(to=[to], subject="Hello", html="<p>Hi</p>", from_address="Bank <bank@example.com>")


class TestResendEmailProvider:
    """Test the Resend REST client"""

    def setup_method(self):
        self.provider = ResendEmailProvider("re_test_key")

    @patch("online_banking.mailer.requests.post")
    def test_successful_send(self, mock_post):
        """Test a 200 response returns the provider message id"""
        mock_post.return_value = MagicMock(status_code=200, json=lambda: {"id": "msg_123"})

        result = self.provider.send(message())

        assert result.success
        assert result.message_id == "msg_123"
        _, kwargs = mock_post.call_args
        assert kwargs['json']['to'] == ["jane@example.com"]
        assert kwargs['headers']['Authorization'] == "Bearer re_test_key"

    @patch("online_banking.mailer.requests.post")
    def test_error_status(self, mock_post):
        """Test a non-2xx response is reported as a failure"""
        mock_post.return_value = MagicMock(status_code=422, text="invalid")

        result = self.provider.send(message())

        assert not result.success
        assert "422" in result.error

    @patch("online_banking.mailer.requests.post")
    def test_network_error(self, mock_post):
        """Test request exceptions do not propagate"""
        mock_post.side_effect = requests.ConnectionError("down")

        result = self.provider.send(message())

        assert not result.success
        assert "down" in result.error


class TestMailer:
    """Test the mailer facade"""

    def setup_method(self):
        self.provider = LogEmailProvider()
        self.config = BanklineConfig(email_backend="log", site_name="Bankline", email_batch_size=2)
        self.mailer = Mailer(self.config, provider=self.provider, sleep=lambda seconds: None)

    def test_unconfigured_mailer_skips(self):
        """Test a missing API key disables delivery without raising"""
        mailer = Mailer(BanklineConfig(email_backend="resend", resend_api_key=""))

        result = mailer.send(message())

        assert mailer.provider is None
        assert not result.success
        assert result.error == "Email service not configured"

    def test_provider_exception_is_contained(self):
        """Test a raising provider yields a failed result"""
        provider = MagicMock()
        provider.send.side_effect = RuntimeError("boom")
        mailer = Mailer(self.config, provider=provider)

        result = mailer.send(message())

        assert not result.success
        assert result.error == "boom"

    def test_default_from_address(self):
        """Test the sender is filled from the site identity"""
        self.mailer.send(EmailMessage(to=["a@example.com"], subject="s", html="h"))

        assert self.provider.sent[0].from_address == "Bankline <support@example.com>"

    def test_site_name_from_settings(self):
        """Test site settings override the configured site name"""
        settings = SiteSettingsManager(InMemoryStorage(), ActivityLog(InMemoryStorage()))
        settings.set("app_siteName", "Acme Bank", SettingsCategory.GENERAL, "admin-1")
        mailer = Mailer(self.config, provider=self.provider, settings=settings)

        mailer.send_welcome("jane@example.com", "Jane")

        assert self.provider.sent[0].subject == "Welcome to Acme Bank - Your Account is Ready!"

    def test_send_batch(self):
        """Test batches report sent and failed counts"""
        result = self.mailer.send_batch([message(f"u{i}@example.com") for i in range(5)])

        assert result['sent'] == 5
        assert result['failed'] == 0
        assert len(self.provider.sent) == 5

    def test_templates(self):
        """Test transactional templates render amounts and codes"""
        self.mailer.send_deposit_status("jane@example.com", "Jane", "approved", Decimal("250"), "DEP1")
        self.mailer.send_transfer_otp("jane@example.com", "Jane", "123456", Decimal("50"), "Bob", 10)
        self.mailer.send_kyc_rejected("jane@example.com", "Jane", "Blurry photo")

        subjects = [m.subject for m in self.provider.sent]
        assert subjects[0] == "Deposit Approved - $250.00 credited to your account"
        assert subjects[1] == "[Bankline] Transfer Verification OTP - 123456"
        assert "Blurry photo" in self.provider.sent[2].html
