"""
Email Templates

Static builders returning (subject, html) for every transactional email.
Bodies are intentionally plain; branding comes from the site name and URL.
"""

from html import escape
from typing import Optional, Tuple

Template = Tuple[str, str]


def _layout(site_name: str, heading: str, body: str, site_url: str = "") -> str:
    footer = f'<p><a href="{escape(site_url)}">{escape(site_name)}</a></p>' if site_url else ""
    return (
        "<html><body style=\"font-family: Arial, sans-serif;\">"
        f"<h2>{escape(heading)}</h2>"
        f"{body}"
        f"<hr><p>This is an automated message from {escape(site_name)}.</p>{footer}"
        "</body></html>"
    )


def _p(text: str) -> str:
    return f"<p>{escape(text)}</p>"


def welcome(site_name: str, name: str, site_url: str = "") -> Template:
    subject = f"Welcome to {site_name} - Your Account is Ready!"
    body = _p(f"Hello {name},") + _p(f"Your {site_name} account is ready to use.")
    return subject, _layout(site_name, "Welcome!", body, site_url)


def welcome_with_credentials(site_name: str, name: str, email: str, password: str,
                             account_number: str, site_url: str = "") -> Template:
    subject = f"Welcome to {site_name} - Your Account is Ready!"
    body = (
        _p(f"Hello {name},")
        + _p(f"An account has been created for you at {site_name}.")
        + _p(f"Email: {email}")
        + _p(f"Temporary password: {password}")
        + _p(f"Account number: {account_number}")
        + _p("Please change your password after your first login.")
    )
    return subject, _layout(site_name, "Your account details", body, site_url)


def registration_received(site_name: str, name: str, site_url: str = "") -> Template:
    subject = f"Welcome to {site_name} - Application Received"
    body = _p(f"Hello {name},") + _p(
        "We have received your application. Your account will be reviewed and "
        "activated by our team shortly."
    )
    return subject, _layout(site_name, "Application received", body, site_url)


def password_reset(site_name: str, name: str, reset_url: str, site_url: str = "") -> Template:
    subject = f"Reset Your {site_name} Password"
    body = (
        _p(f"Hello {name},")
        + _p("Use the link below to reset your password. It expires in 1 hour.")
        + f'<p><a href="{escape(reset_url)}">Reset password</a></p>'
        + _p("If you did not request this, you can ignore this email.")
    )
    return subject, _layout(site_name, "Password reset", body, site_url)


def password_reset_success(site_name: str, name: str, site_url: str = "") -> Template:
    subject = f"Your {site_name} Password Has Been Changed"
    body = _p(f"Hello {name},") + _p(
        "Your password was changed. If this was not you, contact support immediately."
    )
    return subject, _layout(site_name, "Password changed", body, site_url)


def kyc_submitted(site_name: str, name: str, site_url: str = "") -> Template:
    subject = f"KYC Documents Received - {site_name}"
    body = _p(f"Hello {name},") + _p("We received your identity documents and will review them shortly.")
    return subject, _layout(site_name, "KYC documents received", body, site_url)


def kyc_approved(site_name: str, name: str, site_url: str = "") -> Template:
    subject = f"KYC Approved - Welcome to {site_name}!"
    body = _p(f"Hello {name},") + _p("Your identity has been verified. All features are now available.")
    return subject, _layout(site_name, "KYC approved", body, site_url)


def kyc_rejected(site_name: str, name: str, reason: str, site_url: str = "") -> Template:
    subject = f"KYC Verification Update - Action Required - {site_name}"
    body = (
        _p(f"Hello {name},")
        + _p("We could not verify your identity documents.")
        + _p(f"Reason: {reason}")
        + _p("Please resubmit your documents from your account settings.")
    )
    return subject, _layout(site_name, "KYC update", body, site_url)


def account_approved(site_name: str, name: str, account_number: str, site_url: str = "") -> Template:
    subject = f"Account Approved - Welcome to {site_name}!"
    body = _p(f"Hello {name},") + _p(f"Your account {account_number} has been approved and is now active.")
    return subject, _layout(site_name, "Account approved", body, site_url)


def deposit_pending(site_name: str, name: str, amount: str, reference: str, site_url: str = "") -> Template:
    subject = f"Deposit Request Received - {amount} - {site_name}"
    body = _p(f"Hello {name},") + _p(f"Your deposit of {amount} (ref {reference}) is awaiting confirmation.")
    return subject, _layout(site_name, "Deposit received", body, site_url)


def deposit_approved(site_name: str, name: str, amount: str, reference: str, site_url: str = "") -> Template:
    subject = f"Deposit Approved - {amount} credited to your account"
    body = _p(f"Hello {name},") + _p(f"Your deposit of {amount} (ref {reference}) has been credited.")
    return subject, _layout(site_name, "Deposit approved", body, site_url)


def deposit_rejected(site_name: str, name: str, amount: str, reference: str,
                     reason: Optional[str] = None, site_url: str = "") -> Template:
    subject = f"Deposit Request Update - {site_name}"
    body = _p(f"Hello {name},") + _p(f"Your deposit of {amount} (ref {reference}) was not approved.")
    if reason:
        body += _p(f"Reason: {reason}")
    return subject, _layout(site_name, "Deposit update", body, site_url)


def withdrawal_pending(site_name: str, name: str, amount: str, reference: str, site_url: str = "") -> Template:
    subject = f"Withdrawal Request Received - {amount} - {site_name}"
    body = _p(f"Hello {name},") + _p(f"Your withdrawal of {amount} (ref {reference}) is being processed.")
    return subject, _layout(site_name, "Withdrawal received", body, site_url)


def withdrawal_approved(site_name: str, name: str, amount: str, reference: str, site_url: str = "") -> Template:
    subject = f"Withdrawal Approved - {amount} - {site_name}"
    body = _p(f"Hello {name},") + _p(f"Your withdrawal of {amount} (ref {reference}) has been approved.")
    return subject, _layout(site_name, "Withdrawal approved", body, site_url)


def withdrawal_rejected(site_name: str, name: str, amount: str, reference: str,
                        reason: Optional[str] = None, site_url: str = "") -> Template:
    subject = f"Withdrawal Request Update - {site_name}"
    body = _p(f"Hello {name},") + _p(
        f"Your withdrawal of {amount} (ref {reference}) was not approved and the funds were returned."
    )
    if reason:
        body += _p(f"Reason: {reason}")
    return subject, _layout(site_name, "Withdrawal update", body, site_url)


def credit_alert(site_name: str, name: str, amount: str, description: str,
                 balance: str, reference: str, site_url: str = "") -> Template:
    subject = f"Credit Alert - {amount} credited to your {site_name} account"
    body = (
        _p(f"Hello {name},")
        + _p(f"{amount} was credited to your account: {description}")
        + _p(f"Reference: {reference}")
        + _p(f"Available balance: {balance}")
    )
    return subject, _layout(site_name, "Credit alert", body, site_url)


def debit_alert(site_name: str, name: str, amount: str, description: str,
                balance: str, reference: str, site_url: str = "") -> Template:
    subject = f"Debit Alert - {amount} debited from your {site_name} account"
    body = (
        _p(f"Hello {name},")
        + _p(f"{amount} was debited from your account: {description}")
        + _p(f"Reference: {reference}")
        + _p(f"Available balance: {balance}")
    )
    return subject, _layout(site_name, "Debit alert", body, site_url)


def transfer_otp(site_name: str, name: str, otp: str, amount: str,
                 recipient_name: str, expiry_minutes: int, site_url: str = "") -> Template:
    subject = f"[{site_name}] Transfer Verification OTP - {otp}"
    body = (
        _p(f"Hello {name},")
        + _p(f"Your one-time code for the transfer of {amount} to {recipient_name} is:")
        + f"<h1>{escape(otp)}</h1>"
        + _p(f"The code expires in {expiry_minutes} minutes. Never share it with anyone.")
    )
    return subject, _layout(site_name, "Transfer verification", body, site_url)


def admin_message(site_name: str, name: str, subject: str, message: str, site_url: str = "") -> Template:
    paragraphs = "".join(_p(line) for line in message.splitlines() if line.strip())
    return subject, _layout(site_name, subject, _p(f"Hello {name},") + paragraphs, site_url)
