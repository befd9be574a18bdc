"""
Identifier and Code Generation

References, account numbers, referral codes, card credentials, OTPs and
masking helpers. Everything random comes from the secrets module.
"""

import re
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Tuple

from .money import quantize, to_decimal

_BASE36 = string.digits + string.ascii_uppercase


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def new_id() -> str:
    return str(uuid.uuid4())


def generate_reference(prefix: str = "TXN") -> str:
    """prefix + base36 millisecond timestamp + first uuid segment, uppercased"""
    timestamp = _base36(int(time.time() * 1000))
    return f"{prefix}{timestamp}{uuid.uuid4().hex[:8]}".upper()


def random_digits(length: int) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_account_number() -> str:
    """10-digit account number starting with 10"""
    return "10" + random_digits(8)


def generate_referral_code(name: str) -> str:
    """First three letters of the name plus four digits, e.g. JOH4821"""
    letters = re.sub(r"[^A-Za-z]", "", name or "")[:3].upper() or "USR"
    return f"{letters}{random_digits(4)}"


def generate_otp() -> str:
    """Six-digit one-time code in 100000..999999"""
    return str(100000 + secrets.randbelow(900000))


def generate_card_number(card_type: str) -> str:
    """16 digits; visa cards start with 4, mastercard with 5"""
    prefix = "4" if card_type == "visa" else "5"
    return prefix + random_digits(15)


def generate_cvv() -> str:
    return str(100 + secrets.randbelow(900))


def generate_card_expiry(years: int = 3) -> Tuple[str, str]:
    """(MM, YY) expiry the given number of years from now"""
    now = datetime.now(timezone.utc)
    return f"{now.month:02d}", f"{(now.year + years) % 100:02d}"


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def mask_card_number(card_number: str) -> str:
    return f"****-****-****-{card_number[-4:]}"


def mask_email(email: str) -> str:
    """Keep the first two characters of the local part: jo***@example.com"""
    return re.sub(r"(.{2})(.*)(@.*)", r"\1***\3", email)


def mask_address(address: str) -> str:
    """Shorten a wallet address to first8...last6"""
    if len(address) <= 14:
        return address
    return f"{address[:8]}...{address[-6:]}"


def loan_monthly_payment(principal: Decimal, annual_rate: Decimal, months: int) -> Decimal:
    """Standard amortized payment P·r·(1+r)^n / ((1+r)^n − 1) with r = annual_rate/100/12"""
    principal = to_decimal(principal)
    if months <= 0:
        raise ValueError("Duration must be at least one month")
    rate = to_decimal(annual_rate) / Decimal("100") / Decimal("12")
    if rate == 0:
        return quantize(principal / months)
    factor = (1 + rate) ** months
    return quantize(principal * rate * factor / (factor - 1))


def investment_return(amount: Decimal, return_percentage: Decimal) -> Decimal:
    """Principal plus the plan's return percentage"""
    return quantize(to_decimal(amount) * (1 + to_decimal(return_percentage) / Decimal("100")))
