"""
Money Handling Module

Currency codes with their precision and Decimal helpers for every monetary
calculation on the platform. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from enum import Enum
from typing import Any, Union

# High precision for intermediate financial calculations
getcontext().prec = 28


class Currency(Enum):
    """Supported currencies with precision and display symbol"""
    USD = ("USD", 2, "$")
    EUR = ("EUR", 2, "€")
    GBP = ("GBP", 2, "£")
    CAD = ("CAD", 2, "C$")
    AUD = ("AUD", 2, "A$")
    BTC = ("BTC", 8, "₿")

    def __init__(self, code: str, precision: int, symbol: str):
        self.code = code
        self.precision = precision
        self.symbol = symbol

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Look up a currency by its ISO code (case insensitive)"""
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unsupported currency: {code}")


ZERO = Decimal("0")
CRYPTO_PRECISION = 8
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Convert user input to Decimal, rejecting floats' binary noise and garbage"""
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError("Invalid amount")
    if not result.is_finite():
        raise ValueError("Invalid amount")
    return result


def quantize(amount: Union[Decimal, int, str], places: int = 2) -> Decimal:
    """Round to the given number of decimal places using ROUND_HALF_UP"""
    return to_decimal(amount).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def quantize_currency(amount: Union[Decimal, int, str], currency: Union[Currency, str] = Currency.USD) -> Decimal:
    """Round to the precision of a currency"""
    if isinstance(currency, str):
        currency = Currency.from_code(currency)
    return quantize(amount, currency.precision)


def quantize_crypto(amount: Union[Decimal, int, str]) -> Decimal:
    return quantize(amount, CRYPTO_PRECISION)


def percentage_of(amount: Decimal, percent: Union[Decimal, str, int]) -> Decimal:
    """amount × percent / 100, rounded to cents"""
    return quantize(to_decimal(amount) * to_decimal(percent) / HUNDRED)


def require_positive(amount: Any) -> Decimal:
    """Parse an amount that must be strictly positive"""
    value = to_decimal(amount)
    if value <= ZERO:
        raise ValueError("Amount must be greater than zero")
    return value


def require_positive_amount(amount: Any, places: int = 2) -> Decimal:
    """Round an amount to `places` and require the rounded value to be positive"""
    value = quantize(amount, places)
    if value <= ZERO:
        raise ValueError("Amount must be greater than zero")
    return value


def format_amount(amount: Union[Decimal, int, str], currency: Union[Currency, str] = Currency.USD) -> str:
    """Format for display, e.g. $1,234.56 or 0.00150000 BTC"""
    if isinstance(currency, str):
        try:
            currency = Currency.from_code(currency)
        except ValueError:
            return f"{to_decimal(amount):,.2f} {currency}"
    value = quantize_currency(amount, currency)
    if currency is Currency.BTC:
        return f"{value:.{currency.precision}f} BTC"
    return f"{currency.symbol}{value:,.{currency.precision}f}"


def format_number(amount: Union[Decimal, int, str]) -> str:
    """Thousands separators without forced decimals: 1,000 or 1,000.5"""
    return f"{to_decimal(amount).normalize():,f}"
