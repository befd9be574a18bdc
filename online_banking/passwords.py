"""
Password and PIN hashing

Salted scrypt hashing shared by user, admin and card credentials.
"""

import hashlib
import hmac
import re
import secrets
from typing import Optional, Tuple


class InvalidPinError(Exception):
    """Raised when a supplied transaction PIN does not match"""

    def __init__(self, message: str = "Invalid PIN"):
        super().__init__(message)


def hash_secret(secret: str, salt: Optional[str] = None) -> Tuple[str, str]:
    """Hash a password or PIN with scrypt; returns (hash, salt)"""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.scrypt(
        secret.encode('utf-8'),
        salt=salt.encode('utf-8'),
        n=16384, r=8, p=1
    ).hex()
    return digest, salt


def verify_secret(secret: str, hashed: Optional[str], salt: Optional[str]) -> bool:
    """Constant-time comparison against a stored scrypt hash"""
    if not hashed or not salt or secret is None:
        return False
    candidate, _ = hash_secret(secret, salt)
    return hmac.compare_digest(candidate, hashed)


def validate_password_strength(password: str, min_length: int = 8) -> None:
    """At least min_length characters with a lowercase, an uppercase letter and a digit"""
    if not password or len(password) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters")
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one number")


def validate_pin(pin: str) -> None:
    if not pin or not re.fullmatch(r"\d{4}", str(pin)):
        raise ValueError("PIN must be exactly 4 digits")
