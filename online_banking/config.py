"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class BanklineConfig(BaseSettings):
    """Bankline online banking platform configuration"""

    # Database configuration
    database_url: str = "sqlite:///bankline.db"  # or memory://

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    cors_origins: str = "*"  # Comma separated

    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_refresh_secret: str = "change-me-refresh-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_expiry_days: int = 7
    jwt_refresh_expiry_days: int = 30
    password_min_length: int = 8
    admin_created_password_min_length: int = 6
    password_reset_expiry_minutes: int = 60
    transfer_otp_expiry_minutes: int = 10

    # Bootstrap super admin (created on startup when both are set)
    super_admin_email: str = ""
    super_admin_password: str = ""

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Email configuration (Resend)
    email_backend: str = "resend"  # resend or log
    resend_api_key: str = ""  # Empty = email delivery disabled
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "support@example.com"
    email_from_name: str = "Bankline"
    email_batch_size: int = 10
    email_timeout: float = 10.0
    site_name: str = "Bankline"
    site_url: str = "http://localhost:3000"

    # Price feed configuration (CoinGecko)
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    coingecko_timeout: float = 8.0
    coingecko_retries: int = 3

    # Business rules configuration
    default_currency: str = "USD"
    loan_interest_rate: str = "5"  # Annual percent
    loan_max_duration_months: int = 60
    local_transfer_fee_percent: str = "1"
    international_transfer_fee_percent: str = "2"
    crypto_trade_fee_percent: str = "1"
    crypto_swap_fee_percent: str = "0.5"
    min_bitcoin_transfer: str = "0.00001"
    daily_transfer_limit: str = "10000"
    daily_withdrawal_limit: str = "5000"

    class Config:
        env_prefix = "BANKLINE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BanklineConfig()


def get_config() -> BanklineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BanklineConfig:
    """Reload configuration from environment"""
    global config
    config = BanklineConfig()
    return config
