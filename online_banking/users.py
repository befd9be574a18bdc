"""
User Management Module

Customer profiles, balances, PIN and preferences, plus the back-office
operations on customers (approval, manual credits and debits, blocking,
authorization codes and limits).
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .config import BanklineConfig, get_config
from .identifiers import (
    new_id, generate_account_number, generate_referral_code, generate_otp, generate_reference,
)
from .logging_config import get_logger, log_action
from .mailer import Mailer
from .money import ZERO, format_amount, quantize, require_positive_amount
from .notifications import NotificationManager, NotificationType
from .passwords import hash_secret, validate_pin
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType, TransactionStatus


class UserStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    BLOCKED = "blocked"
    DORMANT = "dormant"
    PENDING = "pending"


class KycStatus(Enum):
    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AccountType(Enum):
    SAVINGS = "savings"
    CURRENT = "current"
    CHECKING = "checking"
    DOMICILLARY = "domicillary"
    OFFSHORE = "offshore"
    OFFSHORE_INVESTMENT = "offshore_investment"
    ESCROW = "escrow"
    FIXED_DEPOSIT = "fixed_deposit"


class BalanceType(Enum):
    """Which balance an admin credit or debit targets"""
    BALANCE = "balance"
    BONUS = "bonus"
    TRADING = "trading"


BALANCE_FIELDS = {
    BalanceType.BALANCE: "balance",
    BalanceType.BONUS: "bonus",
    BalanceType.TRADING: "trading_balance",
}


@dataclass
class User(StorageRecord):
    """Customer account holder"""
    email: str
    name: str
    password_hash: str
    password_salt: str
    account_number: str
    referral_code: str
    phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    zip_code: Optional[str] = None
    date_of_birth: Optional[str] = None  # ISO date
    gender: Optional[str] = None
    occupation: Optional[str] = None
    profile_photo: Optional[str] = None
    balance: Decimal = ZERO
    bitcoin_balance: Decimal = ZERO
    bonus: Decimal = ZERO
    trading_balance: Decimal = ZERO
    status: UserStatus = UserStatus.PENDING
    email_verified: bool = False
    email_verified_at: Optional[datetime] = None
    kyc_status: KycStatus = KycStatus.NOT_SUBMITTED
    two_factor_enabled: bool = False
    two_factor_secret: Optional[str] = None
    pin: Optional[str] = None
    email_notifications: bool = True
    sms_notifications: bool = False
    theme: str = "light"
    currency: str = "USD"
    account_type: AccountType = AccountType.SAVINGS
    referred_by: Optional[str] = None
    daily_transfer_limit: Decimal = Decimal("10000")
    daily_withdrawal_limit: Decimal = Decimal("5000")
    tax_code: Optional[str] = None
    imf_code: Optional[str] = None
    cot_code: Optional[str] = None
    pending_otp: Optional[str] = None
    pending_otp_expiry: Optional[datetime] = None
    pending_otp_sent_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    login_ip: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


SENSITIVE_USER_FIELDS = (
    "password_hash", "password_salt", "two_factor_secret", "pin",
    "tax_code", "imf_code", "cot_code", "pending_otp",
)

PROFILE_FIELDS = (
    "name", "phone", "country", "state", "city", "address", "zip_code",
    "date_of_birth", "gender", "occupation",
)

ADMIN_EDITABLE_FIELDS = PROFILE_FIELDS + (
    "email", "status", "kyc_status", "account_type", "currency", "email_verified",
    "balance", "bitcoin_balance", "bonus", "trading_balance",
    "daily_transfer_limit", "daily_withdrawal_limit",
    "tax_code", "imf_code", "cot_code",
)


def sanitize_user(user: User) -> Dict[str, Any]:
    """Public representation without credentials or authorization codes"""
    data = user.to_dict()
    for key in SENSITIVE_USER_FIELDS:
        data.pop(key, None)
    data['has_pin'] = bool(user.pin)
    return data


class UserManager:
    """Manages customer accounts"""

    table_name = "users"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        notifications: NotificationManager,
        transactions: TransactionLedger,
        mailer: Mailer,
        config: Optional[BanklineConfig] = None
    ):
        self.storage = storage
        self.activity = activity
        self.notifications = notifications
        self.transactions = transactions
        self.mailer = mailer
        self.config = config or get_config()
        self.logger = get_logger("bankline.users")

    # Persistence helpers

    def save_user(self, user: User) -> None:
        user.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, user.id, user.to_dict())

    def get_user(self, user_id: str) -> Optional[User]:
        data = self.storage.load(self.table_name, user_id)
        if data:
            return User.from_dict(data)
        return None

    def require_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if not user:
            raise ValueError("User not found")
        return user

    def get_by_email(self, email: str) -> Optional[User]:
        data = self.storage.find_one(self.table_name, {'email': email.strip().lower()})
        return User.from_dict(data) if data else None

    def get_by_account_number(self, account_number: str) -> Optional[User]:
        data = self.storage.find_one(self.table_name, {'account_number': account_number.strip()})
        return User.from_dict(data) if data else None

    def get_by_referral_code(self, referral_code: str) -> Optional[User]:
        data = self.storage.find_one(self.table_name, {'referral_code': referral_code.strip().upper()})
        return User.from_dict(data) if data else None

    def list_all(self) -> List[User]:
        return [User.from_dict(d) for d in self.storage.load_all(self.table_name)]

    def get_all_ids(self, status: Optional[UserStatus] = None) -> List[str]:
        filters = {'status': status} if status else {}
        return [d['id'] for d in self.storage.find(self.table_name, filters)]

    def _unique_account_number(self) -> str:
        while True:
            number = generate_account_number()
            if not self.storage.find_one(self.table_name, {'account_number': number}):
                return number

    def _unique_referral_code(self, name: str) -> str:
        while True:
            code = generate_referral_code(name)
            if not self.storage.find_one(self.table_name, {'referral_code': code}):
                return code

    # Creation

    def create_user(
        self,
        email: str,
        password: str,
        name: str,
        pin: Optional[str] = None,
        status: UserStatus = UserStatus.PENDING,
        referral_code: Optional[str] = None,
        account_type: AccountType = AccountType.SAVINGS,
        currency: str = "USD",
        **profile
    ) -> User:
        """
        Create a customer record.

        Password strength is checked by the caller (registration and admin
        creation use different rules). Email must be unique.
        """
        email = email.strip().lower()
        if self.get_by_email(email):
            raise ValueError("Email already registered")
        if pin is not None:
            validate_pin(pin)

        referred_by = None
        if referral_code:
            referrer = self.get_by_referral_code(referral_code)
            if referrer:
                referred_by = referrer.id

        password_hash, password_salt = hash_secret(password)
        now = datetime.now(timezone.utc)
        user = User(
            id=new_id(),
            created_at=now,
            updated_at=now,
            email=email,
            name=name.strip(),
            password_hash=password_hash,
            password_salt=password_salt,
            account_number=self._unique_account_number(),
            referral_code=self._unique_referral_code(name),
            pin=pin,
            status=status,
            account_type=account_type,
            currency=currency,
            referred_by=referred_by,
            imf_code=generate_otp(),
            cot_code=generate_otp(),
            daily_transfer_limit=Decimal(self.config.daily_transfer_limit),
            daily_withdrawal_limit=Decimal(self.config.daily_withdrawal_limit),
            **{k: v for k, v in profile.items() if k in PROFILE_FIELDS and v is not None}
        )
        self.storage.save(self.table_name, user.id, user.to_dict())
        return user

    def create_user_by_admin(self, data: Dict[str, Any], admin_id: str) -> User:
        """Create an active customer and email the credentials"""
        password = data.get('password') or ""
        min_length = self.config.admin_created_password_min_length
        if len(password) < min_length:
            raise ValueError(f"Password must be at least {min_length} characters")

        account_type = data.get('account_type') or AccountType.SAVINGS
        if isinstance(account_type, str):
            account_type = AccountType(account_type)

        user = self.create_user(
            email=data['email'],
            password=password,
            name=data['name'],
            pin=data.get('pin'),
            status=UserStatus.ACTIVE,
            account_type=account_type,
            currency=data.get('currency') or "USD",
            **{k: data.get(k) for k in PROFILE_FIELDS if k != 'name'}
        )
        user.email_verified = True
        user.email_verified_at = user.created_at
        self.save_user(user)

        self.activity.log(admin_id, ActorType.ADMIN, "create_user", "user", user.id,
                          details={"email": user.email})
        self.mailer.send_welcome_with_credentials(user.email, user.name, password, user.account_number)
        return user

    # Profile

    def update_profile(self, user_id: str, data: Dict[str, Any]) -> User:
        user = self.require_user(user_id)
        for key in PROFILE_FIELDS:
            value = data.get(key)
            if value:
                setattr(user, key, value)
        self.save_user(user)
        self.activity.log(user.id, ActorType.USER, "update_profile", "user", user.id)
        return user

    def update_profile_photo(self, user_id: str, photo_url: str) -> User:
        user = self.require_user(user_id)
        user.profile_photo = photo_url
        self.save_user(user)
        return user

    def change_pin(self, user_id: str, current_pin: Optional[str], new_pin: str) -> None:
        user = self.require_user(user_id)
        if user.pin:
            if not current_pin:
                raise ValueError("Current PIN is required")
            if current_pin != user.pin:
                raise ValueError("Current PIN is incorrect")
        validate_pin(new_pin)
        user.pin = new_pin
        self.save_user(user)
        self.activity.log(user.id, ActorType.USER, "change_pin", "user", user.id)

    def verify_pin(self, user_id: str, pin: Optional[str]) -> bool:
        user = self.get_user(user_id)
        if not user or not user.pin or pin is None:
            return False
        return str(pin) == user.pin

    def update_settings(self, user_id: str, email_notifications: Optional[bool] = None,
                        sms_notifications: Optional[bool] = None, theme: Optional[str] = None) -> User:
        user = self.require_user(user_id)
        if email_notifications is not None:
            user.email_notifications = email_notifications
        if sms_notifications is not None:
            user.sms_notifications = sms_notifications
        if theme:
            if theme not in ("light", "dark"):
                raise ValueError("Theme must be light or dark")
            user.theme = theme
        self.save_user(user)
        return user

    def get_dashboard_data(self, user_id: str) -> Dict[str, Any]:
        user = self.require_user(user_id)
        return {
            "user": sanitize_user(user),
            "recent_transactions": [t.to_dict() for t in self.transactions.get_recent(user.id, 10)],
            "stats": {
                "total_deposits": str(self.transactions.sum_completed(user.id, TransactionType.DEPOSIT)),
                "total_withdrawals": str(self.transactions.sum_completed(user.id, TransactionType.WITHDRAWAL)),
                "total_transfers": str(self.transactions.sum_completed(user.id, TransactionType.TRANSFER_OUT)),
            },
            "unread_notifications": self.notifications.get_unread_count(user.id),
        }

    # Admin operations

    def get_all(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[UserStatus] = None,
        kyc_status: Optional[KycStatus] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if status:
            filters['status'] = status
        if kyc_status:
            filters['kyc_status'] = kyc_status
        users = [User.from_dict(d) for d in self.storage.find(self.table_name, filters)]

        if search:
            needle = search.strip().lower()
            users = [
                u for u in users
                if needle in u.name.lower() or needle in u.email or needle in u.account_number
            ]

        sort_key = sort_by if sort_by in User.__dataclass_fields__ else "created_at"

        def sort_value(user: User):
            value = getattr(user, sort_key)
            if isinstance(value, Enum):
                value = value.value
            return (value is not None, value if value is not None else "")

        users.sort(key=sort_value, reverse=(sort_order == "desc"))
        result = paginate(users, page, limit)
        result['items'] = [sanitize_user(u) for u in result['items']]
        return result

    def admin_update_user(self, user_id: str, data: Dict[str, Any], admin_id: str) -> User:
        user = self.require_user(user_id)
        changed = {}
        for key, value in data.items():
            if key not in ADMIN_EDITABLE_FIELDS or value is None:
                continue
            if key == 'status':
                value = UserStatus(value)
            elif key == 'kyc_status':
                value = KycStatus(value)
            elif key == 'account_type':
                value = AccountType(value)
            elif key == 'email':
                value = value.strip().lower()
                other = self.get_by_email(value)
                if other and other.id != user.id:
                    raise ValueError("Email already registered")
            elif key in ('balance', 'bitcoin_balance', 'bonus', 'trading_balance',
                         'daily_transfer_limit', 'daily_withdrawal_limit'):
                value = Decimal(str(value))
            setattr(user, key, value)
            changed[key] = value
        self.save_user(user)
        self.activity.log(admin_id, ActorType.ADMIN, "update_user", "user", user.id,
                          details={k: v for k, v in changed.items()
                                   if k not in ('tax_code', 'imf_code', 'cot_code')})
        return user

    def approve_account(self, user_id: str, admin_id: str) -> User:
        user = self.require_user(user_id)
        if user.status != UserStatus.PENDING:
            raise ValueError("Account is not pending approval")
        user.status = UserStatus.ACTIVE
        self.save_user(user)

        self.notifications.create(
            user.id, "Account Approved",
            "Your account has been approved. Welcome aboard!",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "approve_user", "user", user.id)
        self.mailer.send_account_approved(user.email, user.name, user.account_number)
        return user

    def topup_balance(self, user_id: str, amount: Any, balance_type: BalanceType,
                      description: Optional[str], admin_id: str) -> User:
        """Credit one of the user's balances"""
        amount = require_positive_amount(amount)
        field_name = BALANCE_FIELDS[balance_type]

        with self.storage.atomic():
            user = self.require_user(user_id)
            before = getattr(user, field_name)
            setattr(user, field_name, before + amount)
            self.save_user(user)

            transaction = self.transactions.record(
                user.id,
                TransactionType.BONUS if balance_type == BalanceType.BONUS else TransactionType.DEPOSIT,
                amount, before, getattr(user, field_name),
                status=TransactionStatus.COMPLETED,
                description=description or f"Admin topup ({balance_type.value})",
                reference=generate_reference("TOP"),
                metadata={"admin_id": admin_id, "type": balance_type.value},
            )

        self.notifications.create(
            user.id, "Account Credited",
            f"Your {balance_type.value} has been credited with {format_amount(amount)}",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "topup_user", "user", user.id,
                          details={"amount": amount, "type": balance_type.value})
        log_action(self.logger, "info", f"Admin credit of {amount}", user_id=admin_id,
                   action="topup_user", resource=user.id)
        self.mailer.send_credit_alert(user.email, user.name, amount, transaction.description,
                                      getattr(user, field_name), transaction.reference)
        return user

    def deduct_balance(self, user_id: str, amount: Any, balance_type: BalanceType,
                       description: Optional[str], admin_id: str) -> User:
        """Debit one of the user's balances"""
        amount = require_positive_amount(amount)
        field_name = BALANCE_FIELDS[balance_type]

        with self.storage.atomic():
            user = self.require_user(user_id)
            before = getattr(user, field_name)
            if before < amount:
                raise ValueError("Insufficient balance")
            setattr(user, field_name, before - amount)
            self.save_user(user)

            transaction = self.transactions.record(
                user.id, TransactionType.FEE, amount, before, getattr(user, field_name),
                status=TransactionStatus.COMPLETED,
                description=description or f"Admin deduction ({balance_type.value})",
                reference=generate_reference("DED"),
                metadata={"admin_id": admin_id, "type": balance_type.value},
            )

        self.notifications.create(
            user.id, "Account Debited",
            f"{format_amount(amount)} has been deducted from your {balance_type.value}",
            NotificationType.WARNING
        )
        self.activity.log(admin_id, ActorType.ADMIN, "deduct_user", "user", user.id,
                          details={"amount": amount, "type": balance_type.value})
        log_action(self.logger, "info", f"Admin debit of {amount}", user_id=admin_id,
                   action="deduct_user", resource=user.id)
        self.mailer.send_debit_alert(user.email, user.name, amount, transaction.description,
                                     getattr(user, field_name), transaction.reference)
        return user

    def _set_status(self, user_id: str, status: UserStatus, action: str, admin_id: str) -> User:
        user = self.require_user(user_id)
        user.status = status
        self.save_user(user)
        self.activity.log(admin_id, ActorType.ADMIN, action, "user", user.id)
        return user

    def block_user(self, user_id: str, admin_id: str) -> User:
        return self._set_status(user_id, UserStatus.BLOCKED, "block_user", admin_id)

    def unblock_user(self, user_id: str, admin_id: str) -> User:
        return self._set_status(user_id, UserStatus.ACTIVE, "unblock_user", admin_id)

    def set_dormant(self, user_id: str, admin_id: str) -> User:
        return self._set_status(user_id, UserStatus.DORMANT, "set_dormant", admin_id)

    def delete_user(self, user_id: str, admin_id: str) -> None:
        user = self.require_user(user_id)
        with self.storage.atomic():
            self.storage.delete(self.table_name, user.id)
            self.notifications.delete_all_for_user(user.id)
        self.activity.log(admin_id, ActorType.ADMIN, "delete_user", "user",
                          details={"email": user.email, "name": user.name})

    def update_auth_codes(self, user_id: str, admin_id: str, tax_code: Optional[str] = None,
                          imf_code: Optional[str] = None, cot_code: Optional[str] = None) -> User:
        user = self.require_user(user_id)
        if tax_code is not None:
            user.tax_code = tax_code
        if imf_code is not None:
            user.imf_code = imf_code
        if cot_code is not None:
            user.cot_code = cot_code
        self.save_user(user)
        self.activity.log(admin_id, ActorType.ADMIN, "update_auth_codes", "user", user.id)
        return user

    def update_limits(self, user_id: str, admin_id: str, daily_transfer_limit: Any = None,
                      daily_withdrawal_limit: Any = None) -> User:
        user = self.require_user(user_id)
        details = {}
        if daily_transfer_limit is not None:
            user.daily_transfer_limit = quantize(daily_transfer_limit)
            details['daily_transfer_limit'] = user.daily_transfer_limit
        if daily_withdrawal_limit is not None:
            user.daily_withdrawal_limit = quantize(daily_withdrawal_limit)
            details['daily_withdrawal_limit'] = user.daily_withdrawal_limit
        self.save_user(user)
        self.activity.log(admin_id, ActorType.ADMIN, "update_limits", "user", user.id, details=details)
        return user
