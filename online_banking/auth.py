"""
Authentication Module

Customer registration and login, staff login, JWT access and refresh
tokens, password changes, email verification and password reset tokens.
"""

from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Dict, Optional, Any, Union

import jwt

from .activity import ActivityLog, ActorType
from .admin import Admin, AdminManager, sanitize_admin
from .config import BanklineConfig, get_config
from .identifiers import new_id, generate_reset_token
from .logging_config import get_logger, log_action
from .mailer import Mailer
from .passwords import hash_secret, verify_secret, validate_password_strength
from .storage import StorageInterface, StorageRecord
from .users import User, UserManager, UserStatus, AccountType, sanitize_user


class AuthenticationError(Exception):
    """Bad credentials or an invalid token"""


class AccountDisabledError(Exception):
    """The principal exists but may not sign in"""


USER_TOKEN = "user"
ADMIN_TOKEN = "admin"

LOGIN_STATUS_MESSAGES = {
    UserStatus.SUSPENDED: "Your account has been suspended. Please contact support.",
    UserStatus.BLOCKED: "Your account has been blocked. Please contact support.",
    UserStatus.PENDING: "Your account is pending approval. Please wait for admin approval.",
}

Principal = Union[User, Admin]


@dataclass
class PasswordReset(StorageRecord):
    user_id: str
    token: str
    expires_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuthService:
    """Credentials and tokens for customers and staff"""

    resets_table = "password_resets"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        admins: AdminManager,
        mailer: Mailer,
        config: Optional[BanklineConfig] = None
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.admins = admins
        self.mailer = mailer
        self.config = config or get_config()
        self.logger = get_logger("bankline.auth")

    # Tokens

    def _encode(self, principal: Principal, token_type: str, secret: str, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "id": principal.id,
            "email": principal.email,
            "type": token_type,
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(payload, secret, algorithm=self.config.jwt_algorithm)

    def issue_tokens(self, principal: Principal, token_type: str) -> Dict[str, str]:
        return {
            "access_token": self._encode(principal, token_type, self.config.jwt_secret,
                                         timedelta(days=self.config.jwt_access_expiry_days)),
            "refresh_token": self._encode(principal, token_type, self.config.jwt_refresh_secret,
                                          timedelta(days=self.config.jwt_refresh_expiry_days)),
        }

    def decode_token(self, token: str, refresh: bool = False) -> Dict[str, Any]:
        secret = self.config.jwt_refresh_secret if refresh else self.config.jwt_secret
        try:
            return jwt.decode(token, secret, algorithms=[self.config.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token")

    # Customers

    def register(self, data: Dict[str, Any], ip_address: Optional[str] = None) -> User:
        """
        Create a pending customer account.

        The display name joins first, middle and last names. The account
        stays pending until an administrator approves it.
        """
        validate_password_strength(data.get('password') or "", self.config.password_min_length)
        name = " ".join(part.strip() for part in (
            data.get('name'), data.get('middle_name'), data.get('last_name')
        ) if part and part.strip())
        if not name:
            raise ValueError("Name is required")

        account_type = data.get('account_type') or AccountType.SAVINGS
        if isinstance(account_type, str):
            account_type = AccountType(account_type)

        profile = {k: v for k, v in data.items()
                   if k not in ('email', 'password', 'name', 'middle_name', 'last_name', 'pin',
                                'referral_code', 'account_type', 'currency')}
        user = self.users.create_user(
            email=data['email'],
            password=data['password'],
            name=name,
            pin=data.get('pin'),
            status=UserStatus.PENDING,
            referral_code=data.get('referral_code'),
            account_type=account_type,
            currency=data.get('currency') or self.config.default_currency,
            **profile
        )
        self.activity.log(user.id, ActorType.USER, "register", "user", user.id, ip_address=ip_address)
        log_action(self.logger, "info", f"Registered {user.email}", user_id=user.id, action="register")
        self.mailer.send_registration_received(user.email, user.name)
        return user

    def login(self, email: str, password: str, ip_address: Optional[str] = None) -> Dict[str, Any]:
        user = self.users.get_by_email(email or "")
        if not user or not verify_secret(password, user.password_hash, user.password_salt):
            log_action(self.logger, "warning", "Failed login", action="login_failed",
                       resource="auth", extra={"email": email, "ip_address": ip_address})
            if user:
                self.activity.log(user.id, ActorType.USER, "login_failed", "user", user.id, ip_address=ip_address)
            raise AuthenticationError("Invalid email or password")
        if user.status in LOGIN_STATUS_MESSAGES:
            raise AccountDisabledError(LOGIN_STATUS_MESSAGES[user.status])

        user.last_login = datetime.now(timezone.utc)
        user.login_ip = ip_address
        self.users.save_user(user)
        self.activity.log(user.id, ActorType.USER, "login", "user", user.id, ip_address=ip_address)
        return {"user": sanitize_user(user), **self.issue_tokens(user, USER_TOKEN)}

    def authenticate_user(self, token: str) -> User:
        payload = self.decode_token(token)
        if payload.get('type') != USER_TOKEN:
            raise AuthenticationError("Invalid token")
        user = self.users.get_user(payload.get('id', ''))
        if not user:
            raise AuthenticationError("User not found")
        if user.status in (UserStatus.BLOCKED, UserStatus.SUSPENDED):
            raise AccountDisabledError(LOGIN_STATUS_MESSAGES[user.status])
        return user

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = self.users.require_user(user_id)
        if not verify_secret(current_password, user.password_hash, user.password_salt):
            raise ValueError("Current password is incorrect")
        validate_password_strength(new_password, self.config.password_min_length)
        user.password_hash, user.password_salt = hash_secret(new_password)
        self.users.save_user(user)
        self.activity.log(user.id, ActorType.USER, "change_password", "user", user.id)

    def verify_email(self, user_id: str) -> User:
        user = self.users.require_user(user_id)
        user.email_verified = True
        user.email_verified_at = datetime.now(timezone.utc)
        self.users.save_user(user)
        self.activity.log(user.id, ActorType.USER, "verify_email", "user", user.id)
        return user

    # Staff

    def admin_login(self, email: str, password: str, ip_address: Optional[str] = None) -> Dict[str, Any]:
        admin = self.admins.get_by_email(email or "")
        if not admin or not verify_secret(password, admin.password_hash, admin.password_salt):
            log_action(self.logger, "warning", "Failed admin login", action="admin_login_failed",
                       resource="auth", extra={"email": email, "ip_address": ip_address})
            raise AuthenticationError("Invalid email or password")
        if not admin.is_active:
            raise AccountDisabledError("Your account has been blocked")

        admin.last_login = datetime.now(timezone.utc)
        self.admins.save_admin(admin)
        self.activity.log(admin.id, ActorType.ADMIN, "admin_login", "admin", admin.id, ip_address=ip_address)
        return {"admin": sanitize_admin(admin), **self.issue_tokens(admin, ADMIN_TOKEN)}

    def authenticate_admin(self, token: str) -> Admin:
        payload = self.decode_token(token)
        if payload.get('type') != ADMIN_TOKEN:
            raise AuthenticationError("Invalid token")
        admin = self.admins.get_admin(payload.get('id', ''))
        if not admin:
            raise AuthenticationError("Admin not found")
        if not admin.is_active:
            raise AccountDisabledError("Your account has been blocked")
        return admin

    def change_admin_password(self, admin_id: str, current_password: str, new_password: str) -> None:
        admin = self.admins.require_admin(admin_id)
        if not verify_secret(current_password, admin.password_hash, admin.password_salt):
            raise ValueError("Current password is incorrect")
        validate_password_strength(new_password, self.config.password_min_length)
        admin.password_hash, admin.password_salt = hash_secret(new_password)
        self.admins.save_admin(admin)
        self.activity.log(admin.id, ActorType.ADMIN, "change_password", "admin", admin.id)

    # Refresh

    def refresh(self, refresh_token: str) -> Dict[str, str]:
        try:
            payload = self.decode_token(refresh_token, refresh=True)
        except AuthenticationError:
            raise AuthenticationError("Invalid refresh token")

        principal: Optional[Principal]
        if payload.get('type') == ADMIN_TOKEN:
            principal = self.admins.get_admin(payload.get('id', ''))
            active = principal is not None and principal.is_active
        else:
            principal = self.users.get_user(payload.get('id', ''))
            active = principal is not None and principal.is_active
        if not principal or not active:
            raise AuthenticationError("Invalid refresh token")
        return self.issue_tokens(principal, payload.get('type', USER_TOKEN))

    # Password reset

    def _find_reset(self, token: str) -> Optional[PasswordReset]:
        data = self.storage.find_one(self.resets_table, {'token': token})
        return PasswordReset.from_dict(data) if data else None

    def request_password_reset(self, email: str, ip_address: Optional[str] = None,
                               user_agent: Optional[str] = None) -> None:
        """Send a reset link; unknown addresses are ignored without error"""
        user = self.users.get_by_email(email or "")
        if not user:
            return

        with self.storage.atomic():
            for existing in self.storage.find(self.resets_table, {'user_id': user.id}):
                self.storage.delete(self.resets_table, existing['id'])
            now = datetime.now(timezone.utc)
            reset = PasswordReset(
                id=new_id(),
                created_at=now,
                updated_at=now,
                user_id=user.id,
                token=generate_reset_token(),
                expires_at=now + timedelta(minutes=self.config.password_reset_expiry_minutes),
                ip_address=ip_address,
                user_agent=user_agent,
            )
            self.storage.save(self.resets_table, reset.id, reset.to_dict())

        self.activity.log(user.id, ActorType.USER, "request_password_reset", "user", user.id,
                          ip_address=ip_address, user_agent=user_agent)
        self.mailer.send_password_reset(user.email, user.name, reset.token)

    def reset_password(self, token: str, new_password: str) -> None:
        reset = self._find_reset(token or "")
        if not reset or reset.expires_at <= datetime.now(timezone.utc):
            raise ValueError("Invalid or expired reset token")
        validate_password_strength(new_password, self.config.password_min_length)

        user = self.users.require_user(reset.user_id)
        user.password_hash, user.password_salt = hash_secret(new_password)
        self.users.save_user(user)
        self.storage.delete(self.resets_table, reset.id)

        self.activity.log(user.id, ActorType.USER, "reset_password", "user", user.id)
        self.mailer.send_password_reset_success(user.email, user.name)

