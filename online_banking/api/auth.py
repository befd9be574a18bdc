"""
Authentication and authorization dependencies
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..activity import ActivityLog
from ..admin import Admin, AdminManager, AdminRole
from ..auth import AuthService, AuthenticationError, AccountDisabledError
from ..cards import CardManager
from ..cms import CmsManager
from ..config import get_config
from ..crm import CrmManager
from ..crypto import CryptoManager
from ..deposits import DepositManager
from ..exports import ExportManager
from ..ip_blocking import IpBlockList
from ..kyc import KycManager
from ..loans import LoanManager
from ..logging_config import get_logger
from ..mailer import EmailProvider, Mailer
from ..memberships import MembershipManager
from ..notifications import NotificationManager
from ..payment_methods import PaymentMethodManager
from ..plans import PlanManager
from ..price_feed import CoinGeckoClient
from ..signals import SignalManager
from ..site_settings import SiteSettingsManager
from ..storage import InMemoryStorage, StorageInterface, create_storage
from ..support import SupportManager
from ..transactions import TransactionLedger
from ..transfers import TransferManager
from ..users import User, UserManager
from ..withdrawals import WithdrawalManager


logger = get_logger("bankline.api")


class BankingSystem:
    """Online banking platform with all components initialized"""

    def __init__(self, use_sqlite: bool = True, email_provider: Optional[EmailProvider] = None,
                 price_feed: Optional[CoinGeckoClient] = None, storage: Optional[StorageInterface] = None):
        config = get_config()

        # Initialize storage
        if storage is not None:
            self.storage = storage
        elif use_sqlite:
            self.storage = create_storage(config.database_url)
        else:
            self.storage = InMemoryStorage()

        # Initialize shared components
        self.activity = ActivityLog(self.storage)
        self.notifications = NotificationManager(self.storage)
        self.settings = SiteSettingsManager(self.storage, self.activity)
        self.mailer = Mailer(config, provider=email_provider, settings=self.settings)
        self.transactions = TransactionLedger(self.storage)
        self.price_feed = price_feed or CoinGeckoClient(
            config.coingecko_url, config.coingecko_timeout, config.coingecko_retries
        )

        # Initialize customer-facing managers
        self.users = UserManager(self.storage, self.activity, self.notifications,
                                 self.transactions, self.mailer, config)
        self.payment_methods = PaymentMethodManager(self.storage, self.activity)
        self.deposits = DepositManager(self.storage, self.activity, self.users, self.payment_methods,
                                       self.transactions, self.notifications, self.mailer)
        self.withdrawals = WithdrawalManager(self.storage, self.activity, self.users, self.payment_methods,
                                             self.transactions, self.notifications, self.mailer)
        self.transfers = TransferManager(self.storage, self.activity, self.users, self.transactions,
                                         self.notifications, self.mailer, self.price_feed, config)
        self.cards = CardManager(self.storage, self.activity, self.users, self.notifications)
        self.loans = LoanManager(self.storage, self.activity, self.users, self.transactions,
                                 self.notifications, config)
        self.crypto = CryptoManager(self.storage, self.activity, self.users, self.transactions,
                                    self.notifications, self.price_feed, config)
        self.kyc = KycManager(self.storage, self.activity, self.users, self.notifications, self.mailer)
        self.plans = PlanManager(self.storage, self.activity, self.users, self.transactions, self.notifications)
        self.memberships = MembershipManager(self.storage, self.activity, self.users, self.transactions,
                                             self.notifications)
        self.signals = SignalManager(self.storage, self.activity, self.users, self.transactions, self.notifications)
        self.support = SupportManager(self.storage, self.activity, self.users, self.notifications)

        # Initialize back-office managers
        self.admins = AdminManager(self.storage, self.activity, self.users, self.transactions,
                                   self.notifications, self.mailer, self.deposits, self.withdrawals,
                                   self.transfers, self.kyc)
        self.cms = CmsManager(self.storage, self.activity)
        self.crm = CrmManager(self.storage, self.activity, self.users)
        self.exports = ExportManager(self.activity, self.users, self.transactions, self.deposits,
                                     self.withdrawals, self.transfers)
        self.ip_blocks = IpBlockList(self.storage, self.activity)
        self.auth = AuthService(self.storage, self.activity, self.users, self.admins, self.mailer, config)

        self.admins.ensure_super_admin(config.super_admin_email, config.super_admin_password)


# Global banking system instance
banking_system = BankingSystem(use_sqlite=True)


# Dependency to get banking system
def get_banking_system() -> BankingSystem:
    return banking_system


security = HTTPBearer(auto_error=False)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: BankingSystem = Depends(get_banking_system)
) -> User:
    """Dependency that validates a customer JWT and returns the user"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return system.auth.authenticate_user(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AccountDisabledError as e:
        raise HTTPException(status_code=403, detail=str(e))


def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: BankingSystem = Depends(get_banking_system)
) -> Admin:
    """Dependency that validates a staff JWT and returns the admin"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return system.auth.authenticate_admin(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AccountDisabledError as e:
        raise HTTPException(status_code=403, detail=str(e))


def require_super_admin(admin: Admin = Depends(get_current_admin)) -> Admin:
    """Dependency restricting staff management to super admins"""
    if admin.role != AdminRole.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return admin
