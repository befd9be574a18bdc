"""
Administration Module

Back-office staff accounts, the dashboard summary and broadcast messaging
to customers by email and in-app notification.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .deposits import DepositManager
from .identifiers import new_id
from .kyc import KycManager
from .logging_config import get_logger, log_action
from .mailer import Mailer
from .money import ZERO, quantize
from .notifications import NotificationManager, NotificationType
from .passwords import hash_secret, validate_password_strength
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType
from .transfers import TransferManager
from .users import UserManager, UserStatus
from .withdrawals import WithdrawalManager


class AdminRole(Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SUPPORT = "support"


class AdminStatus(Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"


@dataclass
class Admin(StorageRecord):
    """Back-office staff account"""
    email: str
    name: str
    password_hash: str
    password_salt: str
    role: AdminRole = AdminRole.ADMIN
    permissions: List[str] = field(default_factory=list)
    status: AdminStatus = AdminStatus.ACTIVE
    two_factor_enabled: bool = False
    two_factor_secret: Optional[str] = None
    last_login: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == AdminStatus.ACTIVE


SENSITIVE_ADMIN_FIELDS = ("password_hash", "password_salt", "two_factor_secret")


def sanitize_admin(admin: Admin) -> Dict[str, Any]:
    data = admin.to_dict()
    for key in SENSITIVE_ADMIN_FIELDS:
        data.pop(key, None)
    return data


class AdminManager:
    """Staff accounts, dashboard and broadcasts"""

    table_name = "admins"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        transactions: TransactionLedger,
        notifications: NotificationManager,
        mailer: Mailer,
        deposits: DepositManager,
        withdrawals: WithdrawalManager,
        transfers: TransferManager,
        kyc: KycManager
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.transactions = transactions
        self.notifications = notifications
        self.mailer = mailer
        self.deposits = deposits
        self.withdrawals = withdrawals
        self.transfers = transfers
        self.kyc = kyc
        self.logger = get_logger("bankline.admin")

    def save_admin(self, admin: Admin) -> None:
        admin.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, admin.id, admin.to_dict())

    def get_admin(self, admin_id: str) -> Optional[Admin]:
        data = self.storage.load(self.table_name, admin_id)
        if data:
            return Admin.from_dict(data)
        return None

    def require_admin(self, admin_id: str) -> Admin:
        admin = self.get_admin(admin_id)
        if not admin:
            raise ValueError("Admin not found")
        return admin

    def get_by_email(self, email: str) -> Optional[Admin]:
        data = self.storage.find_one(self.table_name, {'email': email.strip().lower()})
        return Admin.from_dict(data) if data else None

    # Staff accounts

    def create_admin(self, email: str, password: str, name: str,
                     role: AdminRole = AdminRole.ADMIN, permissions: Optional[List[str]] = None,
                     created_by: Optional[str] = None) -> Admin:
        email = email.strip().lower()
        if self.get_by_email(email):
            raise ValueError("Admin with this email already exists")
        validate_password_strength(password)

        password_hash, password_salt = hash_secret(password)
        now = datetime.now(timezone.utc)
        admin = Admin(
            id=new_id(),
            created_at=now,
            updated_at=now,
            email=email,
            name=name.strip(),
            password_hash=password_hash,
            password_salt=password_salt,
            role=AdminRole(role) if isinstance(role, str) else role,
            permissions=list(permissions or []),
        )
        self.storage.save(self.table_name, admin.id, admin.to_dict())
        if created_by:
            self.activity.log(created_by, ActorType.ADMIN, "create_admin", "admin", admin.id,
                              details={"email": admin.email, "role": admin.role.value})
        return admin

    def ensure_super_admin(self, email: str, password: str) -> Optional[Admin]:
        """Create the first super admin when no admin exists yet"""
        if not email or not password or self.storage.count(self.table_name):
            return None
        admin = self.create_admin(email, password, "Super Admin", role=AdminRole.SUPER_ADMIN)
        log_action(self.logger, "info", f"Seeded super admin {admin.email}", action="seed_admin")
        return admin

    def update_admin(self, admin_id: str, data: Dict[str, Any], updated_by: str) -> Admin:
        admin = self.require_admin(admin_id)
        if data.get('email'):
            email = data['email'].strip().lower()
            existing = self.get_by_email(email)
            if existing and existing.id != admin.id:
                raise ValueError("Admin with this email already exists")
            admin.email = email
        if data.get('name'):
            admin.name = data['name']
        if data.get('role'):
            admin.role = AdminRole(data['role'])
        if data.get('permissions') is not None:
            admin.permissions = list(data['permissions'])
        if data.get('status'):
            admin.status = AdminStatus(data['status'])
        self.save_admin(admin)
        self.activity.log(updated_by, ActorType.ADMIN, "update_admin", "admin", admin.id,
                          details={k: v for k, v in data.items() if k != 'password'})
        return admin

    def delete_admin(self, admin_id: str, deleted_by: str) -> None:
        admin = self.require_admin(admin_id)
        if admin.role == AdminRole.SUPER_ADMIN:
            raise ValueError("Cannot delete super admin")
        self.storage.delete(self.table_name, admin.id)
        self.activity.log(deleted_by, ActorType.ADMIN, "delete_admin", "admin", admin.id,
                          details={"email": admin.email})

    def block_admin(self, admin_id: str, blocked_by: str) -> Admin:
        admin = self.require_admin(admin_id)
        if admin.role == AdminRole.SUPER_ADMIN:
            raise ValueError("Cannot block super admin")
        admin.status = AdminStatus.BLOCKED
        self.save_admin(admin)
        self.activity.log(blocked_by, ActorType.ADMIN, "block_admin", "admin", admin.id)
        log_action(self.logger, "warning", f"Admin {admin.email} blocked", user_id=blocked_by,
                   action="block_admin", resource=admin.id)
        return admin

    def unblock_admin(self, admin_id: str, unblocked_by: str) -> Admin:
        admin = self.require_admin(admin_id)
        admin.status = AdminStatus.ACTIVE
        self.save_admin(admin)
        self.activity.log(unblocked_by, ActorType.ADMIN, "unblock_admin", "admin", admin.id)
        return admin

    def reset_admin_password(self, admin_id: str, new_password: str, reset_by: str) -> None:
        admin = self.require_admin(admin_id)
        validate_password_strength(new_password)
        admin.password_hash, admin.password_salt = hash_secret(new_password)
        self.save_admin(admin)
        self.activity.log(reset_by, ActorType.ADMIN, "reset_admin_password", "admin", admin.id)

    def get_all(self, page: int = 1, limit: int = 20, search: Optional[str] = None,
                role: Optional[AdminRole] = None, status: Optional[AdminStatus] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if role:
            filters['role'] = role
        if status:
            filters['status'] = status
        admins = [Admin.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        if search:
            needle = search.lower()
            admins = [a for a in admins if needle in a.name.lower() or needle in a.email]
        admins.sort(key=lambda a: a.created_at, reverse=True)
        result = paginate(admins, page, limit)
        result['items'] = [sanitize_admin(a) for a in result['items']]
        return result

    # Dashboard

    def get_dashboard_stats(self) -> Dict[str, Any]:
        users = self.users.list_all()
        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return {
            "totalUsers": len(users),
            "activeUsers": sum(1 for u in users if u.status == UserStatus.ACTIVE),
            "totalBalance": quantize(sum((u.balance for u in users), ZERO)),
            "totalDeposits": self.transactions.sum_completed(None, TransactionType.DEPOSIT),
            "totalWithdrawals": self.transactions.sum_completed(None, TransactionType.WITHDRAWAL),
            "pendingDeposits": self.deposits.count_pending(),
            "pendingWithdrawals": self.withdrawals.count_pending(),
            "pendingTransfers": self.transfers.count_pending(),
            "pendingKyc": self.kyc.count_pending(),
            "todayTransactions": self.transactions.count_since(today),
            "todayVolume": self.transactions.volume_since(today),
        }

    def get_recent_activities(self, limit: int = 20) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self.activity.get_recent(limit)]

    # Broadcasts

    def send_to_user(self, user_id: str, subject: str, message: str, admin_id: str) -> bool:
        user = self.users.require_user(user_id)
        result = self.mailer.send_admin_message(user.email, user.name, subject, message)
        self.activity.log(admin_id, ActorType.ADMIN, "send_email", "user", user.id,
                          details={"subject": subject, "success": result.success})
        return result.success

    def send_to_email(self, email: str, subject: str, message: str, admin_id: str) -> bool:
        user = self.users.get_by_email(email)
        if not user:
            raise ValueError("User not found")
        return self.send_to_user(user.id, subject, message, admin_id)

    def _send_many(self, user_ids: Iterable[str], subject: str, message: str) -> Dict[str, int]:
        messages = []
        missing = 0
        for user_id in user_ids:
            user = self.users.get_user(user_id)
            if user:
                messages.append(self.mailer.admin_message(user.email, user.name, subject, message))
            else:
                missing += 1
        result = self.mailer.send_batch(messages)
        return {"sentCount": result["sent"], "failedCount": result["failed"] + missing}

    def send_to_users(self, user_ids: List[str], subject: str, message: str, admin_id: str) -> Dict[str, int]:
        result = self._send_many(user_ids, subject, message)
        self.activity.log(admin_id, ActorType.ADMIN, "send_bulk_email", "user",
                          details={"subject": subject, "recipients": len(user_ids), **result})
        return result

    def send_to_all_users(self, subject: str, message: str, admin_id: str) -> Dict[str, int]:
        user_ids = self.users.get_all_ids(UserStatus.ACTIVE)
        result = self._send_many(user_ids, subject, message)
        self.activity.log(admin_id, ActorType.ADMIN, "send_email_all", "user",
                          details={"subject": subject, **result})
        log_action(self.logger, "info", f"Broadcast email '{subject}' sent to {result['sentCount']} users",
                   user_id=admin_id, action="send_email_all")
        return result

    def broadcast_notification(self, title: str, message: str, admin_id: str,
                               type: NotificationType = NotificationType.INFO,
                               user_ids: Optional[List[str]] = None) -> int:
        """In-app notification to the given users, or to every user"""
        targets = user_ids if user_ids is not None else self.users.get_all_ids()
        count = self.notifications.send_to_all(targets, title, message, type)
        self.activity.log(admin_id, ActorType.ADMIN, "send_notification", "notification",
                          details={"title": title, "count": count})
        return count
