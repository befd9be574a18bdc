"""
Withdrawals Module

Customer withdrawal requests. Funds leave the balance immediately and are
refunded if an administrator rejects the request.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id, generate_reference
from .logging_config import get_logger, log_action
from .mailer import Mailer
from .money import ZERO, format_amount, format_number, require_positive_amount
from .notifications import NotificationManager, NotificationType
from .payment_methods import PaymentMethodManager, PaymentMethodStatus
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType, TransactionStatus
from .users import User, UserManager, UserStatus, KycStatus


class WithdrawalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"


STATUS_MESSAGES = {
    UserStatus.DORMANT: (
        "Your account is currently dormant due to inactivity. To reactivate your account and "
        "process withdrawals, please contact our support team via live chat for immediate assistance."
    ),
    UserStatus.SUSPENDED: (
        "Your account has been temporarily suspended. Please contact our support team via live chat "
        "to resolve this matter and restore access to withdrawal services."
    ),
    UserStatus.BLOCKED: (
        "Your account access has been restricted. Please contact our support team via live chat "
        "for further assistance regarding your account status."
    ),
    UserStatus.INACTIVE: (
        "Your account is currently inactive. Please contact our support team via live chat to "
        "activate your account and enable withdrawal services."
    ),
}

KYC_REQUIRED_MESSAGE = (
    "Identity verification is required before processing withdrawals. Please complete your KYC "
    "verification in your account settings, or contact our support team via live chat for assistance."
)
INSUFFICIENT_FUNDS_MESSAGE = (
    "Insufficient funds. The requested withdrawal amount exceeds your available balance. "
    "Please adjust the amount and try again."
)
METHOD_UNAVAILABLE_MESSAGE = (
    "The selected payment method is unavailable. Please choose a different withdrawal method "
    "or contact support for assistance."
)


def ensure_can_withdraw(user: User) -> None:
    """Raise the customer-facing message for any status that blocks withdrawals"""
    message = STATUS_MESSAGES.get(user.status)
    if message:
        raise ValueError(message)


@dataclass
class Withdrawal(StorageRecord):
    user_id: str
    amount: Decimal
    fee: Decimal
    net_amount: Decimal
    payment_method_id: str
    reference: str
    payment_method_name: str = ""
    payment_details: Dict[str, Any] = field(default_factory=dict)
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    admin_note: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None


class WithdrawalManager:
    """Creates and processes withdrawal requests"""

    table_name = "withdrawals"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        payment_methods: PaymentMethodManager,
        transactions: TransactionLedger,
        notifications: NotificationManager,
        mailer: Mailer
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.payment_methods = payment_methods
        self.transactions = transactions
        self.notifications = notifications
        self.mailer = mailer
        self.logger = get_logger("bankline.withdrawals")

    def _save(self, withdrawal: Withdrawal) -> None:
        self.storage.save(self.table_name, withdrawal.id, withdrawal.to_dict())

    def get(self, withdrawal_id: str) -> Optional[Withdrawal]:
        data = self.storage.load(self.table_name, withdrawal_id)
        if data:
            return Withdrawal.from_dict(data)
        return None

    def create_withdrawal(
        self,
        user_id: str,
        amount: Any,
        payment_method_id: str,
        payment_details: Optional[Dict[str, Any]] = None
    ) -> Withdrawal:
        """
        Validate, debit the balance and open a pending withdrawal.

        Checks run in order: account status, KYC, balance, payment method,
        method amount range.
        """
        amount = require_positive_amount(amount)

        with self.storage.atomic():
            user = self.users.require_user(user_id)
            ensure_can_withdraw(user)
            if user.kyc_status != KycStatus.APPROVED:
                raise ValueError(KYC_REQUIRED_MESSAGE)
            if user.balance < amount:
                raise ValueError(INSUFFICIENT_FUNDS_MESSAGE)
            remaining = user.daily_withdrawal_limit - self.withdrawn_today(user.id)
            if amount > remaining:
                raise ValueError(
                    f"Daily withdrawal limit of {format_amount(user.daily_withdrawal_limit)} exceeded. "
                    f"Remaining today: {format_amount(max(remaining, ZERO))}"
                )

            method = self.payment_methods.get(payment_method_id)
            if not method or method.status != PaymentMethodStatus.ACTIVE:
                raise ValueError(METHOD_UNAVAILABLE_MESSAGE)
            if not method.accepts(amount):
                raise ValueError(
                    f"Withdrawal amount must be between ${format_number(method.min_amount)} and "
                    f"${format_number(method.max_amount)}. Please adjust your amount accordingly."
                )

            fee = method.calculate_fee(amount)
            net_amount = amount - fee

            before = user.balance
            user.balance = before - amount
            self.users.save_user(user)

            now = datetime.now(timezone.utc)
            withdrawal = Withdrawal(
                id=new_id(),
                created_at=now,
                updated_at=now,
                user_id=user.id,
                amount=amount,
                fee=fee,
                net_amount=net_amount,
                payment_method_id=method.id,
                payment_method_name=method.name,
                payment_details=payment_details or {},
                reference=generate_reference("WDR"),
            )
            self._save(withdrawal)

            self.transactions.record(
                user.id, TransactionType.WITHDRAWAL, amount, before, user.balance,
                status=TransactionStatus.PENDING,
                description=f"Withdrawal request - {withdrawal.reference}",
                reference=withdrawal.reference,
                metadata={"withdrawal_id": withdrawal.id, "fee": fee, "net_amount": net_amount},
            )

        self.notifications.create(
            user.id, "Withdrawal Request Created",
            f"Your withdrawal request of {format_amount(amount)} has been submitted and is pending approval.",
            NotificationType.INFO
        )
        self.activity.log(user.id, ActorType.USER, "create_withdrawal", "withdrawal", withdrawal.id,
                          details={"amount": amount, "fee": fee, "net_amount": net_amount,
                                   "payment_method": method.name})
        log_action(self.logger, "info", f"Withdrawal {withdrawal.reference} requested",
                   user_id=user.id, action="create_withdrawal", resource=withdrawal.id)
        self.mailer.send_withdrawal_status(user.email, user.name, "pending", amount, withdrawal.reference)
        return withdrawal

    def withdrawn_today(self, user_id: str) -> Decimal:
        """Total requested since UTC midnight, excluding rejected withdrawals"""
        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return sum((w.amount for w in self.list_withdrawals(user_id)
                    if w.created_at >= today and w.status != WithdrawalStatus.REJECTED), ZERO)

    def process_withdrawal(
        self,
        withdrawal_id: str,
        status: WithdrawalStatus,
        admin_id: str,
        admin_note: Optional[str] = None
    ) -> Withdrawal:
        """Approve or reject (and refund) a pending withdrawal"""
        if status not in (WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED):
            raise ValueError("Status must be approved or rejected")

        with self.storage.atomic():
            withdrawal = self.get(withdrawal_id)
            if not withdrawal:
                raise ValueError("Withdrawal not found")
            if withdrawal.status != WithdrawalStatus.PENDING:
                raise ValueError("Withdrawal has already been processed")

            now = datetime.now(timezone.utc)
            withdrawal.status = status
            withdrawal.admin_note = admin_note
            withdrawal.processed_by = admin_id
            withdrawal.processed_at = now
            withdrawal.updated_at = now
            self._save(withdrawal)

            self.transactions.update_status_by_reference(
                withdrawal.reference,
                TransactionStatus.COMPLETED if status == WithdrawalStatus.APPROVED else TransactionStatus.FAILED
            )

            user = self.users.get_user(withdrawal.user_id)
            if user and status == WithdrawalStatus.REJECTED:
                user.balance = user.balance + withdrawal.amount
                self.users.save_user(user)

        if user and status == WithdrawalStatus.REJECTED:
            self.notifications.create(
                user.id, "Withdrawal Rejected",
                f"Your withdrawal of {format_amount(withdrawal.amount)} has been rejected and refunded. "
                f"{admin_note or ''}".strip(),
                NotificationType.ERROR
            )
            self.mailer.send_withdrawal_status(user.email, user.name, "rejected", withdrawal.amount,
                                               withdrawal.reference, admin_note)
        elif user:
            self.notifications.create(
                user.id, "Withdrawal Approved",
                f"Your withdrawal of {format_amount(withdrawal.net_amount)} has been approved and is being processed.",
                NotificationType.SUCCESS
            )
            self.mailer.send_withdrawal_status(user.email, user.name, "approved", withdrawal.net_amount,
                                               withdrawal.reference, admin_note)

        action = "approve_withdrawal" if status == WithdrawalStatus.APPROVED else "reject_withdrawal"
        self.activity.log(admin_id, ActorType.ADMIN, action, "withdrawal", withdrawal.id,
                          details={"amount": withdrawal.amount, "status": status.value, "admin_note": admin_note})
        log_action(self.logger, "info", f"Withdrawal {withdrawal.reference} {status.value}",
                   user_id=admin_id, action=action, resource=withdrawal.id)
        return withdrawal

    def list_withdrawals(self, user_id: Optional[str] = None,
                         status: Optional[WithdrawalStatus] = None) -> List[Withdrawal]:
        filters: Dict[str, Any] = {'user_id': user_id} if user_id else {}
        if status:
            filters['status'] = status
        items = [Withdrawal.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        items.sort(key=lambda w: w.created_at, reverse=True)
        return items

    def get_user_withdrawals(self, user_id: str, page: int = 1, limit: int = 10,
                             status: Optional[WithdrawalStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_withdrawals(user_id, status), page, limit)

    def get_all(self, page: int = 1, limit: int = 20,
                status: Optional[WithdrawalStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_withdrawals(None, status), page, limit)

    def count_pending(self) -> int:
        return len(self.storage.find(self.table_name, {'status': WithdrawalStatus.PENDING}))
