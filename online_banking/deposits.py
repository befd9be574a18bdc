"""
Deposits Module

Customer deposit requests reviewed by an administrator. The balance is only
credited when the deposit is approved.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id, generate_reference
from .logging_config import get_logger, log_action
from .mailer import Mailer
from .money import format_amount, format_number, require_positive_amount
from .notifications import NotificationManager, NotificationType
from .payment_methods import PaymentMethodManager
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType, TransactionStatus
from .users import UserManager


class DepositStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class Deposit(StorageRecord):
    user_id: str
    amount: Decimal
    payment_method_id: str
    reference: str
    payment_method_name: str = ""
    status: DepositStatus = DepositStatus.PENDING
    proof_image: Optional[str] = None
    admin_note: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None


class DepositManager:
    """Creates and processes deposit requests"""

    table_name = "deposits"

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
        self.logger = get_logger("bankline.deposits")

    def _save(self, deposit: Deposit) -> None:
        self.storage.save(self.table_name, deposit.id, deposit.to_dict())

    def get(self, deposit_id: str) -> Optional[Deposit]:
        data = self.storage.load(self.table_name, deposit_id)
        if data:
            return Deposit.from_dict(data)
        return None

    def create_deposit(
        self,
        user_id: str,
        amount: Any,
        payment_method_id: str,
        proof_image: Optional[str] = None
    ) -> Deposit:
        """Submit a pending deposit and its pending ledger entry"""
        amount = require_positive_amount(amount)
        user = self.users.require_user(user_id)

        method = self.payment_methods.get(payment_method_id)
        if not method:
            raise ValueError("Payment method not found")
        if not method.accepts(amount):
            raise ValueError(
                f"Amount must be between ${format_number(method.min_amount)} and ${format_number(method.max_amount)}"
            )

        now = datetime.now(timezone.utc)
        deposit = Deposit(
            id=new_id(),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            amount=amount,
            payment_method_id=method.id,
            payment_method_name=method.name,
            reference=generate_reference("DEP"),
            proof_image=proof_image,
        )

        with self.storage.atomic():
            self._save(deposit)
            self.transactions.record(
                user.id, TransactionType.DEPOSIT, amount, user.balance, user.balance,
                status=TransactionStatus.PENDING,
                description=f"Deposit via {method.name}",
                reference=deposit.reference,
                metadata={"deposit_id": deposit.id, "payment_method": method.name},
            )

        self.notifications.create(
            user.id, "Deposit Request Created",
            f"Your deposit request of {format_amount(amount)} has been submitted and is pending approval.",
            NotificationType.INFO
        )
        self.activity.log(user.id, ActorType.USER, "create_deposit", "deposit", deposit.id,
                          details={"amount": amount, "payment_method": method.name})
        self.mailer.send_deposit_status(user.email, user.name, "pending", amount, deposit.reference)
        return deposit

    def process_deposit(
        self,
        deposit_id: str,
        status: DepositStatus,
        admin_id: str,
        admin_note: Optional[str] = None
    ) -> Deposit:
        """Approve (credit the balance) or reject a pending deposit"""
        if status not in (DepositStatus.APPROVED, DepositStatus.REJECTED):
            raise ValueError("Status must be approved or rejected")

        with self.storage.atomic():
            deposit = self.get(deposit_id)
            if not deposit:
                raise ValueError("Deposit not found")
            if deposit.status != DepositStatus.PENDING:
                raise ValueError("Deposit has already been processed")

            now = datetime.now(timezone.utc)
            deposit.status = status
            deposit.admin_note = admin_note
            deposit.processed_by = admin_id
            deposit.processed_at = now
            deposit.updated_at = now
            self._save(deposit)

            user = self.users.get_user(deposit.user_id)
            if user and status == DepositStatus.APPROVED:
                before = user.balance
                user.balance = before + deposit.amount
                self.users.save_user(user)
                updated = self.transactions.update_status_by_reference(
                    deposit.reference, TransactionStatus.COMPLETED,
                    balance_before=before, balance_after=user.balance, metadata={"approved_by": admin_id},
                )
                if updated is None:
                    self.transactions.record(
                        user.id, TransactionType.DEPOSIT, deposit.amount, before, user.balance,
                        description=f"Deposit approved - {deposit.reference}",
                        reference=deposit.reference,
                    )
            elif status == DepositStatus.REJECTED:
                self.transactions.update_status_by_reference(deposit.reference, TransactionStatus.FAILED)

        if user and status == DepositStatus.APPROVED:
            self.notifications.create(
                user.id, "Deposit Approved",
                f"Your deposit of {format_amount(deposit.amount)} has been approved and credited to your account.",
                NotificationType.SUCCESS
            )
            self.mailer.send_deposit_status(user.email, user.name, "approved", deposit.amount,
                                            deposit.reference, admin_note)
        elif user:
            self.notifications.create(
                user.id, "Deposit Rejected",
                f"Your deposit of {format_amount(deposit.amount)} has been rejected. {admin_note or ''}".strip(),
                NotificationType.ERROR
            )
            self.mailer.send_deposit_status(user.email, user.name, "rejected", deposit.amount,
                                            deposit.reference, admin_note)

        action = "approve_deposit" if status == DepositStatus.APPROVED else "reject_deposit"
        self.activity.log(admin_id, ActorType.ADMIN, action, "deposit", deposit.id,
                          details={"amount": deposit.amount, "status": status.value, "admin_note": admin_note})
        log_action(self.logger, "info", f"Deposit {deposit.reference} {status.value}",
                   user_id=admin_id, action=action, resource=deposit.id)
        return deposit

    def _list(self, filters: Dict[str, Any], status: Optional[DepositStatus]) -> List[Deposit]:
        if status:
            filters['status'] = status
        deposits = [Deposit.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        deposits.sort(key=lambda d: d.created_at, reverse=True)
        return deposits

    def list_deposits(self, user_id: Optional[str] = None, status: Optional[DepositStatus] = None) -> List[Deposit]:
        return self._list({'user_id': user_id} if user_id else {}, status)

    def get_user_deposits(self, user_id: str, page: int = 1, limit: int = 10,
                          status: Optional[DepositStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_deposits(user_id, status), page, limit)

    def get_all(self, page: int = 1, limit: int = 20, status: Optional[DepositStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_deposits(None, status), page, limit)

    def count_pending(self) -> int:
        return len(self.storage.find(self.table_name, {'status': DepositStatus.PENDING}))
