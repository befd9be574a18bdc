"""
Transaction Ledger Module

Every balance movement on a customer account is recorded as a Transaction
with the balance before and after. Services create ledger entries; this
module only records, updates status and queries them.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .identifiers import new_id, generate_reference
from .logging_config import get_logger, log_action
from .money import ZERO
from .storage import StorageInterface, StorageRecord, paginate


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    BONUS = "bonus"
    FEE = "fee"
    INVESTMENT = "investment"
    LOAN = "loan"
    CARD_TOPUP = "card_topup"
    CARD_DEDUCT = "card_deduct"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Transaction(StorageRecord):
    """A single ledger line on a user's account"""
    user_id: str
    type: TransactionType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    reference: str
    description: str = ""
    currency: str = "USD"
    status: TransactionStatus = TransactionStatus.PENDING
    metadata: Dict[str, Any] = field(default_factory=dict)


class TransactionLedger:
    """Records and queries customer transactions"""

    table_name = "transactions"

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.logger = get_logger("bankline.transactions")

    def _save(self, transaction: Transaction) -> None:
        self.storage.save(self.table_name, transaction.id, transaction.to_dict())

    def record(
        self,
        user_id: str,
        type: TransactionType,
        amount: Decimal,
        balance_before: Decimal,
        balance_after: Decimal,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        description: str = "",
        reference: Optional[str] = None,
        currency: str = "USD",
        metadata: Optional[Dict[str, Any]] = None
    ) -> Transaction:
        """Append a ledger entry"""
        now = datetime.now(timezone.utc)
        transaction = Transaction(
            id=new_id(),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            type=type,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            reference=reference or generate_reference("TXN"),
            description=description,
            currency=currency,
            status=status,
            metadata=metadata or {},
        )
        self._save(transaction)

        log_action(
            self.logger, "info",
            f"Recorded {type.value} of {amount} {currency} ({status.value})",
            user_id=user_id, action="record_transaction", resource=transaction.reference,
            extra={"transaction_id": transaction.id}
        )
        return transaction

    def get(self, transaction_id: str) -> Optional[Transaction]:
        data = self.storage.load(self.table_name, transaction_id)
        if data:
            return Transaction.from_dict(data)
        return None

    def get_by_reference(self, reference: str) -> Optional[Transaction]:
        data = self.storage.find_one(self.table_name, {'reference': reference})
        if data:
            return Transaction.from_dict(data)
        return None

    def update_status_by_reference(
        self,
        reference: str,
        status: TransactionStatus,
        balance_before: Optional[Decimal] = None,
        balance_after: Optional[Decimal] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[Transaction]:
        """Move a pending entry to its final status; returns None if no entry has that reference"""
        transaction = self.get_by_reference(reference)
        if not transaction:
            return None
        transaction.status = status
        if balance_before is not None:
            transaction.balance_before = balance_before
        if balance_after is not None:
            transaction.balance_after = balance_after
        if metadata:
            transaction.metadata.update(metadata)
        transaction.updated_at = datetime.now(timezone.utc)
        self._save(transaction)
        return transaction

    def _filtered(
        self,
        filters: Dict[str, Any],
        type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> List[Transaction]:
        if type:
            filters['type'] = type
        if status:
            filters['status'] = status
        items = [Transaction.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        if start_date:
            items = [t for t in items if t.created_at >= start_date]
        if end_date:
            items = [t for t in items if t.created_at <= end_date]
        items.sort(key=lambda t: t.created_at, reverse=True)
        return items

    def list_user_transactions(self, user_id: str, **criteria) -> List[Transaction]:
        """All matching entries of a user, newest first"""
        return self._filtered({'user_id': user_id}, **criteria)

    def get_user_transactions(self, user_id: str, page: int = 1, limit: int = 10, **criteria) -> Dict[str, Any]:
        return paginate(self.list_user_transactions(user_id, **criteria), page, limit)

    def get_all(self, page: int = 1, limit: int = 20, user_id: Optional[str] = None, **criteria) -> Dict[str, Any]:
        filters = {'user_id': user_id} if user_id else {}
        return paginate(self._filtered(filters, **criteria), page, limit)

    def get_recent(self, user_id: str, limit: int = 10) -> List[Transaction]:
        return self.list_user_transactions(user_id)[:limit]

    def sum_completed(self, user_id: Optional[str], type: TransactionType) -> Decimal:
        """Total amount of completed entries of one type (all users when user_id is None)"""
        filters: Dict[str, Any] = {'type': type, 'status': TransactionStatus.COMPLETED}
        if user_id:
            filters['user_id'] = user_id
        return sum(
            (Decimal(d['amount']) for d in self.storage.find(self.table_name, filters)),
            ZERO
        )

    def since(self, start: datetime) -> List[Transaction]:
        items = [Transaction.from_dict(d) for d in self.storage.load_all(self.table_name)]
        return [t for t in items if t.created_at >= start]

    def count_since(self, start: datetime) -> int:
        """Completed entries since start"""
        return sum(1 for t in self.since(start) if t.status == TransactionStatus.COMPLETED)

    def volume_since(self, start: datetime) -> Decimal:
        """Sum of completed fiat amounts since start"""
        return sum(
            (t.amount for t in self.since(start)
             if t.status == TransactionStatus.COMPLETED and t.currency != "BTC"),
            ZERO
        )
