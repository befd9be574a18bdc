"""
Export Module

CSV exports of customer transactions and of deposits, withdrawals and
transfers for the back office, plus a full data export for one customer.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Any, Sequence

from .activity import ActivityLog, ActorType
from .deposits import DepositManager, DepositStatus
from .money import quantize
from .transactions import TransactionLedger, TransactionType
from .transfers import TransferManager, TransferStatus
from .users import UserManager
from .withdrawals import WithdrawalManager, WithdrawalStatus

TRANSACTION_HEADERS = ['Date', 'Type', 'Amount', 'Balance Before', 'Balance After', 'Status', 'Description', 'Reference']
PAYMENT_HEADERS = ['Date', 'User', 'Email', 'Amount', 'Method', 'Status', 'Reference']
TRANSFER_HEADERS = ['Date', 'Sender', 'Type', 'Amount', 'Recipient', 'Status', 'Reference']


def to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    content = output.getvalue()
    output.close()
    return content


def _in_range(created_at: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start and created_at < start:
        return False
    if end and created_at > end:
        return False
    return True


class ExportManager:
    """Builds CSV exports from the ledger and request tables"""

    def __init__(
        self,
        activity: ActivityLog,
        users: UserManager,
        transactions: TransactionLedger,
        deposits: DepositManager,
        withdrawals: WithdrawalManager,
        transfers: TransferManager
    ):
        self.activity = activity
        self.users = users
        self.transactions = transactions
        self.deposits = deposits
        self.withdrawals = withdrawals
        self.transfers = transfers

    def _user_columns(self, user_id: str) -> List[str]:
        user = self.users.get_user(user_id)
        if not user:
            return ['N/A', 'N/A']
        return [user.name, user.email]

    def export_user_transactions(
        self,
        user_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        type: Optional[TransactionType] = None
    ) -> str:
        items = self.transactions.list_user_transactions(
            user_id, type=type, start_date=start_date, end_date=end_date
        )
        rows = [
            [t.created_at.isoformat(), t.type.value, t.amount, t.balance_before, t.balance_after,
             t.status.value, t.description, t.reference]
            for t in items
        ]
        self.activity.log(user_id, ActorType.USER, "export_transactions", "transaction",
                          details={"count": len(rows)})
        return to_csv(TRANSACTION_HEADERS, rows)

    def export_deposits(
        self,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[DepositStatus] = None,
        admin_id: Optional[str] = None
    ) -> str:
        items = [d for d in self.deposits.list_deposits(user_id, status)
                 if _in_range(d.created_at, start_date, end_date)]
        rows = [
            [d.created_at.isoformat(), *self._user_columns(d.user_id), quantize(d.amount),
             d.payment_method_name, d.status.value, d.reference]
            for d in items
        ]
        if admin_id:
            self.activity.log(admin_id, ActorType.ADMIN, "export_deposits", "deposit", details={"count": len(rows)})
        return to_csv(PAYMENT_HEADERS, rows)

    def export_withdrawals(
        self,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[WithdrawalStatus] = None,
        admin_id: Optional[str] = None
    ) -> str:
        items = [w for w in self.withdrawals.list_withdrawals(user_id, status)
                 if _in_range(w.created_at, start_date, end_date)]
        rows = [
            [w.created_at.isoformat(), *self._user_columns(w.user_id), quantize(w.amount),
             w.payment_method_name, w.status.value, w.reference]
            for w in items
        ]
        if admin_id:
            self.activity.log(admin_id, ActorType.ADMIN, "export_withdrawals", "withdrawal",
                              details={"count": len(rows)})
        return to_csv(PAYMENT_HEADERS, rows)

    def export_transfers(
        self,
        user_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[TransferStatus] = None,
        admin_id: Optional[str] = None
    ) -> str:
        items = [t for t in self.transfers.list_transfers(user_id, status=status)
                 if _in_range(t.created_at, start_date, end_date)]
        rows = [
            [t.created_at.isoformat(), self._user_columns(t.sender_id)[0], t.type.value, t.amount,
             t.recipient_details.get('account_name', 'N/A'), t.status.value, t.reference]
            for t in items
        ]
        if admin_id:
            self.activity.log(admin_id, ActorType.ADMIN, "export_transfers", "transfer",
                              details={"count": len(rows)})
        return to_csv(TRANSFER_HEADERS, rows)

    def export_user_data(self, user_id: str) -> Dict[str, Any]:
        """Everything recorded about a customer's money movements"""
        return {
            "transactions": [t.to_dict() for t in self.transactions.list_user_transactions(user_id)],
            "deposits": [d.to_dict() for d in self.deposits.list_deposits(user_id)],
            "withdrawals": [w.to_dict() for w in self.withdrawals.list_withdrawals(user_id)],
            "transfers": [t.to_dict() for t in self.transfers.list_transfers(user_id)],
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }
