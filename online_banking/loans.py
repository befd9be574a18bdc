"""
Loans Module

Customer loan applications with fixed-rate amortized repayment. Loans move
pending -> approved -> active (disbursed) -> paid, or end rejected or
defaulted.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .config import BanklineConfig, get_config
from .identifiers import new_id, loan_monthly_payment
from .logging_config import get_logger, log_action
from .money import ZERO, HUNDRED, format_amount, quantize, require_positive_amount, to_decimal
from .notifications import NotificationManager, NotificationType
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType
from .users import UserManager, KycStatus

PAYMENT_INTERVAL = timedelta(days=30)


class LoanStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    PAID = "paid"
    DEFAULTED = "defaulted"


OPEN_STATUSES = [LoanStatus.PENDING, LoanStatus.APPROVED, LoanStatus.ACTIVE]


@dataclass
class Loan(StorageRecord):
    user_id: str
    amount: Decimal
    interest_rate: Decimal
    duration_months: int
    monthly_payment: Decimal
    total_payable: Decimal
    purpose: str = ""
    status: LoanStatus = LoanStatus.PENDING
    paid_amount: Decimal = ZERO
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def remaining_amount(self) -> Decimal:
        return max(self.total_payable - self.paid_amount, ZERO)

    @property
    def progress_percent(self) -> Decimal:
        if self.total_payable <= 0:
            return ZERO
        return min(quantize(self.paid_amount / self.total_payable * HUNDRED), HUNDRED)

    def to_response(self) -> Dict[str, Any]:
        data = self.to_dict()
        data['remaining_amount'] = str(self.remaining_amount)
        data['progress_percent'] = str(self.progress_percent)
        return data


class LoanManager:
    """Loan origination, disbursement and repayment tracking"""

    table_name = "loans"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        transactions: TransactionLedger,
        notifications: NotificationManager,
        config: Optional[BanklineConfig] = None
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.transactions = transactions
        self.notifications = notifications
        self.config = config or get_config()
        self.logger = get_logger("bankline.loans")

    def _save(self, loan: Loan) -> None:
        loan.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, loan.id, loan.to_dict())

    def get(self, loan_id: str) -> Optional[Loan]:
        data = self.storage.load(self.table_name, loan_id)
        if data:
            return Loan.from_dict(data)
        return None

    def _require(self, loan_id: str) -> Loan:
        loan = self.get(loan_id)
        if not loan:
            raise ValueError("Loan not found")
        return loan

    def apply_loan(self, user_id: str, amount: Any, duration_months: int, purpose: str = "") -> Loan:
        """
        Submit a loan application.

        Requires approved KYC and no other open loan. The monthly payment is
        fixed at application time from the configured annual rate.
        """
        amount = require_positive_amount(amount)
        duration_months = int(duration_months)
        if not 1 <= duration_months <= self.config.loan_max_duration_months:
            raise ValueError(f"Duration must be between 1 and {self.config.loan_max_duration_months} months")

        user = self.users.require_user(user_id)
        if user.kyc_status != KycStatus.APPROVED:
            raise ValueError("KYC verification required for loan applications")
        if self.storage.find_one(self.table_name, {'user_id': user.id, 'status': OPEN_STATUSES}):
            raise ValueError("You already have an active or pending loan")

        rate = to_decimal(self.config.loan_interest_rate)
        monthly = loan_monthly_payment(amount, rate, duration_months)
        now = datetime.now(timezone.utc)
        loan = Loan(
            id=new_id(),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            amount=amount,
            interest_rate=rate,
            duration_months=duration_months,
            monthly_payment=monthly,
            total_payable=quantize(monthly * duration_months),
            purpose=purpose,
        )
        self._save(loan)

        self.notifications.create(
            user.id, "Loan Application Submitted",
            f"Your loan application for {format_amount(amount)} has been submitted and is pending approval.",
            NotificationType.INFO
        )
        self.activity.log(user.id, ActorType.USER, "apply_loan", "loan", loan.id,
                          details={"amount": amount, "duration_months": duration_months})
        return loan

    def get_user_loans(self, user_id: str, page: int = 1, limit: int = 10,
                       status: Optional[LoanStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_loans(user_id, status), page, limit)

    def list_loans(self, user_id: Optional[str] = None, status: Optional[LoanStatus] = None) -> List[Loan]:
        filters: Dict[str, Any] = {'user_id': user_id} if user_id else {}
        if status:
            filters['status'] = status
        loans = [Loan.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        loans.sort(key=lambda l: l.created_at, reverse=True)
        return loans

    def get_all(self, page: int = 1, limit: int = 20, status: Optional[LoanStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_loans(None, status), page, limit)

    def approve_loan(self, loan_id: str, admin_id: str) -> Loan:
        loan = self._require(loan_id)
        if loan.status != LoanStatus.PENDING:
            raise ValueError("Loan is not pending")
        loan.status = LoanStatus.APPROVED
        loan.approved_by = admin_id
        loan.approved_at = datetime.now(timezone.utc)
        self._save(loan)

        self.notifications.create(
            loan.user_id, "Loan Approved",
            f"Your loan of {format_amount(loan.amount)} has been approved and is ready for disbursement.",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "approve_loan", "loan", loan.id)
        return loan

    def reject_loan(self, loan_id: str, admin_id: str, reason: Optional[str] = None) -> Loan:
        loan = self._require(loan_id)
        if loan.status != LoanStatus.PENDING:
            raise ValueError("Loan is not pending")
        loan.status = LoanStatus.REJECTED
        loan.rejection_reason = reason
        self._save(loan)

        self.notifications.create(
            loan.user_id, "Loan Rejected",
            f"Your loan application has been rejected. {reason or ''}".strip(),
            NotificationType.ERROR
        )
        self.activity.log(admin_id, ActorType.ADMIN, "reject_loan", "loan", loan.id, details={"reason": reason})
        return loan

    def disburse_loan(self, loan_id: str, admin_id: str) -> Loan:
        """Credit an approved loan to the customer's balance"""
        with self.storage.atomic():
            loan = self._require(loan_id)
            if loan.status != LoanStatus.APPROVED:
                raise ValueError("Loan must be approved before disbursement")
            user = self.users.require_user(loan.user_id)

            before = user.balance
            user.balance = before + loan.amount
            self.users.save_user(user)

            now = datetime.now(timezone.utc)
            loan.status = LoanStatus.ACTIVE
            loan.disbursed_at = now
            loan.next_payment_date = now + PAYMENT_INTERVAL
            self._save(loan)

            self.transactions.record(
                user.id, TransactionType.LOAN, loan.amount, before, user.balance,
                description="Loan disbursement",
                metadata={"loan_id": loan.id},
            )

        self.notifications.create(
            user.id, "Loan Disbursed",
            f"{format_amount(loan.amount)} has been credited to your account. "
            f"Monthly payment: {format_amount(loan.monthly_payment)}",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "disburse_loan", "loan", loan.id,
                          details={"amount": loan.amount})
        log_action(self.logger, "info", f"Loan {loan.id} disbursed: {loan.amount}",
                   user_id=admin_id, action="disburse_loan", resource=loan.id)
        return loan

    def record_payment(self, loan_id: str, amount: Any, admin_id: str) -> Loan:
        """Register a repayment; the loan closes once the total is covered"""
        amount = require_positive_amount(amount)
        loan = self._require(loan_id)
        if loan.status != LoanStatus.ACTIVE:
            raise ValueError("Loan is not active")

        loan.paid_amount = loan.paid_amount + amount
        if loan.paid_amount >= loan.total_payable:
            loan.status = LoanStatus.PAID
        else:
            loan.next_payment_date = datetime.now(timezone.utc) + PAYMENT_INTERVAL
        self._save(loan)

        self.notifications.create(
            loan.user_id, "Loan Payment Recorded",
            f"A payment of {format_amount(amount)} has been recorded. "
            f"Remaining: {format_amount(loan.total_payable - loan.paid_amount)}",
            NotificationType.INFO
        )
        self.activity.log(admin_id, ActorType.ADMIN, "record_loan_payment", "loan", loan.id,
                          details={"amount": amount, "paid_amount": loan.paid_amount})
        return loan

    def mark_defaulted(self, loan_id: str, admin_id: str) -> Loan:
        loan = self._require(loan_id)
        if loan.status != LoanStatus.ACTIVE:
            raise ValueError("Loan is not active")
        loan.status = LoanStatus.DEFAULTED
        self._save(loan)
        self.notifications.create(
            loan.user_id, "Loan Defaulted",
            f"Your loan of {format_amount(loan.amount)} has been marked as defaulted. Please contact support.",
            NotificationType.ERROR
        )
        self.activity.log(admin_id, ActorType.ADMIN, "default_loan", "loan", loan.id)
        log_action(self.logger, "warning", f"Loan {loan.id} defaulted",
                   user_id=admin_id, action="default_loan", resource=loan.id)
        return loan
