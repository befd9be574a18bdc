"""
Transfers Module

Internal book transfers between customers, local and international wire
transfers (with IMF/COT authorization codes and an emailed OTP), and
on-chain Bitcoin transfers from the customer's BTC balance.
"""

import re
from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .config import BanklineConfig, get_config
from .identifiers import new_id, generate_reference, generate_otp, mask_address, mask_email
from .logging_config import get_logger, log_action
from .mailer import Mailer
from .money import CRYPTO_PRECISION, ZERO, format_amount, percentage_of, quantize, require_positive_amount, to_decimal
from .notifications import NotificationManager, NotificationType
from .passwords import InvalidPinError
from .price_feed import CoinGeckoClient
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType, TransactionStatus
from .users import User, UserManager, UserStatus


class TransferType(Enum):
    INTERNAL = "internal"
    LOCAL = "local"
    INTERNATIONAL = "international"


class TransferStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class VerificationStep(Enum):
    IMF = "imf"
    COT = "cot"
    OTP = "otp"


OPEN_STATUSES = (TransferStatus.PENDING, TransferStatus.PROCESSING)

BITCOIN_ADDRESS_PATTERN = re.compile(r"^(1|3|bc1|tb1)[a-zA-HJ-NP-Z0-9]{25,62}$")

BITCOIN_STATUS_MESSAGES = {
    UserStatus.DORMANT: "Your account is currently dormant. Please contact support to reactivate.",
    UserStatus.SUSPENDED: "Your account has been suspended. Please contact support.",
    UserStatus.BLOCKED: "Your account has been blocked. Please contact support.",
}

RECIPIENT_FIELDS = ("account_number", "account_name", "bank_name", "bank_code",
                    "country", "swift_code", "routing_number")


@dataclass
class Transfer(StorageRecord):
    """A money movement out of a customer's account"""
    sender_id: str
    type: TransferType
    amount: Decimal
    fee: Decimal
    total_amount: Decimal
    reference: str
    recipient_id: Optional[str] = None
    recipient_details: Dict[str, Any] = field(default_factory=dict)
    currency: str = "USD"
    status: TransferStatus = TransferStatus.PENDING
    description: Optional[str] = None
    requires_imf_code: bool = False
    requires_cot_code: bool = False
    codes_verified: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    admin_note: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None


class TransferManager:
    """Creates, verifies and settles transfers"""

    table_name = "transfers"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        transactions: TransactionLedger,
        notifications: NotificationManager,
        mailer: Mailer,
        price_feed: Optional[CoinGeckoClient] = None,
        config: Optional[BanklineConfig] = None
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.transactions = transactions
        self.notifications = notifications
        self.mailer = mailer
        self.config = config or get_config()
        self.price_feed = price_feed or CoinGeckoClient(
            self.config.coingecko_url, self.config.coingecko_timeout, self.config.coingecko_retries
        )
        self.logger = get_logger("bankline.transfers")

    def _save(self, transfer: Transfer) -> None:
        transfer.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, transfer.id, transfer.to_dict())

    def get(self, transfer_id: str) -> Optional[Transfer]:
        data = self.storage.load(self.table_name, transfer_id)
        if data:
            return Transfer.from_dict(data)
        return None

    def _new_transfer(self, **fields) -> Transfer:
        now = datetime.now(timezone.utc)
        fields.setdefault('reference', generate_reference("TRF"))
        return Transfer(id=new_id(), created_at=now, updated_at=now, **fields)

    def create_internal_transfer(
        self,
        sender_id: str,
        recipient_account_number: str,
        amount: Any,
        description: Optional[str] = None
    ) -> Transfer:
        """Move funds between two customers of the bank, settled immediately"""
        amount = require_positive_amount(amount)

        with self.storage.atomic():
            sender = self.users.require_user(sender_id)
            if sender.status != UserStatus.ACTIVE:
                raise ValueError("Your account is not active")
            if sender.balance < amount:
                raise ValueError("Insufficient balance")
            self._check_daily_limit(sender, amount)

            recipient = self.users.get_by_account_number(recipient_account_number)
            if not recipient:
                raise ValueError("Recipient account not found")
            if recipient.id == sender.id:
                raise ValueError("Cannot transfer to yourself")

            sender_before = sender.balance
            sender.balance = sender_before - amount
            self.users.save_user(sender)

            recipient_before = recipient.balance
            recipient.balance = recipient_before + amount
            self.users.save_user(recipient)

            transfer = self._new_transfer(
                sender_id=sender.id,
                recipient_id=recipient.id,
                recipient_details={"account_number": recipient.account_number, "account_name": recipient.name},
                type=TransferType.INTERNAL,
                amount=amount,
                fee=Decimal("0.00"),
                total_amount=amount,
                status=TransferStatus.COMPLETED,
                description=description,
                codes_verified=True,
            )
            self._save(transfer)

            self.transactions.record(
                sender.id, TransactionType.TRANSFER_OUT, amount, sender_before, sender.balance,
                description=f"Transfer to {recipient.name} - {transfer.reference}",
                reference=transfer.reference,
            )
            self.transactions.record(
                recipient.id, TransactionType.TRANSFER_IN, amount, recipient_before, recipient.balance,
                description=f"Transfer from {sender.name} - {transfer.reference}",
                reference=f"{transfer.reference}-IN",
            )

        self.notifications.create(
            sender.id, "Transfer Successful",
            f"You have successfully transferred {format_amount(amount)} to {recipient.name}.",
            NotificationType.SUCCESS
        )
        self.notifications.create(
            recipient.id, "Money Received",
            f"You have received {format_amount(amount)} from {sender.name}.",
            NotificationType.SUCCESS
        )
        self.activity.log(sender.id, ActorType.USER, "internal_transfer", "transfer", transfer.id,
                          details={"amount": amount, "recipient_account_number": recipient_account_number})
        log_action(self.logger, "info", f"Internal transfer {transfer.reference} of {amount}",
                   user_id=sender.id, action="internal_transfer", resource=transfer.id)

        self.mailer.send_debit_alert(sender.email, sender.name, amount, f"Transfer to {recipient.name}",
                                     sender.balance, transfer.reference)
        self.mailer.send_credit_alert(recipient.email, recipient.name, amount, f"Transfer from {sender.name}",
                                      recipient.balance, f"{transfer.reference}-IN")
        return transfer

    def transferred_today(self, sender_id: str) -> Decimal:
        """Fiat sent since UTC midnight, excluding failed and cancelled transfers"""
        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return sum((t.amount for t in self.list_transfers(sender_id)
                    if t.created_at >= today and t.currency != "BTC"
                    and t.status not in (TransferStatus.FAILED, TransferStatus.CANCELLED)), ZERO)

    def _check_daily_limit(self, sender: User, amount: Decimal) -> None:
        remaining = sender.daily_transfer_limit - self.transferred_today(sender.id)
        if amount > remaining:
            raise ValueError(
                f"Daily transfer limit of {format_amount(sender.daily_transfer_limit)} exceeded. "
                f"Remaining today: {format_amount(max(remaining, ZERO))}"
            )

    def transfer_fee(self, type: TransferType, amount: Decimal) -> Decimal:
        if type == TransferType.LOCAL:
            return percentage_of(amount, self.config.local_transfer_fee_percent)
        return percentage_of(amount, self.config.international_transfer_fee_percent)

    def create_external_transfer(
        self,
        sender_id: str,
        type: TransferType,
        recipient_details: Dict[str, Any],
        amount: Any,
        description: Optional[str] = None
    ) -> Transfer:
        """
        Open a local or international wire transfer.

        The total (amount plus fee) leaves the balance immediately.
        International transfers wait for the sender's authorization codes;
        local ones go straight to processing.
        """
        if type not in (TransferType.LOCAL, TransferType.INTERNATIONAL):
            raise ValueError("Transfer type must be local or international")
        amount = require_positive_amount(amount)
        details = {k: recipient_details.get(k) for k in RECIPIENT_FIELDS if recipient_details.get(k)}
        if not details.get('account_number') or not details.get('account_name') or not details.get('bank_name'):
            raise ValueError("Recipient account number, name and bank are required")

        with self.storage.atomic():
            sender = self.users.require_user(sender_id)
            if sender.status != UserStatus.ACTIVE:
                raise ValueError("Your account is not active")

            fee = self.transfer_fee(type, amount)
            total = amount + fee
            if sender.balance < total:
                raise ValueError("Insufficient balance (including fees)")
            self._check_daily_limit(sender, amount)

            international = type == TransferType.INTERNATIONAL
            before = sender.balance
            sender.balance = before - total
            self.users.save_user(sender)

            transfer = self._new_transfer(
                sender_id=sender.id,
                recipient_details=details,
                type=type,
                amount=amount,
                fee=fee,
                total_amount=total,
                status=TransferStatus.PENDING if international else TransferStatus.PROCESSING,
                description=description,
                requires_imf_code=international and bool(sender.imf_code),
                requires_cot_code=international and bool(sender.cot_code),
                codes_verified=not international,
            )
            self._save(transfer)

            label = "International" if international else "Local"
            self.transactions.record(
                sender.id, TransactionType.TRANSFER_OUT, total, before, sender.balance,
                status=TransactionStatus.PENDING,
                description=f"{label} transfer to {details['account_name']} - {transfer.reference}",
                reference=transfer.reference,
                metadata={"transfer_id": transfer.id, "fee": fee},
            )

        suffix = " and requires verification codes" if international else ""
        self.notifications.create(
            sender.id, "Transfer Initiated",
            f"Your {type.value} transfer of {format_amount(amount)} has been initiated{suffix}.",
            NotificationType.INFO
        )
        action = f"create_{type.value}_transfer"
        self.activity.log(sender.id, ActorType.USER, action, "transfer", transfer.id,
                          details={"amount": amount, "fee": fee, "recipient_details": details})
        log_action(self.logger, "info", f"{label} transfer {transfer.reference} of {amount} (fee {fee})",
                   user_id=sender.id, action=action, resource=transfer.id)
        return transfer

    def verify_transfer_codes(
        self,
        transfer_id: str,
        user_id: str,
        imf_code: Optional[str] = None,
        cot_code: Optional[str] = None
    ) -> Transfer:
        """Check the IMF/COT codes on a pending international transfer and release it"""
        transfer = self.get(transfer_id)
        if not transfer:
            raise ValueError("Transfer not found")
        if transfer.sender_id != user_id:
            raise PermissionError("Unauthorized")
        if transfer.status != TransferStatus.PENDING:
            raise ValueError("Transfer is not pending verification")

        user = self.users.require_user(user_id)
        if transfer.requires_imf_code and imf_code != user.imf_code:
            raise ValueError("Invalid IMF code")
        if transfer.requires_cot_code and cot_code != user.cot_code:
            raise ValueError("Invalid COT code")

        with self.storage.atomic():
            transfer.codes_verified = True
            transfer.status = TransferStatus.PROCESSING
            self._save(transfer)
            self.transactions.update_status_by_reference(transfer.reference, TransactionStatus.COMPLETED)

        self.notifications.create(
            user.id, "Transfer Verified",
            f"Your transfer of {format_amount(transfer.amount)} has been verified and is being processed.",
            NotificationType.SUCCESS
        )
        self.activity.log(user.id, ActorType.USER, "verify_transfer_codes", "transfer", transfer.id)
        return transfer

    def send_transfer_otp(self, user_id: str, amount: Any = 0, recipient_name: Optional[str] = None) -> Dict[str, Any]:
        """Store a fresh one-time password on the user and email it"""
        user = self.users.require_user(user_id)
        expiry_minutes = self.config.transfer_otp_expiry_minutes
        now = datetime.now(timezone.utc)

        otp = generate_otp()
        user.pending_otp = otp
        user.pending_otp_expiry = now + timedelta(minutes=expiry_minutes)
        user.pending_otp_sent_at = now
        self.users.save_user(user)

        self.mailer.send_transfer_otp(user.email, user.name, otp, to_decimal(amount or 0),
                                      recipient_name or "Recipient", expiry_minutes)
        log_action(self.logger, "info", "Transfer OTP issued", user_id=user.id, action="send_transfer_otp")
        return {"message": f"OTP sent to {mask_email(user.email)}", "expires_in": expiry_minutes * 60}

    def verify_step(self, user_id: str, step: str, code: str) -> Dict[str, Any]:
        """Verify one step of the imf -> cot -> otp sequence"""
        user = self.users.require_user(user_id)
        try:
            step = VerificationStep(step)
        except ValueError:
            raise ValueError("Invalid verification step")

        if step == VerificationStep.IMF:
            if not user.imf_code:
                raise ValueError("IMF Code not set. Please contact support.")
            if code != user.imf_code:
                raise ValueError("Invalid IMF Code. Please check and try again.")
            return {"verified": True, "next_step": "cot"}

        if step == VerificationStep.COT:
            if not user.cot_code:
                raise ValueError("COT Code not set. Please contact support.")
            if code != user.cot_code:
                raise ValueError("Invalid COT Code. Please check and try again.")
            return {"verified": True, "next_step": "otp"}

        if not user.pending_otp or not user.pending_otp_expiry:
            raise ValueError("OTP not found. Please request a new OTP.")
        if datetime.now(timezone.utc) > user.pending_otp_expiry:
            raise ValueError("OTP has expired. Please request a new OTP.")
        if code != user.pending_otp:
            raise ValueError("Invalid OTP. Please check and try again.")

        user.pending_otp = None
        user.pending_otp_expiry = None
        user.pending_otp_sent_at = None
        self.users.save_user(user)
        return {"verified": True, "next_step": "complete"}

    def process_transfer(
        self,
        transfer_id: str,
        status: TransferStatus,
        admin_id: str,
        admin_note: Optional[str] = None
    ) -> Transfer:
        """Finalize a transfer; failed or cancelled transfers are refunded"""
        if status not in (TransferStatus.COMPLETED, TransferStatus.FAILED, TransferStatus.CANCELLED):
            raise ValueError("Status must be completed, failed or cancelled")

        with self.storage.atomic():
            transfer = self.get(transfer_id)
            if not transfer:
                raise ValueError("Transfer not found")
            if transfer.status not in OPEN_STATUSES:
                raise ValueError("Transfer has already been finalized")

            transfer.status = status
            transfer.admin_note = admin_note
            transfer.processed_by = admin_id
            transfer.processed_at = datetime.now(timezone.utc)
            self._save(transfer)

            self.transactions.update_status_by_reference(
                transfer.reference,
                TransactionStatus.COMPLETED if status == TransferStatus.COMPLETED else TransactionStatus.FAILED
            )

            sender = self.users.get_user(transfer.sender_id)
            refunded = sender is not None and status != TransferStatus.COMPLETED
            if refunded:
                if transfer.currency == "BTC":
                    sender.bitcoin_balance = sender.bitcoin_balance + transfer.total_amount
                else:
                    sender.balance = sender.balance + transfer.total_amount
                self.users.save_user(sender)

        shown = format_amount(transfer.amount, transfer.currency)
        if refunded:
            self.notifications.create(
                sender.id, "Transfer Failed",
                f"Your transfer of {shown} has failed and been refunded. {admin_note or ''}".strip(),
                NotificationType.ERROR
            )
        elif sender:
            self.notifications.create(
                sender.id, "Transfer Completed",
                f"Your transfer of {shown} has been completed successfully.",
                NotificationType.SUCCESS
            )

        action = f"process_transfer_{status.value}"
        self.activity.log(admin_id, ActorType.ADMIN, action, "transfer", transfer.id,
                          details={"amount": transfer.amount, "status": status.value, "admin_note": admin_note})
        log_action(self.logger, "info", f"Transfer {transfer.reference} {status.value}",
                   user_id=admin_id, action=action, resource=transfer.id)
        return transfer

    def create_bitcoin_transfer(
        self,
        user_id: str,
        amount: Any,
        recipient_address: str,
        pin: Optional[str]
    ) -> Transfer:
        """Send BTC from the customer's Bitcoin balance to an external wallet"""
        user = self.users.require_user(user_id)
        message = BITCOIN_STATUS_MESSAGES.get(user.status)
        if message:
            raise PermissionError(message)

        amount = require_positive_amount(amount, CRYPTO_PRECISION)
        minimum = to_decimal(self.config.min_bitcoin_transfer)
        if amount < minimum:
            raise ValueError(f"Minimum transfer is {minimum} BTC")
        recipient_address = (recipient_address or "").strip()
        if not BITCOIN_ADDRESS_PATTERN.match(recipient_address):
            raise ValueError("Invalid Bitcoin wallet address format")
        if not self.users.verify_pin(user.id, pin):
            raise InvalidPinError()
        if user.bitcoin_balance < amount:
            raise ValueError(f"Insufficient Bitcoin balance. Available: {format_amount(user.bitcoin_balance, 'BTC')}")

        btc_price = self.price_feed.get_btc_price(user.currency or "USD")
        fiat_equivalent = quantize(amount * btc_price) if btc_price is not None else None
        short_address = mask_address(recipient_address)

        with self.storage.atomic():
            before = user.bitcoin_balance
            user.bitcoin_balance = before - amount
            self.users.save_user(user)

            metadata = {
                "transfer_type": "bitcoin",
                "recipient_address": recipient_address,
                "btc_price": btc_price,
                "user_currency": user.currency,
                "fiat_equivalent": fiat_equivalent,
            }
            transfer = self._new_transfer(
                sender_id=user.id,
                recipient_details={
                    "account_number": recipient_address,
                    "account_name": "Bitcoin Wallet",
                    "bank_name": "Bitcoin Network",
                },
                type=TransferType.INTERNATIONAL,
                amount=amount,
                fee=Decimal("0"),
                total_amount=amount,
                currency="BTC",
                reference=generate_reference("BTC"),
                description=f"Bitcoin transfer to {short_address}",
                codes_verified=True,
                metadata=dict(metadata, balance_before=before, balance_after=user.bitcoin_balance),
            )
            self._save(transfer)

            self.transactions.record(
                user.id, TransactionType.TRANSFER_OUT, amount, before, user.bitcoin_balance,
                status=TransactionStatus.PENDING,
                description=f"Bitcoin transfer - {transfer.reference}",
                reference=transfer.reference,
                currency="BTC",
                metadata=dict(metadata, transfer_id=transfer.id),
            )

        self.notifications.create(
            user.id, "Bitcoin Transfer Initiated",
            f"Your transfer of {format_amount(amount, 'BTC')} to {short_address} is being processed.",
            NotificationType.INFO
        )
        self.activity.log(user.id, ActorType.USER, "bitcoin_transfer", "transfer", transfer.id,
                          details={"amount": amount, "recipient_address": short_address,
                                   "reference": transfer.reference, "status": "pending"})
        log_action(self.logger, "info", f"Bitcoin transfer {transfer.reference} of {amount} BTC",
                   user_id=user.id, action="bitcoin_transfer", resource=transfer.id)
        return transfer

    def list_transfers(self, sender_id: Optional[str] = None, type: Optional[TransferType] = None,
                       status: Optional[TransferStatus] = None) -> List[Transfer]:
        filters: Dict[str, Any] = {'sender_id': sender_id} if sender_id else {}
        if type:
            filters['type'] = type
        if status:
            filters['status'] = status
        transfers = [Transfer.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        transfers.sort(key=lambda t: t.created_at, reverse=True)
        return transfers

    def get_user_transfers(self, user_id: str, page: int = 1, limit: int = 10,
                           type: Optional[TransferType] = None,
                           status: Optional[TransferStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_transfers(user_id, type, status), page, limit)

    def get_all(self, page: int = 1, limit: int = 20, type: Optional[TransferType] = None,
                status: Optional[TransferStatus] = None) -> Dict[str, Any]:
        return paginate(self.list_transfers(None, type, status), page, limit)

    def count_pending(self) -> int:
        return len(self.storage.find(self.table_name, {'status': TransferStatus.PENDING}))
