"""
Cards Module

Virtual debit cards: customer applications, PIN management and blocking,
plus admin approval and balance adjustments. Each card carries its own
balance with a separate card transaction history.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import (
    new_id, generate_reference, generate_card_number, generate_cvv, generate_card_expiry, mask_card_number,
)
from .logging_config import get_logger, log_action
from .money import ZERO, format_amount, require_positive_amount
from .notifications import NotificationManager, NotificationType
from .passwords import hash_secret, verify_secret, validate_pin
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionStatus
from .users import UserManager


class CardType(Enum):
    VISA = "visa"
    MASTERCARD = "mastercard"


class CardStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    BLOCKED = "blocked"
    EXPIRED = "expired"


class CardTransactionType(Enum):
    TOPUP = "topup"
    PURCHASE = "purchase"
    WITHDRAWAL = "withdrawal"
    REFUND = "refund"


@dataclass
class Card(StorageRecord):
    user_id: str
    card_number: str
    card_number_last4: str
    expiry_month: str
    expiry_year: str
    cvv: str
    cardholder_name: str
    card_type: CardType
    card_design: Optional[str] = None
    balance: Decimal = ZERO
    status: CardStatus = CardStatus.PENDING
    pin_hash: Optional[str] = None
    pin_salt: Optional[str] = None
    daily_limit: Decimal = Decimal("5000")
    monthly_limit: Decimal = Decimal("50000")
    billing_address: Dict[str, Any] = field(default_factory=dict)
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None

    @property
    def masked_number(self) -> str:
        return mask_card_number(self.card_number)

    @property
    def expiry_date(self) -> str:
        return f"{self.expiry_month}/{self.expiry_year}"


@dataclass
class CardTransaction(StorageRecord):
    card_id: str
    user_id: str
    type: CardTransactionType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    reference: str
    description: str = ""
    merchant: Optional[str] = None
    status: TransactionStatus = TransactionStatus.COMPLETED


def sanitize_card(card: Card) -> Dict[str, Any]:
    """Card as shown to its owner: no PIN material"""
    data = card.to_dict()
    data.pop('pin_hash', None)
    data.pop('pin_salt', None)
    data['has_pin'] = bool(card.pin_hash)
    data['masked_number'] = card.masked_number
    data['expiry_date'] = card.expiry_date
    return data


class CardManager:
    """Card lifecycle for customers and administrators"""

    table_name = "cards"
    transactions_table = "card_transactions"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        notifications: NotificationManager
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.notifications = notifications
        self.logger = get_logger("bankline.cards")

    def _save(self, card: Card) -> None:
        card.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, card.id, card.to_dict())

    def get_card(self, card_id: str) -> Optional[Card]:
        data = self.storage.load(self.table_name, card_id)
        if data:
            return Card.from_dict(data)
        return None

    def _require_card(self, card_id: str, user_id: Optional[str] = None) -> Card:
        card = self.get_card(card_id)
        if not card or (user_id is not None and card.user_id != user_id):
            raise ValueError("Card not found")
        return card

    def _unique_card_number(self, card_type: CardType) -> str:
        while True:
            number = generate_card_number(card_type.value)
            if not self.storage.find_one(self.table_name, {'card_number': number}):
                return number

    def get_user_cards(self, user_id: str, status: Optional[CardStatus] = None) -> List[Card]:
        filters: Dict[str, Any] = {'user_id': user_id}
        if status:
            filters['status'] = status
        cards = [Card.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        cards.sort(key=lambda c: c.created_at, reverse=True)
        return cards

    def apply_card(
        self,
        user_id: str,
        card_type: CardType,
        cardholder_name: str,
        billing_address: Optional[Dict[str, Any]] = None,
        card_design: Optional[str] = None
    ) -> Card:
        """Open a pending card application with freshly generated credentials"""
        user = self.users.require_user(user_id)
        if not cardholder_name:
            raise ValueError("Cardholder name is required")

        number = self._unique_card_number(card_type)
        month, year = generate_card_expiry()
        now = datetime.now(timezone.utc)
        card = Card(
            id=new_id(),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            card_number=number,
            card_number_last4=number[-4:],
            expiry_month=month,
            expiry_year=year,
            cvv=generate_cvv(),
            cardholder_name=cardholder_name,
            card_type=card_type,
            card_design=card_design,
            billing_address=billing_address or {},
        )
        self._save(card)

        self.notifications.create(
            user.id, "Card Application Submitted",
            f"Your {card_type.value} card application has been submitted and is pending approval.",
            NotificationType.INFO
        )
        self.activity.log(user.id, ActorType.USER, "apply_card", "card", card.id,
                          details={"card_type": card_type.value})
        return card

    def set_card_pin(self, card_id: str, user_id: str, pin: str) -> None:
        card = self._require_card(card_id, user_id)
        validate_pin(pin)
        card.pin_hash, card.pin_salt = hash_secret(pin)
        self._save(card)
        self.activity.log(user_id, ActorType.USER, "set_card_pin", "card", card.id)

    def verify_card_pin(self, card_id: str, pin: str) -> bool:
        card = self.get_card(card_id)
        if not card or not card.pin_hash:
            return False
        return verify_secret(pin, card.pin_hash, card.pin_salt)

    def activate_card(self, card_id: str, user_id: str) -> Card:
        card = self._require_card(card_id, user_id)
        if card.status not in (CardStatus.ACTIVE, CardStatus.PENDING):
            raise ValueError("Card cannot be activated")
        card.status = CardStatus.ACTIVE
        self._save(card)
        return card

    def block_card(self, card_id: str, user_id: str) -> Card:
        card = self._require_card(card_id, user_id)
        card.status = CardStatus.BLOCKED
        self._save(card)
        self.activity.log(user_id, ActorType.USER, "block_card", "card", card.id)
        return card

    def get_card_transactions(self, card_id: str, user_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        card = self._require_card(card_id, user_id)
        items = [CardTransaction.from_dict(d)
                 for d in self.storage.find(self.transactions_table, {'card_id': card.id})]
        items.sort(key=lambda t: t.created_at, reverse=True)
        return paginate(items, page, limit)

    def can_use(self, card: Card, amount: Decimal) -> bool:
        """Whether an active card can cover a single spend of amount"""
        return (
            card.status == CardStatus.ACTIVE
            and amount <= card.balance
            and amount <= card.daily_limit
        )

    # Admin operations

    def get_all(self, page: int = 1, limit: int = 20, status: Optional[CardStatus] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {'status': status} if status else {}
        cards = [Card.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        cards.sort(key=lambda c: c.created_at, reverse=True)
        return paginate(cards, page, limit)

    def approve_card(self, card_id: str, admin_id: str) -> Card:
        card = self._require_card(card_id)
        if card.status != CardStatus.PENDING:
            raise ValueError("Card is not pending approval")
        card.status = CardStatus.ACTIVE
        card.approved_by = admin_id
        card.approved_at = datetime.now(timezone.utc)
        self._save(card)

        self.notifications.create(
            card.user_id, "Card Approved",
            f"Your {card.card_type.value} card has been approved and is now active.",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "approve_card", "card", card.id)
        return card

    def reject_card(self, card_id: str, admin_id: str, reason: Optional[str] = None) -> Card:
        """Reject an application; the card record is removed"""
        card = self._require_card(card_id)
        self.storage.delete(self.table_name, card.id)

        self.notifications.create(
            card.user_id, "Card Application Rejected",
            f"Your {card.card_type.value} card application has been rejected. {reason or ''}".strip(),
            NotificationType.ERROR
        )
        self.activity.log(admin_id, ActorType.ADMIN, "reject_card", "card", card.id,
                          details={"reason": reason})
        return card

    def _record(self, card: Card, type: CardTransactionType, amount: Decimal, before: Decimal,
                description: str) -> CardTransaction:
        now = datetime.now(timezone.utc)
        entry = CardTransaction(
            id=new_id(),
            created_at=now,
            updated_at=now,
            card_id=card.id,
            user_id=card.user_id,
            type=type,
            amount=amount,
            balance_before=before,
            balance_after=card.balance,
            reference=generate_reference("CRD"),
            description=description,
        )
        self.storage.save(self.transactions_table, entry.id, entry.to_dict())
        return entry

    def topup_card(self, card_id: str, amount: Any, admin_id: str) -> Card:
        amount = require_positive_amount(amount)
        with self.storage.atomic():
            card = self._require_card(card_id)
            before = card.balance
            card.balance = before + amount
            self._save(card)
            self._record(card, CardTransactionType.TOPUP, amount, before, "Admin topup")

        self.notifications.create(
            card.user_id, "Card Topped Up",
            f"Your card ending in {card.card_number_last4} has been topped up with {format_amount(amount)}.",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "topup_card", "card", card.id, details={"amount": amount})
        log_action(self.logger, "info", f"Card {card.card_number_last4} topped up by {amount}",
                   user_id=admin_id, action="topup_card", resource=card.id)
        return card

    def deduct_card(self, card_id: str, amount: Any, admin_id: str, description: Optional[str] = None) -> Card:
        amount = require_positive_amount(amount)
        with self.storage.atomic():
            card = self._require_card(card_id)
            if card.balance < amount:
                raise ValueError("Insufficient card balance")
            before = card.balance
            card.balance = before - amount
            self._save(card)
            self._record(card, CardTransactionType.WITHDRAWAL, amount, before, description or "Admin deduction")

        self.activity.log(admin_id, ActorType.ADMIN, "deduct_card", "card", card.id,
                          details={"amount": amount, "description": description})
        log_action(self.logger, "info", f"Card {card.card_number_last4} debited by {amount}",
                   user_id=admin_id, action="deduct_card", resource=card.id)
        return card

    def admin_block_card(self, card_id: str, admin_id: str) -> Card:
        card = self._require_card(card_id)
        card.status = CardStatus.BLOCKED
        self._save(card)
        self.notifications.create(
            card.user_id, "Card Blocked",
            f"Your card ending in {card.card_number_last4} has been blocked.",
            NotificationType.WARNING
        )
        self.activity.log(admin_id, ActorType.ADMIN, "block_card", "card", card.id)
        return card

    def admin_unblock_card(self, card_id: str, admin_id: str) -> Card:
        card = self._require_card(card_id)
        card.status = CardStatus.ACTIVE
        self._save(card)
        self.notifications.create(
            card.user_id, "Card Unblocked",
            f"Your card ending in {card.card_number_last4} has been unblocked.",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "unblock_card", "card", card.id)
        return card
