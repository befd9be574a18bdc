"""
Trading Signals Module

Signal providers publish buy/sell calls on market assets. Customers pay a
monthly-rated fee to follow a provider and see its signals; closing a signal
recomputes the provider's win rate and cumulative profit.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .logging_config import get_logger, log_action
from .money import HUNDRED, ZERO, format_amount, quantize, to_decimal
from .notifications import NotificationManager, NotificationType
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType
from .users import UserManager

BILLING_PERIOD_DAYS = 30


class ProviderStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SignalStatus(Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class SignalAction(Enum):
    BUY = "buy"
    SELL = "sell"


class SignalResult(Enum):
    WIN = "win"
    LOSS = "loss"


class SubscriptionStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass
class SignalProvider(StorageRecord):
    name: str
    subscription_fee: Decimal
    description: str = ""
    avatar: Optional[str] = None
    win_rate: Decimal = ZERO
    total_signals: int = 0
    profit_percentage: Decimal = ZERO
    followers: int = 0
    status: ProviderStatus = ProviderStatus.ACTIVE


@dataclass
class Signal(StorageRecord):
    provider_id: str
    asset: str
    action: SignalAction
    entry_price: Decimal
    take_profit: Decimal
    stop_loss: Decimal
    status: SignalStatus = SignalStatus.ACTIVE
    result: Optional[SignalResult] = None
    profit_loss: Optional[Decimal] = None
    closed_at: Optional[datetime] = None


@dataclass
class SignalSubscription(StorageRecord):
    user_id: str
    provider_id: str
    provider_name: str
    fee: Decimal
    start_date: datetime
    end_date: datetime
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE

    def is_current(self, at: Optional[datetime] = None) -> bool:
        at = at or datetime.now(timezone.utc)
        return self.status == SubscriptionStatus.ACTIVE and self.end_date >= at


class SignalManager:
    """Signal providers, their signals and customer subscriptions"""

    providers_table = "signal_providers"
    signals_table = "signals"
    subscriptions_table = "signal_subscriptions"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        transactions: TransactionLedger,
        notifications: NotificationManager
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.transactions = transactions
        self.notifications = notifications
        self.logger = get_logger("bankline.signals")

    def _save(self, table: str, record: StorageRecord) -> None:
        record.updated_at = datetime.now(timezone.utc)
        self.storage.save(table, record.id, record.to_dict())

    def get_provider(self, provider_id: str) -> Optional[SignalProvider]:
        data = self.storage.load(self.providers_table, provider_id)
        if data:
            return SignalProvider.from_dict(data)
        return None

    def get_signal(self, signal_id: str) -> Optional[Signal]:
        data = self.storage.load(self.signals_table, signal_id)
        if data:
            return Signal.from_dict(data)
        return None

    def get_active_providers(self) -> List[SignalProvider]:
        providers = [SignalProvider.from_dict(d)
                     for d in self.storage.find(self.providers_table, {'status': ProviderStatus.ACTIVE})]
        providers.sort(key=lambda p: p.win_rate, reverse=True)
        return providers

    def get_provider_signals(self, provider_id: str, page: int = 1, limit: int = 10,
                             status: Optional[SignalStatus] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {'provider_id': provider_id}
        if status:
            filters['status'] = status
        signals = [Signal.from_dict(d) for d in self.storage.find(self.signals_table, filters)]
        signals.sort(key=lambda s: s.created_at, reverse=True)
        return paginate(signals, page, limit)

    @staticmethod
    def subscription_fee(provider: SignalProvider, duration_days: int) -> Decimal:
        """The monthly fee pro-rated over `duration_days`"""
        return quantize(provider.subscription_fee * Decimal(duration_days) / BILLING_PERIOD_DAYS)

    # Customer operations

    def is_subscribed(self, user_id: str, provider_id: str) -> bool:
        return any(
            SignalSubscription.from_dict(d).is_current()
            for d in self.storage.find(self.subscriptions_table, {'user_id': user_id, 'provider_id': provider_id})
        )

    def subscribe(self, user_id: str, provider_id: str, duration_days: int = BILLING_PERIOD_DAYS) -> SignalSubscription:
        duration_days = int(duration_days)
        if duration_days < 1:
            raise ValueError("Duration must be at least 1 day")

        with self.storage.atomic():
            user = self.users.require_user(user_id)
            provider = self.get_provider(provider_id)
            if not provider or provider.status != ProviderStatus.ACTIVE:
                raise ValueError("Provider not found or inactive")
            if self.is_subscribed(user.id, provider.id):
                raise ValueError("Already subscribed to this provider")

            fee = self.subscription_fee(provider, duration_days)
            if user.balance < fee:
                raise ValueError("Insufficient balance")

            before = user.balance
            user.balance = before - fee
            self.users.save_user(user)

            now = datetime.now(timezone.utc)
            subscription = SignalSubscription(
                id=new_id(),
                created_at=now,
                updated_at=now,
                user_id=user.id,
                provider_id=provider.id,
                provider_name=provider.name,
                fee=fee,
                start_date=now,
                end_date=now + timedelta(days=duration_days),
            )
            self._save(self.subscriptions_table, subscription)

            provider.followers += 1
            self._save(self.providers_table, provider)

            if fee > ZERO:
                self.transactions.record(
                    user.id, TransactionType.FEE, fee, before, user.balance,
                    description=f"Signal subscription: {provider.name}",
                    metadata={"provider_id": provider.id, "subscription_id": subscription.id},
                )

        self.notifications.create(
            user.id, "Signal Subscription Active",
            f"You are now subscribed to {provider.name}'s signals until {subscription.end_date.date().isoformat()}.",
            NotificationType.SUCCESS
        )
        self.activity.log(user.id, ActorType.USER, "subscribe_signals", "signal_subscription", subscription.id,
                          details={"provider_id": provider.id, "fee": fee, "duration_days": duration_days})
        log_action(self.logger, "info", f"Signal subscription {subscription.id} charged {format_amount(fee)}",
                   user_id=user.id, action="subscribe_signals", resource=subscription.id)
        return subscription

    def get_user_subscriptions(self, user_id: str, active_only: bool = False) -> List[SignalSubscription]:
        subscriptions = [SignalSubscription.from_dict(d)
                         for d in self.storage.find(self.subscriptions_table, {'user_id': user_id})]
        if active_only:
            subscriptions = [s for s in subscriptions if s.is_current()]
        subscriptions.sort(key=lambda s: s.created_at, reverse=True)
        return subscriptions

    def get_signals_for_subscriber(self, user_id: str, provider_id: str, page: int = 1,
                                   limit: int = 10) -> Dict[str, Any]:
        if not self.is_subscribed(user_id, provider_id):
            raise PermissionError("You must subscribe to view signals")
        return self.get_provider_signals(provider_id, page, limit)

    # Admin operations

    def get_all_providers(self) -> List[SignalProvider]:
        providers = [SignalProvider.from_dict(d) for d in self.storage.load_all(self.providers_table)]
        providers.sort(key=lambda p: p.created_at, reverse=True)
        return providers

    def create_provider(self, data: Dict[str, Any], admin_id: str) -> SignalProvider:
        if not data.get("name") or data.get("subscription_fee") in (None, ""):
            raise ValueError("Name and subscription fee are required")
        fee = quantize(data["subscription_fee"])
        if fee < ZERO:
            raise ValueError("Subscription fee cannot be negative")

        now = datetime.now(timezone.utc)
        provider = SignalProvider(
            id=new_id(),
            created_at=now,
            updated_at=now,
            name=data["name"],
            subscription_fee=fee,
            description=data.get("description") or "",
            avatar=data.get("avatar"),
        )
        self._save(self.providers_table, provider)
        self.activity.log(admin_id, ActorType.ADMIN, "create_signal_provider", "signal_provider", provider.id,
                          details={"name": provider.name, "subscription_fee": fee})
        return provider

    def create_signal(self, provider_id: str, data: Dict[str, Any], admin_id: str) -> Signal:
        provider = self.get_provider(provider_id)
        if not provider:
            raise ValueError("Provider not found")
        for key in ("asset", "action", "entry_price", "take_profit", "stop_loss"):
            if data.get(key) in (None, ""):
                raise ValueError("All signal details are required")

        now = datetime.now(timezone.utc)
        signal = Signal(
            id=new_id(),
            created_at=now,
            updated_at=now,
            provider_id=provider.id,
            asset=data["asset"],
            action=SignalAction(data["action"]),
            entry_price=to_decimal(data["entry_price"]),
            take_profit=to_decimal(data["take_profit"]),
            stop_loss=to_decimal(data["stop_loss"]),
        )
        with self.storage.atomic():
            self._save(self.signals_table, signal)
            provider.total_signals += 1
            self._save(self.providers_table, provider)

        self.activity.log(admin_id, ActorType.ADMIN, "create_signal", "signal", signal.id,
                          details={"provider_id": provider.id, "asset": signal.asset, "action": signal.action})
        return signal

    def close_signal(self, signal_id: str, result: Any, profit_loss: Any, admin_id: str) -> Signal:
        """Close a signal and refresh the provider's win rate and profit"""
        with self.storage.atomic():
            signal = self.get_signal(signal_id)
            if not signal:
                raise ValueError("Signal not found")
            if signal.status != SignalStatus.ACTIVE:
                raise ValueError("Signal is already closed")

            signal.status = SignalStatus.CLOSED
            signal.result = SignalResult(result)
            signal.profit_loss = to_decimal(profit_loss or 0)
            signal.closed_at = datetime.now(timezone.utc)
            self._save(self.signals_table, signal)

            provider = self.get_provider(signal.provider_id)
            if provider:
                closed = [Signal.from_dict(d) for d in self.storage.find(
                    self.signals_table, {'provider_id': provider.id, 'status': SignalStatus.CLOSED})]
                wins = sum(1 for s in closed if s.result == SignalResult.WIN)
                provider.win_rate = quantize(Decimal(wins) * HUNDRED / len(closed))
                provider.profit_percentage = sum((s.profit_loss or ZERO for s in closed), ZERO)
                self._save(self.providers_table, provider)

        self.activity.log(admin_id, ActorType.ADMIN, "close_signal", "signal", signal.id,
                          details={"result": signal.result, "profit_loss": signal.profit_loss})
        return signal
