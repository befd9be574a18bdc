"""
Crypto Module

Admin-priced crypto assets with per-user wallets (buy, sell and swap against
the fiat balance), and the live-priced swap between a customer's fiat
balance and Bitcoin balance.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .config import BanklineConfig, get_config
from .identifiers import new_id, generate_reference
from .logging_config import get_logger, log_action
from .money import (
    CRYPTO_PRECISION, ZERO, format_amount, percentage_of, quantize, quantize_crypto,
    require_positive, require_positive_amount, to_decimal,
)
from .notifications import NotificationManager, NotificationType
from .price_feed import CoinGeckoClient, PriceUnavailableError
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType
from .users import User, UserManager

FIAT = "FIAT"
BTC = "BTC"


class CryptoTransactionType(Enum):
    BUY = "buy"
    SELL = "sell"
    SWAP = "swap"


class CryptoTransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CryptoAsset(StorageRecord):
    symbol: str
    name: str
    price: Decimal
    change_24h: Decimal = ZERO
    icon: Optional[str] = None
    is_active: bool = True


@dataclass
class CryptoWallet(StorageRecord):
    user_id: str
    asset: str
    balance: Decimal = ZERO


@dataclass
class CryptoTransaction(StorageRecord):
    user_id: str
    type: CryptoTransactionType
    from_asset: str
    to_asset: str
    from_amount: Decimal
    to_amount: Decimal
    rate: Decimal
    fee: Decimal
    reference: str
    status: CryptoTransactionStatus = CryptoTransactionStatus.COMPLETED


class CryptoManager:
    """Crypto trading against the customer's fiat balance"""

    assets_table = "crypto_assets"
    wallets_table = "crypto_wallets"
    transactions_table = "crypto_transactions"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        transactions: TransactionLedger,
        notifications: NotificationManager,
        price_feed: Optional[CoinGeckoClient] = None,
        config: Optional[BanklineConfig] = None
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.transactions = transactions
        self.notifications = notifications
        self.config = config or get_config()
        self.price_feed = price_feed or CoinGeckoClient(
            self.config.coingecko_url, self.config.coingecko_timeout, self.config.coingecko_retries
        )
        self.logger = get_logger("bankline.crypto")

    # Assets

    def get_asset(self, symbol: str, active_only: bool = True) -> Optional[CryptoAsset]:
        filters: Dict[str, Any] = {'symbol': symbol.upper()}
        if active_only:
            filters['is_active'] = True
        data = self.storage.find_one(self.assets_table, filters)
        if data:
            return CryptoAsset.from_dict(data)
        return None

    def get_assets(self) -> List[CryptoAsset]:
        assets = [CryptoAsset.from_dict(d) for d in self.storage.find(self.assets_table, {'is_active': True})]
        assets.sort(key=lambda a: a.symbol)
        return assets

    def create_asset(self, symbol: str, name: str, price: Any, icon: Optional[str] = None,
                     admin_id: Optional[str] = None) -> CryptoAsset:
        symbol = symbol.upper()
        if self.get_asset(symbol, active_only=False):
            raise ValueError("Asset already exists")
        now = datetime.now(timezone.utc)
        asset = CryptoAsset(id=new_id(), created_at=now, updated_at=now, symbol=symbol, name=name,
                            price=require_positive(price), icon=icon)
        self.storage.save(self.assets_table, asset.id, asset.to_dict())
        if admin_id:
            self.activity.log(admin_id, ActorType.ADMIN, "create_crypto_asset", "crypto_asset", asset.id,
                              details={"symbol": symbol})
        return asset

    def update_asset_price(self, symbol: str, price: Any, change_24h: Any = None,
                           admin_id: Optional[str] = None) -> CryptoAsset:
        asset = self.get_asset(symbol, active_only=False)
        if not asset:
            raise ValueError("Asset not found")
        asset.price = require_positive(price)
        if change_24h is not None:
            asset.change_24h = to_decimal(change_24h)
        asset.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.assets_table, asset.id, asset.to_dict())
        if admin_id:
            self.activity.log(admin_id, ActorType.ADMIN, "update_crypto_price", "crypto_asset", asset.id,
                              details={"symbol": asset.symbol, "price": asset.price})
        return asset

    # Wallets

    def get_user_wallets(self, user_id: str) -> List[CryptoWallet]:
        return [CryptoWallet.from_dict(d) for d in self.storage.find(self.wallets_table, {'user_id': user_id})]

    def _find_wallet(self, user_id: str, asset: str) -> Optional[CryptoWallet]:
        data = self.storage.find_one(self.wallets_table, {'user_id': user_id, 'asset': asset.upper()})
        if data:
            return CryptoWallet.from_dict(data)
        return None

    def get_or_create_wallet(self, user_id: str, asset: str) -> CryptoWallet:
        wallet = self._find_wallet(user_id, asset)
        if wallet:
            return wallet
        now = datetime.now(timezone.utc)
        wallet = CryptoWallet(id=new_id(), created_at=now, updated_at=now, user_id=user_id, asset=asset.upper())
        self._save_wallet(wallet)
        return wallet

    def _save_wallet(self, wallet: CryptoWallet) -> None:
        wallet.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.wallets_table, wallet.id, wallet.to_dict())

    def _record(self, user_id: str, type: CryptoTransactionType, from_asset: str, to_asset: str,
                from_amount: Decimal, to_amount: Decimal, rate: Decimal, fee: Decimal) -> CryptoTransaction:
        now = datetime.now(timezone.utc)
        entry = CryptoTransaction(
            id=new_id(), created_at=now, updated_at=now, user_id=user_id, type=type,
            from_asset=from_asset, to_asset=to_asset, from_amount=from_amount, to_amount=to_amount,
            rate=rate, fee=fee, reference=generate_reference("CRY"),
        )
        self.storage.save(self.transactions_table, entry.id, entry.to_dict())
        return entry

    # Trading

    def buy(self, user_id: str, asset: str, usd_amount: Any) -> CryptoTransaction:
        """Spend fiat balance on an asset at its listed price, less the trading fee"""
        usd_amount = require_positive_amount(usd_amount)
        symbol = asset.upper()

        with self.storage.atomic():
            user = self.users.require_user(user_id)
            if user.balance < usd_amount:
                raise ValueError("Insufficient balance")
            listed = self.get_asset(symbol)
            if not listed:
                raise ValueError("Asset not found or inactive")

            fee = percentage_of(usd_amount, self.config.crypto_trade_fee_percent)
            crypto_amount = quantize_crypto((usd_amount - fee) / listed.price)

            user.balance = user.balance - usd_amount
            self.users.save_user(user)
            wallet = self.get_or_create_wallet(user.id, symbol)
            wallet.balance = wallet.balance + crypto_amount
            self._save_wallet(wallet)

            entry = self._record(user.id, CryptoTransactionType.BUY, "USD", symbol,
                                 usd_amount, crypto_amount, listed.price, fee)

        self.notifications.create(
            user.id, "Crypto Purchase Successful",
            f"You bought {crypto_amount:.8f} {symbol} for {format_amount(usd_amount)}",
            NotificationType.SUCCESS
        )
        self.activity.log(user.id, ActorType.USER, "buy_crypto", "crypto_transaction", entry.id,
                          details={"asset": symbol, "usd_amount": usd_amount, "crypto_amount": crypto_amount})
        return entry

    def sell(self, user_id: str, asset: str, crypto_amount: Any) -> CryptoTransaction:
        """Sell wallet holdings back to the fiat balance, less the trading fee"""
        crypto_amount = require_positive_amount(crypto_amount, CRYPTO_PRECISION)
        symbol = asset.upper()

        with self.storage.atomic():
            user = self.users.require_user(user_id)
            wallet = self._find_wallet(user.id, symbol)
            if not wallet or wallet.balance < crypto_amount:
                raise ValueError("Insufficient crypto balance")
            listed = self.get_asset(symbol)
            if not listed:
                raise ValueError("Asset not found or inactive")

            usd_amount = quantize(crypto_amount * listed.price)
            fee = percentage_of(usd_amount, self.config.crypto_trade_fee_percent)
            net_amount = usd_amount - fee

            wallet.balance = wallet.balance - crypto_amount
            self._save_wallet(wallet)
            user.balance = user.balance + net_amount
            self.users.save_user(user)

            entry = self._record(user.id, CryptoTransactionType.SELL, symbol, "USD",
                                 crypto_amount, net_amount, listed.price, fee)

        self.notifications.create(
            user.id, "Crypto Sale Successful",
            f"You sold {crypto_amount:.8f} {symbol} for {format_amount(net_amount)}",
            NotificationType.SUCCESS
        )
        self.activity.log(user.id, ActorType.USER, "sell_crypto", "crypto_transaction", entry.id,
                          details={"asset": symbol, "crypto_amount": crypto_amount, "usd_amount": net_amount})
        return entry

    def swap(self, user_id: str, from_asset: str, to_asset: str, from_amount: Any) -> CryptoTransaction:
        """Exchange one wallet asset for another via their USD value"""
        from_amount = require_positive_amount(from_amount, CRYPTO_PRECISION)
        from_symbol, to_symbol = from_asset.upper(), to_asset.upper()
        if from_symbol == to_symbol:
            raise ValueError("Cannot swap to the same asset")

        with self.storage.atomic():
            user = self.users.require_user(user_id)
            from_wallet = self._find_wallet(user.id, from_symbol)
            if not from_wallet or from_wallet.balance < from_amount:
                raise ValueError("Insufficient crypto balance")
            source = self.get_asset(from_symbol)
            target = self.get_asset(to_symbol)
            if not source or not target:
                raise ValueError("Asset not found or inactive")

            usd_value = from_amount * source.price
            fee = percentage_of(usd_value, self.config.crypto_swap_fee_percent)
            to_amount = quantize_crypto((usd_value - fee) / target.price)
            rate = quantize_crypto(source.price / target.price)

            from_wallet.balance = from_wallet.balance - from_amount
            self._save_wallet(from_wallet)
            to_wallet = self.get_or_create_wallet(user.id, to_symbol)
            to_wallet.balance = to_wallet.balance + to_amount
            self._save_wallet(to_wallet)

            entry = self._record(user.id, CryptoTransactionType.SWAP, from_symbol, to_symbol,
                                 from_amount, to_amount, rate, fee)

        self.notifications.create(
            user.id, "Crypto Swap Successful",
            f"You swapped {from_amount:.8f} {from_symbol} for {to_amount:.8f} {to_symbol}",
            NotificationType.SUCCESS
        )
        self.activity.log(user.id, ActorType.USER, "swap_crypto", "crypto_transaction", entry.id,
                          details={"from_asset": from_symbol, "to_asset": to_symbol, "from_amount": from_amount})
        return entry

    @staticmethod
    def _require_swap_balance(user: User, from_fiat: bool, amount: Decimal, currency: str) -> None:
        from_balance = user.balance if from_fiat else user.bitcoin_balance
        if amount > from_balance:
            raise ValueError(f"Insufficient {currency} balance")

    def swap_btc(self, user_id: str, from_asset: str, to_asset: str, amount: Any) -> Dict[str, Any]:
        """
        Convert between the fiat balance and the Bitcoin balance at the live
        CoinGecko price, without a fee.

        Raises PriceUnavailableError if no price can be fetched after retries.
        """
        from_asset, to_asset = from_asset.upper(), to_asset.upper()
        if from_asset == to_asset:
            raise ValueError("Cannot swap to the same asset")
        if from_asset not in (FIAT, BTC) or to_asset not in (FIAT, BTC):
            raise ValueError("Only FIAT and BTC swaps are supported")
        from_fiat = from_asset == FIAT
        amount = require_positive_amount(amount, 2 if from_fiat else CRYPTO_PRECISION)

        user = self.users.require_user(user_id)
        currency = user.currency or self.config.default_currency
        self._require_swap_balance(user, from_fiat, amount, currency)

        btc_price = self.price_feed.get_btc_price_with_retry(currency)
        if btc_price is None:
            raise PriceUnavailableError("Unable to fetch current BTC price. Please try again later.")

        if from_fiat:
            to_amount = quantize_crypto(amount / btc_price)
        else:
            to_amount = quantize(amount * btc_price)
        from_code = currency if from_fiat else BTC
        to_code = BTC if from_fiat else currency
        base_reference = generate_reference("SWAP-")

        with self.storage.atomic():
            user = self.users.require_user(user_id)
            self._require_swap_balance(user, from_fiat, amount, currency)
            fiat_before, btc_before = user.balance, user.bitcoin_balance
            if from_fiat:
                user.balance = fiat_before - amount
                user.bitcoin_balance = btc_before + to_amount
            else:
                user.bitcoin_balance = btc_before - amount
                user.balance = fiat_before + to_amount
            self.users.save_user(user)

            description = f"Swap {amount} {from_code} to {to_amount} {to_code}"
            metadata = {
                "swap_reference": base_reference,
                "from_asset": from_code,
                "to_asset": to_code,
                "from_amount": amount,
                "to_amount": to_amount,
                "btc_price": btc_price,
                "user_currency": currency,
                "fee": ZERO,
            }
            debit = self.transactions.record(
                user.id,
                TransactionType.WITHDRAWAL if from_fiat else TransactionType.TRANSFER_OUT,
                amount,
                fiat_before if from_fiat else btc_before,
                user.balance if from_fiat else user.bitcoin_balance,
                description=description,
                reference=f"{base_reference}-OUT",
                currency=from_code,
                metadata=dict(metadata, swap_type="debit",
                              fiat_equivalent=amount if from_fiat else quantize(amount * btc_price)),
            )
            credit = self.transactions.record(
                user.id,
                TransactionType.TRANSFER_IN if from_fiat else TransactionType.DEPOSIT,
                to_amount,
                btc_before if from_fiat else fiat_before,
                user.bitcoin_balance if from_fiat else user.balance,
                description=description,
                reference=f"{base_reference}-IN",
                currency=to_code,
                metadata=dict(metadata, swap_type="credit",
                              fiat_equivalent=quantize(to_amount * btc_price) if from_fiat else to_amount),
            )

        self.activity.log(user.id, ActorType.USER, "swap_btc", "transaction", debit.id,
                          details={"from_asset": from_asset, "to_asset": to_asset, "amount": amount,
                                   "to_amount": to_amount, "btc_price": btc_price})
        log_action(self.logger, "info", f"Swapped {amount} {from_code} to {to_amount} {to_code} at {btc_price}",
                   user_id=user.id, action="swap_btc", resource=base_reference)
        return {
            "swap": {
                "from_asset": from_asset,
                "to_asset": to_asset,
                "from_amount": amount,
                "to_amount": to_amount,
                "btc_price": btc_price,
                "fee": ZERO,
                "reference": base_reference,
            },
            "transactions": [debit, credit],
            "new_balances": {"fiat": user.balance, "btc": user.bitcoin_balance, "currency": currency},
        }

    def get_user_transactions(self, user_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        items = [CryptoTransaction.from_dict(d)
                 for d in self.storage.find(self.transactions_table, {'user_id': user_id})]
        items.sort(key=lambda t: t.created_at, reverse=True)
        return paginate(items, page, limit)
