"""
Tests for signal providers, signals and subscriptions
"""

import pytest
from decimal import Decimal

from online_banking.signals import SignalAction, SignalResult, SignalStatus
from tests.factories import make_system, make_user

SIGNAL = {"asset": "BTC/USD", "action": "buy", "entry_price": "60000", "take_profit": "65000",
          "stop_loss": "58000"}


class TestProviders:
    """Test admin provider and signal management"""

    def setup_method(self):
        self.system = make_system()
        self.signals = self.system.signals
        self.provider = self.signals.create_provider({"name": "Alpha", "subscription_fee": "30"}, "admin-1")

    def test_create_provider(self):
        """Test new providers start with empty stats"""
        assert self.provider.subscription_fee == Decimal("30.00")
        assert self.provider.win_rate == Decimal("0")
        assert self.provider.total_signals == 0

    def test_provider_requires_name_and_fee(self):
        """Test name and fee are mandatory"""
        with pytest.raises(ValueError, match="Name and subscription fee are required"):
            self.signals.create_provider({"name": "Beta"}, "admin-1")

    def test_create_signal_counts(self):
        """Test each signal bumps the provider's total"""
        signal = self.signals.create_signal(self.provider.id, SIGNAL, "admin-1")

        assert signal.action == SignalAction.BUY
        assert signal.entry_price == Decimal("60000")
        assert self.signals.get_provider(self.provider.id).total_signals == 1

    def test_signal_details_required(self):
        """Test every price level is mandatory"""
        with pytest.raises(ValueError, match="All signal details are required"):
            self.signals.create_signal(self.provider.id, dict(SIGNAL, stop_loss=""), "admin-1")
        with pytest.raises(ValueError, match="Provider not found"):
            self.signals.create_signal("missing", SIGNAL, "admin-1")

    def test_close_updates_stats(self):
        """Test win rate and profit follow the closed signals"""
        win = self.signals.create_signal(self.provider.id, SIGNAL, "admin-1")
        loss = self.signals.create_signal(self.provider.id, dict(SIGNAL, action="sell"), "admin-1")
        self.signals.create_signal(self.provider.id, SIGNAL, "admin-1")

        closed = self.signals.close_signal(win.id, "win", "12.5", "admin-1")
        self.signals.close_signal(loss.id, "loss", "-4", "admin-1")

        assert closed.status == SignalStatus.CLOSED
        assert closed.result == SignalResult.WIN
        assert closed.closed_at is not None
        provider = self.signals.get_provider(self.provider.id)
        assert provider.win_rate == Decimal("50.00")
        assert provider.profit_percentage == Decimal("8.5")

    def test_close_twice(self):
        """Test a closed signal stays closed"""
        signal = self.signals.create_signal(self.provider.id, SIGNAL, "admin-1")
        self.signals.close_signal(signal.id, "win", "3", "admin-1")

        with pytest.raises(ValueError, match="Signal is already closed"):
            self.signals.close_signal(signal.id, "loss", "-3", "admin-1")


class TestSubscriptions:
    """Test following a provider"""

    def setup_method(self):
        self.system = make_system()
        self.signals = self.system.signals
        self.provider = self.signals.create_provider({"name": "Alpha", "subscription_fee": "30"}, "admin-1")
        self.user = make_user(self.system, balance=Decimal("100.00"))

    def _balance(self):
        return self.system.users.get_user(self.user.id).balance

    def test_fee_is_prorated(self):
        """Test the monthly fee scales with the duration"""
        subscription = self.signals.subscribe(self.user.id, self.provider.id, 45)

        assert subscription.fee == Decimal("45.00")
        assert self._balance() == Decimal("55.00")
        assert self.signals.get_provider(self.provider.id).followers == 1
        assert self.signals.is_subscribed(self.user.id, self.provider.id)

    def test_already_subscribed(self):
        """Test a running subscription cannot be bought again"""
        self.signals.subscribe(self.user.id, self.provider.id)

        with pytest.raises(ValueError, match="Already subscribed to this provider"):
            self.signals.subscribe(self.user.id, self.provider.id)
        assert self._balance() == Decimal("70.00")

    def test_insufficient_balance(self):
        """Test the fee must be covered"""
        with pytest.raises(ValueError, match="Insufficient balance"):
            self.signals.subscribe(self.user.id, self.provider.id, 120)
        assert self.signals.get_provider(self.provider.id).followers == 0

    def test_signals_need_subscription(self):
        """Test only subscribers can read a provider's signals"""
        self.signals.create_signal(self.provider.id, SIGNAL, "admin-1")

        with pytest.raises(PermissionError, match="You must subscribe to view signals"):
            self.signals.get_signals_for_subscriber(self.user.id, self.provider.id)

        self.signals.subscribe(self.user.id, self.provider.id)
        result = self.signals.get_signals_for_subscriber(self.user.id, self.provider.id)
        assert result['pagination']['total'] == 1

    def test_inactive_provider(self):
        """Test unknown providers cannot be followed"""
        with pytest.raises(ValueError, match="Provider not found or inactive"):
            self.signals.subscribe(self.user.id, "missing")
