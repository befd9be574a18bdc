"""
Tests for payment methods and deposit requests
"""

import pytest
from decimal import Decimal

from online_banking.deposits import DepositStatus
from online_banking.payment_methods import FeeType, PaymentMethodType
from online_banking.transactions import TransactionStatus
from tests.factories import make_method, make_system, make_user


class TestPaymentMethods:
    """Test payment method configuration"""

    def setup_method(self):
        self.system = make_system()
        self.methods = self.system.payment_methods

    def test_create_coerces_values(self):
        """Test string amounts and enum values are parsed"""
        method = make_method(self.system, fee="2.5", fee_type="percentage")

        assert method.type == PaymentMethodType.BANK
        assert method.min_amount == Decimal("10")
        assert method.fee_type == FeeType.PERCENTAGE
        assert method.calculate_fee(Decimal("200")) == Decimal("5.00")

    def test_fixed_fee(self):
        """Test fixed fees ignore the amount"""
        method = make_method(self.system, fee="3")
        assert method.calculate_fee(Decimal("500")) == Decimal("3.00")

    def test_validation(self):
        """Test name and range rules"""
        with pytest.raises(ValueError, match="Name is required"):
            self.methods.create({"type": "bank"}, "admin-1")
        with pytest.raises(ValueError, match="Minimum amount cannot exceed maximum amount"):
            make_method(self.system, min_amount="500", max_amount="100")

    def test_inactive_methods_are_hidden(self):
        """Test only active methods are offered to customers"""
        card = make_method(self.system, name="Card", type="card")
        make_method(self.system, name="Wire")

        self.methods.update(card.id, {"status": "inactive"}, "admin-1")

        assert [m.name for m in self.methods.list_active()] == ["Wire"]
        assert len(self.methods.list_all()) == 2


class TestDeposits:
    """Test the deposit approval workflow"""

    def setup_method(self):
        self.system = make_system()
        self.deposits = self.system.deposits
        self.user = make_user(self.system, balance=Decimal("100.00"))
        self.method = make_method(self.system)

    def test_create_deposit_is_pending(self):
        """Test a new deposit does not touch the balance"""
        deposit = self.deposits.create_deposit(self.user.id, "250", self.method.id, "proof.png")

        assert deposit.status == DepositStatus.PENDING
        assert deposit.reference.startswith("DEP")
        assert self.system.users.get_user(self.user.id).balance == Decimal("100.00")

        entry = self.system.transactions.get_by_reference(deposit.reference)
        assert entry.status == TransactionStatus.PENDING
        assert self.deposits.count_pending() == 1

    def test_amount_outside_method_range(self):
        """Test the method limits are enforced"""
        with pytest.raises(ValueError) as exc:
            self.deposits.create_deposit(self.user.id, "5", self.method.id)
        assert str(exc.value) == "Amount must be between $10 and $10,000"

    def test_unknown_method(self):
        """Test a missing payment method is rejected"""
        with pytest.raises(ValueError, match="Payment method not found"):
            self.deposits.create_deposit(self.user.id, "50", "missing")

    def test_approve_credits_balance(self):
        """Test approval credits the balance and completes the ledger entry"""
        deposit = self.deposits.create_deposit(self.user.id, "250", self.method.id)

        self.deposits.process_deposit(deposit.id, DepositStatus.APPROVED, "admin-1", "ok")

        assert self.system.users.get_user(self.user.id).balance == Decimal("350.00")
        entry = self.system.transactions.get_by_reference(deposit.reference)
        assert entry.status == TransactionStatus.COMPLETED
        assert entry.balance_before == Decimal("100.00")
        assert entry.balance_after == Decimal("350.00")

    def test_reject_leaves_balance(self):
        """Test rejection fails the ledger entry without crediting"""
        deposit = self.deposits.create_deposit(self.user.id, "250", self.method.id)

        processed = self.deposits.process_deposit(deposit.id, DepositStatus.REJECTED, "admin-1", "No proof")

        assert processed.admin_note == "No proof"
        assert self.system.users.get_user(self.user.id).balance == Decimal("100.00")
        assert self.system.transactions.get_by_reference(deposit.reference).status == TransactionStatus.FAILED

    def test_cannot_process_twice(self):
        """Test a processed deposit is final"""
        deposit = self.deposits.create_deposit(self.user.id, "250", self.method.id)
        self.deposits.process_deposit(deposit.id, DepositStatus.APPROVED, "admin-1")

        with pytest.raises(ValueError, match="Deposit has already been processed"):
            self.deposits.process_deposit(deposit.id, DepositStatus.REJECTED, "admin-1")

        assert self.system.users.get_user(self.user.id).balance == Decimal("350.00")

    def test_process_unknown_deposit(self):
        """Test processing a missing deposit"""
        with pytest.raises(ValueError, match="Deposit not found"):
            self.deposits.process_deposit("missing", DepositStatus.APPROVED, "admin-1")

    def test_customer_is_notified(self):
        """Test approval sends an email and an in-app notification"""
        deposit = self.deposits.create_deposit(self.user.id, "250", self.method.id)
        self.deposits.process_deposit(deposit.id, DepositStatus.APPROVED, "admin-1")

        subjects = [m.subject for m in self.system.mailer.provider.sent]
        assert "Deposit Approved - $250.00 credited to your account" in subjects
        assert self.system.notifications.get_unread_count(self.user.id) == 2

    def test_listing(self):
        """Test per-user and back-office listings"""
        other = make_user(self.system, email="bob@example.com", name="Bob")
        self.deposits.create_deposit(self.user.id, "50", self.method.id)
        self.deposits.create_deposit(other.id, "60", self.method.id)

        assert self.deposits.get_user_deposits(self.user.id)['pagination']['total'] == 1
        assert self.deposits.get_all(status=DepositStatus.PENDING)['pagination']['total'] == 2
