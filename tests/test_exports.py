"""
Tests for CSV exports
"""

import csv
import io
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from online_banking.deposits import DepositStatus
from online_banking.exports import PAYMENT_HEADERS, TRANSACTION_HEADERS, TRANSFER_HEADERS, to_csv
from online_banking.transactions import TransactionType
from online_banking.users import KycStatus
from tests.factories import make_method, make_system, make_user


def read_csv(content):
    return list(csv.reader(io.StringIO(content)))


class TestToCsv:
    """Test CSV rendering"""

    def test_quotes_commas(self):
        """Test values with commas are quoted"""
        content = to_csv(["Name", "Amount"], [["Doe, Jane", Decimal("1.50")]])

        assert content == 'Name,Amount\n"Doe, Jane",1.50\n'


class TestExports:
    """Test customer and back-office exports"""

    def setup_method(self):
        self.system = make_system()
        self.exports = self.system.exports
        self.jane = make_user(self.system, balance=Decimal("500"), kyc=KycStatus.APPROVED)
        self.bob = make_user(self.system, email="bob@example.com", name="Bob Stone")
        self.method = make_method(self.system)

    def test_user_transactions(self):
        """Test the customer's ledger rows and type filter"""
        self.system.transfers.create_internal_transfer(self.jane.id, self.bob.account_number, "100")
        self.system.deposits.create_deposit(self.jane.id, "50", self.method.id)

        rows = read_csv(self.exports.export_user_transactions(self.jane.id))
        assert rows[0] == TRANSACTION_HEADERS
        assert len(rows) == 3

        only_transfers = read_csv(self.exports.export_user_transactions(
            self.jane.id, type=TransactionType.TRANSFER_OUT))
        assert len(only_transfers) == 2
        assert only_transfers[1][1] == TransactionType.TRANSFER_OUT.value
        assert only_transfers[1][2] == "100.00"

    def test_deposits(self):
        """Test deposit rows carry the customer and method"""
        deposit = self.system.deposits.create_deposit(self.jane.id, "75", self.method.id)

        rows = read_csv(self.exports.export_deposits(admin_id="admin-1"))

        assert rows[0] == PAYMENT_HEADERS
        assert rows[1][1:] == ["Jane Doe", "jane@example.com", "75.00", "Bank Wire", "pending", deposit.reference]
        assert self.system.activity.get_recent(1)[0].action == "export_deposits"

    def test_deposit_filters(self):
        """Test status and date filters"""
        self.system.deposits.create_deposit(self.jane.id, "75", self.method.id)
        tomorrow = datetime.now(timezone.utc) + timedelta(days=1)

        assert len(read_csv(self.exports.export_deposits(status=DepositStatus.APPROVED))) == 1
        assert len(read_csv(self.exports.export_deposits(start_date=tomorrow))) == 1
        assert len(read_csv(self.exports.export_deposits(end_date=tomorrow))) == 2

    def test_withdrawals(self):
        """Test withdrawal rows"""
        self.system.withdrawals.create_withdrawal(self.jane.id, "60", self.method.id, {"account": "123"})

        rows = read_csv(self.exports.export_withdrawals(user_id=self.jane.id))

        assert rows[0] == PAYMENT_HEADERS
        assert rows[1][3] == "60.00"

    def test_transfers(self):
        """Test transfer rows show sender and recipient names"""
        self.system.transfers.create_internal_transfer(self.jane.id, self.bob.account_number, "25")

        rows = read_csv(self.exports.export_transfers())

        assert rows[0] == TRANSFER_HEADERS
        assert rows[1][1] == "Jane Doe"
        assert rows[1][3] == "25.00"
        assert rows[1][4] == "Bob Stone"

    def test_user_data(self):
        """Test the full customer export"""
        self.system.deposits.create_deposit(self.jane.id, "75", self.method.id)

        data = self.exports.export_user_data(self.jane.id)

        assert len(data['deposits']) == 1
        assert len(data['transactions']) == 1
        assert data['transfers'] == []
        assert "exported_at" in data
