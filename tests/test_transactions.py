"""
Tests for the transaction ledger
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone

from online_banking.storage import InMemoryStorage
from online_banking.transactions import TransactionLedger, TransactionStatus, TransactionType


class TestTransactionLedger:
    """Test recording and querying ledger entries"""

    def setup_method(self):
        self.ledger = TransactionLedger(InMemoryStorage())

    def _record(self, user_id="user-1", type=TransactionType.DEPOSIT, amount="100.00",
                status=TransactionStatus.COMPLETED, **kwargs):
        return self.ledger.record(user_id, type, Decimal(amount), Decimal("0"), Decimal(amount),
                                  status=status, **kwargs)

    def test_record_generates_reference(self):
        """Test entries get a TXN reference unless one is given"""
        generated = self._record()
        explicit = self._record(reference="DEP123")

        assert generated.reference.startswith("TXN")
        assert explicit.reference == "DEP123"
        assert self.ledger.get_by_reference("DEP123").id == explicit.id

    def test_update_status_by_reference(self):
        """Test a pending entry is finalized in place"""
        self._record(status=TransactionStatus.PENDING, reference="DEP1")

        updated = self.ledger.update_status_by_reference(
            "DEP1", TransactionStatus.COMPLETED, balance_after=Decimal("250.00"),
            metadata={"approved_by": "admin-1"}
        )

        assert updated.status == TransactionStatus.COMPLETED
        assert updated.balance_after == Decimal("250.00")
        assert self.ledger.get_by_reference("DEP1").metadata['approved_by'] == "admin-1"

    def test_update_unknown_reference(self):
        """Test a missing reference is a no-op"""
        assert self.ledger.update_status_by_reference("NOPE", TransactionStatus.FAILED) is None

    def test_filters(self):
        """Test type and status filters"""
        self._record(type=TransactionType.DEPOSIT)
        self._record(type=TransactionType.WITHDRAWAL, status=TransactionStatus.PENDING)
        self._record(user_id="user-2")

        deposits = self.ledger.list_user_transactions("user-1", type=TransactionType.DEPOSIT)
        pending = self.ledger.list_user_transactions("user-1", status=TransactionStatus.PENDING)

        assert len(deposits) == 1
        assert pending[0].type == TransactionType.WITHDRAWAL
        assert self.ledger.get_all()['pagination']['total'] == 3
        assert self.ledger.get_all(user_id="user-2")['pagination']['total'] == 1

    def test_date_range(self):
        """Test start and end bounds"""
        self._record()
        future = datetime.now(timezone.utc) + timedelta(days=1)
        past = datetime.now(timezone.utc) - timedelta(days=1)

        assert self.ledger.list_user_transactions("user-1", start_date=future) == []
        assert len(self.ledger.list_user_transactions("user-1", start_date=past, end_date=future)) == 1

    def test_sum_completed_ignores_pending(self):
        """Test only completed entries count toward totals"""
        self._record(amount="100.00")
        self._record(amount="50.00")
        self._record(amount="999.00", status=TransactionStatus.PENDING)
        self._record(user_id="user-2", amount="10.00")

        assert self.ledger.sum_completed("user-1", TransactionType.DEPOSIT) == Decimal("150.00")
        assert self.ledger.sum_completed(None, TransactionType.DEPOSIT) == Decimal("160.00")

    def test_volume_excludes_bitcoin(self):
        """Test fiat volume and completed counts since a point in time"""
        start = datetime.now(timezone.utc) - timedelta(minutes=1)
        self._record(amount="100.00")
        self._record(amount="0.5", currency="BTC")
        self._record(amount="20.00", status=TransactionStatus.FAILED)

        assert self.ledger.volume_since(start) == Decimal("100.00")
        assert self.ledger.count_since(start) == 2

    def test_pagination(self):
        """Test user history pagination"""
        for _ in range(15):
            self._record()

        page = self.ledger.get_user_transactions("user-1", page=2, limit=10)

        assert len(page['items']) == 5
        assert page['pagination']['total_pages'] == 2
