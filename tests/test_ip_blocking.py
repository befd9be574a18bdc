"""
Tests for the IP deny list
"""

import pytest
from datetime import datetime, timedelta, timezone

from online_banking.activity import ActivityLog
from online_banking.ip_blocking import IpBlockList
from online_banking.storage import InMemoryStorage


class TestIpBlockList:
    """Test blocking and expiry of client addresses"""

    def setup_method(self):
        storage = InMemoryStorage()
        self.activity = ActivityLog(storage)
        self.blocks = IpBlockList(storage, self.activity)

    def test_block_and_unblock(self):
        """Test an address is blocked until removed"""
        self.blocks.block_ip("203.0.113.7", "admin-1", reason="Abuse")

        assert self.blocks.is_blocked("203.0.113.7")
        assert not self.blocks.is_blocked("203.0.113.8")

        self.blocks.unblock_ip("203.0.113.7", "admin-1")
        assert not self.blocks.is_blocked("203.0.113.7")

    def test_duplicate_block(self):
        """Test an address cannot be blocked twice"""
        self.blocks.block_ip("203.0.113.7", "admin-1")

        with pytest.raises(ValueError, match="IP address is already blocked"):
            self.blocks.block_ip("203.0.113.7", "admin-1")

    def test_unblock_unknown(self):
        """Test removing entries that do not exist"""
        with pytest.raises(ValueError, match="IP address is not blocked"):
            self.blocks.unblock_ip("198.51.100.1", "admin-1")
        with pytest.raises(ValueError, match="Blocked IP not found"):
            self.blocks.unblock_by_id("missing", "admin-1")

    def test_expired_entries_do_not_block(self):
        """Test expiry and cleanup"""
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        self.blocks.block_ip("198.51.100.2", "admin-1", expires_at=future)
        self.blocks.block_ip("198.51.100.1", "admin-1", expires_at=past)

        assert not self.blocks.is_blocked("198.51.100.1")
        assert self.blocks.is_blocked("198.51.100.2")

        assert self.blocks.cleanup_expired() == 1
        assert self.blocks.cleanup_expired() == 0
        assert self.blocks.get_all_blocked()['pagination']['total'] == 1

    def test_expired_entries_are_pruned(self):
        """Test listing drops lapsed blocks and an expired address can be blocked again"""
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        self.blocks.block_ip("198.51.100.5", "admin-1", expires_at=past)

        assert self.blocks.get_all_blocked()['pagination']['total'] == 0

        self.blocks.block_ip("198.51.100.6", "admin-1", expires_at=past)
        entry = self.blocks.block_ip("198.51.100.6", "admin-1", reason="Repeat offender")

        assert self.blocks.is_blocked("198.51.100.6")
        assert entry.reason == "Repeat offender"

    def test_naive_expiry_is_treated_as_utc(self):
        """Test naive datetimes compare against aware now"""
        naive_future = datetime.utcnow() + timedelta(hours=1)

        entry = self.blocks.block_ip("198.51.100.3", "admin-1", expires_at=naive_future)

        assert entry.expires_at.tzinfo is not None
        assert self.blocks.is_blocked("198.51.100.3")

    def test_unblock_by_id_and_audit(self):
        """Test removal by record id is logged"""
        entry = self.blocks.block_ip("198.51.100.4", "admin-1")

        self.blocks.unblock_by_id(entry.id, "admin-1")

        assert not self.blocks.is_blocked("198.51.100.4")
        assert [a.action for a in self.activity.get_recent(2)] == ["unblock_ip", "block_ip"]
