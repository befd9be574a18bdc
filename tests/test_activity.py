"""
Tests for the hash-chained activity log
"""

import pytest

from online_banking.activity import ActivityLog, ActorType
from online_banking.storage import InMemoryStorage


class TestActivityLog:
    """Test activity recording and chain verification"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.activity = ActivityLog(self.storage)

    def test_log_chains_entries(self):
        """Test each entry links to the hash of the previous one"""
        first = self.activity.log("user-1", ActorType.USER, "login", "user", "user-1")
        second = self.activity.log("admin-1", ActorType.ADMIN, "approve_deposit", "deposit", "dep-1",
                                   details={"amount": "100.00"})

        assert first.sequence == 1
        assert first.previous_hash == ""
        assert second.sequence == 2
        assert second.previous_hash == first.current_hash
        assert second.verify_hash()

    def test_verify_integrity_clean_log(self):
        """Test an untouched log verifies"""
        for i in range(5):
            self.activity.log(f"user-{i}", ActorType.USER, "login")

        result = self.activity.verify_integrity()

        assert result['valid']
        assert result['total_entries'] == 5
        assert result['hash_errors'] == []
        assert result['chain_breaks'] == []

    def test_verify_integrity_detects_tampering(self):
        """Test editing a stored entry breaks its hash"""
        self.activity.log("user-1", ActorType.USER, "login")
        target = self.activity.log("user-1", ActorType.USER, "change_pin")

        data = self.storage.load(ActivityLog.table_name, target.id)
        data['action'] = "login"
        self.storage.save(ActivityLog.table_name, target.id, data)

        result = self.activity.verify_integrity()

        assert not result['valid']
        assert [e['id'] for e in result['hash_errors']] == [target.id]

    def test_chain_resumes_after_restart(self):
        """Test a new log instance continues the existing chain"""
        last = self.activity.log("user-1", ActorType.USER, "login")

        reopened = ActivityLog(self.storage)
        entry = reopened.log("user-1", ActorType.USER, "logout")

        assert entry.sequence == 2
        assert entry.previous_hash == last.current_hash
        assert reopened.verify_integrity()['valid']

    def test_user_activities_and_listing(self):
        """Test per-user history and back-office filters"""
        self.activity.log("user-1", ActorType.USER, "login")
        self.activity.log("user-2", ActorType.USER, "login")
        self.activity.log("admin-1", ActorType.ADMIN, "block_user", "user", "user-1")
        self.activity.log("user-1", ActorType.USER, "update_profile")

        mine = self.activity.get_user_activities("user-1")
        assert [a.action for a in mine['items']] == ["update_profile", "login"]

        admin_only = self.activity.list(actor_type=ActorType.ADMIN)
        assert admin_only['pagination']['total'] == 1

        logins = self.activity.list(action="login")
        assert logins['pagination']['total'] == 2

        assert self.activity.get_recent(1)[0].action == "update_profile"
        assert self.activity.count() == 4

    def test_login_activity(self):
        """Test only sign-in attempts are returned, newest first"""
        self.activity.log("user-1", ActorType.USER, "login")
        self.activity.log("user-1", ActorType.USER, "update_profile")
        self.activity.log("user-1", ActorType.USER, "login_failed")
        self.activity.log("user-2", ActorType.USER, "login")

        history = self.activity.get_login_activity("user-1")

        assert [a.action for a in history] == ["login_failed", "login"]
        assert len(self.activity.get_login_activity("user-1", limit=1)) == 1
