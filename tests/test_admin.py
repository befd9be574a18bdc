"""
Tests for staff accounts, the admin dashboard and broadcasts
"""

import pytest
from decimal import Decimal

from online_banking.admin import AdminRole, AdminStatus, sanitize_admin
from online_banking.mailer import EmailProvider, EmailResult
from online_banking.users import BalanceType, UserStatus
from tests.factories import ADMIN_PASSWORD, make_admin, make_method, make_system, make_user


class FailingProvider(EmailProvider):
    """Provider that rejects every message"""

    def send(self, message):
        return EmailResult(success=False, error="rejected")


class TestStaffAccounts:
    """Test admin account management"""

    def setup_method(self):
        self.system = make_system()
        self.admins = self.system.admins
        self.root = make_admin(self.system)

    def test_create_admin(self):
        """Test staff accounts are created with hashed passwords"""
        admin = self.admins.create_admin("Ops@Example.com", ADMIN_PASSWORD, "Ops", role="support",
                                          permissions=["kyc"], created_by=self.root.id)

        assert admin.email == "ops@example.com"
        assert admin.role == AdminRole.SUPPORT
        assert admin.permissions == ["kyc"]
        assert 'password_hash' not in sanitize_admin(admin)
        assert self.system.activity.get_recent(1)[0].action == "create_admin"

    def test_duplicate_and_weak_password(self):
        """Test unique emails and the strong password rule"""
        with pytest.raises(ValueError, match="Admin with this email already exists"):
            make_admin(self.system)
        with pytest.raises(ValueError, match="at least 8 characters"):
            self.admins.create_admin("ops@example.com", "Ab1", "Ops")

    def test_super_admin_protected(self):
        """Test the super admin cannot be deleted or blocked"""
        with pytest.raises(ValueError, match="Cannot delete super admin"):
            self.admins.delete_admin(self.root.id, self.root.id)
        with pytest.raises(ValueError, match="Cannot block super admin"):
            self.admins.block_admin(self.root.id, self.root.id)

    def test_block_unblock_delete(self):
        """Test lifecycle of a regular admin"""
        admin = make_admin(self.system, email="ops@example.com", role="admin")

        assert self.admins.block_admin(admin.id, self.root.id).status == AdminStatus.BLOCKED
        assert self.admins.unblock_admin(admin.id, self.root.id).is_active

        self.admins.delete_admin(admin.id, self.root.id)
        with pytest.raises(ValueError, match="Admin not found"):
            self.admins.require_admin(admin.id)

    def test_update_admin(self):
        """Test edits keep emails unique"""
        admin = make_admin(self.system, email="ops@example.com", role="admin")

        updated = self.admins.update_admin(admin.id, {"name": "Operations", "role": "support"}, self.root.id)

        assert updated.name == "Operations"
        assert updated.role == AdminRole.SUPPORT
        with pytest.raises(ValueError, match="Admin with this email already exists"):
            self.admins.update_admin(admin.id, {"email": "admin@example.com"}, self.root.id)

    def test_search_admins(self):
        """Test listing filters"""
        make_admin(self.system, email="ops@example.com", role="support")

        assert self.admins.get_all(search="ops")['pagination']['total'] == 1
        assert self.admins.get_all(role=AdminRole.SUPER_ADMIN)['items'][0]['id'] == self.root.id

    def test_seed_super_admin(self):
        """Test seeding only happens on an empty table"""
        assert self.admins.ensure_super_admin("seed@example.com", ADMIN_PASSWORD) is None

        fresh = make_system()
        seeded = fresh.admins.ensure_super_admin("seed@example.com", ADMIN_PASSWORD)
        assert seeded.role == AdminRole.SUPER_ADMIN
        assert fresh.admins.ensure_super_admin("", "") is None


class TestDashboard:
    """Test the back-office summary"""

    def setup_method(self):
        self.system = make_system()
        self.jane = make_user(self.system, balance=Decimal("100"))
        make_user(self.system, email="bob@example.com", name="Bob", balance=Decimal("50"),
                  status=UserStatus.PENDING)

    def test_dashboard_stats(self):
        """Test totals and pending counts"""
        self.system.users.topup_balance(self.jane.id, "25", BalanceType.BALANCE, None, "admin-1")
        method = make_method(self.system)
        self.system.deposits.create_deposit(self.jane.id, "40", method.id)

        stats = self.system.admins.get_dashboard_stats()

        assert stats['totalUsers'] == 2
        assert stats['activeUsers'] == 1
        assert stats['totalBalance'] == Decimal("175.00")
        assert stats['totalDeposits'] == Decimal("25.00")
        assert stats['pendingDeposits'] == 1
        assert stats['pendingWithdrawals'] == 0
        assert stats['pendingKyc'] == 0
        assert stats['todayTransactions'] == 1
        assert stats['todayVolume'] == Decimal("25.00")

    def test_recent_activities(self):
        """Test the activity feed is newest first"""
        self.system.users.block_user(self.jane.id, "admin-1")
        self.system.users.unblock_user(self.jane.id, "admin-1")

        activities = self.system.admins.get_recent_activities(2)

        assert [a['action'] for a in activities] == ["unblock_user", "block_user"]


class TestBroadcasts:
    """Test email and notification broadcasts"""

    def setup_method(self):
        self.system = make_system()
        self.admins = self.system.admins
        self.jane = make_user(self.system)
        self.bob = make_user(self.system, email="bob@example.com", name="Bob")
        make_user(self.system, email="pat@example.com", name="Pat", status=UserStatus.PENDING)

    def test_send_to_user(self):
        """Test a direct message is delivered"""
        assert self.admins.send_to_user(self.jane.id, "Hello", "Welcome aboard", "admin-1")
        assert self.system.mailer.provider.sent[-1].to == ["jane@example.com"]

    def test_send_to_email(self):
        """Test lookup by email"""
        assert self.admins.send_to_email("bob@example.com", "Hi", "Body", "admin-1")
        with pytest.raises(ValueError, match="User not found"):
            self.admins.send_to_email("nobody@example.com", "Hi", "Body", "admin-1")

    def test_send_to_users_counts_failures(self):
        """Test unknown ids count as failures"""
        result = self.admins.send_to_users([self.jane.id, "missing"], "Hi", "Body", "admin-1")

        assert result == {"sentCount": 1, "failedCount": 1}

    def test_send_to_all_targets_active_users(self):
        """Test pending customers are skipped"""
        result = self.admins.send_to_all_users("News", "Body", "admin-1")

        assert result == {"sentCount": 2, "failedCount": 0}

    def test_broadcast_is_batched(self):
        """Test broadcasts pause between batches of the configured size"""
        mailer = self.system.mailer
        mailer.config = mailer.config.model_copy(update={"email_batch_size": 1})
        pauses = []
        mailer._sleep = pauses.append
        already_sent = len(mailer.provider.sent)

        result = self.admins.send_to_users([self.jane.id, self.bob.id, "missing"], "Hi", "Body", "admin-1")

        assert result == {"sentCount": 2, "failedCount": 1}
        assert pauses == [0.1]
        assert len(mailer.provider.sent) == already_sent + 2

    def test_provider_failures_are_counted(self):
        """Test delivery failures are reported, not raised"""
        self.system.mailer.provider = FailingProvider()

        result = self.admins.send_to_all_users("News", "Body", "admin-1")

        assert result == {"sentCount": 0, "failedCount": 2}

    def test_broadcast_notification(self):
        """Test in-app broadcasts to chosen users or everyone"""
        assert self.admins.broadcast_notification("Maintenance", "Tonight", "admin-1",
                                                  user_ids=[self.jane.id]) == 1
        assert self.admins.broadcast_notification("Maintenance", "Tonight", "admin-1") == 3

        assert self.system.notifications.get_unread_count(self.jane.id) == 2
        assert self.system.notifications.get_unread_count(self.bob.id) == 1
