"""
Tests for registration, login, tokens and password resets
"""

import pytest
import jwt
from datetime import datetime, timezone, timedelta

from online_banking.admin import AdminRole
from online_banking.auth import AccountDisabledError, AuthenticationError, PasswordReset
from online_banking.config import get_config
from online_banking.users import UserStatus
from tests.factories import ADMIN_PASSWORD, PASSWORD, make_admin, make_system, make_user

REGISTRATION = {
    "email": "New.Customer@example.com",
    "password": PASSWORD,
    "name": "Ada",
    "middle_name": " ",
    "last_name": "Lovelace",
    "pin": "2468",
    "city": "London",
    "account_type": "checking",
}


class TestRegistration:
    """Test customer sign-up"""

    def setup_method(self):
        self.system = make_system()
        self.auth = self.system.auth

    def test_register_creates_pending_user(self):
        """Test names are joined and the account awaits approval"""
        user = self.auth.register(REGISTRATION, ip_address="10.0.0.1")

        assert user.name == "Ada Lovelace"
        assert user.email == "new.customer@example.com"
        assert user.status == UserStatus.PENDING
        assert user.city == "London"
        assert user.account_type.value == "checking"
        assert "Application Received" in self.system.mailer.provider.sent[-1].subject

    def test_weak_password(self):
        """Test registration enforces the password rules"""
        with pytest.raises(ValueError, match="one number"):
            self.auth.register(dict(REGISTRATION, password="Password"))

    def test_name_required(self):
        """Test a blank name is refused"""
        with pytest.raises(ValueError, match="Name is required"):
            self.auth.register(dict(REGISTRATION, name="", last_name=""))

    def test_pending_user_cannot_login(self):
        """Test pending accounts get the approval message"""
        self.auth.register(REGISTRATION)

        with pytest.raises(AccountDisabledError, match="pending approval"):
            self.auth.login("new.customer@example.com", PASSWORD)


class TestLogin:
    """Test customer login and token handling"""

    def setup_method(self):
        self.system = make_system()
        self.auth = self.system.auth
        self.user = make_user(self.system)

    def test_login_returns_tokens(self):
        """Test a successful login returns a sanitized user and both tokens"""
        result = self.auth.login("JANE@example.com", PASSWORD, ip_address="10.0.0.2")

        assert result['user']['id'] == self.user.id
        assert 'password_hash' not in result['user']
        assert self.auth.authenticate_user(result['access_token']).id == self.user.id

        stored = self.system.users.get_user(self.user.id)
        assert stored.login_ip == "10.0.0.2"
        assert stored.last_login is not None

    @pytest.mark.parametrize("email,password", [
        ("jane@example.com", "Wrong1234"),
        ("nobody@example.com", PASSWORD),
    ])
    def test_bad_credentials(self, email, password):
        """Test unknown emails and wrong passwords share one message"""
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            self.auth.login(email, password)

    def test_failed_login_is_recorded(self):
        """Test a wrong password shows up in the customer's login activity"""
        with pytest.raises(AuthenticationError):
            self.auth.login("jane@example.com", "Wrong1234", ip_address="10.0.0.9")
        self.auth.login("jane@example.com", PASSWORD)

        history = self.system.activity.get_login_activity(self.user.id)

        assert [a.action for a in history] == ["login", "login_failed"]
        assert history[1].ip_address == "10.0.0.9"

    @pytest.mark.parametrize("status,message", [
        (UserStatus.SUSPENDED, "suspended"),
        (UserStatus.BLOCKED, "blocked"),
    ])
    def test_disabled_accounts(self, status, message):
        """Test suspended and blocked customers cannot sign in"""
        self.system.users.admin_update_user(self.user.id, {"status": status.value}, "admin-1")

        with pytest.raises(AccountDisabledError, match=message):
            self.auth.login("jane@example.com", PASSWORD)

    def test_blocked_token_rejected(self):
        """Test an existing token stops working once the customer is blocked"""
        token = self.auth.login("jane@example.com", PASSWORD)['access_token']
        self.system.users.block_user(self.user.id, "admin-1")

        with pytest.raises(AccountDisabledError):
            self.auth.authenticate_user(token)

    def test_refresh_token_is_not_an_access_token(self):
        """Test tokens are bound to their signing secret"""
        tokens = self.auth.login("jane@example.com", PASSWORD)

        with pytest.raises(AuthenticationError, match="Invalid token"):
            self.auth.authenticate_user(tokens['refresh_token'])

    def test_expired_token(self):
        """Test expired access tokens are refused"""
        config = get_config()
        past = datetime.now(timezone.utc) - timedelta(days=1)
        token = jwt.encode({"id": self.user.id, "type": "user", "iat": past, "exp": past},
                           config.jwt_secret, algorithm=config.jwt_algorithm)

        with pytest.raises(AuthenticationError, match="Token expired"):
            self.auth.authenticate_user(token)

    def test_refresh(self):
        """Test a refresh token issues a new pair for an active customer"""
        tokens = self.auth.login("jane@example.com", PASSWORD)

        renewed = self.auth.refresh(tokens['refresh_token'])

        assert self.auth.authenticate_user(renewed['access_token']).id == self.user.id
        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            self.auth.refresh(tokens['access_token'])

    def test_refresh_for_inactive_customer(self):
        """Test refresh stops once the customer is no longer active"""
        tokens = self.auth.login("jane@example.com", PASSWORD)
        self.system.users.set_dormant(self.user.id, "admin-1")

        with pytest.raises(AuthenticationError, match="Invalid refresh token"):
            self.auth.refresh(tokens['refresh_token'])

    def test_change_password(self):
        """Test the current password is checked"""
        with pytest.raises(ValueError, match="Current password is incorrect"):
            self.auth.change_password(self.user.id, "Wrong1234", "Newpass123")

        self.auth.change_password(self.user.id, PASSWORD, "Newpass123")

        assert self.auth.login("jane@example.com", "Newpass123")['user']['id'] == self.user.id

    def test_verify_email(self):
        """Test email verification is stamped"""
        user = self.auth.verify_email(self.user.id)

        assert user.email_verified
        assert user.email_verified_at is not None


class TestAdminLogin:
    """Test staff login"""

    def setup_method(self):
        self.system = make_system()
        self.auth = self.system.auth
        self.admin = make_admin(self.system, role=AdminRole.ADMIN)

    def test_admin_login(self):
        """Test staff tokens authenticate as admins only"""
        result = self.auth.admin_login("admin@example.com", ADMIN_PASSWORD)

        assert result['admin']['email'] == "admin@example.com"
        assert 'password_hash' not in result['admin']
        assert self.auth.authenticate_admin(result['access_token']).id == self.admin.id
        with pytest.raises(AuthenticationError, match="Invalid token"):
            self.auth.authenticate_user(result['access_token'])

    def test_customer_token_is_not_admin(self):
        """Test customer tokens cannot reach staff endpoints"""
        make_user(self.system)
        token = self.auth.login("jane@example.com", PASSWORD)['access_token']

        with pytest.raises(AuthenticationError, match="Invalid token"):
            self.auth.authenticate_admin(token)

    def test_blocked_admin(self):
        """Test blocked staff cannot sign in"""
        self.system.admins.block_admin(self.admin.id, "root")

        with pytest.raises(AccountDisabledError, match="blocked"):
            self.auth.admin_login("admin@example.com", ADMIN_PASSWORD)

    def test_admin_refresh(self):
        """Test staff refresh tokens keep the admin type"""
        tokens = self.auth.admin_login("admin@example.com", ADMIN_PASSWORD)

        renewed = self.auth.refresh(tokens['refresh_token'])

        assert self.auth.authenticate_admin(renewed['access_token']).id == self.admin.id

    def test_change_admin_password(self):
        """Test staff password changes"""
        self.auth.change_admin_password(self.admin.id, ADMIN_PASSWORD, "Rotated123")

        with pytest.raises(AuthenticationError):
            self.auth.admin_login("admin@example.com", ADMIN_PASSWORD)
        assert self.auth.admin_login("admin@example.com", "Rotated123")['admin']['id'] == self.admin.id


class TestPasswordReset:
    """Test reset tokens"""

    def setup_method(self):
        self.system = make_system()
        self.auth = self.system.auth
        self.user = make_user(self.system)

    def token(self):
        resets = self.system.storage.find("password_resets", {"user_id": self.user.id})
        assert len(resets) == 1
        return resets[0]['token']

    def test_unknown_email_is_silent(self):
        """Test unknown addresses do not reveal anything"""
        self.auth.request_password_reset("nobody@example.com")

        assert self.system.storage.count("password_resets") == 0

    def test_reset_flow(self):
        """Test a token resets the password once"""
        self.auth.request_password_reset("jane@example.com", ip_address="10.0.0.3")
        token = self.token()
        assert self.system.mailer.provider.sent[-1].subject.startswith("Reset Your")

        self.auth.reset_password(token, "Brandnew123")

        assert self.auth.login("jane@example.com", "Brandnew123")['user']['id'] == self.user.id
        with pytest.raises(ValueError, match="Invalid or expired reset token"):
            self.auth.reset_password(token, "Another123")

    def test_new_request_replaces_token(self):
        """Test only the latest token is kept"""
        self.auth.request_password_reset("jane@example.com")
        first = self.token()
        self.auth.request_password_reset("jane@example.com")

        assert self.token() != first

    def test_expired_token(self):
        """Test tokens past their expiry are refused"""
        self.auth.request_password_reset("jane@example.com")
        data = self.system.storage.find_one("password_resets", {"user_id": self.user.id})
        reset = PasswordReset.from_dict(data)
        reset.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        self.system.storage.save("password_resets", reset.id, reset.to_dict())

        with pytest.raises(ValueError, match="Invalid or expired reset token"):
            self.auth.reset_password(reset.token, "Brandnew123")
