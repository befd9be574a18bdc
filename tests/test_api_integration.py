"""
Integration tests for the Bankline API
Tests end-to-end workflows using FastAPI TestClient
"""

import logging
import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

import online_banking.api.auth as api_auth
from online_banking.api import app, create_app
from online_banking.logging_config import JSONFormatter
from online_banking.users import KycStatus
from tests.factories import ADMIN_PASSWORD, PASSWORD, make_admin, make_method, make_system, make_user


@pytest.fixture
def system():
    """Fresh in-memory banking system swapped in for the global one"""
    test_system = make_system()
    original_system = api_auth.banking_system
    api_auth.banking_system = test_system
    yield test_system
    api_auth.banking_system = original_system


@pytest.fixture
def client(system):
    """Create a test client for the API"""
    return TestClient(app)


def login(client, email="jane@example.com", password=PASSWORD):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def admin_login(client, email="admin@example.com"):
    response = client.post("/auth/admin/login", json={"email": email, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


class TestServiceEndpoints:
    """Test health and root endpoints"""

    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_api_info(self, client):
        """Test root endpoint"""
        data = client.get("/").json()
        assert data["name"] == "Bankline API"
        assert data["endpoints"]["admin"] == "/admin"


class TestLoggingSetup:
    """Test the app installs structured logging"""

    def test_json_handler_installed(self):
        """Test the bankline logger gets a single JSON handler"""
        create_app()
        create_app()

        logger = logging.getLogger("bankline")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.INFO
        assert not logger.propagate


class TestAuthenticationFlow:
    """Test registration, approval and login over HTTP"""

    def test_register_approve_login(self, client, system):
        """Test a new customer signs in once approved"""
        response = client.post("/auth/register", json={
            "email": "ada@example.com", "password": PASSWORD, "name": "Ada", "last_name": "Lovelace",
        })
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["status"] == "pending"
        assert "password_hash" not in user

        blocked = client.post("/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
        assert blocked.status_code == 403
        assert "pending approval" in blocked.json()["detail"]

        make_admin(system)
        approve = client.post(f"/admin/users/{user['id']}/approve", headers=admin_login(client))
        assert approve.status_code == 200

        me = client.get("/auth/me", headers=login(client, "ada@example.com"))
        assert me.json()["user"]["name"] == "Ada Lovelace"

    def test_bad_credentials(self, client, system):
        """Test wrong passwords return 401"""
        make_user(system)

        response = client.post("/auth/login", json={"email": "jane@example.com", "password": "Nope12345"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_missing_and_invalid_tokens(self, client):
        """Test protected routes need a valid bearer token"""
        assert client.get("/user/profile").status_code == 401
        response = client.get("/user/profile", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_refresh(self, client, system):
        """Test refresh tokens issue new access tokens"""
        make_user(system)
        tokens = client.post("/auth/login", json={"email": "jane@example.com", "password": PASSWORD}).json()

        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
        assert client.get("/user/profile", headers=headers).status_code == 200

    def test_forgot_password_does_not_reveal_accounts(self, client):
        """Test unknown emails get the same answer"""
        response = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

        assert response.status_code == 200
        assert "If an account exists" in response.json()["message"]


class TestCustomerFlows:
    """Test money movement over HTTP"""

    def test_deposit_and_admin_approval(self, client, system):
        """Test a deposit is credited after admin approval"""
        make_user(system)
        make_admin(system)
        method = make_method(system)
        headers = login(client)

        created = client.post("/user/deposits", headers=headers,
                              json={"amount": "250", "payment_method_id": method.id})
        assert created.status_code == 201
        deposit_id = created.json()["deposit"]["id"]

        review = client.put(f"/admin/deposits/{deposit_id}", headers=admin_login(client),
                            json={"status": "approved"})
        assert review.status_code == 200

        dashboard = client.get("/user/dashboard", headers=headers).json()
        assert Decimal(dashboard["user"]["balance"]) == Decimal("250")
        assert dashboard["stats"]["total_deposits"] == "250.00"

    def test_internal_transfer_requires_pin(self, client, system):
        """Test a wrong PIN returns 401 and a right one moves funds"""
        make_user(system, balance=Decimal("100"))
        bob = make_user(system, email="bob@example.com", name="Bob Stone")
        headers = login(client)
        body = {"type": "internal", "amount": "40", "recipient_account_number": bob.account_number}

        wrong = client.post("/user/transfers", headers=headers, json=dict(body, pin="0000"))
        assert wrong.status_code == 401

        ok = client.post("/user/transfers", headers=headers, json=dict(body, pin="1234"))
        assert ok.status_code == 201
        assert system.users.get_user(bob.id).balance == Decimal("40.00")

    def test_value_errors_map_to_status_codes(self, client, system):
        """Test business errors become 400 and missing records 404"""
        make_user(system, balance=Decimal("10"))
        headers = login(client)
        body = {"type": "internal", "amount": "40", "pin": "1234", "recipient_account_number": "1000000000"}

        insufficient = client.post("/user/transfers", headers=headers, json=body)
        assert insufficient.status_code == 400
        assert insufficient.json()["detail"] == "Insufficient balance"

        missing = client.post("/user/transfers", headers=headers, json=dict(body, amount="5"))
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Recipient account not found"

    def test_withdrawal_requires_kyc(self, client, system):
        """Test unverified customers are refused"""
        make_user(system, balance=Decimal("500"))
        method = make_method(system)

        response = client.post("/user/withdrawals", headers=login(client),
                               json={"amount": "50", "payment_method_id": method.id})

        assert response.status_code == 400

    def test_withdrawal_with_kyc(self, client, system):
        """Test verified customers are debited immediately"""
        make_user(system, balance=Decimal("500"), kyc=KycStatus.APPROVED)
        method = make_method(system)

        response = client.post("/user/withdrawals", headers=login(client),
                               json={"amount": "50", "payment_method_id": method.id,
                                     "payment_details": {"account": "123"}})

        assert response.status_code == 201
        assert response.json()["withdrawal"]["status"] == "pending"


class TestAdminEndpoints:
    """Test back-office access control and tools"""

    def test_customer_token_cannot_reach_admin(self, client, system):
        """Test customer tokens are refused by staff routes"""
        make_user(system)

        response = client.get("/admin/dashboard", headers=login(client))

        assert response.status_code == 401

    def test_dashboard(self, client, system):
        """Test the dashboard serializes its totals"""
        make_user(system, balance=Decimal("80"))
        make_admin(system)

        data = client.get("/admin/dashboard", headers=admin_login(client)).json()

        assert data["stats"]["totalUsers"] == 1
        assert data["stats"]["totalBalance"] == "80.00"

    def test_login_activity(self, client, system):
        """Test staff can see a customer's sign-in attempts"""
        user = make_user(system)
        make_admin(system)
        client.post("/auth/login", json={"email": "jane@example.com", "password": "Wrong1234"})
        login(client)

        response = client.get(f"/admin/users/{user.id}/login-activity", headers=admin_login(client))

        assert response.status_code == 200
        assert [a["action"] for a in response.json()["activities"]] == ["login", "login_failed"]
        assert client.get("/admin/users/missing/login-activity",
                          headers=admin_login(client)).status_code == 404

    def test_staff_management_needs_super_admin(self, client, system):
        """Test regular admins cannot create staff"""
        make_admin(system, email="ops@example.com", role="admin")
        body = {"email": "new@example.com", "password": ADMIN_PASSWORD, "name": "New"}

        response = client.post("/admin/admins", headers=admin_login(client, "ops@example.com"), json=body)

        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient permissions"

    def test_super_admin_creates_staff(self, client, system):
        """Test super admins manage staff"""
        make_admin(system)
        headers = admin_login(client)

        created = client.post("/admin/admins", headers=headers, json={
            "email": "new@example.com", "password": ADMIN_PASSWORD, "name": "New", "role": "support",
        })
        assert created.status_code == 201
        assert created.json()["admin"]["role"] == "support"

        root_id = system.admins.get_by_email("admin@example.com").id
        response = client.delete(f"/admin/admins/{root_id}", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot delete super admin"

    def test_email_broadcast(self, client, system):
        """Test the all-customers email counts"""
        make_user(system)
        make_user(system, email="bob@example.com", name="Bob")
        make_admin(system)

        response = client.post("/admin/email", headers=admin_login(client),
                               json={"type": "all", "subject": "News", "message": "Hello"})

        assert response.json()["sentCount"] == 2
        assert response.json()["message"] == "Email sent to 2 recipient(s)"

    def test_legal_pages(self, client, system):
        """Test admin-edited pages are published"""
        make_admin(system)

        response = client.put("/admin/pages/terms", headers=admin_login(client),
                              json={"content": "<p>Be nice</p>"})
        assert response.status_code == 200

        assert client.get("/public/terms").json()["content"] == "<p>Be nice</p>"
        assert client.put("/admin/pages/cookies", headers=admin_login(client),
                          json={"content": "x"}).status_code == 404


class TestMembershipSignalSupportEndpoints:
    """Test memberships, signals and support tickets over HTTP"""

    def test_membership_enrollment(self, client, system):
        """Test staff create a membership and a customer enrolls once"""
        make_admin(system)
        make_user(system, balance=Decimal("100.00"))
        admin_headers = admin_login(client)
        headers = login(client)

        created = client.post("/admin/memberships", headers=admin_headers, json={
            "name": "Academy", "description": "Lessons", "price": "25", "duration_days": 30
        })
        assert created.status_code == 201
        membership_id = created.json()["membership"]["id"]

        available = client.get("/user/memberships/available", headers=headers).json()["memberships"]
        assert [m["id"] for m in available] == [membership_id]

        enrolled = client.post("/user/memberships/subscribe", headers=headers, json={"membership_id": membership_id})
        assert enrolled.status_code == 201
        again = client.post("/user/memberships/subscribe", headers=headers, json={"membership_id": membership_id})
        assert again.status_code == 400
        assert client.get("/user/memberships", headers=headers).json()["enrollments"][0]["membership_id"] == membership_id

    def test_signals_need_subscription(self, client, system):
        """Test signals stay hidden until the customer subscribes"""
        make_admin(system)
        make_user(system, balance=Decimal("100.00"))
        admin_headers = admin_login(client)
        headers = login(client)

        provider = client.post("/admin/signal-providers", headers=admin_headers,
                               json={"name": "Alpha", "subscription_fee": "30"}).json()["provider"]
        client.post(f"/admin/signal-providers/{provider['id']}/signals", headers=admin_headers, json={
            "asset": "BTC/USD", "action": "buy", "entry_price": "60000", "take_profit": "65000", "stop_loss": "58000"
        })

        url = f"/user/signals/providers/{provider['id']}/signals"
        assert client.get(url, headers=headers).status_code == 403

        subscribed = client.post("/user/signals/subscribe", headers=headers, json={"provider_id": provider["id"]})
        assert subscribed.status_code == 201
        response = client.get(url, headers=headers)
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1

    def test_support_ticket_reply(self, client, system):
        """Test a staff reply resolves the customer's ticket"""
        make_admin(system)
        make_user(system)
        admin_headers = admin_login(client)
        headers = login(client)

        created = client.post("/user/support", headers=headers,
                              json={"subject": "Card declined", "message": "Declined at the store"})
        assert created.status_code == 201
        ticket_id = created.json()["ticket"]["id"]

        replied = client.put(f"/admin/support/{ticket_id}", headers=admin_headers,
                             json={"admin_response": "Card unfrozen"})
        assert replied.json()["ticket"]["status"] == "resolved"
        assert client.get("/admin/support/missing", headers=admin_headers).status_code == 404
        mine = client.get("/user/support", headers=headers).json()
        assert mine["tickets"][0]["admin_response"] == "Card unfrozen"


class TestIpBlocking:
    """Test the blocked IP middleware"""

    def test_blocked_ip_is_rejected(self, client, system):
        """Test requests from a blocked address get 403"""
        make_admin(system)
        headers = admin_login(client)

        created = client.post("/admin/blocked-ips", headers=headers,
                              json={"ip_address": "203.0.113.9", "reason": "Abuse"})
        assert created.status_code == 201

        blocked = client.get("/health", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        assert blocked.status_code == 403
        assert blocked.json()["detail"] == "Access denied"
        assert client.get("/health", headers={"X-Forwarded-For": "198.51.100.1"}).status_code == 200

        entry_id = created.json()["blocked_ip"]["id"]
        assert client.delete(f"/admin/blocked-ips/{entry_id}", headers=headers).status_code == 200
        assert client.get("/health", headers={"X-Forwarded-For": "203.0.113.9"}).status_code == 200
