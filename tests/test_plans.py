"""
Tests for investment plans and subscriptions
"""

import pytest
from decimal import Decimal

from online_banking.plans import PlanStatus, UserPlanStatus
from online_banking.transactions import TransactionType
from tests.factories import make_system, make_user

PLAN = {
    "name": "Gold",
    "min_amount": "100",
    "max_amount": "5000",
    "return_percentage": "15",
    "duration_days": 30,
    "features": ["Daily reports"],
}


class TestPlanCatalogue:
    """Test admin plan management"""

    def setup_method(self):
        self.system = make_system()
        self.plans = self.system.plans

    def test_create_plan(self):
        """Test values are coerced and the plan is active"""
        plan = self.plans.create_plan(PLAN, "admin-1")

        assert plan.min_amount == Decimal("100")
        assert plan.return_percentage == Decimal("15")
        assert plan.status == PlanStatus.ACTIVE
        assert plan.features == ["Daily reports"]

    def test_required_fields(self):
        """Test missing fields are named"""
        with pytest.raises(ValueError, match="Name is required"):
            self.plans.create_plan(dict(PLAN, name=""), "admin-1")

    def test_min_above_max(self):
        """Test the amount range must be ordered"""
        with pytest.raises(ValueError, match="Minimum amount cannot exceed maximum amount"):
            self.plans.create_plan(dict(PLAN, min_amount="9000"), "admin-1")

    def test_active_plans_sorted_by_minimum(self):
        """Test inactive plans are hidden and the rest sorted"""
        gold = self.plans.create_plan(PLAN, "admin-1")
        silver = self.plans.create_plan(dict(PLAN, name="Silver", min_amount="50"), "admin-1")
        retired = self.plans.create_plan(dict(PLAN, name="Retired"), "admin-1")
        self.plans.update_plan(retired.id, {"status": "inactive"}, "admin-1")

        assert [p.id for p in self.plans.get_active_plans()] == [silver.id, gold.id]
        assert self.plans.get_all(status=PlanStatus.INACTIVE)['pagination']['total'] == 1

    def test_delete_plan(self):
        """Test deletion and unknown plans"""
        plan = self.plans.create_plan(PLAN, "admin-1")

        self.plans.delete_plan(plan.id, "admin-1")

        assert self.plans.get_plan(plan.id) is None
        with pytest.raises(ValueError, match="Plan not found"):
            self.plans.delete_plan(plan.id, "admin-1")


class TestSubscriptions:
    """Test investing, cancelling and maturity payouts"""

    def setup_method(self):
        self.system = make_system()
        self.plans = self.system.plans
        self.plan = self.plans.create_plan(PLAN, "admin-1")
        self.user = make_user(self.system, balance=Decimal("2000"))

    def balance(self):
        return self.system.users.get_user(self.user.id).balance

    def test_subscribe(self):
        """Test the principal leaves the balance and the return is projected"""
        user_plan = self.plans.subscribe(self.user.id, self.plan.id, "1000")

        assert user_plan.status == UserPlanStatus.ACTIVE
        assert user_plan.expected_return == Decimal("1150.00")
        assert (user_plan.end_date - user_plan.start_date).days == 30
        assert self.balance() == Decimal("1000.00")

        entries = self.system.transactions.get_user_transactions(self.user.id)['items']
        assert entries[0].type == TransactionType.INVESTMENT

    def test_amount_range(self):
        """Test the plan's limits are enforced"""
        with pytest.raises(ValueError, match=r"Amount must be between \$100 and \$5,000"):
            self.plans.subscribe(self.user.id, self.plan.id, "50")

    def test_insufficient_balance(self):
        """Test customers cannot invest more than they hold"""
        with pytest.raises(ValueError, match="Insufficient balance"):
            self.plans.subscribe(self.user.id, self.plan.id, "3000")

    def test_inactive_plan(self):
        """Test inactive plans accept no new money"""
        self.plans.update_plan(self.plan.id, {"status": "inactive"}, "admin-1")

        with pytest.raises(ValueError, match="Plan is not active"):
            self.plans.subscribe(self.user.id, self.plan.id, "500")

    def test_cancel_refunds_principal(self):
        """Test cancellation returns the principal"""
        user_plan = self.plans.subscribe(self.user.id, self.plan.id, "1000")

        cancelled = self.plans.cancel(user_plan.id, self.user.id)

        assert cancelled.status == UserPlanStatus.CANCELLED
        assert self.balance() == Decimal("2000.00")
        with pytest.raises(ValueError, match="Plan is not active"):
            self.plans.cancel(user_plan.id, self.user.id)

    def test_cancel_other_customer(self):
        """Test customers cannot cancel someone else's plan"""
        user_plan = self.plans.subscribe(self.user.id, self.plan.id, "1000")

        with pytest.raises(ValueError, match="Plan not found"):
            self.plans.cancel(user_plan.id, "someone-else")

    def test_complete_pays_return(self):
        """Test maturity credits principal plus return"""
        user_plan = self.plans.subscribe(self.user.id, self.plan.id, "1000")

        completed = self.plans.complete(user_plan.id, "admin-1")

        assert completed.status == UserPlanStatus.COMPLETED
        assert completed.return_paid
        assert self.balance() == Decimal("2150.00")
        assert self.system.notifications.get_unread_count(self.user.id) == 2

    def test_delete_plan_with_active_subscriptions(self):
        """Test plans with live money cannot be removed"""
        self.plans.subscribe(self.user.id, self.plan.id, "1000")

        with pytest.raises(ValueError, match="Cannot delete plan with active subscriptions"):
            self.plans.delete_plan(self.plan.id, "admin-1")

    def test_listings(self):
        """Test customer and admin subscription listings"""
        user_plan = self.plans.subscribe(self.user.id, self.plan.id, "500")
        self.plans.subscribe(self.user.id, self.plan.id, "500")
        self.plans.cancel(user_plan.id, self.user.id)

        assert self.plans.get_user_plans(self.user.id)['pagination']['total'] == 2
        active = self.plans.get_all_user_plans(status=UserPlanStatus.ACTIVE)
        assert active['pagination']['total'] == 1
