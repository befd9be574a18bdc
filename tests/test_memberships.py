"""
Tests for memberships, enrollments and course access
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone

from online_banking.memberships import CourseStatus, EnrollmentStatus, MembershipStatus
from online_banking.transactions import TransactionType
from tests.factories import make_system, make_user

MEMBERSHIP = {
    "name": "Academy",
    "description": "Trading lessons",
    "price": "49.99",
    "duration_days": 30,
    "features": ["Weekly webinar"],
}


class TestMembershipCatalogue:
    """Test admin membership and course management"""

    def setup_method(self):
        self.system = make_system()
        self.memberships = self.system.memberships

    def test_create_membership(self):
        """Test values are coerced and the membership is active"""
        membership = self.memberships.create_membership(MEMBERSHIP, "admin-1")

        assert membership.price == Decimal("49.99")
        assert membership.duration_days == 30
        assert membership.status == MembershipStatus.ACTIVE

    def test_required_fields(self):
        """Test name, description, price and duration are mandatory"""
        with pytest.raises(ValueError, match="Name, description, price, and duration are required"):
            self.memberships.create_membership(dict(MEMBERSHIP, description=""), "admin-1")

    def test_invalid_values(self):
        """Test negative prices and zero-day durations are refused"""
        with pytest.raises(ValueError, match="Price cannot be negative"):
            self.memberships.create_membership(dict(MEMBERSHIP, price="-1"), "admin-1")
        with pytest.raises(ValueError, match="Duration must be at least 1 day"):
            self.memberships.create_membership(dict(MEMBERSHIP, duration_days=0), "admin-1")

    def test_active_memberships_sorted_by_price(self):
        """Test inactive memberships are hidden from customers"""
        academy = self.memberships.create_membership(MEMBERSHIP, "admin-1")
        basic = self.memberships.create_membership(dict(MEMBERSHIP, name="Basic", price="9"), "admin-1")
        retired = self.memberships.create_membership(dict(MEMBERSHIP, name="Old"), "admin-1")
        self.memberships.update_membership(retired.id, {"status": "inactive"}, "admin-1")

        assert [m.id for m in self.memberships.get_active_memberships()] == [basic.id, academy.id]
        assert len(self.memberships.get_all_memberships()) == 3

    def test_courses(self):
        """Test only published courses are listed, in order"""
        membership = self.memberships.create_membership(MEMBERSHIP, "admin-1")
        second = self.memberships.create_course(
            {"title": "Charts", "description": "Reading charts", "membership_id": membership.id, "order": 2},
            "admin-1"
        )
        first = self.memberships.create_course(
            {"title": "Intro", "description": "Basics", "membership_id": membership.id, "order": 1}, "admin-1"
        )
        assert second.status == CourseStatus.DRAFT
        assert self.memberships.get_courses(membership.id) == []

        for course in (first, second):
            self.memberships.update_course(course.id, {"status": "published"}, "admin-1")

        assert [c.id for c in self.memberships.get_courses(membership.id)] == [first.id, second.id]

    def test_course_requires_known_membership(self):
        """Test courses cannot point at a missing membership"""
        with pytest.raises(ValueError, match="Membership not found"):
            self.memberships.create_course({"title": "T", "description": "D", "membership_id": "nope"}, "admin-1")


class TestEnrollments:
    """Test subscribing and course access"""

    def setup_method(self):
        self.system = make_system()
        self.memberships = self.system.memberships
        self.membership = self.memberships.create_membership(MEMBERSHIP, "admin-1")
        self.user = make_user(self.system, balance=Decimal("100.00"))

    def _balance(self):
        return self.system.users.get_user(self.user.id).balance

    def test_subscribe_charges_price(self):
        """Test the price is debited and recorded as a fee"""
        enrollment = self.memberships.subscribe(self.user.id, self.membership.id)

        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert (enrollment.end_date - enrollment.start_date).days == 30
        assert self._balance() == Decimal("50.01")
        entries = self.system.transactions.get_user_transactions(self.user.id)['items']
        assert entries[0].type == TransactionType.FEE
        assert entries[0].amount == Decimal("49.99")

    def test_already_enrolled(self):
        """Test a second enrollment is refused while the first runs"""
        self.memberships.subscribe(self.user.id, self.membership.id)

        with pytest.raises(ValueError, match="Already enrolled in this membership"):
            self.memberships.subscribe(self.user.id, self.membership.id)
        assert self._balance() == Decimal("50.01")

    def test_expired_enrollment_allows_renewal(self):
        """Test a lapsed enrollment no longer blocks subscribing"""
        enrollment = self.memberships.subscribe(self.user.id, self.membership.id)
        enrollment.end_date = datetime.now(timezone.utc) - timedelta(days=1)
        self.memberships._save(self.memberships.enrollments_table, enrollment)

        assert self.memberships.get_user_enrollments(self.user.id, active_only=True) == []
        self.memberships.subscribe(self.user.id, self.membership.id)
        assert len(self.memberships.get_user_enrollments(self.user.id)) == 2

    def test_insufficient_balance(self):
        """Test customers cannot enroll beyond their balance"""
        pricey = self.memberships.create_membership(dict(MEMBERSHIP, price="500"), "admin-1")

        with pytest.raises(ValueError, match="Insufficient balance"):
            self.memberships.subscribe(self.user.id, pricey.id)

    def test_inactive_membership(self):
        """Test inactive memberships accept no enrollments"""
        self.memberships.update_membership(self.membership.id, {"status": "inactive"}, "admin-1")

        with pytest.raises(ValueError, match="Membership not found or inactive"):
            self.memberships.subscribe(self.user.id, self.membership.id)

    def test_free_membership_records_no_fee(self):
        """Test free memberships enroll without a ledger entry"""
        free = self.memberships.create_membership(dict(MEMBERSHIP, price="0"), "admin-1")

        self.memberships.subscribe(self.user.id, free.id)

        assert self._balance() == Decimal("100.00")
        assert self.system.transactions.get_user_transactions(self.user.id)['items'] == []

    def test_course_access(self):
        """Test gated courses need an enrollment and free ones do not"""
        gated = self.memberships.create_course(
            {"title": "Pro", "description": "Advanced", "membership_id": self.membership.id}, "admin-1"
        )
        free = self.memberships.create_course({"title": "Free", "description": "Open"}, "admin-1")

        assert self.memberships.has_access(self.user.id, free.id)
        assert not self.memberships.has_access(self.user.id, gated.id)
        assert not self.memberships.has_access(self.user.id, "missing")

        self.memberships.subscribe(self.user.id, self.membership.id)
        assert self.memberships.has_access(self.user.id, gated.id)
