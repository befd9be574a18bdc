"""
Tests for KYC submission and review
"""

import pytest

from online_banking.kyc import DocumentType
from online_banking.users import KycStatus
from tests.factories import make_system, make_user


class TestKycSubmission:
    """Test customers submitting documents"""

    def setup_method(self):
        self.system = make_system()
        self.kyc = self.system.kyc
        self.user = make_user(self.system)

    def submit(self, user_id=None):
        return self.kyc.submit_kyc(user_id or self.user.id, DocumentType.PASSPORT, "P1234567",
                                   "front.png", "selfie.png")

    def test_submit_marks_user_pending(self):
        """Test submission stores the record and flags the customer"""
        record = self.submit()

        assert record.status == KycStatus.PENDING
        assert self.kyc.get_user_kyc(self.user.id).id == record.id
        assert self.system.users.get_user(self.user.id).kyc_status == KycStatus.PENDING
        assert self.system.mailer.provider.sent[-1].subject.startswith("KYC Documents Received")

    def test_required_fields(self):
        """Test number, front image and selfie are all required"""
        with pytest.raises(ValueError, match="Document number, front image and selfie are required"):
            self.kyc.submit_kyc(self.user.id, DocumentType.NATIONAL_ID, "N1", "front.png", "")

    def test_duplicate_while_pending(self):
        """Test a second submission waits for review"""
        self.submit()

        with pytest.raises(ValueError, match="KYC already pending review"):
            self.submit()

    def test_resubmit_after_rejection(self):
        """Test a rejected customer can resubmit on the same record"""
        record = self.submit()
        self.kyc.reject_kyc(record.id, "admin-1", "Blurry photo")

        again = self.kyc.submit_kyc(self.user.id, DocumentType.DRIVERS_LICENSE, "D999",
                                    "front2.png", "selfie2.png", back_image="back.png")

        assert again.id == record.id
        assert again.status == KycStatus.PENDING
        assert again.rejection_reason is None
        assert again.document_type == DocumentType.DRIVERS_LICENSE


class TestKycReview:
    """Test admin approval and rejection"""

    def setup_method(self):
        self.system = make_system()
        self.kyc = self.system.kyc
        self.user = make_user(self.system)
        self.record = self.kyc.submit_kyc(self.user.id, DocumentType.PASSPORT, "P1234567",
                                          "front.png", "selfie.png")

    def test_approve(self):
        """Test approval updates the record and the customer"""
        record = self.kyc.approve_kyc(self.record.id, "admin-1")

        assert record.status == KycStatus.APPROVED
        assert record.reviewed_by == "admin-1"
        assert record.reviewed_at is not None
        assert self.system.users.get_user(self.user.id).kyc_status == KycStatus.APPROVED
        assert self.system.mailer.provider.sent[-1].subject.startswith("KYC Approved")

        with pytest.raises(ValueError, match="KYC already approved"):
            self.kyc.submit_kyc(self.user.id, DocumentType.PASSPORT, "P1", "f.png", "s.png")

    def test_reject_requires_reason(self):
        """Test rejection needs a reason"""
        with pytest.raises(ValueError, match="Rejection reason is required"):
            self.kyc.reject_kyc(self.record.id, "admin-1", "")

    def test_reject(self):
        """Test rejection stores the reason"""
        record = self.kyc.reject_kyc(self.record.id, "admin-1", "Expired document")

        assert record.status == KycStatus.REJECTED
        assert record.rejection_reason == "Expired document"
        assert self.system.users.get_user(self.user.id).kyc_status == KycStatus.REJECTED

    def test_review_only_pending(self):
        """Test reviewed or unknown records cannot be reviewed again"""
        self.kyc.approve_kyc(self.record.id, "admin-1")

        with pytest.raises(ValueError, match="KYC is not pending"):
            self.kyc.reject_kyc(self.record.id, "admin-1", "Too late")
        with pytest.raises(ValueError, match="KYC not found"):
            self.kyc.approve_kyc("missing", "admin-1")

    def test_listing_and_pending_count(self):
        """Test admin listing filters by status"""
        other = make_user(self.system, email="bob@example.com", name="Bob Stone")
        other_record = self.kyc.submit_kyc(other.id, DocumentType.NATIONAL_ID, "N1", "f.png", "s.png")
        self.kyc.approve_kyc(other_record.id, "admin-1")

        assert self.kyc.count_pending() == 1
        pending = self.kyc.get_all(status=KycStatus.PENDING)
        assert [r.id for r in pending['items']] == [self.record.id]
        assert self.kyc.get_all()['pagination']['total'] == 2
