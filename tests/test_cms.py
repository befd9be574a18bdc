"""
Tests for public site content
"""

import pytest

from online_banking.activity import ActivityLog
from online_banking.cms import CmsManager, ContentType, PRIVACY_POLICY
from online_banking.storage import InMemoryStorage


class TestFaqs:
    """Test FAQ management"""

    def setup_method(self):
        storage = InMemoryStorage()
        self.cms = CmsManager(storage, ActivityLog(storage))

    def test_create_requires_question_and_answer(self):
        """Test both fields are mandatory"""
        with pytest.raises(ValueError, match="Question and answer are required"):
            self.cms.create_faq({"question": "Why?"}, "admin-1")

    def test_faqs_sorted_by_order(self):
        """Test listing order and the active-only filter"""
        self.cms.create_faq({"question": "Second", "answer": "b", "order": 2}, "admin-1")
        first = self.cms.create_faq({"question": "First", "answer": "a", "order": 1}, "admin-1")
        self.cms.create_faq({"question": "Hidden", "answer": "c", "order": 0, "is_active": False}, "admin-1")

        assert [f.question for f in self.cms.get_all_faqs()] == ["Hidden", "First", "Second"]
        assert [f.question for f in self.cms.get_all_faqs(active_only=True)] == ["First", "Second"]

        updated = self.cms.update_faq(first.id, {"answer": "updated"}, "admin-1")
        assert updated.answer == "updated"

    def test_delete_missing_faq(self):
        """Test deleting an unknown FAQ fails"""
        with pytest.raises(ValueError, match="FAQ not found"):
            self.cms.delete_faq("missing", "admin-1")


class TestTestimonials:
    """Test testimonial management"""

    def setup_method(self):
        storage = InMemoryStorage()
        self.cms = CmsManager(storage, ActivityLog(storage))

    def test_rating_range(self):
        """Test ratings must be 1 to 5"""
        with pytest.raises(ValueError, match="Rating must be between 1 and 5"):
            self.cms.create_testimonial({"name": "Ann", "content": "Great", "rating": 6}, "admin-1")

        testimonial = self.cms.create_testimonial({"name": "Ann", "content": "Great", "rating": "4"}, "admin-1")
        assert testimonial.rating == 4

    def test_update_and_delete(self):
        """Test editing and removing a testimonial"""
        testimonial = self.cms.create_testimonial({"name": "Ann", "content": "Great"}, "admin-1")

        self.cms.update_testimonial(testimonial.id, {"is_active": False}, "admin-1")
        assert self.cms.get_all_testimonials(active_only=True) == []

        self.cms.delete_testimonial(testimonial.id, "admin-1")
        assert self.cms.get_testimonial(testimonial.id) is None


class TestContent:
    """Test keyed content and legal pages"""

    def setup_method(self):
        storage = InMemoryStorage()
        self.cms = CmsManager(storage, ActivityLog(storage))

    def test_set_content_creates_then_replaces(self):
        """Test content upsert keeps the key as id"""
        self.cms.set_content("banner", "Hello", "admin-1", title="Banner")
        updated = self.cms.set_content("banner", "Goodbye", "admin-1", type=ContentType.HTML)

        assert updated.id == "banner"
        assert updated.title == "Banner"
        assert updated.type == ContentType.HTML
        assert self.cms.get_content("banner").content == "Goodbye"
        assert len(self.cms.get_all_content()) == 1

    def test_legal_pages(self):
        """Test legal pages default to empty text"""
        assert self.cms.get_privacy_policy() == ""

        self.cms.set_privacy_policy("<p>We respect privacy</p>", "admin-1")
        self.cms.set_terms_of_service("<p>Terms</p>", "admin-1")

        assert self.cms.get_privacy_policy() == "<p>We respect privacy</p>"
        assert self.cms.get_terms_of_service() == "<p>Terms</p>"
        assert self.cms.get_content(PRIVACY_POLICY).type == ContentType.HTML
        assert self.cms.get_about_us() == ""

    def test_delete_missing_content(self):
        """Test deleting unknown content fails"""
        with pytest.raises(ValueError, match="Content not found"):
            self.cms.delete_content("nope", "admin-1")
