"""
Content Management Module

FAQs, testimonials and keyed content pages (privacy policy, terms, about)
shown on the public site.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .storage import StorageInterface, StorageRecord

PRIVACY_POLICY = "privacy_policy"
TERMS_OF_SERVICE = "terms_of_service"
ABOUT_US = "about_us"


class ContentType(Enum):
    TEXT = "text"
    HTML = "html"
    JSON = "json"


@dataclass
class Faq(StorageRecord):
    question: str
    answer: str
    order: int = 0
    is_active: bool = True


@dataclass
class Testimonial(StorageRecord):
    name: str
    content: str
    role: Optional[str] = None
    avatar: Optional[str] = None
    rating: int = 5
    is_active: bool = True


@dataclass
class Content(StorageRecord):
    """A content block; the record id is its key"""
    key: str
    content: str
    title: Optional[str] = None
    type: ContentType = ContentType.TEXT


FAQ_FIELDS = ("question", "answer", "order", "is_active")
TESTIMONIAL_FIELDS = ("name", "role", "content", "avatar", "rating", "is_active")


def _validate_rating(rating: Any) -> int:
    rating = int(rating)
    if not 1 <= rating <= 5:
        raise ValueError("Rating must be between 1 and 5")
    return rating


class CmsManager:
    """Public site content"""

    faqs_table = "faqs"
    testimonials_table = "testimonials"
    content_table = "content"

    def __init__(self, storage: StorageInterface, activity: ActivityLog):
        self.storage = storage
        self.activity = activity

    def _log(self, admin_id: str, action: str, resource: str, resource_id: Optional[str] = None,
             details: Optional[Dict[str, Any]] = None) -> None:
        self.activity.log(admin_id, ActorType.ADMIN, action, resource, resource_id, details=details)

    # FAQs

    def get_all_faqs(self, active_only: bool = False) -> List[Faq]:
        filters = {'is_active': True} if active_only else {}
        faqs = [Faq.from_dict(d) for d in self.storage.find(self.faqs_table, filters)]
        faqs.sort(key=lambda f: (f.order, f.created_at))
        return faqs

    def get_faq(self, faq_id: str) -> Optional[Faq]:
        data = self.storage.load(self.faqs_table, faq_id)
        if data:
            return Faq.from_dict(data)
        return None

    def create_faq(self, data: Dict[str, Any], admin_id: str) -> Faq:
        if not data.get('question') or not data.get('answer'):
            raise ValueError("Question and answer are required")
        now = datetime.now(timezone.utc)
        values = {k: v for k, v in data.items() if k in FAQ_FIELDS and v is not None}
        faq = Faq(id=new_id(), created_at=now, updated_at=now, **values)
        self.storage.save(self.faqs_table, faq.id, faq.to_dict())
        self._log(admin_id, "create_faq", "faq", faq.id)
        return faq

    def update_faq(self, faq_id: str, data: Dict[str, Any], admin_id: str) -> Faq:
        faq = self.get_faq(faq_id)
        if not faq:
            raise ValueError("FAQ not found")
        for key, value in data.items():
            if key in FAQ_FIELDS and value is not None:
                setattr(faq, key, value)
        faq.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.faqs_table, faq.id, faq.to_dict())
        self._log(admin_id, "update_faq", "faq", faq.id)
        return faq

    def delete_faq(self, faq_id: str, admin_id: str) -> None:
        if not self.storage.delete(self.faqs_table, faq_id):
            raise ValueError("FAQ not found")
        self._log(admin_id, "delete_faq", "faq", faq_id)

    # Testimonials

    def get_all_testimonials(self, active_only: bool = False) -> List[Testimonial]:
        filters = {'is_active': True} if active_only else {}
        items = [Testimonial.from_dict(d) for d in self.storage.find(self.testimonials_table, filters)]
        items.sort(key=lambda t: t.created_at, reverse=True)
        return items

    def get_testimonial(self, testimonial_id: str) -> Optional[Testimonial]:
        data = self.storage.load(self.testimonials_table, testimonial_id)
        if data:
            return Testimonial.from_dict(data)
        return None

    def create_testimonial(self, data: Dict[str, Any], admin_id: str) -> Testimonial:
        if not data.get('name') or not data.get('content'):
            raise ValueError("Name and content are required")
        values = {k: v for k, v in data.items() if k in TESTIMONIAL_FIELDS and v is not None}
        if 'rating' in values:
            values['rating'] = _validate_rating(values['rating'])
        now = datetime.now(timezone.utc)
        testimonial = Testimonial(id=new_id(), created_at=now, updated_at=now, **values)
        self.storage.save(self.testimonials_table, testimonial.id, testimonial.to_dict())
        self._log(admin_id, "create_testimonial", "testimonial", testimonial.id)
        return testimonial

    def update_testimonial(self, testimonial_id: str, data: Dict[str, Any], admin_id: str) -> Testimonial:
        testimonial = self.get_testimonial(testimonial_id)
        if not testimonial:
            raise ValueError("Testimonial not found")
        for key, value in data.items():
            if key in TESTIMONIAL_FIELDS and value is not None:
                setattr(testimonial, key, _validate_rating(value) if key == 'rating' else value)
        testimonial.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.testimonials_table, testimonial.id, testimonial.to_dict())
        self._log(admin_id, "update_testimonial", "testimonial", testimonial.id)
        return testimonial

    def delete_testimonial(self, testimonial_id: str, admin_id: str) -> None:
        if not self.storage.delete(self.testimonials_table, testimonial_id):
            raise ValueError("Testimonial not found")
        self._log(admin_id, "delete_testimonial", "testimonial", testimonial_id)

    # Keyed content

    def get_content(self, key: str) -> Optional[Content]:
        data = self.storage.load(self.content_table, key)
        if data:
            return Content.from_dict(data)
        return None

    def get_all_content(self) -> List[Content]:
        items = [Content.from_dict(d) for d in self.storage.load_all(self.content_table)]
        items.sort(key=lambda c: c.key)
        return items

    def set_content(self, key: str, content: str, admin_id: str, title: Optional[str] = None,
                    type: Optional[ContentType] = None) -> Content:
        """Create or replace the content stored under key"""
        now = datetime.now(timezone.utc)
        existing = self.get_content(key)
        if existing:
            existing.content = content
            if title is not None:
                existing.title = title
            if type is not None:
                existing.type = type
            existing.updated_at = now
            record = existing
        else:
            record = Content(id=key, created_at=now, updated_at=now, key=key, content=content,
                             title=title, type=type or ContentType.TEXT)
        self.storage.save(self.content_table, key, record.to_dict())
        self._log(admin_id, "update_content", "content", details={"key": key})
        return record

    def delete_content(self, key: str, admin_id: str) -> None:
        if not self.storage.delete(self.content_table, key):
            raise ValueError("Content not found")
        self._log(admin_id, "delete_content", "content", details={"key": key})

    def _text(self, key: str) -> str:
        record = self.get_content(key)
        return record.content if record else ""

    def get_privacy_policy(self) -> str:
        return self._text(PRIVACY_POLICY)

    def set_privacy_policy(self, content: str, admin_id: str) -> Content:
        return self.set_content(PRIVACY_POLICY, content, admin_id, type=ContentType.HTML)

    def get_terms_of_service(self) -> str:
        return self._text(TERMS_OF_SERVICE)

    def set_terms_of_service(self, content: str, admin_id: str) -> Content:
        return self.set_content(TERMS_OF_SERVICE, content, admin_id, type=ContentType.HTML)

    def get_about_us(self) -> str:
        return self._text(ABOUT_US)

    def set_about_us(self, content: str, admin_id: str) -> Content:
        return self.set_content(ABOUT_US, content, admin_id, type=ContentType.HTML)
