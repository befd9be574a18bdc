"""
Memberships Module

Paid memberships that unlock course content for a fixed number of days.
Enrolling debits the membership price from the customer's balance.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .logging_config import get_logger, log_action
from .money import ZERO, format_amount, quantize
from .notifications import NotificationManager, NotificationType
from .storage import StorageInterface, StorageRecord
from .transactions import TransactionLedger, TransactionType
from .users import UserManager


class MembershipStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class EnrollmentStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CourseStatus(Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


@dataclass
class Membership(StorageRecord):
    name: str
    description: str
    price: Decimal
    duration_days: int
    features: List[str] = field(default_factory=list)
    status: MembershipStatus = MembershipStatus.ACTIVE


@dataclass
class Enrollment(StorageRecord):
    user_id: str
    membership_id: str
    membership_name: str
    start_date: datetime
    end_date: datetime
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE

    def is_current(self, at: Optional[datetime] = None) -> bool:
        at = at or datetime.now(timezone.utc)
        return self.status == EnrollmentStatus.ACTIVE and self.end_date >= at


@dataclass
class Course(StorageRecord):
    title: str
    description: str
    membership_id: Optional[str] = None
    thumbnail: Optional[str] = None
    video_url: Optional[str] = None
    duration: int = 0
    order: int = 0
    status: CourseStatus = CourseStatus.DRAFT


MEMBERSHIP_FIELDS = ("name", "description", "price", "duration_days", "features", "status")
COURSE_FIELDS = ("title", "description", "membership_id", "thumbnail", "video_url", "duration",
                 "order", "status")


def _coerce_membership(key: str, value: Any) -> Any:
    if key == "price":
        value = quantize(value)
        if value < ZERO:
            raise ValueError("Price cannot be negative")
        return value
    if key == "duration_days":
        value = int(value)
        if value < 1:
            raise ValueError("Duration must be at least 1 day")
        return value
    if key == "status":
        return MembershipStatus(value)
    return value


def _coerce_course(key: str, value: Any) -> Any:
    if key in ("duration", "order"):
        return int(value)
    if key == "status":
        return CourseStatus(value)
    return value


class MembershipManager:
    """Membership catalogue, enrollments and course access"""

    table_name = "memberships"
    enrollments_table = "enrollments"
    courses_table = "courses"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        transactions: TransactionLedger,
        notifications: NotificationManager
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.transactions = transactions
        self.notifications = notifications
        self.logger = get_logger("bankline.memberships")

    def _save(self, table: str, record: StorageRecord) -> None:
        record.updated_at = datetime.now(timezone.utc)
        self.storage.save(table, record.id, record.to_dict())

    def get_membership(self, membership_id: str) -> Optional[Membership]:
        data = self.storage.load(self.table_name, membership_id)
        if data:
            return Membership.from_dict(data)
        return None

    def get_course(self, course_id: str) -> Optional[Course]:
        data = self.storage.load(self.courses_table, course_id)
        if data:
            return Course.from_dict(data)
        return None

    def get_active_memberships(self) -> List[Membership]:
        memberships = [Membership.from_dict(d)
                       for d in self.storage.find(self.table_name, {'status': MembershipStatus.ACTIVE})]
        memberships.sort(key=lambda m: m.price)
        return memberships

    def _current_enrollment(self, user_id: str, membership_id: str) -> Optional[Enrollment]:
        for data in self.storage.find(self.enrollments_table, {'user_id': user_id,
                                                               'membership_id': membership_id}):
            enrollment = Enrollment.from_dict(data)
            if enrollment.is_current():
                return enrollment
        return None

    # Customer operations

    def subscribe(self, user_id: str, membership_id: str) -> Enrollment:
        with self.storage.atomic():
            user = self.users.require_user(user_id)
            membership = self.get_membership(membership_id)
            if not membership or membership.status != MembershipStatus.ACTIVE:
                raise ValueError("Membership not found or inactive")
            if self._current_enrollment(user.id, membership.id):
                raise ValueError("Already enrolled in this membership")
            if user.balance < membership.price:
                raise ValueError("Insufficient balance")

            before = user.balance
            user.balance = before - membership.price
            self.users.save_user(user)

            now = datetime.now(timezone.utc)
            enrollment = Enrollment(
                id=new_id(),
                created_at=now,
                updated_at=now,
                user_id=user.id,
                membership_id=membership.id,
                membership_name=membership.name,
                start_date=now,
                end_date=now + timedelta(days=membership.duration_days),
            )
            self._save(self.enrollments_table, enrollment)

            if membership.price > ZERO:
                self.transactions.record(
                    user.id, TransactionType.FEE, membership.price, before, user.balance,
                    description=f"Membership subscription: {membership.name}",
                    metadata={"membership_id": membership.id, "enrollment_id": enrollment.id},
                )

        self.notifications.create(
            user.id, "Membership Activated",
            f"Your {membership.name} membership is now active until {enrollment.end_date.date().isoformat()}.",
            NotificationType.SUCCESS
        )
        self.activity.log(user.id, ActorType.USER, "subscribe_membership", "enrollment", enrollment.id,
                          details={"membership_id": membership.id, "price": membership.price})
        log_action(self.logger, "info", f"Enrollment {enrollment.id} charged {format_amount(membership.price)}",
                   user_id=user.id, action="subscribe_membership", resource=enrollment.id)
        return enrollment

    def get_user_enrollments(self, user_id: str, active_only: bool = False) -> List[Enrollment]:
        enrollments = [Enrollment.from_dict(d)
                       for d in self.storage.find(self.enrollments_table, {'user_id': user_id})]
        if active_only:
            enrollments = [e for e in enrollments if e.is_current()]
        enrollments.sort(key=lambda e: e.created_at, reverse=True)
        return enrollments

    def get_courses(self, membership_id: Optional[str] = None) -> List[Course]:
        filters: Dict[str, Any] = {'status': CourseStatus.PUBLISHED}
        if membership_id:
            filters['membership_id'] = membership_id
        courses = [Course.from_dict(d) for d in self.storage.find(self.courses_table, filters)]
        courses.sort(key=lambda c: c.order)
        return courses

    def has_access(self, user_id: str, course_id: str) -> bool:
        """Free courses are open to everyone; the rest need a current enrollment"""
        course = self.get_course(course_id)
        if not course:
            return False
        if not course.membership_id:
            return True
        return self._current_enrollment(user_id, course.membership_id) is not None

    # Admin operations

    def get_all_memberships(self) -> List[Membership]:
        memberships = [Membership.from_dict(d) for d in self.storage.load_all(self.table_name)]
        memberships.sort(key=lambda m: m.price)
        return memberships

    def get_all_courses(self, membership_id: Optional[str] = None) -> List[Course]:
        filters: Dict[str, Any] = {'membership_id': membership_id} if membership_id else {}
        courses = [Course.from_dict(d) for d in self.storage.find(self.courses_table, filters)]
        courses.sort(key=lambda c: c.order)
        return courses

    def create_membership(self, data: Dict[str, Any], admin_id: str) -> Membership:
        for key in ("name", "description", "price", "duration_days"):
            if data.get(key) in (None, ""):
                raise ValueError("Name, description, price, and duration are required")
        values = {k: _coerce_membership(k, v) for k, v in data.items()
                  if k in MEMBERSHIP_FIELDS and v is not None}

        now = datetime.now(timezone.utc)
        membership = Membership(id=new_id(), created_at=now, updated_at=now, **values)
        self._save(self.table_name, membership)
        self.activity.log(admin_id, ActorType.ADMIN, "create_membership", "membership", membership.id,
                          details={"name": membership.name, "price": membership.price})
        return membership

    def update_membership(self, membership_id: str, data: Dict[str, Any], admin_id: str) -> Membership:
        membership = self.get_membership(membership_id)
        if not membership:
            raise ValueError("Membership not found")
        for key, value in data.items():
            if key in MEMBERSHIP_FIELDS and value is not None:
                setattr(membership, key, _coerce_membership(key, value))
        self._save(self.table_name, membership)
        self.activity.log(admin_id, ActorType.ADMIN, "update_membership", "membership", membership.id,
                          details={k: v for k, v in data.items() if k in MEMBERSHIP_FIELDS})
        return membership

    def create_course(self, data: Dict[str, Any], admin_id: str) -> Course:
        if not data.get("title") or not data.get("description"):
            raise ValueError("Title and description are required")
        if data.get("membership_id") and not self.get_membership(data["membership_id"]):
            raise ValueError("Membership not found")
        values = {k: _coerce_course(k, v) for k, v in data.items()
                  if k in COURSE_FIELDS and k != "status" and v is not None}

        now = datetime.now(timezone.utc)
        course = Course(id=new_id(), created_at=now, updated_at=now, **values)
        self._save(self.courses_table, course)
        self.activity.log(admin_id, ActorType.ADMIN, "create_course", "course", course.id,
                          details={"title": course.title})
        return course

    def update_course(self, course_id: str, data: Dict[str, Any], admin_id: str) -> Course:
        course = self.get_course(course_id)
        if not course:
            raise ValueError("Course not found")
        for key, value in data.items():
            if key in COURSE_FIELDS and value is not None:
                setattr(course, key, _coerce_course(key, value))
        self._save(self.courses_table, course)
        self.activity.log(admin_id, ActorType.ADMIN, "update_course", "course", course.id,
                          details={k: v for k, v in data.items() if k in COURSE_FIELDS})
        return course
