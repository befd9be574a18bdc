"""
Investment Plans Module

Fixed-term investment plans. Subscribing moves the principal out of the
balance; at maturity an administrator pays principal plus return.
"""

from decimal import Decimal
from datetime import datetime, timezone, timedelta
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id, investment_return
from .logging_config import get_logger, log_action
from .money import format_amount, format_number, require_positive_amount, to_decimal
from .notifications import NotificationManager, NotificationType
from .storage import StorageInterface, StorageRecord, paginate
from .transactions import TransactionLedger, TransactionType
from .users import UserManager


class PlanStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserPlanStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class Plan(StorageRecord):
    name: str
    min_amount: Decimal
    max_amount: Decimal
    return_percentage: Decimal
    duration_days: int
    description: str = ""
    features: List[str] = field(default_factory=list)
    status: PlanStatus = PlanStatus.ACTIVE


@dataclass
class UserPlan(StorageRecord):
    user_id: str
    plan_id: str
    plan_name: str
    amount: Decimal
    expected_return: Decimal
    start_date: datetime
    end_date: datetime
    status: UserPlanStatus = UserPlanStatus.ACTIVE
    return_paid: bool = False


PLAN_FIELDS = ("name", "description", "min_amount", "max_amount", "return_percentage",
               "duration_days", "features", "status")


def _coerce(key: str, value: Any) -> Any:
    if key in ("min_amount", "max_amount", "return_percentage"):
        value = to_decimal(value)
        if value < 0:
            raise ValueError(f"{key.replace('_', ' ').capitalize()} cannot be negative")
        return value
    if key == "duration_days":
        value = int(value)
        if value < 1:
            raise ValueError("Duration must be at least one day")
        return value
    if key == "status":
        return PlanStatus(value)
    return value


class PlanManager:
    """Investment plan catalogue and subscriptions"""

    table_name = "plans"
    subscriptions_table = "user_plans"

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
        self.logger = get_logger("bankline.plans")

    def _save_plan(self, plan: Plan) -> None:
        plan.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, plan.id, plan.to_dict())

    def _save_subscription(self, user_plan: UserPlan) -> None:
        user_plan.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.subscriptions_table, user_plan.id, user_plan.to_dict())

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        data = self.storage.load(self.table_name, plan_id)
        if data:
            return Plan.from_dict(data)
        return None

    def get_user_plan(self, user_plan_id: str) -> Optional[UserPlan]:
        data = self.storage.load(self.subscriptions_table, user_plan_id)
        if data:
            return UserPlan.from_dict(data)
        return None

    def get_active_plans(self) -> List[Plan]:
        plans = [Plan.from_dict(d) for d in self.storage.find(self.table_name, {'status': PlanStatus.ACTIVE})]
        plans.sort(key=lambda p: p.min_amount)
        return plans

    # Customer operations

    def subscribe(self, user_id: str, plan_id: str, amount: Any) -> UserPlan:
        amount = require_positive_amount(amount)

        with self.storage.atomic():
            user = self.users.require_user(user_id)
            plan = self.get_plan(plan_id)
            if not plan:
                raise ValueError("Plan not found")
            if plan.status != PlanStatus.ACTIVE:
                raise ValueError("Plan is not active")
            if amount < plan.min_amount or amount > plan.max_amount:
                raise ValueError(
                    f"Amount must be between ${format_number(plan.min_amount)} and ${format_number(plan.max_amount)}"
                )
            if user.balance < amount:
                raise ValueError("Insufficient balance")

            before = user.balance
            user.balance = before - amount
            self.users.save_user(user)

            now = datetime.now(timezone.utc)
            expected = investment_return(amount, plan.return_percentage)
            user_plan = UserPlan(
                id=new_id(),
                created_at=now,
                updated_at=now,
                user_id=user.id,
                plan_id=plan.id,
                plan_name=plan.name,
                amount=amount,
                expected_return=expected,
                start_date=now,
                end_date=now + timedelta(days=plan.duration_days),
            )
            self._save_subscription(user_plan)

            self.transactions.record(
                user.id, TransactionType.INVESTMENT, amount, before, user.balance,
                description=f"Investment in {plan.name}",
                metadata={"plan_id": plan.id, "user_plan_id": user_plan.id},
            )

        self.notifications.create(
            user.id, "Investment Successful",
            f"You have successfully invested {format_amount(amount)} in {plan.name}. "
            f"Expected return: {format_amount(expected)}",
            NotificationType.SUCCESS
        )
        self.activity.log(user.id, ActorType.USER, "subscribe_plan", "user_plan", user_plan.id,
                          details={"plan_id": plan.id, "amount": amount, "expected_return": expected})
        return user_plan

    def get_user_plans(self, user_id: str, page: int = 1, limit: int = 10,
                       status: Optional[UserPlanStatus] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {'user_id': user_id}
        if status:
            filters['status'] = status
        return paginate(self._subscriptions(filters), page, limit)

    def _subscriptions(self, filters: Dict[str, Any]) -> List[UserPlan]:
        items = [UserPlan.from_dict(d) for d in self.storage.find(self.subscriptions_table, filters)]
        items.sort(key=lambda p: p.created_at, reverse=True)
        return items

    def cancel(self, user_plan_id: str, user_id: str) -> UserPlan:
        """Cancel an active subscription and refund the principal"""
        with self.storage.atomic():
            user_plan = self.get_user_plan(user_plan_id)
            if not user_plan or user_plan.user_id != user_id:
                raise ValueError("Plan not found")
            if user_plan.status != UserPlanStatus.ACTIVE:
                raise ValueError("Plan is not active")

            user = self.users.get_user(user_id)
            if user:
                before = user.balance
                user.balance = before + user_plan.amount
                self.users.save_user(user)
                self.transactions.record(
                    user.id, TransactionType.INVESTMENT, user_plan.amount, before, user.balance,
                    description="Investment plan cancelled - refund",
                    metadata={"user_plan_id": user_plan.id},
                )

            user_plan.status = UserPlanStatus.CANCELLED
            self._save_subscription(user_plan)

        self.activity.log(user_id, ActorType.USER, "cancel_plan", "user_plan", user_plan.id)
        return user_plan

    # Admin operations

    def get_all(self, page: int = 1, limit: int = 20, status: Optional[PlanStatus] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {'status': status} if status else {}
        plans = [Plan.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        plans.sort(key=lambda p: p.created_at, reverse=True)
        return paginate(plans, page, limit)

    def get_all_user_plans(self, page: int = 1, limit: int = 20,
                           status: Optional[UserPlanStatus] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {'status': status} if status else {}
        return paginate(self._subscriptions(filters), page, limit)

    def create_plan(self, data: Dict[str, Any], admin_id: str) -> Plan:
        for key in ("name", "min_amount", "max_amount", "return_percentage", "duration_days"):
            if data.get(key) in (None, ""):
                raise ValueError(f"{key.replace('_', ' ').capitalize()} is required")
        values = {k: _coerce(k, v) for k, v in data.items() if k in PLAN_FIELDS and v is not None}
        if values['min_amount'] > values['max_amount']:
            raise ValueError("Minimum amount cannot exceed maximum amount")

        now = datetime.now(timezone.utc)
        plan = Plan(id=new_id(), created_at=now, updated_at=now, **values)
        self._save_plan(plan)
        self.activity.log(admin_id, ActorType.ADMIN, "create_plan", "plan", plan.id, details={"name": plan.name})
        return plan

    def update_plan(self, plan_id: str, data: Dict[str, Any], admin_id: str) -> Plan:
        plan = self.get_plan(plan_id)
        if not plan:
            raise ValueError("Plan not found")
        for key, value in data.items():
            if key in PLAN_FIELDS and value is not None:
                setattr(plan, key, _coerce(key, value))
        if plan.min_amount > plan.max_amount:
            raise ValueError("Minimum amount cannot exceed maximum amount")
        self._save_plan(plan)
        self.activity.log(admin_id, ActorType.ADMIN, "update_plan", "plan", plan.id,
                          details={k: v for k, v in data.items() if k in PLAN_FIELDS})
        return plan

    def delete_plan(self, plan_id: str, admin_id: str) -> None:
        plan = self.get_plan(plan_id)
        if not plan:
            raise ValueError("Plan not found")
        active = self.storage.find(self.subscriptions_table, {'plan_id': plan.id, 'status': UserPlanStatus.ACTIVE})
        if active:
            raise ValueError("Cannot delete plan with active subscriptions")
        self.storage.delete(self.table_name, plan.id)
        self.activity.log(admin_id, ActorType.ADMIN, "delete_plan", "plan", plan.id, details={"name": plan.name})

    def complete(self, user_plan_id: str, admin_id: str) -> UserPlan:
        """Pay out a matured subscription's expected return"""
        with self.storage.atomic():
            user_plan = self.get_user_plan(user_plan_id)
            if not user_plan:
                raise ValueError("User plan not found")
            if user_plan.status != UserPlanStatus.ACTIVE:
                raise ValueError("Plan is not active")
            user = self.users.require_user(user_plan.user_id)

            before = user.balance
            user.balance = before + user_plan.expected_return
            self.users.save_user(user)

            user_plan.status = UserPlanStatus.COMPLETED
            user_plan.return_paid = True
            self._save_subscription(user_plan)

            self.transactions.record(
                user.id, TransactionType.INVESTMENT, user_plan.expected_return, before, user.balance,
                description=f"Investment return - {user_plan.plan_name}",
                metadata={"user_plan_id": user_plan.id},
            )

        self.notifications.create(
            user.id, "Investment Matured",
            f"Your investment has matured! {format_amount(user_plan.expected_return)} has been credited to your account.",
            NotificationType.SUCCESS
        )
        self.activity.log(admin_id, ActorType.ADMIN, "complete_plan", "user_plan", user_plan.id,
                          details={"amount": user_plan.expected_return})
        log_action(self.logger, "info", f"Investment {user_plan.id} paid out {user_plan.expected_return}",
                   user_id=admin_id, action="complete_plan", resource=user_plan.id)
        return user_plan
