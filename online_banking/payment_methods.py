"""
Payment Methods Module

Admin-configured deposit and withdrawal channels with amount ranges and fees.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .money import quantize, to_decimal, HUNDRED
from .storage import StorageInterface, StorageRecord


class PaymentMethodType(Enum):
    BANK = "bank"
    CRYPTO = "crypto"
    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    PAYPAL = "paypal"


class PaymentMethodStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class FeeType(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


@dataclass
class PaymentMethod(StorageRecord):
    """A deposit/withdrawal channel"""
    name: str
    type: PaymentMethodType
    details: Dict[str, Any] = field(default_factory=dict)
    instructions: Optional[str] = None
    min_amount: Decimal = Decimal("1")
    max_amount: Decimal = Decimal("1000000")
    fee: Decimal = Decimal("0")
    fee_type: FeeType = FeeType.FIXED
    status: PaymentMethodStatus = PaymentMethodStatus.ACTIVE

    def calculate_fee(self, amount: Decimal) -> Decimal:
        """Fixed fee, or amount × fee / 100 for percentage fees"""
        if self.fee_type == FeeType.PERCENTAGE:
            return quantize(to_decimal(amount) * self.fee / HUNDRED)
        return quantize(self.fee)

    def accepts(self, amount: Decimal) -> bool:
        return self.min_amount <= amount <= self.max_amount


EDITABLE_FIELDS = ("name", "type", "details", "instructions", "min_amount",
                   "max_amount", "fee", "fee_type", "status")


def _coerce(key: str, value: Any) -> Any:
    if key == "type":
        return PaymentMethodType(value)
    if key == "fee_type":
        return FeeType(value)
    if key == "status":
        return PaymentMethodStatus(value)
    if key in ("min_amount", "max_amount", "fee"):
        value = to_decimal(value)
        if value < 0:
            raise ValueError(f"{key.replace('_', ' ').capitalize()} cannot be negative")
        return value
    return value


class PaymentMethodManager:
    """CRUD for payment methods"""

    table_name = "payment_methods"

    def __init__(self, storage: StorageInterface, activity: ActivityLog):
        self.storage = storage
        self.activity = activity

    def _save(self, method: PaymentMethod) -> None:
        self.storage.save(self.table_name, method.id, method.to_dict())

    def get(self, method_id: str) -> Optional[PaymentMethod]:
        data = self.storage.load(self.table_name, method_id)
        if data:
            return PaymentMethod.from_dict(data)
        return None

    def list_active(self, type: Optional[PaymentMethodType] = None) -> List[PaymentMethod]:
        filters: Dict[str, Any] = {'status': PaymentMethodStatus.ACTIVE}
        if type:
            filters['type'] = type
        methods = [PaymentMethod.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        methods.sort(key=lambda m: m.name.lower())
        return methods

    def list_all(self) -> List[PaymentMethod]:
        methods = [PaymentMethod.from_dict(d) for d in self.storage.load_all(self.table_name)]
        methods.sort(key=lambda m: m.created_at, reverse=True)
        return methods

    def create(self, data: Dict[str, Any], admin_id: str) -> PaymentMethod:
        if not data.get('name'):
            raise ValueError("Name is required")
        values = {k: _coerce(k, v) for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        now = datetime.now(timezone.utc)
        method = PaymentMethod(id=new_id(), created_at=now, updated_at=now, **values)
        if method.min_amount > method.max_amount:
            raise ValueError("Minimum amount cannot exceed maximum amount")
        self._save(method)
        self.activity.log(admin_id, ActorType.ADMIN, "create_payment_method", "payment_method",
                          method.id, details={"name": method.name})
        return method

    def update(self, method_id: str, data: Dict[str, Any], admin_id: str) -> PaymentMethod:
        method = self.get(method_id)
        if not method:
            raise ValueError("Payment method not found")
        for key, value in data.items():
            if key in EDITABLE_FIELDS and value is not None:
                setattr(method, key, _coerce(key, value))
        if method.min_amount > method.max_amount:
            raise ValueError("Minimum amount cannot exceed maximum amount")
        method.updated_at = datetime.now(timezone.utc)
        self._save(method)
        self.activity.log(admin_id, ActorType.ADMIN, "update_payment_method", "payment_method", method.id)
        return method

    def delete(self, method_id: str, admin_id: str) -> None:
        method = self.get(method_id)
        if not method:
            raise ValueError("Payment method not found")
        self.storage.delete(self.table_name, method_id)
        self.activity.log(admin_id, ActorType.ADMIN, "delete_payment_method", "payment_method",
                          details={"name": method.name})
