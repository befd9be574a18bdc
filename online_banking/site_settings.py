"""
Site Settings Module

Key/value platform settings grouped by category, plus the single appearance
(branding) document used by the public site.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .storage import StorageInterface, StorageRecord


class SettingsCategory(Enum):
    GENERAL = "general"
    EMAIL = "email"
    PAYMENT = "payment"
    SECURITY = "security"
    LIMITS = "limits"


@dataclass
class Setting(StorageRecord):
    """One setting; the record id is the key itself"""
    key: str
    value: Any
    category: SettingsCategory = SettingsCategory.GENERAL


@dataclass
class AppearanceSettings(StorageRecord):
    """Branding shown on the public site"""
    primary_color: str = "#3B82F6"
    secondary_color: str = "#1E40AF"
    accent_color: str = "#10B981"
    logo: Optional[str] = None
    favicon: Optional[str] = None
    hero_image: Optional[str] = None
    dark_mode: bool = False
    custom_css: Optional[str] = None


APPEARANCE_ID = "appearance"
APPEARANCE_FIELDS = {
    f.name for f in fields(AppearanceSettings)
} - {"id", "created_at", "updated_at"}

# Grouped helpers: prefix -> category
PREFIX_CATEGORIES = {
    "app_": SettingsCategory.GENERAL,
    "referral_": SettingsCategory.GENERAL,
    "limit_": SettingsCategory.LIMITS,
    "security_": SettingsCategory.SECURITY,
    "email_": SettingsCategory.EMAIL,
}


class SiteSettingsManager:
    """Reads and writes platform settings"""

    table_name = "settings"
    appearance_table = "appearance_settings"

    def __init__(self, storage: StorageInterface, activity: ActivityLog):
        self.storage = storage
        self.activity = activity

    def _upsert(self, key: str, value: Any, category: SettingsCategory) -> Setting:
        now = datetime.now(timezone.utc)
        existing = self.storage.load(self.table_name, key)
        setting = Setting(
            id=key,
            created_at=datetime.fromisoformat(existing['created_at']) if existing else now,
            updated_at=now,
            key=key,
            value=value,
            category=category,
        )
        self.storage.save(self.table_name, key, setting.to_dict())
        return setting

    def get_all(self) -> Dict[str, Any]:
        return {d['key']: d['value'] for d in self.storage.load_all(self.table_name)}

    def get_by_category(self, category: SettingsCategory) -> Dict[str, Any]:
        return {d['key']: d['value'] for d in self.storage.find(self.table_name, {'category': category})}

    def get(self, key: str, default: Any = None) -> Any:
        data = self.storage.load(self.table_name, key)
        return data['value'] if data else default

    def set(self, key: str, value: Any, category: SettingsCategory, admin_id: str) -> Setting:
        setting = self._upsert(key, value, category)
        self.activity.log(admin_id, ActorType.ADMIN, "update_setting", "settings",
                          details={"key": key, "category": category.value})
        return setting

    def update_many(self, settings: List[Dict[str, Any]], admin_id: str) -> int:
        """Upsert a batch of {key, value, category} items"""
        with self.storage.atomic():
            for item in settings:
                category = item.get('category', SettingsCategory.GENERAL)
                if isinstance(category, str):
                    category = SettingsCategory(category)
                self._upsert(item['key'], item.get('value'), category)
        self.activity.log(admin_id, ActorType.ADMIN, "update_settings", "settings",
                          details={"count": len(settings)})
        return len(settings)

    def delete(self, key: str, admin_id: str) -> bool:
        deleted = self.storage.delete(self.table_name, key)
        self.activity.log(admin_id, ActorType.ADMIN, "delete_setting", "settings",
                          details={"key": key})
        return deleted

    # Prefixed groups

    def get_group(self, prefix: str, strip_prefix: bool = False) -> Dict[str, Any]:
        result = {}
        for data in self.storage.load_all(self.table_name):
            if data['key'].startswith(prefix):
                key = data['key'][len(prefix):] if strip_prefix else data['key']
                result[key] = data['value']
        return result

    def update_group(self, prefix: str, values: Dict[str, Any], admin_id: str) -> int:
        """Store each non-None value under prefix+key"""
        category = PREFIX_CATEGORIES[prefix]
        items = [
            {"key": f"{prefix}{key}", "value": value, "category": category}
            for key, value in values.items()
            if value is not None
        ]
        return self.update_many(items, admin_id)

    def get_app_settings(self) -> Dict[str, Any]:
        return self.get_group("app_", strip_prefix=True)

    def update_app_info(self, data: Dict[str, Any], admin_id: str) -> int:
        return self.update_group("app_", data, admin_id)

    def get_referral_settings(self) -> Dict[str, Any]:
        return self.get_group("referral_", strip_prefix=True)

    def update_referral_bonus(self, data: Dict[str, Any], admin_id: str) -> int:
        return self.update_group("referral_", data, admin_id)

    def get_limits(self) -> Dict[str, Any]:
        return self.get_group("limit_", strip_prefix=True)

    def update_limits(self, data: Dict[str, Any], admin_id: str) -> int:
        return self.update_group("limit_", data, admin_id)

    def get_security_settings(self) -> Dict[str, Any]:
        return self.get_group("security_", strip_prefix=True)

    def update_security_settings(self, data: Dict[str, Any], admin_id: str) -> int:
        return self.update_group("security_", data, admin_id)

    def get_email_settings(self) -> Dict[str, Any]:
        return self.get_group("email_", strip_prefix=True)

    def update_email_settings(self, data: Dict[str, Any], admin_id: str) -> int:
        return self.update_group("email_", data, admin_id)

    # Appearance

    def get_appearance(self) -> AppearanceSettings:
        """Return the appearance document, creating defaults if missing"""
        data = self.storage.load(self.appearance_table, APPEARANCE_ID)
        if data:
            return AppearanceSettings.from_dict(data)
        now = datetime.now(timezone.utc)
        appearance = AppearanceSettings(id=APPEARANCE_ID, created_at=now, updated_at=now)
        self.storage.save(self.appearance_table, APPEARANCE_ID, appearance.to_dict())
        return appearance

    def update_appearance(self, data: Dict[str, Any], admin_id: str) -> AppearanceSettings:
        appearance = self.get_appearance()
        changed = []
        for key, value in data.items():
            if key in APPEARANCE_FIELDS and value is not None:
                setattr(appearance, key, value)
                changed.append(key)
        appearance.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.appearance_table, APPEARANCE_ID, appearance.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "update_appearance", "appearance",
                          details={"fields": changed})
        return appearance

    def reset_appearance(self, admin_id: str) -> AppearanceSettings:
        now = datetime.now(timezone.utc)
        appearance = AppearanceSettings(id=APPEARANCE_ID, created_at=now, updated_at=now)
        self.storage.save(self.appearance_table, APPEARANCE_ID, appearance.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "reset_appearance", "appearance")
        return appearance
