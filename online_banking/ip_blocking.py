"""
IP Blocking Module

Admin-maintained deny list of client IP addresses, optionally time limited.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Optional, Any

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord, paginate


@dataclass
class BlockedIp(StorageRecord):
    ip_address: str
    blocked_by: str
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or datetime.now(timezone.utc))


class IpBlockList:
    """Blocked client addresses"""

    table_name = "blocked_ips"

    def __init__(self, storage: StorageInterface, activity: ActivityLog):
        self.storage = storage
        self.activity = activity
        self.logger = get_logger("bankline.security")

    def _find(self, ip_address: str) -> Optional[BlockedIp]:
        data = self.storage.find_one(self.table_name, {'ip_address': ip_address})
        if data:
            return BlockedIp.from_dict(data)
        return None

    def is_blocked(self, ip_address: str) -> bool:
        entry = self._find(ip_address)
        return entry is not None and not entry.is_expired()

    def get_all_blocked(self, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        self.cleanup_expired()
        entries = [BlockedIp.from_dict(d) for d in self.storage.load_all(self.table_name)]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return paginate(entries, page, limit)

    def block_ip(self, ip_address: str, admin_id: str, reason: Optional[str] = None,
                 expires_at: Optional[datetime] = None) -> BlockedIp:
        if not ip_address:
            raise ValueError("IP address is required")
        self.cleanup_expired()
        if self._find(ip_address):
            raise ValueError("IP address is already blocked")
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        now = datetime.now(timezone.utc)
        entry = BlockedIp(id=new_id(), created_at=now, updated_at=now, ip_address=ip_address,
                          blocked_by=admin_id, reason=reason, expires_at=expires_at)
        self.storage.save(self.table_name, entry.id, entry.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "block_ip", "blocked_ip", entry.id,
                          details={"ip_address": ip_address, "reason": reason, "expires_at": expires_at})
        log_action(self.logger, "warning", f"Blocked IP {ip_address}", user_id=admin_id, action="block_ip")
        return entry

    def unblock_ip(self, ip_address: str, admin_id: str) -> None:
        entry = self._find(ip_address)
        if not entry:
            raise ValueError("IP address is not blocked")
        self.storage.delete(self.table_name, entry.id)
        self.activity.log(admin_id, ActorType.ADMIN, "unblock_ip", "blocked_ip", details={"ip_address": ip_address})

    def unblock_by_id(self, blocked_ip_id: str, admin_id: str) -> None:
        data = self.storage.load(self.table_name, blocked_ip_id)
        if not data:
            raise ValueError("Blocked IP not found")
        self.storage.delete(self.table_name, blocked_ip_id)
        self.activity.log(admin_id, ActorType.ADMIN, "unblock_ip", "blocked_ip",
                          details={"ip_address": data['ip_address']})

    def cleanup_expired(self) -> int:
        """Delete expired entries; returns how many were removed"""
        now = datetime.now(timezone.utc)
        removed = 0
        for data in self.storage.load_all(self.table_name):
            if BlockedIp.from_dict(data).is_expired(now):
                self.storage.delete(self.table_name, data['id'])
                removed += 1
        return removed
