"""
Activity Log Module

Hash-chained activity log with SHA-256 for tamper detection. Every user and
admin action that changes state is recorded here.
"""

import hashlib
import json
import threading
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum

from .identifiers import new_id
from .storage import StorageInterface, StorageRecord, encode_value, paginate


class ActorType(Enum):
    """Who performed an action"""
    USER = "user"
    ADMIN = "admin"


LOGIN_ACTIONS = ("login", "login_failed")


@dataclass
class Activity(StorageRecord):
    """
    Immutable activity entry with hash chaining for tamper detection
    """
    actor: str
    actor_type: ActorType
    action: str
    previous_hash: str
    current_hash: str
    sequence: int = 0
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def __post_init__(self):
        if self.details:
            self.details = encode_value(self.details)

    def calculate_hash(self) -> str:
        """
        SHA-256 over all fields except current_hash
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'actor': self.actor,
            'actor_type': self.actor_type.value,
            'action': self.action,
            'resource': self.resource,
            'resource_id': self.resource_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'previous_hash': self.previous_hash,
            'sequence': self.sequence,
        }
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()


class ActivityLog:
    """
    Hash-chained activity log
    """

    table_name = "activities"

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self._last_hash: Optional[str] = None
        self._last_sequence = 0
        self._lock = threading.Lock()
        self._load_last_hash()

    def _load_last_hash(self) -> None:
        """Load the hash of the most recent entry"""
        entries = self.storage.load_all(self.table_name)
        if entries:
            latest = max(entries, key=lambda x: x.get('sequence', 0))
            self._last_hash = latest.get('current_hash')
            self._last_sequence = latest.get('sequence', 0)

    def log(
        self,
        actor: str,
        actor_type: ActorType,
        action: str,
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Activity:
        """
        Record an activity with hash chaining

        Args:
            actor: ID of the user or admin
            actor_type: ActorType.USER or ActorType.ADMIN
            action: Short action name such as "login" or "approve_deposit"
            resource: Kind of resource acted on ("deposit", "card", ...)
            resource_id: ID of that resource
            details: Additional action-specific data
            ip_address: Client address when known
            user_agent: Client user agent when known

        Returns:
            Created Activity
        """
        with self._lock:
            now = datetime.now(timezone.utc)
            activity = Activity(
                id=new_id(),
                created_at=now,
                updated_at=now,
                actor=actor,
                actor_type=actor_type,
                action=action,
                previous_hash=self._last_hash or "",
                current_hash="",
                sequence=self._last_sequence + 1,
                resource=resource,
                resource_id=resource_id,
                details=details or {},
                ip_address=ip_address,
                user_agent=user_agent,
            )
            activity.current_hash = activity.calculate_hash()
            self.storage.save(self.table_name, activity.id, activity.to_dict())
            self._last_hash = activity.current_hash
            self._last_sequence = activity.sequence
            return activity

    def _all_sorted(self, newest_first: bool = True) -> List[Activity]:
        entries = [Activity.from_dict(data) for data in self.storage.load_all(self.table_name)]
        entries.sort(key=lambda a: a.sequence, reverse=newest_first)
        return entries

    def get_user_activities(self, user_id: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """Paginated activities performed by one user, newest first"""
        entries = [
            Activity.from_dict(data)
            for data in self.storage.find(self.table_name, {'actor': user_id, 'actor_type': ActorType.USER})
        ]
        entries.sort(key=lambda a: a.sequence, reverse=True)
        return paginate(entries, page, limit)

    def get_login_activity(self, user_id: str, limit: int = 50) -> List[Activity]:
        """A customer's most recent sign-in attempts"""
        entries = [
            Activity.from_dict(data)
            for data in self.storage.find(self.table_name, {'actor': user_id, 'action': LOGIN_ACTIONS})
        ]
        entries.sort(key=lambda a: a.sequence, reverse=True)
        return entries[:limit]

    def get_recent(self, limit: int = 10) -> List[Activity]:
        return self._all_sorted()[:limit]

    def list(
        self,
        page: int = 1,
        limit: int = 20,
        actor_type: Optional[ActorType] = None,
        action: Optional[str] = None
    ) -> Dict[str, Any]:
        """Paginated activity listing for the back office"""
        entries = self._all_sorted()
        if actor_type:
            entries = [a for a in entries if a.actor_type == actor_type]
        if action:
            entries = [a for a in entries if a.action == action]
        return paginate(entries, page, limit)

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify every hash and the continuity of the chain

        Returns:
            Dictionary with valid flag, total_entries, hash_errors and chain_breaks
        """
        result = {
            'valid': True,
            'total_entries': 0,
            'hash_errors': [],
            'chain_breaks': [],
        }

        entries = self._all_sorted(newest_first=False)
        result['total_entries'] = len(entries)

        previous_hash = ""
        for position, entry in enumerate(entries):
            if not entry.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({'id': entry.id, 'position': position})
            if entry.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({'id': entry.id, 'position': position})
            previous_hash = entry.current_hash

        return result

    def count(self) -> int:
        return self.storage.count(self.table_name)
