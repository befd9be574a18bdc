"""
In-App Notification Module

Stores per-user notifications shown in the customer dashboard and provides
read/unread management and broadcast helpers.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Iterable
from enum import Enum

from .identifiers import new_id
from .storage import StorageInterface, StorageRecord, paginate


class NotificationType(Enum):
    """Visual severity of a notification"""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification(StorageRecord):
    """A notification addressed to a single user"""
    user_id: str
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    link: Optional[str] = None
    is_read: bool = False


class NotificationManager:
    """Creates and manages in-app notifications"""

    table_name = "notifications"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def _save(self, notification: Notification) -> None:
        self.storage.save(self.table_name, notification.id, notification.to_dict())

    def create(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        link: Optional[str] = None
    ) -> Notification:
        now = datetime.now(timezone.utc)
        notification = Notification(
            id=new_id(),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            link=link,
        )
        self._save(notification)
        return notification

    def send_to_user(self, user_id: str, title: str, message: str,
                     type: NotificationType = NotificationType.INFO,
                     link: Optional[str] = None) -> Notification:
        return self.create(user_id, title, message, type, link)

    def send_to_all(self, user_ids: Iterable[str], title: str, message: str,
                    type: NotificationType = NotificationType.INFO) -> int:
        """Broadcast to every given user; returns how many were created"""
        count = 0
        with self.storage.atomic():
            for user_id in user_ids:
                self.create(user_id, title, message, type)
                count += 1
        return count

    def get(self, notification_id: str) -> Optional[Notification]:
        data = self.storage.load(self.table_name, notification_id)
        if data:
            return Notification.from_dict(data)
        return None

    def _for_user(self, user_id: str) -> List[Notification]:
        items = [Notification.from_dict(d) for d in self.storage.find(self.table_name, {'user_id': user_id})]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items

    def list_for_user(self, user_id: str, page: int = 1, limit: int = 20,
                      unread_only: bool = False) -> Dict[str, Any]:
        """Paginated notifications, newest first, with the unread count"""
        items = self._for_user(user_id)
        unread_count = sum(1 for n in items if not n.is_read)
        if unread_only:
            items = [n for n in items if not n.is_read]
        result = paginate(items, page, limit)
        result['unread_count'] = unread_count
        return result

    def get_unread_count(self, user_id: str) -> int:
        return len(self.storage.find(self.table_name, {'user_id': user_id, 'is_read': False}))

    def _owned(self, notification_id: str, user_id: str) -> Notification:
        notification = self.get(notification_id)
        if not notification or notification.user_id != user_id:
            raise ValueError("Notification not found")
        return notification

    def mark_as_read(self, notification_id: str, user_id: str) -> Notification:
        notification = self._owned(notification_id, user_id)
        notification.is_read = True
        notification.updated_at = datetime.now(timezone.utc)
        self._save(notification)
        return notification

    def mark_all_as_read(self, user_id: str) -> int:
        now = datetime.now(timezone.utc)
        count = 0
        for notification in self._for_user(user_id):
            if not notification.is_read:
                notification.is_read = True
                notification.updated_at = now
                self._save(notification)
                count += 1
        return count

    def delete(self, notification_id: str, user_id: str) -> None:
        self._owned(notification_id, user_id)
        self.storage.delete(self.table_name, notification_id)

    def delete_all_read(self, user_id: str) -> int:
        read = self.storage.find(self.table_name, {'user_id': user_id, 'is_read': True})
        for data in read:
            self.storage.delete(self.table_name, data['id'])
        return len(read)

    def delete_all_for_user(self, user_id: str) -> int:
        """Remove every notification of a user (account deletion)"""
        items = self.storage.find(self.table_name, {'user_id': user_id})
        for data in items:
            self.storage.delete(self.table_name, data['id'])
        return len(items)
