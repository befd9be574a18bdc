"""
Support Tickets Module

Customers open tickets; staff reply or move them through the workflow.
"""

import time
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .logging_config import get_logger
from .notifications import NotificationManager, NotificationType
from .storage import StorageInterface, StorageRecord, paginate
from .users import UserManager

SUBJECT_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 2000


class TicketPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TicketStatus(Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


@dataclass
class SupportTicket(StorageRecord):
    user_id: str
    ticket_number: str
    subject: str
    message: str
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    admin_response: Optional[str] = None
    responded_by: Optional[str] = None
    responded_at: Optional[datetime] = None


class SupportManager:
    """Customer support tickets"""

    table_name = "support_tickets"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        notifications: NotificationManager
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.notifications = notifications
        self.logger = get_logger("bankline.support")

    def _save(self, ticket: SupportTicket) -> None:
        ticket.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, ticket.id, ticket.to_dict())

    def _next_ticket_number(self) -> str:
        """TKT-<last 6 digits of the millisecond clock>-<running count>"""
        stamp = str(int(time.time() * 1000))[-6:]
        return f"TKT-{stamp}-{self.storage.count(self.table_name) + 1:04d}"

    def get(self, ticket_id: str) -> Optional[SupportTicket]:
        data = self.storage.load(self.table_name, ticket_id)
        if data:
            return SupportTicket.from_dict(data)
        return None

    def create_ticket(self, user_id: str, subject: str, message: str,
                      priority: Optional[str] = None) -> SupportTicket:
        subject = (subject or "").strip()
        message = (message or "").strip()
        if not subject or not message:
            raise ValueError("Subject and message are required")
        if len(subject) > SUBJECT_MAX_LENGTH:
            raise ValueError(f"Subject cannot exceed {SUBJECT_MAX_LENGTH} characters")
        if len(message) > MESSAGE_MAX_LENGTH:
            raise ValueError(f"Message cannot exceed {MESSAGE_MAX_LENGTH} characters")
        user = self.users.require_user(user_id)

        # Unknown priorities fall back to medium
        try:
            level = TicketPriority(priority)
        except ValueError:
            level = TicketPriority.MEDIUM

        now = datetime.now(timezone.utc)
        ticket = SupportTicket(
            id=new_id(),
            created_at=now,
            updated_at=now,
            user_id=user.id,
            ticket_number=self._next_ticket_number(),
            subject=subject,
            message=message,
            priority=level,
        )
        self._save(ticket)

        self.notifications.create(
            user.id, "Support Ticket Created",
            f"Your support ticket #{ticket.ticket_number} has been submitted. "
            f"Our team will respond within 24 hours.",
            NotificationType.INFO, link=f"/dashboard/support/{ticket.id}"
        )
        self.activity.log(user.id, ActorType.USER, "create_ticket", "ticket", ticket.id,
                          details={"ticket_number": ticket.ticket_number, "priority": level})
        return ticket

    def get_user_tickets(self, user_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        tickets = [SupportTicket.from_dict(d) for d in self.storage.find(self.table_name, {'user_id': user_id})]
        tickets.sort(key=lambda t: t.created_at, reverse=True)
        return paginate(tickets, page, limit)

    def get_all(self, page: int = 1, limit: int = 10, status: Optional[TicketStatus] = None,
                search: Optional[str] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {'status': status} if status else {}
        tickets = [SupportTicket.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        if search:
            needle = search.lower()
            tickets = [t for t in tickets
                       if needle in t.ticket_number.lower() or needle in t.subject.lower()
                       or needle in t.message.lower()]
        tickets.sort(key=lambda t: t.created_at, reverse=True)
        return paginate(tickets, page, limit)

    def update_ticket(self, ticket_id: str, admin_id: str, status: Optional[str] = None,
                      admin_response: Optional[str] = None) -> SupportTicket:
        """Change status and/or reply; a reply resolves the ticket"""
        ticket = self.get(ticket_id)
        if not ticket:
            raise ValueError("Ticket not found")

        new_status = None
        if status:
            try:
                new_status = TicketStatus(status)
            except ValueError:
                new_status = None
        if new_status is None and not admin_response:
            return ticket

        if new_status is not None:
            ticket.status = new_status
        if admin_response:
            ticket.admin_response = admin_response
            ticket.responded_by = admin_id
            ticket.responded_at = datetime.now(timezone.utc)
            ticket.status = TicketStatus.RESOLVED
        self._save(ticket)

        if admin_response:
            self.notifications.create(
                ticket.user_id, "Support Ticket Updated",
                f"Admin has responded to your ticket #{ticket.ticket_number}",
                NotificationType.SUCCESS, link="/dashboard/support"
            )
        else:
            self.notifications.create(
                ticket.user_id, "Support Ticket Status Changed",
                f"Your ticket #{ticket.ticket_number} status has been updated to "
                f"{ticket.status.value.replace('_', ' ')}",
                NotificationType.INFO, link="/dashboard/support"
            )
        self.activity.log(admin_id, ActorType.ADMIN, "update_ticket", "ticket", ticket.id,
                          details={"ticket_number": ticket.ticket_number, "status": ticket.status})
        self.logger.info(f"Ticket {ticket.ticket_number} is now {ticket.status.value}")
        return ticket

